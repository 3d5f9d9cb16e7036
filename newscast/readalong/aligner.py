"""
Cue Alignment Module

Maps caption cues onto rendered words. The captions come from the speech
engine's word boundaries and the rendered words from the page, so the two
token streams describe the same text but disagree locally: numerals split
or merged, stray punctuation tokens, typographic quotes, a spoken title that
is not part of the body.

Desyncs are local and rare, so a bounded bidirectional lookahead is enough;
no global edit-distance alignment is attempted.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from newscast.captions import CaptionCue
from newscast.readalong.tokens import RenderedWord, normalize_token
from newscast.utils.config import config

# Rendered tokens used to pin the start of the body inside the captions
ANCHOR_TOKENS = 3


@dataclass
class CueMapping:
    """Cue index -> rendered word indices, with the reverse lookup."""

    cue_to_words: Dict[int, List[int]] = field(default_factory=dict)
    word_to_cues: Dict[int, List[int]] = field(default_factory=dict)

    def add(self, cue: int, word: int) -> None:
        words = self.cue_to_words.setdefault(cue, [])
        if word not in words:
            words.append(word)
            words.sort()
        cues = self.word_to_cues.setdefault(word, [])
        if cue not in cues:
            cues.append(cue)
            cues.sort()

    def words_for(self, cue: int) -> List[int]:
        return self.cue_to_words.get(cue, [])

    def cues_for(self, word: int) -> List[int]:
        return self.word_to_cues.get(word, [])

    def __contains__(self, cue: int) -> bool:
        return cue in self.cue_to_words

    def __len__(self) -> int:
        return len(self.cue_to_words)

    @property
    def mapped_cues(self) -> List[int]:
        return sorted(self.cue_to_words)

    def coverage(self, word_count: int) -> float:
        """Fraction of rendered words reachable from at least one cue."""
        if word_count <= 0:
            return 0.0
        return len(self.word_to_cues) / word_count

    def is_monotonic(self) -> bool:
        """For mapped cues i < j: max(words(i)) <= min(words(j))."""
        previous_max = None
        for cue in self.mapped_cues:
            words = self.cue_to_words[cue]
            if not words:
                continue
            if previous_max is not None and min(words) < previous_max:
                return False
            previous_max = max(words)
        return True


@dataclass(frozen=True)
class _Token:
    norm: str
    owner: int  # cue index or rendered word index


class CueAligner:
    """
    Two-cursor aligner with bounded lookahead.

    At each step the tokens under both cursors are compared:

    - equal: map the cue to the word and advance both cursors;
    - one side is a concatenation of consecutive tokens of the other
      (``15`` + ``travailleurs`` vs ``15-travailleurs``): map the group and
      advance past it;
    - otherwise look up to ``lookahead`` tokens ahead on each side for the
      other side's current token, nearest first; the side that finds it is
      holding spurious tokens, so only its cursor moves;
    - nothing found: treat as a local desync and advance both cursors.
    """

    def __init__(self, lookahead: Optional[int] = None):
        self.lookahead = lookahead if lookahead is not None else int(
            config.get("playback", "lookahead", default=4)
        )

    def align(self, cues: Sequence[CaptionCue], words: Sequence[RenderedWord]) -> CueMapping:
        """
        Align caption cues with rendered words.

        Args:
            cues: Caption cues in track order (a CaptionTrack works too)
            words: Rendered words in display order

        Returns:
            Monotonic CueMapping from cue index to word positions in ``words``
        """
        captions = _caption_tokens(cues)
        rendered = _tokens((w.text, i) for i, w in enumerate(words))
        mapping = CueMapping()

        i = self._find_start(captions, rendered)
        j = 0
        while i < len(captions) and j < len(rendered):
            c, r = captions[i], rendered[j]

            if c.norm == r.norm:
                mapping.add(c.owner, r.owner)
                i += 1
                j += 1
                continue

            merged = self._match_merged(captions, rendered, i, j)
            if merged is not None:
                di, dj = merged
                for cap in captions[i:i + di]:
                    for word in rendered[j:j + dj]:
                        mapping.add(cap.owner, word.owner)
                i += di
                j += dj
                continue

            skip = self._find_resync(captions, rendered, i, j)
            if skip is None:
                i += 1
                j += 1
            elif skip[0] == "caption":
                i += skip[1]
            else:
                j += skip[1]

        return mapping

    def _find_start(self, captions: List[_Token], rendered: List[_Token]) -> int:
        """
        Position in the caption stream where the rendered body begins.

        Prefers a run of up to ANCHOR_TOKENS consecutive matches, falling back
        to the first occurrence of the first rendered token, then to 0.
        """
        if not captions or not rendered:
            return 0

        for n in range(min(ANCHOR_TOKENS, len(rendered)), 0, -1):
            target = [t.norm for t in rendered[:n]]
            for start in range(len(captions) - n + 1):
                if all(captions[start + k].norm == target[k] for k in range(n)):
                    return start
        return 0

    def _match_merged(
        self,
        captions: List[_Token],
        rendered: List[_Token],
        i: int,
        j: int,
    ) -> Optional[Tuple[int, int]]:
        """Group sizes (captions, rendered) when one side merges the other's tokens."""
        count = _concat_run(captions, i, rendered[j].norm, self.lookahead)
        if count:
            return count, 1
        count = _concat_run(rendered, j, captions[i].norm, self.lookahead)
        if count:
            return 1, count
        return None

    def _find_resync(
        self,
        captions: List[_Token],
        rendered: List[_Token],
        i: int,
        j: int,
    ) -> Optional[Tuple[str, int]]:
        """Which side to advance, and by how much, to get back in step."""
        for k in range(1, self.lookahead + 1):
            if i + k < len(captions) and captions[i + k].norm == rendered[j].norm:
                return "caption", k
            if j + k < len(rendered) and rendered[j + k].norm == captions[i].norm:
                return "rendered", k
        return None


def _caption_tokens(cues: Iterable[CaptionCue]) -> List[_Token]:
    return _tokens(
        (part, index)
        for index, cue in enumerate(cues)
        for part in cue.text.split()
    )


def _tokens(pairs: Iterable[Tuple[str, int]]) -> List[_Token]:
    """Normalize tokens, dropping those that are pure punctuation."""
    tokens = []
    for text, owner in pairs:
        norm = normalize_token(text)
        if norm:
            tokens.append(_Token(norm, owner))
    return tokens


def _concat_run(tokens: List[_Token], start: int, target: str, limit: int) -> int:
    """
    Number of tokens from ``start`` whose concatenation equals ``target``.

    Returns 0 unless at least two tokens (and at most ``limit + 1``) are needed.
    """
    if not target.startswith(tokens[start].norm):
        return 0
    joined = tokens[start].norm
    for k in range(1, limit + 1):
        if start + k >= len(tokens):
            break
        joined += tokens[start + k].norm
        if joined == target:
            return k + 1
        if not target.startswith(joined):
            break
    return 0


def align(cues: Sequence[CaptionCue], words: Sequence[RenderedWord]) -> CueMapping:
    """Convenience function to align with the configured lookahead."""
    return CueAligner().align(cues, words)
