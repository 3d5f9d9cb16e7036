"""
Token Module

Tokenization and token normalization shared by the read-along components.
Rendered text is tokenized independently from the captions, so both sides
are normalized before any comparison.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence

from newscast.utils.config import config

# Quotes, apostrophes, ellipses and common punctuation, ASCII and typographic
STRIP_CHARS = (
    "\"'`´"
    "‘’‚‛“”„‟«»‹›"
    "….,;:!?()[]{}<>"
    "-‐‑‒–—―_/\\*#|~"
)
_STRIP_RE = re.compile("[" + re.escape(STRIP_CHARS) + "]")


def ignore_patterns_for(labels: Iterable[str]) -> List[Pattern]:
    """Patterns for rendered callout blocks (``<label>: ...``) that are never narrated."""
    return [re.compile(rf"^\s*{re.escape(label)}\s*:", re.IGNORECASE) for label in labels]


def default_ignore_patterns() -> List[Pattern]:
    """Callout patterns for the configured boilerplate labels."""
    return ignore_patterns_for(config.get("text", "boilerplate_labels", default=[]))


@dataclass(frozen=True)
class RenderedWord:
    """A word as displayed by the reading client."""

    text: str
    dom_index: int
    block: int = 0


def normalize_token(token: str) -> str:
    """
    Normalize a token for comparison.

    Case-folds and strips quotes, apostrophes, ellipses and punctuation, so
    that ``"L’économie,"`` and ``l'économie`` compare equal.
    """
    token = unicodedata.normalize("NFKC", token)
    token = _STRIP_RE.sub("", token)
    return token.casefold()


def tokenize_rendered(
    blocks: Iterable[str],
    ignore_patterns: Optional[Sequence[Pattern]] = None,
) -> List[RenderedWord]:
    """
    Split rendered text blocks (paragraphs, list items, headings) into words.

    Words are whitespace-delimited runs. Blocks matching an ignore pattern,
    such as link callouts that are never narrated, produce no words.

    Args:
        blocks: Text content of each rendered block, in display order
        ignore_patterns: Patterns marking blocks to leave out

    Returns:
        Ordered RenderedWord list with consecutive ``dom_index`` values
    """
    if ignore_patterns is None:
        ignore_patterns = default_ignore_patterns()

    words: List[RenderedWord] = []
    for block_index, block in enumerate(blocks):
        if any(p.search(block) for p in ignore_patterns):
            continue
        for part in block.split():
            words.append(RenderedWord(text=part, dom_index=len(words), block=block_index))
    return words


def tokenize_text(text: str) -> List[RenderedWord]:
    """Tokenize plain text, one block per paragraph."""
    return tokenize_rendered(re.split(r"\n\s*\n", text))
