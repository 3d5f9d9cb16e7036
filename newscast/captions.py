"""
Caption Track Module

Builds the global word-level caption track for an article from per-chunk
word timings, and reads/writes it as WebVTT. The same file drives the
read-along client at playback time.
"""

import math
import re
from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from newscast.errors import CaptionFormatError
from newscast.synthesis import WordTiming

VTT_HEADER = "WEBVTT"

_TIMESTAMP = r"(?:(\d+):)?(\d{1,2}):(\d{2})[.,](\d{1,3})"
TIMESTAMP_RE = re.compile(rf"^{_TIMESTAMP}$")
TIMING_LINE_RE = re.compile(rf"^\s*{_TIMESTAMP}\s+-->\s+{_TIMESTAMP}(?:\s+.*)?$")


@dataclass(frozen=True)
class CaptionCue:
    """Single caption entry, timed in milliseconds from the start of the audio."""

    start_ms: float
    end_ms: float
    text: str


@dataclass
class CaptionTrack:
    """Ordered, non-overlapping caption cues for one article."""

    cues: List[CaptionCue] = field(default_factory=list)
    duration_ms: Optional[float] = None

    def __len__(self) -> int:
        return len(self.cues)

    def __iter__(self) -> Iterator[CaptionCue]:
        return iter(self.cues)

    def __getitem__(self, index: int) -> CaptionCue:
        return self.cues[index]

    @property
    def start_times(self) -> List[float]:
        return [cue.start_ms for cue in self.cues]

    @property
    def end_ms(self) -> float:
        """End of the last cue (0 for an empty track)."""
        return self.cues[-1].end_ms if self.cues else 0.0

    def is_well_formed(self) -> bool:
        """Strictly increasing starts and no cue overlapping the next."""
        for prev, cue in zip(self.cues, self.cues[1:]):
            if cue.start_ms <= prev.start_ms or prev.end_ms > cue.start_ms:
                return False
        return all(cue.end_ms >= cue.start_ms for cue in self.cues)

    def cue_index_at(self, position_ms: float, starts: Optional[List[float]] = None) -> Optional[int]:
        """
        Index of the cue covering ``position_ms``, or None in a gap.

        Args:
            position_ms: Playback position
            starts: Precomputed ``start_times`` to avoid rebuilding per call
        """
        starts = starts if starts is not None else self.start_times
        index = bisect_right(starts, position_ms) - 1
        if index < 0:
            return None
        if position_ms < self.cues[index].end_ms:
            return index
        return None


class CaptionBuilder:
    """
    Merges per-chunk word timings into one global caption track.

    Each chunk's timings are shifted by that chunk's offset, i.e. the measured
    duration of all audio written before it.
    """

    def __init__(self) -> None:
        self._cues: List[CaptionCue] = []
        self.chunk_count = 0

    def add_chunk(
        self,
        timings: Iterable[WordTiming],
        offset_ms: float,
        duration_ms: Optional[float] = None,
    ) -> "CaptionBuilder":
        """
        Append one chunk's word timings.

        Args:
            timings: Word timings relative to the chunk start
            offset_ms: Start of the chunk in the assembled audio
            duration_ms: Measured length of the chunk. When positive, no cue
                starts or ends after the chunk does.

        Returns:
            self for method chaining
        """
        limit = None
        if duration_ms is not None and duration_ms > 0:
            limit = math.floor(offset_ms + duration_ms)

        for timing in timings:
            text = timing.text.strip()
            if not text:
                continue
            start = round(timing.start_ms + offset_ms)
            end = max(round(timing.end_ms + offset_ms), start)
            if limit is not None:
                start = min(start, limit)
                end = min(end, limit)
            self._append(CaptionCue(start, end, text))
        self.chunk_count += 1
        return self

    def _append(self, cue: CaptionCue) -> None:
        if not self._cues:
            self._cues.append(cue)
            return

        last = self._cues[-1]
        if cue.start_ms <= last.start_ms:
            # Same or earlier start: fold into the previous cue
            self._cues[-1] = CaptionCue(
                last.start_ms,
                max(last.end_ms, cue.end_ms),
                f"{last.text} {cue.text}",
            )
        elif cue.start_ms < last.end_ms:
            self._cues[-1] = CaptionCue(last.start_ms, cue.start_ms, last.text)
            self._cues.append(cue)
        else:
            self._cues.append(cue)

    @property
    def cue_count(self) -> int:
        return len(self._cues)

    def build(self, duration_ms: Optional[float] = None) -> CaptionTrack:
        """
        Finalize the caption track.

        Args:
            duration_ms: Total duration of the assembled audio, if known
        """
        return CaptionTrack(cues=list(self._cues), duration_ms=duration_ms)


def format_timestamp(ms: float) -> str:
    """Format milliseconds as HH:MM:SS.mmm."""
    total = max(0, int(round(ms)))
    hours, rest = divmod(total, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def _to_ms(hours: Optional[str], minutes: str, seconds: str, fraction: str) -> float:
    millis = int(fraction.ljust(3, "0"))
    return float(
        int(hours or 0) * 3_600_000
        + int(minutes) * 60_000
        + int(seconds) * 1000
        + millis
    )


def parse_timestamp(value: str) -> float:
    """Parse HH:MM:SS.mmm (or MM:SS.mmm) into milliseconds."""
    match = TIMESTAMP_RE.match(value.strip())
    if not match:
        raise CaptionFormatError(f"Invalid timestamp: {value!r}")
    return _to_ms(*match.groups())


def to_vtt(track: CaptionTrack) -> str:
    """Serialize a caption track to WebVTT with numbered cues."""
    parts = [f"{VTT_HEADER}\n\n"]
    for index, cue in enumerate(track.cues, 1):
        start = format_timestamp(cue.start_ms)
        end = format_timestamp(cue.end_ms)
        parts.append(f"{index}\n{start} --> {end}\n{cue.text}\n\n")
    return "".join(parts)


def parse_vtt(content: str) -> CaptionTrack:
    """
    Parse WebVTT text into a caption track.

    Accepts missing cue numbers, MM:SS.mmm timestamps, cue settings after the
    end time, NOTE/STYLE/REGION blocks and multi-line cue text.

    Raises:
        CaptionFormatError: if the header or a timing line is malformed
    """
    content = content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    blocks = [b for b in re.split(r"\n[ \t]*\n", content.strip()) if b.strip()]

    if not blocks or not blocks[0].startswith(VTT_HEADER):
        raise CaptionFormatError("Missing WEBVTT header")

    cues: List[CaptionCue] = []
    for block in blocks[1:]:
        lines = block.split("\n")
        if lines[0].startswith(("NOTE", "STYLE", "REGION")):
            continue

        timing_index = next((i for i, line in enumerate(lines) if "-->" in line), None)
        if timing_index is None or timing_index > 1:
            raise CaptionFormatError(f"Cue without timing line: {block[:40]!r}")

        match = TIMING_LINE_RE.match(lines[timing_index])
        if not match:
            raise CaptionFormatError(f"Invalid timing line: {lines[timing_index]!r}")

        groups = match.groups()
        start = _to_ms(*groups[:4])
        end = _to_ms(*groups[4:])
        text = "\n".join(lines[timing_index + 1:]).strip()
        cues.append(CaptionCue(start, end, text))

    return CaptionTrack(cues=cues)


def save_track(path: Path, track: CaptionTrack) -> Path:
    """Write a caption track as UTF-8 WebVTT."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_vtt(track), encoding="utf-8")
    return path


def load_track(path: Path) -> CaptionTrack:
    """Read a WebVTT caption file."""
    return parse_vtt(Path(path).read_text(encoding="utf-8"))
