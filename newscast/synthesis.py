"""
Timed Speech Synthesis using edge-tts

Synthesizes narration audio together with per-word timing information.
Uses Microsoft Edge's neural TTS voices via edge-tts; word timings come from
the WordBoundary events of the same stream that carries the audio.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from newscast.errors import SynthesisError
from newscast.utils.config import config

# edge-tts reports offsets and durations in 100-nanosecond ticks
TICKS_PER_MS = 10_000


@dataclass(frozen=True)
class WordTiming:
    """One spoken word, timed relative to the start of its chunk."""

    text: str
    start_ms: float
    end_ms: float


@dataclass
class SynthesisResult:
    """Audio for one chunk plus its word timings."""

    audio: bytes
    word_timings: List[WordTiming] = field(default_factory=list)

    @property
    def has_timings(self) -> bool:
        return bool(self.word_timings)


class Synthesizer(ABC):
    """Speech synthesis capability used by the orchestrator."""

    @abstractmethod
    async def synthesize(self, text: str, voice: str, rate: str = "+0%") -> SynthesisResult:
        """
        Synthesize one chunk of text.

        Raises:
            SynthesisError: (or any other exception) on a failed request;
                retry policy is the caller's concern.
        """


# French voices from Edge TTS
EDGE_VOICES = {
    "vivienne": "fr-FR-VivienneMultilingualNeural",
    "remy": "fr-FR-RemyMultilingualNeural",
    "denise": "fr-FR-DeniseNeural",
    "henri": "fr-FR-HenriNeural",
    "eloise": "fr-FR-EloiseNeural",
}


def resolve_voice(voice: Optional[str]) -> str:
    """Map a voice shortcut to its full edge-tts name."""
    if voice and voice.lower() in EDGE_VOICES:
        return EDGE_VOICES[voice.lower()]
    return voice or config.voice


def speed_to_rate(speed: float) -> str:
    """Convert speed multiplier to edge-tts rate string."""
    # Speed 1.0 = +0%, 0.5 = -50%, 2.0 = +100%
    percentage = int(round((speed - 1.0) * 100))
    if percentage >= 0:
        return f"+{percentage}%"
    return f"{percentage}%"


class EdgeSynthesizer(Synthesizer):
    """
    Synthesize audio with word timings using edge-tts.

    Each call opens one edge-tts stream and collects both the MP3 audio
    frames and the WordBoundary metadata events.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize the edge synthesizer.

        Args:
            timeout: Seconds to wait for data from the service
        """
        self.timeout = timeout if timeout is not None else config.get(
            "synthesis", "timeout", default=60
        )

    async def synthesize(self, text: str, voice: str, rate: str = "+0%") -> SynthesisResult:
        import edge_tts

        communicate = edge_tts.Communicate(
            text,
            resolve_voice(voice),
            rate=rate,
            boundary="WordBoundary",
            receive_timeout=int(self.timeout),
        )

        buffer = io.BytesIO()
        timings: List[WordTiming] = []
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                buffer.write(chunk["data"])
            elif chunk["type"] == "WordBoundary":
                timings.append(word_timing_from_event(chunk))

        audio = buffer.getvalue()
        if not audio:
            raise SynthesisError(f"edge-tts returned empty audio for: {text[:30]!r}")

        return SynthesisResult(audio=audio, word_timings=timings)


def word_timing_from_event(event: dict) -> WordTiming:
    """Convert an edge-tts WordBoundary event to a WordTiming."""
    start = event["offset"] / TICKS_PER_MS
    end = (event["offset"] + event["duration"]) / TICKS_PER_MS
    return WordTiming(text=event["text"], start_ms=start, end_ms=end)


async def list_edge_voices(locale: Optional[str] = None) -> List[dict]:
    """List voices offered by the edge-tts service, optionally by locale."""
    import edge_tts

    voices = await edge_tts.list_voices()
    if locale:
        voices = [v for v in voices if v.get("Locale", "").lower() == locale.lower()]
    return voices
