"""Shared test fixtures for the newscast test suite.

WHY: The generation pipeline talks to a network speech service and to
ffprobe, and the read-along player talks to a browser. None of that is
available in a unit test, so the collaborators are replaced by small
scripted fakes that record what they were asked to do.

HOW: Fakes implement the same abstract interfaces as the real classes
(Synthesizer, DurationProbe, MediaBackend, HighlightView, SpeechEngine).
Fixtures hand out fresh instances per test.

RULES:
- Fakes never sleep for real; async fakes yield with asyncio.sleep(0).
- Every fake records its calls so tests can assert on exact counts.
"""

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from newscast.audio import DurationProbe
from newscast.errors import SynthesisError
from newscast.readalong.narrator import HighlightView, SpeechEngine
from newscast.readalong.player import MediaBackend
from newscast.synthesis import SynthesisResult, Synthesizer, WordTiming


# ---------------------------------------------------------------------------
# Generation fakes
# ---------------------------------------------------------------------------

class FakeSynthesizer(Synthesizer):
    """Returns one timing per word, 100 ms each; fails on demand.

    ``failures`` maps a text fragment to how many calls containing it should
    fail before succeeding. Use a large number to fail forever.
    """

    def __init__(
        self,
        failures: Optional[Dict[str, int]] = None,
        with_timings: bool = True,
        delay_ticks: int = 1,
    ):
        self.failures = dict(failures or {})
        self.with_timings = with_timings
        self.delay_ticks = delay_ticks
        self.calls: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def synthesize(self, text, voice, rate="+0%"):
        self.calls.append(text)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            for _ in range(self.delay_ticks):
                await asyncio.sleep(0)

            for fragment, remaining in self.failures.items():
                if fragment in text and remaining > 0:
                    self.failures[fragment] = remaining - 1
                    raise SynthesisError(f"scripted failure for {fragment!r}")

            timings = []
            if self.with_timings:
                for i, word in enumerate(text.split()):
                    timings.append(WordTiming(word, i * 100.0, i * 100.0 + 90.0))
            return SynthesisResult(audio=text.encode("utf-8"), word_timings=timings)
        finally:
            self.in_flight -= 1


class FakeProbe(DurationProbe):
    """Reports a fixed or scripted duration per measured buffer."""

    def __init__(self, durations: Optional[List[float]] = None, default: float = 1.0):
        self.durations = list(durations or [])
        self.default = default
        self.measured: List[bytes] = []

    def _measure(self, audio):
        self.measured.append(audio)
        if self.durations:
            return self.durations.pop(0)
        return self.default


class BrokenProbe(DurationProbe):
    def _measure(self, audio):
        raise RuntimeError("ffprobe not installed")


async def no_sleep(seconds):
    return None


# ---------------------------------------------------------------------------
# Read-along fakes
# ---------------------------------------------------------------------------

class FakeMedia(MediaBackend):
    def __init__(self):
        self.calls: List[tuple] = []
        self.rate = 1.0

    def play(self):
        self.calls.append(("play",))

    def pause(self):
        self.calls.append(("pause",))

    def seek(self, position_ms):
        self.calls.append(("seek", position_ms))

    def set_rate(self, rate):
        self.rate = rate
        self.calls.append(("rate", rate))


class FakeView(HighlightView):
    """Records highlights; every word sits in the middle of the viewport
    unless listed in ``offscreen``."""

    def __init__(self, offscreen=()):
        self.highlighted: List[int] = []
        self.history: List[List[int]] = []
        self.scrolled: List[int] = []
        self.clears = 0
        self.offscreen = set(offscreen)

    def highlight(self, indices):
        self.highlighted = list(indices)
        self.history.append(list(indices))

    def clear(self):
        self.highlighted = []
        self.clears += 1

    def viewport_position(self, index):
        return 1.5 if index in self.offscreen else 0.5

    def scroll_to(self, index):
        self.scrolled.append(index)


class FakeSpeech(SpeechEngine):
    """Captures utterances; tests fire boundaries and ends by hand."""

    def __init__(self):
        self.spoken: List[tuple] = []
        self.cancels = 0
        self._boundary: Optional[Callable[[int], None]] = None
        self._end: Optional[Callable[[], None]] = None

    def speak(self, text, rate, on_boundary, on_end):
        self.spoken.append((text, rate))
        self._boundary = on_boundary
        self._end = on_end

    def cancel(self):
        self.cancels += 1

    def boundary(self, char_index):
        self._boundary(char_index)

    def end(self):
        self._end()

    @property
    def last_text(self):
        return self.spoken[-1][0] if self.spoken else None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def view():
    return FakeView()


@pytest.fixture
def speech():
    return FakeSpeech()
