"""
Playback Synchronizer Module

Keeps the highlighted words in step with audio playback. The reading UI
talks to it only through commands (play, pause, stop, toggle, seek to a
word, change speed) and the notifications published on its EventBus.
"""

import itertools
import math
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from newscast.captions import CaptionTrack
from newscast.readalong.aligner import CueAligner, CueMapping
from newscast.readalong.narrator import HighlightView, LiveNarrator, SpeechEngine
from newscast.readalong.tokens import RenderedWord, normalize_token
from newscast.utils.config import config

STATE_CHANGED = "state-changed"
SPEED_CHANGED = "speed-changed"
CUE_CHANGED = "cue-changed"


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


class MediaBackend(ABC):
    """Pre-recorded audio playback provided by the host."""

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def seek(self, position_ms: float) -> None:
        ...

    @abstractmethod
    def set_rate(self, rate: float) -> None:
        ...


class EventBus:
    """Minimal publish/subscribe channel for player notifications."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[..., None]]] = defaultdict(list)

    def on(self, event: str, callback: Callable[..., None]) -> Callable[[], None]:
        """Subscribe; returns a function that unsubscribes."""
        self._listeners[event].append(callback)
        return lambda: self._listeners[event].remove(callback)

    def emit(self, event: str, **detail: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(**detail)


def estimate_reading_minutes(word_count: int, words_per_minute: Optional[int] = None) -> int:
    wpm = words_per_minute or int(config.get("playback", "words_per_minute", default=200))
    return max(1, math.ceil(word_count / wpm))


def reading_minutes(base_minutes: float, rate: float) -> int:
    """Reading time once playback speed is applied."""
    return math.ceil(base_minutes / rate)


class PlaybackSynchronizer:
    """
    Drives word highlighting from the playback position.

    With a caption track, positions reported by the media backend are
    looked up in the track (binary search on cue starts) and the words the
    active cue maps to are highlighted. Without one, narration falls back to
    a LiveNarrator on the host speech engine.
    """

    def __init__(
        self,
        words: Sequence[RenderedWord],
        view: HighlightView,
        media: Optional[MediaBackend] = None,
        track: Optional[CaptionTrack] = None,
        mapping: Optional[CueMapping] = None,
        speech: Optional[SpeechEngine] = None,
        title: str = "",
        events: Optional[EventBus] = None,
        aligner: Optional[CueAligner] = None,
        viewport_band: Optional[Tuple[float, float]] = None,
        base_minutes: Optional[float] = None,
    ):
        """
        Initialize the synchronizer.

        Args:
            words: Rendered words in display order
            view: Highlight/scroll surface
            media: Audio playback backend for the pre-recorded narration
            track: Caption track; None or empty selects live narration
            mapping: Precomputed cue mapping (aligned on demand otherwise)
            speech: Host speech engine for live narration
            title: Article title, spoken first in live narration
            events: Bus for state/speed/cue notifications
            aligner: Aligner used when no mapping is given
            viewport_band: Safe (top, bottom) band; words outside are scrolled to
            base_minutes: Reading time at 1x speed
        """
        self.words = list(words)
        self.view = view
        self.media = media
        self.events = events or EventBus()
        self.state = PlaybackState.STOPPED
        self.speed = 1.0

        band = viewport_band or config.get("playback", "viewport_band", default=[0.2, 0.8])
        self.viewport_band = (float(band[0]), float(band[1]))
        self.base_minutes = (
            base_minutes if base_minutes is not None else estimate_reading_minutes(len(self.words))
        )

        self.track: Optional[CaptionTrack] = track if track else None
        self.mapping = CueMapping()
        self.narrator: Optional[LiveNarrator] = None
        self._starts: List[float] = []
        self._active_cue: Optional[int] = None

        if self.track is not None and media is not None:
            if mapping is None:
                mapping = (aligner or CueAligner()).align(self.track, self.words)
            self.mapping = mapping
            self._starts = self.track.start_times
        else:
            self.track = None
            if speech is not None:
                self.narrator = LiveNarrator(
                    self.words,
                    speech,
                    view,
                    title=title,
                    on_finished=self._on_narration_finished,
                )

    @property
    def live(self) -> bool:
        """True when narrating with the host speech engine."""
        return self.track is None

    @property
    def active_cue(self) -> Optional[int]:
        return self._active_cue

    def play(self) -> None:
        if self.live:
            if self.narrator is None:
                self._set_state(PlaybackState.ERROR)
                return
            self._set_state(PlaybackState.PLAYING)
            self.narrator.play()
            return

        self.media.play()
        self._set_state(PlaybackState.PLAYING)

    def pause(self) -> None:
        if self.state is not PlaybackState.PLAYING:
            return
        if self.live:
            self.narrator.pause()
        else:
            self.media.pause()
        self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        if self.state is not PlaybackState.PAUSED:
            return
        if self.live:
            self._set_state(PlaybackState.PLAYING)
            self.narrator.resume()
        else:
            self.media.play()
            self._set_state(PlaybackState.PLAYING)

    def toggle(self) -> None:
        if self.state is PlaybackState.PLAYING:
            self.pause()
        elif self.state is PlaybackState.PAUSED:
            self.resume()
        else:
            self.play()

    def stop(self) -> None:
        if self.live:
            if self.narrator is not None:
                self.narrator.stop()
        else:
            self.media.pause()
            self.media.seek(0)
        self._reset_highlight()
        self._set_state(PlaybackState.STOPPED)

    def set_speed(self, rate: float) -> None:
        if rate <= 0:
            raise ValueError(f"Playback rate must be positive, got {rate}")
        self.speed = rate
        if self.live:
            if self.narrator is not None:
                self.narrator.set_rate(rate)
        else:
            self.media.set_rate(rate)
        self.events.emit(
            SPEED_CHANGED,
            speed=rate,
            reading_minutes=reading_minutes(self.base_minutes, rate),
        )

    def seek_to_word(self, index: int) -> bool:
        """
        Jump playback to the cue that speaks a rendered word (click to seek).

        Returns:
            True if a position for the word was found
        """
        if self.live:
            if self.narrator is None or not self.narrator.play_from_word(index):
                return False
            self._set_state(PlaybackState.PLAYING)
            return True

        cue_index = self.cue_for_word(index)
        if cue_index is None:
            return False

        self.media.seek(self.track[cue_index].start_ms)
        self._activate(cue_index)
        if self.state is not PlaybackState.PLAYING:
            self.media.play()
            self._set_state(PlaybackState.PLAYING)
        return True

    def on_position(self, position_ms: float) -> None:
        """
        Handle a playback position update.

        Gaps between cues keep the current highlight; a tick inside the
        already active cue does nothing.
        """
        if self.live:
            return
        cue_index = self.track.cue_index_at(position_ms, self._starts)
        if cue_index is None or cue_index == self._active_cue:
            return
        self._activate(cue_index)

    def on_ended(self) -> None:
        """Playback reached the end of the audio."""
        self._reset_highlight()
        self._set_state(PlaybackState.STOPPED)

    def on_error(self) -> None:
        self._set_state(PlaybackState.ERROR)

    def cue_for_word(self, index: int) -> Optional[int]:
        """
        Cue to seek to for a rendered word.

        Uses the alignment when the word is mapped; otherwise matches the
        word's text against the caption track, searching from the cue of the
        nearest preceding mapped word.
        """
        cues = self.mapping.cues_for(index)
        if cues:
            return cues[0]
        if not 0 <= index < len(self.words):
            return None

        target = normalize_token(self.words[index].text)
        if not target:
            return None

        first = 0
        for previous in range(index - 1, -1, -1):
            mapped = self.mapping.cues_for(previous)
            if mapped:
                first = mapped[-1]
                break

        # From the nearest mapped cue to the end, then wrap around to it
        order = itertools.chain(range(first, len(self.track)), range(0, first))
        for cue_index in order:
            tokens = [normalize_token(t) for t in self.track[cue_index].text.split()]
            if target in tokens:
                return cue_index
        return None

    def _activate(self, cue_index: int) -> None:
        self._active_cue = cue_index
        words = self.mapping.words_for(cue_index)
        if not words:
            return

        self.view.highlight(list(words))
        position = self.view.viewport_position(words[0])
        top, bottom = self.viewport_band
        if position is not None and not top <= position <= bottom:
            self.view.scroll_to(words[0])
        self.events.emit(CUE_CHANGED, cue=cue_index, words=list(words))

    def _reset_highlight(self) -> None:
        self._active_cue = None
        self.view.clear()

    def _on_narration_finished(self) -> None:
        self._set_state(PlaybackState.STOPPED)

    def _set_state(self, state: PlaybackState) -> None:
        if state is self.state:
            return
        self.state = state
        self.events.emit(STATE_CHANGED, state=state)
