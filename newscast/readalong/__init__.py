"""
Read-Along Module

Keeps narrated audio and displayed text in sync at reading time.
Aligns caption cues with rendered words, drives highlighting from the
playback position and falls back to live narration without captions.
"""

from newscast.readalong.tokens import RenderedWord, normalize_token, tokenize_rendered, tokenize_text
from newscast.readalong.aligner import CueAligner, CueMapping
from newscast.readalong.narrator import HighlightView, LiveNarrator, SpeechEngine
from newscast.readalong.player import (
    EventBus,
    MediaBackend,
    PlaybackState,
    PlaybackSynchronizer,
)

__all__ = [
    "RenderedWord",
    "normalize_token",
    "tokenize_rendered",
    "tokenize_text",
    "CueAligner",
    "CueMapping",
    "HighlightView",
    "LiveNarrator",
    "SpeechEngine",
    "EventBus",
    "MediaBackend",
    "PlaybackState",
    "PlaybackSynchronizer",
]
