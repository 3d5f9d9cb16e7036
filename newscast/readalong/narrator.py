"""
Live Narration Module

Fallback read-along path for articles without a pre-recorded caption track:
the host's own speech engine speaks the rendered text sentence by sentence
and its word-boundary events drive the highlight.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from newscast.chunker import split_sentences
from newscast.readalong.tokens import RenderedWord


class SpeechEngine(ABC):
    """Host speech synthesis with word-boundary callbacks."""

    @abstractmethod
    def speak(
        self,
        text: str,
        rate: float,
        on_boundary: Callable[[int], None],
        on_end: Callable[[], None],
    ) -> None:
        """Start speaking; ``on_boundary`` receives char indices into ``text``."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop speaking immediately."""


class HighlightView(ABC):
    """The reading surface: highlights words and scrolls to them."""

    @abstractmethod
    def highlight(self, indices: List[int]) -> None:
        """Highlight exactly these rendered words."""

    @abstractmethod
    def clear(self) -> None:
        """Remove any highlight."""

    @abstractmethod
    def viewport_position(self, index: int) -> Optional[float]:
        """
        Vertical position of a word relative to the viewport.

        0.0 is the top edge and 1.0 the bottom edge; values outside that
        range are off screen. None when unknown.
        """

    @abstractmethod
    def scroll_to(self, index: int) -> None:
        """Scroll so the word is comfortably visible."""


@dataclass(frozen=True)
class WordSpan:
    """Character span of a rendered word inside the narrated text."""

    start: int
    end: int
    index: int


@dataclass(frozen=True)
class SpokenSentence:
    text: str
    start: int


class LiveNarrator:
    """
    Speaks the title and rendered words through a SpeechEngine.

    The narrated text is ``"<title>. "`` followed by the words joined by
    single spaces; each word keeps its character span so boundary events
    can be mapped back to it.
    """

    def __init__(
        self,
        words: Sequence[RenderedWord],
        speech: SpeechEngine,
        view: HighlightView,
        title: str = "",
        rate: float = 1.0,
        on_finished: Optional[Callable[[], None]] = None,
    ):
        self.speech = speech
        self.view = view
        self.rate = rate
        self.on_finished = on_finished

        self.title_text = f"{title}. " if title else ""
        self.spans: List[WordSpan] = []
        running = ""
        for index, word in enumerate(words):
            self.spans.append(WordSpan(len(running), len(running) + len(word.text), index))
            running += word.text + " "
        self.full_text = self.title_text + running

        self.sentences: List[SpokenSentence] = []
        cursor = 0
        for sentence in split_sentences(self.full_text):
            self.sentences.append(SpokenSentence(sentence, cursor))
            cursor += len(sentence)

        self.sentence_index = 0
        self.char_index = 0
        self.speaking = False
        self._utterance = 0

    def play(self) -> None:
        self.speaking = True
        self._speak_sentence()

    def pause(self) -> None:
        self.speaking = False
        self._utterance += 1
        self.speech.cancel()

    def resume(self) -> None:
        self.play()

    def stop(self) -> None:
        self.speaking = False
        self._utterance += 1
        self.speech.cancel()
        self.view.clear()
        self.sentence_index = 0
        self.char_index = 0

    def set_rate(self, rate: float) -> None:
        """Change speed; the current sentence restarts at the new rate."""
        self.rate = rate
        if self.speaking:
            self._utterance += 1
            self.speech.cancel()
            self._speak_sentence()

    def play_from_word(self, index: int) -> bool:
        """Restart narration at a rendered word. Returns False if unknown."""
        if not 0 <= index < len(self.spans):
            return False

        global_index = len(self.title_text) + self.spans[index].start
        for sentence_index, sentence in enumerate(self.sentences):
            if sentence.start <= global_index < sentence.start + len(sentence.text):
                self.sentence_index = sentence_index
                self.char_index = global_index
                self._utterance += 1
                self.speech.cancel()
                self.speaking = True
                self._speak_sentence()
                return True
        return False

    def highlight_at(self, char_index: int) -> Optional[int]:
        """Highlight the word at a character index of the narrated text."""
        if char_index < len(self.title_text):
            self.view.clear()
            return None

        relative = char_index - len(self.title_text)
        for span in self.spans:
            # Boundaries may land on the space just before a word
            if span.start - 1 <= relative < span.end:
                self.view.highlight([span.index])
                self.view.scroll_to(span.index)
                return span.index
        return None

    def _speak_sentence(self) -> None:
        while self.sentence_index < len(self.sentences):
            sentence = self.sentences[self.sentence_index]
            end = sentence.start + len(sentence.text)
            if not sentence.start <= self.char_index < end:
                self.char_index = sentence.start

            local = self.char_index - sentence.start
            to_speak = sentence.text[local:]
            if not to_speak.strip():
                self.sentence_index += 1
                self.char_index = 0
                continue

            self._utterance += 1
            utterance = self._utterance
            base = self.char_index
            self.speech.speak(
                to_speak,
                self.rate,
                on_boundary=lambda ci: self._on_boundary(utterance, base + ci),
                on_end=lambda: self._on_end(utterance),
            )
            return

        self._finish()

    def _on_boundary(self, utterance: int, char_index: int) -> None:
        if utterance == self._utterance and self.speaking:
            self.highlight_at(char_index)

    def _on_end(self, utterance: int) -> None:
        if utterance != self._utterance or not self.speaking:
            return
        self.sentence_index += 1
        self.char_index = 0
        self._speak_sentence()

    def _finish(self) -> None:
        self.stop()
        if self.on_finished is not None:
            self.on_finished()
