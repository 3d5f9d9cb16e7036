"""
Chunker Module

Splits narration text into bounded-length segments for the synthesis
endpoint. Chunk boundaries fall on sentence terminators wherever a sentence
fits; only oversized sentences are cut mid-sentence.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from newscast.utils.config import config

# A sentence is the shortest run ending in . ! ? followed by whitespace or end
# of text; whatever trails the last terminator is a sentence of its own.
SENTENCE_PATTERN = re.compile(r"[\s\S]*?[.!?]+(?:\s+|$)|[\s\S]+$")


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of an article's narration text."""

    index: int
    text: str

    def __len__(self) -> int:
        return len(self.text)


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentences without losing any characters.

    Trailing whitespace stays attached to the sentence it follows, so
    ``"".join(split_sentences(text)) == text``.
    """
    if not text:
        return []
    return [m.group(0) for m in SENTENCE_PATTERN.finditer(text) if m.group(0)]


class TextChunker:
    """
    Greedy sentence packer.

    Sentences are appended to the current chunk until the next one would push
    it past ``max_length``; a sentence longer than ``max_length`` on its own
    is hard-split into fixed-size pieces.
    """

    def __init__(self, max_length: Optional[int] = None):
        self.max_length = max_length if max_length is not None else config.max_chunk_length
        if self.max_length <= 0:
            raise ValueError(f"max_length must be positive, got {self.max_length}")

    def split(self, text: str) -> List[Chunk]:
        """
        Split text into chunks.

        Args:
            text: Normalized narration text

        Returns:
            Ordered list of Chunk objects, each at most ``max_length`` long
        """
        if not text.strip():
            return []
        if len(text) <= self.max_length:
            return [Chunk(0, text)]

        pieces: List[str] = []
        current = ""

        for sentence in split_sentences(text):
            if not sentence.strip():
                continue

            if len(current) + len(sentence) <= self.max_length:
                current += sentence
                continue

            if current.strip():
                pieces.append(current.strip())
            current = ""

            if len(sentence) > self.max_length:
                pieces.extend(self._hard_split(sentence))
            else:
                current = sentence

        if current.strip():
            pieces.append(current.strip())

        return [Chunk(i, piece) for i, piece in enumerate(pieces)]

    def _hard_split(self, sentence: str) -> List[str]:
        size = self.max_length
        parts = [sentence[i:i + size] for i in range(0, len(sentence), size)]
        return [part for part in parts if part.strip()]


def chunk_text(text: str, max_length: Optional[int] = None) -> List[Chunk]:
    """
    Convenience function to chunk text.

    Args:
        text: Text to split
        max_length: Maximum chunk length (default from config)

    Returns:
        List of Chunk objects
    """
    return TextChunker(max_length).split(text)
