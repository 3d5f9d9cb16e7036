"""
Text Cleaning Module

Turns Markdown article bodies into plain prose suitable for narration.
Drops everything a listener should not hear: code, images, URLs, tags,
link callouts and formatting markers.
"""

import re
import unicodedata
from typing import Iterable, Optional

from newscast.utils.config import config


class MarkdownCleaner:
    """Clean and normalize Markdown for TTS processing."""

    def __init__(self, boilerplate_labels: Optional[Iterable[str]] = None):
        if boilerplate_labels is None:
            boilerplate_labels = config.get(
                "text",
                "boilerplate_labels",
                default=["Discussion HN", "Article source"],
            )
        labels = "|".join(re.escape(label) for label in boilerplate_labels)
        self._boilerplate = (
            re.compile(rf"^[ \t]*[-*+]\s*[\*_]*(?:{labels})[\*_]*.*$", re.MULTILINE)
            if labels
            else None
        )

    def clean(self, text: str) -> str:
        """
        Apply all cleaning operations to text.

        Passes are repeated until the output stops changing, so cleaning
        already-clean text returns it untouched.

        Args:
            text: Raw Markdown body

        Returns:
            Plain text ready for TTS
        """
        # Every pass shortens the text or replaces unsafe characters, so this ends
        while True:
            cleaned = self._clean_once(text)
            if cleaned == text:
                return text
            text = cleaned

    def _clean_once(self, text: str) -> str:
        text = self._remove_comments(text)
        text = self._remove_code(text)
        text = self._remove_images(text)
        text = self._unwrap_links(text)
        text = self._remove_urls(text)
        text = self._remove_tags(text)
        text = self._remove_boilerplate(text)
        text = self._remove_block_markers(text)
        text = self._unwrap_emphasis(text)
        text = self._normalize_paragraphs(text)
        text = self._remove_unsafe_characters(text)

        return text.strip()

    def _remove_comments(self, text: str) -> str:
        """Drop HTML comments."""
        return re.sub(r"<!--[\s\S]*?-->", "", text)

    def _remove_code(self, text: str) -> str:
        """Drop fenced code blocks, keep inline code as plain text."""
        text = re.sub(r"```[\s\S]*?```", "", text)
        text = re.sub(r"`([^`]+)`", r"\1", text)
        return text

    def _remove_images(self, text: str) -> str:
        return re.sub(r"!\[[^\]]*\]\([^)]*\)", "", text)

    def _unwrap_links(self, text: str) -> str:
        """Keep link text, drop the target."""
        # Annotated links: {text}[label](url)
        text = re.sub(r"\{([^\}]+)\}\[[^\]]+\]\([^)]+\)", r"\1", text)
        text = re.sub(r"\[([^\]]+)\]\([^\)]+\)", r"\1", text)
        return text

    def _remove_urls(self, text: str) -> str:
        """Remove bare URLs (they sound terrible when read)."""
        return re.sub(r"https?://[^\s]+", "", text)

    def _remove_tags(self, text: str) -> str:
        return re.sub(r"<[^>]+>", "", text)

    def _remove_boilerplate(self, text: str) -> str:
        """Remove discussion/source link callouts."""
        if self._boilerplate is None:
            return text
        return self._boilerplate.sub("", text)

    def _remove_block_markers(self, text: str) -> str:
        """Strip heading and list markers at line start."""
        text = re.sub(r"^#+\s+", "", text, flags=re.MULTILINE)
        text = re.sub(r"^[-*+]\s+", "", text, flags=re.MULTILINE)
        return text

    def _unwrap_emphasis(self, text: str) -> str:
        text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
        text = re.sub(r"\*([^*]+)\*", r"\1", text)
        text = re.sub(r"__([^_]+)__", r"\1", text)
        text = re.sub(r"_([^_]+)_", r"\1", text)
        return text

    def _normalize_paragraphs(self, text: str) -> str:
        """Convert runs of 3+ newlines to a single blank line."""
        return re.sub(r"\n{3,}", "\n\n", text)

    def _remove_unsafe_characters(self, text: str) -> str:
        """Replace anything that is not a letter, number, punctuation or space."""
        return "".join(ch if _is_speakable(ch) else " " for ch in text)


def _is_speakable(ch: str) -> bool:
    if ch == "\n":
        return True
    return unicodedata.category(ch)[0] in ("L", "N", "P", "Z")


def clean_markdown(text: str) -> str:
    """Clean a Markdown body with the configured boilerplate labels."""
    return MarkdownCleaner().clean(text)

