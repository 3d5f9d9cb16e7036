"""
Exception types raised by the narration pipeline.
"""

from typing import Optional


class NewscastError(Exception):
    """Base class for all narration pipeline errors."""


class ArticleLoadError(NewscastError):
    """An article source file could not be read."""


class SynthesisError(NewscastError):
    """The speech synthesis backend failed for one request."""


class CaptionFormatError(NewscastError):
    """A caption file is not valid WebVTT."""


class ArticleGenerationError(NewscastError):
    """An article could not be narrated after exhausting retries."""

    def __init__(self, article_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{article_id}: {message}")
        self.article_id = article_id
        self.cause = cause
