"""
Article Loading Module

Reads Markdown articles (with an optional YAML front-matter block) and
composes the text that gets narrated: the title as its own sentence,
followed by the cleaned body.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from newscast.clean_text import MarkdownCleaner
from newscast.errors import ArticleLoadError
from newscast.utils import logger

FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)


@dataclass(frozen=True)
class Article:
    """An article to narrate. ``id`` doubles as the artifact file stem."""

    id: str
    title: str
    body: str

    def narration_text(self, cleaner: Optional[MarkdownCleaner] = None) -> str:
        """Title sentence, blank line, then the normalized body."""
        cleaner = cleaner or MarkdownCleaner()
        body = cleaner.clean(self.body)
        title = self.title.strip()
        if not title:
            return body
        return f"{title}.\n\n{body}" if body else f"{title}."


def split_front_matter(content: str) -> Tuple[dict, str]:
    """
    Separate a YAML front-matter block from the Markdown body.

    Returns:
        Tuple of (front-matter mapping, body text)
    """
    match = FRONT_MATTER_RE.match(content)
    if not match:
        return {}, content

    try:
        attributes = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise ArticleLoadError(f"Invalid front matter: {e}") from e

    if not isinstance(attributes, dict):
        attributes = {}
    return attributes, content[match.end():]


def load_article(path: Path) -> Article:
    """Load one Markdown article file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ArticleLoadError(f"Could not read {path}: {e}") from e

    try:
        attributes, body = split_front_matter(content)
    except ArticleLoadError as e:
        raise ArticleLoadError(f"{path.name}: {e}") from e

    title = attributes.get("title") or ""
    return Article(id=path.stem, title=str(title), body=body)


def load_articles(articles_dir: Path, pattern: str = "*.md") -> List[Article]:
    """
    Load every article in a directory, sorted by file name.

    Unreadable files are reported and skipped.
    """
    articles_dir = Path(articles_dir)
    if not articles_dir.is_dir():
        raise ArticleLoadError(f"Articles directory not found: {articles_dir}")

    articles = []
    for path in sorted(articles_dir.glob(pattern)):
        try:
            articles.append(load_article(path))
        except ArticleLoadError as e:
            logger.warning(str(e))
    return articles
