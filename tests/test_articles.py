"""Unit tests for article loading.

WHY: The title is spoken before the body, and the file stem names the audio
and caption artifacts. Losing either one breaks the link between an article
page and its narration.
"""

import pytest

from newscast.articles import Article, load_article, load_articles, split_front_matter
from newscast.errors import ArticleLoadError


ARTICLE = """\
---
title: La réforme des retraites
date: 2024-03-01
---
Le texte **complet** de l'article.
"""


class TestFrontMatter:
    def test_split(self):
        attributes, body = split_front_matter(ARTICLE)
        assert attributes["title"] == "La réforme des retraites"
        assert body == "Le texte **complet** de l'article.\n"

    def test_absent(self):
        assert split_front_matter("Juste du texte.") == ({}, "Juste du texte.")

    def test_invalid_yaml(self):
        with pytest.raises(ArticleLoadError):
            split_front_matter("---\ntitle: [pas fermé\n---\ncorps")

    def test_non_mapping_is_ignored(self):
        assert split_front_matter("---\n- a\n- b\n---\ncorps") == ({}, "corps")


class TestNarrationText:
    def test_title_then_cleaned_body(self):
        article = Article("a", "Titre", "Du **texte** ici.")
        assert article.narration_text() == "Titre.\n\nDu texte ici."

    def test_without_title(self):
        assert Article("a", "", "Du texte.").narration_text() == "Du texte."

    def test_without_body(self):
        assert Article("a", "Titre", "![image](x.png)").narration_text() == "Titre."

    def test_blank(self):
        assert Article("a", "  ", "   ").narration_text() == ""


class TestLoading:
    def test_load_article(self, tmp_path):
        path = tmp_path / "2024-03-01-retraites.md"
        path.write_text(ARTICLE, encoding="utf-8")
        article = load_article(path)
        assert article.id == "2024-03-01-retraites"
        assert article.title == "La réforme des retraites"
        assert article.body.startswith("Le texte")

    def test_load_articles_sorted(self, tmp_path):
        for name in ("b.md", "a.md", "c.md"):
            (tmp_path / name).write_text(f"---\ntitle: {name}\n---\ncorps", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
        assert [a.id for a in load_articles(tmp_path)] == ["a", "b", "c"]

    def test_bad_article_is_skipped(self, tmp_path):
        (tmp_path / "good.md").write_text("corps", encoding="utf-8")
        (tmp_path / "bad.md").write_text("---\ntitle: [\n---\ncorps", encoding="utf-8")
        assert [a.id for a in load_articles(tmp_path)] == ["good"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ArticleLoadError):
            load_articles(tmp_path / "nope")
