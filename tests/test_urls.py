"""
Unit tests for slugs, permalinks and output paths.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from inkpress.site.urls import (
    expand_permalink,
    join_url,
    normalize_url_path,
    output_path_for,
    slug_for,
    urlize,
)


class TestUrlize:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Hello World", "hello-world"),
            ("  2PC & Saga!  ", "2pc-saga"),
            ("a -- b", "a-b"),
            ("C++ / Go", "c-go"),
            ("dotted.name_x~", "dotted.name_x~"),
            ("Café Crème", "café-crème"),
        ],
    )
    def test_lower_case(self, text, expected):
        assert urlize(text) == expected

    def test_preserve_case(self):
        assert urlize("ProductDescriptionApp", preserve_case=True) == "ProductDescriptionApp"
        assert urlize("ProductDescriptionApp") == "productdescriptionapp"


class TestSlugFor:
    def test_explicit_slug_wins(self):
        assert slug_for(Path("posts/a.md"), "/custom/") == "custom"

    def test_file_stem(self):
        assert slug_for(Path("posts/CodeGenTemplate.md")) == "CodeGenTemplate"

    def test_bundle_uses_directory(self):
        assert slug_for(Path("posts/trip/index.md")) == "trip"


class TestExpandPermalink:
    PUBLISHED = datetime(2024, 5, 3, tzinfo=timezone.utc)

    def expand(self, pattern, preserve_case=False):
        return expand_permalink(
            pattern,
            section="posts",
            slug="My-Slug",
            title="Sagas Explained",
            filename="SagaFile",
            published=self.PUBLISHED,
            preserve_case=preserve_case,
        )

    def test_date_tokens(self):
        assert self.expand("/:year/:month/:day/:slug/") == "/2024/05/03/my-slug/"

    def test_section_title_filename(self):
        assert self.expand("/:section/:title/") == "/posts/sagas-explained/"
        assert self.expand("/:filename", preserve_case=True) == "/SagaFile/"

    def test_literal_text_kept(self):
        assert self.expand("/blog/:year/:slug.html") == "/blog/2024/my-slug.html"


class TestPaths:
    def test_normalize(self):
        assert normalize_url_path("posts//a") == "/posts/a/"
        assert normalize_url_path("/feed.xml") == "/feed.xml"
        assert normalize_url_path("") == "/"

    def test_join(self):
        assert join_url("posts", "page", "2") == "/posts/page/2/"
        assert join_url("/posts/", "") == "/posts/"
        assert join_url() == "/"

    def test_output_paths(self, tmp_path):
        assert output_path_for("/", tmp_path) == tmp_path / "index.html"
        assert output_path_for("/a/b/", tmp_path) == tmp_path / "a" / "b" / "index.html"
        assert output_path_for("/404.html", tmp_path) == tmp_path / "404.html"
        assert output_path_for("/index.xml", tmp_path) == tmp_path / "index.xml"
