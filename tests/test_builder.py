"""
Integration tests for the build pipeline.
Builds the sample site end to end and checks the published tree.
"""

from pathlib import Path

import pytest

from conftest import FIXED_NOW, post
from inkpress.common.config import load_site_config
from inkpress.common.errors import BuildError, ThemeNotFoundError
from inkpress.site.builder import SiteBuilder, build_site

POSTS = ["ProductDescriptionApp", "CodeGenTemplate", "DistributedTransactions"]


def read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


@pytest.fixture
def built(sample_config):
    """(report, publish dir, builder) for the sample site."""
    builder = SiteBuilder(sample_config, now=FIXED_NOW)
    report = builder.build()
    return report, sample_config.publish_path, builder


# === Test: Output tree ===


class TestSampleSiteBuild:
    def test_one_html_page_per_post(self, built):
        report, public, _ = built
        for name in POSTS:
            assert (public / "posts" / name / "index.html").is_file()
        assert report.pages == 4  # three posts and the about page

    def test_draft_not_published(self, built):
        _, public, _ = built
        assert not (public / "posts" / "WorkInProgress").exists()

    def test_filename_case_preserved(self, built):
        _, public, _ = built
        assert "ProductDescriptionApp" in {p.name for p in (public / "posts").iterdir()}

    def test_single_page_content(self, built):
        _, public, _ = built
        html = read(public / "posts" / "ProductDescriptionApp" / "index.html")
        assert "<title>Building a Product Description Web App | Side Project Notes</title>" in html
        assert '<pre class="mermaid">' in html
        assert "Browser --&gt; API" in html
        assert '<div class="note">Raw HTML is allowed on this site.</div>' in html
        assert "mermaid.initialize" in html
        assert 'href="/tags/LLM/"' in html
        assert 'href="/authors/Jamie-Park/"' in html

    def test_relref_resolved(self, built):
        _, public, _ = built
        html = read(public / "posts" / "CodeGenTemplate" / "index.html")
        assert '<a href="/posts/DistributedTransactions/">transactions post</a>' in html

    def test_site_shortcode(self, built):
        _, public, _ = built
        html = read(public / "posts" / "DistributedTransactions" / "index.html")
        assert '<aside class="note">Every saga step needs a <strong>compensating</strong> action.</aside>' in html
        assert "<table>" in html

    def test_prev_next_links(self, built):
        _, _, builder = built
        by_title = {p.slug: p for p in builder.site.pages}
        middle = by_title["CodeGenTemplate"]
        assert middle.next is by_title["DistributedTransactions"]
        assert middle.prev is by_title["ProductDescriptionApp"]

    def test_home_is_paginated(self, built):
        _, public, _ = built
        first = read(public / "index.html")
        second = read(public / "page" / "2" / "index.html")
        assert "Distributed Transactions" in first
        assert "Building a Product Description Web App" in second
        assert "Notes on things I built" in first
        assert 'url=/"' in read(public / "page" / "1" / "index.html")

    def test_home_summary_uses_more_divider(self, built):
        _, public, _ = built
        second = read(public / "page" / "2" / "index.html")
        assert "A small web app" in second
        assert "Architecture" not in second
        assert "Read more" in second

    def test_section_list(self, built):
        _, public, _ = built
        html = read(public / "posts" / "index.html")
        assert "<h1 class=\"list-title\">Posts</h1>" in html
        assert (public / "posts" / "page" / "2" / "index.html").is_file()

    def test_taxonomy_pages(self, built):
        _, public, _ = built
        terms = read(public / "tags" / "index.html")
        assert 'href="/tags/python/"' in terms
        assert "(2)" in terms
        assert (public / "tags" / "distributed-systems" / "index.html").is_file()
        assert (public / "authors" / "Alex-Kim" / "index.html").is_file()

    def test_404_and_static_files(self, built):
        report, public, _ = built
        assert (public / "404.html").is_file()
        assert (public / "css" / "style.css").is_file()
        assert read(public / "robots.txt").startswith("User-agent")
        assert (public / "images" / "logo.gif").is_file()
        assert (public / "about" / "avatar.png").is_file()
        assert report.static_files == 4

    def test_bundle_figure(self, built):
        _, public, _ = built
        html = read(public / "about" / "index.html")
        assert '<img src="avatar.png" alt="Avatar">' in html
        assert "Me, probably" in html

    def test_report(self, built):
        report, public, _ = built
        assert report.unpublished == 1
        assert report.skipped == []
        assert public / "index.html" in report.files
        assert report.total_files == len(report.files) + report.static_files


# === Test: Determinism and cleaning ===


class TestRebuild:
    def snapshot(self, root: Path) -> dict[str, bytes]:
        return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}

    def test_byte_identical_rebuild(self, sample_config):
        public = sample_config.publish_path
        SiteBuilder(sample_config, now=FIXED_NOW).build()
        first = self.snapshot(public)
        SiteBuilder(sample_config, now=FIXED_NOW).build()
        assert self.snapshot(public) == first

    def test_clean_removes_stale_files(self, sample_config):
        public = sample_config.publish_path
        (public / "old").mkdir(parents=True)
        (public / "old" / "stale.html").write_text("x", encoding="utf-8")
        build_site(sample_config)
        assert not (public / "old").exists()

    def test_no_clean_keeps_files(self, sample_config):
        public = sample_config.publish_path
        public.mkdir(parents=True)
        (public / "keep.txt").write_text("x", encoding="utf-8")
        SiteBuilder(sample_config, now=FIXED_NOW).build(clean=False)
        assert (public / "keep.txt").is_file()

    def test_refuses_to_clean_site_dir(self, sample_site):
        config = load_site_config(sample_site, overrides={"publishDir": "."})
        with pytest.raises(BuildError, match="refusing to clean"):
            SiteBuilder(config, now=FIXED_NOW).build()


# === Test: Configuration variants ===


class TestBuildOptions:
    def test_build_drafts(self, sample_site):
        config = load_site_config(sample_site, overrides={"buildDrafts": True})
        SiteBuilder(config, now=FIXED_NOW).build()
        assert (config.publish_path / "posts" / "WorkInProgress" / "index.html").is_file()

    def test_lowercase_urls_by_default(self, make_site):
        site = make_site({"content/posts/MixedCase.md": post("Mixed")})
        config = load_site_config(site)
        SiteBuilder(config, now=FIXED_NOW).build()
        assert (config.publish_path / "posts" / "mixedcase" / "index.html").is_file()

    def test_permalink_pattern_and_url_override(self, make_site):
        site = make_site(
            {
                "content/posts/a.md": post("Alpha", date="2024-03-09"),
                "content/posts/b.md": post("Beta", url="/custom/beta/"),
            },
            config='title = "t"\n[permalinks]\n  posts = "/:year/:month/:slug/"\n',
        )
        config = load_site_config(site)
        SiteBuilder(config, now=FIXED_NOW).build()
        assert (config.publish_path / "2024" / "03" / "a" / "index.html").is_file()
        assert (config.publish_path / "custom" / "beta" / "index.html").is_file()

    def test_aliases_redirect(self, make_site):
        site = make_site({"content/posts/new.md": post("New", aliases='["/old-url/"]')})
        config = load_site_config(site)
        report = SiteBuilder(config, now=FIXED_NOW).build()
        html = read(config.publish_path / "old-url" / "index.html")
        assert 'content="0; url=/posts/new/"' in html
        assert report.aliases == 1

    def test_disable_taxonomies(self, sample_site):
        config = load_site_config(sample_site, overrides={"disableKinds": ["taxonomy", "term"]})
        SiteBuilder(config, now=FIXED_NOW).build()
        assert not (config.publish_path / "tags").exists()

    def test_site_static_overrides_builtin(self, sample_site):
        (sample_site / "static" / "css").mkdir(parents=True)
        (sample_site / "static" / "css" / "style.css").write_text("/* mine */", encoding="utf-8")
        config = load_site_config(sample_site)
        SiteBuilder(config, now=FIXED_NOW).build()
        assert read(config.publish_path / "css" / "style.css") == "/* mine */"

    def test_site_layout_overrides_builtin(self, sample_site):
        (sample_site / "layouts" / "_default").mkdir(parents=True)
        (sample_site / "layouts" / "_default" / "single.html").write_text(
            "custom {{ page.title }}", encoding="utf-8"
        )
        config = load_site_config(sample_site)
        SiteBuilder(config, now=FIXED_NOW).build()
        assert read(config.publish_path / "about" / "index.html") == "custom About"


# === Test: Failures ===


class TestBuildFailures:
    def test_missing_theme(self, sample_site):
        config = load_site_config(sample_site, overrides={"theme": "hugo-paper"})
        with pytest.raises(ThemeNotFoundError, match="submodule"):
            SiteBuilder(config, now=FIXED_NOW).build()

    def test_invalid_front_matter_fails_strict_build(self, sample_site):
        (sample_site / "content" / "posts" / "Broken.md").write_text("---\ntitle: [x\n---\n", encoding="utf-8")
        config = load_site_config(sample_site)
        with pytest.raises(BuildError, match="Broken.md"):
            SiteBuilder(config, now=FIXED_NOW).build()
        assert not config.publish_path.exists()

    def test_skip_invalid(self, sample_site):
        (sample_site / "content" / "posts" / "Broken.md").write_text("---\ntitle: [x\n---\n", encoding="utf-8")
        config = load_site_config(sample_site)
        report = SiteBuilder(config, strict=False, now=FIXED_NOW).build()
        assert report.pages == 4
        assert [p.name for p, _ in report.skipped] == ["Broken.md"]

    def test_output_collision(self, make_site):
        site = make_site(
            {
                "content/posts/a.md": post("A", url="/same/"),
                "content/posts/b.md": post("B", url="/same/"),
            }
        )
        with pytest.raises(BuildError, match="same output path"):
            SiteBuilder(load_site_config(site), now=FIXED_NOW).build()

    def test_unknown_shortcode(self, make_site):
        site = make_site({"content/posts/a.md": post("A", body="{{< nope >}}")})
        with pytest.raises(BuildError, match="unknown shortcode 'nope'"):
            SiteBuilder(load_site_config(site), now=FIXED_NOW).build()

    def test_broken_ref(self, make_site):
        site = make_site({"content/posts/a.md": post("A", body='{{< ref "missing.md" >}}')})
        with pytest.raises(BuildError, match="missing.md"):
            SiteBuilder(load_site_config(site), now=FIXED_NOW).build()

    def test_layout_syntax_error(self, sample_site):
        (sample_site / "layouts" / "_default").mkdir(parents=True)
        (sample_site / "layouts" / "_default" / "single.html").write_text("{% if %}", encoding="utf-8")
        with pytest.raises(BuildError, match="syntax error"):
            SiteBuilder(load_site_config(sample_site), now=FIXED_NOW).build()


# === Test: Staged output ===


class TestStagedOutput:
    def test_failed_build_keeps_previous_output(self, sample_site, sample_config):
        public = sample_config.publish_path
        SiteBuilder(sample_config, now=FIXED_NOW).build()
        before = read(public / "posts" / "CodeGenTemplate" / "index.html")

        (sample_site / "layouts" / "_default").mkdir(parents=True)
        (sample_site / "layouts" / "_default" / "single.html").write_text(
            "{{ page.title.nope() }}", encoding="utf-8"
        )
        with pytest.raises(BuildError):
            SiteBuilder(sample_config, now=FIXED_NOW).build()

        assert read(public / "posts" / "CodeGenTemplate" / "index.html") == before
        assert (public / "index.html").is_file()

    def test_staging_dir_removed(self, sample_site, sample_config):
        SiteBuilder(sample_config, now=FIXED_NOW).build()
        (sample_site / "layouts" / "_default").mkdir(parents=True)
        (sample_site / "layouts" / "_default" / "single.html").write_text("{% if %}", encoding="utf-8")
        with pytest.raises(BuildError):
            SiteBuilder(sample_config, now=FIXED_NOW).build()
        assert not list(sample_site.glob(".inkpress-staging-*"))

    def test_report_paths_point_at_publish_dir(self, sample_config):
        report = SiteBuilder(sample_config, now=FIXED_NOW).build()
        public = sample_config.publish_path
        assert all(path.is_relative_to(public) and path.is_file() for path in report.files)
