"""
Unit tests for content validation (``inkpress check``).
"""

from conftest import post
from inkpress.common.config import load_site_config
from inkpress.site.check import check_site


class TestCheckSite:
    def test_sample_site_is_valid(self, sample_config):
        report = check_site(sample_config)
        assert report.ok
        # four posts including the draft, two _index.md files and the about bundle
        assert report.files_checked == 7

    def test_top_level_pages_need_no_tags(self, sample_config):
        report = check_site(sample_config)
        assert not any("about" in w for w in report.warnings)

    def test_errors_are_collected(self, make_site):
        site = make_site(
            {
                "content/posts/good.md": post("Good", tags='["a"]', authors='["me"]'),
                "content/posts/bad.md": "---\ntitle: [oops\n---\n",
                "content/posts/no-date.md": '---\ntitle: "No date"\n---\n',
                "content/posts/_index.md": "---\ntitle: [broken\n---\n",
            }
        )
        report = check_site(load_site_config(site))
        assert not report.ok
        assert sorted(e.path.name for e in report.errors) == ["_index.md", "bad.md", "no-date.md"]

    def test_missing_tags_and_authors_warn(self, make_site):
        site = make_site({"content/posts/bare.md": post("Bare")})
        report = check_site(load_site_config(site))
        assert report.ok
        assert report.warnings == ["posts/bare.md: no tags", "posts/bare.md: no authors"]

    def test_drafts_are_checked(self, make_site):
        site = make_site({"content/posts/draft.md": "---\ntitle: x\ndraft: true\n---\n"})
        report = check_site(load_site_config(site))
        assert [e.path.name for e in report.errors] == ["draft.md"]

    def test_non_utf8_file_is_an_error(self, make_site):
        site = make_site({"content/posts/good.md": post("Good", tags='["a"]', authors='["me"]')})
        (site / "content" / "posts" / "latin1.md").write_bytes(post("Café").encode("latin-1"))
        report = check_site(load_site_config(site))
        assert not report.ok
        assert [e.path.name for e in report.errors] == ["latin1.md"]
        assert "not valid UTF-8" in report.errors[0].reason
