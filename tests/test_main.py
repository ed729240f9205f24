"""
Tests for the command-line interface and the preview server helpers.
"""

import os
from unittest.mock import patch

import pytest

from conftest import post
from inkpress.main import build_parser, main
from inkpress.server import PreviewServer, snapshot_mtimes


# === Test: CLI ===


class TestCli:
    def test_build(self, sample_site, capsys):
        assert main(["-s", str(sample_site), "build"]) == 0
        assert (sample_site / "public" / "posts" / "CodeGenTemplate" / "index.html").is_file()
        assert "Built 4 pages" in capsys.readouterr().out

    def test_build_options(self, sample_site, tmp_path):
        out = tmp_path / "out"
        code = main(
            ["-s", str(sample_site), "build", "-d", str(out), "-D", "--baseURL", "https://cli.example/"]
        )
        assert code == 0
        assert (out / "posts" / "WorkInProgress" / "index.html").is_file()
        assert "https://cli.example/posts/" in (out / "index.xml").read_text(encoding="utf-8")

    def test_build_failure_exits_1(self, sample_site):
        (sample_site / "content" / "posts" / "Bad.md").write_text("---\ntitle: [x\n---\n", encoding="utf-8")
        assert main(["-s", str(sample_site), "build"]) == 1

    def test_skip_invalid(self, sample_site):
        (sample_site / "content" / "posts" / "Bad.md").write_text("---\ntitle: [x\n---\n", encoding="utf-8")
        assert main(["-s", str(sample_site), "build", "--skip-invalid"]) == 0

    def test_missing_config_exits_1(self, tmp_path):
        assert main(["-s", str(tmp_path), "build"]) == 1

    def test_check(self, sample_site, make_site):
        assert main(["-s", str(sample_site), "check"]) == 0
        broken = make_site({"content/posts/a.md": "---\ndate: 2024-01-01\n---\n"})
        assert main(["-s", str(broken), "check"]) == 1

    def test_new(self, sample_site):
        assert main(["-s", str(sample_site), "new", "posts/hello.md"]) == 0
        assert (sample_site / "content" / "posts" / "hello.md").is_file()
        assert main(["-s", str(sample_site), "new", "posts/hello.md"]) == 1

    def test_new_rejects_path_outside_content(self, sample_site):
        assert main(["-s", str(sample_site), "new", "../../escaped.md"]) == 1
        assert not (sample_site.parent / "escaped.md").exists()

    def test_new_archetype_error_exits_1(self, sample_site):
        (sample_site / "archetypes" / "posts.md").write_text("---\ntitle: {{ nope }}\n---\n", encoding="utf-8")
        assert main(["-s", str(sample_site), "new", "posts/x.md"]) == 1

    def test_layout_syntax_error_exits_1(self, sample_site):
        (sample_site / "layouts" / "_default").mkdir(parents=True)
        (sample_site / "layouts" / "_default" / "single.html").write_text("{% if %}", encoding="utf-8")
        assert main(["-s", str(sample_site), "build"]) == 1

    def test_serve_wires_options(self, sample_site):
        with patch("inkpress.main.PreviewServer") as server_cls:
            code = main(["-s", str(sample_site), "serve", "--port", "8080", "--no-watch"])
        assert code == 0
        _, kwargs = server_cls.call_args
        assert kwargs["port"] == 8080
        assert kwargs["watch"] is False
        assert kwargs["build_drafts"] is True
        server_cls.return_value.serve_forever.assert_called_once()

    def test_usage_error_exits_2(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["publish"])
        assert exc_info.value.code == 2

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# === Test: Preview server ===


class TestPreviewServer:
    def test_preview_config(self, sample_site, tmp_path):
        server = PreviewServer(sample_site, port=4000, destination=tmp_path / "preview")
        config = server.load_config()
        assert config.base_url == "http://127.0.0.1:4000/"
        assert config.build_drafts is True
        assert config.publish_path == (tmp_path / "preview").resolve()

    def test_rebuild_writes_drafts(self, sample_site, tmp_path):
        dest = tmp_path / "preview"
        server = PreviewServer(sample_site, destination=dest)
        assert server.rebuild() is True
        assert (dest / "posts" / "WorkInProgress" / "index.html").is_file()

    def test_failed_rebuild_keeps_last_output(self, sample_site, tmp_path):
        dest = tmp_path / "preview"
        server = PreviewServer(sample_site, destination=dest)
        server.rebuild()
        (sample_site / "hugo.toml").write_text("title = \n", encoding="utf-8")
        assert server.rebuild() is False
        assert (dest / "index.html").is_file()

    def test_failed_template_rebuild_keeps_pages(self, sample_site, tmp_path):
        dest = tmp_path / "preview"
        server = PreviewServer(sample_site, destination=dest)
        assert server.rebuild() is True
        (sample_site / "layouts" / "_default").mkdir(parents=True)
        (sample_site / "layouts" / "_default" / "single.html").write_text("{{ page.title.nope() }}", encoding="utf-8")
        assert server.rebuild() is False
        assert (dest / "posts" / "CodeGenTemplate" / "index.html").is_file()
        assert (dest / "index.html").is_file()

    def test_change_detection(self, sample_site, tmp_path):
        server = PreviewServer(sample_site, destination=tmp_path / "preview")
        server.rebuild()
        assert not server.changed()
        new_post = sample_site / "content" / "posts" / "New.md"
        new_post.write_text(post("New"), encoding="utf-8")
        assert server.changed()

    def test_snapshot_mtimes(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "f.txt").write_text("x", encoding="utf-8")
        (tmp_path / "g.txt").write_text("y", encoding="utf-8")
        os.utime(tmp_path / "g.txt", (1_000_000, 1_000_000))
        mtimes = snapshot_mtimes([tmp_path / "a", tmp_path / "g.txt", tmp_path / "missing"])
        assert set(mtimes) == {tmp_path / "a" / "f.txt", tmp_path / "g.txt"}
        assert mtimes[tmp_path / "g.txt"] == 1_000_000

    def test_temporary_destination_removed(self, sample_site):
        server = PreviewServer(sample_site)
        assert server.destination.is_dir()
        server.shutdown()
        assert not server.destination.exists()
