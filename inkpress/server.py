"""Local preview server (``inkpress serve``).

Builds the site with drafts, serves the output over HTTP and rebuilds when
sources change. Not meant for production hosting.

Usage:
    server = PreviewServer(site_dir, port=1313)
    server.serve_forever()
"""

from __future__ import annotations

import shutil
import tempfile
import threading
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional

from inkpress.common.config import SiteConfig, load_site_config
from inkpress.common.errors import InkpressError
from inkpress.common.logging import setup_logging
from inkpress.site.builder import SiteBuilder

logger = setup_logging(module_name="server")

DEFAULT_BIND = "127.0.0.1"
DEFAULT_PORT = 1313
POLL_INTERVAL = 1.0


class _QuietHandler(SimpleHTTPRequestHandler):
    """Static file handler that logs requests through the inkpress logger."""

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def snapshot_mtimes(paths: list[Path]) -> dict[Path, float]:
    """Modification times of every file under ``paths``."""
    mtimes: dict[Path, float] = {}
    for root in paths:
        if root.is_file():
            mtimes[root] = root.stat().st_mtime
        elif root.is_dir():
            for path in root.rglob("*"):
                if path.is_file():
                    mtimes[path] = path.stat().st_mtime
    return mtimes


class PreviewServer:
    """Build, serve and watch a site.

    Args:
        site_dir: Site root (directory holding hugo.toml)
        bind: Interface to listen on
        port: TCP port
        watch: Poll sources and rebuild on change
        destination: Output directory; a temporary one when None
        build_drafts: Include drafts (on by default, like ``hugo server``)
    """

    def __init__(
        self,
        site_dir: Path | str,
        bind: str = DEFAULT_BIND,
        port: int = DEFAULT_PORT,
        watch: bool = True,
        destination: Optional[Path] = None,
        build_drafts: bool = True,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.site_dir = Path(site_dir)
        self.bind = bind
        self.port = port
        self.watch = watch
        self.build_drafts = build_drafts
        self.poll_interval = poll_interval

        self._temp_dir = None if destination else Path(tempfile.mkdtemp(prefix="inkpress-"))
        self.destination = Path(destination) if destination else self._temp_dir
        self._stop = threading.Event()
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._mtimes: dict[Path, float] = {}

    @property
    def url(self) -> str:
        return f"http://{self.bind}:{self.port}/"

    def load_config(self) -> SiteConfig:
        """Site config with the preview base URL and destination."""
        return load_site_config(
            self.site_dir,
            overrides={
                "baseURL": self.url,
                "publishDir": str(self.destination.resolve()),
                "buildDrafts": self.build_drafts or None,
            },
        )

    def watched_paths(self, config: SiteConfig) -> list[Path]:
        paths = [config.content_path, config.layout_path, config.static_path, config.archetype_path]
        if config.theme_path is not None:
            paths.append(config.theme_path)
        if config.config_file is not None:
            paths.append(config.config_file)
        paths.append(config.site_dir / ".env")
        return paths

    def rebuild(self) -> bool:
        """Rebuild the site; returns False and keeps the old output on failure."""
        try:
            config = self.load_config()
            self._mtimes = snapshot_mtimes(self.watched_paths(config))
            SiteBuilder(config, strict=False).build(clean=True)
        except InkpressError as exc:
            logger.error("Rebuild failed, serving last good build: %s", exc)
            return False
        return True

    def changed(self) -> bool:
        try:
            config = self.load_config()
        except InkpressError:
            return True
        return snapshot_mtimes(self.watched_paths(config)) != self._mtimes

    def _watch_loop(self) -> None:
        while not self._stop.wait(self.poll_interval):
            if self.changed():
                logger.info("Change detected, rebuilding...")
                if self.rebuild():
                    logger.info("Rebuilt %s", self.destination)

    def serve_forever(self) -> None:
        """Initial build, then serve until interrupted.

        Raises:
            InkpressError: The initial build failed.
        """
        config = self.load_config()
        self._mtimes = snapshot_mtimes(self.watched_paths(config))
        SiteBuilder(config, strict=False).build(clean=True)

        handler = partial(_QuietHandler, directory=str(self.destination))
        self._httpd = ThreadingHTTPServer((self.bind, self.port), handler)

        if self.watch:
            watcher = threading.Thread(target=self._watch_loop, name="inkpress-watch", daemon=True)
            watcher.start()

        logger.info("Serving %s at %s (Ctrl+C to stop)", self.destination, self.url)
        try:
            self._httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Stopping server")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self._stop.set()
        if self._httpd is not None:
            self._httpd.server_close()
            self._httpd = None
        if self._temp_dir is not None and self._temp_dir.exists():
            shutil.rmtree(self._temp_dir)
