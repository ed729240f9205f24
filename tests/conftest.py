"""Shared test fixtures for inkpress."""

import os
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure inkpress is importable without installing
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from inkpress.common.config import ENV_BASE_URL, ENV_ENVIRONMENT, SiteConfig, load_site_config

SAMPLE_SITE = PROJECT_ROOT / "fixtures" / "sample_site"

# Later than every post in the sample site
FIXED_NOW = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_env():
    """Keep INKPRESS_* variables (and values loaded from .env files) out of other tests."""
    for name in (ENV_BASE_URL, ENV_ENVIRONMENT):
        os.environ.pop(name, None)
    yield
    for name in (ENV_BASE_URL, ENV_ENVIRONMENT):
        os.environ.pop(name, None)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sample_site(tmp_path) -> Path:
    """A writable copy of fixtures/sample_site."""
    site_dir = tmp_path / "site"
    shutil.copytree(SAMPLE_SITE, site_dir)
    return site_dir


@pytest.fixture
def sample_config(sample_site) -> SiteConfig:
    return load_site_config(sample_site)


@pytest.fixture
def make_site(tmp_path):
    """Factory for small throwaway sites.

    Usage:
        site_dir = make_site({"content/posts/a.md": "..."}, config='title = "x"')
    """

    def _make(files: dict[str, str], config: str = 'title = "Test Site"\nbaseURL = "https://example.org/"\n') -> Path:
        site_dir = tmp_path / "mini"
        site_dir.mkdir(exist_ok=True)
        (site_dir / "hugo.toml").write_text(config, encoding="utf-8")
        for relative, text in files.items():
            path = site_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return site_dir

    return _make


def post(title: str, date: str = "2024-01-15", body: str = "Body text.", **extra) -> str:
    """YAML front matter post source."""
    lines = ["---", f'title: "{title}"', f"date: {date}"]
    for key, value in extra.items():
        lines.append(f"{key}: {value}")
    lines += ["---", "", body, ""]
    return "\n".join(lines)
