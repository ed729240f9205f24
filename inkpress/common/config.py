"""Site configuration and paths.

Loads settings from hugo.toml (or one of its alternatives) in the site
root, then applies environment variables and command-line overrides.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError

# === Paths ===
PACKAGE_ROOT = Path(__file__).parent.parent
DEFAULT_THEME_DIR = PACKAGE_ROOT / "render" / "default_theme"

CONFIG_FILENAMES = ("hugo.toml", "config.toml", "site.toml", "site.yaml", "site.yml")

ENV_BASE_URL = "INKPRESS_BASEURL"
ENV_ENVIRONMENT = "INKPRESS_ENVIRONMENT"

ALL_KINDS = frozenset({"home", "section", "page", "taxonomy", "term", "RSS", "sitemap", "404"})


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GoldmarkRenderer(_ConfigModel):
    """Markdown renderer flags (markup.goldmark.renderer)."""
    unsafe: bool = False
    hard_wraps: bool = Field(default=False, alias="hardWraps")


class Goldmark(_ConfigModel):
    renderer: GoldmarkRenderer = Field(default_factory=GoldmarkRenderer)


class TableOfContents(_ConfigModel):
    start_level: int = Field(default=2, alias="startLevel", ge=1, le=6)
    end_level: int = Field(default=3, alias="endLevel", ge=1, le=6)


class MarkupSettings(_ConfigModel):
    """The [markup] table."""
    goldmark: Goldmark = Field(default_factory=Goldmark)
    table_of_contents: TableOfContents = Field(
        default_factory=TableOfContents, alias="tableOfContents"
    )


class SiteConfig(_ConfigModel):
    """Top-level site settings, keyed the way Hugo names them."""

    base_url: str = Field(default="/", alias="baseURL")
    title: str = ""
    language_code: str = Field(default="en-us", alias="languageCode")
    copyright: str = ""
    theme: str | None = None

    themes_dir: str = Field(default="themes", alias="themesDir")
    content_dir: str = Field(default="content", alias="contentDir")
    layout_dir: str = Field(default="layouts", alias="layoutDir")
    static_dir: str = Field(default="static", alias="staticDir")
    archetype_dir: str = Field(default="archetypes", alias="archetypeDir")
    publish_dir: str = Field(default="public", alias="publishDir")

    disable_path_to_lower: bool = Field(default=False, alias="disablePathToLower")
    summary_length: int = Field(default=70, alias="summaryLength", ge=0)
    paginate: int = Field(default=10, validation_alias=AliasChoices("paginate", "pagerSize"))
    build_drafts: bool = Field(default=False, alias="buildDrafts")
    build_future: bool = Field(default=False, alias="buildFuture")
    build_expired: bool = Field(default=False, alias="buildExpired")
    rss_limit: int = Field(default=-1, alias="rssLimit")
    disable_kinds: list[str] = Field(default_factory=list, alias="disableKinds")
    environment: str = "production"

    markup: MarkupSettings = Field(default_factory=MarkupSettings)
    taxonomies: dict[str, str] = Field(
        default_factory=lambda: {"tag": "tags", "category": "categories"}
    )
    permalinks: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    menus: dict[str, list[dict[str, Any]]] = Field(default_factory=dict, alias="menu")

    # Set by the loader, not read from the file
    site_dir: Path = Field(default=Path("."), exclude=True)
    config_file: Path | None = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_keys(cls, data: Any) -> Any:
        """Map Hugo's newer nested spellings onto the flat fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        pagination = data.pop("pagination", None)
        if isinstance(pagination, dict) and "pagerSize" in pagination:
            data.setdefault("paginate", pagination["pagerSize"])
        services = data.pop("services", None)
        if isinstance(services, dict):
            rss = services.get("rss") or {}
            if "limit" in rss:
                data.setdefault("rssLimit", rss["limit"])
        return data

    @property
    def unsafe_html(self) -> bool:
        return self.markup.goldmark.renderer.unsafe

    @property
    def content_path(self) -> Path:
        return self.site_dir / self.content_dir

    @property
    def layout_path(self) -> Path:
        return self.site_dir / self.layout_dir

    @property
    def static_path(self) -> Path:
        return self.site_dir / self.static_dir

    @property
    def archetype_path(self) -> Path:
        return self.site_dir / self.archetype_dir

    @property
    def publish_path(self) -> Path:
        path = Path(self.publish_dir)
        return path if path.is_absolute() else self.site_dir / path

    @property
    def theme_path(self) -> Path | None:
        if not self.theme:
            return None
        return self.site_dir / self.themes_dir / self.theme

    def kind_enabled(self, kind: str) -> bool:
        return kind not in self.disable_kinds

    def relative_url(self, path: str) -> str:
        """Prefix a site path with the path component of the base URL."""
        base_path = urlsplit(self.base_url).path or "/"
        if path.startswith(("http://", "https://", "//")):
            return path
        return base_path.rstrip("/") + "/" + path.lstrip("/")

    def absolute_url(self, path: str) -> str:
        """Join the base URL and a site path."""
        if path.startswith(("http://", "https://", "//")):
            return path
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")


def find_config_file(site_dir: Path) -> Path:
    """Return the first configuration file present in the site root."""
    for name in CONFIG_FILENAMES:
        candidate = site_dir / name
        if candidate.is_file():
            return candidate
    raise ConfigError(
        f"no site configuration found in {site_dir} "
        f"(looked for {', '.join(CONFIG_FILENAMES)})"
    )


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"{path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a table of settings")
    return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    base_url = os.getenv(ENV_BASE_URL, "")
    if base_url:
        overrides["baseURL"] = base_url
    environment = os.getenv(ENV_ENVIRONMENT, "")
    if environment:
        overrides["environment"] = environment
    return overrides


def load_site_config(
    site_dir: Path | str,
    overrides: dict[str, Any] | None = None,
) -> SiteConfig:
    """Load the site configuration from ``site_dir``.

    Precedence, lowest first: config file, environment (including a ``.env``
    file in the site root), then ``overrides`` from the command line.

    Raises:
        ConfigError: No config file, a syntax error, or invalid values.
    """
    site_dir = Path(site_dir).resolve()
    config_file = find_config_file(site_dir)

    load_dotenv(site_dir / ".env")

    data = _read_config_file(config_file)
    data.update(_env_overrides())
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        config = SiteConfig.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ConfigError(f"{config_file}: invalid settings ({fields})") from exc

    config.site_dir = site_dir
    config.config_file = config_file
    return config
