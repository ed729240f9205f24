"""
Template Renderer for site pages.
Handles theme resolution, Jinja2 template loading and layout lookup.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any, Callable, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplatesNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from inkpress.common.config import DEFAULT_THEME_DIR, SiteConfig
from inkpress.common.errors import BuildError, TemplateLookupError, ThemeNotFoundError
from inkpress.common.logging import setup_logging
from inkpress.site.urls import urlize

from .markdown import truncate_words

logger = setup_logging(module_name="render.templates")


def resolve_theme(config: SiteConfig) -> Optional[Path]:
    """Return the theme directory, or None when no theme is configured.

    Raises:
        ThemeNotFoundError: The theme directory is missing or empty, which is
            what an uninitialised git submodule looks like.
    """
    theme_path = config.theme_path
    if theme_path is None:
        return None
    if not theme_path.is_dir() or not any(theme_path.iterdir()):
        raise ThemeNotFoundError(config.theme or "", theme_path)
    return theme_path


def layout_search_path(config: SiteConfig) -> list[Path]:
    """Site layouts, then theme layouts, then the built-in default theme."""
    paths = []
    if config.layout_path.is_dir():
        paths.append(config.layout_path)
    theme = resolve_theme(config)
    if theme is not None and (theme / "layouts").is_dir():
        paths.append(theme / "layouts")
    paths.append(DEFAULT_THEME_DIR / "layouts")
    return paths


def static_search_path(config: SiteConfig) -> list[Path]:
    """Static directories in copy order; later entries overwrite earlier ones."""
    paths = [DEFAULT_THEME_DIR / "static"]
    theme = resolve_theme(config)
    if theme is not None:
        paths.append(theme / "static")
    paths.append(config.static_path)
    return [p for p in paths if p.is_dir()]


def layout_candidates(
    kind: str,
    section: str = "",
    layout: Optional[str] = None,
    singular: str = "",
    plural: str = "",
) -> list[str]:
    """Template names to try for a page kind, most specific first."""
    if kind == "page":
        names = []
        if layout:
            names += [f"{section}/{layout}.html", f"_default/{layout}.html"] if section else [f"_default/{layout}.html"]
        if section:
            names.append(f"{section}/single.html")
        names.append("_default/single.html")
        return names
    if kind == "home":
        return ["index.html", "_default/list.html"]
    if kind == "section":
        return [f"{section}/list.html", f"section/{section}.html", "_default/list.html"]
    if kind == "taxonomy":
        return [f"taxonomy/{plural}.html", "_default/terms.html", "_default/taxonomy.html"]
    if kind == "term":
        return [f"taxonomy/{singular}.html", "_default/term.html", "_default/list.html"]
    if kind == "404":
        return ["404.html"]
    if kind == "RSS":
        return [f"{section}/rss.xml", "_default/rss.xml"] if section else ["_default/rss.xml"]
    if kind == "sitemap":
        return ["_default/sitemap.xml"]
    if kind == "alias":
        return ["alias.html"]
    raise TemplateLookupError(f"unknown page kind {kind!r}")


def _date_format(value: Any, fmt: str = "%Y-%m-%d") -> str:
    if value is None or value == "":
        return ""
    return value.strftime(fmt)


def _rfc822(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


def _iso8601(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class TemplateRenderer:
    """
    Renders site pages using Jinja2 templates.

    Usage:
        renderer = TemplateRenderer(config)
        html = renderer.render("page", {"page": page}, section="posts")
    """

    def __init__(
        self,
        config: SiteConfig,
        markdownify: Optional[Callable[[str], str]] = None,
    ):
        """
        Initialize the template renderer.

        Args:
            config: Site configuration (theme, layout dir, base URL)
            markdownify: Markdown renderer exposed as a template filter
        """
        self.config = config
        self.search_path = layout_search_path(config)
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in self.search_path]),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        preserve_case = config.disable_path_to_lower
        self.env.filters.update(
            {
                "date_format": _date_format,
                "rfc822": _rfc822,
                "iso8601": _iso8601,
                "urlize_path": lambda s: urlize(str(s), preserve_case),
                "absurl": config.absolute_url,
                "relurl": config.relative_url,
                "truncate_words": lambda s, n=70: truncate_words(str(s), n)[0],
                "markdownify": self._markdownify_filter(markdownify),
            }
        )
        self.env.globals["now"] = lambda: datetime.now(timezone.utc)
        self.env.globals["config"] = config

    @staticmethod
    def _markdownify_filter(markdownify: Optional[Callable[[str], str]]) -> Callable[[Any], Any]:
        if markdownify is None:
            return lambda s: s
        return lambda s: Markup(markdownify(str(s or "")))

    def select(self, kind: str, **lookup: Any) -> str:
        """Name of the first existing template for a page kind."""
        names = layout_candidates(kind, **lookup)
        try:
            return self.env.select_template(names).name
        except TemplatesNotFound as exc:
            raise TemplateLookupError(
                f"no layout for {kind!r}; tried {', '.join(names)} in "
                f"{', '.join(str(p) for p in self.search_path)}"
            ) from exc
        except TemplateSyntaxError as exc:
            raise BuildError(f"template {exc.name or exc.filename} has a syntax error: {exc}", [exc]) from exc

    def has_template(self, kind: str, **lookup: Any) -> bool:
        try:
            self.select(kind, **lookup)
        except TemplateLookupError:
            return False
        return True

    def render(self, kind: str, context: dict[str, Any], **lookup: Any) -> str:
        """
        Render a page of the given kind.

        Args:
            kind: page, home, section, taxonomy, term, 404, RSS, sitemap, alias
            context: Template variables
            **lookup: section / layout / singular / plural for layout lookup

        Returns:
            Rendered HTML or XML string
        """
        name = self.select(kind, **lookup)
        try:
            return self.env.get_template(name).render(**context)
        except TemplateError as exc:
            where = context.get("page")
            source = getattr(where, "relative_path", None) or getattr(where, "permalink", "")
            raise BuildError(f"template {name} failed for {source or kind}: {exc}", [exc]) from exc

    def render_from_string(self, source: str, context: dict[str, Any]) -> str:
        """Render an ad-hoc template string with the site filters."""
        return self.env.from_string(source).render(**context)
