"""RSS feeds and the sitemap."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from inkpress.common.config import SiteConfig
from inkpress.content.models import Page
from inkpress.render.templates import TemplateRenderer

from .urls import join_url

RSS_FILENAME = "index.xml"
SITEMAP_FILENAME = "sitemap.xml"


@dataclass
class SitemapEntry:
    """One <url> element."""
    loc: str
    lastmod: Optional[datetime] = None


def feed_url(list_url: str) -> str:
    """``/posts/`` -> ``/posts/index.xml``."""
    return join_url(list_url) + RSS_FILENAME


def limit_items(pages: Sequence[Page], limit: int) -> list[Page]:
    """Newest pages first, cut to ``limit`` when it is positive."""
    items = list(pages)
    if limit > 0:
        items = items[:limit]
    return items


def render_rss(
    renderer: TemplateRenderer,
    config: SiteConfig,
    *,
    title: str,
    list_url: str,
    pages: Sequence[Page],
    site: Any,
    description: str = "",
    section: str = "",
) -> str:
    """Render an RSS 2.0 document for a list page.

    Args:
        renderer: Template renderer (looks up ``_default/rss.xml``)
        config: Site configuration (base URL, language, RSS limit)
        title: Channel title
        list_url: Site path of the list the feed mirrors
        pages: Pages of the list, newest first
        site: Site context passed to the template
        description: Channel description
        section: Section name for section-specific RSS layouts

    Returns:
        RSS XML string
    """
    items = limit_items(pages, config.rss_limit)
    last_build = max((p.lastmod for p in items), default=None)
    context = {
        "site": site,
        "title": title,
        "description": description or title,
        "link": config.absolute_url(list_url),
        "feed_link": config.absolute_url(feed_url(list_url)),
        "language_code": config.language_code,
        "last_build_date": last_build,
        "items": items,
    }
    return renderer.render("RSS", context, section=section)


def sitemap_entries(
    config: SiteConfig,
    pages: Iterable[Page],
    list_urls: Iterable[tuple[str, Optional[datetime]]],
) -> list[SitemapEntry]:
    """Absolute URLs of every HTML page, sorted by URL for stable output."""
    entries = [SitemapEntry(config.absolute_url(url), lastmod) for url, lastmod in list_urls]
    entries += [SitemapEntry(config.absolute_url(p.permalink), p.lastmod) for p in pages]
    return sorted(entries, key=lambda e: e.loc)


def render_sitemap(renderer: TemplateRenderer, entries: Sequence[SitemapEntry], site: Any) -> str:
    return renderer.render("sitemap", {"site": site, "entries": entries})
