"""Markdown to HTML rendering.

Handles:
- Raw HTML policy (markup.goldmark.renderer.unsafe)
- Shortcode expansion around the Markdown pass
- Table of contents
- Summaries (<!--more--> divider, front matter, or first N words)
- Word count and reading time
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from html import escape
from typing import Any, Optional

import markdown as md
from bs4 import BeautifulSoup
from markdown.extensions import Extension
from markdown.extensions.toc import TocExtension, slugify
from markdown.inlinepatterns import HTML_RE, HtmlInlineProcessor
from markdown.preprocessors import Preprocessor

from inkpress.common.config import SiteConfig
from inkpress.common.logging import setup_logging

from .shortcodes import PLACEHOLDER_RE, ShortcodeProcessor

logger = setup_logging(module_name="render.markdown")

RAW_HTML_OMITTED = "<!-- raw HTML omitted -->"
MORE_DIVIDER_RE = re.compile(r"^[ \t]*<!--more-->[ \t]*$", re.MULTILINE)
WORDS_PER_MINUTE = 213

MARKDOWN_EXTENSIONS = [
    "tables",
    "fenced_code",
    "footnotes",
    "attr_list",
    "def_list",
    "abbr",
    "sane_lists",
    "smarty",
]


class _StashMark(Preprocessor):
    """Remember how much of the HTML stash predates the raw HTML pass."""

    def __init__(self, md_instance, extension: "OmitRawHtmlExtension"):
        super().__init__(md_instance)
        self.extension = extension

    def run(self, lines: list[str]) -> list[str]:
        self.extension.mark = len(self.md.htmlStash.rawHtmlBlocks)
        return lines


class _OmitStashedBlocks(Preprocessor):
    """Replace raw HTML blocks stashed by the html_block preprocessor."""

    def __init__(self, md_instance, extension: "OmitRawHtmlExtension"):
        super().__init__(md_instance)
        self.extension = extension

    def run(self, lines: list[str]) -> list[str]:
        blocks = self.md.htmlStash.rawHtmlBlocks
        for i in range(self.extension.mark, len(blocks)):
            blocks[i] = RAW_HTML_OMITTED
        return lines


class _OmitInlineHtml(HtmlInlineProcessor):
    def handleMatch(self, m, data):
        return self.md.htmlStash.store(RAW_HTML_OMITTED), m.start(0), m.end(0)


class OmitRawHtmlExtension(Extension):
    """Replace raw HTML in Markdown source with ``<!-- raw HTML omitted -->``.

    Fenced code is stashed before the html_block preprocessor (priority 20)
    runs, so only blocks added between the two markers are replaced.
    """

    def __init__(self, **kwargs):
        self.mark = 0
        super().__init__(**kwargs)

    def extendMarkdown(self, md_instance):
        md_instance.preprocessors.register(_StashMark(md_instance, self), "omit_raw_html_mark", 21)
        md_instance.preprocessors.register(_OmitStashedBlocks(md_instance, self), "omit_raw_html", 19)
        md_instance.inlinePatterns.register(_OmitInlineHtml(HTML_RE, md_instance), "html", 90)


@dataclass
class RenderedContent:
    """Result of rendering a page body."""
    html: str
    summary_html: str
    table_of_contents: str
    plain_text: str
    word_count: int
    reading_time: int
    truncated: bool


def html_to_text(html: str) -> str:
    """Visible text of an HTML fragment, whitespace collapsed."""
    if not html.strip():
        return ""
    soup = BeautifulSoup(html, "lxml")
    return " ".join(soup.get_text(" ").split())


def reading_time(word_count: int) -> int:
    """Minutes to read, rounded up; at least 1 for non-empty content."""
    if word_count <= 0:
        return 0
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def _heading_slug(value: str, separator: str) -> str:
    """Heading ids ignore shortcode placeholders."""
    return slugify(PLACEHOLDER_RE.sub("", value), separator)


def truncate_words(text: str, count: int) -> tuple[str, bool]:
    """First ``count`` words of ``text`` and whether anything was cut."""
    words = text.split()
    if len(words) <= count:
        return " ".join(words), False
    return " ".join(words[:count]), True


class MarkdownRenderer:
    """Renders page bodies to HTML following the site's markup settings.

    Usage:
        renderer = MarkdownRenderer(config, shortcodes)
        rendered = renderer.render(page.raw_body, page=page, site=site)
    """

    def __init__(self, config: SiteConfig, shortcodes: Optional[ShortcodeProcessor] = None):
        self.config = config
        self.shortcodes = shortcodes
        toc = config.markup.table_of_contents
        extensions: list[Any] = list(MARKDOWN_EXTENSIONS)
        extensions.append(TocExtension(
            toc_depth=f"{toc.start_level}-{toc.end_level}",
            slugify=_heading_slug,
        ))
        if config.markup.goldmark.renderer.hard_wraps:
            extensions.append("nl2br")
        if not config.unsafe_html:
            extensions.append(OmitRawHtmlExtension())
        self._md = md.Markdown(extensions=extensions, output_format="html")

    def convert(self, text: str) -> str:
        """Markdown to HTML with no shortcode processing."""
        return self._md.reset().convert(text)

    def markdownify(self, text: str) -> str:
        """Render a short Markdown snippet; a lone paragraph loses its <p>."""
        html = self.convert(text or "")
        match = re.fullmatch(r"<p>(.*)</p>", html, re.DOTALL)
        if match and "<p>" not in match.group(1):
            return match.group(1)
        return html

    def _render_fragment(self, text: str, page: Any, site: Any) -> tuple[str, str]:
        stash: dict[str, str] = {}
        if self.shortcodes is not None:
            text, stash = self.shortcodes.expand(text, page=page, site=site)
        html = self._md.reset().convert(text)
        toc_html = self._toc_html()
        if stash:
            html = self.shortcodes.restore(html, stash)
            # TOC entries carry the shortcode text only
            toc_html = self.shortcodes.restore(
                toc_html, {token: escape(html_to_text(output)) for token, output in stash.items()}
            )
        return html, toc_html

    def _toc_html(self) -> str:
        if not getattr(self._md, "toc_tokens", None):
            return ""
        toc = self._md.toc.strip()
        toc = re.sub(r'^<div class="toc">', '<nav id="TableOfContents">', toc)
        toc = re.sub(r"</div>$", "</nav>", toc)
        return toc

    def render(
        self,
        body: str,
        page: Any = None,
        site: Any = None,
        summary: Optional[str] = None,
    ) -> RenderedContent:
        """Render a page body.

        Args:
            body: Markdown source (front matter already removed)
            page: Page object exposed to shortcodes
            site: Site context exposed to shortcodes
            summary: Explicit summary from front matter

        Returns:
            RenderedContent
        """
        divider = MORE_DIVIDER_RE.search(body)
        if divider:
            lead = body[:divider.start()]
            full_source = lead + body[divider.end():]
        else:
            lead = None
            full_source = body

        html, toc_html = self._render_fragment(full_source, page, site)
        plain = html_to_text(html)
        words = len(plain.split())

        if lead is not None:
            summary_html, _ = self._render_fragment(lead, page, site)
            truncated = True
        elif summary:
            summary_html = self.markdownify(summary)
            truncated = True
        else:
            summary_text, truncated = truncate_words(plain, self.config.summary_length)
            summary_html = escape(summary_text)

        return RenderedContent(
            html=html,
            summary_html=summary_html.strip(),
            table_of_contents=toc_html,
            plain_text=plain,
            word_count=words,
            reading_time=reading_time(words),
            truncated=truncated,
        )
