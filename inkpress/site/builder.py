"""Full build pipeline: content tree to publish-ready site.

Orchestrates the complete flow:
config -> theme -> load pages -> permalinks -> Markdown/shortcodes ->
sections/taxonomies/pagination -> templates -> feeds/sitemap -> static files

Usage:
    builder = SiteBuilder(load_site_config(site_dir))
    report = builder.build()
"""

from __future__ import annotations

import shutil
import tempfile
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from jinja2 import TemplateError

from inkpress.common.config import SiteConfig
from inkpress.common.errors import BuildError, InkpressError, TemplateLookupError
from inkpress.common.logging import setup_logging
from inkpress.content.loader import load_pages
from inkpress.content.models import LoadResult, Page, Section
from inkpress.render.markdown import MarkdownRenderer
from inkpress.render.shortcodes import ShortcodeProcessor
from inkpress.render.templates import TemplateRenderer, resolve_theme, static_search_path

from .feeds import feed_url, render_rss, render_sitemap, sitemap_entries
from .paginate import paginate
from .taxonomy import Taxonomy, build_taxonomies
from .urls import expand_permalink, join_url, normalize_url_path, output_path_for, urlize

logger = setup_logging(module_name="site.builder")


@dataclass
class SiteContext:
    """The ``site`` object templates see."""
    config: SiteConfig
    pages: list[Page]
    sections: dict[str, Section]
    home: Section
    taxonomies: dict[str, Taxonomy] = field(default_factory=dict)
    build_time: Optional[datetime] = None

    @property
    def title(self) -> str:
        return self.config.title

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def language_code(self) -> str:
        return self.config.language_code

    @property
    def copyright(self) -> str:
        return self.config.copyright

    @property
    def params(self) -> dict[str, Any]:
        return self.config.params

    @property
    def menus(self) -> dict[str, list[dict[str, Any]]]:
        return {
            name: sorted(entries, key=lambda e: (e.get("weight", 0), str(e.get("name", ""))))
            for name, entries in self.config.menus.items()
        }

    @property
    def main_sections(self) -> list[str]:
        """Sections listed on the home page (``params.mainSections``)."""
        configured = self.config.params.get("mainSections") or self.config.params.get("main_sections")
        if configured:
            return [configured] if isinstance(configured, str) else list(configured)
        if not self.sections:
            return []
        largest = max(self.sections.values(), key=lambda s: (len(s.pages), s.name))
        return [largest.name]

    @property
    def regular_pages(self) -> list[Page]:
        return self.pages

    def get_section(self, name: str) -> Optional[Section]:
        return self.sections.get(name)


@dataclass
class BuildReport:
    """Summary of one build."""
    pages: int = 0
    lists: int = 0
    taxonomy_pages: int = 0
    aliases: int = 0
    feeds: int = 0
    static_files: int = 0
    files: list[Path] = field(default_factory=list)
    skipped: list[tuple[Path, str]] = field(default_factory=list)
    unpublished: int = 0
    elapsed_seconds: float = 0.0

    @property
    def total_files(self) -> int:
        return len(self.files) + self.static_files


class SiteBuilder:
    """Builds a site from its configuration.

    Steps:
    1. Resolve the theme (fail fast on a missing submodule)
    2. Load and filter pages
    3. Resolve permalinks, detect output collisions
    4. Render Markdown and shortcodes
    5. Sections, taxonomies, pagination, prev/next
    6. Render every page kind, feeds and sitemap
    7. Copy static files and bundle resources
    8. Move the staged output into the publish directory

    Output is staged in a sibling temporary directory; the publish directory
    is only touched once every file has been written.
    """

    def __init__(
        self,
        config: SiteConfig,
        strict: bool = True,
        now: Optional[datetime] = None,
    ):
        self.config = config
        self.strict = strict
        self.now = now
        self.templates: Optional[TemplateRenderer] = None
        self.markdown: Optional[MarkdownRenderer] = None
        self.site: Optional[SiteContext] = None
        self._by_path: dict[str, Page] = {}
        self._written: dict[Path, str] = {}
        self._staging: Optional[Path] = None

    # --- Public API ---

    def build(self, clean: bool = True) -> BuildReport:
        """Run the full pipeline and write the site to the publish directory.

        Raises:
            ThemeNotFoundError: Theme configured but not checked out
            BuildError: Invalid content (strict mode), URL collisions or
                template failures
        """
        started = time.perf_counter()
        config = self.config
        report = BuildReport()
        self._written = {}

        logger.info("Step 1: Resolving theme...")
        theme = resolve_theme(config)
        if theme is not None:
            logger.info("Using theme %s", theme)

        logger.info("Step 2: Loading content from %s...", config.content_path)
        loaded = load_pages(config, strict=self.strict, now=self.now)
        report.skipped = loaded.skipped
        report.unpublished = len(loaded.unpublished)

        self._setup_renderers()
        site = self._make_site(loaded)
        self.site = site

        logger.info("Step 3: Resolving permalinks...")
        self._assign_permalinks(site)

        logger.info("Step 4: Rendering %d pages...", len(site.pages))
        self._render_content(site)
        self._link_neighbours(site)

        logger.info("Step 5: Building taxonomies...")
        if config.kind_enabled("taxonomy") or config.kind_enabled("term"):
            site.taxonomies = build_taxonomies(site.pages, config)
        else:
            site.taxonomies = {}

        publish_dir = config.publish_path
        if clean:
            self._check_cleanable(publish_dir)
        publish_dir.parent.mkdir(parents=True, exist_ok=True)
        self._staging = Path(tempfile.mkdtemp(prefix=".inkpress-staging-", dir=publish_dir.parent))
        try:
            logger.info("Step 6: Rendering pages into %s...", self._staging)
            for page in site.pages:
                self._write_single(page, site)
                report.pages += 1
            report.lists += self._write_home(site)
            for section in site.sections.values():
                report.lists += self._write_list("section", section, section.pages, site, section=section.name)
            report.taxonomy_pages += self._write_taxonomies(site)
            report.aliases += self._write_aliases(site)
            self._write_404(site)
            report.feeds += self._write_feeds(site)
            self._write_sitemap(site)

            logger.info("Step 7: Copying static files...")
            report.static_files = self._copy_static(self._staging) + self._copy_bundle_resources(site)

            logger.info("Step 8: Publishing to %s...", publish_dir)
            self._publish(self._staging, publish_dir, clean)
        finally:
            shutil.rmtree(self._staging, ignore_errors=True)
            self._staging = None

        report.files = sorted(self._written)
        report.elapsed_seconds = time.perf_counter() - started
        logger.info(
            "Build complete: %d pages, %d lists, %d taxonomy pages, %d aliases, %d static files in %.2fs",
            report.pages, report.lists, report.taxonomy_pages, report.aliases,
            report.static_files, report.elapsed_seconds,
        )
        return report

    # --- Setup ---

    def _setup_renderers(self) -> None:
        self.templates = TemplateRenderer(self.config, markdownify=self._markdownify)
        shortcodes = ShortcodeProcessor(
            self.templates.env,
            ref_resolver=self._ref,
            relref_resolver=self._relref,
        )
        self.markdown = MarkdownRenderer(self.config, shortcodes)

    def _markdownify(self, text: str) -> str:
        return self.markdown.markdownify(text) if self.markdown else text

    def _make_site(self, loaded: LoadResult) -> SiteContext:
        home = loaded.home or Section(name="", title=self.config.title)
        home.kind = "home"
        home.permalink = "/"
        if not home.title:
            home.title = self.config.title
        build_time = max((p.lastmod for p in loaded.pages), default=None)
        return SiteContext(
            config=self.config,
            pages=loaded.pages,
            sections=dict(sorted(loaded.sections.items())),
            home=home,
            build_time=build_time,
        )

    # --- Permalinks ---

    def permalink_for(self, page: Page) -> str:
        """Site path of a page: front matter url, section pattern, or default."""
        config = self.config
        preserve_case = config.disable_path_to_lower
        fm = page.front_matter
        if fm.url:
            return normalize_url_path(fm.url)

        pattern = config.permalinks.get(page.section) if page.section else config.permalinks.get("page")
        if pattern:
            filename = page.source_path.parent.name if page.is_bundle else page.source_path.stem
            return expand_permalink(
                pattern,
                section=page.section,
                slug=page.slug,
                title=page.title,
                filename=filename,
                published=fm.publish_datetime,
                preserve_case=preserve_case,
            )

        parts = [urlize(p, preserve_case) for p in page.relative_path.parent.parts]
        if page.is_bundle and parts:
            parts = parts[:-1]
        return join_url(*parts, urlize(page.slug, preserve_case))

    def _assign_permalinks(self, site: SiteContext) -> None:
        config = self.config
        preserve_case = config.disable_path_to_lower
        owners: dict[Path, list[Page]] = defaultdict(list)
        for page in site.pages:
            page.permalink = self.permalink_for(page)
            page.output_path = output_path_for(page.permalink, config.publish_path)
            owners[page.output_path].append(page)
            self._by_path[page.relative_path.as_posix()] = page

        for section in site.sections.values():
            section.permalink = join_url(urlize(section.name, preserve_case))

        collisions = [
            BuildError(
                f"{path} would be written by "
                + ", ".join(str(p.relative_path) for p in pages)
            )
            for path, pages in owners.items()
            if len(pages) > 1
        ]
        if collisions:
            raise BuildError("pages resolve to the same output path", collisions)

    def _find_page(self, ref: str, current: Optional[Page]) -> Page:
        target = ref.split("#", 1)[0].strip()
        candidates = []
        stripped = target.lstrip("/")
        if not target.startswith("/") and current is not None:
            candidates.append((PurePosixPath(current.relative_path.parent.as_posix()) / stripped).as_posix())
        candidates.append(stripped)
        for candidate in candidates:
            for key in (candidate, f"{candidate}.md", f"{candidate}/index.md"):
                if key in self._by_path:
                    return self._by_path[key]
        # Bare file name anywhere in the tree
        matches = [p for key, p in self._by_path.items() if PurePosixPath(key).name in (stripped, f"{stripped}.md")]
        if len(matches) == 1:
            return matches[0]
        where = current.relative_path if current is not None else "<content>"
        raise TemplateLookupError(f"{where}: ref {ref!r} not found")

    def _ref(self, ref: str, current: Optional[Page]) -> str:
        page = self._find_page(ref, current)
        anchor = "#" + ref.split("#", 1)[1] if "#" in ref else ""
        return self.config.absolute_url(page.permalink) + anchor

    def _relref(self, ref: str, current: Optional[Page]) -> str:
        page = self._find_page(ref, current)
        anchor = "#" + ref.split("#", 1)[1] if "#" in ref else ""
        return self.config.relative_url(page.permalink) + anchor

    # --- Content ---

    def _render_content(self, site: SiteContext) -> None:
        errors: list[Exception] = []
        for page in site.pages:
            try:
                rendered = self.markdown.render(
                    page.raw_body, page=page, site=site, summary=page.front_matter.summary
                )
            except (InkpressError, TemplateError) as exc:
                errors.append(exc)
                continue
            page.content_html = rendered.html
            page.summary_html = rendered.summary_html
            page.table_of_contents = rendered.table_of_contents
            page.plain_text = rendered.plain_text
            page.word_count = rendered.word_count
            page.reading_time = rendered.reading_time
            page.truncated = rendered.truncated
        if errors:
            raise BuildError(f"{len(errors)} page(s) failed to render", errors)

    def _link_neighbours(self, site: SiteContext) -> None:
        """``prev`` is the next older page in the section, ``next`` the next newer."""
        for section in site.sections.values():
            pages = section.pages
            for i, page in enumerate(pages):
                page.next = pages[i - 1] if i > 0 else None
                page.prev = pages[i + 1] if i + 1 < len(pages) else None

    # --- Writing ---

    def _write(self, url_or_path: str | Path, content: str, owner: str) -> Path:
        if isinstance(url_or_path, Path):
            path = url_or_path
        else:
            path = output_path_for(url_or_path, self.config.publish_path)
        if path in self._written:
            raise BuildError(f"{path} written twice ({self._written[path]} and {owner})")
        staged = self._staged(path)
        staged.parent.mkdir(parents=True, exist_ok=True)
        with open(staged, "w", encoding="utf-8") as f:
            f.write(content)
        self._written[path] = owner
        logger.debug("Wrote %s", path)
        return path

    def _write_single(self, page: Page, site: SiteContext) -> None:
        html = self.templates.render(
            "page",
            {"site": site, "page": page},
            section=page.section,
            layout=page.front_matter.layout,
        )
        self._write(page.output_path, html, str(page.relative_path))

    def _write_list(
        self,
        kind: str,
        list_page: Any,
        items: list[Any],
        site: SiteContext,
        **lookup: Any,
    ) -> int:
        """Write a paginated list page; returns the number of files written."""
        if not self.config.kind_enabled(kind):
            return 0
        pagers = paginate(items, self.config.paginate, list_page.permalink)
        for pager in pagers:
            html = self.templates.render(
                kind,
                {"site": site, "page": list_page, "pages": items, "paginator": pager},
                **lookup,
            )
            self._write(pager.url, html, f"{kind} {list_page.permalink}")
        if len(pagers) > 1:
            self._write_alias(join_url(list_page.permalink, "page", "1"), list_page.permalink, site)
        return len(pagers)

    def _home_pages(self, site: SiteContext) -> list[Page]:
        main = set(site.main_sections)
        return [p for p in site.pages if p.section in main]

    def _write_home(self, site: SiteContext) -> int:
        return self._write_list("home", site.home, self._home_pages(site), site)

    def _write_taxonomies(self, site: SiteContext) -> int:
        written = 0
        for taxonomy in site.taxonomies.values():
            if not taxonomy.terms:
                continue
            if self.config.kind_enabled("taxonomy"):
                html = self.templates.render(
                    "taxonomy",
                    {"site": site, "page": taxonomy, "taxonomy": taxonomy, "terms": taxonomy.by_name()},
                    singular=taxonomy.singular,
                    plural=taxonomy.plural,
                )
                self._write(taxonomy.permalink, html, f"taxonomy {taxonomy.plural}")
                written += 1
            for term in taxonomy.by_name():
                written += self._write_list(
                    "term", term, term.pages, site,
                    singular=taxonomy.singular, plural=taxonomy.plural,
                )
        return written

    def _write_alias(self, alias: str, target: str, site: SiteContext) -> None:
        html = self.templates.render(
            "alias",
            {"site": site, "target": self.config.relative_url(target), "permalink": self.config.absolute_url(target)},
        )
        self._write(normalize_url_path(alias), html, f"alias -> {target}")

    def _write_aliases(self, site: SiteContext) -> int:
        count = 0
        for page in site.pages:
            for alias in page.front_matter.aliases:
                self._write_alias(alias, page.permalink, site)
                count += 1
        return count

    def _write_404(self, site: SiteContext) -> None:
        if not self.config.kind_enabled("404") or not self.templates.has_template("404"):
            return
        html = self.templates.render("404", {"site": site, "page": site.home})
        self._write("/404.html", html, "404")

    def _write_feeds(self, site: SiteContext) -> int:
        if not self.config.kind_enabled("RSS"):
            return 0
        feeds: list[tuple[str, str, list[Page], str, str]] = [
            (site.title, "/", self._home_pages(site), site.home.description, ""),
        ]
        for section in site.sections.values():
            feeds.append((f"{section.title} on {site.title}", section.permalink, section.pages, section.description, section.name))
        if self.config.kind_enabled("term"):
            for taxonomy in site.taxonomies.values():
                for term in taxonomy.by_name():
                    feeds.append((f"{term.name} on {site.title}", term.permalink, term.pages, "", ""))

        for title, list_url, pages, description, section in feeds:
            xml = render_rss(
                self.templates, self.config,
                title=title, list_url=list_url, pages=pages, site=site,
                description=description, section=section,
            )
            self._write(feed_url(list_url), xml, f"RSS {list_url}")
        return len(feeds)

    def _write_sitemap(self, site: SiteContext) -> None:
        if not self.config.kind_enabled("sitemap"):
            return

        def newest(pages: list[Page]) -> Optional[datetime]:
            return max((p.lastmod for p in pages), default=None)

        lists: list[tuple[str, Optional[datetime]]] = [("/", newest(self._home_pages(site)))]
        lists += [(s.permalink, newest(s.pages)) for s in site.sections.values()]
        for taxonomy in site.taxonomies.values():
            if not taxonomy.terms:
                continue
            if self.config.kind_enabled("taxonomy"):
                lists.append((taxonomy.permalink, newest([p for t in taxonomy.terms.values() for p in t.pages])))
            if self.config.kind_enabled("term"):
                lists += [(t.permalink, newest(t.pages)) for t in taxonomy.terms.values()]

        entries = sitemap_entries(self.config, site.pages, lists)
        self._write("/sitemap.xml", render_sitemap(self.templates, entries, site), "sitemap")

    # --- Files ---

    def _staged(self, path: Path) -> Path:
        """Where a file bound for the publish directory is written during the build."""
        return self._staging / path.relative_to(self.config.publish_path)

    def _check_cleanable(self, publish_dir: Path) -> None:
        site_dir = self.config.site_dir.resolve()
        target = publish_dir.resolve()
        if target == site_dir or target in site_dir.parents:
            raise BuildError(f"refusing to clean {target}: it contains the site sources")

    def _clean_publish_dir(self, publish_dir: Path) -> None:
        """Empty the publish directory, keeping the directory itself."""
        self._check_cleanable(publish_dir)
        if not publish_dir.is_dir():
            return
        for child in publish_dir.iterdir():
            _remove(child)

    def _publish(self, staging: Path, publish_dir: Path, clean: bool) -> None:
        """Move staged output into place; without ``clean`` other files are kept."""
        if clean:
            self._clean_publish_dir(publish_dir)
        publish_dir.mkdir(parents=True, exist_ok=True)
        for child in sorted(staging.iterdir()):
            target = publish_dir / child.name
            if child.is_dir() and target.is_dir() and not target.is_symlink():
                shutil.copytree(child, target, dirs_exist_ok=True)
                continue
            if target.exists() or target.is_symlink():
                _remove(target)
            shutil.move(str(child), str(target))

    def _copy_static(self, out_dir: Path) -> int:
        count = 0
        for static_dir in static_search_path(self.config):
            for source in sorted(static_dir.rglob("*")):
                if source.is_file():
                    target = out_dir / source.relative_to(static_dir)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(source, target)
                    count += 1
        return count

    def _copy_bundle_resources(self, site: SiteContext) -> int:
        count = 0
        for page in site.pages:
            if not page.bundle_resources or page.output_path is None:
                continue
            bundle_dir = page.source_path.parent
            for resource in page.bundle_resources:
                target = self._staged(page.output_path.parent / resource.relative_to(bundle_dir))
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(resource, target)
                count += 1
        return count


def build_site(config: SiteConfig, strict: bool = True, clean: bool = True) -> BuildReport:
    """Convenience function to build a site in one call."""
    return SiteBuilder(config, strict=strict).build(clean=clean)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
