"""Content tree loader.

Walks ``content/``, parses each Markdown file's front matter and groups
pages into sections. Section metadata comes from ``_index.md`` files;
``<dir>/index.md`` marks a page bundle whose other files are resources.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from inkpress.common.config import SiteConfig
from inkpress.common.errors import BuildError, FrontMatterError
from inkpress.common.logging import setup_logging
from inkpress.site.urls import slug_for

from .frontmatter import FrontMatter, parse_metadata, read_content_file, read_front_matter
from .models import LoadResult, Page, Section

logger = setup_logging(module_name="content.loader")

SECTION_INDEX = "_index.md"
BUNDLE_INDEX = "index.md"


def _is_hidden(relative: Path) -> bool:
    for part in relative.parts:
        if part.startswith("."):
            return True
        if part.startswith("_") and part != SECTION_INDEX:
            return True
    return False


def _bundle_dirs(content_dir: Path) -> set[Path]:
    return {p.parent for p in content_dir.rglob(BUNDLE_INDEX)}


def _inside_bundle(path: Path, bundles: set[Path]) -> bool:
    return any(parent in bundles for parent in path.parents)


def iter_content_files(content_dir: Path) -> Iterator[Path]:
    """Yield Markdown content files in a stable order.

    Hidden files and Markdown files that are resources of a page bundle are
    skipped.
    """
    if not content_dir.is_dir():
        return
    bundles = _bundle_dirs(content_dir)
    for path in sorted(content_dir.rglob("*.md")):
        relative = path.relative_to(content_dir)
        if _is_hidden(relative):
            continue
        if path.name != BUNDLE_INDEX and _inside_bundle(path, bundles):
            continue
        yield path


def section_of(relative: Path) -> str:
    """First directory under content/, or "" for top-level files.

    A bundle directly under content/ (``about/index.md``) is a top-level page.
    """
    if len(relative.parts) == 2 and relative.name == BUNDLE_INDEX:
        return ""
    return relative.parts[0] if len(relative.parts) > 1 else ""


def is_published(fm: FrontMatter, config: SiteConfig, now: datetime | None = None) -> bool:
    """Apply the draft, future and expiry filters."""
    now = now or datetime.now(timezone.utc)
    if fm.draft and not config.build_drafts:
        return False
    if fm.publish_datetime > now and not config.build_future:
        return False
    if fm.expiry_date is not None and fm.expiry_date <= now and not config.build_expired:
        return False
    return True


def _bundle_resources(index_path: Path) -> list[Path]:
    bundle_dir = index_path.parent
    return sorted(
        p for p in bundle_dir.rglob("*")
        if p.is_file() and p != index_path and not p.name.startswith(".")
    )


def _load_section_index(path: Path, name: str) -> Section:
    meta, body = parse_metadata(read_content_file(path), path)
    default_title = name.replace("-", " ").replace("_", " ").title() if name else ""
    title = str(meta.get("title") or default_title)
    params = {k: v for k, v in meta.items() if k not in ("title", "description")}
    return Section(
        name=name,
        title=title,
        description=str(meta.get("description") or ""),
        params=params,
        body=body,
    )


def load_pages(
    config: SiteConfig,
    strict: bool = True,
    now: datetime | None = None,
) -> LoadResult:
    """Load every content file under the site's content directory.

    Args:
        config: Site configuration (content dir, draft/future flags)
        strict: Raise once the walk finishes if any file is invalid;
            otherwise log a warning and skip the file.
        now: Reference time for the future/expiry filters

    Returns:
        LoadResult with published pages sorted newest first

    Raises:
        BuildError: ``strict`` and at least one file failed to parse.
    """
    content_dir = config.content_path
    result = LoadResult()
    errors: list[FrontMatterError] = []

    if not content_dir.is_dir():
        logger.warning("Content directory %s does not exist", content_dir)
        return result

    for path in iter_content_files(content_dir):
        relative = path.relative_to(content_dir)
        section = section_of(relative)

        if path.name == SECTION_INDEX:
            try:
                section_meta = _load_section_index(path, section)
            except FrontMatterError as exc:
                errors.append(exc)
                result.skipped.append((path, exc.reason))
                if not strict:
                    logger.warning("Skipping %s", exc)
                continue
            if len(relative.parts) == 1:
                result.home = section_meta
            elif len(relative.parts) == 2:
                existing = result.sections.get(section)
                if existing:
                    section_meta.pages = existing.pages
                result.sections[section] = section_meta
            continue

        try:
            fm, body = read_front_matter(path)
        except FrontMatterError as exc:
            errors.append(exc)
            result.skipped.append((path, exc.reason))
            if not strict:
                logger.warning("Skipping %s", exc)
            continue

        if not is_published(fm, config, now):
            logger.debug("Not published (draft, future or expired): %s", relative)
            result.unpublished.append(path)
            continue

        page = Page(
            source_path=path,
            relative_path=relative,
            section=section,
            front_matter=fm,
            raw_body=body,
            slug=slug_for(path, fm.slug),
            bundle_resources=_bundle_resources(path) if path.name == BUNDLE_INDEX else [],
        )
        result.pages.append(page)

        if section:
            if section not in result.sections:
                result.sections[section] = Section(
                    name=section,
                    title=section.replace("-", " ").replace("_", " ").title(),
                )
            result.sections[section].pages.append(page)

    if errors and strict:
        raise BuildError(f"{len(errors)} content file(s) have invalid front matter", errors)

    result.pages.sort(key=Page.sort_key)
    for sec in result.sections.values():
        sec.pages.sort(key=Page.sort_key)

    logger.info(
        "Loaded %d pages in %d sections (%d unpublished, %d skipped)",
        len(result.pages), len(result.sections), len(result.unpublished), len(result.skipped),
    )
    return result
