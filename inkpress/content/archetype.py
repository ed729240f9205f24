"""Archetypes: templates for new content files.

``inkpress new posts/my-post.md`` looks for ``archetypes/posts.md``, then
``archetypes/default.md``, in the site and then in the theme, and falls back
to a built-in archetype.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, StrictUndefined, TemplateError

from inkpress.common.config import SiteConfig
from inkpress.common.errors import ArchetypeError, ContentExistsError, ContentPathError
from inkpress.common.logging import setup_logging

from .loader import section_of

logger = setup_logging(module_name="content.archetype")

DEFAULT_ARCHETYPE = """---
title: "{{ title }}"
date: {{ date }}
draft: true
tags: []
authors: []
---

"""


def title_from_filename(path: Path) -> str:
    """``my-first_post.md`` -> ``My First Post``."""
    stem = path.parent.name if path.stem == "index" else path.stem
    return stem.replace("-", " ").replace("_", " ").strip().title()


def find_archetype(config: SiteConfig, section: str) -> Path | None:
    """Return the archetype file for a section, or None for the built-in."""
    roots = [config.archetype_path]
    if config.theme_path is not None:
        roots.append(config.theme_path / "archetypes")

    names = [f"{section}.md"] if section else []
    names.append("default.md")

    for root in roots:
        for name in names:
            candidate = root / name
            if candidate.is_file():
                return candidate
    return None


def new_content(
    config: SiteConfig,
    relative_path: str | Path,
    now: datetime | None = None,
) -> Path:
    """Create a content file from an archetype.

    Args:
        config: Site configuration
        relative_path: Path under content/, e.g. ``posts/hello-world.md``
        now: Creation time written to ``date`` (defaults to now, UTC)

    Returns:
        Path to the created file

    Raises:
        ContentPathError: The path is absolute or leaves the content directory.
        ContentExistsError: The target file already exists.
        ArchetypeError: The archetype template failed to render.
    """
    relative = Path(relative_path)
    if relative.is_absolute():
        raise ContentPathError(f"{relative}: expected a path under {config.content_path}")
    if relative.suffix != ".md":
        relative = relative.with_suffix(".md")
    target = config.content_path / relative
    if not target.resolve().is_relative_to(config.content_path.resolve()):
        raise ContentPathError(f"{relative}: resolves outside {config.content_path}")
    if target.exists():
        raise ContentExistsError(f"{target} already exists")

    now = now or datetime.now(timezone.utc)
    section = section_of(relative)
    archetype = find_archetype(config, section)
    source = archetype.read_text(encoding="utf-8") if archetype else DEFAULT_ARCHETYPE

    env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
    try:
        rendered = env.from_string(source).render(
            title=title_from_filename(relative),
            date=now.replace(microsecond=0).isoformat(),
            section=section,
            slug=relative.parent.name if relative.stem == "index" else relative.stem,
            site=config,
        )
    except TemplateError as exc:
        raise ArchetypeError(f"{archetype or 'built-in archetype'}: {exc}") from exc

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(rendered)

    logger.info("Created %s from %s", target, archetype or "built-in archetype")
    return target
