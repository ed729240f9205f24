"""Paths, slugs and permalinks."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path, PurePosixPath

_DISALLOWED = re.compile(r"[^\w\-.~]+", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-{2,}")
_PERMALINK_TOKEN = re.compile(r":(year|month|day|section|slug|title|filename)\b")


def urlize(segment: str, preserve_case: bool = False) -> str:
    """Turn free text into a single URL path segment.

    Whitespace becomes ``-``; anything other than letters, digits and
    ``-_.~`` is dropped. Lower-cased unless ``preserve_case``
    (``disablePathToLower = true``).
    """
    text = _WHITESPACE.sub("-", segment.strip())
    text = _DISALLOWED.sub("", text)
    text = _DASHES.sub("-", text)
    if not preserve_case:
        text = text.lower()
    return text


def slug_for(source_path: Path, explicit: str | None = None) -> str:
    """Slug from front matter, else the file stem (bundle dir for index.md)."""
    if explicit:
        return explicit.strip().strip("/")
    if source_path.stem == "index":
        return source_path.parent.name
    return source_path.stem


def expand_permalink(
    pattern: str,
    *,
    section: str,
    slug: str,
    title: str,
    filename: str,
    published: datetime,
    preserve_case: bool,
) -> str:
    """Expand a Hugo permalink pattern such as ``/:year/:month/:slug/``."""

    def replace(match: re.Match) -> str:
        token = match.group(1)
        if token == "year":
            return f"{published.year:04d}"
        if token == "month":
            return f"{published.month:02d}"
        if token == "day":
            return f"{published.day:02d}"
        if token == "section":
            return urlize(section, preserve_case)
        if token == "slug":
            return urlize(slug, preserve_case)
        if token == "title":
            return urlize(title, preserve_case)
        return urlize(filename, preserve_case)

    return normalize_url_path(_PERMALINK_TOKEN.sub(replace, pattern))


def normalize_url_path(path: str) -> str:
    """Ensure a leading slash and a trailing slash for directory URLs."""
    path = "/" + path.strip().lstrip("/")
    path = re.sub(r"/{2,}", "/", path)
    if not PurePosixPath(path).suffix and not path.endswith("/"):
        path += "/"
    return path


def join_url(*parts: str) -> str:
    """Join URL path segments into a directory URL."""
    segments = [p.strip("/") for p in parts if p and p.strip("/")]
    return normalize_url_path("/".join(segments))


def output_path_for(url_path: str, publish_dir: Path) -> Path:
    """Map a site URL to the file written under the publish directory.

    ``/a/b/`` is written to ``a/b/index.html``; ``/a/b.html`` and
    ``/index.xml`` are written as-is.
    """
    relative = url_path.lstrip("/")
    if not relative or relative.endswith("/"):
        return publish_dir / relative / "index.html"
    return publish_dir / relative
