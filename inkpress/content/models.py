"""
Data models for the content tree.
Pages and sections are filled in stages: the loader sets identity and
front matter, the builder adds URLs and rendered content.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .frontmatter import FrontMatter


@dataclass(eq=False)
class Page:
    """One published content file."""
    source_path: Path
    relative_path: Path  # relative to the content directory
    section: str  # first directory under content/, "" for top-level pages
    front_matter: FrontMatter
    raw_body: str
    slug: str
    bundle_resources: list[Path] = field(default_factory=list)

    # Set by the builder
    permalink: str = ""  # site path, e.g. /posts/hello/
    output_path: Optional[Path] = None
    content_html: str = ""
    summary_html: str = ""
    table_of_contents: str = ""
    plain_text: str = ""
    word_count: int = 0
    reading_time: int = 0
    truncated: bool = False
    prev: Optional["Page"] = field(default=None, repr=False)
    next: Optional["Page"] = field(default=None, repr=False)

    kind: str = "page"

    @property
    def title(self) -> str:
        return self.front_matter.title

    @property
    def date(self) -> datetime:
        return self.front_matter.date

    @property
    def lastmod(self) -> datetime:
        return self.front_matter.lastmod or self.front_matter.date

    @property
    def tags(self) -> list[str]:
        return self.front_matter.tags

    @property
    def authors(self) -> list[str]:
        return self.front_matter.authors

    @property
    def description(self) -> str:
        return self.front_matter.description

    @property
    def draft(self) -> bool:
        return self.front_matter.draft

    @property
    def params(self) -> dict[str, Any]:
        return self.front_matter.params

    @property
    def is_bundle(self) -> bool:
        return self.source_path.name == "index.md"

    def sort_key(self) -> tuple:
        """Newest first, then weight, then title."""
        return (-self.front_matter.publish_datetime.timestamp(), self.front_matter.weight, self.title.lower())


@dataclass(eq=False)
class Section:
    """A first-level directory under content/ and its pages."""
    name: str
    title: str
    description: str = ""
    pages: list[Page] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    permalink: str = ""
    kind: str = "section"


@dataclass
class LoadResult:
    """Outcome of walking the content tree."""
    pages: list[Page] = field(default_factory=list)
    sections: dict[str, Section] = field(default_factory=dict)
    skipped: list[tuple[Path, str]] = field(default_factory=list)  # (path, reason)
    unpublished: list[Path] = field(default_factory=list)
    home: Optional[Section] = None  # content/_index.md, if present
