# Content: front matter schema, content tree loading and new-post archetypes
"""
Content modules:
- frontmatter: front matter schema, YAML/TOML parsing
- loader: walks content/, builds pages and sections
- archetype: creates new content files (the ``new`` command)
"""

from .frontmatter import FrontMatter, dump_front_matter, parse_front_matter
from .loader import is_published, load_pages
from .models import LoadResult, Page, Section

__all__ = [
    "FrontMatter",
    "dump_front_matter",
    "parse_front_matter",
    "is_published",
    "load_pages",
    "LoadResult",
    "Page",
    "Section",
]
