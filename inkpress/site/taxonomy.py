"""Taxonomies: tags, categories, authors and any configured extras."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from inkpress.common.config import SiteConfig
from inkpress.common.logging import setup_logging
from inkpress.content.models import Page

from .urls import join_url, urlize

logger = setup_logging(module_name="site.taxonomy")


@dataclass
class Term:
    """One value of a taxonomy (e.g. the tag ``python``) and its pages."""
    name: str
    slug: str
    plural: str
    singular: str
    pages: list[Page] = field(default_factory=list)
    permalink: str = ""
    kind: str = "term"

    @property
    def title(self) -> str:
        return self.name

    @property
    def count(self) -> int:
        return len(self.pages)


@dataclass
class Taxonomy:
    """All terms of one taxonomy, keyed by term slug."""
    singular: str
    plural: str
    terms: dict[str, Term] = field(default_factory=dict)
    permalink: str = ""
    kind: str = "taxonomy"

    @property
    def title(self) -> str:
        return self.plural.replace("-", " ").replace("_", " ").title()

    def by_name(self) -> list[Term]:
        return sorted(self.terms.values(), key=lambda t: t.name.lower())

    def by_count(self) -> list[Term]:
        return sorted(self.terms.values(), key=lambda t: (-t.count, t.name.lower()))

    def __len__(self) -> int:
        return len(self.terms)


def build_taxonomies(pages: Iterable[Page], config: SiteConfig) -> dict[str, Taxonomy]:
    """Group pages by taxonomy term.

    Terms whose names differ only by case or punctuation share a slug; the
    first spelling seen (newest page first) names the term.

    Args:
        pages: Published pages, already sorted
        config: Site configuration (``taxonomies`` and path case)

    Returns:
        Mapping of plural taxonomy name to Taxonomy
    """
    preserve_case = config.disable_path_to_lower
    taxonomies: dict[str, Taxonomy] = {}
    pages = list(pages)

    for singular, plural in config.taxonomies.items():
        taxonomy = Taxonomy(
            singular=singular,
            plural=plural,
            permalink=join_url(urlize(plural, preserve_case)),
        )
        for page in pages:
            for name in page.front_matter.taxonomy_terms(plural):
                slug = urlize(name, preserve_case)
                if not slug:
                    continue
                term = taxonomy.terms.get(slug)
                if term is None:
                    term = Term(
                        name=name,
                        slug=slug,
                        plural=plural,
                        singular=singular,
                        permalink=join_url(taxonomy.permalink, slug),
                    )
                    taxonomy.terms[slug] = term
                if page not in term.pages:
                    term.pages.append(page)
        for term in taxonomy.terms.values():
            term.pages.sort(key=Page.sort_key)
        taxonomies[plural] = taxonomy
        logger.debug("Taxonomy %s: %d terms", plural, len(taxonomy))

    return taxonomies
