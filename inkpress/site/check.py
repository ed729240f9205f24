"""Front matter validation without rendering (``inkpress check``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from inkpress.common.config import SiteConfig
from inkpress.common.errors import FrontMatterError
from inkpress.common.logging import setup_logging
from inkpress.content.frontmatter import parse_metadata, read_content_file, read_front_matter
from inkpress.content.loader import SECTION_INDEX, iter_content_files, section_of

logger = setup_logging(module_name="site.check")


@dataclass
class CheckReport:
    files_checked: int = 0
    errors: list[FrontMatterError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def check_site(config: SiteConfig) -> CheckReport:
    """Parse every content file, drafts and future posts included.

    Errors are front matter that fails to parse or validate. Posts (pages
    inside a section) without tags or authors only produce warnings.
    """
    report = CheckReport()
    content_dir = config.content_path

    for path in iter_content_files(content_dir):
        relative = path.relative_to(content_dir)
        report.files_checked += 1
        try:
            if path.name == SECTION_INDEX:
                parse_metadata(read_content_file(path), path)
                continue
            fm, _ = read_front_matter(path)
        except FrontMatterError as exc:
            logger.error("%s", exc)
            report.errors.append(exc)
            continue

        if not section_of(relative):
            continue
        if not fm.tags:
            report.warnings.append(f"{relative}: no tags")
        if not fm.authors:
            report.warnings.append(f"{relative}: no authors")

    for warning in report.warnings:
        logger.warning("%s", warning)
    logger.info(
        "Checked %d files: %d errors, %d warnings",
        report.files_checked, len(report.errors), len(report.warnings),
    )
    return report
