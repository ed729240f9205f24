"""Exception types raised by inkpress.

Library code raises these; the CLI catches ``InkpressError`` at the top
level and turns it into a non-zero exit status.
"""

from __future__ import annotations

from pathlib import Path


class InkpressError(Exception):
    """Base class for all inkpress errors."""


class ConfigError(InkpressError, ValueError):
    """Site configuration is missing or invalid."""


class FrontMatterError(InkpressError, ValueError):
    """A content file has malformed or schema-violating front matter."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ThemeNotFoundError(InkpressError, FileNotFoundError):
    """The configured theme directory is missing or empty."""

    def __init__(self, theme: str, theme_dir: Path):
        self.theme = theme
        self.theme_dir = theme_dir
        super().__init__(
            f"theme {theme!r} not found at {theme_dir}. If the theme is a git "
            f"submodule, run: git submodule update --init --recursive"
        )


class TemplateLookupError(InkpressError, LookupError):
    """No layout or shortcode template matched a lookup."""


class ContentExistsError(InkpressError, FileExistsError):
    """``new`` was asked to create a file that already exists."""


class ContentPathError(InkpressError, ValueError):
    """A content path points outside the content directory."""


class ArchetypeError(InkpressError, ValueError):
    """An archetype template failed to render."""


class BuildError(InkpressError, RuntimeError):
    """The build failed; ``errors`` holds the underlying causes."""

    def __init__(self, message: str, errors: list[Exception] | None = None):
        self.errors = list(errors or [])
        if self.errors:
            details = "\n".join(f"  - {e}" for e in self.errors)
            message = f"{message}\n{details}"
        super().__init__(message)
