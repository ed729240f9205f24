# Common utilities and shared modules
"""
Shared components used by the content, render and site packages:
- Site configuration (Pydantic schemas)
- Logging configuration
- Error taxonomy
"""

from .config import SiteConfig, find_config_file, load_site_config
from .errors import (
    ArchetypeError,
    BuildError,
    ConfigError,
    ContentExistsError,
    ContentPathError,
    FrontMatterError,
    InkpressError,
    TemplateLookupError,
    ThemeNotFoundError,
)
from .logging import set_level, setup_logging

__all__ = [
    "SiteConfig",
    "find_config_file",
    "load_site_config",
    "ArchetypeError",
    "BuildError",
    "ConfigError",
    "ContentExistsError",
    "ContentPathError",
    "FrontMatterError",
    "InkpressError",
    "TemplateLookupError",
    "ThemeNotFoundError",
    "set_level",
    "setup_logging",
]
