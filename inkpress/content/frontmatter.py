"""Front matter schema and parsing.

A content file starts with a metadata block, either YAML fenced by ``---``
lines or TOML fenced by ``+++`` lines, followed by the Markdown body.
All models use Pydantic with frozen config; a published post is not
mutated by the generator.
"""

from __future__ import annotations

import re
import tomllib
from datetime import date, datetime, time, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from inkpress.common.errors import FrontMatterError


class FrontMatterFormat(str, Enum):
    """Syntax of a front matter block."""
    YAML = "yaml"
    TOML = "toml"
    NONE = "none"


_FENCES = {
    "---": FrontMatterFormat.YAML,
    "+++": FrontMatterFormat.TOML,
}

_KNOWN_ALIASES = {
    "expiryDate": "expiry_date",
    "publishDate": "publish_date",
}


def _normalize_labels(value: Any) -> list[str]:
    """Turn a string or list into a stripped, de-duplicated label list."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError("must be a list of strings")
    labels: list[str] = []
    for item in value:
        if isinstance(item, (dict, list)):
            raise ValueError("must be a list of strings")
        label = str(item).strip()
        if label and label not in labels:
            labels.append(label)
    return labels


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


class FrontMatter(BaseModel):
    """Validated metadata of one content file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    date: datetime
    tags: list[str] = Field(default_factory=list)
    authors: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    draft: bool = False
    description: str = ""
    summary: str | None = None
    slug: str | None = None
    url: str | None = None
    aliases: list[str] = Field(default_factory=list)
    weight: int = 0
    lastmod: datetime | None = None
    publish_date: datetime | None = Field(default=None, alias="publishDate")
    expiry_date: datetime | None = Field(default=None, alias="expiryDate")
    layout: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_params(cls, data: Any) -> Any:
        """Keep keys outside the schema in ``params`` for templates."""
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields) | set(_KNOWN_ALIASES)
        params = data.get("params") or {}
        if not isinstance(params, dict):
            raise ValueError("params must be a mapping")
        params = dict(params)
        clean = {}
        for key, value in data.items():
            if key in known:
                clean[key] = value
            else:
                params[key] = value
        clean["params"] = params
        return clean

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("tags", "categories", "authors", "aliases", mode="before")
    @classmethod
    def _labels(cls, value: Any) -> list[str]:
        return _normalize_labels(value)

    @field_validator("date", "lastmod", "publish_date", "expiry_date", mode="before")
    @classmethod
    def _dates(cls, value: Any) -> Any:
        # YAML and TOML both hand back date objects for bare dates
        if isinstance(value, date) and not isinstance(value, datetime):
            return _as_datetime(value)
        if isinstance(value, str) and re.fullmatch(r"\d{4}-\d{2}-\d{2}", value.strip()):
            return _as_datetime(date.fromisoformat(value.strip()))
        return value

    @field_validator("date", "lastmod", "publish_date", "expiry_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive timestamps are read as UTC so every page date compares
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def publish_datetime(self) -> datetime:
        """The moment the page goes live (``publishDate`` wins over ``date``)."""
        return self.publish_date or self.date

    @property
    def calendar_date(self) -> date:
        return self.date.date()

    def taxonomy_terms(self, plural: str) -> list[str]:
        """Return the terms this page declares for a taxonomy."""
        if plural in ("tags", "categories", "authors"):
            return list(getattr(self, plural))
        return _normalize_labels(self.params.get(plural))


def split_front_matter(text: str) -> tuple[str, str, FrontMatterFormat]:
    """Split a content file into (raw block, body, format).

    Raises:
        ValueError: The opening fence has no matching closing fence.
    """
    text = text.lstrip("\ufeff")
    first_line, _, rest = text.partition("\n")
    fence = first_line.strip()
    fmt = _FENCES.get(fence)
    if fmt is None:
        return "", text, FrontMatterFormat.NONE

    closing = re.search(rf"^{re.escape(fence)}[ \t]*\r?$", rest, re.MULTILINE)
    if not closing:
        raise ValueError(f"front matter opened with {fence!r} is never closed")

    block = rest[: closing.start()]
    body = rest[closing.end():]
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return block, body, fmt


def _load_block(block: str, fmt: FrontMatterFormat) -> dict[str, Any]:
    if fmt is FrontMatterFormat.NONE:
        return {}
    if fmt is FrontMatterFormat.TOML:
        data = tomllib.loads(block)
    else:
        data = yaml.safe_load(block)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("front matter must be a mapping of keys to values")
    return data


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "front matter"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_metadata(text: str, path: Path | str = "<string>") -> tuple[dict[str, Any], str]:
    """Split and decode the front matter block without schema validation.

    Raises:
        FrontMatterError: Unterminated block, syntax error or non-mapping block.
    """
    try:
        block, body, fmt = split_front_matter(text)
        return _load_block(block, fmt), body
    except (ValueError, yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise FrontMatterError(path, str(exc).replace("\n", " ")) from exc


def parse_front_matter(text: str, path: Path | str = "<string>") -> tuple[FrontMatter, str]:
    """Parse and validate the front matter of a content file.

    Args:
        text: Full file contents
        path: Source path, used in error messages

    Returns:
        (FrontMatter, Markdown body)

    Raises:
        FrontMatterError: Unterminated block, YAML/TOML syntax error,
            non-mapping block, or schema violation.
    """
    data, body = parse_metadata(text, path)

    try:
        return FrontMatter.model_validate(data), body
    except ValidationError as exc:
        raise FrontMatterError(path, _describe_validation_error(exc)) from exc


def read_content_file(path: Path) -> str:
    """Read a content file as UTF-8.

    Raises:
        FrontMatterError: The file is not valid UTF-8.
    """
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as exc:
        raise FrontMatterError(path, f"not valid UTF-8 (byte {exc.start}: {exc.reason})") from exc


def read_front_matter(path: Path) -> tuple[FrontMatter, str]:
    """Read a file from disk and parse its front matter."""
    return parse_front_matter(read_content_file(path), path)


def dump_front_matter(fm: dict[str, Any]) -> str:
    """Serialise a mapping as a YAML front matter block."""
    yaml_txt = yaml.safe_dump(
        fm, allow_unicode=True, sort_keys=False, default_flow_style=False, width=1000
    )
    return f"---\n{yaml_txt}---\n"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
