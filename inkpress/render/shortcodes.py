"""Hugo-style shortcodes embedded in Markdown.

``{{< name args >}}`` inserts the template output as raw HTML, untouched by
Markdown. ``{{% name args %}}`` inserts the output into the Markdown source,
so it is rendered with the rest of the page. Either form may wrap content
(``{{< name >}}inner{{< /name >}}``), exposed to the template as ``inner``.
``{{</* name */>}}`` is written out literally.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from jinja2 import Environment, TemplateNotFound

from inkpress.common.errors import TemplateLookupError
from inkpress.common.logging import setup_logging

logger = setup_logging(module_name="render.shortcodes")

_TAG_RE = re.compile(r"\{\{<(?P<raw>.*?)>\}\}|\{\{%(?P<md>.*?)%\}\}", re.DOTALL)
_NAME_RE = re.compile(r"[\w.\-]+")
_KWARG_RE = re.compile(r"^(?P<key>[A-Za-z_][\w\-]*)=(?P<value>.*)$", re.DOTALL)

PLACEHOLDER = "inkpressshortcode{:04d}x"
PLACEHOLDER_RE = re.compile(r"inkpressshortcode\d{4}x")


@dataclass
class ShortcodeTag:
    """One parsed ``{{< >}}`` / ``{{% %}}`` tag."""
    name: str
    markdown: bool  # {{% %}} form
    closing: bool = False
    self_closing: bool = False
    escaped: bool = False
    args: list[str] = field(default_factory=list)
    params: dict[str, str] = field(default_factory=dict)
    source: str = ""
    start: int = 0
    end: int = 0

    def literal(self) -> str:
        """The tag as written, minus the ``/* */`` escape."""
        inner = self.source.strip()[2:-2].strip()
        delim = ("{{%", "%}}") if self.markdown else ("{{<", ">}}")
        return f"{delim[0]} {inner} {delim[1]}"


class ShortcodeError(TemplateLookupError):
    """A shortcode is unknown or malformed."""


def parse_tag(match: re.Match) -> ShortcodeTag:
    markdown = match.group("md") is not None
    body = match.group("md") if markdown else match.group("raw")
    stripped = body.strip()
    tag = ShortcodeTag(
        name="",
        markdown=markdown,
        source=body,
        start=match.start(),
        end=match.end(),
    )

    if stripped.startswith("/*") and stripped.endswith("*/"):
        tag.escaped = True
        return tag

    if stripped.startswith("/"):
        tag.closing = True
        stripped = stripped[1:].strip()
    if stripped.endswith("/"):
        tag.self_closing = True
        stripped = stripped[:-1].strip()

    name_match = _NAME_RE.match(stripped)
    if not name_match:
        raise ShortcodeError(f"malformed shortcode tag: {match.group(0)!r}")
    tag.name = name_match.group(0)

    try:
        tokens = shlex.split(stripped[name_match.end():], posix=True)
    except ValueError as exc:
        raise ShortcodeError(f"malformed arguments in {match.group(0)!r}: {exc}") from exc
    for token in tokens:
        kwarg = _KWARG_RE.match(token)
        if kwarg:
            tag.params[kwarg.group("key")] = kwarg.group("value")
        else:
            tag.args.append(token)
    return tag


@dataclass
class ShortcodeCall:
    """Values passed to a shortcode template."""
    name: str
    args: list[str]
    params: dict[str, str]
    inner: Optional[str]
    page: Any = None
    site: Any = None

    def get(self, key: int | str, default: Any = "") -> Any:
        """Positional argument by index or named parameter by key."""
        if isinstance(key, int):
            return self.args[key] if 0 <= key < len(self.args) else default
        return self.params.get(key, default)


class ShortcodeProcessor:
    """Expands shortcodes in a page body before Markdown rendering.

    Usage:
        processor = ShortcodeProcessor(env)
        text, stash = processor.expand(body, page=page, site=site)
        html = markdown(text)
        html = processor.restore(html, stash)
    """

    def __init__(
        self,
        env: Environment,
        ref_resolver: Optional[Callable[[str, Any], str]] = None,
        relref_resolver: Optional[Callable[[str, Any], str]] = None,
    ):
        self.env = env
        self.ref_resolver = ref_resolver
        self.relref_resolver = relref_resolver

    def expand(self, text: str, page: Any = None, site: Any = None) -> tuple[str, dict[str, str]]:
        """Replace shortcodes in ``text``.

        Returns:
            (text with ``{{% %}}`` output inline and ``{{< >}}`` output
            replaced by placeholder tokens, placeholder -> HTML mapping)
        """
        stash: dict[str, str] = {}
        return self._expand(text, page, site, stash), stash

    def restore(self, html: str, stash: dict[str, str]) -> str:
        """Swap placeholder tokens in rendered HTML for shortcode output."""
        for token, output in stash.items():
            html = html.replace(f"<p>{token}</p>", output)
            html = html.replace(token, output)
        return html

    def _expand(
        self,
        text: str,
        page: Any,
        site: Any,
        stash: Optional[dict[str, str]],
    ) -> str:
        out: list[str] = []
        pos = 0
        while True:
            match = _TAG_RE.search(text, pos)
            if not match:
                out.append(text[pos:])
                break
            out.append(text[pos:match.start()])
            tag = parse_tag(match)

            if tag.escaped:
                out.append(tag.literal())
                pos = match.end()
                continue
            if tag.closing:
                raise ShortcodeError(f"{_page_name(page)}: closing tag {{{{/{tag.name}}}}} without opening tag")

            inner = None
            pos = match.end()
            if not tag.self_closing:
                close = self._find_close(text, match.end(), tag.name)
                if close is not None:
                    inner = text[match.end():close.start()]
                    pos = close.end()

            if inner is not None:
                # Raw shortcodes get their inner shortcodes resolved in place
                inner = self._expand(inner, page, site, stash if tag.markdown else None)

            output = self.render(tag, inner, page, site)
            if tag.markdown or stash is None:
                out.append(output)
            else:
                token = PLACEHOLDER.format(len(stash))
                stash[token] = output
                out.append(token)
        return "".join(out)

    def _find_close(self, text: str, start: int, name: str) -> Optional[re.Match]:
        depth = 1
        for match in _TAG_RE.finditer(text, start):
            tag = parse_tag(match)
            if tag.escaped or tag.name != name:
                continue
            if tag.closing:
                depth -= 1
                if depth == 0:
                    return match
            elif not tag.self_closing:
                depth += 1
        return None

    def render(self, tag: ShortcodeTag, inner: Optional[str], page: Any = None, site: Any = None) -> str:
        """Render one shortcode through ``shortcodes/<name>.html``."""
        try:
            template = self.env.get_template(f"shortcodes/{tag.name}.html")
        except TemplateNotFound as exc:
            raise ShortcodeError(f"{_page_name(page)}: unknown shortcode {tag.name!r}") from exc

        call = ShortcodeCall(
            name=tag.name,
            args=tag.args,
            params=tag.params,
            inner=inner,
            page=page,
            site=site,
        )
        output = template.render(
            shortcode=call,
            args=call.args,
            params=call.params,
            get=call.get,
            inner=inner or "",
            page=page,
            site=site,
            ref=lambda path: self._resolve(self.ref_resolver, path, page),
            relref=lambda path: self._resolve(self.relref_resolver, path, page),
        )
        return output.strip("\n")

    def _resolve(self, resolver, path: str, page: Any) -> str:
        if resolver is None:
            raise ShortcodeError(f"{_page_name(page)}: ref/relref used outside a site build")
        return resolver(path, page)


def _page_name(page: Any) -> str:
    source = getattr(page, "relative_path", None) or getattr(page, "source_path", None)
    return str(source) if source else "<content>"
