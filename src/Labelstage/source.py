"""Read-only access to label source trees.

The materializer only needs a handful of accessors from a source node: its
local name, attribute lookup, ordered children, and text or inner markup.
``XmlSourceNode`` provides them over ``xml.etree.ElementTree`` elements with
namespaces stripped, so HL7 ``urn:hl7-org:v3`` documents and bare fixtures
read the same way.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable
from xml.etree import ElementTree as ET
from xml.sax.saxutils import escape, quoteattr

_WS_RE = re.compile(r"\s+")


class SourceError(ValueError):
    """Raised when a source document cannot be parsed."""


def normalize_whitespace(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def local_name(tag: str) -> str:
    return tag.split("}", 1)[-1]


@runtime_checkable
class SourceNode(Protocol):
    @property
    def local_name(self) -> str: ...

    def attr(self, name: str) -> str | None: ...

    def children(self, name: str | None = None) -> list[SourceNode]: ...

    def child(self, name: str) -> SourceNode | None: ...

    def text(self) -> str: ...

    def inner_markup(self) -> str: ...


class XmlSourceNode:
    """Namespace-agnostic view over an ElementTree element.

    The wrapped element is never modified.
    """

    __slots__ = ("_el",)

    def __init__(self, element: ET.Element):
        self._el = element

    def __repr__(self) -> str:
        return f"XmlSourceNode(<{self.local_name}>)"

    @property
    def local_name(self) -> str:
        return local_name(self._el.tag)

    def attr(self, name: str) -> str | None:
        value = self._el.get(name)
        if value is not None:
            return value
        for key, val in self._el.attrib.items():
            if local_name(key) == name:
                return val
        return None

    def _iter_children(self) -> Iterator[ET.Element]:
        # Comments and processing instructions have non-string tags
        return (c for c in self._el if isinstance(c.tag, str))

    def children(self, name: str | None = None) -> list[XmlSourceNode]:
        return [
            XmlSourceNode(c)
            for c in self._iter_children()
            if name is None or local_name(c.tag) == name
        ]

    def child(self, name: str) -> XmlSourceNode | None:
        for c in self._iter_children():
            if local_name(c.tag) == name:
                return XmlSourceNode(c)
        return None

    def text(self) -> str:
        return "".join(self._el.itertext())

    def inner_markup(self) -> str:
        parts: list[str] = [escape(self._el.text or "")]
        for c in self._el:
            if isinstance(c.tag, str):
                parts.append(_serialize(c))
            parts.append(escape(c.tail or ""))
        return "".join(parts)


def _serialize(el: ET.Element) -> str:
    name = local_name(el.tag)
    attrs = "".join(
        f" {local_name(k)}={quoteattr(v)}" for k, v in sorted(el.attrib.items())
    )
    inner = XmlSourceNode(el).inner_markup()
    if not inner:
        return f"<{name}{attrs}/>"
    return f"<{name}{attrs}>{inner}</{name}>"


def load_source(source: str | bytes | Path) -> XmlSourceNode:
    """Parse an XML document from a path, raw bytes or a markup string."""
    try:
        if isinstance(source, Path):
            root = ET.parse(source).getroot()
        elif isinstance(source, bytes):
            root = ET.fromstring(source)
        elif source.lstrip().startswith("<"):
            # bytes, so an XML declaration naming an encoding is accepted
            root = ET.fromstring(source.encode("utf-8"))
        else:
            root = ET.parse(source).getroot()
    except ET.ParseError as exc:
        raise SourceError(f"Malformed XML source: {exc}") from exc
    return XmlSourceNode(root)
