"""
document.py

Responsibility: the small set of document capabilities the renderer needs,
and the one concrete implementation backed by lxml.

Field logic in `renderer.py` talks only to the `Document` protocol, so it
never touches parser-specific node APIs.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Any, Protocol

import lxml.html
from cssselect import HTMLTranslator, SelectorError
from lxml import etree

# Characters lxml refuses in text and attribute values.
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


class DocumentError(ValueError):
    pass


class Document(Protocol):
    def find_nodes(self, selector: str) -> Sequence[Any]: ...

    def get_text(self, node: Any) -> str: ...

    def set_text(self, node: Any, value: str) -> None: ...

    def get_attribute(self, node: Any, name: str) -> str | None: ...

    def set_attribute(self, node: Any, name: str, value: str) -> None: ...

    def serialize(self) -> str: ...


@lru_cache(maxsize=128)
def _css_to_xpath(selector: str) -> str:
    try:
        return HTMLTranslator().css_to_xpath(selector)
    except SelectorError as e:
        raise DocumentError(f"Invalid CSS selector: {selector!r}") from e


class HtmlDocument:
    """A parsed HTML document addressed with CSS selectors."""

    def __init__(self, root: lxml.html.HtmlElement) -> None:
        self._root = root

    @classmethod
    def parse(cls, source: str) -> HtmlDocument:
        try:
            root = lxml.html.document_fromstring(source)
        except (etree.ParserError, ValueError) as e:
            raise DocumentError(f"Unable to parse HTML document: {e}") from e
        return cls(root)

    @property
    def root(self) -> lxml.html.HtmlElement:
        return self._root

    def find_nodes(self, selector: str) -> list[lxml.html.HtmlElement]:
        return list(self._root.xpath(_css_to_xpath(selector)))

    def get_text(self, node: lxml.html.HtmlElement) -> str:
        return str(node.text_content())

    def set_text(self, node: lxml.html.HtmlElement, value: str) -> None:
        # Replaces child elements as well, like assigning textContent.
        for child in list(node):
            node.remove(child)
        node.text = _XML_INVALID.sub("", value)

    def get_attribute(self, node: lxml.html.HtmlElement, name: str) -> str | None:
        return node.get(name)

    def set_attribute(self, node: lxml.html.HtmlElement, name: str, value: str) -> None:
        node.set(name, _XML_INVALID.sub("", value))

    def serialize(self) -> str:
        return lxml.html.tostring(self._root, encoding="unicode", method="html")
