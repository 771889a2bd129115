"""TreeNode protocol for parser-independent document queries.

The query engine and the record extractors only ever see the TreeNode
capability: a tag, an ordered attribute list, element children and text.
LxmlTreeNode is the standard implementation, backed by a parsed lxml.html
document.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from lxml import etree, html
from lxml.html import HtmlElement

from predictionbook.common.exceptions import DocumentParseException


class TreeNode(Protocol):
    """Protocol for a node of a parsed markup document.

    Only element nodes are exposed as nodes. Text is reachable through
    ``text`` (the text before the first child element) and
    ``text_content()`` (all descendant text, in document order).
    """

    @property
    def tag(self) -> str:
        """Lowercase tag name (e.g. "div", "a")."""
        ...

    @property
    def attributes(self) -> Sequence[tuple[str, str]]:
        """Attributes as (key, value) pairs in document order."""
        ...

    @property
    def children(self) -> Sequence[TreeNode]:
        """Child element nodes in document order."""
        ...

    @property
    def text(self) -> str | None:
        """Text preceding the first child element, or None if there is none."""
        ...

    def text_content(self) -> str:
        """Concatenated text of the node and all its descendants."""
        ...

    def get_attribute(self, name: str) -> str | None:
        """Value of the named attribute, or None if absent."""
        ...


class LxmlTreeNode:
    """TreeNode implementation wrapping an lxml HtmlElement.

    Comments and processing instructions are not elements for the purposes
    of the TreeNode protocol and are skipped when listing children.
    """

    __slots__ = ("_element",)

    def __init__(self, element: HtmlElement) -> None:
        self._element = element

    @property
    def element(self) -> HtmlElement:
        """The wrapped lxml element."""
        return self._element

    @property
    def tag(self) -> str:
        return self._element.tag.lower()

    @property
    def attributes(self) -> list[tuple[str, str]]:
        return list(self._element.attrib.items())

    @property
    def children(self) -> list[LxmlTreeNode]:
        return [
            LxmlTreeNode(child)
            for child in self._element
            if isinstance(child.tag, str)
        ]

    @property
    def text(self) -> str | None:
        return self._element.text

    def text_content(self) -> str:
        return self._element.text_content()

    def get_attribute(self, name: str) -> str | None:
        return self._element.get(name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LxmlTreeNode):
            return NotImplemented
        return self._element is other._element

    def __hash__(self) -> int:
        return hash(self._element)

    def __repr__(self) -> str:
        return f"LxmlTreeNode(<{self.tag}>)"


def parse_document(content: bytes | str, url: str = "") -> LxmlTreeNode:
    """Parse a markup document into a TreeNode rooted at the html element.

    Args:
        content: Raw response body.
        url: URL the body came from, for error context.

    Returns:
        LxmlTreeNode for the document root.

    Raises:
        DocumentParseException: If the body is empty or cannot be parsed.
    """
    try:
        root = html.document_fromstring(content)
    except (etree.ParserError, ValueError) as e:
        raise DocumentParseException(url, str(e)) from e
    return LxmlTreeNode(root)
