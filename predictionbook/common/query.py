"""Tree query engine for locating nodes by tag and attribute.

Matching supports exactly two things: an exact tag name, and one attribute
whose value either equals the query value or contains it as one of its
whitespace-separated tokens (the usual ``class`` list semantics). There is
no selector grammar; compound lookups are written as nested queries.

Traversal is preorder over an explicit stack, so arbitrarily deep documents
never hit the interpreter's recursion limit. Results come back in document
order, and the root itself is a candidate.

Example::

    root = parse_document(body)
    for prediction in find_all(root, attribute_key="class",
                               attribute_value="prediction"):
        title = find_first(prediction, attribute_key="class",
                           attribute_value="title")
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TypeVar

from predictionbook.common.tree_node import TreeNode

N = TypeVar("N", bound=TreeNode)


def node_matches(
    node: TreeNode,
    tag: str | None = None,
    attribute_key: str | None = None,
    attribute_value: str | None = None,
) -> bool:
    """Check a single node against the query criteria.

    Args:
        node: The node to test.
        tag: Required tag name, or None for any tag.
        attribute_key: Required attribute key, or None for no attribute test.
        attribute_value: Value the attribute must equal or contain as a
            whitespace-separated token. None only requires the attribute to
            be present.

    Returns:
        True if the node satisfies every given criterion.
    """
    if tag is not None and node.tag != tag:
        return False
    if attribute_key is None:
        return True

    for key, value in node.attributes:
        if key != attribute_key:
            continue
        if attribute_value is None or value == attribute_value:
            return True
        return attribute_value in value.split()
    return False


def iter_matches(
    root: N,
    tag: str | None = None,
    attribute_key: str | None = None,
    attribute_value: str | None = None,
) -> Iterator[N]:
    """Lazily yield matching nodes of the subtree at root in document order.

    Args:
        root: Subtree root; it is tested as well as its descendants.
        tag: Required tag name, or None for any tag.
        attribute_key: Required attribute key, or None.
        attribute_value: Required attribute value or token, or None.

    Yields:
        Matching nodes in preorder.
    """
    stack: list[N] = [root]
    while stack:
        node = stack.pop()
        if node_matches(node, tag, attribute_key, attribute_value):
            yield node
        # reversed so the first child is popped next
        stack.extend(reversed(node.children))  # type: ignore[arg-type]


def find_all(
    root: N,
    tag: str | None = None,
    attribute_key: str | None = None,
    attribute_value: str | None = None,
) -> list[N]:
    """Return all matching nodes of the subtree at root in document order."""
    return list(iter_matches(root, tag, attribute_key, attribute_value))


def find_first(
    root: N,
    tag: str | None = None,
    attribute_key: str | None = None,
    attribute_value: str | None = None,
) -> N | None:
    """Return the first matching node in document order, or None."""
    return next(
        iter_matches(root, tag, attribute_key, attribute_value), None
    )


def find_all_by_class(root: N, class_name: str, tag: str | None = None) -> list[N]:
    """Shorthand for matching one token of the ``class`` attribute."""
    return find_all(root, tag, "class", class_name)


def find_first_by_class(
    root: N, class_name: str, tag: str | None = None
) -> N | None:
    """Shorthand for the first node carrying ``class_name`` in its class list."""
    return find_first(root, tag, "class", class_name)


def child_matches(
    node: N,
    tag: str | None = None,
    attribute_key: str | None = None,
    attribute_value: str | None = None,
) -> list[N]:
    """Return the direct children of node that match, in document order."""
    children: list[N] = list(node.children)  # type: ignore[arg-type]
    return [
        child
        for child in children
        if node_matches(child, tag, attribute_key, attribute_value)
    ]


def text_of(nodes: Iterable[TreeNode]) -> str:
    """Concatenate the full text content of several nodes."""
    return "".join(node.text_content() for node in nodes)
