"""List page extraction: pagination info and the page's summaries."""

from __future__ import annotations

from predictionbook.common.query import (
    find_all,
    find_all_by_class,
    find_first,
)
from predictionbook.common.tree_node import TreeNode
from predictionbook.data_types import ListPage, PageInfo
from predictionbook.extractors.fields import parse_prefixed_int
from predictionbook.extractors.summary import extract_summary

LIST_PAGE_PREFIX = "/predictions/page/"


def extract_page_info(root: TreeNode, index: int) -> PageInfo:
    """Read the pagination position of a list page.

    The last page carries no "go to last page" link, so its ``last_page``
    is its own index. A link that is present but unreadable gives 0.

    Args:
        root: Root of the list page.
        index: The 1-based index the page was requested with.
    """
    href = _last_page_href(root)
    if href is None:
        return PageInfo(index=index, last_page=index)
    return PageInfo(
        index=index, last_page=parse_prefixed_int(href, LIST_PAGE_PREFIX)
    )


def extract_list_page(root: TreeNode, index: int) -> ListPage:
    """Extract the summaries and the pagination info of one list page."""
    return ListPage(
        summaries=tuple(
            extract_summary(node)
            for node in find_all_by_class(root, "prediction")
        ),
        page_info=extract_page_info(root, index),
    )


def _last_page_href(root: TreeNode) -> str | None:
    for nav in find_all(root, "nav", "class", "pagination"):
        for last in find_all_by_class(nav, "last"):
            link = find_first(last, tag="a")
            if link is not None:
                href = link.get_attribute("href")
                if href is not None:
                    return href
    return None
