"""Prediction summary extraction.

Two sources produce a PredictionSummary: an entry on a list page, and a
prediction's own detail page. The detail page has no mean confidence or
wager count of its own, so both are derived from its responses.
"""

from __future__ import annotations

import math

from predictionbook.common.query import (
    child_matches,
    find_all_by_class,
    find_first,
    find_first_by_class,
    text_of,
)
from predictionbook.common.tree_node import TreeNode
from predictionbook.data_types import Outcome, PredictionSummary
from predictionbook.extractors.fields import (
    parse_outcome,
    parse_summary_confidence,
    parse_timestamp,
    parse_trailing_id,
    parse_wager_count,
)
from predictionbook.extractors.response import extract_response


def extract_summary(node: TreeNode) -> PredictionSummary:
    """Map a ``prediction``-classed list entry to a PredictionSummary.

    Args:
        node: The list entry subtree.

    Returns:
        The summary; fields that cannot be read keep their defaults.
    """
    title, prediction_id = _title_and_id(node)

    return PredictionSummary(
        id=prediction_id,
        title=title,
        creator=_creator(node),
        created=parse_timestamp(_title_attribute(node, "created_at")),
        deadline=parse_timestamp(_deadline_attribute(node)),
        mean_confidence=parse_summary_confidence(
            _class_text(node, "mean_confidence")
        ),
        wager_count=parse_wager_count(_class_text(node, "wagers_count")),
        outcome=_outcome(node),
    )


def extract_detail_summary(
    root: TreeNode, prediction_id: int
) -> PredictionSummary:
    """Derive a PredictionSummary from a prediction's detail page.

    The wager count is the number of responses on the page and the mean
    confidence is the mean of the responses that assign a confidence; it is
    NaN when none do.

    Args:
        root: Root of the detail page.
        prediction_id: Id of the prediction the page belongs to.
    """
    heading = find_first(root, tag="h1")
    title = heading.text_content().strip() if heading is not None else ""

    byline = _content_paragraphs(root)
    creator = text_of(
        link
        for paragraph in byline
        for link in child_matches(paragraph, "a", "class", "user")
    )
    dates = [
        date
        for paragraph in byline
        for date in child_matches(paragraph, None, "class", "date")
    ]
    created = parse_timestamp(dates[0].get_attribute("title") if dates else None)
    deadline = parse_timestamp(
        dates[-1].get_attribute("title") if dates else None
    )

    response_nodes = find_all_by_class(root, "response")
    confidences = [
        response.confidence
        for response in (
            extract_response(node, prediction_id) for node in response_nodes
        )
        if response.has_confidence
    ]
    mean_confidence = (
        math.fsum(confidences) / len(confidences) if confidences else math.nan
    )

    return PredictionSummary(
        id=prediction_id,
        title=title,
        creator=creator,
        created=created,
        deadline=deadline,
        mean_confidence=mean_confidence,
        wager_count=len(response_nodes),
        outcome=_outcome(root),
    )


def _title_and_id(node: TreeNode) -> tuple[str, int]:
    title_node = find_first_by_class(node, "title")
    if title_node is None:
        return "", 0
    link = find_first(title_node, tag="a")
    if link is None:
        return "", 0
    return link.text_content(), parse_trailing_id(link.get_attribute("href"))


def _creator(node: TreeNode) -> str:
    # Only the leading text: the element may also hold markup after the name.
    creator = find_first_by_class(node, "creator")
    if creator is None or creator.text is None:
        return ""
    return creator.text


def _title_attribute(node: TreeNode, class_name: str) -> str | None:
    found = find_first_by_class(node, class_name)
    return found.get_attribute("title") if found is not None else None


def _deadline_attribute(node: TreeNode) -> str | None:
    deadline = find_first_by_class(node, "deadline")
    if deadline is None:
        return None
    return _title_attribute(deadline, "date")


def _class_text(node: TreeNode, class_name: str) -> str:
    return text_of(find_all_by_class(node, class_name))


def _outcome(node: TreeNode) -> Outcome:
    outcome = find_first_by_class(node, "outcome")
    if outcome is None:
        return Outcome.UNKNOWN
    return parse_outcome(outcome.text_content())


def _content_paragraphs(root: TreeNode) -> list[TreeNode]:
    content = find_first(root, attribute_key="id", attribute_value="content")
    if content is None:
        return []
    return child_matches(content, "p")
