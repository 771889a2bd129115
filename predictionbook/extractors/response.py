"""Prediction response extraction from detail pages."""

from __future__ import annotations

from predictionbook.common.query import (
    find_all_by_class,
    find_first_by_class,
    text_of,
)
from predictionbook.common.tree_node import TreeNode
from predictionbook.data_types import PredictionResponse
from predictionbook.extractors.fields import (
    parse_response_confidence,
    parse_timestamp,
)


def extract_response(node: TreeNode, prediction_id: int) -> PredictionResponse:
    """Map a ``response``-classed subtree to a PredictionResponse.

    A response without a ``<number>%`` confidence is a comment only and gets
    a NaN confidence; check it with ``has_confidence`` or ``math.isnan``.

    Args:
        node: The response subtree.
        prediction_id: Id of the prediction the response belongs to. It is
            recorded as given, not checked against any summary.
    """
    date = find_first_by_class(node, "date")

    return PredictionResponse(
        prediction_id=prediction_id,
        time=parse_timestamp(
            date.get_attribute("title") if date is not None else None
        ),
        user=text_of(find_all_by_class(node, "user")),
        confidence=parse_response_confidence(
            text_of(find_all_by_class(node, "confidence"))
        ),
        comment=text_of(find_all_by_class(node, "comment")),
    )


def extract_responses(root: TreeNode, prediction_id: int) -> list[PredictionResponse]:
    """Extract every response on a detail page, in document order."""
    return [
        extract_response(node, prediction_id)
        for node in find_all_by_class(root, "response")
    ]
