"""Record extractors mapping document subtrees to prediction records."""

from predictionbook.extractors.page_info import (
    extract_list_page,
    extract_page_info,
)
from predictionbook.extractors.response import (
    extract_response,
    extract_responses,
)
from predictionbook.extractors.summary import (
    extract_detail_summary,
    extract_summary,
)

__all__ = [
    "extract_detail_summary",
    "extract_list_page",
    "extract_page_info",
    "extract_response",
    "extract_responses",
    "extract_summary",
]
