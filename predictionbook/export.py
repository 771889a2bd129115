"""CSV export of extracted predictions and responses.

Rows are written in the order given, with no header row. Times are written
as Unix seconds and outcomes as their integer values.
"""

from __future__ import annotations

import csv
import math
from collections.abc import Iterable
from datetime import datetime
from typing import TextIO

from predictionbook.data_types import PredictionResponse, PredictionSummary


def unix_seconds(value: datetime) -> int:
    return int(value.timestamp())


def prediction_row(summary: PredictionSummary) -> list[str | int | float]:
    """One predictions CSV row.

    Columns: id, created, deadline, mean confidence, wager count, outcome,
    creator, title.
    """
    return [
        summary.id,
        unix_seconds(summary.created),
        unix_seconds(summary.deadline),
        summary.mean_confidence,
        summary.wager_count,
        int(summary.outcome),
        summary.creator,
        summary.title,
    ]


def response_row(response: PredictionResponse) -> list[str | int | float]:
    """One responses CSV row.

    Columns: prediction id, time, user, confidence, comment. The confidence
    column is empty for a comment without an assignment.
    """
    return [
        response.prediction_id,
        unix_seconds(response.time),
        response.user,
        "" if math.isnan(response.confidence) else response.confidence,
        response.comment,
    ]


def write_predictions(
    summaries: Iterable[PredictionSummary], stream: TextIO
) -> int:
    """Write summaries to stream; returns the number of rows written.

    The stream should be opened with ``newline=""``.
    """
    writer = csv.writer(stream)
    count = 0
    for summary in summaries:
        writer.writerow(prediction_row(summary))
        count += 1
    return count


def write_responses(
    responses: Iterable[PredictionResponse], stream: TextIO
) -> int:
    """Write responses to stream; returns the number of rows written."""
    writer = csv.writer(stream)
    count = 0
    for response in responses:
        writer.writerow(response_row(response))
        count += 1
    return count
