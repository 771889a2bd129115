"""Data types for prediction records extracted from the ledger.

These are the values the extractors produce and the crawler and fan-out
aggregator merge. All models are frozen: once extracted, a record is never
mutated, only dropped during deduplication.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field

# Zero value for timestamps that are absent or unparseable.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class Outcome(IntEnum):
    """Judged outcome of a prediction.

    Values:
        UNKNOWN: Not yet judged, or the page showed something unrecognised.
        RIGHT: Judged right.
        WRONG: Judged wrong.
    """

    UNKNOWN = 0
    RIGHT = 1
    WRONG = 2


class PredictionSummary(BaseModel):
    """A prediction as listed on a list page or derived from its detail page."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(0, description="Prediction id, from the detail link")
    title: str = Field("", description="Prediction statement")
    creator: str = Field("", description="Login of the user who made it")
    created: datetime = Field(ZERO_TIME, description="When it was made")
    deadline: datetime = Field(ZERO_TIME, description="When it is judged")
    mean_confidence: float = Field(
        0.0, description="Mean confidence as a fraction; 0 if unparsed"
    )
    wager_count: int = Field(1, description="Number of wagers")
    outcome: Outcome = Field(Outcome.UNKNOWN, description="Judged outcome")


class PredictionResponse(BaseModel):
    """One user's confidence assignment and/or comment on a prediction."""

    model_config = ConfigDict(frozen=True)

    prediction_id: int = Field(..., description="Id of the prediction")
    time: datetime = Field(ZERO_TIME, description="When the response was made")
    user: str = Field("", description="Login of the responding user")
    confidence: float = Field(
        math.nan,
        description="Confidence as a fraction; NaN for a comment only",
    )
    comment: str = Field("", description="Comment text, possibly empty")

    @property
    def has_confidence(self) -> bool:
        """Whether the response carries a numeric confidence assignment."""
        return not math.isnan(self.confidence)


class PageInfo(BaseModel):
    """Position of a list page within the paginated listing."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="1-based page index")
    last_page: int = Field(
        ..., description="Index of the last page; equals index on the last page"
    )

    @property
    def is_last(self) -> bool:
        """True on the last page, or past it if the listing shrank."""
        return self.index >= self.last_page


class ListPage(BaseModel):
    """Everything extracted from one list page."""

    model_config = ConfigDict(frozen=True)

    summaries: tuple[PredictionSummary, ...] = ()
    page_info: PageInfo
