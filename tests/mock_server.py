"""Mock PredictionBook ledger.

This module defines the prediction data used across the tests and renders
it as list pages and detail pages with the same markup the live site uses.
The ledger is served by an aiohttp app for integration tests, and can also
be rendered into a URL -> HTML map for tests that use a fake acquirer.

Predictions are listed newest first, so page 1 holds the highest ids.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from html import escape

from aiohttp import web

TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
DEFAULT_PAGE_SIZE = 5


@dataclass
class MockResponse:
    """A response on a mock prediction."""

    user: str
    time: datetime
    confidence: int | None
    comment: str = ""


@dataclass
class MockPrediction:
    """A prediction in the mock ledger."""

    id: int
    title: str
    creator: str
    created: datetime
    deadline: datetime
    outcome: str = ""
    responses: list[MockResponse] = field(default_factory=list)

    @property
    def confidences(self) -> list[int]:
        return [r.confidence for r in self.responses if r.confidence is not None]

    @property
    def mean_confidence(self) -> float:
        confidences = self.confidences
        return sum(confidences) / len(confidences) if confidences else 0.0


USERS = ["alice", "bob", "carol", "dave"]
OUTCOMES = ["", "right", "wrong"]


def make_prediction(prediction_id: int) -> MockPrediction:
    """Deterministically build the prediction with the given id.

    Higher ids are newer. Every prediction has between one and three
    responses; every fourth prediction's last response is a comment only.
    """
    created = BASE_TIME + timedelta(hours=prediction_id)
    responses = []
    for n in range(prediction_id % 3 + 1):
        responses.append(
            MockResponse(
                user=USERS[(prediction_id + n) % len(USERS)],
                time=created + timedelta(minutes=10 * n),
                confidence=50 + 10 * n,
                comment=f"Response {n} on {prediction_id}",
            )
        )
    if prediction_id % 4 == 0:
        responses.append(
            MockResponse(
                user="eve",
                time=created + timedelta(days=1),
                confidence=None,
                comment="Just a comment",
            )
        )
    return MockPrediction(
        id=prediction_id,
        title=f"Prediction number {prediction_id} will come true",
        creator=USERS[prediction_id % len(USERS)],
        created=created,
        deadline=created + timedelta(days=30),
        outcome=OUTCOMES[prediction_id % len(OUTCOMES)],
        responses=responses,
    )


class MockLedger:
    """In-memory ledger with scriptable failures.

    Attributes:
        predictions: Predictions, newest first.
        page_size: Predictions per list page.
        detail_failures: Prediction id -> number of upcoming detail page
            requests to answer with HTTP 500.
        requests: Every path requested, in arrival order.
    """

    def __init__(
        self, count: int = 12, page_size: int = DEFAULT_PAGE_SIZE
    ) -> None:
        self.predictions = [
            make_prediction(pid) for pid in range(count, 0, -1)
        ]
        self.page_size = page_size
        self.detail_failures: dict[int, int] = defaultdict(int)
        self.requests: list[str] = []

    @property
    def last_page(self) -> int:
        return max(1, -(-len(self.predictions) // self.page_size))

    def page(self, index: int) -> list[MockPrediction]:
        start = (index - 1) * self.page_size
        return self.predictions[start : start + self.page_size]

    def get(self, prediction_id: int) -> MockPrediction | None:
        for prediction in self.predictions:
            if prediction.id == prediction_id:
                return prediction
        return None

    def documents(self, base_url: str) -> dict[str, str]:
        """Render every page of the ledger, keyed by absolute URL."""
        docs = {
            f"{base_url}/predictions/page/{index}": generate_list_page_html(
                self, index
            )
            for index in range(1, self.last_page + 1)
        }
        for prediction in self.predictions:
            docs[f"{base_url}/predictions/{prediction.id}"] = (
                generate_detail_page_html(prediction)
            )
        return docs


def _timestamp(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def generate_summary_html(prediction: MockPrediction) -> str:
    wagers = len(prediction.responses)
    wagers_text = "1 wager" if wagers == 1 else f"{wagers} wagers"
    outcome = (
        f'<span class="outcome">{prediction.outcome}</span>'
        if prediction.outcome
        else ""
    )
    return f"""
    <li class="prediction">
      <span class="title"><a href="/predictions/{prediction.id}">{escape(prediction.title)}</a></span>
      <span class="creator">{prediction.creator}<span class="badge">*</span></span>
      <span class="created_at" title="{_timestamp(prediction.created)}">created</span>
      <span class="deadline">known on
        <span class="date" title="{_timestamp(prediction.deadline)}">soon</span>
      </span>
      <span class="mean_confidence">{prediction.mean_confidence:.2f}% confidence</span>
      <span class="wagers_count">{wagers_text}</span>
      {outcome}
    </li>"""


def generate_list_page_html(ledger: MockLedger, index: int) -> str:
    """Render one list page.

    Every page except the last carries a "last" link in its pagination nav.
    """
    items = "".join(generate_summary_html(p) for p in ledger.page(index))
    last_link = ""
    if index < ledger.last_page:
        last_link = (
            f'<span class="last"><a href="/predictions/page/{ledger.last_page}">'
            "Last &raquo;</a></span>"
        )
    return f"""<!DOCTYPE html>
<html>
<head><title>Recent predictions</title></head>
<body>
  <div id="content">
    <ul class="predictions">{items}
    </ul>
    <nav class="pagination">
      <span class="current">{index}</span>
      {last_link}
    </nav>
  </div>
</body>
</html>"""


def generate_response_html(response: MockResponse) -> str:
    confidence = (
        f'<span class="confidence">{response.confidence}%</span>'
        if response.confidence is not None
        else ""
    )
    return f"""
      <li class="response">
        <span class="date" title="{_timestamp(response.time)}">ago</span>
        <a class="user" href="/users/{response.user}">{response.user}</a>
        {confidence}
        <span class="comment">{escape(response.comment)}</span>
      </li>"""


def generate_detail_page_html(prediction: MockPrediction) -> str:
    """Render a prediction's detail page."""
    responses = "".join(generate_response_html(r) for r in prediction.responses)
    outcome = prediction.outcome or "unknown"
    return f"""<!DOCTYPE html>
<html>
<head><title>{escape(prediction.title)}</title></head>
<body>
  <div id="content">
    <h1>
      {escape(prediction.title)}
    </h1>
    <p>
      Created by <a class="user" href="/users/{prediction.creator}">{prediction.creator}</a>
      <span class="date" title="{_timestamp(prediction.created)}">then</span>;
      known on <span class="date" title="{_timestamp(prediction.deadline)}">later</span>
    </p>
    <p>Outcome: <span class="outcome">{outcome}</span></p>
    <ul class="responses">{responses}
    </ul>
  </div>
</body>
</html>"""


# =============================================================================
# aiohttp app
# =============================================================================


def create_app(ledger: MockLedger | None = None) -> web.Application:
    """Create the aiohttp application serving the ledger.

    Routes:
        /predictions/page/{index}: list pages
        /predictions/{id}: detail pages (404 for unknown ids)
        /status/{code}: empty page with the given status
        /empty: 200 with an empty body
    """
    ledger = ledger or MockLedger()

    async def handle_list_page(request: web.Request) -> web.Response:
        ledger.requests.append(request.path)
        index = int(request.match_info["index"])
        return web.Response(
            text=generate_list_page_html(ledger, index),
            content_type="text/html",
        )

    async def handle_detail_page(request: web.Request) -> web.Response:
        ledger.requests.append(request.path)
        prediction = ledger.get(int(request.match_info["id"]))
        if prediction is None:
            return web.Response(
                text="<html><body>Not found</body></html>",
                status=404,
                content_type="text/html",
            )
        if ledger.detail_failures[prediction.id] > 0:
            ledger.detail_failures[prediction.id] -= 1
            return web.Response(
                text="<html><body>Internal error</body></html>",
                status=500,
                content_type="text/html",
            )
        return web.Response(
            text=generate_detail_page_html(prediction),
            content_type="text/html",
        )

    async def handle_status(request: web.Request) -> web.Response:
        return web.Response(
            text="<html><body>status</body></html>",
            status=int(request.match_info["code"]),
            content_type="text/html",
        )

    async def handle_empty(request: web.Request) -> web.Response:
        return web.Response(body=b"", content_type="text/html")

    app = web.Application()
    app.router.add_get("/predictions/page/{index:\\d+}", handle_list_page)
    app.router.add_get("/predictions/{id:\\d+}", handle_detail_page)
    app.router.add_get("/status/{code:\\d+}", handle_status)
    app.router.add_get("/empty", handle_empty)
    return app
