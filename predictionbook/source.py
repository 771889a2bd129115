"""PredictionSource: the ledger's operations behind one object.

PredictionSource owns the URL layout of the ledger and wires one shared
acquirer into the pagination crawler and the response fan-out, so that
every page fetched through it counts against the same rate limit and
permit pool.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from predictionbook.common.acquirer import ContentAcquirer, DocumentAcquirer
from predictionbook.common.exceptions import ExtractorAssumptionException
from predictionbook.common.settings import DEFAULT_BASE_URL, SourceSettings
from predictionbook.data_types import (
    ListPage,
    PredictionResponse,
    PredictionSummary,
)
from predictionbook.driver.fanout import (
    DEFAULT_MAX_ATTEMPTS,
    BarrierPolicy,
    DetailResult,
    ResponseAggregator,
)
from predictionbook.driver.pagination import PaginationCrawler


class PredictionSource:
    """Read access to a PredictionBook ledger.

    Example::

        async with PredictionSource.from_settings(SourceSettings()) as source:
            summaries = await source.all_predictions()
            responses = await source.all_responses(summaries)
    """

    def __init__(
        self,
        acquirer: DocumentAcquirer,
        base_url: str = DEFAULT_BASE_URL,
        *,
        logger: logging.Logger | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_delay: float = 0.0,
        barrier: BarrierPolicy = BarrierPolicy.FAIL_FAST,
    ) -> None:
        self.acquirer = acquirer
        self.base_url = base_url.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)
        self.crawler = PaginationCrawler(
            acquirer, self.list_page_url, logger=logger
        )
        self.aggregator = ResponseAggregator(
            acquirer,
            self.detail_url,
            max_attempts=max_attempts,
            retry_base_delay=retry_base_delay,
            barrier=barrier,
            logger=logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SourceSettings,
        stop_event: asyncio.Event | None = None,
        barrier: BarrierPolicy = BarrierPolicy.FAIL_FAST,
        logger: logging.Logger | None = None,
    ) -> PredictionSource:
        """Build a source together with a ContentAcquirer.

        Use the result as an async context manager so that the acquirer's
        HTTP client is closed.
        """
        return cls(
            ContentAcquirer.from_settings(settings, stop_event, logger=logger),
            settings.base_url,
            logger=logger,
            max_attempts=settings.max_attempts,
            retry_base_delay=settings.retry_base_delay,
            barrier=barrier,
        )

    async def close(self) -> None:
        close = getattr(self.acquirer, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> PredictionSource:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def list_page_url(self, index: int) -> str:
        return f"{self.base_url}/predictions/page/{index}"

    def detail_url(self, prediction_id: int) -> str:
        return f"{self.base_url}/predictions/{prediction_id}"

    async def retrieve_list_page(self, index: int) -> ListPage:
        """Fetch and extract one list page."""
        return await self.crawler.fetch_page(index)

    async def latest(self) -> PredictionSummary:
        """The newest prediction: the first entry on page 1.

        Raises:
            ExtractorAssumptionException: If page 1 lists no predictions.
        """
        page = await self.retrieve_list_page(1)
        if not page.summaries:
            raise ExtractorAssumptionException(
                "no predictions found", self.list_page_url(1)
            )
        return page.summaries[0]

    async def page_count(self) -> int:
        """Number of list pages, as advertised by page 1.

        Raises:
            ExtractorAssumptionException: If the last-page link on page 1
                could not be read.
        """
        page = await self.retrieve_list_page(1)
        if page.page_info.last_page < 1:
            raise ExtractorAssumptionException(
                "unable to extract page count",
                self.list_page_url(1),
                {"last_page": page.page_info.last_page},
            )
        return page.page_info.last_page

    async def all_predictions(self) -> list[PredictionSummary]:
        """Every prediction in the ledger, ascending by id."""
        return await self.crawler.crawl()

    async def predictions_since(self, cutoff: datetime) -> list[PredictionSummary]:
        """Predictions created at or after cutoff, ascending by id."""
        return await self.crawler.crawl_since(cutoff)

    async def retrieve_responses(
        self, prediction_id: int
    ) -> list[PredictionResponse]:
        """Responses on one detail page, in document order. Not retried."""
        detail = await self.aggregator.fetch_detail(prediction_id)
        return list(detail.responses)

    async def retrieve_detail(self, prediction_id: int) -> DetailResult:
        """Responses on one detail page plus the summary derived from it."""
        return await self.aggregator.fetch_detail(
            prediction_id, include_summary=True
        )

    async def all_responses(
        self, summaries: list[PredictionSummary]
    ) -> list[PredictionResponse]:
        """Responses of every given prediction, sorted by (id, time)."""
        return await self.aggregator.aggregate_responses(summaries)

    async def all_details(
        self, summaries: list[PredictionSummary]
    ) -> tuple[list[PredictionSummary], list[PredictionResponse]]:
        """Detail-page summaries and responses of every given prediction."""
        return await self.aggregator.aggregate_details(summaries)
