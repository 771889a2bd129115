"""Pagination crawler over the prediction list pages.

The crawler walks list pages strictly in increasing index order, one page
at a time, re-reading the last page index from every page because the live
listing can grow while the crawl is running. When the crawl ends the
accumulated summaries are sorted by id and duplicate ids are collapsed:
predictions added during a crawl shift page boundaries, so the same
prediction can be seen on two consecutive pages.

Any page fetch error is fatal to the crawl; summaries accumulated so far
are discarded with it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from predictionbook.common.acquirer import DocumentAcquirer
from predictionbook.common.exceptions import ExtractorAssumptionException
from predictionbook.data_types import ListPage, PredictionSummary
from predictionbook.extractors import extract_list_page


def merge_summaries(
    summaries: Iterable[PredictionSummary],
) -> list[PredictionSummary]:
    """Sort summaries by id and keep one summary per id.

    Of several summaries with the same id, the one seen first is kept.

    Args:
        summaries: Summaries in crawl order.

    Returns:
        New list, ascending by id, without duplicate ids.
    """
    # sorted() is stable, so the first-seen duplicate sorts first
    merged: list[PredictionSummary] = []
    for summary in sorted(summaries, key=lambda s: s.id):
        if merged and merged[-1].id == summary.id:
            continue
        merged.append(summary)
    return merged


class PaginationCrawler:
    """Drives an acquirer over the list pages.

    Example::

        crawler = PaginationCrawler(
            acquirer,
            list_page_url=lambda index: f"{base}/predictions/page/{index}",
        )
        everything = await crawler.crawl()
        recent = await crawler.crawl_since(datetime(2024, 1, 1, tzinfo=timezone.utc))
    """

    def __init__(
        self,
        acquirer: DocumentAcquirer,
        list_page_url: Callable[[int], str],
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the crawler.

        Args:
            acquirer: Acquirer used for every page fetch.
            list_page_url: Maps a 1-based page index to its URL.
            logger: Logger to report to; defaults to the module logger.
        """
        self.acquirer = acquirer
        self.list_page_url = list_page_url
        self.logger = logger or logging.getLogger(__name__)

    async def fetch_page(self, index: int) -> ListPage:
        """Fetch and extract one list page.

        Raises:
            AcquisitionException: If the page could not be acquired.
        """
        root = await self.acquirer.acquire(self.list_page_url(index))
        return extract_list_page(root, index)

    async def crawl(self) -> list[PredictionSummary]:
        """Crawl every list page.

        Returns:
            All summaries, ascending by id, without duplicate ids.

        Raises:
            AcquisitionException: If any page could not be acquired.
            ExtractorAssumptionException: If a page's last-page link could
                not be read.
        """
        return await self._crawl(cutoff=None)

    async def crawl_since(self, cutoff: datetime) -> list[PredictionSummary]:
        """Crawl list pages until a prediction created before cutoff is seen.

        Pages list predictions newest first. The first summary created
        before ``cutoff`` is discarded together with everything after it,
        and no further pages are fetched. A naive cutoff is taken as UTC.

        Args:
            cutoff: Oldest creation time to keep.

        Returns:
            Summaries created at or after cutoff, ascending by id, without
            duplicate ids.
        """
        if cutoff.tzinfo is None:
            cutoff = cutoff.replace(tzinfo=timezone.utc)
        return await self._crawl(cutoff=cutoff)

    async def _crawl(self, cutoff: datetime | None) -> list[PredictionSummary]:
        accumulated: list[PredictionSummary] = []
        current_index = 1

        while True:
            page = await self.fetch_page(current_index)
            total_pages = page.page_info.last_page

            reached_cutoff = False
            if cutoff is None:
                accumulated.extend(page.summaries)
            else:
                for summary in page.summaries:
                    if summary.created < cutoff:
                        reached_cutoff = True
                        break
                    accumulated.append(summary)

            self.logger.info(
                f"Fetched list page {current_index} of {total_pages} "
                f"({len(page.summaries)} predictions, "
                f"{len(accumulated)} accumulated)"
            )

            if reached_cutoff:
                self.logger.info(
                    f"Reached cutoff {cutoff} on page {current_index}"
                )
                break

            if total_pages < 1:
                raise ExtractorAssumptionException(
                    "unable to extract page count",
                    self.list_page_url(current_index),
                    {"page_index": current_index, "last_page": total_pages},
                )
            if page.page_info.is_last:
                break
            current_index += 1

        merged = merge_summaries(accumulated)
        if len(merged) != len(accumulated):
            self.logger.info(
                f"Dropped {len(accumulated) - len(merged)} duplicate predictions"
            )
        return merged
