"""Response fan-out over prediction detail pages.

One asyncio task is launched per prediction. Each task fetches the
prediction's detail page through the shared acquirer, extracts its
responses (and optionally a summary derived from the page), and retries
its own fetch and extraction up to ``max_attempts`` times. This layer does
not throttle: the acquirer's rate limiter and permit pool bound the real
traffic, however many tasks are waiting on them.

The tasks are joined at an explicit barrier:

- FAIL_FAST: the first task to run out of attempts fails the whole
  operation with its own exception. Every sibling still running is
  cancelled and awaited before the exception propagates.
- COLLECT_ALL: every task runs to completion, then any failures are raised
  together as ResponseAggregationException.

Either way the result is all or nothing, and the returned responses are
sorted by (prediction id, time), so completion order never shows through.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from predictionbook.common.acquirer import DocumentAcquirer
from predictionbook.common.exceptions import (
    AcquisitionCancelledException,
    ResponseAggregationException,
)
from predictionbook.data_types import PredictionResponse, PredictionSummary
from predictionbook.extractors import extract_detail_summary, extract_responses

DEFAULT_MAX_ATTEMPTS = 3


class BarrierPolicy(Enum):
    """How the fan-out joins its tasks.

    Values:
        FAIL_FAST: Abort on the first terminal task failure.
        COLLECT_ALL: Wait for every task, then report all failures.
    """

    FAIL_FAST = "fail_fast"
    COLLECT_ALL = "collect_all"


@dataclass(frozen=True)
class DetailResult:
    """What one detail page yielded.

    Attributes:
        prediction_id: The prediction the page belongs to.
        responses: Responses in document order.
        summary: Summary derived from the page, when requested.
    """

    prediction_id: int
    responses: tuple[PredictionResponse, ...]
    summary: PredictionSummary | None = None


def sort_responses(
    responses: Iterable[PredictionResponse],
) -> list[PredictionResponse]:
    """Order responses by prediction id, then time."""
    return sorted(responses, key=lambda r: (r.prediction_id, r.time))


class ResponseAggregator:
    """Fans the acquirer out over many detail pages and merges the results.

    Example::

        aggregator = ResponseAggregator(
            acquirer,
            detail_url=lambda pid: f"{base}/predictions/{pid}",
        )
        responses = await aggregator.aggregate_responses(summaries)
    """

    def __init__(
        self,
        acquirer: DocumentAcquirer,
        detail_url: Callable[[int], str],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_delay: float = 0.0,
        barrier: BarrierPolicy = BarrierPolicy.FAIL_FAST,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            acquirer: Shared acquirer; it alone bounds real concurrency.
            detail_url: Maps a prediction id to its detail page URL.
            max_attempts: Total attempts per prediction, including the first.
            retry_base_delay: Base delay for exponential backoff between
                attempts: ``retry_base_delay * 2 ** (attempt - 1)`` seconds.
                0 retries immediately.
            barrier: Join policy for the fan-out tasks.
            logger: Logger to report to; defaults to the module logger.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.acquirer = acquirer
        self.detail_url = detail_url
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.barrier = barrier
        self.logger = logger or logging.getLogger(__name__)

    async def fetch_detail(
        self, prediction_id: int, include_summary: bool = False
    ) -> DetailResult:
        """Fetch one detail page and extract it, with a single attempt."""
        root = await self.acquirer.acquire(self.detail_url(prediction_id))
        return DetailResult(
            prediction_id=prediction_id,
            responses=tuple(extract_responses(root, prediction_id)),
            summary=(
                extract_detail_summary(root, prediction_id)
                if include_summary
                else None
            ),
        )

    async def fetch_detail_with_retry(
        self, prediction_id: int, include_summary: bool = False
    ) -> DetailResult:
        """Fetch one detail page, retrying up to ``max_attempts`` times.

        A cancelled acquisition is not retried.

        Raises:
            Exception: The last attempt's exception once attempts run out.
        """
        attempt = 1
        while True:
            try:
                return await self.fetch_detail(prediction_id, include_summary)
            except AcquisitionCancelledException:
                raise
            except Exception as e:
                if attempt >= self.max_attempts:
                    raise
                delay = self.retry_base_delay * (2 ** (attempt - 1))
                self.logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} for prediction "
                    f"{prediction_id} failed: {e}"
                    + (f"; retrying in {delay:.1f}s" if delay else "")
                )
                if delay:
                    await asyncio.sleep(delay)
                attempt += 1

    async def aggregate_responses(
        self, summaries: Iterable[PredictionSummary]
    ) -> list[PredictionResponse]:
        """Collect the responses of every given prediction.

        Returns:
            All responses, sorted by (prediction id, time).

        Raises:
            Exception: Under FAIL_FAST, the terminal exception of the first
                prediction to run out of attempts.
            ResponseAggregationException: Under COLLECT_ALL, if any
                prediction ran out of attempts.
        """
        results = await self._fan_out([s.id for s in summaries], False)
        return sort_responses(r for result in results for r in result.responses)

    async def aggregate_details(
        self, summaries: Iterable[PredictionSummary]
    ) -> tuple[list[PredictionSummary], list[PredictionResponse]]:
        """Collect responses and detail-page summaries of every prediction.

        Returns:
            (summaries sorted by id, responses sorted by (prediction id, time)).
        """
        results = await self._fan_out([s.id for s in summaries], True)
        detail_summaries = sorted(
            (result.summary for result in results if result.summary is not None),
            key=lambda s: s.id,
        )
        responses = sort_responses(
            r for result in results for r in result.responses
        )
        return detail_summaries, responses

    async def _fan_out(
        self, prediction_ids: list[int], include_summary: bool
    ) -> list[DetailResult]:
        tasks = {
            asyncio.create_task(
                self.fetch_detail_with_retry(pid, include_summary),
                name=f"prediction-{pid}",
            ): pid
            for pid in prediction_ids
        }
        if not tasks:
            return []

        self.logger.info(f"Retrieving responses for {len(tasks)} predictions")
        try:
            if self.barrier is BarrierPolicy.COLLECT_ALL:
                return await self._join_collect_all(tasks)
            return await self._join_fail_fast(tasks)
        finally:
            await self._drain(tasks)

    async def _join_fail_fast(
        self, tasks: dict[asyncio.Task[DetailResult], int]
    ) -> list[DetailResult]:
        results: list[DetailResult] = []
        collected = 0
        pending: set[asyncio.Task[DetailResult]] = set(tasks)

        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_EXCEPTION
            )
            for task in sorted(done, key=tasks.__getitem__):
                error = task.exception()
                if error is not None:
                    self.logger.error(
                        f"Got an error while retrieving responses for "
                        f"prediction {tasks[task]}: {error}",
                        extra={
                            "prediction_id": tasks[task],
                            "completed": len(results),
                            "outstanding": len(pending),
                        },
                    )
                    raise error
                result = task.result()
                results.append(result)
                collected += len(result.responses)
            self.logger.info(
                f"Collected {collected} responses from "
                f"{len(results)}/{len(tasks)} predictions"
            )

        self.logger.info("Finished collecting responses")
        return results

    async def _join_collect_all(
        self, tasks: dict[asyncio.Task[DetailResult], int]
    ) -> list[DetailResult]:
        await asyncio.wait(tasks)

        errors: dict[int, Exception] = {}
        results: list[DetailResult] = []
        for task, pid in tasks.items():
            error = task.exception()
            if error is None:
                results.append(task.result())
            elif isinstance(error, Exception):
                errors[pid] = error
            else:
                raise error

        if errors:
            self.logger.error(
                f"Response retrieval failed for {len(errors)} of "
                f"{len(tasks)} predictions",
                extra={"failed_prediction_ids": sorted(errors)},
            )
            raise ResponseAggregationException(errors)

        self.logger.info(
            f"Finished collecting responses from {len(results)} predictions"
        )
        return results

    async def _drain(self, tasks: dict[asyncio.Task[DetailResult], int]) -> None:
        unfinished = [task for task in tasks if not task.done()]
        for task in unfinished:
            task.cancel()
        if unfinished:
            self.logger.debug(
                f"Cancelling {len(unfinished)} outstanding response tasks"
            )
            await asyncio.gather(*unfinished, return_exceptions=True)
        # Mark failures of already finished siblings as retrieved.
        for task in tasks:
            if task.done() and not task.cancelled():
                task.exception()
