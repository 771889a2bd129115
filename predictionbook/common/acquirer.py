"""Rate-limited, bounded-concurrency document acquisition.

This module provides ContentAcquirer, which fetches one URL over HTTP and
parses the body into a TreeNode. Every acquisition:

1. Waits on a shared pyrate_limiter Limiter (global request spacing)
2. Takes one slot from a fixed-size permit pool (asyncio.Semaphore)
3. Issues the GET, checks the status and parses the body
4. Releases the slot on every exit path

Callers above (the pagination crawler and the response fan-out) may issue
any number of logical acquisitions at once; the limiter and the permit pool
alone decide how hard the remote site is hit. The acquirer never retries.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

import httpx
from pyrate_limiter import InMemoryBucket, Limiter, Rate

from predictionbook.common.exceptions import (
    AcquisitionCancelledException,
    HTTPStatusException,
    RequestTimeoutException,
    TransportException,
)
from predictionbook.common.settings import SourceSettings
from predictionbook.common.tree_node import TreeNode, parse_document

T = TypeVar("T")


class DocumentAcquirer(Protocol):
    """Anything that can turn a URL into a parsed document tree."""

    async def acquire(self, url: str) -> TreeNode:
        """Fetch and parse the document at url.

        Raises:
            AcquisitionException: Or one of its subclasses.
        """
        ...


class ContentAcquirer:
    """Fetches and parses documents under shared rate and concurrency limits.

    Cancellation is cooperative: when ``stop_event`` is set, or the
    ``wait_timeout`` elapses, an acquisition still waiting on the rate
    limiter or on a permit fails with AcquisitionCancelledException. A
    request already in flight is allowed to finish. Native task
    cancellation (asyncio.CancelledError) is propagated unchanged, after
    any held permit has been returned.

    Example::

        from pyrate_limiter import Duration, Rate

        async with ContentAcquirer(
            rates=[Rate(2, Duration.SECOND * 2)],
            max_concurrent_requests=2,
        ) as acquirer:
            root = await acquirer.acquire("https://predictionbook.com/predictions/page/1")
    """

    def __init__(
        self,
        rates: list[Rate] | None = None,
        max_concurrent_requests: int = 2,
        timeout: float | None = None,
        wait_timeout: float | None = None,
        stop_event: asyncio.Event | None = None,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the acquirer.

        Args:
            rates: pyrate_limiter Rate objects enforced across all
                acquisitions. If None, no rate limiting is applied.
            max_concurrent_requests: Capacity of the permit pool.
            timeout: HTTP request timeout in seconds. None means no timeout.
                Ignored when ``client`` is given.
            wait_timeout: Longest time an acquisition may wait for the rate
                limiter and a permit combined. None waits indefinitely.
            stop_event: Optional event that cancels waiting acquisitions.
            client: Optional pre-built httpx.AsyncClient. The acquirer does
                not close a client it did not create.
            logger: Logger to report to; defaults to the module logger.
        """
        if max_concurrent_requests < 1:
            raise ValueError(
                "max_concurrent_requests must be at least 1, "
                f"got {max_concurrent_requests}"
            )

        self.timeout = timeout
        self.wait_timeout = wait_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.stop_event = stop_event
        self.logger = logger or logging.getLogger(__name__)

        self._rates = rates
        self._limiter: Limiter | None = None
        if rates:
            self._limiter = Limiter(InMemoryBucket(rates))
            self.logger.info(
                f"Rate limiter initialized with {len(rates)} rate(s): "
                + ", ".join(f"{r.limit}/{r.interval}ms" for r in rates)
            )
        else:
            self.logger.info("No rate limits configured")

        self._permits = asyncio.Semaphore(max_concurrent_requests)

        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(
                timeout=timeout, follow_redirects=True
            )
            self._owns_client = True

        # Statistics
        self._total_requests = 0
        self._in_flight = 0
        self._peak_in_flight = 0

    @classmethod
    def from_settings(
        cls,
        settings: SourceSettings,
        stop_event: asyncio.Event | None = None,
        logger: logging.Logger | None = None,
    ) -> ContentAcquirer:
        """Build an acquirer from SourceSettings."""
        return cls(
            rates=settings.rate_limit.to_rates(),
            max_concurrent_requests=settings.max_concurrent_requests,
            timeout=settings.request_timeout,
            stop_event=stop_event,
            logger=logger,
        )

    async def close(self) -> None:
        """Close the HTTP client if this acquirer created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ContentAcquirer:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def acquire(self, url: str) -> TreeNode:
        """Fetch url and parse the body into a document tree.

        Args:
            url: Absolute URL to GET.

        Returns:
            Root node of the parsed document.

        Raises:
            AcquisitionCancelledException: Stop requested, wait timed out or
                the rate limiter refused, before the request was issued.
            TransportException: Connection or I/O failure (including
                RequestTimeoutException).
            HTTPStatusException: The server answered with a non-200 status.
            DocumentParseException: The body could not be parsed.
        """
        deadline: float | None = None
        if self.wait_timeout is not None:
            deadline = asyncio.get_running_loop().time() + self.wait_timeout

        await self._wait_stage(
            lambda: self._throttle(url), url, "rate_limiter", deadline
        )
        await self._wait_stage(
            self._permits.acquire,
            url,
            "permit",
            deadline,
            on_abandon=self._permits.release,
        )

        try:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            return await self._fetch(url)
        finally:
            self._in_flight -= 1
            self._permits.release()

    async def _throttle(self, url: str) -> None:
        if self._limiter is None:
            return
        acquired = await self._limiter.try_acquire_async("acquire")
        if acquired is False:
            raise AcquisitionCancelledException(
                url, "rate_limiter", "rate limiter refused the request"
            )

    async def _wait_stage(
        self,
        start: Callable[[], Awaitable[T]],
        url: str,
        stage: str,
        deadline: float | None,
        on_abandon: Callable[[], None] | None = None,
    ) -> T:
        """Await one of the pre-request waits, honouring stop and deadline.

        Args:
            start: Factory for the awaitable to wait on.
            url: URL being acquired, for error context.
            stage: Name of the wait, for error context.
            deadline: Loop time after which waiting is abandoned, or None.
            on_abandon: Undo action for a wait that completed after it was
                abandoned (e.g. returning a permit).

        Raises:
            AcquisitionCancelledException: If the stop event fired or the
                deadline passed first.
        """
        stop_event = self.stop_event
        if stop_event is not None and stop_event.is_set():
            raise AcquisitionCancelledException(url, stage, "stop requested")

        if stop_event is None and deadline is None:
            return await start()

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[T] = asyncio.ensure_future(start())
        stopper = (
            asyncio.ensure_future(stop_event.wait())
            if stop_event is not None
            else None
        )
        timeout = None if deadline is None else max(0.0, deadline - loop.time())

        won = False
        try:
            pending_set: set[asyncio.Future[Any]] = {waiter}
            if stopper is not None:
                pending_set.add(stopper)
            done, _ = await asyncio.wait(
                pending_set,
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if waiter in done:
                won = True
                return waiter.result()
            reason = (
                "stop requested"
                if stopper is not None and stopper in done
                else f"wait exceeded {self.wait_timeout}s"
            )
        finally:
            leftovers = [
                f for f in (waiter, stopper) if f is not None and not f.done()
            ]
            for f in leftovers:
                f.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)
            if (
                not won
                and on_abandon is not None
                and waiter.done()
                and not waiter.cancelled()
                and waiter.exception() is None
            ):
                on_abandon()

        self.logger.debug(f"Abandoned wait on {stage} for {url}: {reason}")
        raise AcquisitionCancelledException(url, stage, reason)

    async def _fetch(self, url: str) -> TreeNode:
        self.logger.debug(f"Retrieving {url}")
        self._total_requests += 1

        try:
            http_response = await self._client.get(url)
        except httpx.TimeoutException as e:
            self.logger.debug(f"HTTP request timeout: {e!r}")
            raise RequestTimeoutException(url, self.timeout) from e
        except httpx.RequestError as e:
            self.logger.debug(f"HTTP request error: {e!r}")
            raise TransportException(url, str(e) or type(e).__name__) from e

        if http_response.status_code != 200:
            self.logger.debug(
                f"HTTP error: {http_response.status_code} for {url}"
            )
            raise HTTPStatusException(http_response.status_code, url)

        root = parse_document(http_response.content, url)
        self.logger.debug(f"Retrieved {url}")
        return root

    @property
    def state(self) -> dict[str, Any]:
        """Get current acquirer state for monitoring.

        Returns:
            Dictionary with current state information.
        """
        rates_info = []
        if self._rates:
            for r in self._rates:
                rates_info.append({"limit": r.limit, "interval_ms": r.interval})

        return {
            "rates": rates_info,
            "max_concurrent_requests": self.max_concurrent_requests,
            "total_requests": self._total_requests,
            "in_flight": self._in_flight,
            "peak_in_flight": self._peak_in_flight,
        }
