"""Configuration for the acquirer and the prediction source.

Everything here is injected at construction time; no component reads
configuration from the environment or from module globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pyrate_limiter import Rate

DEFAULT_BASE_URL = "https://predictionbook.com"


@dataclass(frozen=True)
class RateLimitSettings:
    """Shared request rate limit.

    Expressed as a sustained rate plus a burst allowance, and converted to
    pyrate_limiter Rate objects for the acquirer.

    Attributes:
        requests_per_second: Sustained request rate.
        burst: Number of requests that may be issued back to back.
    """

    requests_per_second: float = 1.0
    burst: int = 2

    def __post_init__(self) -> None:
        if self.requests_per_second <= 0:
            raise ValueError(
                f"requests_per_second must be positive, got {self.requests_per_second}"
            )
        if self.burst < 1:
            raise ValueError(f"burst must be at least 1, got {self.burst}")

    def to_rates(self) -> list[Rate]:
        """Convert to pyrate_limiter rates.

        A window of ``burst`` requests per ``burst / requests_per_second``
        seconds allows the burst while holding the long-run average to the
        configured rate.

        Returns:
            Single-element list of Rate objects.
        """
        interval_ms = max(1, round(1000 * self.burst / self.requests_per_second))
        return [Rate(self.burst, interval_ms)]


@dataclass(frozen=True)
class SourceSettings:
    """Settings for building a PredictionSource and its acquirer.

    Attributes:
        base_url: Root URL of the ledger, without trailing slash.
        rate_limit: Shared request rate limit.
        max_concurrent_requests: Size of the permit pool bounding in-flight
            requests.
        request_timeout: Per-request HTTP timeout in seconds. None means no
            timeout.
        max_attempts: Attempts per detail page during response fan-out.
        retry_base_delay: Base delay for exponential backoff between attempts.
    """

    base_url: str = DEFAULT_BASE_URL
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    max_concurrent_requests: int = 2
    request_timeout: float | None = 30.0
    max_attempts: int = 3
    retry_base_delay: float = 0.0

    def __post_init__(self) -> None:
        # frozen dataclass, so normalise through object.__setattr__
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.max_concurrent_requests < 1:
            raise ValueError(
                "max_concurrent_requests must be at least 1, "
                f"got {self.max_concurrent_requests}"
            )
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.retry_base_delay < 0:
            raise ValueError(
                f"retry_base_delay must not be negative, got {self.retry_base_delay}"
            )
