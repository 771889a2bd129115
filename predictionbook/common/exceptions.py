"""Exception types for acquisition and extraction errors.

This module defines the exception hierarchy raised by the content acquirer
and by the prediction source. Only the AcquisitionException family escapes
the acquirer; field-level parsing problems are never errors and resolve to
documented defaults instead.
"""

from typing import Any


class AcquisitionException(Exception):
    """Base class for every error raised by the content acquirer.

    Attributes:
        url: The URL whose acquisition failed.
        message: Human-readable error message.
    """

    def __init__(self, message: str, url: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            url: The URL of the request that triggered this error.
        """
        self.message = message
        self.url = url
        super().__init__(self.message)


class AcquisitionCancelledException(AcquisitionException):
    """Raised when a caller-side cancellation aborts an acquisition.

    The acquisition was waiting on the shared rate limiter or on a slot of
    the permit pool when the stop event was set or the wait timeout elapsed,
    or the rate limiter refused to admit it. No network call was issued.

    Attributes:
        stage: Where the acquisition was waiting ("rate_limiter" or "permit").
    """

    def __init__(self, url: str, stage: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            url: The URL that was waiting to be fetched.
            stage: Where the acquisition was waiting.
            reason: Why the wait was abandoned.
        """
        self.stage = stage
        self.reason = reason
        super().__init__(
            f"Acquisition of {url} cancelled while waiting on {stage}: {reason}",
            url,
        )


# =============================================================================
# Transient Exceptions
# =============================================================================


class TransientException(AcquisitionException):
    """Base class for acquisition errors that might resolve on retry.

    Transient exceptions represent network failures and unexpected status
    codes. The acquirer never retries; retry is a policy of the layers that
    drive it.
    """

    pass


class TransportException(TransientException):
    """Raised when the HTTP request fails below the HTTP layer.

    Connection refused, resets, DNS failures and protocol errors all surface
    as this exception.
    """

    def __init__(self, url: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            url: The URL that could not be fetched.
            reason: Description of the underlying transport failure.
        """
        self.reason = reason
        super().__init__(f"HTTP request error for {url}: {reason}", url)


class RequestTimeoutException(TransportException):
    """Raised when a request times out.

    Attributes:
        timeout_seconds: The timeout duration in seconds.
    """

    def __init__(self, url: str, timeout_seconds: float | None) -> None:
        """Initialize the exception.

        Args:
            url: The URL that timed out.
            timeout_seconds: The timeout duration in seconds.
        """
        self.timeout_seconds = timeout_seconds
        super().__init__(url, f"timed out after {timeout_seconds}s")


class HTTPStatusException(TransientException):
    """Raised when the HTTP response has an unexpected status code.

    Attributes:
        status_code: The actual HTTP status code received.
        expected_codes: List of status codes that were expected.
    """

    def __init__(
        self,
        status_code: int,
        url: str,
        expected_codes: list[int] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            status_code: The actual status code received.
            url: The URL of the request.
            expected_codes: List of expected status codes.
        """
        self.status_code = status_code
        self.expected_codes = expected_codes or [200]

        expected_str = ", ".join(str(code) for code in self.expected_codes)
        super().__init__(
            f"HTTP error: {status_code} from {url} "
            f"(expected one of: {expected_str})",
            url,
        )


class DocumentParseException(AcquisitionException):
    """Raised when a response body cannot be parsed into a document tree."""

    def __init__(self, url: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            url: The URL whose body failed to parse.
            reason: Parser error description.
        """
        self.reason = reason
        super().__init__(f"Parse error for {url}: {reason}", url)


# =============================================================================
# Source-level exceptions
# =============================================================================


class ExtractorAssumptionException(Exception):
    """Raised when a page violates an assumption the source relies on.

    Individual fields never raise; this is reserved for whole-page
    assumptions such as "the first list page has at least one prediction".
    """

    def __init__(
        self,
        message: str,
        request_url: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the assumption violation.
            request_url: The URL of the page that triggered this error.
            context: Optional dict of additional context.
        """
        self.message = message
        self.request_url = request_url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        parts.append(f"URL: {self.request_url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class ResponseAggregationException(Exception):
    """Raised by the collect-all barrier when one or more tasks failed.

    Attributes:
        errors: Terminal exception of each failed task, keyed by prediction id.
    """

    def __init__(self, errors: dict[int, Exception]) -> None:
        self.errors = dict(sorted(errors.items()))
        failed = ", ".join(str(pid) for pid in self.errors)
        super().__init__(
            f"Response retrieval failed for {len(self.errors)} "
            f"prediction(s): {failed}"
        )
