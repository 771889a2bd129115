"""Field parsers shared by the record extractors.

Every parser here is total: text that is missing or does not match the
expected pattern yields the field's default instead of raising, so one
malformed field never aborts a record.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone

from predictionbook.data_types import ZERO_TIME, Outcome

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_TIMESTAMP_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) ([A-Za-z]+)$"
)
_PERCENT_RE = re.compile(r"^([-+]?(?:\d+(?:\.\d*)?|\.\d+))%")
_SUMMARY_CONFIDENCE_RE = re.compile(
    r"^([-+]?(?:\d+(?:\.\d*)?|\.\d+))% confidence"
)
_WAGERS_RE = re.compile(r"^([-+]?\d+) wagers")
_INT_RE = re.compile(r"[-+]?\d+")

# Abbreviations with a well-known fixed offset. Anything else alphabetic is
# read as a zero offset.
ZONE_OFFSETS: dict[str, int] = {
    "UTC": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
    "BST": 1,
    "CET": 1,
    "CEST": 2,
}


def parse_timestamp(value: str | None) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS <ZONE>`` into an aware datetime.

    Args:
        value: Attribute text, or None if the attribute was absent.

    Returns:
        The parsed time, or ZERO_TIME.
    """
    if value is None:
        return ZERO_TIME
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        return ZERO_TIME
    try:
        naive = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
    except ValueError:
        return ZERO_TIME
    offset = ZONE_OFFSETS.get(match.group(2).upper(), 0)
    return naive.replace(tzinfo=timezone(timedelta(hours=offset)))


def parse_response_confidence(text: str) -> float:
    """Parse ``<number>%`` into a fraction, NaN when there is no assignment."""
    match = _PERCENT_RE.match(text.strip())
    if match is None:
        return math.nan
    return float(match.group(1)) / 100


def parse_summary_confidence(text: str) -> float:
    """Parse ``<number>% confidence`` into a fraction, 0 when unparsed."""
    match = _SUMMARY_CONFIDENCE_RE.match(text.strip())
    if match is None:
        return 0.0
    return float(match.group(1)) / 100


def parse_wager_count(text: str) -> int:
    """Parse ``<integer> wagers``; a singular or missing count means 1."""
    match = _WAGERS_RE.match(text.strip())
    if match is None:
        return 1
    return int(match.group(1))


def parse_outcome(text: str) -> Outcome:
    outcome = text.strip()
    if outcome == "right":
        return Outcome.RIGHT
    if outcome == "wrong":
        return Outcome.WRONG
    return Outcome.UNKNOWN


def parse_trailing_id(href: str | None) -> int:
    """Integer in the last ``/`` segment of a link address, 0 if none."""
    if href is None:
        return 0
    return _parse_int(href.split("/")[-1])


def parse_prefixed_int(href: str | None, prefix: str) -> int:
    """Integer following ``prefix`` in a link address, 0 if none."""
    if href is None or not href.startswith(prefix):
        return 0
    return _parse_int(href[len(prefix):])


def _parse_int(text: str) -> int:
    if _INT_RE.fullmatch(text) is None:
        return 0
    return int(text)
