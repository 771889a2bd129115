"""Test utilities for the extractor tests.

This module provides a scriptable stand-in for the content acquirer and a
minimal in-memory TreeNode implementation.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from predictionbook.common.exceptions import (
    HTTPStatusException,
    TransportException,
)
from predictionbook.common.tree_node import TreeNode, parse_document

logger = logging.getLogger(__name__)

BASE_URL = "http://ledger.test"


class FakeAcquirer:
    """DocumentAcquirer serving pre-rendered documents from a URL map.

    Every requested URL is recorded in ``requested`` in arrival order, so
    tests can count and order fetches. Failures, per-URL delays and a gate
    holding every acquisition until released can be scripted.

    Example:
        acquirer = FakeAcquirer(ledger.documents(BASE_URL))
        acquirer.fail(f"{BASE_URL}/predictions/7", times=2)
        responses = await aggregator.aggregate_responses(summaries)
        assert acquirer.count(f"{BASE_URL}/predictions/7") == 3
    """

    def __init__(
        self,
        documents: dict[str, str],
        delays: dict[str, float] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.documents = dict(documents)
        self.delays = delays or {}
        self.gate = gate
        self.requested: list[str] = []
        self.failures: dict[str, int] = defaultdict(int)
        self.errors: dict[str, Exception] = {}
        self.in_flight = 0
        self.peak_in_flight = 0

    def fail(
        self, url: str, times: int = 1, error: Exception | None = None
    ) -> None:
        """Make the next ``times`` acquisitions of url fail."""
        self.failures[url] += times
        if error is not None:
            self.errors[url] = error

    def count(self, url: str) -> int:
        return self.requested.count(url)

    async def acquire(self, url: str) -> TreeNode:
        self.requested.append(url)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delays.get(url, 0))

            if self.failures[url] > 0:
                self.failures[url] -= 1
                logger.debug(f"Scripted failure for {url}")
                raise self.errors.get(
                    url, TransportException(url, "scripted failure")
                )
            if url not in self.documents:
                raise HTTPStatusException(404, url)
            return parse_document(self.documents[url], url)
        finally:
            self.in_flight -= 1


@dataclass(eq=False)
class SimpleNode:
    """Plain in-memory TreeNode, independent of any parser."""

    tag: str
    attributes: Sequence[tuple[str, str]] = ()
    children: list[SimpleNode] = field(default_factory=list)
    text: str | None = None

    def text_content(self) -> str:
        parts: list[str] = []
        stack: list[SimpleNode] = [self]
        while stack:
            node = stack.pop()
            if node.text:
                parts.append(node.text)
            stack.extend(reversed(node.children))
        return "".join(parts)

    def get_attribute(self, name: str) -> str | None:
        for key, value in self.attributes:
            if key == name:
                return value
        return None


def nested_chain(depth: int, leaf_class: str = "leaf") -> SimpleNode:
    """Build a chain of ``depth`` nested divs ending in a classed span."""
    leaf = SimpleNode("span", [("class", leaf_class)], text="bottom")
    node = leaf
    for _ in range(depth):
        node = SimpleNode("div", children=[node])
    return node
