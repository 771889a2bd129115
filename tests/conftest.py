"""Shared fixtures for the extractor tests."""

import asyncio
import socket
import threading
import time
from collections.abc import Generator
from contextlib import closing

import pytest
from aiohttp import web

from tests.mock_server import (
    MockLedger,
    create_app,
    generate_detail_page_html,
    generate_list_page_html,
)
from tests.utils import BASE_URL, FakeAcquirer


@pytest.fixture
def ledger() -> MockLedger:
    """A fresh twelve-prediction ledger with five predictions per page."""
    return MockLedger()


@pytest.fixture
def list_page_html(ledger: MockLedger) -> str:
    """Page 1 of the mock ledger."""
    return generate_list_page_html(ledger, 1)


@pytest.fixture
def detail_page_html(ledger: MockLedger) -> str:
    """Detail page of prediction 8: three responses, one of them a comment."""
    prediction = ledger.get(8)
    assert prediction is not None
    return generate_detail_page_html(prediction)


@pytest.fixture
def fake_acquirer(ledger: MockLedger) -> FakeAcquirer:
    """FakeAcquirer serving every page of the mock ledger under BASE_URL."""
    return FakeAcquirer(ledger.documents(BASE_URL))


# =============================================================================
# aiohttp test server fixtures
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        if not self._started.wait(timeout=5.0):
            raise RuntimeError("Mock ledger server did not start")

    def _run_server(self) -> None:
        """Run the server in an asyncio event loop."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._started.set()
        self._loop.run_forever()

    def stop(self) -> None:
        """Stop the server and clean up resources."""
        if self._loop and self._runner:
            runner = self._runner
            future = asyncio.run_coroutine_threadsafe(
                runner.cleanup(), self._loop
            )
            try:
                future.result(timeout=2.0)
            except Exception:
                pass  # Best effort cleanup

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def ledger_server(
    ledger: MockLedger,
) -> Generator[AioHttpTestServer, None, None]:
    """Create and start an aiohttp test server serving the mock ledger.

    Yields:
        AioHttpTestServer instance with the ledger app running.
    """
    server = AioHttpTestServer(create_app(ledger), find_free_port())
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_url(ledger_server: AioHttpTestServer) -> str:
    """Get the base URL of the test server (e.g. "http://127.0.0.1:8080")."""
    return ledger_server.url


@pytest.fixture
def refused_url() -> str:
    """A localhost URL nothing is listening on."""
    port = find_free_port()
    # Give the OS a moment to release the bound socket
    time.sleep(0.01)
    return f"http://127.0.0.1:{port}"
