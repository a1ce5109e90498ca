"""Pytest configuration for node REST API conformance tests."""

import asyncio
import threading
import time
from typing import Generator

import httpx
import pytest

from ibc_conformance.localnet import LocalChainApi
from ibc_conformance.localnet.api import LocalApiConfig
from tests.api.seed import ApiSeed, seed_chain

# Default port for auto-started local server
DEFAULT_PORT = 15199


class _ServerThread(threading.Thread):
    """Thread that runs the local chain API in its own event loop."""

    def __init__(self, port: int):
        super().__init__(daemon=True)
        self.port = port
        self.api: LocalChainApi | None = None
        self.seed: ApiSeed | None = None
        self.loop: asyncio.AbstractEventLoop | None = None
        self.ready = threading.Event()
        self.error: Exception | None = None

    def run(self) -> None:
        """Seed a chain and serve it in a new event loop."""
        try:
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)

            chain, self.seed = self.loop.run_until_complete(seed_chain())
            self.api = LocalChainApi(chain, LocalApiConfig(port=self.port))
            self.loop.run_until_complete(self.api.start())
            self.ready.set()

            self.loop.run_forever()

        except Exception as e:
            self.error = e
            self.ready.set()
        finally:
            if self.loop:
                self.loop.close()

    def stop(self) -> None:
        """Stop the server and event loop."""
        if self.api and self.loop:
            asyncio.run_coroutine_threadsafe(self.api.stop(), self.loop).result(timeout=5.0)
            self.loop.call_soon_threadsafe(self.loop.stop)


def _wait_for_server(url: str, timeout: float = 5.0) -> bool:
    """Wait for server to be ready by polling the latest block endpoint."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            response = httpx.get(f"{url}/cosmos/base/tendermint/v1beta1/blocks/latest", timeout=1.0)
            if response.status_code == 200:
                return True
        except (httpx.ConnectError, httpx.ReadTimeout):
            pass
        time.sleep(0.1)
    return False


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add --server-url option for testing against external nodes."""
    parser.addoption(
        "--server-url",
        action="store",
        default=None,
        help="External node REST URL. If not provided, serves a seeded local chain.",
    )


@pytest.fixture(scope="session")
def _server(request: pytest.FixtureRequest) -> Generator[tuple[str, ApiSeed | None], None, None]:
    external_url = request.config.getoption("--server-url")

    if external_url:
        # External nodes carry no known state.
        yield external_url.rstrip("/"), None
        return

    server_thread = _ServerThread(DEFAULT_PORT)
    server_thread.start()
    server_thread.ready.wait(timeout=10.0)

    if server_thread.error:
        pytest.fail(f"Failed to start local server: {server_thread.error}")

    url = f"http://127.0.0.1:{DEFAULT_PORT}"

    if not _wait_for_server(url):
        server_thread.stop()
        pytest.fail("Local server failed to become ready")

    yield url, server_thread.seed

    server_thread.stop()


@pytest.fixture(scope="session")
def server_url(_server: tuple[str, ApiSeed | None]) -> str:
    """
    Provide the node REST URL for API tests.

    If --server-url is provided, uses that external node.
    Otherwise, serves a seeded local chain for the test session.
    """
    return _server[0]


@pytest.fixture(scope="session")
def seed(_server: tuple[str, ApiSeed | None]) -> ApiSeed:
    """Known chain state. Tests that need it skip against external nodes."""
    if _server[1] is None:
        pytest.skip("seeded state is only known for the local chain")
    return _server[1]
