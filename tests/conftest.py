"""Test configuration and fixtures for the Penci relay tests."""
import os
import sys
import socket
import asyncio
import pytest
import pytest_asyncio
from aiohttp import web

# Add application root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.registry import ConnectionRegistry
from core.relay import EventRelay
from socketio_server.client import RelayClient
from socketio_server.http_routes import RELAY_KEY
from socketio_server.server import create_app
from utils.config_loader import ConfigManager


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.02) -> bool:
    """Poll `predicate` until it is truthy or `timeout` expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return bool(predicate())


class RecordingTransport:
    """Stands in for socketio.AsyncServer.emit and records every delivery."""

    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    async def emit(self, event, data=None, to=None):
        if to in self.failing:
            raise ConnectionError(f"transport for {to} is closed")
        self.sent.append((to, event, data))

    def received_by(self, sid):
        return [(event, data) for to, event, data in self.sent if to == sid]


@pytest.fixture
def test_config(tmp_path):
    """Provide test configuration isolated from the environment and config files."""
    config = ConfigManager(config_file=str(tmp_path / "missing.json"), use_env=False)
    config.set("server", "host", "127.0.0.1")
    config.set("server", "port", _free_port())
    return config


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def relay(transport, registry):
    return EventRelay(transport, registry)


@pytest_asyncio.fixture
async def server_app(test_config):
    """Provide a running relay server and its base URL."""
    app = create_app(test_config)
    host = test_config.get("server", "host")
    port = test_config.get("server", "port")

    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host, port)
        await site.start()
        yield app, f"http://{host}:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture
def server_relay(server_app):
    app, _ = server_app
    return app[RELAY_KEY]


@pytest_asyncio.fixture
async def make_client(server_app):
    """Factory for connected RelayClients, disconnected on teardown."""
    _, server_url = server_app
    clients = []

    async def _make(user_id=None):
        client = RelayClient(server_url, user_id=user_id)
        assert await client.connect(), "client failed to connect"
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.disconnect()
