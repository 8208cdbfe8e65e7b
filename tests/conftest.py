import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# Ensure project root is on sys.path so `agent.*`, `core.*` imports work
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


# Explicitly enable pytest-asyncio plugin for async tests/fixtures
pytest_plugins = ("pytest_asyncio",)


from agent.supervisor_agent import SupervisorAgent
from agent.tools.base import ExecutionContext, FunctionTool
from agent.tools.registry import ToolRegistry
from config.settings import Settings, get_settings
from core.cache import cache
from core.credentials import SUPPORTED_KEYS
from core.singleton import get_supervisor
from main import app


@pytest.fixture(autouse=True)
def clear_cache():
    """Market data cache is process-wide; start every test empty."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    """Retry sleeps are skipped; the delays requested are recorded."""
    delays = []

    async def fake_sleep(ms):
        delays.append(ms)

    monkeypatch.setattr("core.http._sleep_ms", fake_sleep)
    return delays


@pytest.fixture()
def ctx():
    return ExecutionContext(credentials={}, caller_id="test")


async def _echo(input, ctx):
    return dict(input)


async def _boom(input, ctx):
    raise RuntimeError("boom")


@pytest.fixture()
def echo_registry():
    """Registry with in-process tools only: echo returns its input, boom always raises."""
    return ToolRegistry([FunctionTool("echo", _echo), FunctionTool("boom", _boom)])


def offline_settings(**keys):
    """Settings with every credential unset (or set to `keys`) so no provider is called."""
    values = {name: None for name in SUPPORTED_KEYS}
    values.update(keys)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def override_settings():
    app.dependency_overrides[get_settings] = lambda: offline_settings()
    yield
    app.dependency_overrides.pop(get_settings, None)


@pytest_asyncio.fixture()
async def client():
    """Async test client for the API app, served in-memory."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest_asyncio.fixture()
async def echo_client(echo_registry):
    """API client whose supervisor only knows the echo / boom tools."""
    app.dependency_overrides[get_supervisor] = lambda: SupervisorAgent(echo_registry)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_supervisor, None)
