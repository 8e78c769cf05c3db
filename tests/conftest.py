"""
Shared test fixtures for MCP server tests.

Stores are backed by files under pytest's tmp_path, so every test gets an
isolated context snapshot and config file. The language model gateway is
always mocked; no test talks to a real provider.
"""
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from core.llm import LLMGateway
from core.services.config_service import ConfigStore
from core.services.context_service import ContextStore
from tests.utils.store_test_utils import TEST_ADMIN_SECRET, llm_text, write_config


@pytest.fixture
def context_file(tmp_path) -> Path:
    return tmp_path / "mcp_contexts.json"


@pytest.fixture
def config_file(tmp_path) -> Path:
    return tmp_path / "mcp_config.json"


@pytest.fixture
def valid_config() -> dict:
    """Config with log level info and the built-in flag plus a custom one."""
    return {
        "logging": {"level": "info"},
        "featureFlags": {"newFeatureX": False, "betaSwarm": True},
    }


@pytest.fixture
def context_store(context_file) -> ContextStore:
    """Context store with the backstop disabled."""
    return ContextStore(context_file, autosave_interval=0)


@pytest.fixture
async def config_store(config_file, valid_config) -> ConfigStore:
    """Config store loaded from a valid config file."""
    write_config(config_file, valid_config)
    store = ConfigStore(config_file, apply_logging=False)
    await store.load()
    return store


@pytest.fixture
def mock_gateway() -> LLMGateway:
    """LLM gateway whose complete() is an AsyncMock answering "debug"."""
    gateway = LLMGateway(providers={})
    gateway.complete = AsyncMock(return_value=llm_text("debug"))
    return gateway


@pytest.fixture
def app():
    """The FastAPI app instance."""
    from main import app as fastapi_app
    return fastapi_app


@pytest.fixture
async def async_client(app, context_store, config_store, mock_gateway) -> AsyncGenerator[AsyncClient, None]:
    """Async test client wired to tmp-path stores and the mock gateway."""
    from core.auth import get_admin_secret
    from core.dependencies import get_config_store, get_context_store, get_llm_gateway

    app.dependency_overrides[get_context_store] = lambda: context_store
    app.dependency_overrides[get_config_store] = lambda: config_store
    app.dependency_overrides[get_llm_gateway] = lambda: mock_gateway
    app.dependency_overrides[get_admin_secret] = lambda: TEST_ADMIN_SECRET

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Secret": TEST_ADMIN_SECRET}
