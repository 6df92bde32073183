"""
Pytest configuration and fixtures for the test suite.
"""
import os
import sys

import pytest

# Add src directory to path for imports, and the repo root for tests.fixtures
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from antigravity_bridge.config import BridgeConfig
from antigravity_bridge.signature_cache import SessionState


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )


@pytest.fixture(scope="session")
def anyio_backend():
    """Set the async backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_bridge_env(monkeypatch):
    """Keep the developer's environment from leaking into tests."""
    for key in list(os.environ):
        if key.startswith("ANTIGRAVITY_") or key.startswith("TIMEOUT_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def session():
    """Fresh signature state for one chat session."""
    return SessionState()


@pytest.fixture
def bridge_config():
    """Defaults with request logging off and stable endpoints."""
    return BridgeConfig(
        antigravity_endpoint="https://antigravity.test",
        gemini_cli_endpoint="https://gemini-cli.test",
        default_project_id="test-project",
    )


@pytest.fixture
def search_tool_schema():
    """A realistic, already backend-compatible tool schema."""
    return {
        "type": "object",
        "description": "Search the workspace",
        "properties": {
            "query": {"type": "string", "description": "Text to look for"},
            "limit": {"type": "integer"},
            "paths": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["query"],
    }
