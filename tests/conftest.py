# capture-mcp/tests/conftest.py
#
# Test bootstrap for pytest: ensure repository root is on sys.path so tests can import
# the `capture_mcp` package without requiring an editable install.
#
# Fixture Organization:
# - This file: config, upstream stub (httpx.MockTransport), gateway and registry fixtures
# - Upstream HTTP is never reached; every request is recorded by UpstreamStub
#
from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest
from loguru import logger


_repo_root = Path(__file__).resolve().parents[1]
_repo_root_str = str(_repo_root)

if _repo_root_str not in sys.path:
    sys.path.insert(0, _repo_root_str)

from capture_mcp.config.loader import reload_config  # noqa: E402
from capture_mcp.config.schemas import CaptureConfig  # noqa: E402
from capture_mcp.gateway import RequestGateway  # noqa: E402
from capture_mcp.tools.registry import ToolRegistry  # noqa: E402
from tests.utils.upstream_stub import (  # noqa: E402
    SAM_HOST,
    SAM_TEST_KEY,
    SPENDING_HOST,
    TANGO_HOST,
    TANGO_TEST_KEY,
    UpstreamStub,
)


# Configure test logging using loguru for consistency with application code
logger.remove()
logger.add(
    sys.stderr,
    level="INFO",
    format="{time:YYYY-MM-DD HH:mm:ss} {level} {name}: {message}",
)


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "fast: Fast unit tests that should complete in < 1 second",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that wait on real rate-limit intervals",
    )


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """Each test sees freshly loaded configuration."""
    reload_config()
    yield
    reload_config()


@pytest.fixture
def capture_config() -> CaptureConfig:
    """Configuration pointing at stub hosts with pacing disabled."""
    return CaptureConfig(
        upstreams={
            "sam": {
                "base_url": f"https://{SAM_HOST}",
                "min_interval_ms": 0,
                "api_key_env_var": "SAM_GOV_API_KEY",
                "max_page_size": 50,
            },
            "spending": {
                "base_url": f"https://{SPENDING_HOST}/api/v2",
                "min_interval_ms": 0,
                "max_page_size": 100,
            },
            "aggregator": {
                "base_url": f"https://{TANGO_HOST}/v1",
                "min_interval_ms": 0,
                "api_key_env_var": "TANGO_API_KEY",
                "max_page_size": 100,
            },
        }
    )


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def gateway(capture_config: CaptureConfig, upstream: UpstreamStub) -> RequestGateway:
    """Gateway whose HTTP client is backed by the upstream stub."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return RequestGateway(capture_config, http_client=client)


@pytest.fixture
def api_keys(monkeypatch) -> None:
    """Both key-gated families have keys in the environment."""
    monkeypatch.setenv("SAM_GOV_API_KEY", SAM_TEST_KEY)
    monkeypatch.setenv("TANGO_API_KEY", TANGO_TEST_KEY)


@pytest.fixture
def no_api_keys(monkeypatch) -> None:
    monkeypatch.delenv("SAM_GOV_API_KEY", raising=False)
    monkeypatch.delenv("TANGO_API_KEY", raising=False)


@pytest.fixture
def registry(gateway: RequestGateway, capture_config: CaptureConfig) -> ToolRegistry:
    return ToolRegistry(gateway, capture_config)
