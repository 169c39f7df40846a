"""Pytest configuration and shared fixtures."""
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Keep test runs quiet and away from the project log file.
os.environ.setdefault("LOG_CONSOLE", "false")
os.environ.setdefault("LOG_PATH", str(Path(__file__).parent / ".logs" / "test.log"))


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: end-to-end dispatch tests with provider doubles")
    config.addinivalue_line("markers", "slow: tests that exercise retry backoff paths")


class RecordingTransport:
    """MockTransport handler that routes by (method, path) and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, json_body: Any = None, text: str = None):
        def responder(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status_code, text=text)
            if json_body is None:
                return httpx.Response(status_code)
            return httpx.Response(status_code, json=json_body)

        self.routes[(method.upper(), path)] = responder
        return self

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[(method.upper(), path)] = handler
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return responder(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def github_settings():
    from config import GitHubConfig
    return GitHubConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/callback",
    )


@pytest.fixture
def auth_state():
    """Empty authorization table."""
    from auth_state import AuthorizationState
    return AuthorizationState()


@pytest.fixture
def connected_state(auth_state):
    """Authorization table with a credential for 'alice'."""
    from models import CredentialRecord
    auth_state.put("alice", CredentialRecord(identity="alice", bearer_token="gho_test", token_scope="repo"))
    return auth_state


def make_completion_llm(*replies: str, model: str = "gemini-2.5-flash"):
    """LLM double whose complete() returns the given replies in order."""
    from llm_client import Completion
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=[Completion(text=reply, model=model) for reply in replies])
    return llm


@pytest.fixture
def fake_llm():
    """Factory for LLM doubles: fake_llm(reply1, reply2, ...)."""
    return make_completion_llm


@pytest.fixture
def failing_llm():
    """LLM double whose every call fails, forcing the fallback path."""
    from errors import ExhaustedError
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=ExhaustedError(["gemini-2.5-flash"]))
    return llm


@pytest.fixture
def make_runtime(auth_state, github_settings, transport):
    """Build an AgentRuntime whose provider clients all talk to the recording transport."""
    from config import ApifyConfig, MarketDataConfig
    from github_client import GitHubClient
    from market_data import MarketDataClient
    from oauth import OAuthClient
    from runtime import AgentRuntime
    from scraper import InstagramScraper

    def build(llm=None, state=None, reporter=None):
        state = state or auth_state
        http = transport.client()
        return AgentRuntime(
            llm=llm,
            state=state,
            oauth=OAuthClient(state=state, settings=github_settings, http=http),
            github=GitHubClient(state=state, settings=github_settings, http=http),
            scraper=InstagramScraper(settings=ApifyConfig(api_key="apify-test"), http=http),
            market=MarketDataClient(settings=MarketDataConfig(api_key="cmc-test"), http=http),
            reporter=reporter,
        )

    return build


@pytest.fixture
def btc_quote_payload() -> Dict[str, Any]:
    """CoinMarketCap quotes/latest body for BTC."""
    return {
        "status": {"error_code": 0, "error_message": None},
        "data": {
            "BTC": {
                "symbol": "BTC",
                "name": "Bitcoin",
                "cmc_rank": 1,
                "quote": {
                    "USD": {
                        "price": 67250.1234,
                        "volume_24h": 28_000_000_000.0,
                        "percent_change_1h": 0.12,
                        "percent_change_24h": -1.5,
                        "percent_change_7d": 4.2,
                        "market_cap": 1_320_000_000_000.0,
                    }
                },
            }
        },
    }


@pytest.fixture
def mock_metrics():
    """Fresh AgentMetrics for testing."""
    from metrics import AgentMetrics
    return AgentMetrics()


def routing_reply(platform: str, action: Optional[str] = None, urls: Optional[List[str]] = None) -> str:
    return json.dumps({"platform": platform, "urls": urls or [], "action": action, "query": ""})
