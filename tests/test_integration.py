"""Integration tests for end-to-end request dispatch."""
import json
import pytest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import routing_reply
from dispatcher import REPHRASE_HINT, dispatch
from intent_parser import parse_intent
from main import load_requests, main, process_requests
from metrics import AgentMetrics
from models import CredentialRecord, Outcome, Platform, RequestRecord

POST_URL = "https://www.instagram.com/p/ABC123/"


@pytest.mark.integration
class TestDispatch:
    """Classify, gate and route."""

    @pytest.mark.asyncio
    async def test_star_repo_needs_authorization(self, make_runtime, transport):
        runtime = make_runtime()
        metrics = AgentMetrics()

        result = await dispatch("star the repo facebook/react", "bob", runtime, metrics)

        assert result.outcome == Outcome.NEEDS_AUTHORIZATION
        assert result.action == "star_repository"
        assert result.authorization_url == runtime.get_authorization_url("bob")
        assert transport.requests == []
        assert metrics.platform == "repository_automation"
        assert metrics.authorization_required is True
        assert metrics.outcome == "needs_authorization"

    @pytest.mark.asyncio
    async def test_price_of_bitcoin(self, make_runtime, transport, btc_quote_payload):
        transport.add("GET", "/v1/cryptocurrency/quotes/latest", json_body=btc_quote_payload)
        runtime = make_runtime()

        result = await dispatch("What's the price of Bitcoin?", "anyone", runtime)

        assert result.outcome == Outcome.OK
        assert result.action == "get_price"
        assert [quote.symbol for quote in result.payload] == ["BTC"]

    @pytest.mark.asyncio
    async def test_unrecognized_gets_rephrase_hint(self, make_runtime, transport):
        result = await dispatch("what's the weather tomorrow?", "anyone", make_runtime())

        assert result.outcome == Outcome.FAILED
        assert result.error == REPHRASE_HINT
        assert transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("example", ["list my repos", "star the repo facebook/react", "price of BTC", "crypto top 10"])
    async def test_rephrase_examples_route_without_llm(self, example):
        assert f"'{example}'" in REPHRASE_HINT

        intent = await parse_intent(example, None)

        assert intent.platform != Platform.UNRECOGNIZED

    @pytest.mark.asyncio
    async def test_crypto_top_10_lists_coins(self, make_runtime, transport):
        transport.add("GET", "/v1/cryptocurrency/listings/latest", json_body={"data": [
            {"symbol": "BTC", "name": "Bitcoin", "cmc_rank": 1, "quote": {"USD": {"price": 60000.0}}},
        ]})

        result = await dispatch("crypto top 10", "anyone", make_runtime())

        assert result.outcome == Outcome.OK
        assert result.action == "top_coins"
        assert transport.requests[0].url.params["limit"] == "10"

    @pytest.mark.asyncio
    async def test_llm_routes_then_scoped_fallback(self, make_runtime, transport, fake_llm, connected_state):
        transport.add("PUT", "/user/starred/facebook/react", status_code=204)
        # Routing answer, then an unusable scoped answer that forces the regex fallback.
        llm = fake_llm(routing_reply("github", "generic_action"), "not json")
        runtime = make_runtime(llm=llm, state=connected_state)

        result = await dispatch("please star facebook/react", "alice", runtime)

        assert result.outcome == Outcome.OK
        assert result.action == "star_repository"
        assert llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_input_fails(self, make_runtime, transport):
        result = await dispatch("   ", "anyone", make_runtime())

        assert result.outcome == Outcome.FAILED
        assert result.error == "Request text cannot be empty"

    @pytest.mark.asyncio
    async def test_unexpected_error_never_raises(self, make_runtime):
        runtime = make_runtime()
        with patch("dispatcher.parse_intent", side_effect=RuntimeError("kaboom")):
            result = await dispatch("anything", "anyone", runtime)

        assert result.outcome == Outcome.FAILED
        assert "kaboom" in result.error

    @pytest.mark.asyncio
    async def test_identities_are_independent(self, make_runtime, transport, connected_state):
        transport.add("GET", "/user", json_body={"login": "alice", "name": "Alice", "public_repos": 3,
                                                 "followers": 1, "html_url": "https://github.com/alice"})
        runtime = make_runtime(state=connected_state)

        alice = await dispatch("show my github profile", "alice", runtime)
        bob = await dispatch("show my github profile", "bob", runtime)

        assert alice.outcome == Outcome.OK
        assert bob.outcome == Outcome.NEEDS_AUTHORIZATION
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_reconnect_after_invalid_credential(self, make_runtime, transport, connected_state):
        transport.add("GET", "/user", status_code=401, json_body={"message": "Bad credentials"})
        runtime = make_runtime(state=connected_state)

        first = await dispatch("show my github profile", "alice", runtime)
        assert first.outcome == Outcome.NEEDS_AUTHORIZATION
        assert not runtime.is_authorized("alice")

        connected_state.put("alice", CredentialRecord(identity="alice", bearer_token="gho_fresh"))
        assert runtime.is_authorized("alice")


@pytest.mark.integration
class TestCli:
    """Batch loading and the argparse entry point."""

    def test_load_requests(self, tmp_path):
        path = tmp_path / "requests.json"
        path.write_text(json.dumps([
            {"id": "req_001", "identity": "alice", "raw_text": "list my repos"},
            {"raw_text": "price of BTC"},
        ]))

        requests = load_requests(path, default_identity="cli-user")

        assert requests[0] == RequestRecord(id="req_001", identity="alice", raw_text="list my repos")
        assert requests[1].id == "2"
        assert requests[1].identity == "cli-user"

    @pytest.mark.asyncio
    async def test_process_requests(self, make_runtime, transport):
        runtime = make_runtime()
        records = [RequestRecord(id="1", identity="bob", raw_text="star the repo facebook/react")]

        results = await process_requests(records, runtime)

        assert results[0]["request_id"] == "1"
        assert results[0]["result"]["outcome"] == "needs_authorization"
        assert results[0]["metrics"]["outcome"] == "needs_authorization"

    def test_main_prompt(self, make_runtime, capsys):
        runtime = make_runtime()
        with patch("main.AgentRuntime.from_config", return_value=runtime):
            exit_code = main(["--prompt", "star the repo facebook/react", "--identity", "bob"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output[0]["identity"] == "bob"
        assert output[0]["result"]["action"] == "star_repository"
        assert "state=bob" in output[0]["result"]["authorization_url"]

    def test_main_health(self, capsys):
        exit_code = main(["--health"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code in (0, 1)
        assert "configuration" in output["checks"]
        assert "logging" in output["checks"]
