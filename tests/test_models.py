"""Tests for models.py - Data models."""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from models import (
    ActionResult,
    CoinQuote,
    FileEntry,
    Intent,
    Outcome,
    Platform,
    PostMetrics,
    PushResult,
    RequestRecord,
    allowed_actions,
)


@pytest.mark.unit
class TestRequestRecord:
    """Test RequestRecord data model."""

    def test_create_request_record(self):
        record = RequestRecord(id="req_001", identity="alice", raw_text="list my repos")
        assert record.id == "req_001"
        assert record.identity == "alice"
        assert record.raw_text == "list my repos"


@pytest.mark.unit
class TestIntent:
    """Test Intent invariants."""

    def test_unrecognized_has_no_action(self):
        intent = Intent.unrecognized("hello there")
        assert intent.platform == Platform.UNRECOGNIZED
        assert intent.action is None
        assert intent.raw_query == "hello there"

    def test_unrecognized_with_action_rejected(self):
        with pytest.raises(ValueError):
            Intent(platform=Platform.UNRECOGNIZED, action="analyze")

    def test_action_must_belong_to_platform(self):
        with pytest.raises(ValueError):
            Intent(platform=Platform.MARKET_DATA, action="star_repository")

    def test_valid_repository_intent(self):
        intent = Intent(
            platform=Platform.REPOSITORY_AUTOMATION,
            action="star_repository",
            parameters={"owner": "facebook", "repo": "react"},
            raw_query="star facebook/react",
        )
        assert intent.param("owner") == "facebook"
        assert intent.param("missing", "x") == "x"

    def test_parameters_are_read_only(self):
        intent = Intent(platform=Platform.MARKET_DATA, action="get_price", parameters={"symbols": "BTC"})
        with pytest.raises(TypeError):
            intent.parameters["symbols"] = "ETH"

    def test_parameters_copied_from_caller(self):
        params = {"symbols": "BTC"}
        intent = Intent(platform=Platform.MARKET_DATA, action="get_price", parameters=params)
        params["symbols"] = "ETH"
        assert intent.param("symbols") == "BTC"

    def test_to_dict_serializes_files(self):
        intent = Intent(
            platform=Platform.REPOSITORY_AUTOMATION,
            action="push_files",
            parameters={"owner": "o", "repo": "r", "files": [FileEntry("a.txt", "hi")]},
        )
        data = intent.to_dict()
        assert data["platform"] == "repository_automation"
        assert data["parameters"]["files"] == [{"path": "a.txt", "content": "hi"}]

    def test_allowed_actions(self):
        assert allowed_actions(Platform.CONTENT_ANALYSIS) == {"analyze", "quick"}
        assert "generic_action" in allowed_actions(Platform.MARKET_DATA)
        assert allowed_actions(Platform.UNRECOGNIZED) == set()


@pytest.mark.unit
class TestActionResult:
    """Test the three-way outcome envelope."""

    def test_ok(self):
        result = ActionResult.ok("get_price", "BTC $1", payload=[1])
        assert result.is_ok
        assert result.to_dict() == {"outcome": "ok", "action": "get_price", "summary": "BTC $1", "payload": [1]}

    def test_needs_authorization_default_message(self):
        result = ActionResult.needs_authorization("https://github.com/login/oauth/authorize?x=1")
        assert result.outcome == Outcome.NEEDS_AUTHORIZATION
        assert result.message.startswith("This action requires GitHub authorization.")
        assert "https://github.com/login/oauth/authorize?x=1" in result.message

    def test_failed(self):
        result = ActionResult.failed("boom", action="create_issue")
        assert not result.is_ok
        assert result.to_dict() == {"outcome": "failed", "action": "create_issue", "error": "boom"}

    def test_payload_dataclasses_drop_raw(self):
        post = PostMetrics(url="u", likes=1, comments=2, username="x", is_video=False, raw={"secret": 1})
        result = ActionResult.ok("analyze", "report", {"reports": [{"metrics": post}]})
        metrics = result.to_dict()["payload"]["reports"][0]["metrics"]
        assert "raw" not in metrics
        assert metrics["likes"] == 1

    def test_push_results_serialize(self):
        result = ActionResult.ok("push_files", "ok", [PushResult(path="a", success=True, url="http://x")])
        assert result.to_dict()["payload"] == [{"path": "a", "success": True, "url": "http://x", "error": None}]


@pytest.mark.unit
class TestPostMetrics:
    """Test PostMetrics prompt view."""

    def test_for_prompt_drops_raw_and_missing_views(self):
        post = PostMetrics(
            url="u", likes=10, comments=1, username="x", is_video=False, note="degraded", raw={"a": 1}
        )
        data = post.for_prompt()
        assert "raw" not in data
        assert "views" not in data
        assert post.degraded

    def test_for_prompt_keeps_views(self):
        post = PostMetrics(url="u", likes=10, comments=1, username="x", is_video=True, views=500)
        assert post.for_prompt()["views"] == 500
        assert not post.degraded


@pytest.mark.unit
def test_coin_quote_fields():
    quote = CoinQuote(
        symbol="BTC",
        name="Bitcoin",
        price=1.0,
        volume_24h=2.0,
        percent_change_1h=0.1,
        percent_change_24h=0.2,
        percent_change_7d=0.3,
        market_cap=4.0,
        rank=1,
    )
    assert quote.symbol == "BTC"
    assert quote.rank == 1
