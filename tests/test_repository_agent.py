"""Tests for repository_agent.py and github_client.py - GitHub automation."""
import base64
import json
import pytest
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from models import FileEntry, Outcome, Platform
from repository_agent import (
    _normalize_repository_payload,
    parse_repository_intent,
    push_summary,
    run_repository_agent,
)


def repository_reply(action, **params):
    return json.dumps({"action": action, "params": params})


@pytest.mark.unit
class TestNormalizeRepositoryPayload:
    def test_drops_empty_strings(self):
        intent, error = _normalize_repository_payload(
            {"action": "star_repository", "params": {"owner": "facebook", "repo": "react", "title": "", "base": "main"}},
            "star react",
        )
        assert error is None
        assert dict(intent.parameters) == {"owner": "facebook", "repo": "react", "base": "main"}

    def test_aliases(self):
        intent, _ = _normalize_repository_payload({"action": "create_pr", "params": {}}, "x")
        assert intent.action == "create_pull_request"

    def test_unknown_action(self):
        intent, error = _normalize_repository_payload({"action": "delete_repo", "params": {}}, "x")
        assert intent is None
        assert "delete_repo" in error

    def test_files_become_entries(self):
        intent, _ = _normalize_repository_payload(
            {
                "action": "push_files",
                "params": {"owner": "o", "repo": "r", "files": [{"path": "a.py", "content": "x"}, {"content": "y"}]},
            },
            "push",
        )
        assert intent.param("files") == [FileEntry("a.py", "x")]


@pytest.mark.unit
class TestParseRepositoryIntent:
    @pytest.mark.asyncio
    async def test_llm_result(self, fake_llm):
        llm = fake_llm(repository_reply("list_user_repositories", username="torvalds"))
        intent = await parse_repository_intent("what has torvalds built?", llm)
        assert intent.action == "list_user_repositories"
        assert intent.param("username") == "torvalds"
        assert intent.raw_query == "what has torvalds built?"

    @pytest.mark.asyncio
    async def test_fallback_when_llm_fails(self, failing_llm):
        intent = await parse_repository_intent("star the repo facebook/react", failing_llm)
        assert intent.platform == Platform.REPOSITORY_AUTOMATION
        assert intent.action == "star_repository"
        assert dict(intent.parameters) == {"owner": "facebook", "repo": "react"}
        assert intent.fallback is True


@pytest.mark.unit
def test_push_summary():
    from models import PushResult
    results = [PushResult("a", True), PushResult("b", False, error="boom"), PushResult("c", True)]
    summary = push_summary("o", "r", results)
    assert summary.splitlines()[0] == "📤 Pushed 2/3 files to **o/r**"
    assert "❌ b" in summary


@pytest.mark.integration
class TestRunRepositoryAgent:
    """Gating, execution and credential invalidation."""

    @pytest.mark.asyncio
    async def test_gated_action_without_credential_makes_no_provider_call(self, make_runtime, transport):
        runtime = make_runtime()
        result = await run_repository_agent("star the repo facebook/react", "bob", runtime)

        assert result.outcome == Outcome.NEEDS_AUTHORIZATION
        assert result.action == "star_repository"
        assert "client_id=test-client-id" in result.authorization_url
        assert "state=bob" in result.authorization_url
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_star_with_credential(self, make_runtime, transport, connected_state):
        transport.add("PUT", "/user/starred/facebook/react", status_code=204)
        runtime = make_runtime(state=connected_state)

        result = await run_repository_agent("star the repo facebook/react", "alice", runtime)

        assert result.outcome == Outcome.OK
        assert result.summary == "⭐ Done! Starred **facebook/react**"
        assert result.payload == {"starred": True, "repo": "facebook/react"}
        request = transport.requests[0]
        assert request.headers["Authorization"] == "Bearer gho_test"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"

    @pytest.mark.asyncio
    async def test_public_profile_never_needs_authorization(self, make_runtime, transport):
        transport.add(
            "GET",
            "/users/octocat",
            json_body={"login": "octocat", "name": "The Octocat", "public_repos": 8, "followers": 10, "following": 0,
                       "html_url": "https://github.com/octocat"},
        )
        runtime = make_runtime()

        result = await run_repository_agent("github profile for @octocat", "nobody", runtime)

        assert result.outcome == Outcome.OK
        assert result.action == "get_user_profile"
        assert "**octocat** (The Octocat)" in result.summary
        assert "Authorization" not in transport.requests[0].headers

    @pytest.mark.asyncio
    async def test_public_repositories_empty(self, make_runtime, transport):
        transport.add("GET", "/users/ghost/repos", json_body=[])
        runtime = make_runtime()

        result = await run_repository_agent("show repos of https://github.com/ghost", "nobody", runtime)

        assert result.outcome == Outcome.OK
        assert result.summary == "📦 **ghost** has no public repositories."
        assert transport.requests[0].url.params["type"] == "owner"

    @pytest.mark.asyncio
    async def test_missing_username_fails(self, make_runtime, transport, fake_llm):
        runtime = make_runtime(llm=fake_llm(repository_reply("get_user_profile", username="")))

        result = await run_repository_agent("show me that person's profile", "nobody", runtime)

        assert result.outcome == Outcome.FAILED
        assert "Username is required" in result.error
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_issue_title_fails(self, make_runtime, transport, connected_state):
        runtime = make_runtime(state=connected_state)

        result = await run_repository_agent("open an issue on octo/app", "alice", runtime)

        assert result.outcome == Outcome.FAILED
        assert result.action == "create_issue"
        assert "title" in result.error
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_push_files_partial_failure(self, make_runtime, transport, connected_state, fake_llm):
        for name in ("a.txt", "c.txt"):
            transport.add(
                "PUT",
                f"/repos/o/r/contents/{name}",
                status_code=201,
                json_body={"content": {"html_url": f"https://github.com/o/r/blob/main/{name}"}},
            )
        transport.add("PUT", "/repos/o/r/contents/b.txt", status_code=422, json_body={"message": "Invalid request"})
        files = [{"path": "a.txt", "content": "A"}, {"path": "b.txt", "content": "B"}, {"path": "c.txt", "content": "C"}]
        runtime = make_runtime(
            llm=fake_llm(repository_reply("push_files", owner="o", repo="r", files=files)), state=connected_state
        )

        result = await run_repository_agent("push these files to o/r", "alice", runtime)

        assert result.outcome == Outcome.OK
        assert [item.success for item in result.payload] == [True, False, True]
        assert [item.path for item in result.payload] == ["a.txt", "b.txt", "c.txt"]
        assert "Pushed 2/3 files" in result.summary
        assert "Invalid request" in result.payload[1].error

    @pytest.mark.asyncio
    async def test_push_updates_existing_file_with_sha(self, make_runtime, transport, connected_state, fake_llm):
        captured = {}

        def put_handler(request):
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={"content": {"html_url": "https://github.com/o/r/blob/main/a.txt"}})

        transport.add("GET", "/repos/o/r/contents/a.txt", json_body={"sha": "abc123"})
        transport.add_handler("PUT", "/repos/o/r/contents/a.txt", put_handler)
        files = [{"path": "a.txt", "content": "hello"}]
        runtime = make_runtime(
            llm=fake_llm(repository_reply("push_files", owner="o", repo="r", files=files)), state=connected_state
        )

        result = await run_repository_agent("update a.txt in o/r", "alice", runtime)

        assert result.outcome == Outcome.OK
        assert captured["sha"] == "abc123"
        assert base64.b64decode(captured["content"]).decode() == "hello"
        assert captured["message"] == "Push from Agentic Workflow"

    @pytest.mark.asyncio
    async def test_invalid_credential_is_removed(self, make_runtime, transport, connected_state):
        transport.add("PUT", "/user/starred/facebook/react", status_code=401, json_body={"message": "Bad credentials"})
        runtime = make_runtime(state=connected_state)
        assert runtime.is_authorized("alice")

        result = await run_repository_agent("star the repo facebook/react", "alice", runtime)

        assert result.outcome == Outcome.NEEDS_AUTHORIZATION
        assert result.message.startswith("Session expired")
        assert "state=alice" in result.authorization_url
        assert runtime.is_authorized("alice") is False

    @pytest.mark.asyncio
    async def test_unresolved_action_fails_with_hint(self, make_runtime, transport, connected_state):
        runtime = make_runtime(state=connected_state)

        result = await run_repository_agent("do something with github", "alice", runtime)

        assert result.outcome == Outcome.FAILED
        assert "Try: list repos" in result.error
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unresolved_action_prompts_unconnected_user(self, make_runtime, transport):
        runtime = make_runtime()

        result = await run_repository_agent("do something with github", "bob", runtime)

        assert result.outcome == Outcome.NEEDS_AUTHORIZATION
        assert result.action == "generic_action"
        assert "state=bob" in result.authorization_url
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_provider_error_fails(self, make_runtime, transport, connected_state):
        transport.add("GET", "/repos/django/django", status_code=500, json_body={"message": "Server Error"})
        runtime = make_runtime(state=connected_state)

        result = await run_repository_agent("tell me about the repo django/django", "alice", runtime)

        assert result.outcome == Outcome.FAILED
        assert "500" in result.error
        assert runtime.is_authorized("alice")
