"""Repository automation agent: natural language to GitHub actions on the user's behalf."""
from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from errors import CredentialInvalidError, MissingParameterError, NotAuthorizedError, ProviderError
from intent_parser import ParserResult, classify_with_fallback, quote_for_prompt
from llm_client import LLMClient
from logging_utils import logger
from metrics import AgentMetrics
from models import ActionResult, FileEntry, Intent, Platform, PushResult, RepositoryAction
from platform_plugins import get_plugin
from policy_engine import NEEDS_AUTHORIZATION, evaluate_request
from runtime import AgentRuntime, default_runtime

Handler = Callable[[AgentRuntime, str, Intent], Awaitable[Tuple[str, Any]]]

UNKNOWN_ACTION_HINT = "Try: list repos, create repo, star repo, create issue, etc."

# Names the model sometimes answers with.
ACTION_ALIASES: Dict[str, str] = {
    "star_repo": RepositoryAction.STAR_REPOSITORY.value,
    "create_pr": RepositoryAction.CREATE_PULL_REQUEST.value,
    "list_repos": RepositoryAction.LIST_OWN_REPOSITORIES.value,
    "list_user_repos": RepositoryAction.LIST_USER_REPOSITORIES.value,
    "get_repo": RepositoryAction.GET_REPOSITORY.value,
    "create_repo": RepositoryAction.CREATE_REPOSITORY.value,
    "push_project": RepositoryAction.PUSH_FILES.value,
}

REQUIRED_PARAMETERS: Dict[str, Tuple[str, ...]] = {
    RepositoryAction.LIST_USER_REPOSITORIES.value: ("username",),
    RepositoryAction.GET_USER_PROFILE.value: ("username",),
    RepositoryAction.CREATE_REPOSITORY.value: ("name",),
    RepositoryAction.STAR_REPOSITORY.value: ("owner", "repo"),
    RepositoryAction.GET_REPOSITORY.value: ("owner", "repo"),
    RepositoryAction.LIST_ISSUES.value: ("owner", "repo"),
    RepositoryAction.CREATE_ISSUE.value: ("owner", "repo", "title"),
    RepositoryAction.CREATE_PULL_REQUEST.value: ("owner", "repo", "title", "head"),
    RepositoryAction.PUSH_FILES.value: ("owner", "repo", "files"),
}

MISSING_PARAMETER_MESSAGES: Dict[str, str] = {
    "username": "Username is required. Provide a GitHub username or profile URL.",
    "name": "Repository name is required.",
    "owner": "Repository owner is required. Use the form owner/repo.",
    "repo": "Repository name is required. Use the form owner/repo.",
    "title": "A title is required. Put it in quotes.",
    "head": "A head branch is required (e.g. 'from feature-branch').",
    "files": "No files to push. Provide files as path and content pairs.",
}

STRING_PARAMETERS = ("owner", "repo", "title", "body", "name", "description", "head", "base", "username")


def build_repository_prompt(text: str) -> str:
    return (
        "You are a GitHub assistant. Parse the user's request into JSON.\n\n"
        "Actions you can perform:\n"
        "- star_repository: Star a repository (needs owner, repo)\n"
        "- create_issue: Create an issue (needs owner, repo, title, body)\n"
        "- create_pull_request: Create PR (needs owner, repo, title, head, base)\n"
        "- list_own_repositories: List MY (authenticated user's) repos (no params needed)\n"
        "- list_user_repositories: List ANOTHER user's public repos (needs username). Use this when the user "
        "provides a GitHub profile link or mentions another person's username.\n"
        "- get_user_profile: Get ANOTHER user's public GitHub profile (needs username)\n"
        "- get_repository: Get repo info (needs owner, repo)\n"
        "- list_issues: List open issues (needs owner, repo)\n"
        "- create_repository: Create a new repo (needs name, description, private)\n"
        "- push_files: Push/create files in a repo (needs owner, repo, files as array of {path, content})\n"
        "- get_profile: Get MY (authenticated user's) GitHub profile (no params needed)\n\n"
        "If the user gives a GitHub URL like https://github.com/USERNAME, extract USERNAME. "
        "Never invent a username, owner or repo that the user did not mention; leave it empty instead.\n\n"
        "Respond ONLY with JSON, no markdown:\n"
        '{"action":"action_name","params":{"owner":"","repo":"","title":"","body":"","name":"",'
        '"description":"","private":false,"head":"","base":"main","files":[],"username":""}}\n\n'
        f'User: "{quote_for_prompt(text)}"'
    )


def _normalize_files(value: Any) -> List[FileEntry]:
    files: List[FileEntry] = []
    for item in value or []:
        if isinstance(item, dict) and isinstance(item.get("path"), str) and item["path"].strip():
            content = item.get("content")
            files.append(FileEntry(path=item["path"].strip(), content=content if isinstance(content, str) else ""))
    return files


def _normalize_repository_payload(payload: Dict[str, Any], raw_text: str) -> ParserResult:
    action = payload.get("action")
    if not isinstance(action, str):
        return None, f"Action missing from LLM payload: {action!r}"
    action = ACTION_ALIASES.get(action, action)
    if action not in {member.value for member in RepositoryAction}:
        return None, f"Action outside allowed context: {action!r}"

    raw_params = payload.get("params") or {}
    if not isinstance(raw_params, dict):
        return None, "LLM params must be a JSON object"

    # Empty strings mean the user did not mention the value.
    parameters: Dict[str, Any] = {}
    for key in STRING_PARAMETERS:
        value = raw_params.get(key)
        if isinstance(value, str) and value.strip():
            parameters[key] = value.strip()
    if isinstance(raw_params.get("private"), bool):
        parameters["private"] = raw_params["private"]
    files = _normalize_files(raw_params.get("files"))
    if files:
        parameters["files"] = files

    return (
        Intent(
            platform=Platform.REPOSITORY_AUTOMATION,
            action=action,
            parameters=parameters,
            raw_query=raw_text,
        ),
        None,
    )


def parse_repository_fallback(text: str) -> Intent:
    """Regex extraction of a concrete repository action; generic_action when nothing matches."""
    plugin = get_plugin(Platform.REPOSITORY_AUTOMATION)
    match = plugin.extract_action(text) if plugin else None
    if match is None:
        return Intent(
            platform=Platform.REPOSITORY_AUTOMATION,
            action=RepositoryAction.GENERIC_ACTION.value,
            raw_query=text,
            fallback=True,
        )
    action, parameters = match
    return Intent(
        platform=Platform.REPOSITORY_AUTOMATION,
        action=action,
        parameters=parameters,
        raw_query=text,
        fallback=True,
    )


async def parse_repository_intent(
    raw_text: str, llm: Optional[LLMClient], metrics: Optional[AgentMetrics] = None
) -> Intent:
    return await classify_with_fallback(
        raw_text,
        llm,
        build_repository_prompt,
        _normalize_repository_payload,
        parse_repository_fallback,
        metrics,
        stage="repository",
    )


def validate_parameters(intent: Intent) -> None:
    """Raise MissingParameterError for the first required parameter the intent lacks."""
    for name in REQUIRED_PARAMETERS.get(intent.action or "", ()):
        if not intent.param(name):
            raise MissingParameterError(name, MISSING_PARAMETER_MESSAGES.get(name))


# ─── Summaries ────────────────────────────────────────────────────────


def _profile_summary(user: Dict[str, Any]) -> str:
    return (
        f"👤 **{user.get('login')}** ({user.get('name') or 'No name'})\n"
        f"   📦 {user.get('public_repos', 0)} repos | 👥 {user.get('followers', 0)} followers\n"
        f"   🔗 {user.get('html_url')}"
    )


def _public_profile_summary(user: Dict[str, Any]) -> str:
    return (
        f"👤 **{user.get('login')}** ({user.get('name') or 'No name'})\n"
        f"   📝 {user.get('bio') or 'No bio'}\n"
        f"   📦 {user.get('public_repos', 0)} public repos | 👥 {user.get('followers', 0)} followers"
        f" | 👣 {user.get('following', 0)} following\n"
        f"   📍 {user.get('location') or 'N/A'} | 🏢 {user.get('company') or 'N/A'}\n"
        f"   🔗 {user.get('html_url')}"
    )


def _repo_line(index: int, repo: Dict[str, Any], show_language: bool = False) -> str:
    visibility = "🔒" if repo.get("private") else "🌐"
    stats = f"⭐ {repo.get('stargazers_count', 0)} | 🍴 {repo.get('forks_count', 0)}"
    if show_language:
        stats += f" | 🔤 {repo.get('language') or 'N/A'}"
    return (
        f"   {index}. **{repo.get('name')}** {visibility} - {repo.get('description') or 'No description'}\n"
        f"      {stats} | 🔗 {repo.get('html_url')}"
    )


def push_summary(owner: str, repo: str, results: List[PushResult]) -> str:
    succeeded = sum(1 for result in results if result.success)
    lines = [f"📤 Pushed {succeeded}/{len(results)} files to **{owner}/{repo}**"]
    lines.extend(f"   {'✅' if result.success else '❌'} {result.path}" for result in results)
    return "\n".join(lines)


# ─── Action handlers ──────────────────────────────────────────────────


async def _get_profile(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    user = await runtime.github.get_user(identity)
    return _profile_summary(user), user


async def _list_own_repositories(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    repos = await runtime.github.list_repos(identity, per_page=10)
    lines = [f"📦 Your repositories (latest {len(repos)}):"]
    lines.extend(_repo_line(index, repo) for index, repo in enumerate(repos, start=1))
    return "\n".join(lines), repos


async def _list_user_repositories(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    username = intent.param("username")
    repos = await runtime.github.list_public_repos(username)
    if not repos:
        return f"📦 **{username}** has no public repositories.", repos
    lines = [f"📦 Public repos of **{username}** ({len(repos)}):"]
    lines.extend(_repo_line(index, repo, show_language=True) for index, repo in enumerate(repos, start=1))
    return "\n".join(lines), repos


async def _get_user_profile(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    user = await runtime.github.get_public_user(intent.param("username"))
    return _public_profile_summary(user), user


async def _create_repository(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    repo = await runtime.github.create_repo(
        identity,
        intent.param("name"),
        description=intent.param("description", ""),
        private=bool(intent.param("private", False)),
    )
    summary = (
        "✅ Repository created!\n"
        f"   📦 **{repo.get('full_name')}** {'🔒 Private' if repo.get('private') else '🌐 Public'}\n"
        f"   🔗 {repo.get('html_url')}\n"
        f"   📡 Clone: {repo.get('clone_url')}"
    )
    return summary, repo


async def _star_repository(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    owner, repo = intent.param("owner"), intent.param("repo")
    result = await runtime.github.star_repo(identity, owner, repo)
    return f"⭐ Done! Starred **{owner}/{repo}**", result


async def _create_issue(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    issue = await runtime.github.create_issue(
        identity, intent.param("owner"), intent.param("repo"), intent.param("title"), intent.param("body", "")
    )
    summary = f"✅ Issue created!\n   📝 #{issue.get('number')}: **{issue.get('title')}**\n   🔗 {issue.get('html_url')}"
    return summary, issue


async def _list_issues(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    owner, repo = intent.param("owner"), intent.param("repo")
    issues = await runtime.github.list_issues(identity, owner, repo)
    if not issues:
        return f"✅ No open issues in **{owner}/{repo}**", issues
    lines = [f"📋 Open issues in **{owner}/{repo}** ({len(issues)}):"]
    lines.extend(
        f"   {index}. #{issue.get('number')} - **{issue.get('title')}** (by {(issue.get('user') or {}).get('login')})"
        for index, issue in enumerate(issues, start=1)
    )
    return "\n".join(lines), issues


async def _get_repository(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    repo = await runtime.github.get_repo(identity, intent.param("owner"), intent.param("repo"))
    summary = (
        f"📦 **{repo.get('full_name')}**\n"
        f"   📝 {repo.get('description') or 'No description'}\n"
        f"   ⭐ {repo.get('stargazers_count', 0)} | 🍴 {repo.get('forks_count', 0)} | 👁️ {repo.get('watchers_count', 0)}\n"
        f"   🔤 Language: {repo.get('language') or 'N/A'}\n"
        f"   🔗 {repo.get('html_url')}"
    )
    return summary, repo


async def _create_pull_request(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    pull = await runtime.github.create_pull_request(
        identity,
        intent.param("owner"),
        intent.param("repo"),
        intent.param("title"),
        intent.param("head"),
        base=intent.param("base", "main"),
        body=intent.param("body", ""),
    )
    head = (pull.get("head") or {}).get("ref", intent.param("head"))
    base = (pull.get("base") or {}).get("ref", intent.param("base", "main"))
    summary = (
        "✅ Pull Request created!\n"
        f"   🔀 #{pull.get('number')}: **{pull.get('title')}**\n"
        f"   📌 {head} → {base}\n"
        f"   🔗 {pull.get('html_url')}"
    )
    return summary, pull


async def _push_files(runtime: AgentRuntime, identity: str, intent: Intent) -> Tuple[str, Any]:
    owner, repo = intent.param("owner"), intent.param("repo")
    results = await runtime.github.push_files(identity, owner, repo, list(intent.param("files")))
    return push_summary(owner, repo, results), results


ACTION_HANDLERS: Dict[str, Handler] = {
    RepositoryAction.GET_PROFILE.value: _get_profile,
    RepositoryAction.LIST_OWN_REPOSITORIES.value: _list_own_repositories,
    RepositoryAction.LIST_USER_REPOSITORIES.value: _list_user_repositories,
    RepositoryAction.GET_USER_PROFILE.value: _get_user_profile,
    RepositoryAction.CREATE_REPOSITORY.value: _create_repository,
    RepositoryAction.STAR_REPOSITORY.value: _star_repository,
    RepositoryAction.CREATE_ISSUE.value: _create_issue,
    RepositoryAction.LIST_ISSUES.value: _list_issues,
    RepositoryAction.GET_REPOSITORY.value: _get_repository,
    RepositoryAction.CREATE_PULL_REQUEST.value: _create_pull_request,
    RepositoryAction.PUSH_FILES.value: _push_files,
}


async def execute_repository_intent(
    intent: Intent,
    identity: str,
    runtime: AgentRuntime,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    """Gate, validate and run an already-parsed repository intent."""
    correlation_id = metrics.correlation_id if metrics else None
    decision, _ = evaluate_request(intent, identity, runtime.state, metrics)
    if decision == NEEDS_AUTHORIZATION:
        return ActionResult.needs_authorization(runtime.get_authorization_url(identity), action=intent.action)

    handler = ACTION_HANDLERS.get(intent.action or "")
    if handler is None:
        return ActionResult.failed(f"Unknown action: {intent.action}. {UNKNOWN_ACTION_HINT}", action=intent.action)

    try:
        validate_parameters(intent)
    except MissingParameterError as exc:
        logger.warning(
            "Missing required parameter",
            extra={"extra": {"correlation_id": correlation_id, "action": intent.action, "parameter": exc.parameter}},
        )
        return ActionResult.failed(str(exc), action=intent.action)

    try:
        summary, payload = await handler(runtime, identity, intent)
    except (CredentialInvalidError, NotAuthorizedError) as exc:
        # The stored token is unusable: forget it and ask for a fresh grant.
        runtime.state.remove(identity)
        if metrics:
            metrics.credential_invalidated = True
            metrics.authorization_required = True
        logger.warning(
            "Credential rejected, re-authorization required",
            extra={"extra": {"correlation_id": correlation_id, "identity": identity, "error": str(exc)}},
        )
        url = runtime.get_authorization_url(identity)
        return ActionResult.needs_authorization(
            url, action=intent.action, message=f"Session expired. Please reconnect:\n🔗 {url}"
        )
    except ProviderError as exc:
        logger.error(
            "Repository action failed",
            extra={"extra": {"correlation_id": correlation_id, "action": intent.action, "error": str(exc)}},
        )
        return ActionResult.failed(str(exc), action=intent.action)

    return ActionResult.ok(intent.action, summary, payload)


async def run_repository_agent(
    raw_text: str,
    identity: str = "default",
    runtime: Optional[AgentRuntime] = None,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    """Understand a repository request and run it as ``identity``."""
    runtime = runtime or default_runtime()
    start = time.time()
    intent = await parse_repository_intent(raw_text, runtime.llm, metrics)
    logger.info(
        "Repository intent resolved",
        extra={
            "extra": {
                "correlation_id": metrics.correlation_id if metrics else None,
                "action": intent.action,
                "fallback": intent.fallback,
            }
        },
    )
    if metrics:
        metrics.action = intent.action

    result = await execute_repository_intent(intent, identity, runtime, metrics)
    if metrics:
        metrics.dispatch_latency_ms = int((time.time() - start) * 1000)
    return result
