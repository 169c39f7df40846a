"""GitHub REST client acting on a user's behalf through their stored OAuth token."""
from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

import httpx

from auth_state import AuthorizationState, default_authorization_state
from config import GitHubConfig, config
from errors import CredentialInvalidError, NotAuthorizedError, ProviderError
from http_provider import AsyncHTTPProvider
from logging_utils import logger
from models import FileEntry, PushResult


class GitHubClient(AsyncHTTPProvider):
    name = "github"

    def __init__(
        self,
        state: Optional[AuthorizationState] = None,
        settings: Optional[GitHubConfig] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or config.github
        super().__init__(http=http, timeout=self.settings.timeout)
        self.state = state or default_authorization_state()

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.settings.user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def api(
        self,
        endpoint: str,
        identity: str,
        method: str = "GET",
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Authenticated call for ``identity``.

        Raises NotAuthorizedError when no credential is stored and
        CredentialInvalidError when GitHub rejects the token (HTTP 401).
        """
        record = self.state.get(identity)
        if record is None:
            raise NotAuthorizedError(identity)

        response = await self._send(
            method,
            f"{self.settings.api_base}{endpoint}",
            headers=self._headers(record.bearer_token),
            json=json,
            params=params,
        )
        if response.status_code == 401:
            raise CredentialInvalidError()
        self._raise_for_status(response)
        return self._json(response)

    async def public_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._send(
            "GET", f"{self.settings.api_base}{endpoint}", headers=self._headers(), params=params
        )
        self._raise_for_status(response)
        return self._json(response)

    # ─── Authenticated actions ────────────────────────────────────────

    async def get_user(self, identity: str) -> Dict[str, Any]:
        return await self.api("/user", identity)

    async def list_repos(self, identity: str, sort: str = "updated", per_page: int = 10) -> List[Dict[str, Any]]:
        return await self.api(
            "/user/repos", identity, params={"sort": sort, "per_page": per_page, "affiliation": "owner"}
        )

    async def create_repo(
        self,
        identity: str,
        name: str,
        description: str = "",
        private: bool = False,
        auto_init: bool = True,
    ) -> Dict[str, Any]:
        return await self.api(
            "/user/repos",
            identity,
            method="POST",
            json={"name": name, "description": description, "private": private, "auto_init": auto_init},
        )

    async def get_repo(self, identity: str, owner: str, repo: str) -> Dict[str, Any]:
        return await self.api(f"/repos/{owner}/{repo}", identity)

    async def star_repo(self, identity: str, owner: str, repo: str) -> Dict[str, Any]:
        await self.api(f"/user/starred/{owner}/{repo}", identity, method="PUT")
        return {"starred": True, "repo": f"{owner}/{repo}"}

    async def create_issue(
        self,
        identity: str,
        owner: str,
        repo: str,
        title: str,
        body: str = "",
        labels: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        return await self.api(
            f"/repos/{owner}/{repo}/issues",
            identity,
            method="POST",
            json={"title": title, "body": body, "labels": labels or []},
        )

    async def list_issues(self, identity: str, owner: str, repo: str) -> List[Dict[str, Any]]:
        return await self.api(
            f"/repos/{owner}/{repo}/issues", identity, params={"per_page": 10, "state": "open"}
        )

    async def create_pull_request(
        self,
        identity: str,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str = "main",
        body: str = "",
    ) -> Dict[str, Any]:
        return await self.api(
            f"/repos/{owner}/{repo}/pulls",
            identity,
            method="POST",
            json={"title": title, "head": head, "base": base, "body": body},
        )

    async def get_file_sha(self, identity: str, owner: str, repo: str, path: str) -> Optional[str]:
        """Blob sha of an existing file, or None when the path does not exist yet."""
        try:
            existing = await self.api(f"/repos/{owner}/{repo}/contents/{path}", identity)
        except ProviderError as exc:
            if exc.status_code == 404:
                return None
            raise
        return existing.get("sha") if isinstance(existing, dict) else None

    async def create_or_update_file(
        self,
        identity: str,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
    ) -> Dict[str, Any]:
        sha = await self.get_file_sha(identity, owner, repo, path)
        data: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha:
            data["sha"] = sha
        return await self.api(f"/repos/{owner}/{repo}/contents/{path}", identity, method="PUT", json=data)

    async def push_files(
        self,
        identity: str,
        owner: str,
        repo: str,
        files: List[FileEntry],
        message: str = "Push from Agentic Workflow",
    ) -> List[PushResult]:
        """
        Write files one at a time, in order.

        A failed file is recorded and the rest still run. A rejected token
        aborts the push, since every remaining write would fail the same way.
        """
        results: List[PushResult] = []
        for entry in files:
            try:
                response = await self.create_or_update_file(
                    identity, owner, repo, entry.path, entry.content, message
                )
            except CredentialInvalidError:
                raise
            except ProviderError as exc:
                logger.warning(
                    "File push failed",
                    extra={"extra": {"repo": f"{owner}/{repo}", "path": entry.path, "error": str(exc)}},
                )
                results.append(PushResult(path=entry.path, success=False, error=str(exc)))
                continue
            content = (response or {}).get("content") or {}
            results.append(PushResult(path=entry.path, success=True, url=content.get("html_url")))

        logger.info(
            "Push complete",
            extra={
                "extra": {
                    "repo": f"{owner}/{repo}",
                    "succeeded": sum(1 for result in results if result.success),
                    "total": len(files),
                }
            },
        )
        return results

    # ─── Public API (no credential) ───────────────────────────────────

    async def get_public_user(self, username: str) -> Dict[str, Any]:
        return await self.public_api(f"/users/{username}")

    async def list_public_repos(self, username: str, sort: str = "updated", per_page: int = 30) -> List[Dict[str, Any]]:
        return await self.public_api(
            f"/users/{username}/repos", params={"sort": sort, "per_page": per_page, "type": "owner"}
        )
