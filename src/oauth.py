"""GitHub OAuth flow: authorization URL generation and code exchange."""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

import httpx

from auth_state import AuthorizationState, default_authorization_state
from config import GitHubConfig, config
from errors import OAuthExchangeError
from http_provider import AsyncHTTPProvider
from logging_utils import logger
from models import CredentialRecord


class OAuthClient(AsyncHTTPProvider):
    """Connects identities to GitHub so users never handle API keys."""

    name = "github_oauth"

    def __init__(
        self,
        state: Optional[AuthorizationState] = None,
        settings: Optional[GitHubConfig] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or config.github
        super().__init__(http=http, timeout=self.settings.timeout)
        self.state = state or default_authorization_state()

    def get_authorization_url(self, identity: str = "default") -> str:
        """URL the user visits to grant access; ``state`` carries the identity back."""
        params = {
            "client_id": self.settings.client_id or "",
            "redirect_uri": self.settings.redirect_uri or "",
            "scope": self.settings.scope,
            "state": identity,
        }
        return f"{self.settings.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, identity: str = "default") -> CredentialRecord:
        """Exchange the temporary authorization code for a bearer token."""
        response = await self._send(
            "POST",
            self.settings.token_url,
            json={
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
                "code": code,
                "redirect_uri": self.settings.redirect_uri,
            },
            headers={"Accept": "application/json"},
        )
        self._raise_for_status(response)
        data = response.json()

        if data.get("error"):
            logger.error("Token exchange failed", extra={"extra": {"identity": identity, "error": data.get("error")}})
            raise OAuthExchangeError(f"GitHub OAuth error: {data.get('error_description') or data['error']}")
        if not data.get("access_token"):
            raise OAuthExchangeError("GitHub OAuth error: no access token in response")

        return CredentialRecord(
            identity=identity,
            bearer_token=data["access_token"],
            token_scope=data.get("scope", ""),
            token_type=data.get("token_type", "bearer"),
        )

    async def connect(self, identity: str, code: str) -> CredentialRecord:
        record = await self.exchange_code(code, identity)
        self.state.put(identity, record)
        return record

    def disconnect(self, identity: str) -> None:
        self.state.remove(identity)
