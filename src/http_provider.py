"""Shared async HTTP plumbing for the remote capability providers."""
from __future__ import annotations

from typing import Any, Optional

import httpx

from errors import ProviderError


class AsyncHTTPProvider:
    """
    Base for provider clients built on httpx.

    An injected ``httpx.AsyncClient`` is reused for every call (tests pass one
    backed by ``httpx.MockTransport``); otherwise a short-lived client is opened
    per request.
    """

    name = "provider"

    def __init__(self, http: Optional[httpx.AsyncClient] = None, timeout: float = 30.0) -> None:
        self._http = http
        self.timeout = timeout

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._http is not None:
                return await self._http.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, f"{self.name} request failed: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        raise ProviderError(
            self.name,
            f"{self.name} API error {response.status_code}: {_error_message(response)}",
            status_code=response.status_code,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        status = body.get("status")
        if isinstance(status, dict) and status.get("error_message"):
            return str(status["error_message"])
        for key in ("message", "error_description", "error"):
            if body.get(key):
                value = body[key]
                return value.get("message", str(value)) if isinstance(value, dict) else str(value)
    return response.reason_phrase
