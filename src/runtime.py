"""Process-wide wiring of the LLM client, authorization state and provider clients."""
from __future__ import annotations

from typing import Optional

from auth_state import AuthorizationState, default_authorization_state
from config import AppConfig, config
from github_client import GitHubClient
from llm_client import LLMClient
from logging_utils import logger
from market_data import MarketDataClient
from oauth import OAuthClient
from reporter import Reporter
from scraper import InstagramScraper


class AgentRuntime:
    """
    Collaborators shared by every dispatch.

    ``llm`` may be None, in which case every classification takes the
    deterministic fallback path and report-producing actions fail.
    """

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        state: Optional[AuthorizationState] = None,
        oauth: Optional[OAuthClient] = None,
        github: Optional[GitHubClient] = None,
        scraper: Optional[InstagramScraper] = None,
        market: Optional[MarketDataClient] = None,
        reporter: Optional[Reporter] = None,
    ) -> None:
        self.llm = llm
        self.state = state or default_authorization_state()
        self.oauth = oauth or OAuthClient(state=self.state)
        self.github = github or GitHubClient(state=self.state)
        self.scraper = scraper or InstagramScraper()
        self.market = market or MarketDataClient()
        self.reporter = reporter or (Reporter(llm) if llm is not None else None)

    @classmethod
    def from_config(cls, settings: Optional[AppConfig] = None) -> AgentRuntime:
        settings = settings or config
        settings.validate()
        llm = LLMClient(settings=settings.llm) if settings.llm.api_key else None
        if llm is None:
            logger.warning("LLM API key not configured; classification will use the regex fallback only")
        return cls(
            llm=llm,
            oauth=OAuthClient(settings=settings.github),
            github=GitHubClient(settings=settings.github),
            scraper=InstagramScraper(settings=settings.apify),
            market=MarketDataClient(settings=settings.market_data),
        )

    def is_authorized(self, identity: str) -> bool:
        return self.state.has_credential(identity)

    def get_authorization_url(self, identity: str = "default") -> str:
        return self.oauth.get_authorization_url(identity)


_default_runtime: Optional[AgentRuntime] = None


def default_runtime() -> AgentRuntime:
    """Lazily built runtime from the global configuration."""
    global _default_runtime
    if _default_runtime is None:
        _default_runtime = AgentRuntime.from_config()
    return _default_runtime
