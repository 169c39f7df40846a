"""Plugin architecture for deterministic, regex-based platform detection and action extraction."""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from models import ContentAction, Intent, MarketAction, Platform, RepositoryAction

ActionMatch = Tuple[str, Dict[str, Any]]

INSTAGRAM_URL_RE = re.compile(r"https?://(?:www\.)?instagram\.com/[^\s\"'<>]+", re.IGNORECASE)
GITHUB_URL_RE = re.compile(
    r"https?://(?:www\.)?github\.com/([A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)(?:/([A-Za-z0-9_.-]+))?/?",
    re.IGNORECASE,
)
OWNER_REPO_RE = re.compile(r"(?<![\w./-])([A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)/([A-Za-z0-9_.-]+)\b")
QUOTED_RE = re.compile(r"\"([^\"]+)\"|“([^”]+)”|(?<!\w)'([^']+)'(?!\w)")

SYMBOL_ALIASES: Dict[str, str] = {
    "bitcoin": "BTC",
    "btc": "BTC",
    "ethereum": "ETH",
    "ether": "ETH",
    "eth": "ETH",
    "solana": "SOL",
    "sol": "SOL",
    "dogecoin": "DOGE",
    "doge": "DOGE",
    "ripple": "XRP",
    "xrp": "XRP",
    "cardano": "ADA",
    "ada": "ADA",
    "litecoin": "LTC",
    "ltc": "LTC",
    "polkadot": "DOT",
    "bnb": "BNB",
    "tether": "USDT",
    "usdt": "USDT",
}


@dataclass
class PlatformPlugin(ABC):
    """Base class for platform-specific fallback extraction."""

    platform: Platform
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        """Check if text mentions this platform."""
        return bool(self.pattern.search(text))

    def detect(self, text: str) -> Optional[Intent]:
        """Coarse, platform-level intent used when routing without the model."""
        if not self.matches(text):
            return None
        return Intent(
            platform=self.platform,
            action=self.default_action,
            parameters=self.routing_parameters(text),
            raw_query=text,
            fallback=True,
        )

    def routing_parameters(self, text: str) -> Dict[str, Any]:
        return {}

    @property
    @abstractmethod
    def default_action(self) -> str:
        """Action assigned at routing time."""

    @abstractmethod
    def extract_action(self, text: str) -> Optional[ActionMatch]:
        """Resolve a concrete action and its parameters from text, or None."""


class ContentAnalysisPlugin(PlatformPlugin):
    """Instagram post and reel URLs."""

    def __init__(self) -> None:
        super().__init__(platform=Platform.CONTENT_ANALYSIS, pattern=INSTAGRAM_URL_RE)

    @property
    def default_action(self) -> str:
        return ContentAction.ANALYZE.value

    def routing_parameters(self, text: str) -> Dict[str, Any]:
        return {"urls": extract_instagram_urls(text)}

    def extract_action(self, text: str) -> Optional[ActionMatch]:
        urls = extract_instagram_urls(text)
        if not urls:
            return None
        return self.default_action, {"urls": urls}


class RepositoryPlugin(PlatformPlugin):
    """GitHub repositories, issues, pull requests and profiles."""

    def __init__(self) -> None:
        super().__init__(
            platform=Platform.REPOSITORY_AUTOMATION,
            pattern=re.compile(
                r"\b(github|repo|repository|repos|repositories|issue|issues|pull\s*request|PR|star|fork|commit|push|branch)\b",
                re.IGNORECASE,
            ),
        )

    @property
    def default_action(self) -> str:
        return RepositoryAction.GENERIC_ACTION.value

    def extract_action(self, text: str) -> Optional[ActionMatch]:
        lowered = text.lower()
        github_url = GITHUB_URL_RE.search(text)
        owner_repo = _extract_owner_repo(text)
        if owner_repo is None and github_url and github_url.group(2):
            owner_repo = (github_url.group(1), github_url.group(2))
        title = _extract_quoted(text)

        if re.search(r"\bstar\b", lowered) and owner_repo:
            return RepositoryAction.STAR_REPOSITORY.value, _owner_repo_params(owner_repo)

        if re.search(r"\b(pull\s*request|pr)\b", lowered) and re.search(r"\b(create|open|make|new|submit)\b", lowered):
            params: Dict[str, Any] = _owner_repo_params(owner_repo) if owner_repo else {}
            if title:
                params["title"] = title
            head = re.search(r"\bfrom\s+(?:branch\s+)?([A-Za-z0-9._/-]+)", text, re.IGNORECASE)
            if head:
                params["head"] = head.group(1)
            base = re.search(r"\b(?:into|onto)\s+(?:branch\s+)?([A-Za-z0-9._-]+)", text, re.IGNORECASE)
            params["base"] = base.group(1) if base and "/" not in base.group(1) else "main"
            return RepositoryAction.CREATE_PULL_REQUEST.value, params

        if re.search(r"\bissues?\b", lowered):
            listing = re.search(r"\b(list|show|get|view|what|which|any)\b", lowered)
            if not listing and re.search(r"\b(create|open|file|new|raise|report)\b", lowered):
                params = _owner_repo_params(owner_repo) if owner_repo else {}
                if title:
                    params["title"] = title
                return RepositoryAction.CREATE_ISSUE.value, params
            if owner_repo:
                return RepositoryAction.LIST_ISSUES.value, _owner_repo_params(owner_repo)

        if re.search(r"\b(create|make|new|init(?:ialize)?)\b", lowered) and re.search(r"\b(repo|repository)\b", lowered):
            name = re.search(r"\b(?:called|named)\s+[\"']?([A-Za-z0-9._-]+)", text, re.IGNORECASE)
            params = {"private": bool(re.search(r"\bprivate\b", lowered))}
            if name:
                params["name"] = name.group(1)
            elif title:
                params["name"] = title
            return RepositoryAction.CREATE_REPOSITORY.value, params

        if re.search(r"\b(my|mine)\b", lowered):
            if re.search(r"\b(repos|repositories|repo|projects)\b", lowered):
                return RepositoryAction.LIST_OWN_REPOSITORIES.value, {}
            if re.search(r"\b(profile|account|who\s+am\s+i)\b", lowered):
                return RepositoryAction.GET_PROFILE.value, {}

        username = _extract_username(text, github_url)
        if username:
            if re.search(r"\b(repos|repositories|projects)\b", lowered):
                return RepositoryAction.LIST_USER_REPOSITORIES.value, {"username": username}
            return RepositoryAction.GET_USER_PROFILE.value, {"username": username}

        if owner_repo:
            return RepositoryAction.GET_REPOSITORY.value, _owner_repo_params(owner_repo)

        return None


class MarketDataPlugin(PlatformPlugin):
    """Cryptocurrency prices, listings and market overviews."""

    def __init__(self) -> None:
        super().__init__(
            platform=Platform.MARKET_DATA,
            pattern=re.compile(
                r"\b(crypto|bitcoin|btc|ethereum|eth|solana|sol|coin|token|price|market\s*cap|dogecoin|doge|xrp|cardano|ada)\b",
                re.IGNORECASE,
            ),
        )

    @property
    def default_action(self) -> str:
        return MarketAction.GENERIC_ACTION.value

    def extract_action(self, text: str) -> Optional[ActionMatch]:
        lowered = text.lower()
        top = re.search(r"\btop\s+(\d{1,3})\b", lowered)
        if top or re.search(r"\btop\s+(coins|cryptos?|cryptocurrencies)\b", lowered):
            limit = int(top.group(1)) if top else 10
            return MarketAction.TOP_COINS.value, {"limit": limit}

        symbols = extract_symbols(text)
        if symbols:
            joined = ",".join(symbols)
            if re.search(r"\b(analy[sz]e|analysis|good\s+buy|should\s+i|outlook|trend|insights?)\b", lowered):
                return MarketAction.ANALYZE.value, {"symbols": joined}
            return MarketAction.GET_PRICE.value, {"symbols": joined}

        if re.search(r"\b(market|overview|crypto)\b", lowered):
            return MarketAction.MARKET_OVERVIEW.value, {"limit": 10}

        return None


# Ordered registry: the first matching plugin wins.
PLATFORM_PLUGINS: List[PlatformPlugin] = [
    ContentAnalysisPlugin(),
    RepositoryPlugin(),
    MarketDataPlugin(),
]


def get_plugin(platform: Platform) -> Optional[PlatformPlugin]:
    """Get plugin for a platform."""
    for plugin in PLATFORM_PLUGINS:
        if plugin.platform == platform:
            return plugin
    return None


def detect_platform_intent(text: str) -> Intent:
    """Detect which platform the text targets using plugins, in registry order."""
    for plugin in PLATFORM_PLUGINS:
        intent = plugin.detect(text)
        if intent is not None:
            return intent
    return Intent.unrecognized(text, fallback=True)


def extract_instagram_urls(text: str) -> List[str]:
    return INSTAGRAM_URL_RE.findall(text)


def extract_symbols(text: str) -> List[str]:
    """Ticker symbols named in text, in order of first mention."""
    symbols: List[str] = []
    for token in re.findall(r"\$?[A-Za-z]+", text):
        bare = token.lstrip("$")
        symbol = SYMBOL_ALIASES.get(bare.lower())
        if symbol is None and token.startswith("$") and 2 <= len(bare) <= 6:
            symbol = bare.upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols


def _extract_owner_repo(text: str) -> Optional[Tuple[str, str]]:
    stripped = GITHUB_URL_RE.sub(" ", INSTAGRAM_URL_RE.sub(" ", text))
    stripped = re.sub(r"https?://\S+", " ", stripped)
    match = OWNER_REPO_RE.search(stripped)
    if not match:
        return None
    repo = match.group(2).rstrip(".")
    return match.group(1), repo


def _owner_repo_params(owner_repo: Tuple[str, str]) -> Dict[str, Any]:
    return {"owner": owner_repo[0], "repo": owner_repo[1]}


def _extract_quoted(text: str) -> Optional[str]:
    match = QUOTED_RE.search(text)
    if not match:
        return None
    return next(group for group in match.groups() if group is not None).strip()


def _extract_username(text: str, github_url: Optional[re.Match]) -> Optional[str]:
    if github_url and not github_url.group(2):
        return github_url.group(1)
    mention = re.search(r"(?<![\w.])@([A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)\b", text)
    if mention:
        return mention.group(1)
    named = re.search(r"\b(?:user|username|account)\s+([A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)\b", text, re.IGNORECASE)
    if named and named.group(1).lower() not in {"profile", "repos", "repositories", "the", "a"}:
        return named.group(1)
    return None
