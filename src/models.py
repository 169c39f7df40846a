"""Data models and constants for the agentic_workflow router."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Type


class Platform(str, Enum):
    CONTENT_ANALYSIS = "content_analysis"
    REPOSITORY_AUTOMATION = "repository_automation"
    MARKET_DATA = "market_data"
    UNRECOGNIZED = "unrecognized"


class ContentAction(str, Enum):
    ANALYZE = "analyze"
    QUICK = "quick"


class RepositoryAction(str, Enum):
    CREATE_REPOSITORY = "create_repository"
    STAR_REPOSITORY = "star_repository"
    CREATE_ISSUE = "create_issue"
    LIST_OWN_REPOSITORIES = "list_own_repositories"
    LIST_USER_REPOSITORIES = "list_user_repositories"
    GET_PROFILE = "get_profile"
    GET_USER_PROFILE = "get_user_profile"
    GET_REPOSITORY = "get_repository"
    LIST_ISSUES = "list_issues"
    CREATE_PULL_REQUEST = "create_pull_request"
    PUSH_FILES = "push_files"
    GENERIC_ACTION = "generic_action"


class MarketAction(str, Enum):
    GET_PRICE = "get_price"
    TOP_COINS = "top_coins"
    ANALYZE = "analyze"
    MARKET_OVERVIEW = "market_overview"
    GENERIC_ACTION = "generic_action"


class Outcome(str, Enum):
    OK = "ok"
    NEEDS_AUTHORIZATION = "needs_authorization"
    FAILED = "failed"


PLATFORM_ACTIONS: Dict[Platform, Type[Enum]] = {
    Platform.CONTENT_ANALYSIS: ContentAction,
    Platform.REPOSITORY_AUTOMATION: RepositoryAction,
    Platform.MARKET_DATA: MarketAction,
}


def allowed_actions(platform: Platform) -> set[str]:
    """Closed action vocabulary for a platform (empty for unrecognized)."""
    enum_cls = PLATFORM_ACTIONS.get(platform)
    if enum_cls is None:
        return set()
    return {member.value for member in enum_cls}


@dataclass(frozen=True)
class FileEntry:
    path: str
    content: str


@dataclass(frozen=True)
class Intent:
    """Structured intent parsed from raw text."""
    platform: Platform
    action: Optional[str]
    parameters: Mapping[str, Any] = field(default_factory=dict)
    raw_query: str = ""
    fallback: bool = False

    def __post_init__(self) -> None:
        if self.platform == Platform.UNRECOGNIZED and self.action is not None:
            raise ValueError("An unrecognized intent cannot carry an action")
        if self.action is not None and self.action not in allowed_actions(self.platform):
            raise ValueError(f"Action '{self.action}' is not valid for platform '{self.platform.value}'")
        # Freeze the parameter mapping so the intent is immutable end to end.
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    @classmethod
    def unrecognized(cls, raw_query: str, fallback: bool = False) -> Intent:
        return cls(platform=Platform.UNRECOGNIZED, action=None, raw_query=raw_query, fallback=fallback)

    def param(self, name: str, default: Any = None) -> Any:
        return self.parameters.get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for key, value in self.parameters.items():
            if isinstance(value, list):
                params[key] = [asdict(item) if isinstance(item, FileEntry) else item for item in value]
            else:
                params[key] = value
        return {
            "platform": self.platform.value,
            "action": self.action,
            "parameters": params,
            "raw_query": self.raw_query,
            "fallback": self.fallback,
        }


@dataclass(frozen=True)
class CredentialRecord:
    """Stored bearer token authorizing source-control actions for one identity."""
    identity: str
    bearer_token: str
    token_scope: str = ""
    token_type: str = "bearer"
    acquired_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ActionResult:
    """Uniform three-way outcome envelope returned by every dispatch call."""
    outcome: Outcome
    action: Optional[str] = None
    summary: Optional[str] = None
    payload: Any = None
    authorization_url: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, action: str, summary: str, payload: Any = None) -> ActionResult:
        return cls(outcome=Outcome.OK, action=action, summary=summary, payload=payload)

    @classmethod
    def needs_authorization(
        cls, authorization_url: str, action: Optional[str] = None, message: Optional[str] = None
    ) -> ActionResult:
        return cls(
            outcome=Outcome.NEEDS_AUTHORIZATION,
            action=action,
            authorization_url=authorization_url,
            message=message or f"This action requires GitHub authorization.\n🔗 {authorization_url}",
        )

    @classmethod
    def failed(cls, error: str, action: Optional[str] = None) -> ActionResult:
        return cls(outcome=Outcome.FAILED, action=action, error=error)

    @property
    def is_ok(self) -> bool:
        return self.outcome == Outcome.OK

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"outcome": self.outcome.value, "action": self.action}
        if self.outcome == Outcome.OK:
            result["summary"] = self.summary
            result["payload"] = _jsonable(self.payload)
        elif self.outcome == Outcome.NEEDS_AUTHORIZATION:
            result["authorization_url"] = self.authorization_url
            result["message"] = self.message
        else:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class PushResult:
    path: str
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class PostMetrics:
    """Engagement metrics for a single social-media post."""
    url: str
    likes: int
    comments: int
    username: str
    is_video: bool
    views: Optional[int] = None
    caption: str = ""
    photo_url: str = ""
    video_url: str = ""
    thumbnail_url: str = ""
    timestamp: str = ""
    post_type: str = "unknown"
    note: Optional[str] = None
    raw: Any = None

    @property
    def degraded(self) -> bool:
        return self.note is not None

    def for_prompt(self) -> Dict[str, Any]:
        """Metrics without the opaque provider payload."""
        data = asdict(self)
        data.pop("raw", None)
        if self.views is None:
            data.pop("views")
        return data


@dataclass(frozen=True)
class CoinQuote:
    symbol: str
    name: str
    price: float
    volume_24h: float
    percent_change_1h: float
    percent_change_24h: float
    percent_change_7d: float
    market_cap: float
    rank: Optional[int]


@dataclass
class RequestRecord:
    """Batch request record accepted by the CLI."""
    id: str
    identity: str
    raw_text: str


def _jsonable(value: Any) -> Any:
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if hasattr(value, "__dataclass_fields__"):
        data = asdict(value)
        data.pop("raw", None)
        return data
    return value
