"""Centralized configuration management for agentic_workflow."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_LLM_MODELS = ["gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-3-flash"]
GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _load_env() -> None:
    """Load .env from ENV_FILE or the project root, keeping OS values when both are set."""
    candidate = Path(os.getenv("ENV_FILE", str(BASE_DIR / ".env")))
    if candidate.exists():
        load_dotenv(dotenv_path=candidate)
    else:
        load_dotenv()


_load_env()


def _split_csv(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class LLMConfig:
    """Configuration for the generative-text provider."""

    api_key: Optional[str] = None
    base_url: Optional[str] = GEMINI_OPENAI_BASE_URL
    models: List[str] = field(default_factory=lambda: list(DEFAULT_LLM_MODELS))
    temperature: float = 0.0
    timeout: int = 60
    max_retries: int = 3
    base_delay: float = 5.0

    @classmethod
    def from_env(cls) -> LLMConfig:
        """Load LLM configuration from environment variables."""
        return cls(
            api_key=os.getenv("LLM_API_KEY") or os.getenv("GEMINI_API_KEY"),
            base_url=os.getenv("LLM_BASE_URL", GEMINI_OPENAI_BASE_URL) or None,
            models=_split_csv(os.getenv("LLM_MODELS"), DEFAULT_LLM_MODELS),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.0")),
            timeout=int(os.getenv("LLM_TIMEOUT", "60")),
            max_retries=int(os.getenv("LLM_MAX_RETRIES", "3")),
            base_delay=float(os.getenv("LLM_BASE_DELAY", "5.0")),
        )


@dataclass
class GitHubConfig:
    """OAuth app and REST settings for the source-control provider."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None
    scope: str = "repo user read:org workflow"
    api_base: str = "https://api.github.com"
    authorize_url: str = "https://github.com/login/oauth/authorize"
    token_url: str = "https://github.com/login/oauth/access_token"
    user_agent: str = "AgenticWorkflow-App"
    timeout: int = 30

    @classmethod
    def from_env(cls) -> GitHubConfig:
        return cls(
            client_id=os.getenv("GITHUB_CLIENT_ID"),
            client_secret=os.getenv("GITHUB_CLIENT_SECRET"),
            redirect_uri=os.getenv("GITHUB_REDIRECT_URI"),
            scope=os.getenv("GITHUB_SCOPE", "repo user read:org workflow"),
            api_base=os.getenv("GITHUB_API_BASE", "https://api.github.com").rstrip("/"),
            timeout=int(os.getenv("GITHUB_TIMEOUT", "30")),
        )


@dataclass
class ApifyConfig:
    """Settings for the primary content scraper."""

    api_key: Optional[str] = None
    actor_id: str = "nH2AHrwxeTRJoN5hX"
    base_url: str = "https://api.apify.com/v2"
    timeout: int = 120

    @classmethod
    def from_env(cls) -> ApifyConfig:
        return cls(
            api_key=os.getenv("APIFY_API_KEY"),
            actor_id=os.getenv("APIFY_ACTOR_ID", "nH2AHrwxeTRJoN5hX"),
            base_url=os.getenv("APIFY_BASE_URL", "https://api.apify.com/v2").rstrip("/"),
            timeout=int(os.getenv("APIFY_TIMEOUT", "120")),
        )


@dataclass
class MarketDataConfig:
    api_key: Optional[str] = None
    base_url: str = "https://pro-api.coinmarketcap.com/v1"
    timeout: int = 30

    @classmethod
    def from_env(cls) -> MarketDataConfig:
        return cls(
            api_key=os.getenv("COINMARKETCAP_APIKEY"),
            base_url=os.getenv("COINMARKETCAP_BASE_URL", "https://pro-api.coinmarketcap.com/v1").rstrip("/"),
            timeout=int(os.getenv("COINMARKETCAP_TIMEOUT", "30")),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    log_level: str = "INFO"
    log_path: Path = field(default_factory=lambda: BASE_DIR / "logs" / "agent.log")
    json_format: bool = True
    console_output: bool = True

    @classmethod
    def from_env(cls) -> LoggingConfig:
        """Load logging configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_path=Path(os.getenv("LOG_PATH", str(BASE_DIR / "logs" / "agent.log"))),
            json_format=os.getenv("LOG_JSON_FORMAT", "true").lower() == "true",
            console_output=os.getenv("LOG_CONSOLE", "true").lower() == "true",
        )


@dataclass
class AppConfig:
    """Main application configuration."""

    llm: LLMConfig
    github: GitHubConfig
    apify: ApifyConfig
    market_data: MarketDataConfig
    logging: LoggingConfig
    environment: str = "production"

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables."""
        return cls(
            llm=LLMConfig.from_env(),
            github=GitHubConfig.from_env(),
            apify=ApifyConfig.from_env(),
            market_data=MarketDataConfig.from_env(),
            logging=LoggingConfig.from_env(),
            environment=os.getenv("ENVIRONMENT", "production"),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if not self.llm.models:
            raise ConfigurationError("LLM_MODELS must name at least one model")

        if self.llm.max_retries < 1:
            raise ConfigurationError(f"Invalid LLM max_retries: {self.llm.max_retries}")

        if self.llm.base_delay < 0:
            raise ConfigurationError(f"Invalid LLM base_delay: {self.llm.base_delay}")

        if not 0 <= self.llm.temperature <= 2:
            raise ConfigurationError(f"Invalid LLM temperature: {self.llm.temperature}")

    def missing_credentials(self) -> List[str]:
        """Names of provider credentials that are not configured."""
        required = {
            "LLM_API_KEY": self.llm.api_key,
            "GITHUB_CLIENT_ID": self.github.client_id,
            "GITHUB_CLIENT_SECRET": self.github.client_secret,
            "GITHUB_REDIRECT_URI": self.github.redirect_uri,
            "APIFY_API_KEY": self.apify.api_key,
            "COINMARKETCAP_APIKEY": self.market_data.api_key,
        }
        return sorted(name for name, value in required.items() if not value)


# Global configuration instance
config = AppConfig.from_env()
