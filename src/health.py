"""Health checks for provider configuration, logging and LLM reachability."""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional

from config import AppConfig, config
from logging_utils import logger


@dataclass
class HealthCheck:
    name: str
    healthy: bool
    message: str
    latency_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthStatus:
    healthy: bool
    checks: Dict[str, HealthCheck]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "timestamp": self.timestamp,
            "checks": {name: {k: v for k, v in asdict(check).items() if k != "name"} for name, check in self.checks.items()},
        }


def _timed(name: str, probe: Callable[[], HealthCheck]) -> HealthCheck:
    """Run a probe, stamping its latency and turning any exception into an unhealthy result."""
    start = time.time()
    try:
        check = probe()
    except Exception as e:
        check = HealthCheck(name=name, healthy=False, message=f"{name} error: {str(e)[:100]}")
    check.latency_ms = int((time.time() - start) * 1000)
    return check


def check_configuration(settings: Optional[AppConfig] = None) -> HealthCheck:
    """Settings must validate; missing provider credentials are reported but only disable that provider."""
    settings = settings or config

    def probe() -> HealthCheck:
        settings.validate()
        missing = settings.missing_credentials()
        message = "Configuration valid"
        if missing:
            message += f", {len(missing)} credential(s) missing"
        return HealthCheck(
            name="configuration",
            healthy=True,
            message=message,
            metadata={"missing_credentials": missing, "models": list(settings.llm.models)},
        )

    return _timed("configuration", probe)


def check_llm_connection(settings: Optional[AppConfig] = None) -> HealthCheck:
    """One-attempt completion against the configured model chain. Spends quota."""
    settings = settings or config

    def probe() -> HealthCheck:
        if not settings.llm.api_key:
            return HealthCheck(name="llm_connection", healthy=False, message="LLM API key not configured")

        from llm_client import LLMClient

        completion = asyncio.run(LLMClient(settings=settings.llm, max_retries=1).complete("ping"))
        return HealthCheck(
            name="llm_connection",
            healthy=True,
            message="LLM API is reachable",
            metadata={"model": completion.model},
        )

    return _timed("llm_connection", probe)


def check_logging() -> HealthCheck:
    def probe() -> HealthCheck:
        logger.info("Health check test log", extra={"extra": {"test": True}})
        return HealthCheck(
            name="logging",
            healthy=True,
            message="Logging system is functional",
            metadata={"log_path": str(config.logging.log_path)},
        )

    return _timed("logging", probe)


def get_health_status(include_llm_check: bool = False, settings: Optional[AppConfig] = None) -> HealthStatus:
    """
    Args:
        include_llm_check: Also ping the LLM (slower, spends quota)
        settings: Configuration to check (default: global config)
    """
    checks = {
        "configuration": check_configuration(settings),
        "logging": check_logging(),
    }
    if include_llm_check:
        checks["llm_connection"] = check_llm_connection(settings)

    return HealthStatus(healthy=all(check.healthy for check in checks.values()), checks=checks)


def health_check_cli(include_llm_check: bool = False) -> int:
    """Print health status as JSON. Returns 0 if healthy, 1 otherwise."""
    status = get_health_status(include_llm_check=include_llm_check)
    print(json.dumps(status.to_dict(), indent=2))
    return 0 if status.healthy else 1


if __name__ == "__main__":
    import sys

    sys.exit(health_check_cli(include_llm_check="--full" in sys.argv or "-f" in sys.argv))
