"""Top-level dispatch: classify a request and route it to its platform agent."""
from __future__ import annotations

import time
from typing import Optional

from content_agent import analyze_content
from intent_parser import parse_intent
from logging_utils import logger
from market_agent import run_market_agent
from metrics import AgentMetrics
from models import ActionResult, Intent, Platform
from repository_agent import run_repository_agent
from runtime import AgentRuntime, default_runtime
from security_utils import validate_user_input

REPHRASE_HINT = (
    "Sorry, I couldn't tell what you want to do. Try one of:\n"
    "   • Analyze an Instagram post: paste an instagram.com link\n"
    "   • GitHub: 'list my repos', 'star the repo facebook/react'\n"
    "   • Crypto: 'price of BTC', 'crypto top 10'"
)


async def _route(
    intent: Intent,
    raw_text: str,
    identity: str,
    runtime: AgentRuntime,
    metrics: AgentMetrics,
) -> ActionResult:
    if intent.platform == Platform.CONTENT_ANALYSIS:
        return await analyze_content(intent, runtime, metrics)
    if intent.platform == Platform.REPOSITORY_AUTOMATION:
        return await run_repository_agent(raw_text, identity, runtime, metrics)
    if intent.platform == Platform.MARKET_DATA:
        return await run_market_agent(raw_text, identity, runtime, metrics)
    return ActionResult.failed(REPHRASE_HINT)


async def dispatch(
    raw_text: str,
    identity: str = "default",
    runtime: Optional[AgentRuntime] = None,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    """
    Classify ``raw_text`` and run it as ``identity``.

    Never raises: every request resolves to exactly one of ok,
    needs_authorization or failed.
    """
    metrics = metrics or AgentMetrics()
    start = time.time()
    logger.info(
        "Processing request",
        extra={"extra": {"correlation_id": metrics.correlation_id, "identity": identity, "raw_text": raw_text[:200]}},
    )

    valid, error = validate_user_input(identity, raw_text)
    if not valid:
        result = ActionResult.failed(error or "Invalid input")
    else:
        try:
            runtime = runtime or default_runtime()
            intent = await parse_intent(raw_text, runtime.llm, metrics)
            result = await _route(intent, raw_text, identity, runtime, metrics)
        except Exception as exc:
            logger.exception(
                "Dispatch failed",
                extra={"extra": {"correlation_id": metrics.correlation_id, "error": str(exc)}},
            )
            result = ActionResult.failed(f"Request failed: {exc}")

    metrics.outcome = result.outcome.value
    metrics.dispatch_latency_ms = int((time.time() - start) * 1000)
    logger.info(
        "Final outcome",
        extra={
            "extra": {
                "correlation_id": metrics.correlation_id,
                "platform": metrics.platform,
                "action": result.action,
                "outcome": result.outcome.value,
                "metrics": metrics.finalize(),
            }
        },
    )
    return result
