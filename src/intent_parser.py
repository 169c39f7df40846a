"""LLM-augmented intent parser with a deterministic regex fallback."""
from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from llm_client import LLMClient, strip_code_fences
from logging_utils import logger
from metrics import AgentMetrics
from models import ContentAction, Intent, Platform, allowed_actions
from platform_plugins import detect_platform_intent, extract_instagram_urls
from security_utils import detect_prompt_injection

ParserResult = Tuple[Optional[Intent], Optional[str]]
NormalizeFn = Callable[[Dict[str, Any], str], ParserResult]
FallbackFn = Callable[[str], Intent]

PLATFORM_ALIASES: Dict[str, Platform] = {
    "instagram": Platform.CONTENT_ANALYSIS,
    "content_analysis": Platform.CONTENT_ANALYSIS,
    "github": Platform.REPOSITORY_AUTOMATION,
    "repository_automation": Platform.REPOSITORY_AUTOMATION,
    "crypto": Platform.MARKET_DATA,
    "market_data": Platform.MARKET_DATA,
    "unknown": Platform.UNRECOGNIZED,
    "unrecognized": Platform.UNRECOGNIZED,
}


def quote_for_prompt(text: str) -> str:
    return text.replace('"', '\\"')


def build_routing_prompt(text: str) -> str:
    return (
        "You are an intent-parsing assistant for a multi-platform AI agent.\n\n"
        "The user will give you a natural language request. Extract:\n\n"
        '1. "platform" - exactly one of: "instagram", "github", "crypto", "unknown".\n'
        "   - GitHub, repos, repositories, issues, pull requests, starring, forks, commits, pushes, code -> \"github\"\n"
        "   - Instagram posts, reels, stories, or instagram.com links -> \"instagram\"\n"
        "   - crypto, bitcoin, ethereum, coins, tokens, prices, market cap, tickers like BTC/ETH/SOL -> \"crypto\"\n"
        '2. "urls" - every instagram.com link in the request, copied verbatim (array of strings).\n'
        '3. "action" - for instagram: "analyze" (full report) or "quick" (short summary). '
        'For github and crypto: "generic_action". For unknown: null.\n'
        '4. "query" - any extra question the user asked about the post, or "".\n\n'
        "Respond ONLY with a flat JSON object, no markdown, no explanation. Examples:\n"
        '{"platform":"instagram","urls":["https://www.instagram.com/p/ABC123/"],"action":"analyze","query":""}\n'
        '{"platform":"github","urls":[],"action":"generic_action","query":""}\n'
        '{"platform":"crypto","urls":[],"action":"generic_action","query":""}\n\n'
        f'User prompt: "{quote_for_prompt(text)}"'
    )


def load_json_object(raw_content: Optional[str]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Decode a model reply into a JSON object, tolerating markdown fences."""
    if not raw_content or not raw_content.strip():
        return None, "Empty LLM response"
    try:
        payload = json.loads(strip_code_fences(raw_content))
    except json.JSONDecodeError as exc:
        return None, f"JSON decode error: {exc.msg}"
    if not isinstance(payload, dict):
        return None, "LLM output must be a JSON object"
    return payload, None


def _normalize_routing_payload(payload: Dict[str, Any], raw_text: str) -> ParserResult:
    platform_value = payload.get("platform")
    if not isinstance(platform_value, str) or platform_value.strip().lower() not in PLATFORM_ALIASES:
        return None, f"Platform outside allowed context: {platform_value!r}"
    platform = PLATFORM_ALIASES[platform_value.strip().lower()]

    if platform == Platform.UNRECOGNIZED:
        return Intent.unrecognized(raw_text), None

    if platform != Platform.CONTENT_ANALYSIS:
        return Intent(platform=platform, action="generic_action", raw_query=raw_text), None

    action = payload.get("action") or ContentAction.ANALYZE.value
    if action not in allowed_actions(platform):
        return None, f"Action outside allowed context: {action!r}"

    # Literal URLs from the user text win over the model's copy.
    urls: List[str] = extract_instagram_urls(raw_text)
    if not urls:
        urls = [url for url in payload.get("urls") or [] if isinstance(url, str) and extract_instagram_urls(url)]

    parameters: Dict[str, Any] = {"urls": urls}
    query = payload.get("query")
    if isinstance(query, str) and query.strip():
        parameters["query"] = query.strip()
    return Intent(platform=platform, action=action, parameters=parameters, raw_query=raw_text), None


async def parse_with_llm(
    prompt: str,
    raw_text: str,
    llm: LLMClient,
    normalize: NormalizeFn,
    metrics: Optional[AgentMetrics] = None,
) -> ParserResult:
    """Run the generative stage; every failure comes back as (None, error)."""
    try:
        completion = await llm.complete(prompt, metrics)
    except Exception as exc:
        return None, f"LLM call failed: {exc}"

    payload, error = load_json_object(completion.text)
    if error:
        return None, error
    try:
        return normalize(payload, raw_text)
    except (TypeError, ValueError) as exc:
        return None, f"Invalid LLM payload: {exc}"


def parse_with_regex(text: str, metrics: AgentMetrics | None = None) -> Intent:
    """Deterministic regex fallback parser."""
    start = time.time()
    intent = detect_platform_intent(text)
    if metrics:
        metrics.classification_latency_ms = int((time.time() - start) * 1000)
    return intent


async def classify_with_fallback(
    raw_text: str,
    llm: Optional[LLMClient],
    prompt_builder: Callable[[str], str],
    normalize: NormalizeFn,
    fallback: FallbackFn,
    metrics: Optional[AgentMetrics] = None,
    stage: str = "routing",
) -> Intent:
    """
    Two-stage classification pipeline.

    Stage one asks the model and yields either an Intent or an error string.
    Stage two runs the deterministic fallback whenever stage one produced no
    Intent, so a result is always returned.
    """
    correlation_id = metrics.correlation_id if metrics else None
    start = time.time()
    error: Optional[str] = None

    if llm is None:
        error = "Generative path disabled"
    elif detect_prompt_injection(raw_text):
        error = "Prompt injection suspected"
        if metrics:
            metrics.suspicious_input = True
        logger.warning(
            "Prompt injection detected (model bypassed)",
            extra={"extra": {"correlation_id": correlation_id, "stage": stage, "text": raw_text[:100]}},
        )
    else:
        intent, error = await parse_with_llm(prompt_builder(raw_text), raw_text, llm, normalize, metrics)
        if intent is not None:
            if metrics:
                metrics.classification_latency_ms = int((time.time() - start) * 1000)
            logger.info(
                "LLM parsing successful",
                extra={
                    "extra": {
                        "correlation_id": correlation_id,
                        "stage": stage,
                        "platform": intent.platform.value,
                        "action": intent.action,
                    }
                },
            )
            return intent

    logger.warning(
        "Fallback parser selected",
        extra={"extra": {"correlation_id": correlation_id, "stage": stage, "reason": error}},
    )
    intent = fallback(raw_text)
    if metrics:
        metrics.fallback_used = True
        metrics.classification_latency_ms = int((time.time() - start) * 1000)
    return intent


async def parse_intent(raw_text: str, llm: Optional[LLMClient], metrics: Optional[AgentMetrics] = None) -> Intent:
    """
    Route request text to a platform with the LLM first, then the deterministic fallback.

    Never raises: ambiguity resolves to ``Platform.UNRECOGNIZED``.
    """
    intent = await classify_with_fallback(
        raw_text,
        llm,
        build_routing_prompt,
        _normalize_routing_payload,
        parse_with_regex,
        metrics,
    )
    if metrics:
        metrics.platform = intent.platform.value
        metrics.action = intent.action
    return intent
