"""Market data agent: crypto quotes, listings and AI analysis."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from intent_parser import ParserResult, classify_with_fallback, quote_for_prompt
from llm_client import LLMClient
from logging_utils import logger
from metrics import AgentMetrics
from models import ActionResult, CoinQuote, Intent, MarketAction, Platform
from platform_plugins import extract_symbols, get_plugin
from runtime import AgentRuntime, default_runtime

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
OVERVIEW_QUERY = "Give a market overview"


def build_market_prompt(text: str) -> str:
    return (
        "You are a crypto assistant. Parse the user's request into JSON.\n\n"
        "Actions you can perform:\n"
        '- get_price: Get current price/quote for specific coin(s) (needs symbols as comma-separated, e.g. "BTC,ETH")\n'
        "- top_coins: Get top coins by market cap (needs limit, default 10)\n"
        "- analyze: Get price + AI analysis for specific coin(s) (needs symbols)\n"
        "- market_overview: Get top 10 coins + AI analysis (no params needed)\n\n"
        "Respond ONLY with valid JSON, no markdown:\n"
        '{"action":"action_name","params":{"symbols":"BTC","limit":10,"query":"user\'s extra question if any"}}\n\n'
        "Examples:\n"
        'User: "What\'s the price of Bitcoin?" -> {"action":"get_price","params":{"symbols":"BTC","query":""}}\n'
        'User: "Analyze ETH and SOL" -> {"action":"analyze","params":{"symbols":"ETH,SOL","query":""}}\n'
        'User: "Top 20 cryptos" -> {"action":"top_coins","params":{"limit":20,"query":""}}\n'
        'User: "How\'s the crypto market?" -> {"action":"market_overview","params":{"limit":10,"query":""}}\n'
        'User: "Is Dogecoin a good buy?" -> {"action":"analyze","params":{"symbols":"DOGE","query":"Is it a good buy?"}}\n\n'
        f'User: "{quote_for_prompt(text)}"'
    )


def _normalize_symbols(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = ",".join(str(item) for item in value)
    if not isinstance(value, str):
        return None
    symbols = [part.strip().upper() for part in value.split(",") if part.strip()]
    return ",".join(symbols) or None


def _normalize_limit(value: Any) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


def _normalize_market_payload(payload: Dict[str, Any], raw_text: str) -> ParserResult:
    action = payload.get("action")
    if action not in {member.value for member in MarketAction}:
        return None, f"Action outside allowed context: {action!r}"

    raw_params = payload.get("params") or {}
    if not isinstance(raw_params, dict):
        return None, "LLM params must be a JSON object"

    parameters: Dict[str, Any] = {}
    symbols = _normalize_symbols(raw_params.get("symbols"))
    if symbols:
        parameters["symbols"] = symbols
    if action in (MarketAction.TOP_COINS.value, MarketAction.MARKET_OVERVIEW.value):
        parameters["limit"] = _normalize_limit(raw_params.get("limit"))
    query = raw_params.get("query")
    if isinstance(query, str) and query.strip():
        parameters["query"] = query.strip()

    return Intent(platform=Platform.MARKET_DATA, action=action, parameters=parameters, raw_query=raw_text), None


def parse_market_fallback(text: str) -> Intent:
    plugin = get_plugin(Platform.MARKET_DATA)
    match = plugin.extract_action(text) if plugin else None
    if match is None:
        return Intent(
            platform=Platform.MARKET_DATA,
            action=MarketAction.GENERIC_ACTION.value,
            raw_query=text,
            fallback=True,
        )
    action, parameters = match
    return Intent(platform=Platform.MARKET_DATA, action=action, parameters=parameters, raw_query=text, fallback=True)


async def parse_market_intent(
    raw_text: str, llm: Optional[LLMClient], metrics: Optional[AgentMetrics] = None
) -> Intent:
    return await classify_with_fallback(
        raw_text,
        llm,
        build_market_prompt,
        _normalize_market_payload,
        parse_market_fallback,
        metrics,
        stage="market",
    )


def format_price(value: float) -> str:
    return f"${value:,.2f}"


def quote_summary(quotes: List[CoinQuote]) -> str:
    return "\n".join(
        f"📈 {quote.name} ({quote.symbol}): {format_price(quote.price)} | 24h: {quote.percent_change_24h:.2f}%"
        for quote in quotes
    )


def listing_summary(quotes: List[CoinQuote]) -> str:
    return "\n".join(
        f"{index}. **{quote.name}** ({quote.symbol}) - {format_price(quote.price)}"
        f" | MCap: ${quote.market_cap / 1e9:.2f}B | 24h: {quote.percent_change_24h:.2f}%"
        for index, quote in enumerate(quotes, start=1)
    )


async def execute_market_intent(
    intent: Intent,
    runtime: AgentRuntime,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    correlation_id = metrics.correlation_id if metrics else None
    action = intent.action
    symbols = intent.param("symbols") or _normalize_symbols(extract_symbols(intent.raw_query))

    if action in (MarketAction.GET_PRICE.value, MarketAction.ANALYZE.value) and not symbols:
        return ActionResult.failed("Missing required parameter: symbols (e.g. BTC or ETH,SOL)", action=action)
    if action not in (
        MarketAction.GET_PRICE.value,
        MarketAction.TOP_COINS.value,
        MarketAction.ANALYZE.value,
        MarketAction.MARKET_OVERVIEW.value,
    ):
        return ActionResult.failed(
            f"Unknown action: {action}. Try: price of BTC, top 10 coins, analyze ETH, market overview.",
            action=action,
        )
    if action in (MarketAction.ANALYZE.value, MarketAction.MARKET_OVERVIEW.value) and runtime.reporter is None:
        return ActionResult.failed("LLM is not configured; cannot generate an analysis", action=action)

    try:
        if action == MarketAction.GET_PRICE.value:
            quotes = await runtime.market.get_quotes(symbols)
            return ActionResult.ok(action, quote_summary(quotes), quotes)

        if action == MarketAction.TOP_COINS.value:
            quotes = await runtime.market.get_top_coins(intent.param("limit", DEFAULT_LIMIT))
            return ActionResult.ok(action, listing_summary(quotes), quotes)

        if action == MarketAction.ANALYZE.value:
            quotes = await runtime.market.get_quotes(symbols)
            analysis = await runtime.reporter.analyze_market(quotes, intent.param("query", ""), metrics)
            return ActionResult.ok(action, analysis, quotes)

        quotes = await runtime.market.get_top_coins(intent.param("limit", DEFAULT_LIMIT))
        analysis = await runtime.reporter.analyze_market(quotes, intent.param("query", OVERVIEW_QUERY), metrics)
        return ActionResult.ok(action, analysis, quotes)
    except Exception as exc:
        logger.error(
            "Market action failed",
            extra={"extra": {"correlation_id": correlation_id, "action": action, "error": str(exc)}},
        )
        return ActionResult.failed(f"Market data error: {exc}", action=action)


async def run_market_agent(
    raw_text: str,
    identity: str = "default",
    runtime: Optional[AgentRuntime] = None,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    """Answer a market request. Ungated: ``identity`` is accepted for a uniform boundary."""
    runtime = runtime or default_runtime()
    start = time.time()
    intent = await parse_market_intent(raw_text, runtime.llm, metrics)
    if metrics:
        metrics.action = intent.action
    result = await execute_market_intent(intent, runtime, metrics)
    if metrics:
        metrics.dispatch_latency_ms = int((time.time() - start) * 1000)
    return result
