"""Content analysis agent: scrape Instagram posts and report on them."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from errors import AgentError
from intent_parser import parse_intent
from logging_utils import logger
from metrics import AgentMetrics
from models import ActionResult, ContentAction, Intent, Platform
from platform_plugins import extract_instagram_urls
from runtime import AgentRuntime, default_runtime


async def analyze_post(
    url: str,
    action: str,
    query: str,
    runtime: AgentRuntime,
    metrics: Optional[AgentMetrics] = None,
) -> Dict[str, Any]:
    """Scrape one post and produce its report. Raises AgentError on failure."""
    correlation_id = metrics.correlation_id if metrics else None
    post = await runtime.scraper.get_post_metrics(url, correlation_id)
    if runtime.reporter is None:
        raise AgentError("LLM is not configured; cannot generate a report")

    if action == ContentAction.QUICK.value:
        report = await runtime.reporter.generate_quick_summary(post, metrics)
    else:
        report = await runtime.reporter.generate_report(post, query, metrics)
    return {"url": url, "metrics": post, "report": report.text, "model": report.model, "note": post.note}


async def analyze_content(
    intent: Intent,
    runtime: AgentRuntime,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    correlation_id = metrics.correlation_id if metrics else None
    action = intent.action or ContentAction.ANALYZE.value
    urls = list(intent.param("urls") or [])
    if not urls:
        return ActionResult.failed("No Instagram URL found in the request.", action=action)

    reports: List[Dict[str, Any]] = []
    errors: List[Dict[str, str]] = []
    for url in urls:
        try:
            reports.append(await analyze_post(url, action, intent.param("query", ""), runtime, metrics))
        except Exception as exc:
            logger.error(
                "Post analysis failed",
                extra={"extra": {"correlation_id": correlation_id, "url": url, "error": str(exc)}},
            )
            errors.append({"url": url, "error": str(exc)})

    if not reports:
        detail = "; ".join(f"{item['url']}: {item['error']}" for item in errors)
        return ActionResult.failed(f"Could not analyze any post. {detail}", action=action)

    summary = "\n\n---\n\n".join(item["report"] for item in reports)
    return ActionResult.ok(action, summary, {"reports": reports, "errors": errors})


async def run_content_agent(
    raw_text: str,
    identity: str = "default",
    runtime: Optional[AgentRuntime] = None,
    metrics: Optional[AgentMetrics] = None,
) -> ActionResult:
    """Analyze every Instagram URL in ``raw_text``. Ungated: ``identity`` is only logged."""
    runtime = runtime or default_runtime()
    start = time.time()
    intent = await parse_intent(raw_text, runtime.llm, metrics)
    if intent.platform != Platform.CONTENT_ANALYSIS:
        urls = extract_instagram_urls(raw_text)
        intent = Intent(
            platform=Platform.CONTENT_ANALYSIS,
            action=ContentAction.ANALYZE.value,
            parameters={"urls": urls},
            raw_query=raw_text,
            fallback=True,
        )

    logger.info(
        "Content analysis requested",
        extra={
            "extra": {
                "correlation_id": metrics.correlation_id if metrics else None,
                "identity": identity,
                "urls": list(intent.param("urls") or []),
            }
        },
    )
    result = await analyze_content(intent, runtime, metrics)
    if metrics:
        metrics.dispatch_latency_ms = int((time.time() - start) * 1000)
    return result
