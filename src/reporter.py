"""Generative reports over scraped post metrics and market quotes."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from llm_client import LLMClient
from logging_utils import logger
from metrics import AgentMetrics
from models import CoinQuote, PostMetrics


@dataclass(frozen=True)
class Report:
    text: str
    model: str
    data_source: str
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _section(title: str, body: str) -> str:
    return f"\n## {title}\n{body}\n" if body else ""


def build_report_prompt(post: PostMetrics, query: str = "") -> str:
    data = json.dumps(post.for_prompt(), indent=2, default=str)
    return (
        "You are a social media analytics expert. Analyze the following Instagram post data "
        "and generate a comprehensive report.\n\n"
        "## Scraped Instagram Data\n"
        f"```json\n{data}\n```\n\n"
        "## Instructions\n"
        "Provide a detailed analytical report covering:\n\n"
        "1. **Post Overview** - What type of content is it (photo/video/reel)? Who posted it? When?\n"
        "2. **Engagement Metrics** - Likes, comments, views. How do these numbers compare generally?\n"
        "3. **Engagement Rate Analysis** - Based on the available metrics, assess the engagement quality.\n"
        "4. **Content Analysis** - Analyze the caption, hashtags and tone.\n"
        "5. **Performance Insights** - Is this a high-performing post? What signals indicate that?\n"
        "6. **Recommendations** - Actionable suggestions to improve future content based on this data.\n\n"
        "## Strict Guidelines\n"
        "1. Report the genuine likes, comments and views counts without estimation, prediction or assumption.\n"
        "2. If a metric is missing from the data, say it is not available.\n"
        f"{_section('Additional User Request', query)}\n"
        "Be specific, data-driven and insightful. Format the report in clean markdown."
    )


def build_summary_prompt(post: PostMetrics) -> str:
    data = json.dumps(post.for_prompt(), indent=2, default=str)
    return (
        "Summarize this Instagram post data in 3-4 concise bullet points covering engagement, "
        f"content type, and key takeaway:\n\n{data}"
    )


def build_market_prompt(quotes: List[CoinQuote], query: str = "") -> str:
    data = json.dumps([asdict(quote) for quote in quotes], indent=2)
    return (
        "You are a cryptocurrency market analyst. Analyze the following real-time market data "
        "and provide insights.\n\n"
        "## Market Data\n"
        f"```json\n{data}\n```\n\n"
        "## Instructions\n"
        "1. **Price Overview** - Current price, rank, market cap.\n"
        "2. **Momentum** - 1h / 24h / 7d % changes. Bullish or bearish?\n"
        "3. **Volume Analysis** - Is trading volume healthy relative to market cap?\n"
        "4. **Key Takeaway** - One-line verdict for each coin.\n"
        f"{_section('Additional User Request', query)}\n"
        "Be specific, data-driven, no speculation. Use clean markdown."
    )


class Reporter:
    """Turns provider records into prose with the shared LLM client. Errors propagate."""

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    async def generate_report(
        self, post: PostMetrics, query: str = "", metrics: Optional[AgentMetrics] = None
    ) -> Report:
        completion = await self.llm.complete(build_report_prompt(post, query), metrics)
        logger.info(
            "Report generated",
            extra={
                "extra": {
                    "correlation_id": metrics.correlation_id if metrics else None,
                    "model": completion.model,
                    "url": post.url,
                }
            },
        )
        return Report(text=completion.text, model=completion.model, data_source=post.url or "unknown")

    async def generate_quick_summary(self, post: PostMetrics, metrics: Optional[AgentMetrics] = None) -> Report:
        completion = await self.llm.complete(build_summary_prompt(post), metrics)
        return Report(text=completion.text, model=completion.model, data_source=post.url or "unknown")

    async def analyze_market(
        self, quotes: List[CoinQuote], query: str = "", metrics: Optional[AgentMetrics] = None
    ) -> str:
        completion = await self.llm.complete(build_market_prompt(quotes, query), metrics)
        return completion.text
