"""Instagram post metrics: Apify actor first, Open Graph page scrape as fallback."""
from __future__ import annotations

import re
from typing import Any, Dict, Optional

import httpx
from bs4 import BeautifulSoup

from config import ApifyConfig, config
from errors import ProviderError
from http_provider import AsyncHTTPProvider
from logging_utils import logger
from models import PostMetrics

BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
FALLBACK_NOTE = "Fallback method - views not available"

LIKES_RE = re.compile(r"([0-9,.KMB]+)\s+likes?", re.IGNORECASE)
COMMENTS_RE = re.compile(r"([0-9,.KMB]+)\s+comments?", re.IGNORECASE)
USERNAME_RE = re.compile(r"- (\S+) on")

VIDEO_TYPES = {"Video", "Reel", "GraphVideo"}


def parse_count(value: str) -> int:
    """Parse display counts such as ``1,234``, ``12.5K`` or ``3M``."""
    if not value:
        return 0
    value = value.replace(",", "").strip()
    try:
        if "K" in value.upper():
            return round(float(value.upper().replace("K", "")) * 1_000)
        if "M" in value.upper():
            return round(float(value.upper().replace("M", "")) * 1_000_000)
        if "B" in value.upper():
            return round(float(value.upper().replace("B", "")) * 1_000_000_000)
        return int(float(value))
    except ValueError:
        return 0


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return default


def metrics_from_apify_item(item: Dict[str, Any], post_url: str) -> PostMetrics:
    """Map one actor dataset item onto PostMetrics, keeping the item as ``raw``."""
    is_video = bool(
        item.get("type") in VIDEO_TYPES
        or item.get("__typename") in VIDEO_TYPES
        or item.get("videoUrl")
        or item.get("videoPlayCount")
    )
    return PostMetrics(
        url=_first(item, "url", default=post_url),
        likes=int(_first(item, "likesCount", "likes", default=0)),
        comments=int(_first(item, "commentsCount", "comments", default=0)),
        views=int(_first(item, "videoViewCount", "playCount", "viewCount", "plays", "videoPlayCount", default=0)),
        username=_first(item, "ownerUsername", "username", default=""),
        caption=_first(item, "caption", "text", default=""),
        photo_url="" if is_video else _first(item, "displayUrl", "imageUrl", "thumbnailUrl", default=""),
        video_url=_first(item, "videoUrl", "videoPlayUrl", default="") if is_video else "",
        thumbnail_url=_first(item, "thumbnailUrl", "displayUrl", default=""),
        timestamp=str(_first(item, "timestamp", "takenAt", default="")),
        post_type=_first(item, "type", "__typename", default="unknown"),
        is_video=is_video,
        raw=item,
    )


def metrics_from_html(html: str, post_url: str) -> PostMetrics:
    """Degraded metrics from the page's og:* meta tags. Views are never available here."""
    soup = BeautifulSoup(html, "html.parser")

    def meta(prop: str) -> str:
        tag = soup.find("meta", attrs={"property": prop})
        return (tag.get("content") or "") if tag else ""

    description = meta("og:description")
    og_image = meta("og:image")
    og_video = meta("og:video")
    og_type = meta("og:type")

    likes = LIKES_RE.search(description)
    comments = COMMENTS_RE.search(description)
    username = USERNAME_RE.search(description)
    is_video = og_type == "video" or bool(og_video)

    return PostMetrics(
        url=post_url,
        likes=parse_count(likes.group(1)) if likes else 0,
        comments=parse_count(comments.group(1)) if comments else 0,
        views=None,
        username=username.group(1) if username else "",
        caption=description,
        photo_url="" if is_video else og_image,
        video_url=og_video if is_video else "",
        thumbnail_url=og_image,
        post_type=og_type or "unknown",
        is_video=is_video,
        note=FALLBACK_NOTE,
    )


class InstagramScraper(AsyncHTTPProvider):
    name = "apify"

    def __init__(self, settings: Optional[ApifyConfig] = None, http: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings or config.apify
        super().__init__(http=http, timeout=self.settings.timeout)

    async def fetch_apify(self, post_url: str) -> PostMetrics:
        if not self.settings.api_key:
            raise ProviderError(self.name, "APIFY_API_KEY is not configured")

        response = await self._send(
            "POST",
            f"{self.settings.base_url}/acts/{self.settings.actor_id}/run-sync-get-dataset-items",
            params={"token": self.settings.api_key},
            json={"username": [post_url], "resultsLimit": 1},
        )
        self._raise_for_status(response)
        try:
            items = self._json(response)
        except ValueError as exc:
            raise ProviderError(self.name, f"Unreadable Apify response: {exc}") from exc
        if not isinstance(items, list):
            raise ProviderError(self.name, "Unexpected Apify response shape")
        if not items:
            raise ProviderError(self.name, "No data returned from Apify")
        try:
            return metrics_from_apify_item(items[0], post_url)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(self.name, f"Malformed Apify item: {exc}") from exc

    async def fetch_page(self, post_url: str) -> PostMetrics:
        response = await self._send("GET", post_url, headers={"User-Agent": BROWSER_USER_AGENT})
        self._raise_for_status(response)
        return metrics_from_html(response.text, post_url)

    async def get_post_metrics(self, post_url: str, correlation_id: Optional[str] = None) -> PostMetrics:
        """
        Metrics for one post.

        Raises ProviderError only when both the actor and the page scrape fail.
        """
        try:
            return await self.fetch_apify(post_url)
        except ProviderError as exc:
            logger.warning(
                "Apify scrape failed, trying page fallback",
                extra={"extra": {"correlation_id": correlation_id, "url": post_url, "error": str(exc)}},
            )
        return await self.fetch_page(post_url)
