from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

import httpx

from lead_radar.config import Settings
from lead_radar.models import Author, Post, SearchCriteria, SearchResult, TimeWindow
from lead_radar.rate_limit import RateLimiter
from lead_radar.sources.common import (
    annotate_and_filter,
    build_query_terms,
    error_result,
    fetch_json,
    html_to_text,
    int_filter,
    success_result,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "hackernews"
DISPLAY_NAME = "Hacker News"
BASE_URL = "https://hn.algolia.com/api/v1"
ITEM_URL = "https://news.ycombinator.com/item?id="
USER_URL = "https://news.ycombinator.com/user?id="
MAX_PAGE_SIZE = 100
DEFAULT_TAGS = "(story,ask_hn,show_hn)"
STORY_TYPE_TAGS = {
    "story": "story",
    "comment": "comment",
    "ask_hn": "ask_hn",
    "show_hn": "show_hn",
}
TIME_PRESET_SECONDS = {
    "hour": 3600,
    "day": 86400,
    "week": 604800,
    "month": 2592000,
    "year": 31536000,
}


def build_hn_query(criteria: SearchCriteria) -> str:
    return " ".join(build_query_terms(criteria))


def build_tags(filters: Mapping[str, Any]) -> str:
    return STORY_TYPE_TAGS.get(str(filters.get("story_type") or ""), DEFAULT_TAGS)


def _iso_to_epoch(value: str) -> int:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def build_numeric_filters(
    filters: Mapping[str, Any],
    time_range: str | TimeWindow | None,
    now: float,
) -> str:
    parts: list[str] = []
    min_points = int_filter(filters, "min_points")
    if min_points > 0:
        parts.append(f"points>={min_points}")

    now_ts = int(now)
    if isinstance(time_range, str):
        seconds = TIME_PRESET_SECONDS.get(time_range, TIME_PRESET_SECONDS["week"])
        parts.append(f"created_at_i>{now_ts - seconds}")
    elif isinstance(time_range, TimeWindow):
        if time_range.start:
            parts.append(f"created_at_i>{_iso_to_epoch(time_range.start)}")
        else:
            parts.append(f"created_at_i>{now_ts - TIME_PRESET_SECONDS['week']}")
        if time_range.end:
            parts.append(f"created_at_i<{_iso_to_epoch(time_range.end)}")

    return ",".join(parts)


def story_type_label(tags: Sequence[str] | None) -> str:
    tags = tags or ()
    if "ask_hn" in tags:
        return "Ask HN"
    if "show_hn" in tags:
        return "Show HN"
    if "comment" in tags:
        return "Comment"
    return "Story"


class HackerNewsSource:
    platform_id = SOURCE_NAME
    display_name = DISPLAY_NAME

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.rate_limit_per_minute = settings.hackernews_rate_limit_per_minute
        self.limiter = RateLimiter(self.rate_limit_per_minute, name=SOURCE_NAME)
        self._transport = transport
        self._clock = clock

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=self.settings.request_timeout_seconds,
            transport=self._transport,
        )

    async def search(self, criteria: SearchCriteria) -> SearchResult:
        filters = criteria.filters_for(SOURCE_NAME)
        try:
            query = build_hn_query(criteria)
            endpoint = "/search_by_date" if filters.get("sort_by") == "date" else "/search"
            params = {
                "query": query,
                "optionalWords": query,
                "tags": build_tags(filters),
                "hitsPerPage": min(criteria.max_results, MAX_PAGE_SIZE),
            }
            numeric_filters = build_numeric_filters(filters, criteria.time_range, self._clock())
            if numeric_filters:
                params["numericFilters"] = numeric_filters
            logger.info("hackernews search: %r (%s)", query, filters.get("story_type") or "all")

            async with self._client() as client:
                payload = await fetch_json(client, self.limiter, endpoint, params)

            posts = annotate_and_filter(
                (self.normalize_post(hit) for hit in payload.get("hits") or []),
                criteria,
            )
            total = payload.get("nbHits")
            return success_result(SOURCE_NAME, posts, total if total is not None else len(posts))
        except Exception as exc:
            logger.error("hackernews search failed: %s", exc)
            return error_result(SOURCE_NAME, exc)

    def normalize_post(self, raw: Mapping[str, Any]) -> Post:
        object_id = str(raw.get("objectID", ""))
        author = raw.get("author") or ""
        return Post(
            id=object_id,
            platform=SOURCE_NAME,
            title=raw.get("title") or raw.get("story_title") or "Comment",
            body=html_to_text(raw.get("story_text") or raw.get("comment_text")),
            url=f"{ITEM_URL}{object_id}",
            author=Author(username=author, profile_url=f"{USER_URL}{author}"),
            metrics={
                "score": raw.get("points") or 0,
                "comments": raw.get("num_comments") or 0,
            },
            created_at=raw.get("created_at") or "",
            extras={"story_type": story_type_label(raw.get("_tags"))},
        )
