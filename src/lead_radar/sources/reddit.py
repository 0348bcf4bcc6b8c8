from __future__ import annotations

import logging
import math
from typing import Any, Mapping

import httpx

from lead_radar.config import Settings
from lead_radar.models import Author, Post, SearchCriteria, SearchResult
from lead_radar.rate_limit import RateLimiter
from lead_radar.sources.common import (
    annotate_and_filter,
    build_query_terms,
    epoch_to_iso,
    error_result,
    fetch_json,
    int_filter,
    sort_by_relevance,
    success_result,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "reddit"
DISPLAY_NAME = "Reddit"
BASE_URL = "https://www.reddit.com"
MAX_PAGE_SIZE = 100
DEFAULT_TIME_FILTER = "week"
DEFAULT_SORT = "relevance"


def build_reddit_query(criteria: SearchCriteria) -> str:
    return " OR ".join(build_query_terms(criteria)) or "*"


def _listing_children(payload: Any) -> list[Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        raise ValueError("unexpected listing payload")
    data = payload.get("data") or {}
    if not isinstance(data, Mapping):
        raise ValueError("unexpected listing payload")
    children = data.get("children") or []
    return [
        child["data"]
        for child in children
        if isinstance(child, Mapping) and isinstance(child.get("data"), Mapping)
    ]


class RedditSource:
    platform_id = SOURCE_NAME
    display_name = DISPLAY_NAME

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self.rate_limit_per_minute = settings.reddit_rate_limit_per_minute
        self.limiter = RateLimiter(self.rate_limit_per_minute, name=SOURCE_NAME)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=self.settings.request_timeout_seconds,
            headers={"User-Agent": self.settings.reddit_user_agent},
            follow_redirects=True,
            transport=self._transport,
        )

    def _time_filter(self, criteria: SearchCriteria, filters: Mapping[str, Any]) -> str:
        if filters.get("time_filter"):
            return str(filters["time_filter"])
        if isinstance(criteria.time_range, str):
            return criteria.time_range
        return DEFAULT_TIME_FILTER

    async def search(self, criteria: SearchCriteria) -> SearchResult:
        filters = criteria.filters_for(SOURCE_NAME)
        try:
            async with self._client() as client:
                if filters.get("subreddits"):
                    return await self._search_subreddits(client, criteria, filters)
                return await self._search_global(client, criteria, filters)
        except Exception as exc:
            logger.error("reddit search failed: %s", exc)
            return error_result(SOURCE_NAME, exc)

    async def _search_global(
        self,
        client: httpx.AsyncClient,
        criteria: SearchCriteria,
        filters: Mapping[str, Any],
    ) -> SearchResult:
        query = build_reddit_query(criteria)
        time_filter = self._time_filter(criteria, filters)
        sort_by = filters.get("sort_by") or DEFAULT_SORT
        logger.info("reddit global search: %r (%s, %s)", query, time_filter, sort_by)

        payload = await fetch_json(
            client,
            self.limiter,
            "/search.json",
            {
                "q": query,
                "sort": sort_by,
                "t": time_filter,
                "limit": min(criteria.max_results, MAX_PAGE_SIZE),
                "type": "link",
            },
        )
        posts = self._process_listing(payload, criteria, filters)
        total = (payload.get("data") or {}).get("dist")
        return success_result(SOURCE_NAME, posts, total if total is not None else len(posts))

    async def _search_subreddits(
        self,
        client: httpx.AsyncClient,
        criteria: SearchCriteria,
        filters: Mapping[str, Any],
    ) -> SearchResult:
        query = build_reddit_query(criteria)
        time_filter = self._time_filter(criteria, filters)
        sort_by = filters.get("sort_by") or DEFAULT_SORT
        raw_subreddits = filters["subreddits"]
        if isinstance(raw_subreddits, str):
            raw_subreddits = raw_subreddits.split(",")
        subreddits = [str(name).strip().removeprefix("r/") for name in raw_subreddits if str(name).strip()]
        per_subreddit = math.ceil(criteria.max_results / len(subreddits))
        logger.info("reddit subreddit search: %r in r/%s", query, ", r/".join(subreddits))

        posts: list[Post] = []
        errors: list[str] = []
        for subreddit in subreddits:
            try:
                payload = await fetch_json(
                    client,
                    self.limiter,
                    f"/r/{subreddit}/search.json",
                    {
                        "q": query,
                        "sort": sort_by,
                        "t": time_filter,
                        "limit": per_subreddit,
                        "restrict_sr": "true",
                    },
                )
                posts.extend(self._process_listing(payload, criteria, filters))
            except Exception as exc:
                logger.warning("reddit: failed to search r/%s: %s", subreddit, exc)
                errors.append(f"r/{subreddit}: {exc}")

        if errors and len(errors) == len(subreddits):
            return error_result(SOURCE_NAME, "; ".join(errors))

        ranked = sort_by_relevance(posts)[: criteria.max_results]
        return success_result(SOURCE_NAME, ranked, len(posts), warnings=errors)

    def _process_listing(
        self,
        payload: Mapping[str, Any],
        criteria: SearchCriteria,
        filters: Mapping[str, Any],
    ) -> list[Post]:
        min_score = int_filter(filters, "min_score")
        kept: list[Post] = []
        for item in _listing_children(payload):
            if (item.get("score") or 0) < min_score:
                continue
            if item.get("stickied") or item.get("distinguished") or item.get("over_18"):
                continue
            kept.append(self.normalize_post(item))
        return annotate_and_filter(kept, criteria)

    def normalize_post(self, raw: Mapping[str, Any]) -> Post:
        author = raw.get("author") or "[deleted]"
        return Post(
            id=str(raw.get("id", "")),
            platform=SOURCE_NAME,
            title=raw.get("title") or "",
            body=raw.get("selftext") or "",
            url=f"{BASE_URL}{raw.get('permalink', '')}",
            author=Author(username=author, profile_url=f"{BASE_URL}/user/{author}"),
            metrics={
                "score": raw.get("score") or 0,
                "upvote_ratio": raw.get("upvote_ratio") or 0,
                "comments": raw.get("num_comments") or 0,
            },
            created_at=epoch_to_iso(raw.get("created_utc")),
            extras={
                "subreddit": raw.get("subreddit"),
                "flair": raw.get("link_flair_text"),
            },
        )
