from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

import httpx
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from lead_radar.models import Post, SearchCriteria, SearchResult
from lead_radar.rate_limit import RateLimiter
from lead_radar.signals import detect_signals

logger = logging.getLogger(__name__)

MAX_INTENT_TERMS = 3
FETCH_ATTEMPTS = 2


class Source(Protocol):
    platform_id: str
    display_name: str
    rate_limit_per_minute: int

    async def search(self, criteria: SearchCriteria) -> SearchResult:
        ...

    def normalize_post(self, raw: Mapping[str, Any]) -> Post:
        ...


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def epoch_to_iso(value: float | int | None) -> str:
    if value is None:
        return ""
    return datetime.fromtimestamp(float(value), tz=timezone.utc).replace(microsecond=0).isoformat()


def _clean_spaces(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def html_to_text(value: str | None) -> str:
    if not value:
        return ""
    return _clean_spaces(BeautifulSoup(value, "html.parser").get_text(" ", strip=True))


def build_query_terms(criteria: SearchCriteria) -> list[str]:
    combined = [
        *criteria.keywords,
        *criteria.intent_keywords[:MAX_INTENT_TERMS],
        *criteria.competitors,
    ]
    seen: set[str] = set()
    terms: list[str] = []
    for term in combined:
        key = term.strip().lower()
        if key and key not in seen:
            seen.add(key)
            terms.append(term.strip())
    return terms


def int_filter(filters: Mapping[str, Any], key: str) -> int:
    value = filters.get(key)
    if value is None or value == "":
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.warning("ignoring non-numeric %s filter: %r", key, value)
        return 0


def annotate_and_filter(posts: Iterable[Post], criteria: SearchCriteria) -> list[Post]:
    annotated = [post.with_signals(detect_signals(post, criteria)) for post in posts]
    return [post for post in annotated if post.relevance_score > 0]


def sort_by_relevance(posts: list[Post]) -> list[Post]:
    return sorted(posts, key=lambda post: post.relevance_score, reverse=True)


def success_result(
    platform_id: str,
    posts: list[Post],
    total_found: int | None = None,
    *,
    warnings: list[str] | None = None,
) -> SearchResult:
    return SearchResult(
        platform=platform_id,
        success=True,
        posts=posts,
        total_found=len(posts) if total_found is None else total_found,
        searched_at=utc_now_iso(),
        warnings=warnings or [],
    )


def error_result(platform_id: str, error: BaseException | str) -> SearchResult:
    return SearchResult(
        platform=platform_id,
        success=False,
        posts=[],
        total_found=0,
        searched_at=utc_now_iso(),
        error=str(error) or error.__class__.__name__,
    )


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(FETCH_ATTEMPTS),
    wait=wait_fixed(1),
    reraise=True,
)
async def fetch_json(
    client: httpx.AsyncClient,
    limiter: RateLimiter,
    path: str,
    params: Mapping[str, Any],
) -> Any:
    await limiter.acquire()
    response = await client.get(path, params=params)
    response.raise_for_status()
    return response.json()
