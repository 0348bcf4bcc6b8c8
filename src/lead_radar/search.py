from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from lead_radar.intent import IntentScorer
from lead_radar.models import (
    AIOptions,
    AIRankedResult,
    AIScoringSummary,
    IntentLevel,
    PlatformError,
    PlatformInfo,
    Post,
    RankedResult,
    SearchCriteria,
    SearchOutcome,
    SearchResult,
)
from lead_radar.registry import SourceRegistry
from lead_radar.sources.common import Source, error_result, utc_now_iso

logger = logging.getLogger(__name__)

UNSCORED = "UNSCORED"
INTENT_GROUPS = (*(level.value for level in IntentLevel), UNSCORED)


def _unknown_platform(platform_id: str) -> str:
    return f"Unknown platform: {platform_id}"


async def _safe_search(source: Source, criteria: SearchCriteria) -> SearchResult:
    try:
        return await source.search(criteria)
    except Exception as exc:
        logger.exception("source %s raised", source.platform_id)
        return error_result(source.platform_id, f"unexpected error: {exc}")


def _intent_sort_key(post: Post) -> tuple[int, int]:
    score = post.intent_score
    if score is not None:
        return (0, -score)
    return (1, -post.relevance_score)


def _intent_group(post: Post) -> str:
    analysis = post.intent_analysis
    if analysis is None or analysis.level is None:
        return UNSCORED
    return analysis.level.value


class SearchService:
    def __init__(self, registry: SourceRegistry, scorer: IntentScorer) -> None:
        self.registry = registry
        self.scorer = scorer

    def list_platforms(self) -> list[PlatformInfo]:
        return self.registry.list_info()

    def is_ai_enabled(self) -> bool:
        return self.scorer.enabled

    async def search(
        self,
        criteria: SearchCriteria,
        platform_ids: Sequence[str] | None = None,
    ) -> SearchOutcome:
        targets = list(platform_ids) if platform_ids else self.registry.list_ids()
        logger.info("starting search across %s, keywords: %s", ", ".join(targets), ", ".join(criteria.keywords))

        errors: list[PlatformError] = []
        sources: list[Source] = []
        for platform_id in targets:
            source = self.registry.get(platform_id)
            if source is None:
                errors.append(PlatformError(platform=platform_id, error=_unknown_platform(platform_id)))
            else:
                sources.append(source)

        results = list(await asyncio.gather(*(_safe_search(source, criteria) for source in sources)))
        for result in results:
            if not result.success:
                errors.append(PlatformError(platform=result.platform, error=result.error or "unknown error"))

        total_posts = sum(len(result.posts) for result in results)
        logger.info(
            "search complete: %d posts from %d platforms, %d errors",
            total_posts,
            len(results),
            len(errors),
        )
        return SearchOutcome(
            success=not errors,
            platforms=targets,
            results=results,
            total_posts=total_posts,
            searched_at=utc_now_iso(),
            errors=errors,
        )

    async def search_ranked(
        self,
        criteria: SearchCriteria,
        platform_ids: Sequence[str] | None = None,
    ) -> RankedResult:
        outcome = await self.search(criteria, platform_ids)

        merged: list[Post] = []
        by_platform: dict[str, int] = {}
        for result in outcome.results:
            merged.extend(result.posts)
            by_platform[result.platform] = len(result.posts)

        # sorted() is stable: equal scores keep source-arrival order.
        ranked = sorted(merged, key=lambda post: post.relevance_score, reverse=True)
        limited = ranked[: criteria.max_results] if criteria.max_results else ranked

        return RankedResult(
            success=outcome.success,
            posts=limited,
            total_found=len(merged),
            by_platform=by_platform,
            errors=outcome.errors,
        )

    async def search_with_ai(
        self,
        criteria: SearchCriteria,
        platform_ids: Sequence[str] | None = None,
        options: AIOptions | None = None,
    ) -> AIRankedResult:
        options = options or AIOptions()
        ranked = await self.search_ranked(criteria, platform_ids)

        to_score: list[Post] = []
        to_skip: list[Post] = []
        for post in ranked.posts:
            eligible = post.relevance_score >= options.min_relevance_score
            if eligible and len(to_score) < options.max_to_score:
                to_score.append(post)
            else:
                to_skip.append(post)
        logger.info(
            "AI scoring: %d posts (skipping %d below threshold or over cap)",
            len(to_score),
            len(to_skip),
        )

        scored = await self.scorer.score_batch(to_score, options.product_context)
        posts = sorted([*scored, *to_skip], key=_intent_sort_key)

        groups: dict[str, list[Post]] = {name: [] for name in INTENT_GROUPS}
        for post in posts:
            groups[_intent_group(post)].append(post)

        return AIRankedResult(
            success=ranked.success,
            posts=posts,
            total_found=ranked.total_found,
            by_platform=ranked.by_platform,
            by_intent_level={name: len(members) for name, members in groups.items()},
            hot_leads=groups[IntentLevel.HIGH.value],
            ai_scoring=AIScoringSummary(
                enabled=self.scorer.enabled,
                model=self.scorer.model,
                scored=sum(1 for post in scored if post.intent_score is not None),
                skipped=len(to_skip),
                min_relevance_threshold=options.min_relevance_score,
            ),
            errors=ranked.errors,
        )

    async def search_platform(self, criteria: SearchCriteria, platform_id: str) -> SearchResult:
        source = self.registry.get(platform_id)
        if source is None:
            return error_result(platform_id, _unknown_platform(platform_id))
        return await _safe_search(source, criteria)
