import asyncio
import dataclasses
from typing import Any, Mapping, Sequence

from lead_radar.config import Settings
from lead_radar.intent import IntentScorer, score_to_level
from lead_radar.models import (
    AI_DISABLED,
    AIOptions,
    Author,
    IntentAnalysis,
    Post,
    ProductContext,
    RecommendedAction,
    SearchCriteria,
    SearchResult,
    Signals,
    Urgency,
)
from lead_radar.registry import SourceRegistry
from lead_radar.search import SearchService
from lead_radar.sources.common import error_result, success_result


def _post(post_id: str, platform: str, relevance: int) -> Post:
    return Post(
        id=post_id,
        platform=platform,
        title=f"post {post_id}",
        body="",
        url=f"https://example.com/{platform}/{post_id}",
        author=Author(username="someone", profile_url="https://example.com/u/someone"),
        metrics={"score": 1, "comments": 0},
        created_at="2026-02-19T00:00:00+00:00",
        signals=Signals(("crm",), (), (), (), relevance),
    )


class _FakeSource:
    rate_limit_per_minute = 60

    def __init__(self, platform_id: str, posts: list[Post] | None = None, *, error: str | None = None) -> None:
        self.platform_id = platform_id
        self.display_name = platform_id.title()
        self.posts = posts or []
        self.error = error
        self.calls = 0

    async def search(self, criteria: SearchCriteria) -> SearchResult:
        self.calls += 1
        if self.error:
            return error_result(self.platform_id, self.error)
        return success_result(self.platform_id, list(self.posts))

    def normalize_post(self, raw: Mapping[str, Any]) -> Post:
        raise NotImplementedError


class _ExplodingSource(_FakeSource):
    async def search(self, criteria: SearchCriteria) -> SearchResult:
        raise RuntimeError("kaboom")


class _FakeScorer:
    enabled = True
    model = "fake-model"

    def __init__(self, scores: dict[str, int | None]) -> None:
        self.scores = scores
        self.received: list[Post] = []

    async def score_batch(self, posts: Sequence[Post], product_context: ProductContext | None = None) -> list[Post]:
        self.received.extend(posts)
        scored = []
        for post in posts:
            score = self.scores.get(post.id)
            analysis = IntentAnalysis(
                score=score,
                level=score_to_level(score) if score is not None else None,
                confidence=0.9 if score is not None else None,
                buying_signals=(),
                pain_points=(),
                urgency=Urgency.NONE if score is not None else None,
                recommended_action=RecommendedAction.MONITOR if score is not None else None,
                summary="ok" if score is not None else "AI scoring failed: timeout",
                error=None if score is not None else "AI_ERROR",
            )
            scored.append(post.with_intent(analysis))
        return scored


def _service(*sources: _FakeSource, scorer: Any = None) -> SearchService:
    return SearchService(SourceRegistry(sources), scorer or IntentScorer(Settings()))


CRITERIA = SearchCriteria(keywords=("crm",))


def test_search_fans_out_to_all_registered_sources_in_order() -> None:
    reddit = _FakeSource("reddit", [_post("r1", "reddit", 40)])
    hn = _FakeSource("hackernews", [_post("h1", "hackernews", 60)])

    outcome = asyncio.run(_service(reddit, hn).search(CRITERIA))

    assert outcome.success
    assert outcome.platforms == ["reddit", "hackernews"]
    assert [result.platform for result in outcome.results] == ["reddit", "hackernews"]
    assert outcome.total_posts == 2
    assert outcome.errors == []


def test_failing_source_does_not_hide_other_sources() -> None:
    reddit = _FakeSource("reddit", [_post("r1", "reddit", 40)])
    hn = _FakeSource("hackernews", error="ReadTimeout: timed out")

    ranked = asyncio.run(_service(reddit, hn).search_ranked(CRITERIA))

    assert not ranked.success
    assert [post.id for post in ranked.posts] == ["r1"]
    assert [(error.platform, error.error) for error in ranked.errors] == [
        ("hackernews", "ReadTimeout: timed out")
    ]
    assert ranked.by_platform == {"reddit": 1, "hackernews": 0}


def test_raising_source_and_unknown_platform_become_errors() -> None:
    reddit = _FakeSource("reddit", [_post("r1", "reddit", 40)])
    broken = _ExplodingSource("hackernews")

    outcome = asyncio.run(_service(reddit, broken).search(CRITERIA, ["reddit", "hackernews", "mastodon"]))

    assert not outcome.success
    assert outcome.total_posts == 1
    errors = {error.platform: error.error for error in outcome.errors}
    assert errors["mastodon"] == "Unknown platform: mastodon"
    assert "kaboom" in errors["hackernews"]


def test_search_only_calls_requested_platforms() -> None:
    reddit = _FakeSource("reddit")
    hn = _FakeSource("hackernews")

    asyncio.run(_service(reddit, hn).search(CRITERIA, ["hackernews"]))

    assert (reddit.calls, hn.calls) == (0, 1)


def test_ranked_results_are_sorted_and_truncated() -> None:
    reddit_scores = [12, 90, 33, 55, 70, 5]
    hn_scores = [64, 90, 41, 8, 77, 20]
    reddit = _FakeSource("reddit", [_post(f"r{i}", "reddit", s) for i, s in enumerate(reddit_scores)])
    hn = _FakeSource("hackernews", [_post(f"h{i}", "hackernews", s) for i, s in enumerate(hn_scores)])
    criteria = dataclasses.replace(CRITERIA, max_results=5)

    ranked = asyncio.run(_service(reddit, hn).search_ranked(criteria))

    assert ranked.total_found == 12
    assert [post.relevance_score for post in ranked.posts] == [90, 90, 77, 70, 64]
    # equal scores keep source-arrival order
    assert [post.id for post in ranked.posts[:2]] == ["r1", "h1"]


def test_ai_search_with_disabled_scorer_marks_scored_posts() -> None:
    reddit = _FakeSource("reddit", [_post(f"r{s}", "reddit", s) for s in (80, 60, 40, 20, 10)])

    result = asyncio.run(
        _service(reddit).search_with_ai(CRITERIA, options=AIOptions(min_relevance_score=30, max_to_score=2))
    )

    analysed = [post for post in result.posts if post.intent_analysis is not None]
    assert [post.id for post in analysed] == ["r80", "r60"]
    assert all(post.intent_analysis.error == AI_DISABLED for post in analysed)
    assert all(post.intent_analysis.score is None for post in analysed)
    assert result.ai_scoring.enabled is False
    assert result.ai_scoring.scored == 0
    assert result.ai_scoring.skipped == 3
    assert [post.relevance_score for post in result.posts] == [80, 60, 40, 20, 10]
    assert result.by_intent_level["UNSCORED"] == 5
    assert result.hot_leads == []


def test_ai_search_triages_by_threshold_and_cap_then_reranks() -> None:
    posts = [
        _post("a", "reddit", 90),
        _post("b", "reddit", 70),
        _post("c", "hackernews", 50),
        _post("d", "hackernews", 35),
        _post("e", "reddit", 25),
        _post("f", "hackernews", 10),
    ]
    scorer = _FakeScorer({"a": 30, "b": 85, "c": None})
    reddit = _FakeSource("reddit", [p for p in posts if p.platform == "reddit"])
    hn = _FakeSource("hackernews", [p for p in posts if p.platform == "hackernews"])
    options = AIOptions(min_relevance_score=30, max_to_score=3)

    result = asyncio.run(_service(reddit, hn, scorer=scorer).search_with_ai(CRITERIA, options=options))

    assert [post.id for post in scorer.received] == ["a", "b", "c"]
    assert all(post.relevance_score >= 30 for post in scorer.received)
    assert [post.id for post in result.posts] == ["b", "a", "c", "d", "e", "f"]
    assert [post.id for post in result.hot_leads] == ["b"]
    assert result.by_intent_level == {"HIGH": 1, "MEDIUM": 0, "LOW": 1, "NONE": 0, "UNSCORED": 4}
    assert result.ai_scoring.scored == 2
    assert result.ai_scoring.skipped == 3
    assert result.ai_scoring.model == "fake-model"
    assert result.success


def test_ai_search_with_no_posts_sends_nothing() -> None:
    scorer = _FakeScorer({})

    result = asyncio.run(_service(_FakeSource("reddit"), scorer=scorer).search_with_ai(CRITERIA))

    assert scorer.received == []
    assert result.posts == []
    assert result.ai_scoring.scored == 0


def test_search_platform_reports_unknown_platform_without_raising() -> None:
    service = _service(_FakeSource("reddit", [_post("r1", "reddit", 40)]))

    unknown = asyncio.run(service.search_platform(CRITERIA, "digg"))
    known = asyncio.run(service.search_platform(CRITERIA, "reddit"))

    assert not unknown.success
    assert unknown.error == "Unknown platform: digg"
    assert known.success
    assert [post.id for post in known.posts] == ["r1"]


def test_service_exposes_platforms_and_ai_status() -> None:
    service = _service(_FakeSource("reddit"), _FakeSource("hackernews"))

    assert [info.id for info in service.list_platforms()] == ["reddit", "hackernews"]
    assert service.is_ai_enabled() is False
