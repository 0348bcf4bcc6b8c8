"""LLM-backed buying-intent scoring."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any, Mapping

import httpx

from lead_radar.config import Settings
from lead_radar.models import (
    AI_DISABLED,
    AI_ERROR,
    IntentAnalysis,
    IntentLevel,
    Post,
    ProductContext,
    RecommendedAction,
    Urgency,
)
from lead_radar.pacing import FixedWindowScheduler

logger = logging.getLogger(__name__)

TEMPERATURE = 0.3
MAX_TOKENS = 500
DEFAULT_CONFIDENCE = 0.5
NO_SUMMARY = "No summary available"

SYSTEM_PROMPT = """You are an expert sales intelligence analyst. Your job is to analyze social media posts and determine the likelihood that the author is actively looking to purchase a software product or service.

You must respond with a JSON object containing:
{
  "score": <number 0-100>,
  "level": "<HIGH|MEDIUM|LOW|NONE>",
  "confidence": <number 0.0-1.0>,
  "buyingSignals": ["<signal1>", "<signal2>"],
  "painPoints": ["<pain1>", "<pain2>"],
  "urgency": "<IMMEDIATE|SHORT_TERM|EXPLORING|NONE>",
  "recommendedAction": "<CONTACT_NOW|NURTURE|MONITOR|SKIP>",
  "summary": "<one sentence summary of the opportunity>"
}

Scoring guidelines:
- 80-100 (HIGH): Actively searching, mentions budget/timeline, comparing options
- 50-79 (MEDIUM): Expressing frustration, asking for recommendations, researching
- 20-49 (LOW): General discussion, mild interest, future consideration
- 0-19 (NONE): No buying intent, just sharing info, already solved

Key signals to look for:
- Direct asks: "looking for", "need a", "recommend", "best tool for"
- Comparison shopping: "alternative to", "vs", "switching from"
- Pain indicators: "frustrated", "tired of", "too expensive", "doesn't work"
- Timeline hints: "ASAP", "this quarter", "before launch", "urgently"
- Budget mentions: "budget", "pricing", "cost", "affordable"
"""


def score_to_level(score: int) -> IntentLevel:
    if score >= 80:
        return IntentLevel.HIGH
    if score >= 50:
        return IntentLevel.MEDIUM
    if score >= 20:
        return IntentLevel.LOW
    return IntentLevel.NONE


def disabled_result() -> IntentAnalysis:
    return IntentAnalysis(
        score=None,
        level=None,
        confidence=None,
        buying_signals=(),
        pain_points=(),
        urgency=None,
        recommended_action=None,
        summary="AI scoring disabled - set OPENAI_API_KEY to enable",
        error=AI_DISABLED,
    )


def error_result(message: str) -> IntentAnalysis:
    return IntentAnalysis(
        score=None,
        level=None,
        confidence=None,
        buying_signals=(),
        pain_points=(),
        urgency=None,
        recommended_action=None,
        summary=f"AI scoring failed: {message}",
        error=AI_ERROR,
    )


def sanitize_json(raw: str) -> str:
    """Cut the JSON object out of a model answer.

    Handles markdown fences, prose around the object and trailing commas.
    Raises ValueError when there is no object.
    """
    text = raw.strip().lstrip("\ufeff")
    if text.startswith("```"):
        parts = text.split("```")
        text = parts[1] if len(parts) >= 3 else text[3:]
    text = text.strip()
    if text.lower().startswith("json"):
        text = text[4:].strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ValueError("model did not return a JSON object")
    text = text[start : end + 1]
    return re.sub(r",\s*([}\]])", r"\1", text)


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return default if result != result else result


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None and str(item).strip())


def _choice(value: Any, allowed: type[IntentLevel] | type[Urgency] | type[RecommendedAction]):
    try:
        return allowed(value)
    except ValueError:
        return None


def normalize_analysis(raw: Mapping[str, Any], *, model: str, scored_at: str) -> IntentAnalysis:
    score = int(_clamp(_as_int(raw.get("score"), 0), 0, 100))
    summary = raw.get("summary")
    return IntentAnalysis(
        score=score,
        level=_choice(raw.get("level"), IntentLevel) or score_to_level(score),
        confidence=_clamp(_as_float(raw.get("confidence"), DEFAULT_CONFIDENCE), 0.0, 1.0),
        buying_signals=_string_list(raw.get("buyingSignals")),
        pain_points=_string_list(raw.get("painPoints")),
        urgency=_choice(raw.get("urgency"), Urgency) or Urgency.NONE,
        recommended_action=(
            _choice(raw.get("recommendedAction"), RecommendedAction) or RecommendedAction.MONITOR
        ),
        summary=summary.strip() if isinstance(summary, str) and summary.strip() else NO_SUMMARY,
        scored_at=scored_at,
        model=model,
    )


def _joined(values: Sequence[str], fallback: str) -> str:
    return ", ".join(values) if values else fallback


def build_prompt(post: Post, product_context: ProductContext | None = None) -> str:
    lines = ["Analyze this social media post for buying intent:", "", f"PLATFORM: {post.platform}"]
    if post.extras.get("subreddit"):
        lines.append(f"SUBREDDIT: r/{post.extras['subreddit']}")
    if post.extras.get("story_type"):
        lines.append(f"TYPE: {post.extras['story_type']}")
    lines += [
        "",
        f"TITLE: {post.title}",
        "",
        "CONTENT:",
        post.body or "(no body text)",
        "",
        (
            f"ENGAGEMENT: {post.metrics.get('score', 0)} upvotes, "
            f"{post.metrics.get('comments', 0)} comments"
        ),
    ]

    if product_context and product_context.is_specified:
        lines += [
            "",
            "CONTEXT - We are looking for leads for:",
            f"- Product: {product_context.product_name or 'Not specified'}",
            f"- Type: {product_context.product_type or 'Not specified'}",
            f"- Solves: {_joined(product_context.problems_solved, 'Not specified')}",
            f"- Competitors: {_joined(product_context.competitors, 'Not specified')}",
        ]

    if post.signals:
        signals = post.signals
        lines += [
            "",
            "PRE-DETECTED SIGNALS:",
            f"- Matched keywords: {_joined(signals.matched_keywords, 'none')}",
            f"- Intent keywords: {_joined(signals.matched_intent_keywords, 'none')}",
            f"- Pain keywords: {_joined(signals.matched_pain_keywords, 'none')}",
            f"- Competitors mentioned: {_joined(signals.matched_competitors, 'none')}",
            f"- Keyword relevance score: {signals.relevance_score}/100",
        ]

    lines += ["", "Analyze this post and return your assessment as JSON."]
    return "\n".join(lines)


class IntentScorer:
    def __init__(
        self,
        settings: Settings,
        *,
        pacing: FixedWindowScheduler | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.model = settings.openai_model
        self.pacing = pacing or FixedWindowScheduler(
            settings.ai_batch_concurrency, settings.ai_batch_delay_seconds
        )
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def enabled(self) -> bool:
        return self.settings.ai_enabled

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.openai_base_url,
            timeout=self.settings.ai_request_timeout_seconds,
            headers={
                "Authorization": f"Bearer {self.settings.openai_api_key}",
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )

    def build_payload(self, post: Post, product_context: ProductContext | None) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(post, product_context)},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "response_format": {"type": "json_object"},
        }

    async def score_one(
        self,
        post: Post,
        product_context: ProductContext | None = None,
    ) -> IntentAnalysis:
        if not self.enabled:
            return disabled_result()
        async with self._client() as client:
            return await self._score(client, post, product_context)

    async def _score(
        self,
        client: httpx.AsyncClient,
        post: Post,
        product_context: ProductContext | None,
    ) -> IntentAnalysis:
        try:
            response = await client.post(
                "/chat/completions", json=self.build_payload(post, product_context)
            )
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
            if not isinstance(content, str):
                raise ValueError("model answer content is not text")
            parsed = json.loads(sanitize_json(content))
            if not isinstance(parsed, dict):
                raise ValueError("model answer is not a JSON object")
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("AI scoring failed for %s:%s: %s", post.platform, post.id, exc)
            return error_result(str(exc) or exc.__class__.__name__)

        scored_at = self._clock().replace(microsecond=0).isoformat()
        return normalize_analysis(parsed, model=self.model, scored_at=scored_at)

    async def score_batch(
        self,
        posts: Sequence[Post],
        product_context: ProductContext | None = None,
        *,
        concurrency: int | None = None,
    ) -> list[Post]:
        if not posts:
            return []
        if not self.enabled:
            analysis = disabled_result()
            return [post.with_intent(analysis) for post in posts]

        pacing = self.pacing if concurrency is None else self.pacing.with_group_size(concurrency)
        async with self._client() as client:

            async def score(post: Post) -> Post:
                return post.with_intent(await self._score(client, post, product_context))

            return await pacing.map(list(posts), score)
