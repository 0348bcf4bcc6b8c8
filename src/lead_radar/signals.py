from __future__ import annotations

import math
from typing import Sequence

from lead_radar.models import Post, SearchCriteria, Signals

KEYWORD_WEIGHT = 40.0
INTENT_POINTS, INTENT_CAP = 12.5, 25.0
PAIN_POINTS, PAIN_CAP = 10.0, 20.0
COMPETITOR_POINTS, COMPETITOR_CAP = 15.0, 15.0


def build_haystack(title: str, body: str) -> str:
    return f"{title or ''} {body or ''}".lower()


def matched_terms(haystack: str, terms: Sequence[str]) -> tuple[str, ...]:
    # Plain substring containment: "cat" also hits "category".
    return tuple(term for term in terms if term and term.lower() in haystack)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def relevance_score(
    keyword_hits: int,
    keyword_total: int,
    intent_hits: int,
    pain_hits: int,
    competitor_hits: int,
) -> int:
    score = (keyword_hits / max(keyword_total, 1)) * KEYWORD_WEIGHT
    score += min(intent_hits * INTENT_POINTS, INTENT_CAP)
    score += min(pain_hits * PAIN_POINTS, PAIN_CAP)
    score += min(competitor_hits * COMPETITOR_POINTS, COMPETITOR_CAP)
    return _round_half_up(min(score, 100.0))


def detect_signals(post: Post, criteria: SearchCriteria) -> Signals:
    haystack = build_haystack(post.title, post.body)

    keywords = matched_terms(haystack, criteria.keywords)
    intent = matched_terms(haystack, criteria.intent_keywords)
    pain = matched_terms(haystack, criteria.pain_keywords)
    competitors = matched_terms(haystack, criteria.competitors)

    return Signals(
        matched_keywords=keywords,
        matched_intent_keywords=intent,
        matched_pain_keywords=pain,
        matched_competitors=competitors,
        relevance_score=relevance_score(
            len(keywords),
            len(criteria.keywords),
            len(intent),
            len(pain),
            len(competitors),
        ),
    )
