from __future__ import annotations

import dataclasses
import enum
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

TIME_RANGE_PRESETS = ("hour", "day", "week", "month", "year")
DEFAULT_MAX_RESULTS = 25


class IntentLevel(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


class Urgency(str, enum.Enum):
    IMMEDIATE = "IMMEDIATE"
    SHORT_TERM = "SHORT_TERM"
    EXPLORING = "EXPLORING"
    NONE = "NONE"


class RecommendedAction(str, enum.Enum):
    CONTACT_NOW = "CONTACT_NOW"
    NURTURE = "NURTURE"
    MONITOR = "MONITOR"
    SKIP = "SKIP"


AI_DISABLED = "AI_DISABLED"
AI_ERROR = "AI_ERROR"


@dataclass(frozen=True)
class TimeWindow:
    start: str | None = None
    end: str | None = None


@dataclass(frozen=True)
class SearchCriteria:
    keywords: tuple[str, ...]
    intent_keywords: tuple[str, ...] = ()
    pain_keywords: tuple[str, ...] = ()
    competitors: tuple[str, ...] = ()
    platform_filters: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    time_range: str | TimeWindow | None = None
    max_results: int = DEFAULT_MAX_RESULTS

    def filters_for(self, platform_id: str) -> Mapping[str, Any]:
        return self.platform_filters.get(platform_id) or {}


@dataclass(frozen=True)
class Author:
    username: str
    profile_url: str


@dataclass(frozen=True)
class Signals:
    matched_keywords: tuple[str, ...]
    matched_intent_keywords: tuple[str, ...]
    matched_pain_keywords: tuple[str, ...]
    matched_competitors: tuple[str, ...]
    relevance_score: int


@dataclass(frozen=True)
class IntentAnalysis:
    score: int | None
    level: IntentLevel | None
    confidence: float | None
    buying_signals: tuple[str, ...]
    pain_points: tuple[str, ...]
    urgency: Urgency | None
    recommended_action: RecommendedAction | None
    summary: str
    error: str | None = None
    scored_at: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class Post:
    id: str
    platform: str
    title: str
    body: str
    url: str
    author: Author
    metrics: Mapping[str, float]
    created_at: str
    extras: Mapping[str, Any] = field(default_factory=dict)
    signals: Signals | None = None
    intent_analysis: IntentAnalysis | None = None

    @property
    def relevance_score(self) -> int:
        return self.signals.relevance_score if self.signals else 0

    @property
    def intent_score(self) -> int | None:
        return self.intent_analysis.score if self.intent_analysis else None

    def with_signals(self, signals: Signals) -> Post:
        return dataclasses.replace(self, signals=signals)

    def with_intent(self, analysis: IntentAnalysis) -> Post:
        return dataclasses.replace(self, intent_analysis=analysis)


@dataclass(frozen=True)
class SearchResult:
    platform: str
    success: bool
    posts: list[Post]
    total_found: int
    searched_at: str
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlatformError:
    platform: str
    error: str


@dataclass(frozen=True)
class PlatformInfo:
    id: str
    display_name: str
    available: bool = True


@dataclass(frozen=True)
class SearchOutcome:
    success: bool
    platforms: list[str]
    results: list[SearchResult]
    total_posts: int
    searched_at: str
    errors: list[PlatformError]


@dataclass(frozen=True)
class RankedResult:
    success: bool
    posts: list[Post]
    total_found: int
    by_platform: dict[str, int]
    errors: list[PlatformError]


@dataclass(frozen=True)
class ProductContext:
    product_name: str | None = None
    product_type: str | None = None
    problems_solved: tuple[str, ...] = ()
    competitors: tuple[str, ...] = ()

    @property
    def is_specified(self) -> bool:
        return bool(self.product_name or self.product_type)


@dataclass(frozen=True)
class AIOptions:
    product_context: ProductContext = field(default_factory=ProductContext)
    min_relevance_score: int = 30
    max_to_score: int = 20


@dataclass(frozen=True)
class AIScoringSummary:
    enabled: bool
    model: str
    scored: int
    skipped: int
    min_relevance_threshold: int


@dataclass(frozen=True)
class AIRankedResult:
    success: bool
    posts: list[Post]
    total_found: int
    by_platform: dict[str, int]
    by_intent_level: dict[str, int]
    hot_leads: list[Post]
    ai_scoring: AIScoringSummary
    errors: list[PlatformError]


def _string_tuple(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ValueError(f"{key} must be a list of strings")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _pick(data: Mapping[str, Any], snake: str, camel: str) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel)


def snake_case_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", str(key)).lower(): value for key, value in data.items()}


def _parse_platform_filters(value: Any) -> dict[str, dict[str, Any]]:
    if not value:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError("platform_filters must be an object keyed by platform id")
    parsed: dict[str, dict[str, Any]] = {}
    for platform_id, filters in value.items():
        if filters is None:
            filters = {}
        if not isinstance(filters, Mapping):
            raise ValueError(f"filters for {platform_id} must be an object")
        # "hackerNews" and "hackernews" name the same platform.
        parsed[str(platform_id).lower()] = snake_case_keys(filters)
    return parsed


def _parse_time_range(value: Any) -> str | TimeWindow | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        if value not in TIME_RANGE_PRESETS:
            raise ValueError(f"unknown time range preset: {value}")
        return value
    if isinstance(value, Mapping):
        preset = value.get("preset")
        if preset:
            return _parse_time_range(preset)
        start = value.get("from") or value.get("start")
        end = value.get("to") or value.get("end")
        if not start and not end:
            raise ValueError("time range needs a preset or from/to")
        return TimeWindow(start=start, end=end)
    raise ValueError("time range must be a preset name or a {from, to} object")


def criteria_from_mapping(data: Mapping[str, Any]) -> SearchCriteria:
    keywords = _string_tuple(data.get("keywords"), "keywords")
    if not keywords:
        raise ValueError("criteria.keywords is required and must not be empty")

    raw_max = _pick(data, "max_results", "maxResults")
    try:
        max_results = DEFAULT_MAX_RESULTS if raw_max is None else int(raw_max)
    except (TypeError, ValueError) as exc:
        raise ValueError("max_results must be an integer") from exc
    if max_results < 1:
        raise ValueError("max_results must be positive")

    filters = _parse_platform_filters(_pick(data, "platform_filters", "platformFilters"))

    return SearchCriteria(
        keywords=keywords,
        intent_keywords=_string_tuple(_pick(data, "intent_keywords", "intentKeywords"), "intent_keywords"),
        pain_keywords=_string_tuple(_pick(data, "pain_keywords", "painKeywords"), "pain_keywords"),
        competitors=_string_tuple(data.get("competitors"), "competitors"),
        platform_filters=filters,
        time_range=_parse_time_range(_pick(data, "time_range", "timeRange")),
        max_results=max_results,
    )


def product_context_from_mapping(data: Mapping[str, Any] | None) -> ProductContext:
    if not data:
        return ProductContext()
    return ProductContext(
        product_name=_pick(data, "product_name", "productName") or None,
        product_type=_pick(data, "product_type", "productType") or None,
        problems_solved=_string_tuple(
            _pick(data, "problems_solved", "problemsSolved"), "problems_solved"
        ),
        competitors=_string_tuple(data.get("competitors"), "competitors"),
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def to_dict(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _jsonable(dataclasses.asdict(obj))
    return _jsonable(obj)
