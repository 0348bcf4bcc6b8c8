from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from lead_radar.config import AI_REQUIRED_ENVS, load_settings, mask_secret, missing_envs
from lead_radar.intent import IntentScorer
from lead_radar.models import (
    AIOptions,
    TIME_RANGE_PRESETS,
    criteria_from_mapping,
    product_context_from_mapping,
    snake_case_keys,
    to_dict,
)
from lead_radar.registry import build_default_registry
from lead_radar.search import SearchService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lead-radar")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("platforms", help="List registered platforms")
    subparsers.add_parser("healthcheck", help="Validate config and report AI scoring status")

    search_parser = subparsers.add_parser("search", help="Search platforms for leads")
    search_parser.add_argument(
        "--criteria-file",
        type=Path,
        default=None,
        help="JSON file with search criteria (flags below are merged on top)",
    )
    search_parser.add_argument("--keyword", action="append", default=[], dest="keywords")
    search_parser.add_argument("--intent", action="append", default=[], dest="intent_keywords")
    search_parser.add_argument("--pain", action="append", default=[], dest="pain_keywords")
    search_parser.add_argument("--competitor", action="append", default=[], dest="competitors")
    search_parser.add_argument("--platform", action="append", default=[], dest="platforms")
    search_parser.add_argument("--time-range", choices=TIME_RANGE_PRESETS, default=None)
    search_parser.add_argument("--max-results", type=int, default=None)
    search_parser.add_argument("--mode", choices=("raw", "ranked", "ai"), default="ranked")
    search_parser.add_argument("--product-name", default=None)
    search_parser.add_argument("--product-type", default=None)
    search_parser.add_argument("--problem", action="append", default=[], dest="problems_solved")
    search_parser.add_argument("--min-relevance", type=int, default=30)
    search_parser.add_argument("--max-to-score", type=int, default=20)

    return parser


def _criteria_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if args.criteria_file is not None:
        try:
            loaded = json.loads(args.criteria_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f"cannot read criteria file: {exc}") from exc
        body = loaded.get("criteria", loaded) if isinstance(loaded, dict) else None
        if not isinstance(body, dict):
            raise ValueError("criteria file must contain a JSON object")
        payload.update(snake_case_keys(body))

    for key in ("keywords", "intent_keywords", "pain_keywords", "competitors"):
        extra = getattr(args, key)
        if extra:
            payload[key] = [*(payload.get(key) or []), *extra]
    if args.time_range:
        payload["time_range"] = args.time_range
    if args.max_results is not None:
        payload["max_results"] = args.max_results
    return payload


def _cmd_platforms() -> int:
    service = _build_service()
    for info in service.list_platforms():
        print(f"{info.id}\t{info.display_name}")
    return 0


def _cmd_healthcheck() -> int:
    settings = load_settings()
    missing = missing_envs(AI_REQUIRED_ENVS)
    if missing:
        print("AI scoring disabled, missing:", ", ".join(missing))
    else:
        print(f"AI scoring enabled: model={settings.openai_model} key={mask_secret(settings.openai_api_key)}")
    print(
        "rate limits:",
        f"reddit={settings.reddit_rate_limit_per_minute}/min",
        f"hackernews={settings.hackernews_rate_limit_per_minute}/min",
    )
    print("healthcheck passed")
    return 0


def _build_service() -> SearchService:
    settings = load_settings()
    return SearchService(build_default_registry(settings), IntentScorer(settings))


async def _run_search(service: SearchService, args: argparse.Namespace) -> Any:
    criteria = criteria_from_mapping(_criteria_payload(args))
    platforms = args.platforms or None

    if args.mode == "raw":
        return await service.search(criteria, platforms)
    if args.mode == "ranked":
        return await service.search_ranked(criteria, platforms)

    options = AIOptions(
        product_context=product_context_from_mapping(
            {
                "product_name": args.product_name,
                "product_type": args.product_type,
                "problems_solved": args.problems_solved,
                "competitors": args.competitors,
            }
        ),
        min_relevance_score=args.min_relevance,
        max_to_score=args.max_to_score,
    )
    return await service.search_with_ai(criteria, platforms, options)


def _cmd_search(args: argparse.Namespace) -> int:
    service = _build_service()
    result = asyncio.run(_run_search(service, args))
    print(json.dumps(to_dict(result), ensure_ascii=False, indent=2))

    requested = args.platforms or service.registry.list_ids()
    if result.errors and len(result.errors) >= len(requested):
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "platforms":
            return _cmd_platforms()
        if args.command == "healthcheck":
            return _cmd_healthcheck()
        if args.command == "search":
            return _cmd_search(args)
    except ValueError as exc:
        print(exc)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
