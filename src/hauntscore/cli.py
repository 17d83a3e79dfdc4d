"""
HauntScore CLI entrypoint.

This CLI is intended for quick local demos and debugging without the HTTP API.
It delegates all rating logic to `hauntscore.rating.service.RatingService`.
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
from typing import Any

import httpx

from hauntscore.config.settings import get_settings
from hauntscore.core.http import MissingApiKeyError
from hauntscore.core.logging import configure_logging
from hauntscore.core.time import parse_datetime
from hauntscore.domain.models import Assessment, Coordinates, RatingUpdate
from hauntscore.rating.service import RatingService
from hauntscore.realtime.refresh import RefreshManager
from hauntscore.scoring.explain import factor_catalog, one_line_summary, summarize_environment


def _print_assessment(assessment: Assessment) -> None:
    rating = assessment.rating
    location = assessment.location
    print(f"{location.name} ({location.type.value})  {rating.overall_score}/100")
    print(f"  {assessment.explanation}")
    print(f"  {summarize_environment(assessment.environmental)}")
    for row in rating.breakdown:
        print(f"    - {row.factor}: +{row.contribution} (w={row.weight:.2f})  {row.description}")


def _cmd_rate(args: argparse.Namespace) -> int:
    """Handle the `rate` subcommand."""
    settings = get_settings()
    at = parse_datetime(args.at, settings.app.timezone) if args.at else None

    service = RatingService(settings)
    try:
        result = service.rate(
            Coordinates(latitude=float(args.lat), longitude=float(args.lon)),
            location_name=args.name,
            at=at,
        )
    except (MissingApiKeyError, httpx.HTTPError) as exc:
        print(f"error: {str(exc) or type(exc).__name__}", file=sys.stderr)
        return 1

    if args.json:
        payload = {**result.assessment.model_dump(mode="json"), "weather_source": result.weather_source}
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    _print_assessment(result.assessment)
    return 0


def _cmd_factors(_: argparse.Namespace) -> int:
    print(json.dumps(factor_catalog(), ensure_ascii=False, indent=2))
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    """Run one auto-refresh session in the foreground until `--ticks` updates arrive."""
    settings = get_settings()
    if args.interval is not None:
        refresh = settings.refresh.model_copy(update={"interval_seconds": float(args.interval)})
        settings = settings.model_copy(update={"refresh": refresh})

    service = RatingService(settings)
    manager = RefreshManager(service, settings=settings, cache=service.cache)
    received = 0
    done = threading.Event()

    def on_update(update: RatingUpdate) -> None:
        nonlocal received
        received += 1
        print(f"[{update.as_of.isoformat()}] {update.source}: {one_line_summary(update.assessment.rating)}")
        if args.ticks and received >= int(args.ticks):
            done.set()

    def on_error(message: str) -> None:
        print(f"error: {message}")

    key = manager.start_auto_refresh(
        Coordinates(latitude=float(args.lat), longitude=float(args.lon)),
        on_update=on_update,
        on_error=on_error,
        location_name=args.name,
    )
    manager.start()
    print(f"Watching {key} every {manager.interval_seconds:g}s (Ctrl+C to stop)")
    try:
        manager.force_refresh(key)
        done.wait()
    except KeyboardInterrupt:
        pass
    finally:
        manager.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the HauntScore CLI."""
    parser = argparse.ArgumentParser(prog="hauntscore")
    sub = parser.add_subparsers(dest="command", required=True)

    rate = sub.add_parser("rate", help="Compute the haunted rating for a coordinate.")
    rate.add_argument("--lat", required=True, type=float)
    rate.add_argument("--lon", required=True, type=float)
    rate.add_argument("--name", type=str, default=None, help="Optional place name hint")
    rate.add_argument("--at", type=str, default=None, help="ISO datetime (e.g. 2026-10-31T00:30+00:00)")
    rate.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rate.set_defaults(func=_cmd_rate)

    factors = sub.add_parser("factors", help="Print the scoring tables.")
    factors.set_defaults(func=_cmd_factors)

    watch = sub.add_parser("watch", help="Auto-refresh the rating for a coordinate and print each update.")
    watch.add_argument("--lat", required=True, type=float)
    watch.add_argument("--lon", required=True, type=float)
    watch.add_argument("--name", type=str, default=None)
    watch.add_argument("--interval", type=float, default=None, help="Seconds between refreshes")
    watch.add_argument("--ticks", type=int, default=None, help="Stop after this many updates")
    watch.set_defaults(func=_cmd_watch)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m hauntscore.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
