"""
Sigsynth CLI - Signal Synthesis Command Line Interface.

Usage:
    python -m cli synthesize BATCH.json [--subject SUBJECT] [--strategy STRATEGY]
    python -m cli strategies
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from domain import SynthesisError
from domain.primitives import ensure_utc
from domain.strategy import STRATEGY_PROFILES
from config import ConfigError, load_config, get_config
from orchestration import synthesize_batch
from presentation.json_api import to_api_response, error_response, dumps

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NO_DECISION = 2


def load_batch(path: Path) -> list[dict]:
    """
    Read a batch file.

    Accepts a JSON list of source records or an object with a
    "sources" list.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("sources", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of source records")
    return data


def cmd_synthesize(args: argparse.Namespace) -> int:
    """Synthesize a decision from a batch file."""
    try:
        config = load_config(args.config) if args.config else get_config()
        records = load_batch(Path(args.batch))
        now = ensure_utc(datetime.fromisoformat(args.now)) if args.now else None
    except (ConfigError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        result = synthesize_batch(
            records,
            subject=args.subject,
            strategy=args.strategy,
            now=now,
            config=config,
        )
    except SynthesisError as e:
        print(dumps(error_response(e)))
        return EXIT_NO_DECISION

    response = to_api_response(result)
    if args.decision_only:
        print(dumps(response.decision))
    else:
        print(dumps(response))
    return EXIT_OK


def cmd_strategies(args: argparse.Namespace) -> int:
    """List strategy profiles."""
    for profile in STRATEGY_PROFILES.values():
        weights = profile.agent_weights
        print(f"\n{profile.type.value}: {profile.name}")
        print(f"  {profile.description}")
        print(f"  Horizon: {profile.time_horizon} | Cache: {int(profile.cache_timeout.total_seconds())}s")
        print(
            f"  Weights: technical {weights.technical}, fundamental {weights.fundamental}, "
            f"news {weights.news_sentiment}, market {weights.market_structure}"
        )
        print(f"  Valid: {profile.validity.optimal} / {profile.validity.acceptable} / stale {profile.validity.stale}")

    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sigsynth",
        description="Multi-source signal synthesis",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Synthesize command
    synth_parser = subparsers.add_parser("synthesize", help="Synthesize a decision from a batch file")
    synth_parser.add_argument("batch", help="JSON file of source records")
    synth_parser.add_argument("-s", "--subject", help="Subject to decide on")
    synth_parser.add_argument(
        "--strategy",
        choices=[s.value for s in STRATEGY_PROFILES],
        help="Strategy profile",
    )
    synth_parser.add_argument("--now", help="Reference time (ISO 8601)")
    synth_parser.add_argument("-c", "--config", help="Config file path")
    synth_parser.add_argument("--decision-only", action="store_true", help="Print only the decision")
    synth_parser.set_defaults(func=cmd_synthesize)

    # Strategies command
    strategies_parser = subparsers.add_parser("strategies", help="List strategy profiles")
    strategies_parser.set_defaults(func=cmd_strategies)

    args = parser.parse_args(argv)

    # SIGSYNTH_* values from .env; config is cached on first load
    if load_dotenv(Path.cwd() / ".env"):
        get_config.cache_clear()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
