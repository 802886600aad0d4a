"""
Data Acquisition Layer - CLI.

============================================================
USAGE
============================================================
python -m polypath_dal --config config/config.yaml --once
python -m polypath_dal --config config/config.yaml --interval 15
polypath-dal --config config/config.yaml --log-level DEBUG

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, List, Optional

from polypath_dal.config import LOG_LEVELS, DALSettings, load_settings
from polypath_dal.exceptions import ConfigurationError, DataAcquisitionError
from polypath_dal.logging_utils import configure_logging
from polypath_dal.persistence import open_snapshot_store
from polypath_dal.service import DataAcquisitionService


logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="polypath-dal",
        description="Fetch, normalize and cache bridge/DEX provider quotes",
    )
    parser.add_argument(
        "--config", "-c",
        required=True,
        metavar="PATH",
        help="YAML config file with global and bridges sections",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh cycle, print a JSON summary and exit",
    )
    parser.add_argument(
        "--interval",
        type=float,
        metavar="SECONDS",
        help="Override global.update_interval",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        type=str.upper,
        help="Override global.log_level",
    )
    parser.add_argument(
        "--no-env",
        action="store_true",
        help="Ignore POLYPATH_* environment overrides",
    )
    return parser


def build_settings(args: argparse.Namespace) -> DALSettings:
    settings = load_settings(args.config, use_env=not args.no_env)

    overrides: dict[str, Any] = {}
    if args.interval is not None:
        overrides["update_interval"] = args.interval
    if args.log_level:
        overrides["log_level"] = args.log_level
    return replace(settings, **overrides) if overrides else settings


def summarize(service: DataAcquisitionService) -> dict[str, Any]:
    """JSON-friendly view of the cache and the last cycle's errors."""
    errors = {
        name: outcome.to_dict()
        for name, outcome in service.last_results.items()
        if isinstance(outcome, DataAcquisitionError)
    }
    return {
        "quotes": {name: entry.to_dict() for name, entry in service.get_all_quotes().items()},
        "errors": errors,
        "health": {name: health.to_dict() for name, health in service.get_health().items()},
    }


async def run(settings: DALSettings, once: bool) -> int:
    service = DataAcquisitionService(
        settings,
        snapshot_store=open_snapshot_store(settings.database_url),
    )
    async with service:
        if once:
            results = await service.run_once()
            print(json.dumps(summarize(service), indent=2, sort_keys=True))
            return 0 if any(not isinstance(r, DataAcquisitionError) for r in results.values()) else 1

        await service.start()
        try:
            while service.is_running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        return asyncio.run(run(settings, once=args.once))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
