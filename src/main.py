# src/main.py - v3
"""CLI entry point: config, stats, cleanup, invalidate commands.

Usage:
    contentgate config
    contentgate stats
    contentgate cleanup
    contentgate invalidate --scope artifact --id <artifact_id>

All commands act on the cache backend selected by Settings (.env).
Results are printed to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from contentgate.cache.cache_factory import create_cache_store
from contentgate.cache.manager import CacheManager
from contentgate.cache.models import CacheInvalidationRequest
from contentgate.config.settings import Settings, load_settings
from contentgate.logging.logger import setup_logging_from_settings
from contentgate.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
        setup_logging_from_settings(settings, verbose=args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="contentgate",
        description=f"contentgate v{__version__} - admission control and content cache",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_config = subparsers.add_parser("config", help="Print effective settings")
    p_config.set_defaults(func=_cmd_config)

    p_stats = subparsers.add_parser("stats", help="Print cache metrics")
    p_stats.set_defaults(func=_cmd_stats)

    p_cleanup = subparsers.add_parser(
        "cleanup", help="Sweep expired entries and evict over the size budget",
    )
    p_cleanup.set_defaults(func=_cmd_cleanup)

    p_invalidate = subparsers.add_parser("invalidate", help="Invalidate cache entries")
    p_invalidate.add_argument(
        "--scope", choices=["content", "artifact", "site"], required=True,
    )
    p_invalidate.add_argument("--id", dest="target_id", required=True)
    p_invalidate.set_defaults(func=_cmd_invalidate)

    return parser


def _manager(settings: Settings) -> CacheManager:
    return CacheManager(create_cache_store(settings), settings.cache_strategy())


def _emit(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


async def _cmd_config(args: argparse.Namespace, settings: Settings) -> int:
    _emit(settings.model_dump(mode="json"))
    return 0


async def _cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    metrics = await _manager(settings).metrics()
    _emit(metrics.model_dump(mode="json"))
    return 0


async def _cmd_cleanup(args: argparse.Namespace, settings: Settings) -> int:
    result = await _manager(settings).cleanup()
    _emit(result.model_dump(mode="json"))
    return 0


async def _cmd_invalidate(args: argparse.Namespace, settings: Settings) -> int:
    request = CacheInvalidationRequest(scope=args.scope, id=args.target_id)
    deleted = await _manager(settings).invalidate(request)
    _emit({"scope": args.scope, "id": args.target_id, "deleted": deleted})
    return 0


if __name__ == "__main__":
    sys.exit(main())
