# =============================================================================
# cachebin/cli/admin.py — Cache Administration Commands
# =============================================================================
#
# Operator CLI for inspecting and clearing cache bins without writing code.
# Every command resolves the bin through the configured registry, so the
# bin → implementation mapping in config/config.yaml and the CACHE_* env
# vars apply exactly as they do inside the application.
#
# Typical usage:
#   python -m cachebin.cli status page
#   python -m cachebin.cli get page front --json
#   python -m cachebin.cli expire page
#   python -m cachebin.cli delete-prefix page "node:"
#   python -m cachebin.cli flush page --yes
# =============================================================================

"""Command-line administration for cachebin bins.

Usage::

    python -m cachebin.cli status BIN
    python -m cachebin.cli get BIN CID [--json]
    python -m cachebin.cli expire BIN
    python -m cachebin.cli gc BIN
    python -m cachebin.cli delete-prefix BIN PREFIX
    python -m cachebin.cli flush BIN [--yes]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from cachebin.config.settings import Settings
from cachebin.main import build_registry
from cachebin.services.bin_registry import CacheBinRegistry
from cachebin.utils.errors import CacheBinError
from cachebin.utils.logging import bin_context, configure_logging


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_status(args: argparse.Namespace, registry: CacheBinRegistry) -> int:
    """Print the bin's implementation and whether it holds any entries."""
    cache_bin = await registry.get(args.bin)
    empty = await cache_bin.is_empty()
    print(f"Bin:             {cache_bin.bin_name}")
    print(f"Implementation:  {cache_bin.get_provider_name()}")
    print(f"Empty:           {'yes' if empty else 'no'}")
    return 0


async def _handle_get(args: argparse.Namespace, registry: CacheBinRegistry) -> int:
    """Print one entry, or exit 1 on a miss."""
    cache_bin = await registry.get(args.bin)
    entry = await cache_bin.get(args.cid)
    if entry is None:
        print(f"Miss: {args.bin}:{args.cid}", file=sys.stderr)
        return 1

    if args.json:
        print(entry.model_dump_json(indent=2))
    else:
        print(f"cid:      {entry.cid}")
        print(f"created:  {entry.created}")
        print(f"expire:   {entry.expire}")
        data = entry.data if isinstance(entry.data, str) else json.dumps(entry.data, indent=2)
        print(f"data:     {data}")
    return 0


async def _handle_expire(args: argparse.Namespace, registry: CacheBinRegistry) -> int:
    cache_bin = await registry.get(args.bin)
    await cache_bin.expire()
    print(f"Expiry policy applied to {args.bin}.")
    return 0


async def _handle_gc(args: argparse.Namespace, registry: CacheBinRegistry) -> int:
    cache_bin = await registry.get(args.bin)
    await cache_bin.garbage_collection()
    print(f"Garbage collection ran on {args.bin}.")
    return 0


async def _handle_delete_prefix(args: argparse.Namespace, registry: CacheBinRegistry) -> int:
    cache_bin = await registry.get(args.bin)
    await cache_bin.delete_prefix(args.prefix)
    print(f"Deleted entries of {args.bin} starting with {args.prefix!r}.")
    return 0


async def _handle_flush(args: argparse.Namespace, registry: CacheBinRegistry) -> int:
    """Remove every entry, permanent ones included, after confirmation."""
    if not args.yes:
        answer = input(f"Remove ALL entries from bin {args.bin!r}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1

    cache_bin = await registry.get(args.bin)
    await cache_bin.flush()
    print(f"Flushed {args.bin}.")
    return 0


_HANDLERS = {
    "status": _handle_status,
    "get": _handle_get,
    "expire": _handle_expire,
    "gc": _handle_gc,
    "delete-prefix": _handle_delete_prefix,
    "flush": _handle_flush,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    """Build the registry and dispatch, mapping cache errors to exit code 1."""
    try:
        registry = build_registry(app_settings)
        with bin_context(args.bin, command=args.command):
            return await _HANDLERS[args.command](args, registry)
    except CacheBinError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the admin CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m cachebin.cli",
        description="Inspect and clear cachebin cache bins.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Cache commands")

    # -- status --
    status_parser = subparsers.add_parser("status", help="Show a bin's implementation and emptiness")
    status_parser.add_argument("bin", help="Bin name")

    # -- get --
    get_parser = subparsers.add_parser("get", help="Print a single entry")
    get_parser.add_argument("bin", help="Bin name")
    get_parser.add_argument("cid", help="Cache id")
    get_parser.add_argument("--json", action="store_true", help="Print the entry as JSON")

    # -- expire --
    expire_parser = subparsers.add_parser("expire", help="Apply the expiry policy to a bin")
    expire_parser.add_argument("bin", help="Bin name")

    # -- gc --
    gc_parser = subparsers.add_parser("gc", help="Run garbage collection on a bin")
    gc_parser.add_argument("bin", help="Bin name")

    # -- delete-prefix --
    prefix_parser = subparsers.add_parser("delete-prefix", help="Delete entries whose id starts with PREFIX")
    prefix_parser.add_argument("bin", help="Bin name")
    prefix_parser.add_argument("prefix", help="Cache id prefix")

    # -- flush --
    flush_parser = subparsers.add_parser("flush", help="Delete every entry in a bin")
    flush_parser.add_argument("bin", help="Bin name")
    flush_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for cache administration."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, json_output=(app_settings.app_env == "production"))

    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
