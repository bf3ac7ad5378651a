"""List objects or count zero bytes in any supported object store."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from typing import Optional, TextIO

from storedemo.config.run_config import RunSettings, load_run_settings
from storedemo.errors import StoreError
from storedemo.logging_config import configure_logging, get_logger
from storedemo.pipeline.listing import process_listing
from storedemo.pipeline.transforms import count_zeros, describe
from storedemo.storage.base import ObjectStore
from storedemo.storage.factory import get_object_store, location_from_url, parse_url
from storedemo.storage.location import Location

logger = get_logger(__name__)

EPILOG = """\
Examples:
  storedemo zeros file:/tmp
  storedemo list s3://my-awesome-bucket
"""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):
        # single "Error:" line instead of usage plus message
        self.exit(2, f"Error: {message} (see '{self.prog} --help')\n")


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="storedemo",
        description=__doc__,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", choices=("list", "zeros"), help="What to do with every object under the url.")
    parser.add_argument("url", help="file:/path, s3://bucket/prefix, azure://container/prefix")
    parser.add_argument(
        "--concurrency",
        type=_non_negative_int,
        default=None,
        help="Maximum objects fetched at once (0 = unbounded). Defaults to STOREDEMO_MAX_CONCURRENCY or 16.",
    )
    parser.add_argument(
        "--chunk-size",
        type=_positive_int,
        default=None,
        help="Bytes requested per read. Defaults to STOREDEMO_CHUNK_SIZE or 65536.",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort on the first object that cannot be read instead of reporting it and continuing.",
    )
    return parser


async def list_demo(store: ObjectStore, prefix: Location, out: TextIO) -> int:
    print(f"Listing files in '{prefix}'...", file=out)
    async for meta in store.list(prefix):
        print(describe(meta), file=out)
    return 0


async def zeros_demo(
    store: ObjectStore,
    prefix: Location,
    settings: RunSettings,
    fail_fast: bool,
    out: TextIO,
    err: TextIO,
) -> int:
    failures = 0
    async for result in process_listing(store, prefix, count_zeros, settings.concurrency_limit, fail_fast):
        if result.ok:
            print(f"{result.location} has {result.value} zeros", file=out)
        else:
            failures += 1
            print(f"{result.location} failed: {result.error}", file=err)
    return 1 if failures else 0


def _resolve_settings(args: argparse.Namespace) -> RunSettings:
    settings = load_run_settings()
    overrides = {}
    if args.concurrency is not None:
        overrides["max_concurrency"] = args.concurrency
    if args.chunk_size is not None:
        overrides["chunk_size"] = args.chunk_size
    return dataclasses.replace(settings, **overrides) if overrides else settings


def main(argv: Optional[list[str]] = None, out: TextIO | None = None, err: TextIO | None = None) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)
    try:
        settings = _resolve_settings(args)
        configure_logging(level=settings.log_level, service="storedemo.cli", json_lines=settings.log_json)
        url = parse_url(args.url)
        store = get_object_store(url, chunk_size=settings.chunk_size)
        prefix = location_from_url(url)
        if args.command == "list":
            return asyncio.run(list_demo(store, prefix, out))
        return asyncio.run(zeros_demo(store, prefix, settings, args.fail_fast, out, err))
    except StoreError as exc:
        logger.debug("Command failed: command=%s url=%s", args.command, args.url, exc_info=True)
        print(f"Error: {exc.message}", file=err)
        return 1
    except KeyboardInterrupt:
        print("Error: interrupted", file=err)
        return 130


if __name__ == "__main__":
    sys.exit(main())
