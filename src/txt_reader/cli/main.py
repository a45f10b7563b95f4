# src/txt_reader/cli/main.py

"""
CLI entrypoint.

    txt-reader count FILE
    txt-reader lines FILE START COUNT
    txt-reader sniff FILE N
    txt-reader grep FILE NEEDLE

Initializes logging, builds a TxtReader, runs one command and shuts the engine down.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from ..closures.marshaller import IteratorConfig
from ..config import get_settings
from ..core.reader import TxtReader
from ..errors import TaskFailedError
from .bootstrap import configure_logging, create_reader

logger = logging.getLogger(__name__)


def collect_matches(scope, raw, progress, line_number):
    # Runs inside the engine: only `scope` and builtins are available here.
    text = scope.decode(raw)
    if scope.needle in text:
        scope.hits.append([line_number, text])


def _print_progress(percent: Any) -> None:
    print(f"\r{int(percent):3d}%", end="", file=sys.stderr, flush=True)


async def _count(reader: TxtReader, args: argparse.Namespace) -> int:
    response = await reader.load_file(args.file).progress(_print_progress)
    print(file=sys.stderr)
    print(response.result["lineCount"])
    return 0


async def _lines(reader: TxtReader, args: argparse.Namespace) -> int:
    await reader.load_file(args.file).progress(_print_progress)
    print(file=sys.stderr)
    response = await reader.get_lines(args.start, args.count)
    for line in response.result:
        print(line)
    return 0


async def _sniff(reader: TxtReader, args: argparse.Namespace) -> int:
    response = await reader.sniff_lines(args.file, args.n)
    for line in response.result:
        print(line)
    return 0


async def _grep(reader: TxtReader, args: argparse.Namespace) -> int:
    await reader.load_file(args.file).progress(_print_progress)
    config = IteratorConfig(each_line=collect_matches, scope={"needle": args.needle, "hits": []})
    response = await reader.iterate_lines(config).progress(_print_progress)
    print(file=sys.stderr)
    hits = response.result["hits"]
    for line_number, text in hits:
        print(f"{line_number}:{text}")
    return 0 if hits else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="txt-reader", description="Read large text files.")
    parser.add_argument("--inline", action="store_true", help="run the engine in this process")
    parser.add_argument("--verbose", action="store_true", help="log every protocol message")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("count", help="count lines")
    p.add_argument("file")
    p.set_defaults(handler=_count)

    p = sub.add_parser("lines", help="print COUNT lines from line START (1-based)")
    p.add_argument("file")
    p.add_argument("start", type=int)
    p.add_argument("count", type=int)
    p.set_defaults(handler=_lines)

    p = sub.add_parser("sniff", help="print the first N lines without indexing the file")
    p.add_argument("file")
    p.add_argument("n", type=int)
    p.set_defaults(handler=_sniff)

    p = sub.add_parser("grep", help="print lines containing NEEDLE")
    p.add_argument("file")
    p.add_argument("needle")
    p.set_defaults(handler=_grep)

    return parser


async def _run(args: argparse.Namespace) -> int:
    reader = create_reader(inline=args.inline)
    try:
        if args.verbose:
            await reader.enable_diagnostics()
        return await args.handler(reader, args)
    except TaskFailedError as e:
        print(file=sys.stderr)
        logger.error("%s", e.message)
        return 2
    finally:
        reader.close()


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    configure_logging(settings)

    args = build_parser().parse_args(argv)
    logger.debug("Starting %s %s", settings.app_name, args.command)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
