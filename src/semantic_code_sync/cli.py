"""Command-line interface for semantic-code-sync."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog
from pydantic import BaseModel, TypeAdapter

from semantic_code_sync.config import get_settings
from semantic_code_sync.container import Container
from semantic_code_sync.errors import IndexingError
from semantic_code_sync.logging import configure_logging
from semantic_code_sync.models import IndexedFile

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semantic-code-sync",
        description="Chunk source trees and keep their embedding index in sync",
    )
    parser.add_argument("--debug", action="store_true", help="Debug-level console logging")
    sub = parser.add_subparsers(dest="command", required=True)

    rescan = sub.add_parser("rescan", help="Incrementally sync an index with a directory")
    rescan.add_argument("index_id")
    rescan.add_argument("root", type=Path)

    index = sub.add_parser("index", help="Ingest a directory into an index")
    index.add_argument("index_id")
    index.add_argument("root", type=Path)
    index.add_argument("--force", action="store_true", help="Drop the index before ingesting")

    status = sub.add_parser("status", help="Compare an index against a directory")
    status.add_argument("index_id")
    status.add_argument("root", type=Path)

    files = sub.add_parser("files", help="List files stored in an index")
    files.add_argument("index_id")

    stats = sub.add_parser("stats", help="Chunk and file counts by language and chunk type")
    stats.add_argument("index_id")

    return parser


def _report_progress(phase: str, current: int, total: int) -> None:
    log.debug("progress", phase=phase, current=current, total=total)


async def run(args: argparse.Namespace, container: Container) -> BaseModel | list[IndexedFile]:
    """Execute one parsed command and return its result model."""
    if args.command == "files":
        return await asyncio.to_thread(container.get_store(args.index_id).list_files)
    if args.command == "stats":
        return await asyncio.to_thread(container.get_store(args.index_id).get_stats)

    service = container.create_sync_service(args.index_id)
    if args.command == "rescan":
        return await service.rescan(args.root, on_progress=_report_progress)
    if args.command == "index":
        return await service.index(args.root, force=args.force, on_progress=_report_progress)
    return await service.get_status(args.root)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the semantic-code-sync command."""
    signal.signal(signal.SIGINT, lambda *_: sys.exit(130))
    args = build_parser().parse_args(argv)

    settings = get_settings()
    if args.debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(debug=settings.debug)
    container = Container(settings)

    try:
        result = asyncio.run(run(args, container))
    except IndexingError as e:
        log.error("command_failed", command=args.command, kind=e.kind, error=str(e))
        return 1

    if isinstance(result, list):
        output = TypeAdapter(list[IndexedFile]).dump_json(result, indent=2).decode()
    else:
        output = result.model_dump_json(indent=2)
    print(output)
    return 0
