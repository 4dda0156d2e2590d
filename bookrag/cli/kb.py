"""Command-line interface for per-book knowledge bases.

Usage::

    python -m bookrag.cli ingest --book b-42 --file ./chapter1.pdf
    python -m bookrag.cli ingest --book b-42 --url https://example.com/ch2.pdf --owner u-7
    python -m bookrag.cli ask --book b-42 "Who is the narrator?"
    python -m bookrag.cli status --book b-42
    python -m bookrag.cli check --book b-42 --name chapter1.pdf
    python -m bookrag.cli delete --book b-42 --name chapter1.pdf --yes

Every command prints its result model as JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import BaseModel

from bookrag.config.settings import Settings
from bookrag.models.knowledge import AccessLevel
from bookrag.pipeline.orchestrator import KnowledgeBasePipeline
from bookrag.utils.errors import BookRAGError
from bookrag.utils.logging import configure_logging


def _emit(result: BaseModel) -> None:
    print(result.model_dump_json(indent=2))


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, pipeline: KnowledgeBasePipeline) -> int:
    """Ingest one PDF from a local path or a URL."""
    visibility: bool | None = None
    if args.public:
        visibility = True
    elif args.private:
        visibility = False
    access_level = None
    if visibility is not None:
        access_level = AccessLevel.PUBLIC if visibility else AccessLevel.PRIVATE

    if args.url:
        file_name = args.name or args.url.rstrip("/").rsplit("/", 1)[-1]
        result = await pipeline.ingest_url(
            book_id=args.book,
            file_name=file_name,
            url=args.url,
            owner_id=args.owner,
            is_public=visibility,
            access_level=access_level,
            force=args.force,
            item_id=args.item_id,
        )
    else:
        path = Path(args.file)
        if not path.is_file():
            print(f"Error: file not found: {path}", file=sys.stderr)
            return 1
        result = await pipeline.ingest_bytes(
            book_id=args.book,
            file_name=args.name or path.name,
            data=path.read_bytes(),
            owner_id=args.owner,
            is_public=visibility,
            access_level=access_level,
            force=args.force,
            item_id=args.item_id,
        )

    _emit(result)
    return 0


async def _handle_ask(args: argparse.Namespace, pipeline: KnowledgeBasePipeline) -> int:
    result = await pipeline.ask(
        book_id=args.book,
        question=args.question,
        file_name=args.name,
        user_id=args.user,
        require_auth=args.mine,
    )
    _emit(result)
    return 0


async def _handle_status(args: argparse.Namespace, pipeline: KnowledgeBasePipeline) -> int:
    _emit(await pipeline.status(book_id=args.book, owner_id=args.owner))
    return 0


async def _handle_check(args: argparse.Namespace, pipeline: KnowledgeBasePipeline) -> int:
    _emit(await pipeline.check(book_id=args.book, file_name=args.name, owner_id=args.owner))
    return 0


async def _handle_delete(args: argparse.Namespace, pipeline: KnowledgeBasePipeline) -> int:
    """Delete one document's chunks.

    Destructive; asks for confirmation unless ``--yes`` is passed.
    """
    if not args.yes:
        confirm = input(
            f"Delete all chunks of {args.name!r} from book {args.book!r}? [y/N] "
        ).strip().lower()
        if confirm not in ("y", "yes"):
            print("Aborted.", file=sys.stderr)
            return 0

    result = await pipeline.delete(
        book_id=args.book,
        file_name=args.name,
        owner_id=args.owner,
        item_id=args.item_id,
    )
    _emit(result)
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "ask": _handle_ask,
    "status": _handle_status,
    "check": _handle_check,
    "delete": _handle_delete,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge-base CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m bookrag.cli",
        description="Build and query per-book PDF knowledge bases.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Knowledge-base commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a PDF into a book")
    ingest_parser.add_argument("--book", required=True, help="Book identifier")
    source = ingest_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a local PDF")
    source.add_argument("--url", help="URL of a PDF to download")
    ingest_parser.add_argument("--name", help="Document name (default: file or URL basename)")
    ingest_parser.add_argument("--owner", help="Uploading user id (default: anonymous)")
    visibility = ingest_parser.add_mutually_exclusive_group()
    visibility.add_argument("--public", action="store_true", help="Make chunks public")
    visibility.add_argument("--private", action="store_true", help="Make chunks private")
    ingest_parser.add_argument(
        "--force", action="store_true", help="Delete existing chunks and re-embed"
    )
    ingest_parser.add_argument("--item-id", dest="item_id", help="Parent item record to update")

    # -- ask --
    ask_parser = subparsers.add_parser("ask", help="Ask a question about a book")
    ask_parser.add_argument("--book", required=True, help="Book identifier")
    ask_parser.add_argument("question", help="Question text")
    ask_parser.add_argument("--name", help="Restrict retrieval to one document")
    ask_parser.add_argument("--user", help="Caller user id")
    ask_parser.add_argument(
        "--mine",
        action="store_true",
        help="Reject the question unless --user identifies the caller",
    )

    # -- status --
    status_parser = subparsers.add_parser("status", help="Summarize a book's knowledge base")
    status_parser.add_argument("--book", required=True, help="Book identifier")
    status_parser.add_argument("--owner", help="Restrict to one owner's documents")

    # -- check --
    check_parser = subparsers.add_parser("check", help="Check whether a document is embedded")
    check_parser.add_argument("--book", required=True, help="Book identifier")
    check_parser.add_argument("--name", help="Document name")
    check_parser.add_argument("--owner", help="Owner user id")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document's chunks")
    delete_parser.add_argument("--book", required=True, help="Book identifier")
    delete_parser.add_argument("--name", required=True, help="Document name")
    delete_parser.add_argument("--owner", help="Owner user id")
    delete_parser.add_argument("--item-id", dest="item_id", help="Parent item record to reset")
    delete_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, pipeline: KnowledgeBasePipeline) -> int:
    try:
        return await _HANDLERS[args.command](args, pipeline)
    except BookRAGError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Loads :class:`Settings` from the environment / ``.env``, configures
    logging, builds the pipeline and dispatches to the subcommand handler.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    # Deferred so --help does not import the provider SDKs.
    from bookrag.main import build_pipeline

    try:
        pipeline = build_pipeline(app_settings)
    except BookRAGError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return asyncio.run(_run(args, pipeline))


if __name__ == "__main__":
    sys.exit(main())
