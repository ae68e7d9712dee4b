"""Standalone CLI for building and inspecting the knowledge corpus.

Usage::

    python -m groundwork.cli ingest docs/infection-control.pdf docs/policy.docx \\
        --category policy --tenant-id facility-12

    python -m groundwork.cli search "infection control" --top-k 5

    python -m groundwork.cli context "hand hygiene" --role "Charge Nurse"

    python -m groundwork.cli stats --tenant-id facility-12

Heavy imports (embedding models, stores) are deferred into the handlers so
``--help`` stays fast.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from groundwork.config.settings import Settings


def _build(app_settings: Settings) -> dict[str, Any]:
    """Construct providers and services the same way the web app does."""
    from groundwork.config.loader import load_config
    from groundwork.main import build_components

    app_config = load_config(settings=app_settings)
    return build_components(app_settings, app_config, with_completion=False)


def _read_uploads(paths: list[str]):  # noqa: ANN202
    from groundwork.models.knowledge import UploadedFile

    uploads = []
    for raw in paths:
        path = Path(raw)
        content_type, _ = mimetypes.guess_type(path.name)
        uploads.append(
            UploadedFile(filename=path.name, data=path.read_bytes(), content_type=content_type)
        )
    return uploads


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    missing = [p for p in args.files if not Path(p).is_file()]
    if missing:
        print(f"Error: file not found: {', '.join(missing)}", file=sys.stderr)
        return 1

    uploads = _read_uploads(args.files)
    print(f"Ingesting {len(uploads)} file(s) into category '{args.category}'")

    result = await components["ingestion_service"].ingest_files(
        uploads,
        tenant_id=args.tenant_id,
        category=args.category,
        title=args.title,
        source_url=args.source_url,
        last_updated=args.last_updated,
    )

    print("\nIngestion complete:")
    print(f"  Chunks inserted: {result.inserted_count}")
    print(f"  Files:           {', '.join(result.filenames)}")
    print(f"  Time:            {result.elapsed_seconds:.2f}s")
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    scored = await components["retrieval_service"].retrieve(
        args.query,
        tenant_id=args.tenant_id,
        category=args.category,
        top_k=args.top_k,
    )
    if not scored:
        print("No results.")
        return 0

    for item in scored:
        chunk = item.chunk
        print(
            f"{item.rank:>3}. [{item.match_type.value} {item.score:.4f}] "
            f"[{chunk.category or 'general'}] {chunk.title}"
        )
        preview = " ".join(chunk.content.split())[:160]
        print(f"     {preview}")
    return 0


async def _handle_context(args: argparse.Namespace, components: dict[str, Any]) -> int:
    from groundwork.models.knowledge import CallerProfile

    profile = None
    if args.role or args.facility:
        profile = CallerProfile(role=args.role, facility_name=args.facility)

    scored = await components["retrieval_service"].retrieve(
        args.query,
        tenant_id=args.tenant_id,
        category=args.category,
        top_k=args.top_k,
    )
    context = components["context_assembler"].assemble(scored, profile)
    if context.is_empty:
        print("(no context)")
        return 0
    print(context.text)
    return 0


async def _handle_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    from groundwork.models.knowledge import SearchScope

    store = components["document_store"]
    total = await store.count()

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Store:            {store.get_provider_name()}")
    print(f"  Embedding:        {components['embedding_provider'].get_provider_name()}")
    print(f"  Total chunks:     {total}")
    if args.tenant_id or args.category:
        scoped = await store.count(SearchScope(tenant_id=args.tenant_id, category=args.category))
        print(f"  In scope:         {scoped}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "context": _handle_context,
    "stats": _handle_stats,
}


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await components["document_store"].initialize()
    return await _HANDLERS[args.command](args, components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_scope_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tenant-id", dest="tenant_id", default=None, help="Tenant/facility scope")
    parser.add_argument("--category", default=None, help="Exact category filter")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m groundwork.cli",
        description="Manage the groundwork knowledge corpus.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Corpus commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest local files")
    ingest_parser.add_argument("files", nargs="+", help="Files to ingest")
    ingest_parser.add_argument("--tenant-id", dest="tenant_id", default=None)
    ingest_parser.add_argument("--category", default="general")
    ingest_parser.add_argument("--title", default=None, help="Title for every file (default: filename)")
    ingest_parser.add_argument("--source-url", dest="source_url", default=None)
    ingest_parser.add_argument("--last-updated", dest="last_updated", default=None)

    # -- search --
    search_parser = subparsers.add_parser("search", help="Search the corpus")
    search_parser.add_argument("query", help="Query text")
    search_parser.add_argument("--top-k", dest="top_k", type=int, default=None)
    _add_scope_arguments(search_parser)

    # -- context --
    context_parser = subparsers.add_parser("context", help="Print the context block for a query")
    context_parser.add_argument("query", help="Query text")
    context_parser.add_argument("--top-k", dest="top_k", type=int, default=None)
    context_parser.add_argument("--role", default=None, help="Caller role for prioritization")
    context_parser.add_argument("--facility", default=None, help="Caller facility name")
    _add_scope_arguments(context_parser)

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show corpus statistics")
    _add_scope_arguments(stats_parser)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None, components: dict[str, Any] | None = None) -> int:
    """Parse *argv* and run the selected command; returns the exit code."""
    from groundwork.utils.errors import GroundworkError

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if components is None:
            components = _build(Settings())
        return asyncio.run(_run(args, components))
    except GroundworkError as exc:
        print(f"Error [{exc.code}]: {exc}", file=sys.stderr)
        return 1
