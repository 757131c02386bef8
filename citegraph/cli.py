"""Command-line utilities for the citation network engine."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from citegraph.api import CitationNetworkClient
from citegraph.config import CitegraphConfig
from citegraph.exceptions import CitegraphError
from citegraph.models import TraversalMode


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Utilities for the citation network engine")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate the citation network for a DOI")
    generate.add_argument("doi", help="Root DOI (e.g., 10.1038/nature12373)")
    generate.add_argument("--depth", type=int, default=None, help="Traversal depth")
    generate.add_argument(
        "--mode",
        choices=[mode.value for mode in TraversalMode],
        default=None,
        help="Traversal strategy (defaults to CITEGRAPH_TRAVERSAL_MODE)",
    )

    validate = subparsers.add_parser("validate", help="Check a DOI and look it up in PubMed")
    validate.add_argument("doi")

    paper = subparsers.add_parser("paper", help="Show the stored or fetched record for a PMID")
    paper.add_argument("pmid")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--prefix", default="", help="Route prefix, e.g. /api")

    migrate = subparsers.add_parser("migrate", help="Apply SQL migrations for the postgres store")
    migrate.add_argument("--dsn", help="PostgreSQL DSN", default=None)

    return parser


def _run_generate(args: argparse.Namespace) -> None:
    client = CitationNetworkClient()
    mode = TraversalMode(args.mode) if args.mode else None
    network = asyncio.run(client.generate_network(args.doi, args.depth, mode=mode))
    print(network.model_dump_json(by_alias=True, indent=2))


def _run_validate(args: argparse.Namespace) -> None:
    client = CitationNetworkClient()
    result = asyncio.run(client.validate_doi(args.doi))
    print(result.model_dump_json(by_alias=True, exclude_none=True))


def _run_paper(args: argparse.Namespace) -> None:
    client = CitationNetworkClient()
    paper = asyncio.run(client.get_paper(args.pmid))
    print(paper.model_dump_json(by_alias=True, indent=2))


def _run_serve(args: argparse.Namespace) -> None:
    import uvicorn

    from citegraph.web.app import create_app

    app = create_app(CitationNetworkClient(), prefix=args.prefix)
    uvicorn.run(app, host=args.host, port=args.port)


def _run_migrate(args: argparse.Namespace) -> None:
    from citegraph.storage.migrations import run_migrations

    dsn = args.dsn or CitegraphConfig().db_dsn
    applied = run_migrations(dsn=dsn)
    if applied:
        print("Applied migrations:", ", ".join(applied))
    else:
        print("No migrations to apply")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands: dict[str, Any] = {
        "generate": _run_generate,
        "validate": _run_validate,
        "paper": _run_paper,
        "serve": _run_serve,
        "migrate": _run_migrate,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.error("Unknown command")
        return 1

    try:
        handler(args)
    except CitegraphError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
