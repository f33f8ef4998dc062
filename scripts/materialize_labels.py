#!/usr/bin/env python3
"""Materialize one or more label XML documents into the database.

Usage:
  python scripts/materialize_labels.py labels/*.xml \
      [--database-url sqlite+aiosqlite:///./labelstage.sqlite3] \
      [--flush-policy deferred|eager] [--concurrency 4] [--create-schema] \
      [--author-id 123456789 --author-name "Acme Pharma"]
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Ensure src is on the import path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker  # noqa: E402

from Labelstage.config import Settings  # noqa: E402
from Labelstage.db import create_engine_for, create_schema  # noqa: E402
from Labelstage.logging import redact_settings, setup_logging  # noqa: E402
from Labelstage.materializer import (  # noqa: E402
    DocumentMaterializer,
    MaterializationResult,
    OrganizationRef,
    OwnerContext,
)
from Labelstage.source import SourceError, load_source  # noqa: E402

log = structlog.get_logger()


def _parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Materialize label documents")
    ap.add_argument("paths", nargs="+", type=Path)
    ap.add_argument("--database-url", default=None)
    ap.add_argument("--flush-policy", choices=["deferred", "eager"], default=None)
    ap.add_argument("--concurrency", type=int, default=None)
    ap.add_argument("--create-schema", action="store_true")
    ap.add_argument("--author-id", default=None)
    ap.add_argument("--author-name", default=None)
    ap.add_argument("--log-level", default=None)
    return ap


async def _run(args: argparse.Namespace, settings: Settings) -> list[MaterializationResult]:
    author = (
        OrganizationRef(identifier=args.author_id, name=args.author_name)
        if args.author_id
        else None
    )
    # A file that does not parse fails on its own; the rest still run
    results: list[MaterializationResult | None] = []
    docs = []
    for path in args.paths:
        try:
            tree = load_source(path)
        except SourceError as exc:
            log.error("materializer.source.unreadable", path=str(path), error=str(exc))
            failed = MaterializationResult(flush_policy=settings.materializer_flush_policy)
            failed.fail(exc)
            failed.warn(f"{path.name}: not materialized")
            results.append(failed)
            continue
        docs.append((tree, OwnerContext(submission_file_name=path.name, author=author)))
        results.append(None)
    engine = create_engine_for(settings.database_url)
    try:
        if args.create_schema:
            await create_schema(engine)
        sm = async_sessionmaker(engine, expire_on_commit=False)
        materializer = DocumentMaterializer(sm, settings=settings)
        done = iter(await materializer.materialize_many(docs, concurrency=args.concurrency))
    finally:
        await engine.dispose()
    return [r if r is not None else next(done) for r in results]


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    overrides: dict[str, object] = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.flush_policy:
        overrides["materializer_flush_policy"] = args.flush_policy
    if args.log_level:
        overrides["logging_level"] = args.log_level.upper()
        overrides["logging_console"] = args.log_level.upper()
    settings = Settings(**overrides)
    setup_logging(settings)

    missing = [p for p in args.paths if not p.exists()]
    if missing:
        print(f"Error: source not found: {missing[0]}")
        return 2

    results = asyncio.run(_run(args, settings))

    summary = {
        "settings": {
            "database_url": redact_settings(settings)["database_url"],
            "flush_policy": settings.materializer_flush_policy,
        },
        "documents": [r.to_dict() for r in results],
    }
    print("=== Materialization Summary ===")
    print(json.dumps(summary, indent=2, default=str))
    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
