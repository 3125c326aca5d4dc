"""
Command Line Entry Point

Usage:
    sales-portfolio init
    sales-portfolio seed --source generated --seed 7
    sales-portfolio migrate
    sales-portfolio query Q5 --limit 3
    sales-portfolio call 1
    sales-portfolio explain Q1
    sales-portfolio audit
    sales-portfolio health

Query results are written to stdout as one JSON object per line; logs go
to stderr.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog

from src.config import get_settings
from src.config.logging import configure_logging
from src.data.generators import DatasetSource, resolve_dataset
from src.database.bootstrap import bootstrap_database, teardown_database
from src.database.connection import (
    check_database_health,
    close_database,
    get_db,
    get_engine,
    init_database,
)
from src.database.indexes import explain
from src.database.models import SchemaVariant
from src.database.routines import call_customer_sales
from src.ingestion.loader import load_raw_dataset
from src.queries.catalog import QUERY_CATALOG, get_query
from src.queries.exercises import run_query
from src.transformation.transformers import SchemaMigrator

logger = structlog.get_logger(__name__)


def _emit(rows: List[dict]) -> None:
    for row in rows:
        sys.stdout.write(json.dumps(row, default=str) + "\n")
    sys.stdout.flush()


def _query_kwargs(args: argparse.Namespace) -> dict:
    kwargs = {}
    if args.location is not None:
        kwargs["location"] = args.location
    if args.limit is not None:
        kwargs["limit"] = args.limit
    if args.min_orders is not None:
        kwargs["min_orders"] = args.min_orders
    return kwargs


async def cmd_init(args: argparse.Namespace) -> int:
    if args.drop:
        await teardown_database(get_engine())
    variants = [SchemaVariant(v) for v in args.variant] if args.variant else None
    summary = await bootstrap_database(
        get_engine(),
        variants=variants,
        high_value_threshold=args.threshold,
        apply_indexes=not args.no_indexes,
    )
    _emit([summary])
    return 0


async def cmd_seed(args: argparse.Namespace) -> int:
    dataset = resolve_dataset(args.source, data_dir=args.data_dir, seed=args.seed)
    async with get_db() as db:
        results = await load_raw_dataset(db, dataset, replace=args.replace)
    _emit([r.model_dump(mode="json") for r in results])
    return 0


async def cmd_migrate(args: argparse.Namespace) -> int:
    dataset = resolve_dataset(args.source, data_dir=args.data_dir, seed=args.seed)
    async with get_db() as db:
        results = await SchemaMigrator(db).run_all(
            sale_timestamps=dataset.sale_timestamps,
            product_categories=dataset.product_categories,
            locations=dataset.locations,
        )
    _emit([r.model_dump(mode="json") for r in results])
    return 0


async def cmd_query(args: argparse.Namespace) -> int:
    stmt = get_query(args.query_id, **_query_kwargs(args))
    async with get_db() as db:
        rows = await run_query(db, stmt)
    _emit(rows)
    return 0


async def cmd_call(args: argparse.Namespace) -> int:
    async with get_db() as db:
        rows = await call_customer_sales(db, args.customer_id)
    _emit(rows)
    return 0


async def cmd_explain(args: argparse.Namespace) -> int:
    stmt = get_query(args.query_id, **_query_kwargs(args))
    async with get_db() as db:
        plan = await explain(db, stmt)
    _emit(plan)
    return 0


async def cmd_audit(args: argparse.Namespace) -> int:
    async with get_db() as db:
        result = await SchemaMigrator(db).audit_reporting_integrity()
    _emit([
        {
            "check": check.name,
            "passed": check.passed,
            "severity": check.severity.value,
            "message": check.message,
        }
        for check in result.checks
    ])
    return 0 if result.failed_checks == 0 else 1


async def cmd_health(args: argparse.Namespace) -> int:
    status = await check_database_health()
    _emit([status])
    return 0 if status["status"] == "healthy" else 1


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="sales-portfolio",
        description="Sales schema design portfolio",
    )
    parser.add_argument("--database-url", help="SQLAlchemy async URL (default: from settings)")
    parser.add_argument("--log-level", help=f"Log level (default: {settings.monitoring.log_level})")
    parser.add_argument("--log-format", choices=["console", "json"], help="Log renderer")

    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create schemas, view, routine and indexes")
    init.add_argument(
        "--variant",
        action="append",
        choices=[v.value for v in SchemaVariant],
        help="Schema variant to create (repeatable, default: all)",
    )
    init.add_argument("--threshold", type=float, help="High value customer threshold")
    init.add_argument("--no-indexes", action="store_true", help="Skip index advice")
    init.add_argument("--drop", action="store_true", help="Drop everything first")
    init.set_defaults(handler=cmd_init)

    for name, handler, help_text in (
        ("seed", cmd_seed, "Load a dataset into the raw tables"),
        ("migrate", cmd_migrate, "Migrate raw -> 3NF -> star -> reporting"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument(
            "--source",
            choices=[s.value for s in DatasetSource],
            default=DatasetSource.REFERENCE.value,
            help="Dataset source (default: reference); migrate needs the one seed loaded",
        )
        p.add_argument("--data-dir", help="CSV directory for --source csv")
        p.add_argument("--seed", type=int, help="Random seed for --source generated")
        if name == "seed":
            p.add_argument("--replace", action="store_true", help="Empty the raw tables first")
        p.set_defaults(handler=handler)

    for name, handler, help_text in (
        ("query", cmd_query, "Run an exercise query"),
        ("explain", cmd_explain, "Show the query plan of an exercise query"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("query_id", help=f"One of {', '.join(QUERY_CATALOG)}")
        p.add_argument("--location", help="Location for Q1")
        p.add_argument("--limit", type=int, help="Row limit for Q5")
        p.add_argument("--min-orders", type=int, help="Minimum order count for Q4")
        p.set_defaults(handler=handler)

    call = sub.add_parser("call", help="Run the customer sales routine (Q9)")
    call.add_argument("customer_id", type=int)
    call.set_defaults(handler=cmd_call)

    audit = sub.add_parser("audit", help="Check the reporting table for orphans")
    audit.set_defaults(handler=cmd_audit)

    health = sub.add_parser("health", help="Check database connectivity")
    health.set_defaults(handler=cmd_health)

    return parser


async def _run(args: argparse.Namespace) -> int:
    await init_database(args.database_url)
    try:
        return await args.handler(args)
    finally:
        await close_database()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_format)

    try:
        return asyncio.run(_run(args))
    except ValueError as e:
        logger.error("Invalid request", error=str(e))
        return 2
    except Exception as e:
        logger.error("Command failed", command=args.command, error=str(e), error_type=type(e).__name__)
        return 1


if __name__ == "__main__":
    sys.exit(main())
