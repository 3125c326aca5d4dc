"""
Indexing Advice

The exercise queries filter on ``customer_info.location`` and join or group
``sales`` by its foreign keys. None of those columns is indexed by the raw
schema. ``RECOMMENDED_INDEXES`` lists the secondary indexes that serve them;
``apply_index_advice`` creates them and ``explain`` shows whether the
planner picks them up.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import Index, MetaData, Select, inspect
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from src.database.models import Base

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IndexAdvice:
    """One recommended secondary index"""
    name: str
    table: str
    columns: Tuple[str, ...]
    reason: str


RECOMMENDED_INDEXES: List[IndexAdvice] = [
    IndexAdvice(
        name="ix_customer_info_location",
        table="customer_info",
        columns=("location",),
        reason="Equality filter on location (Q1)",
    ),
    IndexAdvice(
        name="ix_sales_customer_id",
        table="sales",
        columns=("customer_id",),
        reason="Join and group by customer (Q3, Q5, Q6, Q8, Q9, Q12)",
    ),
    IndexAdvice(
        name="ix_sales_product_id",
        table="sales",
        columns=("product_id",),
        reason="Join and group by product, anti-join for unsold products (Q4, Q7, Q11)",
    ),
    IndexAdvice(
        name="ix_customers_location_id",
        table="customers",
        columns=("location_id",),
        reason="Customer to location join in the 3NF schema",
    ),
    IndexAdvice(
        name="ix_products_3nf_category_id",
        table="products_3nf",
        columns=("category_id",),
        reason="Product to category join in the 3NF schema",
    ),
    IndexAdvice(
        name="ix_sales_3nf_customer_product",
        table="sales_3nf",
        columns=("customer_id", "product_id"),
        reason="Sales lookups by customer, optionally narrowed by product",
    ),
]


def _create_indexes(sync_conn, advice: Sequence[IndexAdvice]) -> List[str]:
    existing_tables = set(inspect(sync_conn).get_table_names())
    # Indexes are built on a scratch copy so they never become part of the
    # declared models
    scratch = MetaData()
    created = []

    for item in advice:
        if item.table not in existing_tables:
            logger.warning("Skipping index, table missing", index=item.name, table=item.table)
            continue

        existing = {ix["name"] for ix in inspect(sync_conn).get_indexes(item.table)}
        if item.name in existing:
            continue

        table = scratch.tables.get(item.table)
        if table is None:
            table = Base.metadata.tables[item.table].to_metadata(scratch)
        index = Index(item.name, *(table.c[col] for col in item.columns))
        index.create(sync_conn)
        created.append(item.name)

    return created


async def apply_index_advice(
    conn: AsyncConnection,
    advice: Optional[Sequence[IndexAdvice]] = None,
) -> List[str]:
    """
    Create the recommended indexes that do not exist yet.

    Args:
        conn: Connection inside a transaction
        advice: Indexes to create, defaults to RECOMMENDED_INDEXES

    Returns:
        Names of the indexes created by this call
    """
    created = await conn.run_sync(_create_indexes, list(advice or RECOMMENDED_INDEXES))
    logger.info("Index advice applied", created=created)
    return created


async def explain(session: AsyncSession, stmt: Select) -> List[Dict[str, Any]]:
    """
    Return the backend's query plan for a statement.

    SQLite uses EXPLAIN QUERY PLAN; other backends use plain EXPLAIN.
    Bound values are inlined so the plan reflects the actual literals.
    """
    conn = await session.connection()
    dialect = conn.dialect
    compiled = stmt.compile(dialect=dialect, compile_kwargs={"literal_binds": True})
    prefix = "EXPLAIN QUERY PLAN" if dialect.name == "sqlite" else "EXPLAIN"

    result = await conn.exec_driver_sql(f"{prefix} {compiled}")
    return [dict(row._mapping) for row in result]
