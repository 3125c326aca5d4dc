"""
Table Loader

Moves polars DataFrames in and out of the declared tables:
- chunked bulk inserts through SQLAlchemy Core
- typed reads that return an empty frame with the right schema when a
  table has no rows
"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

import polars as pl
import structlog
from pydantic import BaseModel
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Numeric, delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.data.generators import RawDataset
from src.database.models import Base, CustomerInfo, Product, Sale

logger = structlog.get_logger(__name__)


class LoadResult(BaseModel):
    """Result of loading one table"""
    table: str
    rows_loaded: int = 0
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None


def polars_schema(model: Type[Base]) -> Dict[str, Any]:
    """Polars dtype for every column of a model's table"""
    schema = {}
    for col in model.__table__.columns:
        if isinstance(col.type, Boolean):
            dtype = pl.Boolean
        elif isinstance(col.type, Integer):
            dtype = pl.Int64
        elif isinstance(col.type, (Numeric, Float)):
            dtype = pl.Float64
        elif isinstance(col.type, DateTime):
            dtype = pl.Datetime("us")
        elif isinstance(col.type, Date):
            dtype = pl.Date
        else:
            dtype = pl.Utf8
        schema[col.name] = dtype
    return schema


async def load_frame(
    session: AsyncSession,
    model: Type[Base],
    df: pl.DataFrame,
    batch_size: Optional[int] = None,
    replace: bool = False,
) -> LoadResult:
    """
    Insert a DataFrame into a model's table in chunks.

    Only columns that exist on the table are inserted. Constraint violations
    propagate as ``IntegrityError``.

    Args:
        session: Active database session
        model: Target ORM model
        df: Rows to insert
        batch_size: Rows per INSERT, defaults to the configured batch size
        replace: Delete existing rows first
    """
    started_at = datetime.utcnow()
    start = time.perf_counter()
    batch_size = batch_size or get_settings().reporting.batch_size
    table = model.__table__

    if replace:
        await session.execute(delete(table))

    columns = [c for c in df.columns if c in table.c]
    records: List[Dict[str, Any]] = df.select(columns).to_dicts() if columns else []

    for i in range(0, len(records), batch_size):
        chunk = records[i:i + batch_size]
        await session.execute(insert(table), chunk)

    result = LoadResult(
        table=table.name,
        rows_loaded=len(records),
        load_duration_seconds=round(time.perf_counter() - start, 4),
        started_at=started_at,
        completed_at=datetime.utcnow(),
    )
    logger.info(f"Inserted {len(records)} records into {table.name}")
    return result


async def fetch_frame(session: AsyncSession, model: Type[Base]) -> pl.DataFrame:
    """Read a whole table into a DataFrame ordered by primary key"""
    table = model.__table__
    stmt = select(table).order_by(*table.primary_key.columns)
    result = await session.execute(stmt)
    rows = [dict(row._mapping) for row in result]
    return pl.DataFrame(rows, schema=polars_schema(model), strict=False)


async def load_raw_dataset(
    session: AsyncSession,
    dataset: RawDataset,
    replace: bool = False,
) -> List[LoadResult]:
    """
    Load customers, products and sales into the raw schema.

    With ``replace`` the tables are emptied child-first before loading.
    """
    if replace:
        for model in (Sale, Product, CustomerInfo):
            await session.execute(delete(model.__table__))

    results = [
        await load_frame(session, CustomerInfo, dataset.customers),
        await load_frame(session, Product, dataset.products),
        await load_frame(session, Sale, dataset.sales),
    ]
    await session.flush()

    logger.info(
        "Raw dataset loaded",
        customers=results[0].rows_loaded,
        products=results[1].rows_loaded,
        sales=results[2].rows_loaded,
    )
    return results
