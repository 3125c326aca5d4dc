"""
Database Bootstrap

Creates everything the exercises need in one call: the schema variants,
the high value customers view, the customer sales routine and the
recommended indexes.
"""

from typing import Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from src.database.connection import create_schemas, drop_schemas
from src.database.indexes import apply_index_advice
from src.database.models import SchemaVariant
from src.database.routines import install_routines
from src.database.views import create_high_value_view, drop_high_value_view

logger = structlog.get_logger(__name__)


async def bootstrap_database(
    engine: AsyncEngine,
    variants: Optional[Iterable[SchemaVariant]] = None,
    high_value_threshold: Optional[float] = None,
    apply_indexes: bool = True,
) -> dict:
    """
    Create schemas and the objects layered on top of them.

    The view, routine and indexes depend on the raw schema and are only
    installed when it is among the requested variants.

    Returns:
        dict: What was installed
    """
    variants = list(variants) if variants is not None else list(SchemaVariant)
    await create_schemas(engine, variants)

    summary = {
        "variants": [SchemaVariant(v).value for v in variants],
        "view": None,
        "routine_installed": False,
        "indexes_created": [],
    }

    if SchemaVariant.RAW in [SchemaVariant(v) for v in variants]:
        async with engine.begin() as conn:
            await create_high_value_view(conn, high_value_threshold)
            summary["view"] = "high_value_customers"
            summary["routine_installed"] = await install_routines(conn)
            if apply_indexes:
                summary["indexes_created"] = await apply_index_advice(conn)

    logger.info("Database bootstrapped", **summary)
    return summary


async def teardown_database(engine: AsyncEngine) -> None:
    """Drop the view, then every schema table"""
    async with engine.begin() as conn:
        await drop_high_value_view(conn)
    await drop_schemas(engine)
