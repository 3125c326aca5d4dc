"""
High Value Customers View

Q8 stores the customer aggregate as a view so reports can select from it
like a table. The view holds no data of its own: every read re-aggregates
the base tables, so it never drifts from ``sales``.
"""

from typing import Optional

import structlog
from sqlalchemy import Select, column, func, select, table, text
from sqlalchemy.ext.asyncio import AsyncConnection

from src.config import get_settings
from src.database.models import CustomerInfo, MONEY, Sale

logger = structlog.get_logger(__name__)

HIGH_VALUE_VIEW = "high_value_customers"

# Selectable handle for querying the view
high_value_customers = table(
    HIGH_VALUE_VIEW,
    column("customer_id"),
    column("name"),
    column("total_sales", MONEY),
)


def high_value_customers_query(threshold: float) -> Select:
    """Customers whose summed sales exceed ``threshold``"""
    total = func.sum(Sale.total_sales)
    return (
        select(
            CustomerInfo.customer_id,
            CustomerInfo.name,
            total.label("total_sales"),
        )
        .join(Sale, Sale.customer_id == CustomerInfo.customer_id)
        .group_by(CustomerInfo.customer_id, CustomerInfo.name)
        .having(total > threshold)
    )


async def create_high_value_view(
    conn: AsyncConnection,
    threshold: Optional[float] = None,
) -> str:
    """
    Drop and recreate the ``high_value_customers`` view.

    The threshold is rendered as a literal because view bodies cannot hold
    bound parameters.

    Args:
        conn: Connection inside a transaction
        threshold: Minimum total sales, defaults to the configured value

    Returns:
        The CREATE VIEW statement that was executed
    """
    if threshold is None:
        threshold = get_settings().reporting.high_value_threshold

    body = high_value_customers_query(threshold).compile(
        dialect=conn.dialect,
        compile_kwargs={"literal_binds": True},
    )
    ddl = f"CREATE VIEW {HIGH_VALUE_VIEW} AS {body}"

    await drop_high_value_view(conn)
    await conn.execute(text(ddl))

    logger.info("View created", view=HIGH_VALUE_VIEW, threshold=threshold)
    return ddl


async def drop_high_value_view(conn: AsyncConnection) -> None:
    await conn.execute(text(f"DROP VIEW IF EXISTS {HIGH_VALUE_VIEW}"))


def select_high_value_customers() -> Select:
    """Q8: read the view, largest totals first"""
    v = high_value_customers
    return select(v.c.customer_id, v.c.name, v.c.total_sales).order_by(
        v.c.total_sales.desc(), v.c.customer_id
    )
