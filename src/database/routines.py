"""
Stored Routines

Q9 wraps "sales of one customer" in a routine that takes the customer id as
an IN parameter. Stored routine support differs per backend:

- MySQL: ``CREATE PROCEDURE`` invoked with ``CALL``
- PostgreSQL: a set-returning ``FUNCTION`` selected from
- SQLite: no stored routines; the equivalent parameterized SELECT runs instead
"""

from typing import Any, Dict, List

import structlog
from sqlalchemy import Select, select, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from src.database.models import Product, Sale

logger = structlog.get_logger(__name__)

CUSTOMER_SALES_ROUTINE = "get_customer_sales"

_ROUTINE_BODY = """
    SELECT s.sales_id, p.product_name, s.quantity, s.total_sales
    FROM sales s
    JOIN products p ON s.product_id = p.product_id
    WHERE s.customer_id = p_customer_id
    ORDER BY s.sales_id
"""

MYSQL_PROCEDURE_DDL = f"""
CREATE PROCEDURE {CUSTOMER_SALES_ROUTINE}(IN p_customer_id INT)
BEGIN
{_ROUTINE_BODY};
END
"""

POSTGRES_FUNCTION_DDL = f"""
CREATE OR REPLACE FUNCTION {CUSTOMER_SALES_ROUTINE}(p_customer_id INTEGER)
RETURNS TABLE (sales_id INTEGER, product_name VARCHAR, quantity INTEGER, total_sales NUMERIC)
LANGUAGE sql STABLE
AS $$
{_ROUTINE_BODY}
$$
"""


def customer_sales_query(customer_id: int) -> Select:
    """The SELECT the routine wraps, for backends without stored routines"""
    return (
        select(Sale.sales_id, Product.product_name, Sale.quantity, Sale.total_sales)
        .join(Product, Sale.product_id == Product.product_id)
        .where(Sale.customer_id == customer_id)
        .order_by(Sale.sales_id)
    )


async def install_routines(conn: AsyncConnection) -> bool:
    """
    Create the customer sales routine on backends that support it.

    Returns:
        True if a routine was installed, False if the backend has none
    """
    dialect = conn.dialect.name

    if dialect == "mysql":
        await conn.execute(text(f"DROP PROCEDURE IF EXISTS {CUSTOMER_SALES_ROUTINE}"))
        await conn.execute(text(MYSQL_PROCEDURE_DDL))
    elif dialect == "postgresql":
        await conn.execute(text(POSTGRES_FUNCTION_DDL))
    else:
        logger.info("Stored routines not supported, using inline query", dialect=dialect)
        return False

    logger.info("Routine installed", routine=CUSTOMER_SALES_ROUTINE, dialect=dialect)
    return True


async def call_customer_sales(session: AsyncSession, customer_id: int) -> List[Dict[str, Any]]:
    """
    Q9: sales of one customer with product names.

    Args:
        session: Active database session
        customer_id: Customer whose sales are returned

    Returns:
        Rows with sales_id, product_name, quantity and total_sales
    """
    dialect = session.bind.dialect.name
    params = {"customer_id": customer_id}

    if dialect == "mysql":
        result = await session.execute(text(f"CALL {CUSTOMER_SALES_ROUTINE}(:customer_id)"), params)
    elif dialect == "postgresql":
        result = await session.execute(text(f"SELECT * FROM {CUSTOMER_SALES_ROUTINE}(:customer_id)"), params)
    else:
        result = await session.execute(customer_sales_query(customer_id))

    return [dict(row._mapping) for row in result]
