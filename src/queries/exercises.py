"""
Exercise Queries over the Raw Schema

Each builder returns a SQLAlchemy Core ``Select`` against ``customer_info``,
``products`` and ``sales``. Builders are pure: they never touch a connection,
so the same statement can be executed, compiled for another dialect or
passed to ``explain``.
"""

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import Select, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.database.models import CustomerInfo, Product, Sale

logger = structlog.get_logger(__name__)


async def run_query(session: AsyncSession, stmt: Select) -> List[Dict[str, Any]]:
    """
    Execute a statement and return rows as dictionaries.

    Args:
        session: Active database session
        stmt: Statement to execute

    Returns:
        List of row mappings keyed by column label
    """
    result = await session.execute(stmt)
    rows = [dict(row._mapping) for row in result]
    logger.debug("Query executed", rows=len(rows))
    return rows


def _customer_totals() -> Select:
    return (
        select(
            CustomerInfo.customer_id,
            CustomerInfo.name,
            func.sum(Sale.total_sales).label("total_sales"),
        )
        .join(Sale, Sale.customer_id == CustomerInfo.customer_id)
        .group_by(CustomerInfo.customer_id, CustomerInfo.name)
    )


def customers_in_location(location: Optional[str] = None) -> Select:
    """Q1: customers whose location equals ``location`` exactly"""
    location = location or get_settings().reporting.target_location
    return (
        select(CustomerInfo.customer_id, CustomerInfo.name, CustomerInfo.location)
        .where(CustomerInfo.location == location)
        .order_by(CustomerInfo.customer_id)
    )


def sales_with_details() -> Select:
    """Q2: every sale with the buyer's name and the product's name and price"""
    return (
        select(
            Sale.sales_id,
            CustomerInfo.name.label("customer_name"),
            Product.product_name,
            Product.price,
            Sale.quantity,
            Sale.total_sales,
        )
        .join(CustomerInfo, Sale.customer_id == CustomerInfo.customer_id)
        .join(Product, Sale.product_id == Product.product_id)
        .order_by(Sale.sales_id)
    )


def total_sales_per_customer() -> Select:
    """Q3: summed sales per customer, largest first"""
    totals = _customer_totals()
    return totals.order_by(desc("total_sales"), CustomerInfo.customer_id)


def product_sales_summary(min_orders: int = 1) -> Select:
    """Q4: order count, units and revenue per product, keeping products with at least ``min_orders`` sales"""
    order_count = func.count(Sale.sales_id)
    return (
        select(
            Product.product_id,
            Product.product_name,
            order_count.label("order_count"),
            func.sum(Sale.quantity).label("units_sold"),
            func.sum(Sale.total_sales).label("revenue"),
        )
        .join(Sale, Sale.product_id == Product.product_id)
        .group_by(Product.product_id, Product.product_name)
        .having(order_count >= min_orders)
        .order_by(desc("revenue"), Product.product_id)
    )


def top_customers(limit: Optional[int] = None) -> Select:
    """Q5: the ``limit`` customers with the highest summed sales"""
    limit = limit if limit is not None else get_settings().reporting.top_n
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    return total_sales_per_customer().limit(limit)


def customers_above_average() -> Select:
    """
    Q6: customers whose total is strictly above the mean customer total.

    The mean is taken over per-customer totals, not over individual sales.
    """
    totals = _customer_totals().cte("customer_totals")
    average = select(func.avg(totals.c.total_sales)).scalar_subquery()
    return (
        select(totals.c.customer_id, totals.c.name, totals.c.total_sales)
        .where(totals.c.total_sales > average)
        .order_by(desc(totals.c.total_sales), totals.c.customer_id)
    )


def rank_products_by_sales() -> Select:
    """
    Q7: rank products by summed sales.

    RANK() gives ties the same rank and skips the following positions.
    The ``rank`` label is a reserved word in several dialects; the compiler
    quotes it.
    """
    revenue = func.sum(Sale.total_sales)
    return (
        select(
            Product.product_id,
            Product.product_name,
            revenue.label("total_sales"),
            func.rank().over(order_by=revenue.desc()).label("rank"),
        )
        .join(Sale, Sale.product_id == Product.product_id)
        .group_by(Product.product_id, Product.product_name)
        .order_by(desc("total_sales"), Product.product_id)
    )


def products_without_sales() -> Select:
    """Q11: products that never appear in ``sales``"""
    return (
        select(Product.product_id, Product.product_name, Product.price)
        .outerjoin(Sale, Sale.product_id == Product.product_id)
        .where(Sale.sales_id.is_(None))
        .order_by(Product.product_id)
    )


def customer_product_diversity() -> Select:
    """Q12: distinct products bought and average ticket per customer"""
    distinct_products = func.count(Sale.product_id.distinct())
    return (
        select(
            CustomerInfo.customer_id,
            CustomerInfo.name,
            distinct_products.label("distinct_products"),
            func.count(Sale.sales_id).label("order_count"),
            func.avg(Sale.total_sales).label("avg_ticket"),
        )
        .join(Sale, Sale.customer_id == CustomerInfo.customer_id)
        .group_by(CustomerInfo.customer_id, CustomerInfo.name)
        .order_by(desc("distinct_products"), CustomerInfo.customer_id)
    )
