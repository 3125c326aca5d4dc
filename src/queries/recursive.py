"""
Running Sales Total

Q10 walks ``sales`` in ``sales_id`` order with a recursive CTE. Each step
jumps to the smallest id greater than the current one, so gaps in the id
sequence are skipped rather than ending the walk. ``sales_id`` is the primary
key, so duplicates cannot occur.

A window-function rendition is provided to cross-check the recursion.
"""

from sqlalchemy import Select, func, select

from src.database.models import Sale


def running_sales_total() -> Select:
    """
    Q10: running total of ``total_sales`` in ``sales_id`` order.

    Base case is the row with the smallest id; the walk stops when no larger
    id exists. An empty table yields no rows.
    """
    sales = Sale.__table__

    first_id = select(func.min(sales.c.sales_id)).scalar_subquery()
    running = (
        select(
            sales.c.sales_id,
            sales.c.total_sales,
            sales.c.total_sales.label("running_total"),
        )
        .where(sales.c.sales_id == first_id)
        .cte("running_totals", recursive=True)
    )

    following = sales.alias("following")
    later = sales.alias("later")
    next_id = (
        select(func.min(later.c.sales_id))
        .where(later.c.sales_id > running.c.sales_id)
        .correlate(running)
        .scalar_subquery()
    )

    running = running.union_all(
        select(
            following.c.sales_id,
            following.c.total_sales,
            (running.c.running_total + following.c.total_sales).label("running_total"),
        )
        .select_from(running)
        .join(following, following.c.sales_id == next_id)
    )

    return select(
        running.c.sales_id,
        running.c.total_sales,
        running.c.running_total,
    ).order_by(running.c.sales_id)


def running_sales_total_window() -> Select:
    """Same result as :func:`running_sales_total` using SUM() OVER"""
    return select(
        Sale.sales_id,
        Sale.total_sales,
        func.sum(Sale.total_sales)
        .over(order_by=Sale.sales_id, rows=(None, 0))
        .label("running_total"),
    ).order_by(Sale.sales_id)
