"""
Query Catalog

Maps exercise ids to their statement builders so callers (the CLI, the
workflow) can select queries by name. Q9 is a stored routine and is run
through :func:`src.database.routines.call_customer_sales` instead.
"""

import inspect
from typing import Callable, Dict

from sqlalchemy import Select

from src.database.views import select_high_value_customers
from src.queries.exercises import (
    customer_product_diversity,
    customers_above_average,
    customers_in_location,
    product_sales_summary,
    products_without_sales,
    rank_products_by_sales,
    sales_with_details,
    top_customers,
    total_sales_per_customer,
)
from src.queries.recursive import running_sales_total

QUERY_CATALOG: Dict[str, Callable[..., Select]] = {
    "Q1": customers_in_location,
    "Q2": sales_with_details,
    "Q3": total_sales_per_customer,
    "Q4": product_sales_summary,
    "Q5": top_customers,
    "Q6": customers_above_average,
    "Q7": rank_products_by_sales,
    "Q8": select_high_value_customers,
    "Q10": running_sales_total,
    "Q11": products_without_sales,
    "Q12": customer_product_diversity,
}


def get_query(query_id: str, **kwargs) -> Select:
    """
    Build the statement for an exercise id such as ``"Q5"``.

    Raises:
        ValueError: If the id is unknown or an option does not apply to it
    """
    key = query_id.upper()
    if key not in QUERY_CATALOG:
        raise ValueError(f"Unknown query '{query_id}'. Available: {', '.join(QUERY_CATALOG)}")

    builder = QUERY_CATALOG[key]
    accepted = inspect.signature(builder).parameters
    unsupported = sorted(set(kwargs) - set(accepted))
    if unsupported:
        options = ", ".join(accepted) or "none"
        raise ValueError(f"{key} does not take {', '.join(unsupported)} (options: {options})")
    return builder(**kwargs)
