"""
Query Module
"""
from .catalog import QUERY_CATALOG, get_query
from .exercises import run_query
from .recursive import running_sales_total, running_sales_total_window

__all__ = [
    "QUERY_CATALOG",
    "get_query",
    "run_query",
    "running_sales_total",
    "running_sales_total_window",
]
