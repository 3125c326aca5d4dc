"""
Analytical Reports over the Star Schema and the Reporting Table

The star builders join ``fact_sales`` to its dimensions; the ``denorm``
builders answer the same questions from ``sales_reporting_denorm`` alone.
Both produce identical column sets so results can be compared directly.
"""

from sqlalchemy import Select, desc, func, select

from src.database.models import (
    DimCustomer,
    DimDate,
    DimLocation,
    DimProduct,
    FactSales,
    SalesReportingDenorm,
)


def star_sales_by_region_month() -> Select:
    """Revenue and units per region and calendar month from the star schema"""
    return (
        select(
            DimLocation.region,
            DimDate.year,
            DimDate.month,
            func.sum(FactSales.total_sales).label("revenue"),
            func.sum(FactSales.quantity).label("units"),
        )
        .join(DimLocation, FactSales.location_key == DimLocation.location_key)
        .join(DimDate, FactSales.date_key == DimDate.date_key)
        .group_by(DimLocation.region, DimDate.year, DimDate.month)
        .order_by(DimLocation.region, DimDate.year, DimDate.month)
    )


def denorm_sales_by_region_month() -> Select:
    """Revenue and units per region and calendar month from the reporting table"""
    r = SalesReportingDenorm
    return (
        select(
            r.region,
            r.sale_year.label("year"),
            r.sale_month.label("month"),
            func.sum(r.total_sales).label("revenue"),
            func.sum(r.quantity).label("units"),
        )
        .group_by(r.region, r.sale_year, r.sale_month)
        .order_by(r.region, r.sale_year, r.sale_month)
    )


def star_profit_by_category() -> Select:
    """Revenue, cost and profit per product category from the star schema"""
    return (
        select(
            DimProduct.category_name,
            func.sum(FactSales.total_sales).label("revenue"),
            func.sum(FactSales.cost).label("cost"),
            func.sum(FactSales.profit).label("profit"),
        )
        .join(DimProduct, FactSales.product_key == DimProduct.product_key)
        .group_by(DimProduct.category_name)
        .order_by(desc("profit"), DimProduct.category_name)
    )


def denorm_profit_by_category() -> Select:
    """Revenue, cost and profit per product category from the reporting table"""
    r = SalesReportingDenorm
    return (
        select(
            r.category_name,
            func.sum(r.total_sales).label("revenue"),
            func.sum(r.cost).label("cost"),
            func.sum(r.profit).label("profit"),
        )
        .group_by(r.category_name)
        .order_by(desc("profit"), r.category_name)
    )


def star_customer_revenue() -> Select:
    """Revenue per customer from the star schema, keyed by natural id"""
    return (
        select(
            DimCustomer.customer_id,
            DimCustomer.customer_name,
            func.sum(FactSales.total_sales).label("total_sales"),
        )
        .join(DimCustomer, FactSales.customer_key == DimCustomer.customer_key)
        .group_by(DimCustomer.customer_id, DimCustomer.customer_name)
        .order_by(desc("total_sales"), DimCustomer.customer_id)
    )


def denorm_monthly_leaders(year: int, month: int) -> Select:
    """Sales ranked first in the given month, read from the precomputed rank"""
    r = SalesReportingDenorm
    return (
        select(
            r.sales_id,
            r.customer_name,
            r.product_name,
            r.total_sales,
            r.monthly_rank,
        )
        .where(r.sale_year == year, r.sale_month == month, r.monthly_rank == 1)
        .order_by(r.sales_id)
    )
