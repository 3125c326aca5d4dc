"""
Star Schema to Flattened Reporting Rows

Joins the fact to every dimension once, at load time, and stores the
result together with two precomputed fields:
- profit_margin: profit / total_sales, 0 when the sale total is 0
- monthly_rank: RANK() of total_sales within the sale's calendar month
"""

import polars as pl
import structlog

from src.transformation.star import StarFrames

logger = structlog.get_logger(__name__)

REPORTING_COLUMNS = [
    "sales_id",
    "customer_id", "customer_name", "location_name", "region", "country",
    "product_id", "product_name", "category_name",
    "sale_date", "sale_year", "sale_month",
    "quantity", "unit_price", "total_sales", "cost", "profit",
    "profit_margin", "monthly_rank",
]


def build_reporting(star: StarFrames) -> pl.DataFrame:
    """Flatten the star schema into sales_reporting_denorm rows"""
    rows = (
        star.fact_sales.join(
            star.dim_customer.select(["customer_key", "customer_id", "customer_name"]),
            on="customer_key",
            how="left",
        )
        .join(star.dim_location, on="location_key", how="left")
        .join(
            star.dim_product.select(["product_key", "product_id", "product_name", "category_name"]),
            on="product_key",
            how="left",
        )
        .join(
            star.dim_date.select([
                "date_key",
                pl.col("full_date").alias("sale_date"),
                pl.col("year").alias("sale_year"),
                pl.col("month").alias("sale_month"),
            ]),
            on="date_key",
            how="left",
        )
        .with_columns(
            pl.when(pl.col("total_sales") != 0)
            .then(pl.col("profit") / pl.col("total_sales"))
            .otherwise(0.0)
            .round(4)
            .alias("profit_margin"),
            # Ties share a rank and the next rank skips, like SQL RANK()
            pl.col("total_sales")
            .rank(method="min", descending=True)
            .over(["sale_year", "sale_month"])
            .cast(pl.Int64)
            .alias("monthly_rank"),
        )
        .select(REPORTING_COLUMNS)
        .sort("sales_id")
    )

    logger.info("Reporting rows built", rows=rows.height)
    return rows
