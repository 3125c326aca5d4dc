"""
Third Normal Form to Star Schema

Builds the four dimensions and the sales fact from 3NF frames. Surrogate
keys are dense integers assigned in natural-key order, so rebuilding from
the same source yields the same keys.
"""

from dataclasses import dataclass
from typing import Dict

import polars as pl
import structlog

from src.transformation.normalize import NormalizedFrames, UNKNOWN

logger = structlog.get_logger(__name__)


@dataclass
class StarFrames:
    """DataFrames matching the star schema tables"""
    dim_customer: pl.DataFrame
    dim_product: pl.DataFrame
    dim_location: pl.DataFrame
    dim_date: pl.DataFrame
    fact_sales: pl.DataFrame

    @property
    def row_counts(self) -> Dict[str, int]:
        return {
            "dim_customer": self.dim_customer.height,
            "dim_product": self.dim_product.height,
            "dim_location": self.dim_location.height,
            "dim_date": self.dim_date.height,
            "fact_sales": self.fact_sales.height,
        }


def _with_surrogate_key(df: pl.DataFrame, key: str, order_by: str) -> pl.DataFrame:
    df = df.sort(order_by)
    return df.with_columns(pl.int_range(1, df.height + 1, dtype=pl.Int64).alias(key))


def build_dim_location(frames: NormalizedFrames) -> pl.DataFrame:
    """Location dimension, with an Unknown member when a customer has no location"""
    locations = frames.locations.select(["location_name", "region", "country"])

    needs_unknown = frames.customers["location_id"].null_count() > 0
    if needs_unknown and UNKNOWN not in locations["location_name"].to_list():
        locations = pl.concat([
            locations,
            pl.DataFrame(
                {"location_name": [UNKNOWN], "region": [UNKNOWN], "country": [UNKNOWN]},
                schema=locations.schema,
            ),
        ])

    return _with_surrogate_key(locations, "location_key", "location_name").select(
        ["location_key", "location_name", "region", "country"]
    )


def build_dim_customer(frames: NormalizedFrames) -> pl.DataFrame:
    """Customer dimension with location attributes copied in"""
    customers = frames.customers.join(
        frames.locations, on="location_id", how="left"
    ).with_columns(
        pl.col("location_name").fill_null(UNKNOWN),
        pl.col("region").fill_null(UNKNOWN),
        pl.col("country").fill_null(UNKNOWN),
    )
    return _with_surrogate_key(customers, "customer_key", "customer_id").select(
        ["customer_key", "customer_id", "customer_name", "location_name", "region", "country"]
    )


def build_dim_product(frames: NormalizedFrames) -> pl.DataFrame:
    """Product dimension with the category name folded in"""
    products = frames.products.join(
        frames.product_categories, on="category_id", how="left"
    ).with_columns(
        pl.col("price").alias("unit_price"),
        pl.col("cost_price").fill_null(0.0).alias("unit_cost"),
    )
    return _with_surrogate_key(products, "product_key", "product_id").select(
        ["product_key", "product_id", "product_name", "category_name", "unit_price", "unit_cost"]
    )


def build_dim_date(frames: NormalizedFrames) -> pl.DataFrame:
    """One row per calendar day that has at least one sale"""
    dates = (
        frames.sales.select(pl.col("sale_timestamp").dt.date().alias("full_date"))
        .unique()
        .sort("full_date")
    )
    # polars weekday is 1=Monday .. 7=Sunday
    return dates.with_columns(
        (pl.col("full_date").dt.strftime("%Y%m%d").cast(pl.Int64)).alias("date_key"),
        pl.col("full_date").dt.day().cast(pl.Int64).alias("day_of_month"),
        (pl.col("full_date").dt.weekday() - 1).cast(pl.Int64).alias("day_of_week"),
        pl.col("full_date").dt.month().cast(pl.Int64).alias("month"),
        pl.col("full_date").dt.strftime("%B").alias("month_name"),
        pl.col("full_date").dt.quarter().cast(pl.Int64).alias("quarter"),
        pl.col("full_date").dt.year().cast(pl.Int64).alias("year"),
        (pl.col("full_date").dt.weekday() >= 6).alias("is_weekend"),
    ).select([
        "date_key", "full_date", "day_of_month", "day_of_week",
        "month", "month_name", "quarter", "year", "is_weekend",
    ])


def build_star(frames: NormalizedFrames) -> StarFrames:
    """
    Build dimensions and the sales fact.

    Measures:
        cost = quantity * unit_cost
        profit = total_sales - cost
    """
    dim_location = build_dim_location(frames)
    dim_customer = build_dim_customer(frames)
    dim_product = build_dim_product(frames)
    dim_date = build_dim_date(frames)

    fact = (
        frames.sales.join(
            dim_customer.select(["customer_id", "customer_key", "location_name"]),
            on="customer_id",
            how="left",
        )
        .join(dim_location.select(["location_name", "location_key"]), on="location_name", how="left")
        .join(dim_product.select(["product_id", "product_key", "unit_cost"]), on="product_id", how="left")
        .with_columns(
            pl.col("sale_timestamp").dt.strftime("%Y%m%d").cast(pl.Int64).alias("date_key"),
            (pl.col("quantity") * pl.col("unit_cost")).round(2).alias("cost"),
        )
        .with_columns(
            (pl.col("total_sales") - pl.col("cost")).round(2).alias("profit"),
        )
    )
    fact = _with_surrogate_key(fact, "sales_key", "sales_id").select([
        "sales_key", "sales_id", "customer_key", "product_key", "location_key", "date_key",
        "quantity", "unit_price", "total_sales", "cost", "profit",
    ])

    star = StarFrames(
        dim_customer=dim_customer,
        dim_product=dim_product,
        dim_location=dim_location,
        dim_date=dim_date,
        fact_sales=fact,
    )
    logger.info("Star schema built", **star.row_counts)
    return star
