"""
Raw to Third Normal Form

Splits the raw operational tables into the 3NF design:
- inline location text becomes a ``locations`` row referenced by id
- the product owner reference is dropped and replaced by a category
- sales gain an explicit unit price and timestamp
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple

import polars as pl
import structlog

from src.config import get_settings

logger = structlog.get_logger(__name__)

UNKNOWN = "Unknown"
UNCATEGORIZED = "Uncategorized"


@dataclass
class NormalizedFrames:
    """DataFrames matching the 3NF tables"""
    locations: pl.DataFrame
    customers: pl.DataFrame
    product_categories: pl.DataFrame
    products: pl.DataFrame
    sales: pl.DataFrame

    @property
    def row_counts(self) -> Dict[str, int]:
        return {
            "locations": self.locations.height,
            "customers": self.customers.height,
            "product_categories": self.product_categories.height,
            "products_3nf": self.products.height,
            "sales_3nf": self.sales.height,
        }


def _build_locations(
    customers: pl.DataFrame,
    lookup: Mapping[str, Tuple[str, str]],
) -> pl.DataFrame:
    names = (
        customers.select(pl.col("location"))
        .drop_nulls()
        .filter(pl.col("location") != "")
        .unique()
        .sort("location")["location"]
        .to_list()
    )
    return pl.DataFrame({
        "location_id": list(range(1, len(names) + 1)),
        "location_name": names,
        "region": [lookup.get(name, (UNKNOWN, UNKNOWN))[0] for name in names],
        "country": [lookup.get(name, (UNKNOWN, UNKNOWN))[1] for name in names],
    }, schema={
        "location_id": pl.Int64,
        "location_name": pl.Utf8,
        "region": pl.Utf8,
        "country": pl.Utf8,
    })


def _build_categories(
    products: pl.DataFrame,
    mapping: Mapping[int, str],
) -> pl.DataFrame:
    assigned = pl.DataFrame({
        "product_id": list(mapping.keys()),
        "category_name": list(mapping.values()),
    }, schema={"product_id": pl.Int64, "category_name": pl.Utf8})

    return (
        products.select(pl.col("product_id").cast(pl.Int64))
        .join(assigned, on="product_id", how="left")
        .with_columns(pl.col("category_name").fill_null(UNCATEGORIZED))
    )


def normalize_raw(
    customers: pl.DataFrame,
    products: pl.DataFrame,
    sales: pl.DataFrame,
    sale_timestamps: Optional[Mapping[int, datetime]] = None,
    product_categories: Optional[Mapping[int, str]] = None,
    locations: Optional[Mapping[str, Tuple[str, str]]] = None,
    default_timestamp: Optional[datetime] = None,
    cost_ratio: Optional[float] = None,
) -> NormalizedFrames:
    """
    Transform raw tables into 3NF frames.

    Args:
        customers: customer_info rows
        products: products rows (the owner column is ignored)
        sales: sales rows
        sale_timestamps: sales_id -> timestamp; missing ids get ``default_timestamp``
        product_categories: product_id -> category name; missing ids are "Uncategorized"
        locations: location name -> (region, country); missing names are "Unknown"
        default_timestamp: Timestamp for sales without one, defaults to now
        cost_ratio: Cost as a fraction of price when products carry no cost

    Returns:
        NormalizedFrames ready to load into the 3NF tables
    """
    cost_ratio = cost_ratio if cost_ratio is not None else get_settings().reporting.default_cost_ratio
    default_timestamp = default_timestamp or datetime.utcnow().replace(microsecond=0)

    customers = customers.with_columns(pl.col("location").str.strip_chars())

    # Locations
    locations_df = _build_locations(customers, locations or {})

    # Customers reference locations by id
    customers_3nf = (
        customers.join(
            locations_df.select(["location_id", "location_name"]),
            left_on="location",
            right_on="location_name",
            how="left",
        )
        .select(
            pl.col("customer_id").cast(pl.Int64),
            pl.col("name").alias("customer_name"),
            pl.col("location_id"),
        )
        .sort("customer_id")
    )

    # Categories
    product_category = _build_categories(products, product_categories or {})
    category_names = sorted(product_category["category_name"].unique().to_list())
    categories_df = pl.DataFrame({
        "category_id": list(range(1, len(category_names) + 1)),
        "category_name": category_names,
    }, schema={"category_id": pl.Int64, "category_name": pl.Utf8})

    # Products drop the owning customer and reference a category instead
    if "cost_price" in products.columns:
        cost_expr = pl.col("cost_price").fill_null(pl.col("price") * cost_ratio)
    else:
        cost_expr = pl.col("price") * cost_ratio

    products_3nf = (
        products.with_columns(pl.col("product_id").cast(pl.Int64))
        .join(product_category, on="product_id", how="left")
        .join(categories_df, on="category_name", how="left")
        .select(
            pl.col("product_id"),
            pl.col("product_name"),
            pl.col("price").cast(pl.Float64),
            cost_expr.cast(pl.Float64).round(2).alias("cost_price"),
            pl.col("category_id"),
        )
        .sort("product_id")
    )

    # Sales get unit price and timestamp
    timestamps = pl.DataFrame({
        "sales_id": list((sale_timestamps or {}).keys()),
        "sale_timestamp": list((sale_timestamps or {}).values()),
    }, schema={"sales_id": pl.Int64, "sale_timestamp": pl.Datetime("us")})

    sales_3nf = (
        sales.with_columns(
            pl.col("sales_id").cast(pl.Int64),
            pl.col("product_id").cast(pl.Int64),
        )
        .join(
            products_3nf.select(["product_id", pl.col("price").alias("unit_price")]),
            on="product_id",
            how="left",
        )
        .join(timestamps, on="sales_id", how="left")
        .select(
            pl.col("sales_id"),
            pl.col("customer_id").cast(pl.Int64),
            pl.col("product_id"),
            pl.col("quantity").cast(pl.Int64),
            pl.col("unit_price"),
            pl.col("total_sales").cast(pl.Float64),
            pl.col("sale_timestamp").fill_null(pl.lit(default_timestamp, dtype=pl.Datetime("us"))),
        )
        .sort("sales_id")
    )

    missing_ts = len(sales) - timestamps.join(sales.select(pl.col("sales_id").cast(pl.Int64)), on="sales_id").height
    if missing_ts:
        logger.warning("Sales without timestamp use the default", count=missing_ts, default=str(default_timestamp))

    frames = NormalizedFrames(
        locations=locations_df,
        customers=customers_3nf,
        product_categories=categories_df,
        products=products_3nf,
        sales=sales_3nf,
    )
    logger.info("Raw data normalized", **frames.row_counts)
    return frames
