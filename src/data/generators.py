"""
Sales Dataset Generators

Produces datasets shaped like the raw operational schema:
- customers (customer_info rows with an inline location)
- products (including the owning customer reference of the raw design)
- sales (customer/product pairs with quantity and total)

Alongside the raw rows each dataset carries the side information the later
schema stages need but the raw schema cannot hold: sale timestamps, product
categories and a location lookup.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
import polars as pl
import structlog
from faker import Faker

from src.config import get_settings

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

LOCATIONS: Dict[str, Tuple[str, str]] = {
    "Nairobi": ("Central", "Kenya"),
    "Mombasa": ("Coast", "Kenya"),
    "Kisumu": ("Western", "Kenya"),
    "Nakuru": ("Rift Valley", "Kenya"),
    "Eldoret": ("Rift Valley", "Kenya"),
    "Kampala": ("Central", "Uganda"),
    "Dar es Salaam": ("Coastal", "Tanzania"),
    "Kigali": ("Kigali", "Rwanda"),
}

CATEGORIES = [
    ("Computers", ["Laptop", "Desktop", "Monitor", "Docking Station"], (150, 2000)),
    ("Mobile", ["Smartphone", "Tablet", "Smartwatch"], (100, 1200)),
    ("Accessories", ["Headphones", "Keyboard", "Mouse", "Charger", "Cable"], (5, 250)),
    ("Office", ["Printer", "Scanner", "Desk Lamp", "Shredder"], (40, 600)),
]


@dataclass
class RawDataset:
    """Raw schema rows plus the side information later stages need"""
    customers: pl.DataFrame
    products: pl.DataFrame
    sales: pl.DataFrame
    sale_timestamps: Dict[int, datetime] = field(default_factory=dict)
    product_categories: Dict[int, str] = field(default_factory=dict)
    locations: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    @property
    def total_sales(self) -> float:
        return float(self.sales["total_sales"].sum()) if self.sales.height else 0.0


# =============================================================================
# REFERENCE DATASET
# =============================================================================

def reference_dataset() -> RawDataset:
    """
    Small fixed dataset the exercise queries are written against.

    Customer totals: 3 -> 16000, 1 -> 15000, 2 -> 7600, 4 -> 4600, 5 -> 900.
    Customer 6 never buys. Products 104 and 105 tie at 3600, product 106 is
    never sold, and sales ids have gaps (4, 7, 11 are missing).
    """
    customers = pl.DataFrame({
        "customer_id": [1, 2, 3, 4, 5, 6],
        "name": [
            "Alice Wanjiru", "Brian Otieno", "Carol Achieng",
            "David Kamau", "Esther Njeri", "Felix Mutua",
        ],
        "location": ["Nairobi", "Mombasa", "Nairobi", "Kisumu", "Nakuru", "Eldoret"],
    })

    products = pl.DataFrame({
        "product_id": [101, 102, 103, 104, 105, 106, 107],
        "product_name": [
            "Laptop", "Smartphone", "Tablet", "Headphones",
            "Monitor", "Printer", "Keyboard",
        ],
        "price": [1200.0, 800.0, 500.0, 150.0, 300.0, 250.0, 50.0],
        "customer_id": [1, 2, 3, 1, 4, 5, None],
    })

    sales = pl.DataFrame({
        "sales_id": [1, 2, 3, 5, 6, 8, 9, 10, 12, 13],
        "customer_id": [1, 2, 3, 1, 4, 2, 5, 3, 4, 5],
        "product_id": [101, 102, 103, 104, 105, 101, 104, 102, 103, 107],
        "total_sales": [
            12000.0, 4000.0, 4000.0, 3000.0, 3600.0,
            3600.0, 600.0, 12000.0, 1000.0, 300.0,
        ],
        "quantity": [10, 5, 8, 20, 12, 3, 4, 15, 2, 6],
    })

    sale_timestamps = {
        1: datetime(2024, 1, 5, 10, 0),
        2: datetime(2024, 1, 12, 14, 30),
        3: datetime(2024, 1, 20, 9, 15),
        5: datetime(2024, 2, 2, 11, 0),
        6: datetime(2024, 2, 14, 16, 45),
        8: datetime(2024, 2, 21, 13, 20),
        9: datetime(2024, 3, 3, 10, 5),
        10: datetime(2024, 3, 9, 15, 0),
        12: datetime(2024, 3, 15, 12, 10),
        13: datetime(2024, 3, 28, 17, 40),
    }

    product_categories = {
        101: "Computers",
        102: "Mobile",
        103: "Mobile",
        104: "Accessories",
        105: "Computers",
        106: "Office",
        107: "Accessories",
    }

    return RawDataset(
        customers=customers,
        products=products,
        sales=sales,
        sale_timestamps=sale_timestamps,
        product_categories=product_categories,
        locations={name: LOCATIONS[name] for name in customers["location"].unique().to_list()},
    )


# =============================================================================
# SYNTHETIC DATASET
# =============================================================================

class SalesDatasetGenerator:
    """
    Generate a reproducible synthetic dataset.

    Example:
        dataset = SalesDatasetGenerator(seed=7).generate(customers=100, products=40, sales=1000)
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed if seed is not None else get_settings().datagen.seed
        self._random = random.Random(self.seed)
        self._rng = np.random.default_rng(self.seed)
        self._fake = Faker()
        self._fake.seed_instance(self.seed)

    def generate_customers(self, n: int) -> pl.DataFrame:
        """Generate n customers spread over the known locations"""
        names = list(LOCATIONS.keys())
        return pl.DataFrame({
            "customer_id": list(range(1, n + 1)),
            "name": [self._fake.name() for _ in range(n)],
            "location": [self._random.choice(names) for _ in range(n)],
        })

    def generate_products(self, n: int, customer_ids: list) -> Tuple[pl.DataFrame, Dict[int, str]]:
        """Generate n products and their category assignment"""
        rows = []
        categories = {}

        for i in range(n):
            product_id = 1001 + i
            category, kinds, (low, high) = self._random.choice(CATEGORIES)
            kind = self._random.choice(kinds)
            rows.append({
                "product_id": product_id,
                "product_name": f"{self._fake.word().title()} {kind}",
                "price": round(self._random.uniform(low, high), 2),
                # The raw design pins every product to one customer
                "customer_id": self._random.choice(customer_ids) if customer_ids else None,
            })
            categories[product_id] = category

        return pl.DataFrame(rows, schema={
            "product_id": pl.Int64,
            "product_name": pl.Utf8,
            "price": pl.Float64,
            "customer_id": pl.Int64,
        }), categories

    def generate_sales(
        self,
        n: int,
        customer_ids: list,
        products: pl.DataFrame,
        days: int,
        end_date: Optional[datetime] = None,
    ) -> Tuple[pl.DataFrame, Dict[int, datetime]]:
        """Generate n sales with totals consistent with product prices"""
        end_date = end_date or datetime(2024, 12, 31, 23, 59)
        start_date = end_date - timedelta(days=days)

        product_ids = products["product_id"].to_list()
        prices = dict(zip(product_ids, products["price"].to_list()))

        chosen_customers = self._rng.choice(customer_ids, size=n)
        chosen_products = self._rng.choice(product_ids, size=n)
        quantities = self._rng.choice(
            [1, 2, 3, 4, 5, 10, 20],
            size=n,
            p=[0.40, 0.25, 0.12, 0.08, 0.07, 0.05, 0.03],
        )
        offsets = self._rng.integers(0, days * 24 * 60, size=n)

        rows = []
        timestamps = {}
        for i in range(n):
            sales_id = i + 1
            product_id = int(chosen_products[i])
            quantity = int(quantities[i])
            rows.append({
                "sales_id": sales_id,
                "customer_id": int(chosen_customers[i]),
                "product_id": product_id,
                "total_sales": round(prices[product_id] * quantity, 2),
                "quantity": quantity,
            })
            timestamps[sales_id] = start_date + timedelta(minutes=int(offsets[i]))

        return pl.DataFrame(rows), timestamps

    def generate(
        self,
        customers: Optional[int] = None,
        products: Optional[int] = None,
        sales: Optional[int] = None,
        days: Optional[int] = None,
    ) -> RawDataset:
        """Generate a complete dataset, defaulting sizes from settings"""
        config = get_settings().datagen
        customers = customers or config.customers
        products = products or config.products
        sales = sales or config.sales
        days = days or config.days

        logger.info(
            "Generating dataset",
            customers=customers,
            products=products,
            sales=sales,
            seed=self.seed,
        )

        customers_df = self.generate_customers(customers)
        customer_ids = customers_df["customer_id"].to_list()
        products_df, categories = self.generate_products(products, customer_ids)
        sales_df, timestamps = self.generate_sales(sales, customer_ids, products_df, days)

        return RawDataset(
            customers=customers_df,
            products=products_df,
            sales=sales_df,
            sale_timestamps=timestamps,
            product_categories=categories,
            locations=dict(LOCATIONS),
        )


# =============================================================================
# CSV EXPORT / IMPORT
# =============================================================================

def write_dataset(dataset: RawDataset, output_dir: Union[str, Path]) -> Path:
    """Write a dataset as CSV files into ``output_dir``"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    dataset.customers.write_csv(output_dir / "customer_info.csv")
    dataset.products.write_csv(output_dir / "products.csv")
    dataset.sales.write_csv(output_dir / "sales.csv")

    pl.DataFrame({
        "sales_id": list(dataset.sale_timestamps.keys()),
        "sale_timestamp": list(dataset.sale_timestamps.values()),
    }, schema={"sales_id": pl.Int64, "sale_timestamp": pl.Datetime}).write_csv(
        output_dir / "sale_timestamps.csv"
    )
    pl.DataFrame({
        "product_id": list(dataset.product_categories.keys()),
        "category_name": list(dataset.product_categories.values()),
    }, schema={"product_id": pl.Int64, "category_name": pl.Utf8}).write_csv(
        output_dir / "product_categories.csv"
    )
    pl.DataFrame({
        "location_name": list(dataset.locations.keys()),
        "region": [v[0] for v in dataset.locations.values()],
        "country": [v[1] for v in dataset.locations.values()],
    }, schema={"location_name": pl.Utf8, "region": pl.Utf8, "country": pl.Utf8}).write_csv(
        output_dir / "locations.csv"
    )

    logger.info("Dataset written", output_dir=str(output_dir), sales=dataset.sales.height)
    return output_dir


def read_dataset(input_dir: Union[str, Path]) -> RawDataset:
    """Read a dataset previously written by :func:`write_dataset`"""
    input_dir = Path(input_dir)

    timestamps = pl.read_csv(input_dir / "sale_timestamps.csv", try_parse_dates=True)
    categories = pl.read_csv(input_dir / "product_categories.csv")
    locations = pl.read_csv(input_dir / "locations.csv")

    return RawDataset(
        customers=pl.read_csv(input_dir / "customer_info.csv"),
        products=pl.read_csv(input_dir / "products.csv"),
        sales=pl.read_csv(input_dir / "sales.csv"),
        sale_timestamps=dict(zip(timestamps["sales_id"].to_list(), timestamps["sale_timestamp"].to_list())),
        product_categories=dict(zip(categories["product_id"].to_list(), categories["category_name"].to_list())),
        locations={
            row["location_name"]: (row["region"], row["country"])
            for row in locations.to_dicts()
        },
    )


class DatasetSource(str, Enum):
    """Where a dataset comes from"""
    REFERENCE = "reference"
    GENERATED = "generated"
    CSV = "csv"


def resolve_dataset(
    source: Union[DatasetSource, str] = DatasetSource.REFERENCE,
    data_dir: Optional[Union[str, Path]] = None,
    seed: Optional[int] = None,
) -> RawDataset:
    """
    Build or read a dataset by source name.

    Raises:
        ValueError: If the source is unknown
    """
    source = DatasetSource(source)
    if source == DatasetSource.REFERENCE:
        return reference_dataset()
    if source == DatasetSource.GENERATED:
        return SalesDatasetGenerator(seed=seed).generate()
    return read_dataset(data_dir or get_settings().datagen.output_dir)
