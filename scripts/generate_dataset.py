"""
Sales Dataset Generator
Writes a reproducible synthetic dataset (or the reference dataset) as CSV files
that `sales-portfolio seed --source csv` can load.
"""

import argparse
from pathlib import Path

import polars as pl

from src.config import get_settings
from src.config.logging import configure_logging
from src.data.generators import SalesDatasetGenerator, reference_dataset, write_dataset


def main():
    config = get_settings().datagen

    parser = argparse.ArgumentParser(description="Generate a sales dataset as CSV files")
    parser.add_argument("--output-dir", default=config.output_dir, help="Output directory")
    parser.add_argument("--customers", type=int, default=config.customers)
    parser.add_argument("--products", type=int, default=config.products)
    parser.add_argument("--sales", type=int, default=config.sales)
    parser.add_argument("--days", type=int, default=config.days, help="Days of sales history")
    parser.add_argument("--seed", type=int, default=config.seed)
    parser.add_argument("--reference", action="store_true", help="Write the fixed reference dataset instead")
    args = parser.parse_args()

    configure_logging()

    print("=" * 60)
    print("Sales Dataset Generator")
    print("=" * 60 + "\n")

    if args.reference:
        dataset = reference_dataset()
    else:
        dataset = SalesDatasetGenerator(seed=args.seed).generate(
            customers=args.customers,
            products=args.products,
            sales=args.sales,
            days=args.days,
        )

    output_dir = write_dataset(dataset, args.output_dir)

    # Summary
    print(f"\nOutput: {Path(output_dir).resolve()}\n")

    total = 0
    for f in sorted(Path(output_dir).glob("*.csv")):
        size = f.stat().st_size / 1024 / 1024
        rows = pl.read_csv(f).height
        total += rows
        print(f"   {f.name}: {rows:,} rows ({size:.2f} MB)")

    print(f"\nTotal: {total:,} rows")
    print(f"Total sales value: {dataset.total_sales:,.2f}")


if __name__ == "__main__":
    main()
