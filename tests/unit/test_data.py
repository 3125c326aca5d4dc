"""
Unit Tests - Dataset Generation and Configuration
"""
import pytest
import polars as pl
from polars.testing import assert_frame_equal
from pydantic import ValidationError

from src.config import Settings
from src.config.settings import DatabaseSettings, ReportingSettings
from src.data.generators import (
    DatasetSource,
    SalesDatasetGenerator,
    read_dataset,
    reference_dataset,
    resolve_dataset,
    write_dataset,
)


class TestReferenceDataset:
    """Tests for the fixed dataset the exercises run against"""

    def test_totals(self, dataset):
        assert dataset.total_sales == pytest.approx(44100.0)

    def test_sales_ids_have_gaps(self, dataset):
        ids = dataset.sales["sales_id"].to_list()

        assert ids == sorted(ids)
        assert set(range(1, 14)) - set(ids) == {4, 7, 11}

    def test_side_information_covers_rows(self, dataset):
        assert set(dataset.sale_timestamps) == set(dataset.sales["sales_id"].to_list())
        assert set(dataset.product_categories) == set(dataset.products["product_id"].to_list())
        assert set(dataset.locations) == set(dataset.customers["location"].to_list())


class TestSalesDatasetGenerator:
    """Tests for the synthetic generator"""

    def test_reproducible(self):
        first = SalesDatasetGenerator(seed=7).generate(customers=20, products=10, sales=50, days=30)
        second = SalesDatasetGenerator(seed=7).generate(customers=20, products=10, sales=50, days=30)

        assert_frame_equal(first.customers, second.customers)
        assert_frame_equal(first.products, second.products)
        assert_frame_equal(first.sales, second.sales)
        assert first.sale_timestamps == second.sale_timestamps

    def test_different_seeds_differ(self):
        first = SalesDatasetGenerator(seed=1).generate(customers=20, products=10, sales=50, days=30)
        second = SalesDatasetGenerator(seed=2).generate(customers=20, products=10, sales=50, days=30)

        assert not first.sales.equals(second.sales)

    def test_sizes_and_keys(self):
        dataset = SalesDatasetGenerator(seed=3).generate(customers=15, products=8, sales=40, days=10)

        assert dataset.customers.height == 15
        assert dataset.products.height == 8
        assert dataset.sales.height == 40
        assert set(dataset.sales["customer_id"].to_list()) <= set(dataset.customers["customer_id"].to_list())
        assert set(dataset.sales["product_id"].to_list()) <= set(dataset.products["product_id"].to_list())
        assert dataset.sales["sales_id"].is_unique().all()

    def test_totals_match_prices(self):
        dataset = SalesDatasetGenerator(seed=3).generate(customers=5, products=5, sales=30, days=10)

        joined = dataset.sales.join(dataset.products.select(["product_id", "price"]), on="product_id")
        expected = (joined["price"] * joined["quantity"]).round(2)
        assert joined["total_sales"].to_list() == pytest.approx(expected.to_list())

    def test_every_product_has_category(self):
        dataset = SalesDatasetGenerator(seed=3).generate(customers=5, products=12, sales=10, days=10)

        assert set(dataset.product_categories) == set(dataset.products["product_id"].to_list())


class TestDatasetIO:
    """Tests for CSV export and dataset resolution"""

    def test_write_then_read(self, tmp_path, dataset):
        write_dataset(dataset, tmp_path)
        loaded = read_dataset(tmp_path)

        assert_frame_equal(loaded.sales, dataset.sales)
        assert loaded.product_categories == dataset.product_categories
        assert loaded.sale_timestamps == dataset.sale_timestamps
        assert loaded.locations == dataset.locations

    def test_resolve_reference(self):
        assert resolve_dataset("reference").total_sales == reference_dataset().total_sales

    def test_resolve_csv(self, tmp_path, dataset):
        write_dataset(dataset, tmp_path)

        resolved = resolve_dataset(DatasetSource.CSV, data_dir=tmp_path)

        assert resolved.sales.height == dataset.sales.height

    def test_resolve_unknown(self):
        with pytest.raises(ValueError):
            resolve_dataset("parquet")


class TestSettings:
    """Tests for configuration validation"""

    def test_defaults(self):
        reporting = ReportingSettings()

        assert reporting.target_location == "Nairobi"
        assert reporting.top_n == 3
        assert reporting.high_value_threshold == 15000.0

    def test_cost_ratio_bounds(self):
        with pytest.raises(ValidationError):
            ReportingSettings(default_cost_ratio=1.5)

    def test_top_n_positive(self):
        with pytest.raises(ValidationError):
            ReportingSettings(top_n=0)

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(APP_ENV="moon")

    def test_environment_normalized(self, test_settings):
        assert test_settings.app_env == "testing"
        assert not test_settings.is_production

    def test_url_override(self):
        db = DatabaseSettings(url="sqlite+aiosqlite:///:memory:")

        assert db.async_url == "sqlite+aiosqlite:///:memory:"
        assert db.is_sqlite

    def test_postgres_url(self):
        db = DatabaseSettings(url=None, host="db", port=5433, name="sales", user="u", password="p")

        assert db.async_url == "postgresql+asyncpg://u:p@db:5433/sales"
        assert not db.is_sqlite
