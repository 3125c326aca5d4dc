"""
Unit Tests - Schema Variants, Constraints and Indexing
"""
from datetime import date, datetime

import polars as pl
import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from src.database.bootstrap import bootstrap_database, teardown_database
from src.database.connection import build_engine, drop_schemas, get_db, get_engine
from src.database.indexes import RECOMMENDED_INDEXES, apply_index_advice, explain
from src.database.models import (
    Customer,
    CustomerInfo,
    DimCustomer,
    DimDate,
    DimLocation,
    DimProduct,
    FactSales,
    Location,
    Product3NF,
    ProductCategory,
    Sale3NF,
    SalesReportingDenorm,
    SchemaVariant,
    tables_for,
)
from src.ingestion.loader import fetch_frame, load_frame
from src.queries.exercises import customers_in_location


async def _table_names(engine) -> set:
    async with engine.connect() as conn:
        return set(await conn.run_sync(lambda c: inspect(c).get_table_names()))


class TestSchemaCreation:
    """Tests for creating and dropping schema variants"""

    async def test_every_variant_created(self, empty_engine):
        names = await _table_names(empty_engine)

        for variant in SchemaVariant:
            assert {t.name for t in tables_for(variant)} <= names

    async def test_create_single_variant(self):
        engine = build_engine("sqlite+aiosqlite:///:memory:")
        try:
            summary = await bootstrap_database(engine, variants=[SchemaVariant.STAR])
            names = await _table_names(engine)
        finally:
            await engine.dispose()

        assert summary["variants"] == ["star"]
        assert summary["view"] is None
        assert "fact_sales" in names
        assert "sales" not in names

    async def test_drop_variant(self, empty_engine):
        await drop_schemas(empty_engine, [SchemaVariant.REPORTING])
        names = await _table_names(empty_engine)

        assert "sales_reporting_denorm" not in names
        assert "fact_sales" in names

    async def test_bootstrap_summary(self):
        engine = build_engine("sqlite+aiosqlite:///:memory:")
        try:
            summary = await bootstrap_database(engine)
        finally:
            await engine.dispose()

        assert summary["view"] == "high_value_customers"
        assert summary["routine_installed"] is False
        assert set(summary["indexes_created"]) == {ix.name for ix in RECOMMENDED_INDEXES}

    async def test_teardown(self, test_engine):
        await teardown_database(test_engine)

        assert await _table_names(test_engine) == set()

    def test_reporting_table_has_no_foreign_keys(self):
        assert not SalesReportingDenorm.__table__.foreign_keys

    def test_reporting_table_indexes(self):
        indexed = {tuple(c.name for c in ix.columns) for ix in SalesReportingDenorm.__table__.indexes}

        assert ("region", "sale_year", "sale_month") in indexed
        assert ("category_name", "sale_year", "sale_month") in indexed
        assert ("customer_id", "sale_date") in indexed


class TestReferentialIntegrity:
    """Normalized and star schemas reject orphans; the reporting table accepts them"""

    @pytest.fixture
    async def nf_parents(self, test_db):
        """One valid location, customer, category and product in 3NF"""
        await load_frame(test_db, Location, pl.DataFrame({
            "location_id": [1],
            "location_name": ["Nairobi"],
            "region": ["Central"],
            "country": ["Kenya"],
        }))
        await load_frame(test_db, Customer, pl.DataFrame({
            "customer_id": [1],
            "customer_name": ["Alice Wanjiru"],
            "location_id": [1],
        }))
        await load_frame(test_db, ProductCategory, pl.DataFrame({
            "category_id": [1],
            "category_name": ["Computers"],
        }))
        await load_frame(test_db, Product3NF, pl.DataFrame({
            "product_id": [101],
            "product_name": ["Laptop"],
            "price": [1200.0],
            "cost_price": [720.0],
            "category_id": [1],
        }))
        return test_db

    @pytest.fixture
    async def star_parents(self, test_db):
        """One valid member in every dimension"""
        await load_frame(test_db, DimCustomer, pl.DataFrame({
            "customer_key": [1],
            "customer_id": [1],
            "customer_name": ["Alice Wanjiru"],
            "location_name": ["Nairobi"],
            "region": ["Central"],
            "country": ["Kenya"],
        }))
        await load_frame(test_db, DimProduct, pl.DataFrame({
            "product_key": [1],
            "product_id": [101],
            "product_name": ["Laptop"],
            "category_name": ["Computers"],
            "unit_price": [1200.0],
            "unit_cost": [720.0],
        }))
        await load_frame(test_db, DimLocation, pl.DataFrame({
            "location_key": [1],
            "location_name": ["Nairobi"],
            "region": ["Central"],
            "country": ["Kenya"],
        }))
        await load_frame(test_db, DimDate, pl.DataFrame({
            "date_key": [20240105],
            "full_date": [date(2024, 1, 5)],
            "day_of_month": [5],
            "day_of_week": [4],
            "month": [1],
            "month_name": ["January"],
            "quarter": [1],
            "year": [2024],
            "is_weekend": [False],
        }))
        return test_db

    @staticmethod
    def _sale_3nf(**overrides) -> pl.DataFrame:
        row = {
            "sales_id": 1,
            "customer_id": 1,
            "product_id": 101,
            "quantity": 1,
            "unit_price": 1200.0,
            "total_sales": 1200.0,
            "sale_timestamp": datetime(2024, 1, 5, 10, 0),
        }
        row.update(overrides)
        return pl.DataFrame([row])

    @staticmethod
    def _fact(**overrides) -> pl.DataFrame:
        row = {
            "sales_key": 1,
            "sales_id": 1,
            "customer_key": 1,
            "product_key": 1,
            "location_key": 1,
            "date_key": 20240105,
            "quantity": 1,
            "unit_price": 1200.0,
            "total_sales": 1200.0,
            "cost": 720.0,
            "profit": 480.0,
        }
        row.update(overrides)
        return pl.DataFrame([row])

    async def test_3nf_accepts_valid_sale(self, nf_parents):
        result = await load_frame(nf_parents, Sale3NF, self._sale_3nf())

        assert result.rows_loaded == 1

    @pytest.mark.parametrize("column", ["customer_id", "product_id"])
    async def test_3nf_rejects_each_unknown_reference(self, nf_parents, column):
        with pytest.raises(IntegrityError):
            await load_frame(nf_parents, Sale3NF, self._sale_3nf(**{column: 999}))

    async def test_3nf_rejects_unknown_location(self, test_db):
        with pytest.raises(IntegrityError):
            await load_frame(test_db, Customer, pl.DataFrame({
                "customer_id": [1],
                "customer_name": ["Nobody"],
                "location_id": [42],
            }))

    async def test_3nf_rejects_unknown_category(self, nf_parents):
        with pytest.raises(IntegrityError):
            await load_frame(nf_parents, Product3NF, pl.DataFrame({
                "product_id": [102],
                "product_name": ["Phone"],
                "price": [800.0],
                "cost_price": [480.0],
                "category_id": [42],
            }))

    async def test_3nf_customer_location_readable(self, nf_parents):
        customers = await fetch_frame(nf_parents, Customer)

        assert customers["location_id"].to_list() == [1]

    async def test_star_accepts_valid_fact(self, star_parents):
        result = await load_frame(star_parents, FactSales, self._fact())

        assert result.rows_loaded == 1

    @pytest.mark.parametrize("column,orphan", [
        ("customer_key", 7),
        ("product_key", 7),
        ("location_key", 7),
        ("date_key", 20240101),
    ])
    async def test_star_rejects_each_unknown_dimension_key(self, star_parents, column, orphan):
        with pytest.raises(IntegrityError):
            await load_frame(star_parents, FactSales, self._fact(**{column: orphan}))

    async def test_reporting_accepts_orphans(self, test_db):
        result = await load_frame(test_db, SalesReportingDenorm, pl.DataFrame({
            "sales_id": [1],
            "customer_id": [999],
            "customer_name": ["Ghost"],
            "location_name": ["Nowhere"],
            "region": ["Unknown"],
            "country": ["Unknown"],
            "product_id": [999],
            "product_name": ["Phantom"],
            "category_name": ["Uncategorized"],
            "sale_date": [date(2024, 1, 1)],
            "sale_year": [2024],
            "sale_month": [1],
            "quantity": [1],
            "unit_price": [10.0],
            "total_sales": [10.0],
            "cost": [6.0],
            "profit": [4.0],
            "profit_margin": [0.4],
            "monthly_rank": [1],
        }))

        assert result.rows_loaded == 1
        rows = await fetch_frame(test_db, SalesReportingDenorm)
        assert rows["customer_id"].to_list() == [999]


class TestIndexAdvice:
    """Tests for the recommended indexes"""

    async def test_indexes_exist(self, test_engine):
        async with test_engine.connect() as conn:
            names = await conn.run_sync(
                lambda c: {ix["name"] for ix in inspect(c).get_indexes("customer_info")}
            )

        assert "ix_customer_info_location" in names

    async def test_apply_is_idempotent(self, test_engine):
        async with test_engine.begin() as conn:
            created = await apply_index_advice(conn)

        assert created == []

    async def test_apply_creates_missing(self, empty_engine):
        async with empty_engine.begin() as conn:
            created = await apply_index_advice(conn)

        assert "ix_sales_customer_id" in created
        assert "ix_sales_3nf_customer_product" in created

    def test_advice_not_in_models(self):
        assert not CustomerInfo.__table__.indexes

    async def test_explain_uses_location_index(self, seeded_db):
        plan = await explain(seeded_db, customers_in_location())

        assert plan
        assert any("ix_customer_info_location" in str(row.get("detail")) for row in plan)


class TestConnectionLifecycle:
    """Tests for the global engine"""

    def test_engine_required(self):
        with pytest.raises(RuntimeError):
            get_engine()

    async def test_session_requires_init(self):
        with pytest.raises(RuntimeError):
            async with get_db():
                pass
