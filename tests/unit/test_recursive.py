"""
Unit Tests - Recursive Running Total
"""
import pytest

from src.database.models import CustomerInfo, Product, Sale
from src.ingestion.loader import load_frame
from src.queries.exercises import run_query
from src.queries.recursive import running_sales_total, running_sales_total_window


class TestRunningSalesTotal:
    """Tests for the recursive running total (Q10)"""

    async def test_visits_every_sale_across_gaps(self, seeded_db, dataset):
        rows = await run_query(seeded_db, running_sales_total())

        assert [r["sales_id"] for r in rows] == dataset.sales["sales_id"].to_list()

    async def test_final_total_equals_sum(self, seeded_db, dataset):
        rows = await run_query(seeded_db, running_sales_total())

        assert rows[-1]["running_total"] == pytest.approx(dataset.total_sales)
        assert rows[-1]["running_total"] == pytest.approx(44100.0)

    async def test_running_total_is_non_decreasing(self, seeded_db):
        rows = await run_query(seeded_db, running_sales_total())

        totals = [r["running_total"] for r in rows]
        assert totals == sorted(totals)
        assert rows[0]["running_total"] == pytest.approx(rows[0]["total_sales"])

    async def test_matches_window_function(self, seeded_db):
        recursive = await run_query(seeded_db, running_sales_total())
        window = await run_query(seeded_db, running_sales_total_window())

        assert [r["sales_id"] for r in recursive] == [r["sales_id"] for r in window]
        for a, b in zip(recursive, window):
            assert a["running_total"] == pytest.approx(b["running_total"])

    async def test_empty_table(self, test_db):
        rows = await run_query(test_db, running_sales_total())

        assert rows == []

    async def test_single_sale(self, test_db, dataset):
        await load_frame(test_db, CustomerInfo, dataset.customers)
        await load_frame(test_db, Product, dataset.products)
        test_db.add(Sale(sales_id=42, customer_id=1, product_id=101, total_sales=1200.0, quantity=1))
        await test_db.flush()

        rows = await run_query(test_db, running_sales_total())

        assert len(rows) == 1
        assert rows[0]["sales_id"] == 42
        assert rows[0]["running_total"] == pytest.approx(1200.0)
