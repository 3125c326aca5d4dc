"""
Unit Tests - Exercise Queries
"""
import pytest

from src.database.routines import call_customer_sales, install_routines
from src.database.views import create_high_value_view, select_high_value_customers
from src.queries.catalog import QUERY_CATALOG, get_query
from src.queries.exercises import (
    customer_product_diversity,
    customers_above_average,
    customers_in_location,
    product_sales_summary,
    products_without_sales,
    rank_products_by_sales,
    run_query,
    sales_with_details,
    top_customers,
    total_sales_per_customer,
)


class TestBasicQueries:
    """Tests for the filter, join and aggregate exercises"""

    async def test_customers_in_location(self, seeded_db):
        """Q1 returns only exact location matches"""
        rows = await run_query(seeded_db, customers_in_location())

        assert [r["customer_id"] for r in rows] == [1, 3]
        assert all(r["location"] == "Nairobi" for r in rows)

    async def test_customers_in_other_location(self, seeded_db):
        rows = await run_query(seeded_db, customers_in_location("Mombasa"))

        assert [r["name"] for r in rows] == ["Brian Otieno"]

    async def test_customers_in_unknown_location(self, seeded_db):
        rows = await run_query(seeded_db, customers_in_location("Atlantis"))

        assert rows == []

    async def test_sales_with_details(self, seeded_db, dataset):
        """Q2 keeps every sale and attaches names and price"""
        rows = await run_query(seeded_db, sales_with_details())

        assert len(rows) == dataset.sales.height
        first = rows[0]
        assert first["sales_id"] == 1
        assert first["customer_name"] == "Alice Wanjiru"
        assert first["product_name"] == "Laptop"
        assert first["price"] == pytest.approx(1200.0)

    async def test_total_sales_per_customer(self, seeded_db, dataset):
        """Q3 totals add up to the sales table total"""
        rows = await run_query(seeded_db, total_sales_per_customer())

        assert [r["customer_id"] for r in rows] == [3, 1, 2, 4, 5]
        assert sum(r["total_sales"] for r in rows) == pytest.approx(dataset.total_sales)
        # Customer 6 never bought anything
        assert 6 not in {r["customer_id"] for r in rows}

    async def test_product_sales_summary(self, seeded_db):
        rows = await run_query(seeded_db, product_sales_summary())

        by_product = {r["product_id"]: r for r in rows}
        assert by_product[101]["order_count"] == 2
        assert by_product[101]["units_sold"] == 13
        assert by_product[101]["revenue"] == pytest.approx(15600.0)
        assert 106 not in by_product

    async def test_product_sales_summary_min_orders(self, seeded_db):
        """Q4 HAVING drops products below the order threshold"""
        rows = await run_query(seeded_db, product_sales_summary(min_orders=2))

        assert sorted(r["product_id"] for r in rows) == [101, 102, 103, 104]
        assert all(r["order_count"] >= 2 for r in rows)


class TestRankingQueries:
    """Tests for top-N, subquery and window exercises"""

    async def test_top_customers_default(self, seeded_db):
        """Q5 is a prefix of Q3"""
        top = await run_query(seeded_db, top_customers())
        totals = await run_query(seeded_db, total_sales_per_customer())

        assert len(top) == 3
        assert top == totals[:3]

    async def test_top_customers_limit(self, seeded_db):
        rows = await run_query(seeded_db, top_customers(limit=1))

        assert rows == [{"customer_id": 3, "name": "Carol Achieng", "total_sales": pytest.approx(16000.0)}]

    def test_top_customers_rejects_zero(self):
        with pytest.raises(ValueError):
            top_customers(limit=0)

    async def test_customers_above_average(self, seeded_db):
        """Q6 keeps totals strictly above the mean customer total"""
        rows = await run_query(seeded_db, customers_above_average())
        totals = await run_query(seeded_db, total_sales_per_customer())
        mean = sum(r["total_sales"] for r in totals) / len(totals)

        assert [r["customer_id"] for r in rows] == [3, 1]
        assert all(r["total_sales"] > mean for r in rows)

    async def test_rank_products_by_sales(self, seeded_db):
        """Q7 gives ties one rank and skips the next"""
        rows = await run_query(seeded_db, rank_products_by_sales())

        ranks = [(r["product_id"], r["rank"]) for r in rows]
        assert ranks == [(102, 1), (101, 2), (103, 3), (104, 4), (105, 4), (107, 6)]

    async def test_products_without_sales(self, seeded_db):
        """Q11 finds the unsold product"""
        rows = await run_query(seeded_db, products_without_sales())

        assert [r["product_id"] for r in rows] == [106]

    async def test_customer_product_diversity(self, seeded_db):
        rows = await run_query(seeded_db, customer_product_diversity())

        by_customer = {r["customer_id"]: r for r in rows}
        assert set(by_customer) == {1, 2, 3, 4, 5}
        assert by_customer[1]["distinct_products"] == 2
        assert by_customer[1]["order_count"] == 2
        assert by_customer[1]["avg_ticket"] == pytest.approx(7500.0)


class TestHighValueView:
    """Tests for the Q8 view"""

    async def test_view_matches_aggregate(self, seeded_db):
        """The view returns exactly the customers whose total exceeds the threshold"""
        view_rows = await run_query(seeded_db, select_high_value_customers())
        totals = await run_query(seeded_db, total_sales_per_customer())

        expected = [r for r in totals if r["total_sales"] > 15000]
        assert view_rows == expected
        # 15000 exactly is not above the threshold
        assert [r["customer_id"] for r in view_rows] == [3]

    async def test_view_follows_base_tables(self, seeded_db):
        """A new sale is visible through the view without recreating it"""
        from src.database.models import Sale

        seeded_db.add(Sale(sales_id=14, customer_id=2, product_id=101, total_sales=8400.0, quantity=7))
        await seeded_db.flush()

        rows = await run_query(seeded_db, select_high_value_customers())

        assert {r["customer_id"] for r in rows} == {2, 3}

    async def test_recreate_with_threshold(self, test_engine, seeded_db):
        async with test_engine.begin() as conn:
            ddl = await create_high_value_view(conn, threshold=5000)

        rows = await run_query(seeded_db, select_high_value_customers())

        assert "CREATE VIEW high_value_customers" in ddl
        assert [r["customer_id"] for r in rows] == [3, 1, 2]


class TestCustomerSalesRoutine:
    """Tests for Q9"""

    async def test_routine_not_installed_on_sqlite(self, test_engine):
        async with test_engine.begin() as conn:
            installed = await install_routines(conn)

        assert installed is False

    async def test_call_customer_sales(self, seeded_db):
        rows = await call_customer_sales(seeded_db, 1)

        assert [r["sales_id"] for r in rows] == [1, 5]
        assert [r["product_name"] for r in rows] == ["Laptop", "Headphones"]
        assert rows[0]["quantity"] == 10

    async def test_call_customer_without_sales(self, seeded_db):
        rows = await call_customer_sales(seeded_db, 6)

        assert rows == []


class TestQueryCatalog:
    """Tests for query lookup by id"""

    def test_catalog_ids(self):
        assert set(QUERY_CATALOG) == {
            "Q1", "Q2", "Q3", "Q4", "Q5", "Q6", "Q7", "Q8", "Q10", "Q11", "Q12",
        }

    def test_get_query_is_case_insensitive(self):
        assert str(get_query("q3")) == str(total_sales_per_customer())

    def test_get_query_passes_arguments(self):
        assert str(get_query("Q5", limit=2)) == str(top_customers(limit=2))

    def test_get_query_unknown(self):
        with pytest.raises(ValueError, match="Unknown query"):
            get_query("Q99")

    @pytest.mark.parametrize("query_id,option", [
        ("Q1", {"limit": 3}),
        ("Q8", {"location": "Nairobi"}),
        ("Q5", {"min_orders": 2}),
    ])
    def test_get_query_rejects_unsupported_option(self, query_id, option):
        with pytest.raises(ValueError, match="does not take"):
            get_query(query_id, **option)

    async def test_every_query_runs(self, seeded_db):
        for query_id in QUERY_CATALOG:
            rows = await run_query(seeded_db, get_query(query_id))
            assert isinstance(rows, list)
