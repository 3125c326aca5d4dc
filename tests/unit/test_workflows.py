"""
Unit Tests - Prefect Workflow
"""
import pytest
from prefect.testing.utilities import prefect_test_harness

from src.database.connection import get_engine
from workflows.schema_migration import schema_progression


@pytest.fixture(scope="module", autouse=True)
def prefect_backend():
    """Temporary Prefect database for the flows in this module"""
    with prefect_test_harness():
        yield


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}"


class TestSchemaProgression:
    """End-to-end runs of the schema_progression flow"""

    async def test_reference_run(self, db_url):
        results = await schema_progression(database_url=db_url)

        steps = results["steps"]
        assert results["status"] == "success"
        assert steps["seed_raw"] == {"customer_info": 6, "products": 7, "sales": 10}
        assert steps["reporting_objects"]["view"] == "high_value_customers"
        assert steps["normalized"]["validation_status"] == "passed"
        assert steps["normalized"]["output_rows"]["sales_3nf"] == 10
        assert steps["star"]["output_rows"]["fact_sales"] == 10
        assert steps["reporting"]["output_rows"] == {"sales_reporting_denorm": 10}
        assert steps["audit"]["status"] == "passed"
        assert steps["audit"]["warnings"] == 0

    async def test_rerun_is_repeatable(self, db_url):
        first = await schema_progression(database_url=db_url)
        second = await schema_progression(database_url=db_url)

        assert second["steps"]["seed_raw"] == first["steps"]["seed_raw"]
        assert second["steps"]["reporting"]["output_rows"] == {"sales_reporting_denorm": 10}

    async def test_generated_run(self, db_url):
        results = await schema_progression(database_url=db_url, source="generated", seed=11)

        loaded = results["steps"]["seed_raw"]
        assert results["status"] == "success"
        assert results["steps"]["normalized"]["output_rows"]["sales_3nf"] == loaded["sales"]
        assert results["steps"]["reporting"]["output_rows"] == {
            "sales_reporting_denorm": loaded["sales"],
        }

    async def test_engine_closed_after_run(self, db_url):
        await schema_progression(database_url=db_url)

        with pytest.raises(RuntimeError):
            get_engine()

    async def test_unknown_source_fails(self, db_url):
        with pytest.raises(ValueError):
            await schema_progression(database_url=db_url, source="parquet")

        with pytest.raises(RuntimeError):
            get_engine()
