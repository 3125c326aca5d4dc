"""
Prefect Workflow Orchestration - Schema Progression

Runs the schema design progression end to end:
- Create every schema variant
- Seed the raw operational tables
- Install the view, stored routine and index advice
- Migrate raw -> 3NF -> star -> reporting
- Audit the reporting table for orphaned references
"""

from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple

from prefect import flow, task, get_run_logger

from src.data.generators import DatasetSource, RawDataset, resolve_dataset
from src.database.connection import close_database, create_schemas as create_schema_tables
from src.database.connection import get_db, get_engine, init_database
from src.database.indexes import apply_index_advice
from src.database.routines import install_routines
from src.database.views import create_high_value_view
from src.ingestion.loader import load_raw_dataset
from src.transformation.transformers import SchemaMigrator


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="create_schemas",
    description="Create the tables of every schema variant",
    retries=2,
    retry_delay_seconds=10,
)
async def create_schemas() -> None:
    """Create raw, 3NF, star and reporting tables"""
    logger = get_run_logger()

    await create_schema_tables(get_engine())

    logger.info("All schema variants created")


@task(
    name="seed_raw",
    description="Load the raw operational tables",
)
async def seed_raw(dataset: RawDataset) -> Dict[str, int]:
    """Replace the raw tables with the dataset rows"""
    logger = get_run_logger()

    async with get_db() as db:
        results = await load_raw_dataset(db, dataset, replace=True)

    loaded = {r.table: r.rows_loaded for r in results}
    logger.info(f"Raw tables seeded: {loaded}")
    return loaded


@task(
    name="install_reporting_objects",
    description="Install the high value view, the customer sales routine and index advice",
)
async def install_reporting_objects(high_value_threshold: Optional[float] = None) -> dict:
    """Objects layered on top of the raw schema"""
    logger = get_run_logger()

    async with get_engine().begin() as conn:
        await create_high_value_view(conn, high_value_threshold)
        routine_installed = await install_routines(conn)
        indexes = await apply_index_advice(conn)

    logger.info(f"Reporting objects installed, {len(indexes)} new indexes")
    return {
        "view": "high_value_customers",
        "routine_installed": routine_installed,
        "indexes_created": indexes,
    }


@task(
    name="migrate_to_normalized",
    description="Normalize raw tables into 3NF",
)
async def migrate_to_normalized(
    sale_timestamps: Mapping[int, datetime],
    product_categories: Mapping[int, str],
    locations: Mapping[str, Tuple[str, str]],
) -> dict:
    logger = get_run_logger()

    async with get_db() as db:
        result = await SchemaMigrator(db).to_normalized(
            sale_timestamps=sale_timestamps,
            product_categories=product_categories,
            locations=locations,
        )

    logger.info(f"3NF tables loaded: {result.output_rows}")
    return result.model_dump(mode="json")


@task(
    name="migrate_to_star",
    description="Build the star schema from 3NF",
)
async def migrate_to_star() -> dict:
    logger = get_run_logger()

    async with get_db() as db:
        result = await SchemaMigrator(db).to_star()

    logger.info(f"Star schema loaded: {result.output_rows}")
    return result.model_dump(mode="json")


@task(
    name="migrate_to_reporting",
    description="Flatten the star schema into the reporting table",
)
async def migrate_to_reporting() -> dict:
    logger = get_run_logger()

    async with get_db() as db:
        result = await SchemaMigrator(db).to_reporting()

    logger.info(f"Reporting table loaded: {result.output_rows}")
    return result.model_dump(mode="json")


@task(
    name="audit_reporting",
    description="Check the reporting table for orphaned references",
)
async def audit_reporting() -> dict:
    """Referential audit of the reporting table against the 3NF tables"""
    logger = get_run_logger()

    async with get_db() as db:
        result = await SchemaMigrator(db).audit_reporting_integrity()

    if result.warning_count:
        logger.warning(f"Reporting table has {result.warning_count} integrity warnings")

    return {
        "status": result.status.value,
        "total_checks": result.total_checks,
        "passed_checks": result.passed_checks,
        "warnings": result.warning_count,
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="schema_progression",
    description="Build every schema variant from one raw dataset",
)
async def schema_progression(
    database_url: Optional[str] = None,
    source: str = DatasetSource.REFERENCE.value,
    data_dir: Optional[str] = None,
    seed: Optional[int] = None,
    high_value_threshold: Optional[float] = None,
) -> dict:
    """
    Schema progression pipeline.

    Steps:
    1. Create schemas
    2. Seed raw tables
    3. Install view, routine and indexes
    4. Migrate through 3NF and star into the reporting table
    5. Audit the reporting table
    """
    logger = get_run_logger()
    logger.info(f"Starting schema progression from {source} dataset")

    results = {"source": source, "steps": {}}

    await init_database(database_url)
    try:
        dataset = resolve_dataset(source, data_dir=data_dir, seed=seed)

        await create_schemas()
        results["steps"]["seed_raw"] = await seed_raw(dataset)
        results["steps"]["reporting_objects"] = await install_reporting_objects(high_value_threshold)
        results["steps"]["normalized"] = await migrate_to_normalized(
            dataset.sale_timestamps,
            dataset.product_categories,
            dataset.locations,
        )
        results["steps"]["star"] = await migrate_to_star()
        results["steps"]["reporting"] = await migrate_to_reporting()
        results["steps"]["audit"] = await audit_reporting()
        results["status"] = "success"

    except Exception as e:
        logger.error(f"Schema progression failed: {e}")
        results["status"] = "failed"
        results["error"] = str(e)
        raise

    finally:
        await close_database()

    return results


if __name__ == "__main__":
    import asyncio

    asyncio.run(schema_progression())
