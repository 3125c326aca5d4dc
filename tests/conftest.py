"""
Test Suite Configuration
"""
import pytest
from typing import AsyncGenerator

import polars as pl
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.config import Settings
from src.data.generators import RawDataset, reference_dataset
from src.database.bootstrap import bootstrap_database
from src.database.connection import build_engine, create_schemas
from src.ingestion.loader import load_raw_dataset

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def dataset() -> RawDataset:
    """The fixed reference dataset"""
    return reference_dataset()


@pytest.fixture
async def empty_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database with every schema created and nothing else"""
    engine = build_engine(TEST_DATABASE_URL)
    await create_schemas(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database with schemas, the view and the recommended indexes"""
    engine = build_engine(TEST_DATABASE_URL)
    await bootstrap_database(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session on a bootstrapped database with no rows"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def seeded_db(test_db, dataset) -> AsyncSession:
    """Session with the reference dataset committed to the raw tables"""
    await load_raw_dataset(test_db, dataset)
    await test_db.commit()
    return test_db


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """Raw sales rows with one bad quantity and one orphaned customer"""
    return pl.DataFrame({
        "sales_id": [1, 2, 3],
        "customer_id": [1, 2, 99],
        "product_id": [101, 102, 101],
        "total_sales": [1200.0, 800.0, 2400.0],
        "quantity": [1, 0, 2],
    })
