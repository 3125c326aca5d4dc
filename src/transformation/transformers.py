"""
Schema Migrator

Moves data forward through the schema design progression:

    raw -> 3NF -> star -> reporting

Each step reads its source tables, transforms them in polars and replaces
the contents of the target tables inside the caller's session.
"""

import time
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

import polars as pl
import structlog
from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import (
    Customer,
    CustomerInfo,
    DimCustomer,
    DimDate,
    DimLocation,
    DimProduct,
    FactSales,
    Location,
    Product,
    Product3NF,
    ProductCategory,
    Sale,
    Sale3NF,
    SalesReportingDenorm,
    SchemaVariant,
)
from src.ingestion.loader import fetch_frame, load_frame
from src.quality.validators import (
    ValidationResult,
    ValidationStatus,
    create_customers_validator,
    create_products_validator,
    create_reporting_validator,
    create_sales_validator,
)
from src.transformation.normalize import NormalizedFrames, normalize_raw
from src.transformation.reporting import build_reporting
from src.transformation.star import StarFrames, build_star

logger = structlog.get_logger(__name__)


class MigrationResult(BaseModel):
    """Result of one migration step"""
    source: SchemaVariant
    target: SchemaVariant
    input_rows: int
    output_rows: Dict[str, int] = Field(default_factory=dict)
    validation_status: Optional[ValidationStatus] = None
    started_at: datetime
    completed_at: datetime
    duration_seconds: float


_STATUS_ORDER = [ValidationStatus.PASSED, ValidationStatus.PARTIAL, ValidationStatus.FAILED]


def _check_coverage(label: str, keys: List, mapping: Optional[Mapping]) -> None:
    """
    Reject side information that does not describe the raw rows.

    ``None`` means no side information was given and the fallbacks apply.

    Raises:
        ValueError: If any key read from the raw tables is missing from the mapping
    """
    if mapping is None or not keys:
        return
    missing = sorted(set(keys) - set(mapping))
    if missing:
        raise ValueError(
            f"{label} cover {len(keys) - len(missing)} of {len(keys)} raw keys "
            f"(missing {missing[:5]}); migrate with the dataset that was seeded"
        )


async def _replace(session: AsyncSession, frames: List[Tuple[type, pl.DataFrame]]) -> Dict[str, int]:
    """Empty the targets child-first, then load parents first"""
    for model, _ in reversed(frames):
        await session.execute(delete(model.__table__))

    counts = {}
    for model, df in frames:
        result = await load_frame(session, model, df)
        counts[result.table] = result.rows_loaded
    await session.flush()
    return counts


class SchemaMigrator:
    """
    Orchestrates the raw -> 3NF -> star -> reporting progression.

    Example:
        async with get_db() as db:
            migrator = SchemaMigrator(db)
            results = await migrator.run_all(sale_timestamps=dataset.sale_timestamps)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def to_normalized(
        self,
        sale_timestamps: Optional[Mapping[int, datetime]] = None,
        product_categories: Optional[Mapping[int, str]] = None,
        locations: Optional[Mapping[str, Tuple[str, str]]] = None,
        default_timestamp: Optional[datetime] = None,
    ) -> MigrationResult:
        """
        Normalize the raw tables into the 3NF tables.

        Raises:
            ValueError: If the side information was built for a different dataset
        """
        started_at = datetime.utcnow()
        start = time.perf_counter()

        customers = await fetch_frame(self.session, CustomerInfo)
        products = await fetch_frame(self.session, Product)
        sales = await fetch_frame(self.session, Sale)

        _check_coverage("Sale timestamps", sales["sales_id"].to_list(), sale_timestamps)
        _check_coverage("Product categories", products["product_id"].to_list(), product_categories)
        _check_coverage(
            "Locations",
            customers["location"].str.strip_chars().drop_nulls().unique().to_list(),
            locations,
        )

        validations = {
            "customer_info": create_customers_validator().validate(customers),
            "products": create_products_validator().validate(products),
            "sales": create_sales_validator(customers, products).validate(sales),
        }
        for table, validation in validations.items():
            if validation.status != ValidationStatus.PASSED:
                logger.warning(
                    "Raw rows failed validation",
                    table=table,
                    status=validation.status.value,
                    failed_checks=validation.failed_checks,
                    warnings=validation.warning_count,
                )
        status = max((v.status for v in validations.values()), key=_STATUS_ORDER.index)

        frames: NormalizedFrames = normalize_raw(
            customers,
            products,
            sales,
            sale_timestamps=sale_timestamps,
            product_categories=product_categories,
            locations=locations,
            default_timestamp=default_timestamp,
        )

        counts = await _replace(self.session, [
            (Location, frames.locations),
            (Customer, frames.customers),
            (ProductCategory, frames.product_categories),
            (Product3NF, frames.products),
            (Sale3NF, frames.sales),
        ])

        return self._result(
            SchemaVariant.RAW, SchemaVariant.NORMALIZED,
            customers.height + products.height + sales.height,
            counts, started_at, start, status,
        )

    async def to_star(self) -> MigrationResult:
        """Build the star schema from the 3NF tables"""
        started_at = datetime.utcnow()
        start = time.perf_counter()

        frames = NormalizedFrames(
            locations=await fetch_frame(self.session, Location),
            customers=await fetch_frame(self.session, Customer),
            product_categories=await fetch_frame(self.session, ProductCategory),
            products=await fetch_frame(self.session, Product3NF),
            sales=await fetch_frame(self.session, Sale3NF),
        )
        star: StarFrames = build_star(frames)

        counts = await _replace(self.session, [
            (DimCustomer, star.dim_customer),
            (DimProduct, star.dim_product),
            (DimLocation, star.dim_location),
            (DimDate, star.dim_date),
            (FactSales, star.fact_sales),
        ])

        return self._result(
            SchemaVariant.NORMALIZED, SchemaVariant.STAR,
            sum(frames.row_counts.values()), counts, started_at, start,
        )

    async def to_reporting(self) -> MigrationResult:
        """Flatten the star schema into the reporting table"""
        started_at = datetime.utcnow()
        start = time.perf_counter()

        star = StarFrames(
            dim_customer=await fetch_frame(self.session, DimCustomer),
            dim_product=await fetch_frame(self.session, DimProduct),
            dim_location=await fetch_frame(self.session, DimLocation),
            dim_date=await fetch_frame(self.session, DimDate),
            fact_sales=await fetch_frame(self.session, FactSales),
        )
        rows = build_reporting(star)

        counts = await _replace(self.session, [(SalesReportingDenorm, rows)])

        return self._result(
            SchemaVariant.STAR, SchemaVariant.REPORTING,
            star.fact_sales.height, counts, started_at, start,
        )

    async def run_all(
        self,
        sale_timestamps: Optional[Mapping[int, datetime]] = None,
        product_categories: Optional[Mapping[int, str]] = None,
        locations: Optional[Mapping[str, Tuple[str, str]]] = None,
        default_timestamp: Optional[datetime] = None,
    ) -> List[MigrationResult]:
        """Run every step in order"""
        results = [
            await self.to_normalized(
                sale_timestamps=sale_timestamps,
                product_categories=product_categories,
                locations=locations,
                default_timestamp=default_timestamp,
            ),
            await self.to_star(),
            await self.to_reporting(),
        ]
        logger.info(
            "Schema progression complete",
            steps=len(results),
            seconds=round(sum(r.duration_seconds for r in results), 3),
        )
        return results

    async def audit_reporting_integrity(self) -> ValidationResult:
        """
        Check the reporting table against the 3NF customers and products.

        Orphans are reported as warnings: the table has no foreign keys to reject them.
        """
        rows = await fetch_frame(self.session, SalesReportingDenorm)
        customers = await fetch_frame(self.session, Customer)
        products = await fetch_frame(self.session, Product3NF)
        return create_reporting_validator(customers, products).validate(rows)

    @staticmethod
    def _result(
        source: SchemaVariant,
        target: SchemaVariant,
        input_rows: int,
        counts: Dict[str, int],
        started_at: datetime,
        start: float,
        validation_status: Optional[ValidationStatus] = None,
    ) -> MigrationResult:
        duration = time.perf_counter() - start
        logger.info(
            f"Migrated {source.value} -> {target.value}",
            input_rows=input_rows,
            output_rows=counts,
            seconds=round(duration, 3),
        )
        return MigrationResult(
            source=source,
            target=target,
            input_rows=input_rows,
            output_rows=counts,
            validation_status=validation_status,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            duration_seconds=round(duration, 4),
        )
