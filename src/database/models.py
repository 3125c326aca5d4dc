"""
Database Models - Schema Design Progression

This module declares the same sales domain four times, once per design stage:

Raw operational schema:
- CustomerInfo: customers with an inline location string
- Product: catalog rows that still carry an owning customer reference
- Sale: one customer buying one product

Third normal form:
- Location, Customer, ProductCategory, Product3NF, Sale3NF

Star schema:
- Dimensions: DimCustomer, DimProduct, DimLocation, DimDate
- Facts: FactSales

Reporting:
- SalesReportingDenorm: pre-joined rows with precomputed measures and
  composite indexes, and no foreign keys
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# NUMERIC(12, 2) in the database, float in Python
MONEY = Numeric(12, 2, asdecimal=False)


class SchemaVariant(str, Enum):
    """Schema design stages"""
    RAW = "raw"
    NORMALIZED = "3nf"
    STAR = "star"
    REPORTING = "reporting"


# =============================================================================
# RAW OPERATIONAL SCHEMA
# =============================================================================

class CustomerInfo(Base):
    """
    Raw customer table.

    Location is stored as free text on every row, so renaming a city means
    updating every customer that lives there.
    """
    __tablename__ = "customer_info"

    customer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(100))

    sales: Mapped[List["Sale"]] = relationship(back_populates="customer")


class Product(Base):
    """
    Raw product table.

    ``customer_id`` ties a product to a single customer, which is a modeling
    defect: products are sold to many customers through ``sales``. The 3NF
    variant drops it in favour of a category relation.
    """
    __tablename__ = "products"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[float] = mapped_column(MONEY, nullable=False)
    customer_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("customer_info.customer_id")
    )

    sales: Mapped[List["Sale"]] = relationship(back_populates="product")


class Sale(Base):
    """Raw sales table, the many-to-many link between customers and products"""
    __tablename__ = "sales"

    sales_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customer_info.customer_id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.product_id"), nullable=False
    )
    total_sales: Mapped[float] = mapped_column(MONEY, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    customer: Mapped["CustomerInfo"] = relationship(back_populates="sales")
    product: Mapped["Product"] = relationship(back_populates="sales")


# =============================================================================
# THIRD NORMAL FORM
# =============================================================================

class Location(Base):
    """Normalized place referenced by customers"""
    __tablename__ = "locations"

    location_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    location_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(100))
    country: Mapped[Optional[str]] = mapped_column(String(100))

    customers: Mapped[List["Customer"]] = relationship(back_populates="location")


class Customer(Base):
    """Normalized customer"""
    __tablename__ = "customers"

    customer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.location_id")
    )

    location: Mapped[Optional["Location"]] = relationship(back_populates="customers")
    sales: Mapped[List["Sale3NF"]] = relationship(back_populates="customer")


class ProductCategory(Base):
    """Grouping entity for products"""
    __tablename__ = "product_categories"

    category_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    category_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    products: Mapped[List["Product3NF"]] = relationship(back_populates="category")


class Product3NF(Base):
    """Normalized product without the owning customer reference"""
    __tablename__ = "products_3nf"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[float] = mapped_column(MONEY, nullable=False)
    cost_price: Mapped[Optional[float]] = mapped_column(MONEY)
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("product_categories.category_id")
    )

    category: Mapped[Optional["ProductCategory"]] = relationship(back_populates="products")
    sales: Mapped[List["Sale3NF"]] = relationship(back_populates="product")


class Sale3NF(Base):
    """Normalized sale with explicit unit price and timestamp"""
    __tablename__ = "sales_3nf"

    sales_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customers.customer_id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products_3nf.product_id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(MONEY, nullable=False)
    total_sales: Mapped[float] = mapped_column(MONEY, nullable=False)
    sale_timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    customer: Mapped["Customer"] = relationship(back_populates="sales")
    product: Mapped["Product3NF"] = relationship(back_populates="sales")

    __table_args__ = (
        Index("ix_sales_3nf_sale_timestamp", "sale_timestamp"),
    )


# =============================================================================
# STAR SCHEMA - DIMENSIONS
# =============================================================================

class DimCustomer(Base):
    """
    Customer Dimension Table

    Location attributes are copied onto the customer so analytical queries
    do not have to walk the location hierarchy.
    """
    __tablename__ = "dim_customer"

    customer_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    customer_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    location_name: Mapped[Optional[str]] = mapped_column(String(100))
    region: Mapped[Optional[str]] = mapped_column(String(100))
    country: Mapped[Optional[str]] = mapped_column(String(100))


class DimProduct(Base):
    """Product Dimension Table with the category name folded in"""
    __tablename__ = "dim_product"

    product_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    product_name: Mapped[str] = mapped_column(String(100), nullable=False)
    category_name: Mapped[Optional[str]] = mapped_column(String(100))
    unit_price: Mapped[float] = mapped_column(MONEY, nullable=False)
    unit_cost: Mapped[float] = mapped_column(MONEY, nullable=False)

    __table_args__ = (
        Index("ix_dim_product_category", "category_name"),
    )


class DimLocation(Base):
    """Location Dimension Table"""
    __tablename__ = "dim_location"

    location_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    location_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(100))
    country: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        Index("ix_dim_location_region", "region"),
    )


class DimDate(Base):
    """
    Date Dimension Table

    One row per calendar day touched by a sale, keyed YYYYMMDD.
    """
    __tablename__ = "dim_date"

    date_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    full_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Monday
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    month_name: Mapped[str] = mapped_column(String(20), nullable=False)
    quarter: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    is_weekend: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_dim_date_year_month", "year", "month"),
    )


# =============================================================================
# STAR SCHEMA - FACTS
# =============================================================================

class FactSales(Base):
    """
    Sales Fact Table

    Grain is one sale. Dimensions are referenced by surrogate key only.
    """
    __tablename__ = "fact_sales"

    sales_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    sales_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)

    customer_key: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_customer.customer_key"), nullable=False
    )
    product_key: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_product.product_key"), nullable=False
    )
    location_key: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_location.location_key"), nullable=False
    )
    date_key: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_date.date_key"), nullable=False
    )

    # Measures
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(MONEY, nullable=False)
    total_sales: Mapped[float] = mapped_column(MONEY, nullable=False)
    cost: Mapped[float] = mapped_column(MONEY, nullable=False)
    profit: Mapped[float] = mapped_column(MONEY, nullable=False)

    __table_args__ = (
        Index("ix_fact_sales_customer", "customer_key"),
        Index("ix_fact_sales_product", "product_key"),
        Index("ix_fact_sales_date", "date_key"),
    )


# =============================================================================
# REPORTING
# =============================================================================

class SalesReportingDenorm(Base):
    """
    Flattened reporting table.

    Customer, location and product attributes are copied onto every sale.
    No foreign keys are declared: rows load without lookups and reports read
    a single table, at the price of update anomalies when a source attribute
    changes.
    """
    __tablename__ = "sales_reporting_denorm"

    sales_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    customer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_name: Mapped[Optional[str]] = mapped_column(String(100))
    location_name: Mapped[Optional[str]] = mapped_column(String(100))
    region: Mapped[Optional[str]] = mapped_column(String(100))
    country: Mapped[Optional[str]] = mapped_column(String(100))

    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[Optional[str]] = mapped_column(String(100))
    category_name: Mapped[Optional[str]] = mapped_column(String(100))

    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    sale_year: Mapped[int] = mapped_column(Integer, nullable=False)
    sale_month: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(MONEY, nullable=False)
    total_sales: Mapped[float] = mapped_column(MONEY, nullable=False)
    cost: Mapped[float] = mapped_column(MONEY, nullable=False)
    profit: Mapped[float] = mapped_column(MONEY, nullable=False)

    # Precomputed fields
    profit_margin: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    monthly_rank: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_reporting_region_period", "region", "sale_year", "sale_month"),
        Index("ix_reporting_category_period", "category_name", "sale_year", "sale_month"),
        Index("ix_reporting_customer_date", "customer_id", "sale_date"),
    )


SCHEMA_MODELS = {
    SchemaVariant.RAW: (CustomerInfo, Product, Sale),
    SchemaVariant.NORMALIZED: (Location, Customer, ProductCategory, Product3NF, Sale3NF),
    SchemaVariant.STAR: (DimCustomer, DimProduct, DimLocation, DimDate, FactSales),
    SchemaVariant.REPORTING: (SalesReportingDenorm,),
}


def tables_for(variant: SchemaVariant) -> List[Table]:
    """Tables belonging to one schema variant, parents first"""
    return [model.__table__ for model in SCHEMA_MODELS[SchemaVariant(variant)]]
