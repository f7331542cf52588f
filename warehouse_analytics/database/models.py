"""
Database Models - Star Schema Design

The warehouse holds one fact table and two reference dimensions:

Fact Tables:
- FactSale: one row per order line

Dimension Tables:
- DimCustomer: customer attributes and demographics
- DimProduct: product catalog, categories and unit cost

Metadata:
- BulkLoadMetadata: append-only audit trail of bulk load attempts
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class LoadStatus(str, Enum):
    """Bulk load outcome recorded in the audit trail"""
    SUCCESS = "Success"
    FAILED = "Failed"


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class DimCustomer(Base):
    """
    Customer Dimension Table

    Reference dimension loaded once from CSV; never mutated by the pipeline.
    """
    __tablename__ = "dim_customers"

    customer_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    customer_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True)
    customer_number: Mapped[Optional[str]] = mapped_column(String(50))
    first_name: Mapped[Optional[str]] = mapped_column(String(50))
    last_name: Mapped[Optional[str]] = mapped_column(String(50))
    country: Mapped[Optional[str]] = mapped_column(String(50))
    marital_status: Mapped[Optional[str]] = mapped_column(String(50))
    gender: Mapped[Optional[str]] = mapped_column(String(50))
    birthdate: Mapped[Optional[date]] = mapped_column(Date)
    create_date: Mapped[Optional[date]] = mapped_column(Date)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    sales: Mapped[List["FactSale"]] = relationship(back_populates="customer")

    __table_args__ = (
        Index("idx_customers_country", "country"),
    )


class DimProduct(Base):
    """
    Product Dimension Table

    Product catalog with category hierarchy and unit cost.
    """
    __tablename__ = "dim_products"

    product_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True)
    product_number: Mapped[Optional[str]] = mapped_column(String(50))
    product_name: Mapped[Optional[str]] = mapped_column(String(50))
    category_id: Mapped[Optional[str]] = mapped_column(String(50))
    category: Mapped[Optional[str]] = mapped_column(String(50))
    subcategory: Mapped[Optional[str]] = mapped_column(String(50))
    maintenance: Mapped[Optional[str]] = mapped_column(String(50))
    cost: Mapped[Optional[int]] = mapped_column(Integer)
    product_line: Mapped[Optional[str]] = mapped_column(String(50))
    start_date: Mapped[Optional[date]] = mapped_column(Date)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    sales: Mapped[List["FactSale"]] = relationship(back_populates="product")

    __table_args__ = (
        Index("idx_products_category", "category"),
    )


# =============================================================================
# FACT TABLES
# =============================================================================

class FactSale(Base):
    """
    Sales Fact Table

    Grain: one row per order line. An order spans several lines, so
    order_number alone is not unique; the key is (order_number, product_key).
    """
    __tablename__ = "fact_sales"

    order_number: Mapped[str] = mapped_column(String(50), primary_key=True)
    product_key: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_products.product_key"), primary_key=True
    )
    customer_key: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dim_customers.customer_key")
    )

    order_date: Mapped[Optional[date]] = mapped_column(Date)
    shipping_date: Mapped[Optional[date]] = mapped_column(Date)
    due_date: Mapped[Optional[date]] = mapped_column(Date)

    # Measures
    sales_amount: Mapped[Optional[int]] = mapped_column(Integer)
    quantity: Mapped[Optional[int]] = mapped_column(Integer)
    price: Mapped[Optional[int]] = mapped_column(Integer)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    customer: Mapped[Optional["DimCustomer"]] = relationship(back_populates="sales")
    product: Mapped["DimProduct"] = relationship(back_populates="sales")

    __table_args__ = (
        Index("idx_sales_orderdate", "order_date"),
    )


# =============================================================================
# METADATA
# =============================================================================

class BulkLoadMetadata(Base):
    """
    Bulk Load Audit Table

    One row per load attempt, written once and never updated.
    """
    __tablename__ = "bulk_load_metadata"

    load_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    load_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    load_end: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rows_inserted: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)


# =============================================================================
# LOAD TARGETS
# =============================================================================

# Loadable tables in dependency order: dimensions before facts
LOAD_TARGETS: Dict[str, Type[Base]] = {
    "dim_customers": DimCustomer,
    "dim_products": DimProduct,
    "fact_sales": FactSale,
}

# Columns filled by the database rather than the source file
SERVER_MANAGED_COLUMNS = frozenset({"last_updated"})


def load_columns(table_name: str) -> List[Tuple[str, type]]:
    """
    Ordered (column, python type) pairs expected in a table's CSV file.

    Raises:
        KeyError: If the table is not a load target
    """
    table = LOAD_TARGETS[table_name].__table__
    return [
        (column.name, column.type.python_type)
        for column in table.columns
        if column.name not in SERVER_MANAGED_COLUMNS
    ]
