"""
Warehouse Snapshot

An in-memory copy of the star schema taken at one point in time. Every
analysis reads from a snapshot, so a report is a pure function of the
fact and dimension rows it was given.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Type

import polars as pl
import structlog
from sqlalchemy import Engine, select

from warehouse_analytics.database.models import Base, DimCustomer, DimProduct, FactSale

logger = structlog.get_logger(__name__)

POLARS_TYPES: Dict[type, pl.DataType] = {
    int: pl.Int64,
    str: pl.Utf8,
    date: pl.Date,
    datetime: pl.Datetime,
}


def model_schema(model: Type[Base]) -> Dict[str, pl.DataType]:
    """Polars schema for a mapped table"""
    return {
        column.name: POLARS_TYPES[column.type.python_type]
        for column in model.__table__.columns
    }


@dataclass(frozen=True)
class WarehouseSnapshot:
    """The three warehouse tables as polars frames"""

    customers: pl.DataFrame
    products: pl.DataFrame
    sales: pl.DataFrame

    @classmethod
    def from_engine(cls, engine: Engine) -> "WarehouseSnapshot":
        """Read all three tables inside one transaction."""
        frames = {}
        with engine.connect() as conn:
            for name, model in (
                ("customers", DimCustomer),
                ("products", DimProduct),
                ("sales", FactSale),
            ):
                rows = conn.execute(select(model.__table__)).mappings().all()
                frames[name] = pl.DataFrame(
                    [dict(row) for row in rows],
                    schema=model_schema(model),
                )

        logger.info(
            "Warehouse snapshot taken",
            customers=frames["customers"].height,
            products=frames["products"].height,
            sales=frames["sales"].height,
        )
        return cls(**frames)

    @classmethod
    def from_frames(
        cls,
        customers: pl.DataFrame,
        products: pl.DataFrame,
        sales: pl.DataFrame,
    ) -> "WarehouseSnapshot":
        """Build a snapshot from frames, filling in any missing table columns."""
        return cls(
            customers=_conform(customers, DimCustomer),
            products=_conform(products, DimProduct),
            sales=_conform(sales, FactSale),
        )

    def sales_detail(self) -> pl.DataFrame:
        """
        Sales lines left-joined to their product and customer attributes.

        Lines whose keys have no dimension row keep null attributes.
        """
        products = self.products.drop("last_updated", strict=False)
        customers = self.customers.drop("last_updated", strict=False)
        return (
            self.sales.drop("last_updated", strict=False)
            .join(products, on="product_key", how="left")
            .join(customers, on="customer_key", how="left")
        )


def _conform(df: pl.DataFrame, model: Type[Base]) -> pl.DataFrame:
    """Cast to the table schema, adding absent columns as nulls."""
    schema = model_schema(model)
    if not any(name in df.columns for name in schema):
        return pl.DataFrame(schema=schema)
    return df.select([
        pl.col(name).cast(dtype) if name in df.columns else pl.lit(None, dtype=dtype).alias(name)
        for name, dtype in schema.items()
    ])
