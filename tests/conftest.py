"""
Test Suite Configuration
"""
from datetime import date
from pathlib import Path
from typing import Callable, Generator, List, Sequence

import polars as pl
import pytest
from sqlalchemy import Engine

from warehouse_analytics.analytics.snapshot import WarehouseSnapshot
from warehouse_analytics.config import Settings
from warehouse_analytics.database.connection import create_warehouse_engine
from warehouse_analytics.database.models import Base


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def test_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite warehouse with the schema created"""
    engine = create_warehouse_engine("sqlite://")
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write a delimited file from a header and rows of already-formatted values"""

    def _write(name: str, header: Sequence[str], rows: List[Sequence[object]], delimiter: str = ",") -> Path:
        path = tmp_path / name
        lines = [delimiter.join(header)]
        lines.extend(delimiter.join("" if v is None else str(v) for v in row) for row in rows)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_customers_df() -> pl.DataFrame:
    """Three customers; the third has no birthdate and only an undated order"""
    return pl.DataFrame({
        "customer_key": [1, 2, 3],
        "customer_id": [11000, 11001, 11002],
        "customer_number": ["AW00011000", "AW00011001", "AW00011002"],
        "first_name": ["John", "Jane", "Bob"],
        "last_name": ["Doe", "Smith", "Wilson"],
        "country": ["Australia", "Canada", "Australia"],
        "marital_status": ["Married", "Single", "Single"],
        "gender": ["Male", "Female", "Male"],
        "birthdate": [date(1990, 5, 1), date(1970, 1, 1), None],
        "create_date": [date(2022, 1, 1), date(2022, 6, 1), date(2023, 1, 1)],
    })


@pytest.fixture
def sample_products_df() -> pl.DataFrame:
    """Three products; the third has never sold"""
    return pl.DataFrame({
        "product_key": [10, 11, 12],
        "product_id": [210, 211, 212],
        "product_number": ["BK-R93R", "HL-U509", "CA-1098"],
        "product_name": ["Road-150 Red", "Sport-100 Helmet", "AWC Logo Cap"],
        "category_id": ["BI_RB", "AC_HE", "CL_CA"],
        "category": ["Bikes", "Accessories", "Clothing"],
        "subcategory": ["Road Bikes", "Helmets", "Caps"],
        "maintenance": ["Yes", "No", "No"],
        "cost": [500, 20, 5],
        "product_line": ["Road", "Other Sales", "Other Sales"],
        "start_date": [date(2020, 1, 1), date(2020, 1, 1), date(2021, 1, 1)],
    })


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """
    Five sales lines:
    SO1 is a two-line order in Jan 2023, SO2 is Feb 2023, SO3 is Mar 2024
    and SO4 has no dates at all.
    """
    return pl.DataFrame({
        "order_number": ["SO1", "SO1", "SO2", "SO3", "SO4"],
        "product_key": [10, 11, 10, 11, 11],
        "customer_key": [1, 1, 2, 1, 3],
        "order_date": [date(2023, 1, 15), date(2023, 1, 15), date(2023, 2, 10), date(2024, 3, 5), None],
        "shipping_date": [date(2023, 1, 20), date(2023, 1, 20), date(2023, 2, 15), date(2024, 3, 10), None],
        "due_date": [date(2023, 1, 27), date(2023, 1, 27), date(2023, 2, 22), date(2024, 3, 17), None],
        "sales_amount": [1000, 60, 1000, 30, 30],
        "quantity": [1, 2, 1, 1, 1],
        "price": [1000, 30, 1000, 30, 30],
    })


@pytest.fixture
def sample_snapshot(sample_customers_df, sample_products_df, sample_sales_df) -> WarehouseSnapshot:
    """Snapshot built from the sample frames"""
    return WarehouseSnapshot.from_frames(
        customers=sample_customers_df,
        products=sample_products_df,
        sales=sample_sales_df,
    )


@pytest.fixture
def monthly_snapshot(sample_customers_df, sample_products_df) -> WarehouseSnapshot:
    """Three consecutive months of sales: 100, 150 and 50"""
    sales = pl.DataFrame({
        "order_number": ["SO10", "SO11", "SO12"],
        "product_key": [11, 11, 11],
        "customer_key": [1, 2, 1],
        "order_date": [date(2024, 1, 10), date(2024, 2, 10), date(2024, 3, 10)],
        "sales_amount": [100, 150, 50],
        "quantity": [1, 1, 1],
        "price": [100, 150, 50],
    })
    return WarehouseSnapshot.from_frames(
        customers=sample_customers_df,
        products=sample_products_df,
        sales=sales,
    )
