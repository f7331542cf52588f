"""
Database Module
"""
from .connection import (
    close_database,
    create_warehouse_engine,
    get_db,
    get_engine,
    init_database,
)
from .models import (
    Base,
    BulkLoadMetadata,
    DimCustomer,
    DimProduct,
    FactSale,
    LOAD_TARGETS,
    LoadStatus,
    load_columns,
)

__all__ = [
    "init_database",
    "close_database",
    "create_warehouse_engine",
    "get_db",
    "get_engine",
    "Base",
    "BulkLoadMetadata",
    "DimCustomer",
    "DimProduct",
    "FactSale",
    "LOAD_TARGETS",
    "LoadStatus",
    "load_columns",
]
