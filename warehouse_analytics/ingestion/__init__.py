"""
Data Ingestion Module
"""
from .audit import LoadAuditLog, LoadAuditRecord
from .bulk_loader import (
    BulkLoader,
    LoadError,
    SchemaMismatchError,
    UnknownTableError,
    create_bulk_loader,
)

__all__ = [
    "BulkLoader",
    "LoadAuditLog",
    "LoadAuditRecord",
    "LoadError",
    "SchemaMismatchError",
    "UnknownTableError",
    "create_bulk_loader",
]
