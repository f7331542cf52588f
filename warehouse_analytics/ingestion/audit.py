"""
Bulk Load Audit Trail

Append-only log of load attempts backed by the bulk_load_metadata table.
Each append commits in its own transaction, independent of the load it
describes, so failed loads are still recorded after their rollback.
"""

from datetime import datetime
from typing import List, Optional

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import Engine, insert, select
from sqlalchemy.orm import Session

from warehouse_analytics.database.models import BulkLoadMetadata, LoadStatus

logger = structlog.get_logger(__name__)


class LoadAuditRecord(BaseModel):
    """One bulk load attempt"""

    model_config = ConfigDict(from_attributes=True)

    load_id: Optional[int] = None
    table_name: str
    file_path: str
    load_start: datetime
    load_end: Optional[datetime] = None
    rows_inserted: int = 0
    status: LoadStatus
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.load_end is None:
            return None
        return (self.load_end - self.load_start).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status == LoadStatus.SUCCESS


class LoadAuditLog:
    """
    Append-only store of LoadAuditRecord rows.

    Records can be appended and read back; there is no update or delete.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def append(self, record: LoadAuditRecord) -> LoadAuditRecord:
        """Persist a record and return it with its assigned load_id."""
        values = record.model_dump(exclude={"load_id"})
        values["status"] = record.status.value

        with self.engine.begin() as conn:
            result = conn.execute(insert(BulkLoadMetadata).values(**values))
            load_id = result.inserted_primary_key[0]

        logger.debug(
            "Audit record appended",
            load_id=load_id,
            table=record.table_name,
            status=record.status.value,
        )
        return record.model_copy(update={"load_id": load_id})

    def records(self, table_name: Optional[str] = None) -> List[LoadAuditRecord]:
        """Audit records in insertion order, optionally for one table."""
        stmt = select(BulkLoadMetadata).order_by(BulkLoadMetadata.load_id)
        if table_name is not None:
            stmt = stmt.where(BulkLoadMetadata.table_name == table_name)

        with Session(self.engine) as session:
            rows = session.scalars(stmt).all()
            return [LoadAuditRecord.model_validate(row) for row in rows]

    def latest(self, table_name: str) -> Optional[LoadAuditRecord]:
        """Most recent attempt for a table, if any."""
        records = self.records(table_name)
        return records[-1] if records else None
