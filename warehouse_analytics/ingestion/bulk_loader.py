"""
Bulk Loader

Full-refresh loading of the warehouse tables from delimited files.

Each load is one transaction:
- truncate the target table
- read the file (header row skipped) and cast it to the table's column types
- insert every row
- count the resulting rows

The outcome is appended to the audit trail whether the load commits or rolls
back. Failures are re-raised to the caller; there is no retry.
"""

from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import polars as pl
import structlog
from sqlalchemy import Engine, delete, func, insert, select

from warehouse_analytics.config import get_settings, load_context
from warehouse_analytics.database.connection import get_engine
from warehouse_analytics.database.models import LOAD_TARGETS, LoadStatus, load_columns
from warehouse_analytics.ingestion.audit import LoadAuditLog, LoadAuditRecord

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"
NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A"]


class LoadError(Exception):
    """A bulk load failed and was rolled back"""

    def __init__(self, table_name: str, file_path: str, message: str):
        self.table_name = table_name
        self.file_path = file_path
        super().__init__(f"Load of {table_name} from {file_path} failed: {message}")


class UnknownTableError(LoadError):
    """The target is not one of the warehouse tables"""


class SchemaMismatchError(LoadError):
    """The file's columns do not line up with the target table"""


class BulkLoader:
    """
    Truncate-and-reload loader for the star schema tables.

    Example:
        loader = BulkLoader(engine)
        record = loader.load("dim_customers", "datasets/gold.dim_customers.csv")
        assert record.rows_inserted > 0
    """

    def __init__(
        self,
        engine: Engine,
        audit_log: Optional[LoadAuditLog] = None,
        delimiter: str = ",",
        encoding: str = "utf8",
    ):
        self.engine = engine
        self.audit_log = audit_log or LoadAuditLog(engine)
        self.delimiter = delimiter
        self.encoding = encoding

    def _read_file(self, table_name: str, file_path: Path) -> pl.DataFrame:
        """Read a file as text columns and cast it to the table's types."""
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        columns = load_columns(table_name)
        raw = pl.read_csv(
            file_path,
            separator=self.delimiter,
            encoding=self.encoding,
            has_header=True,
            infer_schema_length=0,
            null_values=NULL_VALUES,
        )

        if raw.width != len(columns):
            raise SchemaMismatchError(
                table_name,
                str(file_path),
                f"expected {len(columns)} columns, found {raw.width}",
            )

        # Columns bind by position, not by header name
        raw = raw.rename(dict(zip(raw.columns, [name for name, _ in columns])))
        return raw.select([_cast_column(name, python_type) for name, python_type in columns])

    def _warn_on_repeated_orders(self, df: pl.DataFrame) -> None:
        """Order numbers repeat across the lines of multi-line orders."""
        repeated = df.height - df["order_number"].n_unique()
        if repeated > 0:
            logger.warning(
                "order_number repeats across order lines; fact rows are keyed by (order_number, product_key)",
                repeated_rows=repeated,
            )

    def _audit_failure(
        self,
        table_name: str,
        file_path: Path,
        load_start: datetime,
        error: Exception,
    ) -> Optional[int]:
        """Record a failed load; the load error outranks an audit error."""
        try:
            record = self.audit_log.append(
                LoadAuditRecord(
                    table_name=table_name,
                    file_path=str(file_path),
                    load_start=load_start,
                    load_end=datetime.now(),
                    rows_inserted=0,
                    status=LoadStatus.FAILED,
                    error_message=str(error),
                )
            )
        except Exception as audit_error:
            logger.error(
                "Failed load could not be audited",
                error=str(audit_error),
                error_type=type(audit_error).__name__,
            )
            return None
        return record.load_id

    def load(self, table_name: str, file_path: Union[str, Path]) -> LoadAuditRecord:
        """
        Replace the contents of a table with the rows of a file.

        Args:
            table_name: One of dim_customers, dim_products, fact_sales
            file_path: Delimited file whose column order matches the table

        Returns:
            LoadAuditRecord: The persisted Success record

        Raises:
            LoadError: The load failed; the table keeps its previous rows
        """
        file_path = Path(file_path)
        with load_context(table_name, str(file_path)):
            return self._load(table_name, file_path)

    def _load(self, table_name: str, file_path: Path) -> LoadAuditRecord:
        load_start = datetime.now()
        logger.info("Starting data load")

        try:
            if table_name not in LOAD_TARGETS:
                raise UnknownTableError(
                    table_name,
                    str(file_path),
                    f"unknown table, expected one of {list(LOAD_TARGETS)}",
                )

            table = LOAD_TARGETS[table_name].__table__

            with self.engine.begin() as conn:
                conn.execute(delete(table))

                df = self._read_file(table_name, file_path)
                if table_name == "fact_sales":
                    self._warn_on_repeated_orders(df)

                rows = df.to_dicts()
                if rows:
                    conn.execute(insert(table), rows)

                row_count = conn.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()

        except Exception as e:
            load_id = self._audit_failure(table_name, file_path, load_start, e)
            logger.error(
                "Data load failed",
                error=str(e),
                error_type=type(e).__name__,
                load_id=load_id,
            )
            if isinstance(e, LoadError):
                raise
            raise LoadError(table_name, str(file_path), str(e)) from e

        record = self.audit_log.append(
            LoadAuditRecord(
                table_name=table_name,
                file_path=str(file_path),
                load_start=load_start,
                load_end=datetime.now(),
                rows_inserted=row_count,
                status=LoadStatus.SUCCESS,
            )
        )

        logger.info(
            "Data load completed",
            rows_inserted=row_count,
            duration_seconds=record.duration_seconds,
            load_id=record.load_id,
        )
        return record

    def clear_tables(self, table_names: Iterable[str]) -> List[str]:
        """
        Empty several warehouse tables in one transaction, facts first.

        Unknown names are ignored. A dimension still referenced by fact rows
        outside the batch cannot be cleared and raises IntegrityError.
        """
        requested = set(table_names)
        cleared = [name for name in reversed(list(LOAD_TARGETS)) if name in requested]

        with self.engine.begin() as conn:
            for table_name in cleared:
                conn.execute(delete(LOAD_TARGETS[table_name].__table__))

        logger.info("Cleared tables for reload", tables=cleared)
        return cleared

    def load_all(self, files: Mapping[str, Union[str, Path]]) -> List[LoadAuditRecord]:
        """
        Reload several tables, dimensions before facts.

        The tables are cleared together first, facts before dimensions, so a
        populated warehouse can be reloaded. Each table then commits on its
        own; the first failure propagates and later tables are not attempted.
        """
        order = list(LOAD_TARGETS)
        ordered = sorted(files, key=lambda t: order.index(t) if t in order else len(order))

        self.clear_tables(ordered)

        results = []
        for table_name in ordered:
            results.append(self.load(table_name, files[table_name]))

        logger.info(
            f"Loaded {len(results)} tables",
            rows_inserted={r.table_name: r.rows_inserted for r in results},
        )
        return results

    def load_directory(self, directory: Optional[Union[str, Path]] = None) -> List[LoadAuditRecord]:
        """Load all three tables from the configured file names in a directory."""
        data_lake = get_settings().data_lake
        directory = Path(directory or data_lake.raw_path)

        files: Dict[str, Path] = {
            table_name: directory / file_name
            for table_name, file_name in data_lake.table_files.items()
        }
        return self.load_all(files)


def _cast_column(name: str, python_type: type) -> pl.Expr:
    """Strict cast of a text column to its warehouse type."""
    column = pl.col(name)
    if python_type is int:
        return column.str.strip_chars().cast(pl.Int64, strict=True).alias(name)
    if python_type is date:
        return column.str.strip_chars().str.strptime(pl.Date, DATE_FORMAT, strict=True).alias(name)
    return column.alias(name)


def create_bulk_loader(engine: Optional[Engine] = None) -> BulkLoader:
    """Create a BulkLoader bound to the initialized database"""
    return BulkLoader(engine or get_engine())
