"""
Prefect Workflow Orchestration - Warehouse Batch ETL

Batch workflow for the sales warehouse:
- Full-refresh load of the dimension and fact tables (cleared facts first,
  loaded dimensions first)
- Customer and product report builds from a fresh snapshot
- Report publishing to the curated zone

A failed load stops the flow; it is audited by the loader and not retried.
"""

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import polars as pl
from prefect import flow, get_run_logger, task

from warehouse_analytics.analytics import ReportPublisher, WarehouseSnapshot
from warehouse_analytics.analytics import build_reports as build_report_frames
from warehouse_analytics.config import configure_logging, get_settings
from warehouse_analytics.database import LOAD_TARGETS, get_engine, init_database
from warehouse_analytics.ingestion import BulkLoader


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="clear_tables",
    description="Empty the warehouse tables, facts before dimensions",
    retries=0,
)
def clear_tables(table_names: List[str]) -> List[str]:
    """Clear every table about to be reloaded"""
    logger = get_run_logger()

    cleared = BulkLoader(get_engine()).clear_tables(table_names)
    logger.info(f"Cleared {', '.join(cleared)}")
    return cleared


@task(
    name="load_table",
    description="Replace a warehouse table with the rows of a source file",
    retries=0,
)
def load_table(table_name: str, file_path: str) -> dict:
    """Bulk load one table and return its audit record"""
    logger = get_run_logger()

    record = BulkLoader(get_engine()).load(table_name, file_path)
    logger.info(
        f"Loaded {record.rows_inserted} rows into {table_name} "
        f"in {record.duration_seconds:.2f}s (load_id={record.load_id})"
    )
    return record.model_dump(mode="json")


@task(
    name="build_reports",
    description="Build the customer and product reports",
)
def build_reports(as_of: Optional[date] = None) -> Dict[str, pl.DataFrame]:
    """Snapshot the warehouse and assemble both reports"""
    logger = get_run_logger()

    snapshot = WarehouseSnapshot.from_engine(get_engine())
    reports = build_report_frames(snapshot, as_of)

    for name, df in reports.items():
        logger.info(f"Built {name}: {df.height} rows")
    return reports


@task(
    name="publish_reports",
    description="Write report files to the curated zone",
)
def publish_reports(reports: Dict[str, pl.DataFrame], output_path: Optional[str] = None) -> Dict[str, str]:
    """Publish each report as parquet"""
    logger = get_run_logger()

    paths = ReportPublisher(output_path).publish_all(reports)
    logger.info(f"Published {len(paths)} reports")
    return paths


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="warehouse_batch_etl",
    description="Load the sales warehouse and publish its reports",
)
def warehouse_batch_etl(
    source_dir: Optional[str] = None,
    output_path: Optional[str] = None,
    as_of: Optional[date] = None,
) -> dict:
    """
    Warehouse batch ETL pipeline.

    Steps:
    1. Clear fact_sales, then the dimensions
    2. Load dim_customers, dim_products, then fact_sales
    3. Build customer and product reports
    4. Publish reports
    """
    logger = get_run_logger()
    settings = get_settings()

    source = Path(source_dir or settings.data_lake.raw_path)
    logger.info(f"Starting warehouse batch ETL from {source}")

    results = {"source_dir": str(source), "loads": {}}

    try:
        clear_tables(list(LOAD_TARGETS))

        for table_name in LOAD_TARGETS:
            file_path = source / settings.data_lake.table_files[table_name]
            results["loads"][table_name] = load_table(table_name, str(file_path))

        reports = build_reports(as_of)
        results["reports"] = publish_reports(reports, output_path)
        results["status"] = "success"

    except Exception as e:
        logger.error(f"Warehouse batch ETL failed: {e}")
        results["status"] = "failed"
        results["error"] = str(e)
        raise

    return results


if __name__ == "__main__":
    configure_logging()
    init_database()
    warehouse_batch_etl()
