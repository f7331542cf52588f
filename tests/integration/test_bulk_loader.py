"""
Integration Tests - Bulk Loader and Audit Trail
"""
from datetime import date

import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError, OperationalError

from warehouse_analytics.analytics.reports import build_customer_report
from warehouse_analytics.analytics.snapshot import WarehouseSnapshot
from warehouse_analytics.data import DataGenerator
from warehouse_analytics.database.models import DimCustomer, FactSale, LoadStatus, load_columns
from warehouse_analytics.ingestion import (
    BulkLoader,
    LoadAuditLog,
    LoadError,
    SchemaMismatchError,
    UnknownTableError,
)

CUSTOMER_HEADER = [name for name, _ in load_columns("dim_customers")]
PRODUCT_HEADER = [name for name, _ in load_columns("dim_products")]
SALES_HEADER = [name for name, _ in load_columns("fact_sales")]

CUSTOMER_ROWS = [
    [1, 11000, "AW00011000", "Jon", "Yang", "Australia", "Married", "Male", "1971-10-06", "2025-10-06"],
    [2, 11001, "AW00011001", "Eugene", "Huang", "Australia", "Single", "Male", "1976-05-10", "2025-10-07"],
    [3, 11002, "AW00011002", "Ruben", "Torres", "Australia", "Married", "Male", "1971-02-09", "2025-10-08"],
]
PRODUCT_ROWS = [
    [10, 210, "FR-R92B-58", "HL Road Frame - Black- 58", "CO_RF", "Components", "Road Frames", "No", 868, "Road", "2023-07-01"],
]
SALES_ROWS = [
    ["SO43697", 10, 1, "2024-12-29", "2025-01-05", "2025-01-10", 3578, 1, 3578],
    ["SO43698", 10, 2, "2024-12-29", "2025-01-05", "2025-01-10", 3400, 1, 3400],
]


def _count(engine, model) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(model)).scalar_one()


class TestBulkLoad:
    """Tests for BulkLoader.load"""

    def test_load_customers(self, test_engine, write_csv):
        path = write_csv("gold.dim_customers.csv", CUSTOMER_HEADER, CUSTOMER_ROWS)

        record = BulkLoader(test_engine).load("dim_customers", path)

        assert record.status == LoadStatus.SUCCESS
        assert record.rows_inserted == 3
        assert record.load_id is not None
        assert record.load_end >= record.load_start
        assert _count(test_engine, DimCustomer) == 3

        audit = LoadAuditLog(test_engine).records()
        assert len(audit) == 1
        assert audit[0].status == LoadStatus.SUCCESS
        assert audit[0].rows_inserted == 3

    def test_values_are_typed(self, test_engine, write_csv):
        path = write_csv("customers.csv", CUSTOMER_HEADER, CUSTOMER_ROWS)
        BulkLoader(test_engine).load("dim_customers", path)

        with test_engine.connect() as conn:
            row = conn.execute(
                select(DimCustomer.birthdate, DimCustomer.customer_id).where(DimCustomer.customer_key == 1)
            ).one()

        assert row.birthdate == date(1971, 10, 6)
        assert row.customer_id == 11000

    def test_reload_replaces_rows(self, test_engine, write_csv):
        loader = BulkLoader(test_engine)
        loader.load("dim_customers", write_csv("a.csv", CUSTOMER_HEADER, CUSTOMER_ROWS))

        record = loader.load("dim_customers", write_csv("b.csv", CUSTOMER_HEADER, CUSTOMER_ROWS[:1]))

        assert record.rows_inserted == 1
        assert _count(test_engine, DimCustomer) == 1

    def test_header_only_file(self, test_engine, write_csv):
        record = BulkLoader(test_engine).load("dim_customers", write_csv("empty.csv", CUSTOMER_HEADER, []))

        assert record.status == LoadStatus.SUCCESS
        assert record.rows_inserted == 0

    def test_custom_delimiter(self, test_engine, write_csv):
        path = write_csv("pipe.csv", CUSTOMER_HEADER, CUSTOMER_ROWS, delimiter="|")

        record = BulkLoader(test_engine, delimiter="|").load("dim_customers", path)

        assert record.rows_inserted == 3


class TestFailedLoads:
    """Failed loads roll back and are still audited"""

    def test_wrong_column_count(self, test_engine, write_csv):
        path = write_csv("bad.csv", CUSTOMER_HEADER[:4], [row[:4] for row in CUSTOMER_ROWS])

        with pytest.raises(SchemaMismatchError):
            BulkLoader(test_engine).load("dim_customers", path)

        assert _count(test_engine, DimCustomer) == 0

        record = LoadAuditLog(test_engine).latest("dim_customers")
        assert record.status == LoadStatus.FAILED
        assert record.rows_inserted == 0
        assert "expected 10 columns" in record.error_message

    def test_failed_reload_keeps_previous_rows(self, test_engine, write_csv):
        loader = BulkLoader(test_engine)
        loader.load("dim_customers", write_csv("good.csv", CUSTOMER_HEADER, CUSTOMER_ROWS))

        bad_rows = [CUSTOMER_ROWS[0][:8] + ["not-a-date", "2025-10-06"]]
        with pytest.raises(LoadError):
            loader.load("dim_customers", write_csv("bad.csv", CUSTOMER_HEADER, bad_rows))

        assert _count(test_engine, DimCustomer) == 3
        statuses = [r.status for r in LoadAuditLog(test_engine).records("dim_customers")]
        assert statuses == [LoadStatus.SUCCESS, LoadStatus.FAILED]

    def test_non_numeric_key(self, test_engine, write_csv):
        bad_rows = [["x"] + CUSTOMER_ROWS[0][1:]]

        with pytest.raises(LoadError):
            BulkLoader(test_engine).load("dim_customers", write_csv("bad.csv", CUSTOMER_HEADER, bad_rows))

    def test_missing_file(self, test_engine, tmp_path):
        with pytest.raises(LoadError) as exc_info:
            BulkLoader(test_engine).load("dim_customers", tmp_path / "missing.csv")

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert LoadAuditLog(test_engine).latest("dim_customers").status == LoadStatus.FAILED

    def test_unknown_table(self, test_engine, write_csv):
        path = write_csv("x.csv", CUSTOMER_HEADER, CUSTOMER_ROWS)

        with pytest.raises(UnknownTableError):
            BulkLoader(test_engine).load("dim_stores", path)

        assert LoadAuditLog(test_engine).latest("dim_stores").status == LoadStatus.FAILED

    def test_audit_failure_keeps_load_error(self, test_engine, tmp_path):
        """An unavailable audit trail does not mask why the load failed"""

        class UnavailableAuditLog(LoadAuditLog):
            def append(self, record):
                raise OperationalError("INSERT INTO bulk_load_metadata", {}, Exception("database is down"))

        loader = BulkLoader(test_engine, audit_log=UnavailableAuditLog(test_engine))

        with pytest.raises(LoadError) as exc_info:
            loader.load("dim_customers", tmp_path / "missing.csv")

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_fact_without_dimensions(self, test_engine, write_csv):
        path = write_csv("sales.csv", SALES_HEADER, SALES_ROWS)

        with pytest.raises(LoadError):
            BulkLoader(test_engine).load("fact_sales", path)

        assert _count(test_engine, FactSale) == 0


class TestStarSchemaLoad:
    """Loading all tables and reading them back"""

    def test_load_all_orders_dimensions_first(self, test_engine, write_csv):
        files = {
            "fact_sales": write_csv("sales.csv", SALES_HEADER, SALES_ROWS),
            "dim_products": write_csv("products.csv", PRODUCT_HEADER, PRODUCT_ROWS),
            "dim_customers": write_csv("customers.csv", CUSTOMER_HEADER, CUSTOMER_ROWS),
        }

        records = BulkLoader(test_engine).load_all(files)

        assert [r.table_name for r in records] == ["dim_customers", "dim_products", "fact_sales"]
        assert all(r.succeeded for r in records)
        assert _count(test_engine, FactSale) == 2

    def test_foreign_keys_are_enforced(self, test_engine):
        with pytest.raises(IntegrityError):
            with test_engine.begin() as conn:
                conn.execute(insert(FactSale).values(order_number="SO1", product_key=99))

    def test_report_from_loaded_warehouse(self, test_engine, write_csv):
        BulkLoader(test_engine).load_all({
            "dim_customers": write_csv("customers.csv", CUSTOMER_HEADER, CUSTOMER_ROWS),
            "dim_products": write_csv("products.csv", PRODUCT_HEADER, PRODUCT_ROWS),
            "fact_sales": write_csv("sales.csv", SALES_HEADER, SALES_ROWS),
        })

        snapshot = WarehouseSnapshot.from_engine(test_engine)
        report = build_customer_report(snapshot, as_of=date(2025, 1, 1))

        assert report["customer_key"].to_list() == [1, 2]
        assert report["total_sales"].to_list() == [3578, 3400]
        assert report["recency"].to_list() == [1, 1]

    def test_generated_dataset_loads(self, test_engine, tmp_path):
        generator = DataGenerator(output_dir=str(tmp_path), seed=7)
        data = generator.generate_all(n_customers=20, n_products=10, n_orders=50)

        records = BulkLoader(test_engine).load_directory(tmp_path)

        assert [r.rows_inserted for r in records] == [
            data["dim_customers"].height,
            data["dim_products"].height,
            data["fact_sales"].height,
        ]

    def test_load_all_reloads_populated_warehouse(self, test_engine, write_csv):
        loader = BulkLoader(test_engine)
        loader.load_all({
            "dim_customers": write_csv("customers.csv", CUSTOMER_HEADER, CUSTOMER_ROWS),
            "dim_products": write_csv("products.csv", PRODUCT_HEADER, PRODUCT_ROWS),
            "fact_sales": write_csv("sales.csv", SALES_HEADER, SALES_ROWS),
        })

        records = loader.load_all({
            "dim_customers": write_csv("customers_2.csv", CUSTOMER_HEADER, CUSTOMER_ROWS[:2]),
            "dim_products": write_csv("products_2.csv", PRODUCT_HEADER, PRODUCT_ROWS),
            "fact_sales": write_csv("sales_2.csv", SALES_HEADER, SALES_ROWS[:1]),
        })

        assert [r.rows_inserted for r in records] == [2, 1, 1]
        assert _count(test_engine, DimCustomer) == 2
        assert _count(test_engine, FactSale) == 1
        assert [r.status for r in LoadAuditLog(test_engine).records("fact_sales")] == [
            LoadStatus.SUCCESS,
            LoadStatus.SUCCESS,
        ]

    def test_clear_tables_empties_facts_first(self, test_engine, write_csv):
        loader = BulkLoader(test_engine)
        loader.load_all({
            "dim_customers": write_csv("customers.csv", CUSTOMER_HEADER, CUSTOMER_ROWS),
            "dim_products": write_csv("products.csv", PRODUCT_HEADER, PRODUCT_ROWS),
            "fact_sales": write_csv("sales.csv", SALES_HEADER, SALES_ROWS),
        })

        cleared = loader.clear_tables(["dim_customers", "fact_sales", "dim_stores"])

        assert cleared == ["fact_sales", "dim_customers"]
        assert _count(test_engine, FactSale) == 0
        assert _count(test_engine, DimCustomer) == 0
