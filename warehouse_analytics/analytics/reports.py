"""
Report Assembly

Customer and product reports: one row per dimension key combining the
aggregated sales metrics with their segment labels. Reports are recomputed
from a snapshot on every call; publishing writes a timestamped parquet copy
to the curated zone.
"""

from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional

import polars as pl
import structlog

from warehouse_analytics.analytics.segmentation import (
    AGE_GROUP,
    CUSTOMER_SEGMENT,
    PRODUCT_REACH_TIER,
    PRODUCT_REVENUE_TIER,
)
from warehouse_analytics.analytics.snapshot import WarehouseSnapshot
from warehouse_analytics.config import get_settings

logger = structlog.get_logger(__name__)

CUSTOMER_REPORT_COLUMNS = [
    "customer_key",
    "customer_number",
    "customer_name",
    "age",
    "age_group",
    "customer_segment",
    "first_order_date",
    "last_order_date",
    "recency",
    "tenure",
    "total_orders",
    "total_sales",
    "total_quantity",
    "total_products",
    "lifespan",
    "avg_order_value",
    "avg_monthly_spend",
    "avg_quantity_per_order",
]

PRODUCT_REPORT_COLUMNS = [
    "product_key",
    "product_name",
    "category",
    "subcategory",
    "cost",
    "first_sale_date",
    "last_sale_date",
    "recency_in_months",
    "revenue_segment",
    "customer_segment",
    "lifespan",
    "total_orders",
    "total_sales",
    "total_quantity",
    "total_customers",
    "avg_selling_price",
    "total_cost",
    "gross_profit",
    "profit_margin_percent",
    "product_roi_percent",
    "avg_order_revenue",
    "avg_monthly_revenue",
]


def months_between(start: pl.Expr, end: pl.Expr) -> pl.Expr:
    """Calendar month boundaries crossed from start to end."""
    return (
        (end.dt.year().cast(pl.Int64) - start.dt.year().cast(pl.Int64)) * 12
        + (end.dt.month().cast(pl.Int64) - start.dt.month().cast(pl.Int64))
    )


def years_between(start: pl.Expr, end: pl.Expr) -> pl.Expr:
    """Calendar year boundaries crossed from start to end."""
    return end.dt.year().cast(pl.Int64) - start.dt.year().cast(pl.Int64)


def safe_ratio(numerator: str, denominator: str, otherwise: pl.Expr, ndigits: int = 2) -> pl.Expr:
    """numerator / denominator, or `otherwise` when the denominator is not positive."""
    return (
        pl.when(pl.col(denominator) > 0)
        .then(pl.col(numerator) / pl.col(denominator))
        .otherwise(otherwise)
        .cast(pl.Float64)
        .round(ndigits)
    )


def _dated_sales(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    return snapshot.sales_detail().filter(pl.col("order_date").is_not_null())


def build_customer_report(snapshot: WarehouseSnapshot, as_of: Optional[date] = None) -> pl.DataFrame:
    """
    Customer behaviour, demographics and segment per customer.

    Args:
        snapshot: Warehouse tables
        as_of: Reference date for age, recency and tenure (default: today)

    Returns:
        DataFrame with CUSTOMER_REPORT_COLUMNS, ordered by customer_key
    """
    as_of = as_of or date.today()
    reference = pl.lit(as_of, dtype=pl.Date)

    base = _dated_sales(snapshot).with_columns(
        pl.concat_str(
            [pl.col("first_name"), pl.col("last_name")],
            separator=" ",
            ignore_nulls=True,
        ).alias("customer_name"),
        years_between(pl.col("birthdate"), reference).alias("age"),
    )

    report = (
        base.group_by(["customer_key", "customer_number", "customer_name", "age"])
        .agg(
            pl.col("order_number").drop_nulls().n_unique().alias("total_orders"),
            pl.col("sales_amount").sum().alias("total_sales"),
            pl.col("quantity").sum().alias("total_quantity"),
            pl.col("product_key").drop_nulls().n_unique().alias("total_products"),
            pl.col("order_date").min().alias("first_order_date"),
            pl.col("order_date").max().alias("last_order_date"),
        )
        .with_columns(
            months_between(pl.col("first_order_date"), pl.col("last_order_date")).alias("lifespan"),
            months_between(pl.col("last_order_date"), reference).alias("recency"),
            months_between(pl.col("first_order_date"), reference).alias("tenure"),
        )
        .with_columns(
            safe_ratio("total_sales", "total_orders", pl.lit(0.0)).alias("avg_order_value"),
            safe_ratio("total_sales", "lifespan", pl.col("total_sales")).alias("avg_monthly_spend"),
            safe_ratio("total_quantity", "total_orders", pl.lit(0.0)).alias("avg_quantity_per_order"),
        )
    )

    report = AGE_GROUP.apply(report)
    report = CUSTOMER_SEGMENT.apply(report)
    report = report.select(CUSTOMER_REPORT_COLUMNS).sort("customer_key", nulls_last=True)

    logger.info("Customer report built", rows=report.height, as_of=str(as_of))
    return report


def build_product_report(snapshot: WarehouseSnapshot, as_of: Optional[date] = None) -> pl.DataFrame:
    """
    Sales, reach and profitability per product.

    Args:
        snapshot: Warehouse tables
        as_of: Reference date for recency (default: today)

    Returns:
        DataFrame with PRODUCT_REPORT_COLUMNS, ordered by product_key
    """
    as_of = as_of or date.today()
    reference = pl.lit(as_of, dtype=pl.Date)

    line_cost = pl.col("cost").cast(pl.Float64) * pl.col("quantity")
    base = _dated_sales(snapshot).with_columns(
        pl.when(pl.col("quantity") == 0)
        .then(None)
        .otherwise(pl.col("sales_amount") / pl.col("quantity"))
        .alias("unit_revenue"),
        line_cost.alias("line_cost"),
        (pl.col("sales_amount") - line_cost).alias("line_profit"),
    )

    report = (
        base.group_by(["product_key", "product_name", "category", "subcategory", "cost"])
        .agg(
            pl.col("order_date").min().alias("first_sale_date"),
            pl.col("order_date").max().alias("last_sale_date"),
            pl.col("order_number").drop_nulls().n_unique().alias("total_orders"),
            pl.col("customer_key").drop_nulls().n_unique().alias("total_customers"),
            pl.col("sales_amount").sum().alias("total_sales"),
            pl.col("quantity").sum().alias("total_quantity"),
            pl.col("unit_revenue").mean().round(2).alias("avg_selling_price"),
            pl.col("line_cost").sum().alias("total_cost"),
            pl.col("line_profit").sum().alias("gross_profit"),
        )
        .with_columns(
            months_between(pl.col("first_sale_date"), pl.col("last_sale_date")).alias("lifespan"),
            months_between(pl.col("last_sale_date"), reference).alias("recency_in_months"),
            (pl.col("gross_profit") * 100).alias("_profit_pct"),
        )
        .with_columns(
            safe_ratio("_profit_pct", "total_sales", pl.lit(0.0)).alias("profit_margin_percent"),
            safe_ratio("_profit_pct", "total_cost", pl.lit(0.0)).alias("product_roi_percent"),
            safe_ratio("total_sales", "total_orders", pl.lit(0.0)).alias("avg_order_revenue"),
            safe_ratio("total_sales", "lifespan", pl.col("total_sales")).alias("avg_monthly_revenue"),
        )
    )

    report = PRODUCT_REVENUE_TIER.apply(report)
    report = PRODUCT_REACH_TIER.apply(report)
    report = report.select(PRODUCT_REPORT_COLUMNS).sort("product_key", nulls_last=True)

    logger.info("Product report built", rows=report.height, as_of=str(as_of))
    return report


def build_reports(snapshot: WarehouseSnapshot, as_of: Optional[date] = None) -> Dict[str, pl.DataFrame]:
    """Both reports, keyed by their view names."""
    return {
        "report_customers": build_customer_report(snapshot, as_of),
        "report_products": build_product_report(snapshot, as_of),
    }


class ReportPublisher:
    """
    Writes report frames to the curated zone.

    Example:
        publisher = ReportPublisher()
        path = publisher.publish("report_customers", customer_report)
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = Path(output_path or get_settings().data_lake.curated_path)
        self.output_path.mkdir(parents=True, exist_ok=True)

    def publish(self, name: str, df: pl.DataFrame) -> str:
        """Write one report as a timestamped parquet file and return its path."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_file = self.output_path / f"{name}_{timestamp}.parquet"

        df.write_parquet(output_file)
        logger.info("Report published", report=name, rows=df.height, path=str(output_file))

        return str(output_file)

    def publish_all(self, reports: Dict[str, pl.DataFrame]) -> Dict[str, str]:
        return {name: self.publish(name, df) for name, df in reports.items()}
