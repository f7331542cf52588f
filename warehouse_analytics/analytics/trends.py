"""
Change Over Time

Monthly trend, month-over-month growth, year-to-date totals, moving averages
and the cumulative analysis. All series are built on the monthly rollup and
exclude sales lines without an order date.
"""

from typing import Optional

import polars as pl
import structlog

from warehouse_analytics.analytics.aggregation import (
    TimeGrain,
    rollup,
    with_moving_average,
    with_moving_sum,
    with_running_total,
    with_trend,
)
from warehouse_analytics.analytics.snapshot import WarehouseSnapshot
from warehouse_analytics.config import get_settings

logger = structlog.get_logger(__name__)

MONTH = TimeGrain.MONTH.column


def _window(window: Optional[int] = None) -> int:
    return window or get_settings().reports.moving_window


def monthly_sales(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Monthly measures, one row per month bucket in chronological order."""
    return rollup(snapshot, grain=TimeGrain.MONTH)


def monthly_trend(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Sales, unique customers and quantity per month."""
    return monthly_sales(snapshot).select(
        pl.col(MONTH),
        pl.col(MONTH).dt.year().alias("order_year"),
        pl.col(MONTH).dt.month().alias("month_of_year"),
        pl.col("total_sales"),
        pl.col("total_customers").alias("unique_customers"),
        pl.col("total_quantity"),
    )


def month_over_month(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """
    Monthly sales with the previous month and the % change.

    Example:
        Monthly sales of 100, 150 and 50 give a change of -66.67 for the
        third month and null for the first.
    """
    df = monthly_sales(snapshot).select(
        pl.col(MONTH),
        pl.col(MONTH).dt.strftime("%Y-%b").alias("month_name"),
        pl.col("total_sales"),
    )
    return with_trend(
        df, "total_sales", order_by=[MONTH],
        previous_alias="prev_month_sales",
        diff_alias="mom_change",
        pct_alias="pct_mom_change",
    )


def year_to_date(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Monthly sales with a running total that restarts every year."""
    df = monthly_sales(snapshot).select(
        pl.col(MONTH),
        pl.col(MONTH).dt.year().alias("order_year"),
        pl.col("total_sales").alias("monthly_sales"),
    )
    return with_running_total(
        df, "monthly_sales", order_by=[MONTH], partition_by=["order_year"], alias="ytd_sales",
    ).drop("order_year")


def moving_average_sales(snapshot: WarehouseSnapshot, window: Optional[int] = None) -> pl.DataFrame:
    """Monthly sales smoothed by a trailing moving average."""
    window = _window(window)
    df = monthly_sales(snapshot).select(
        pl.col(MONTH),
        pl.col("total_sales").alias("monthly_sales"),
    )
    return with_moving_average(
        df, "monthly_sales", order_by=[MONTH], window=window,
        alias=f"moving_avg_{window}_month",
    )


def cumulative_analysis(snapshot: WarehouseSnapshot, window: Optional[int] = None) -> pl.DataFrame:
    """
    Running sales, cumulative customers, smoothed average price and rolling
    sales per month.

    `cumulative_customers` sums the monthly unique counts, so a customer
    buying in two months is counted twice.
    """
    window = _window(window)
    df = monthly_sales(snapshot).select(MONTH, "total_sales", "total_customers", "avg_price")

    df = with_running_total(df, "total_sales", order_by=[MONTH], alias="running_total_sales")
    df = with_running_total(df, "total_customers", order_by=[MONTH], alias="cumulative_customers")
    df = with_moving_average(
        df, "avg_price", order_by=[MONTH], window=window,
        alias=f"moving_avg_price_{window}_months", ndigits=None,
    )
    df = with_moving_sum(
        df, "total_sales", order_by=[MONTH], window=window,
        alias=f"rolling_{window}_month_sales",
    )

    logger.debug("Cumulative analysis computed", months=df.height, window=window)
    return df
