"""
Aggregation Engine

Rollups of sales lines by time bucket and dimension key, and frame-level
window operations built on the sequence algorithms in `windows`.

Window operations sort the frame by (partition, order) and return it in that
order with the computed column appended.
"""

from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

import polars as pl
import structlog

from warehouse_analytics.analytics import windows
from warehouse_analytics.analytics.snapshot import WarehouseSnapshot

logger = structlog.get_logger(__name__)


class TimeGrain(str, Enum):
    """Time bucket granularity"""
    MONTH = "month"
    YEAR = "year"

    @property
    def column(self) -> str:
        return f"order_{self.value}"

    def expr(self, date_column: str = "order_date") -> pl.Expr:
        if self is TimeGrain.MONTH:
            return pl.col(date_column).dt.truncate("1mo").alias(self.column)
        return pl.col(date_column).dt.year().alias(self.column)


class GroupKey(str, Enum):
    """Dimension keys a rollup can group by"""
    CUSTOMER = "customer_key"
    PRODUCT = "product_key"
    CATEGORY = "category"
    COUNTRY = "country"


def sales_measures() -> List[pl.Expr]:
    """Standard measures over sales lines. Distinct counts ignore nulls."""
    return [
        pl.col("sales_amount").sum().alias("total_sales"),
        pl.col("quantity").sum().alias("total_quantity"),
        pl.col("order_number").drop_nulls().n_unique().alias("total_orders"),
        pl.col("customer_key").drop_nulls().n_unique().alias("total_customers"),
        pl.col("price").mean().alias("avg_price"),
    ]


def rollup(
    snapshot: WarehouseSnapshot,
    grain: Optional[TimeGrain] = None,
    by: Sequence[GroupKey] = (),
) -> pl.DataFrame:
    """
    Group sales by (time bucket, dimension keys) and compute the standard
    measures.

    Lines without an order date are excluded whenever a time grain is used.
    With neither grain nor keys the result is a single grand-total row.
    """
    df = snapshot.sales_detail()
    keys: List[str] = []

    if grain is not None:
        grain = TimeGrain(grain)
        df = df.filter(pl.col("order_date").is_not_null()).with_columns(grain.expr())
        keys.append(grain.column)

    keys.extend(GroupKey(key).value for key in by)

    if not keys:
        return df.select(sales_measures())

    out = df.group_by(keys).agg(sales_measures()).sort(keys, nulls_last=True)
    logger.debug("Rollup computed", keys=keys, groups=out.height)
    return out


def over_partitions(
    df: pl.DataFrame,
    value: str,
    fn: Callable[[Sequence[Any]], List[Any]],
    alias: str,
    order_by: Sequence[str] = (),
    partition_by: Sequence[str] = (),
    descending: bool = False,
    dtype: Optional[pl.DataType] = None,
) -> pl.DataFrame:
    """
    Sort by (partition_by, order_by), then apply `fn` to the `value` column of
    each partition in one pass.
    """
    partition_by = list(partition_by)
    order_by = list(order_by)

    sort_keys = partition_by + order_by
    if sort_keys:
        df = df.sort(
            sort_keys,
            descending=[False] * len(partition_by) + [descending] * len(order_by),
            nulls_last=True,
        )

    values = df[value].to_list()
    if partition_by:
        keys = list(df.select(partition_by).iter_rows())
    else:
        keys = [None] * df.height

    result = windows.apply_over_partitions(keys, values, fn)
    return df.with_columns(pl.Series(alias, result, dtype=dtype or df.schema[value], strict=False))


def with_lag(
    df: pl.DataFrame,
    value: str,
    order_by: Sequence[str],
    partition_by: Sequence[str] = (),
    offset: int = 1,
    alias: Optional[str] = None,
) -> pl.DataFrame:
    """Previous value within the partition (LAG)."""
    return over_partitions(
        df, value, lambda vals: windows.lag(vals, offset),
        alias or f"previous_{value}",
        order_by=order_by, partition_by=partition_by,
    )


def with_trend(
    df: pl.DataFrame,
    value: str,
    order_by: Sequence[str],
    partition_by: Sequence[str] = (),
    previous_alias: Optional[str] = None,
    diff_alias: Optional[str] = None,
    pct_alias: Optional[str] = None,
) -> pl.DataFrame:
    """
    Add the prior-period value, the absolute difference and the % change.

    The % change is null when there is no prior period or it is zero.
    """
    previous_alias = previous_alias or f"previous_{value}"
    diff_alias = diff_alias or f"{value}_diff"
    pct_alias = pct_alias or f"{value}_pct_change"

    df = with_lag(df, value, order_by, partition_by, alias=previous_alias)
    pct = [
        windows.pct_change(current, previous)
        for current, previous in zip(df[value].to_list(), df[previous_alias].to_list())
    ]
    return df.with_columns(
        (pl.col(value) - pl.col(previous_alias)).alias(diff_alias),
        pl.Series(pct_alias, pct, dtype=pl.Float64),
    )


def with_running_total(
    df: pl.DataFrame,
    value: str,
    order_by: Sequence[str],
    partition_by: Sequence[str] = (),
    alias: Optional[str] = None,
) -> pl.DataFrame:
    """Prefix sum within the partition (SUM() OVER (ORDER BY ...))."""
    return over_partitions(
        df, value, windows.running_total,
        alias or f"running_{value}",
        order_by=order_by, partition_by=partition_by,
    )


def with_moving_average(
    df: pl.DataFrame,
    value: str,
    order_by: Sequence[str],
    partition_by: Sequence[str] = (),
    window: int = 3,
    alias: Optional[str] = None,
    ndigits: Optional[int] = 2,
) -> pl.DataFrame:
    """Trailing mean over the current and `window - 1` preceding rows."""
    return over_partitions(
        df, value, lambda vals: windows.moving_average(vals, window, ndigits),
        alias or f"moving_avg_{value}",
        order_by=order_by, partition_by=partition_by, dtype=pl.Float64,
    )


def with_moving_sum(
    df: pl.DataFrame,
    value: str,
    order_by: Sequence[str],
    partition_by: Sequence[str] = (),
    window: int = 3,
    alias: Optional[str] = None,
) -> pl.DataFrame:
    """Trailing sum over the current and `window - 1` preceding rows."""
    return over_partitions(
        df, value, lambda vals: windows.moving_sum(vals, window),
        alias or f"rolling_{value}",
        order_by=order_by, partition_by=partition_by,
    )


def with_rank(
    df: pl.DataFrame,
    value: str,
    partition_by: Sequence[str] = (),
    descending: bool = True,
    alias: Optional[str] = None,
) -> pl.DataFrame:
    """Competition rank of `value` within the partition (RANK())."""
    return over_partitions(
        df, value, lambda vals: windows.competition_rank(vals, descending),
        alias or f"{value}_rank",
        order_by=[value], partition_by=partition_by, descending=descending,
        dtype=pl.Int64,
    )


def with_contribution(
    df: pl.DataFrame,
    value: str,
    partition_by: Sequence[str] = (),
    alias: Optional[str] = None,
    ndigits: int = 2,
) -> pl.DataFrame:
    """Share of the partition total, in percent."""
    return over_partitions(
        df, value, lambda vals: windows.contribution_pct(vals, ndigits),
        alias or f"{value}_pct_of_total",
        partition_by=partition_by, dtype=pl.Float64,
    )


def with_partition_total(
    df: pl.DataFrame,
    value: str,
    partition_by: Sequence[str] = (),
    alias: Optional[str] = None,
) -> pl.DataFrame:
    """Partition total broadcast to each row."""
    return over_partitions(
        df, value, windows.partition_total,
        alias or f"overall_{value}",
        partition_by=partition_by,
    )


def with_partition_mean(
    df: pl.DataFrame,
    value: str,
    partition_by: Sequence[str] = (),
    alias: Optional[str] = None,
) -> pl.DataFrame:
    """Partition mean broadcast to each row."""
    return over_partitions(
        df, value, windows.partition_mean,
        alias or f"avg_{value}",
        partition_by=partition_by, dtype=pl.Float64,
    )
