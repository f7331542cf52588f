"""
Performance Analysis

Rankings of products, customers and countries, yearly product performance
against its own history, category part-to-whole shares and segment
summaries. Ranks use competition ranking, so ties share a position and
top-N cuts keep every tied row.
"""

from typing import Optional

import polars as pl
import structlog

from warehouse_analytics.analytics.aggregation import (
    TimeGrain,
    with_contribution,
    with_partition_mean,
    with_partition_total,
    with_rank,
    with_trend,
)
from warehouse_analytics.analytics.reports import months_between
from warehouse_analytics.analytics.segmentation import (
    AVERAGE_COMPARISON,
    CATEGORY_CONTRIBUTION,
    PRODUCT_COST_RANGE,
    SPENDING_SEGMENT,
    YEAR_OVER_YEAR_TREND,
)
from warehouse_analytics.analytics.snapshot import WarehouseSnapshot
from warehouse_analytics.config import get_settings

logger = structlog.get_logger(__name__)

YEAR = TimeGrain.YEAR.column


def _top_n(n: Optional[int]) -> int:
    return n or get_settings().reports.top_n


def product_revenue(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Total revenue per product."""
    return (
        snapshot.sales_detail()
        .group_by(["product_key", "product_name"])
        .agg(pl.col("sales_amount").sum().alias("total_revenue"))
    )


def top_products(snapshot: WarehouseSnapshot, n: Optional[int] = None) -> pl.DataFrame:
    """Products ranked by revenue, keeping ranks up to n."""
    ranked = with_rank(product_revenue(snapshot), "total_revenue", alias="revenue_rank")
    return ranked.filter(pl.col("revenue_rank") <= _top_n(n))


def bottom_products(snapshot: WarehouseSnapshot, n: Optional[int] = None) -> pl.DataFrame:
    """Least performing products, lowest revenue first."""
    ranked = with_rank(
        product_revenue(snapshot), "total_revenue", descending=False, alias="revenue_rank",
    )
    return ranked.filter(pl.col("revenue_rank") <= _top_n(n))


def _customer_orders(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    return (
        snapshot.sales_detail()
        .group_by(["customer_key", "first_name", "last_name", "country"])
        .agg(
            pl.col("sales_amount").sum().alias("total_revenue"),
            pl.col("order_number").drop_nulls().n_unique().alias("total_orders"),
            pl.col("sales_amount").mean().alias("avg_order_value"),
            pl.col("order_number").count().alias("total_order_instances"),
        )
    )


def top_customers(snapshot: WarehouseSnapshot, n: int = 10) -> pl.DataFrame:
    """Highest revenue customers."""
    return (
        _customer_orders(snapshot)
        .select("customer_key", "first_name", "last_name", "country",
                "total_revenue", "total_orders", "avg_order_value")
        .sort(["total_revenue", "customer_key"], descending=[True, False], nulls_last=True)
        .head(n)
    )


def fewest_orders(snapshot: WarehouseSnapshot, n: int = 3) -> pl.DataFrame:
    """Customers with the fewest distinct orders."""
    return (
        _customer_orders(snapshot)
        .select("customer_key", "first_name", "last_name", "total_orders")
        .sort(["total_orders", "customer_key"], nulls_last=True)
        .head(n)
    )


def repeat_orders(snapshot: WarehouseSnapshot, n: Optional[int] = None) -> pl.DataFrame:
    """Customers whose order numbers appear on the most extra lines."""
    return (
        _customer_orders(snapshot)
        .select(
            "customer_key", "first_name", "last_name", "total_order_instances",
            pl.col("total_orders").alias("unique_orders"),
            (pl.col("total_order_instances") - pl.col("total_orders")).alias("repeated_orders"),
        )
        .sort(["repeated_orders", "customer_key"], descending=[True, False], nulls_last=True)
        .head(_top_n(n))
    )


def rank_within_category(snapshot: WarehouseSnapshot, n: int = 3) -> pl.DataFrame:
    """Top products by revenue inside each category."""
    df = (
        snapshot.sales_detail()
        .group_by(["category", "product_key", "product_name"])
        .agg(pl.col("sales_amount").sum().alias("total_revenue"))
    )
    ranked = with_rank(df, "total_revenue", partition_by=["category"], alias="category_rank")
    return ranked.filter(pl.col("category_rank") <= n)


def country_ranking(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Countries ranked by the revenue of their customers."""
    df = (
        snapshot.sales_detail()
        .group_by("country")
        .agg(pl.col("sales_amount").sum().alias("total_revenue"))
    )
    return with_rank(df, "total_revenue", alias="country_rank")


def yearly_product_performance(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """
    Each product's yearly sales compared with its average year and its
    previous year, with its rank and share within the year.

    The first year of a product has no previous year and is tagged
    `No Change`.
    """
    df = (
        snapshot.sales_detail()
        .filter(pl.col("order_date").is_not_null())
        .with_columns(TimeGrain.YEAR.expr())
        .group_by([YEAR, "product_key", "product_name"])
        .agg(pl.col("sales_amount").sum().alias("current_sales"))
    )

    df = with_partition_mean(df, "current_sales", partition_by=["product_key"], alias="avg_sales")
    df = df.with_columns((pl.col("current_sales") - pl.col("avg_sales")).alias("diff_from_avg"))
    df = AVERAGE_COMPARISON.apply(df)

    df = with_trend(
        df, "current_sales", order_by=[YEAR], partition_by=["product_key"],
        previous_alias="prev_year_sales",
        diff_alias="diff_prev_year",
        pct_alias="yoy_pct_change",
    )
    df = YEAR_OVER_YEAR_TREND.apply(df)

    df = with_rank(df, "current_sales", partition_by=[YEAR], alias="product_rank_in_year")
    df = with_contribution(df, "current_sales", partition_by=[YEAR], alias="contribution_pct")

    return df.sort(["product_name", YEAR], nulls_last=True)


def category_contribution(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """
    Category share of each year's sales with year-over-year growth and a
    performance tag.
    """
    df = (
        snapshot.sales_detail()
        .filter(pl.col("order_date").is_not_null())
        .with_columns(TimeGrain.YEAR.expr())
        .group_by(["category", YEAR])
        .agg(pl.col("sales_amount").sum().alias("total_sales"))
    )

    df = with_partition_total(df, "total_sales", partition_by=[YEAR], alias="overall_sales")
    df = with_contribution(df, "total_sales", partition_by=[YEAR], alias="percentage_of_total")
    df = with_rank(df, "total_sales", partition_by=[YEAR], alias="sales_rank")
    df = with_trend(
        df, "total_sales", order_by=[YEAR], partition_by=["category"],
        previous_alias="previous_year_sales",
        diff_alias="sales_diff",
        pct_alias="growth_percentage",
    )
    df = CATEGORY_CONTRIBUTION.apply(df)

    return df.select(
        YEAR, "category", "total_sales", "overall_sales", "percentage_of_total",
        "sales_rank", "previous_year_sales", "sales_diff", "growth_percentage",
        "performance_tag",
    ).sort([YEAR, "sales_rank"], nulls_last=True)


def cost_range_summary(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Products per cost bracket with the average cost and the costliest product."""
    products = PRODUCT_COST_RANGE.apply(snapshot.products)

    stats = products.group_by("cost_range").agg(
        pl.col("product_key").count().alias("total_products"),
        pl.col("cost").mean().round(2).alias("avg_cost"),
    )
    costliest = (
        products.sort(["cost", "product_key"], descending=[True, False], nulls_last=True)
        .group_by("cost_range", maintain_order=True)
        .agg(
            pl.col("product_name").first().alias("top_product"),
            pl.col("cost").first().alias("top_product_cost"),
        )
    )

    return (
        stats.join(costliest, on="cost_range", how="left")
        .sort(["total_products", "cost_range"], descending=[True, False])
    )


def customer_segment_summary(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Customer count, average spending and average lifespan per segment."""
    spending = (
        snapshot.sales_detail()
        .group_by("customer_key")
        .agg(
            pl.col("sales_amount").sum().alias("total_spending"),
            pl.col("order_date").min().alias("first_order"),
            pl.col("order_date").max().alias("last_order"),
        )
        .with_columns(months_between(pl.col("first_order"), pl.col("last_order")).alias("lifespan"))
    )
    spending = SPENDING_SEGMENT.apply(spending)

    summary = (
        spending.group_by("customer_segment")
        .agg(
            pl.col("customer_key").count().alias("total_customers"),
            pl.col("total_spending").mean().round(2).alias("avg_spending"),
            pl.col("lifespan").mean().round(1).alias("avg_lifespan"),
        )
        .sort(["total_customers", "customer_segment"], descending=[True, False])
    )

    logger.debug("Customer segments summarised", segments=summary.height)
    return summary
