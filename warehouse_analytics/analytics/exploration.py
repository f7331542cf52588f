"""
Data Exploration

Profiling queries over the warehouse: table sizes and structure, dimension
value distributions, date coverage and the headline business metrics.
"""

from datetime import date
from typing import List, Optional, Tuple

import polars as pl
import structlog
from sqlalchemy import Engine, inspect

from warehouse_analytics.analytics.reports import months_between, years_between
from warehouse_analytics.analytics.snapshot import WarehouseSnapshot
from warehouse_analytics.config import get_settings
from warehouse_analytics.database.models import LOAD_TARGETS

logger = structlog.get_logger(__name__)


# =============================================================================
# DATABASE STRUCTURE
# =============================================================================

def table_row_counts(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Rows per warehouse table, largest first."""
    heights = {
        "dim_customers": snapshot.customers.height,
        "dim_products": snapshot.products.height,
        "fact_sales": snapshot.sales.height,
    }
    return pl.DataFrame(
        {"table_name": list(heights), "total_rows": list(heights.values())},
        schema={"table_name": pl.Utf8, "total_rows": pl.Int64},
    ).sort(["total_rows", "table_name"], descending=[True, False])


def describe_tables(engine: Engine) -> pl.DataFrame:
    """Column metadata of the warehouse tables, in ordinal order."""
    inspector = inspect(engine)
    rows = []
    for table_name in LOAD_TARGETS:
        primary_key = set(inspector.get_pk_constraint(table_name)["constrained_columns"])
        foreign_keys = {
            column: f"{fk['referred_table']}.{referred}"
            for fk in inspector.get_foreign_keys(table_name)
            for column, referred in zip(fk["constrained_columns"], fk["referred_columns"])
        }
        for position, column in enumerate(inspector.get_columns(table_name), start=1):
            rows.append({
                "table_name": table_name,
                "column_name": column["name"],
                "ordinal_position": position,
                "data_type": str(column["type"]),
                "is_nullable": bool(column["nullable"]),
                "is_primary_key": column["name"] in primary_key,
                "references": foreign_keys.get(column["name"]),
            })

    return pl.DataFrame(rows, schema={
        "table_name": pl.Utf8,
        "column_name": pl.Utf8,
        "ordinal_position": pl.Int64,
        "data_type": pl.Utf8,
        "is_nullable": pl.Boolean,
        "is_primary_key": pl.Boolean,
        "references": pl.Utf8,
    })


# =============================================================================
# DIMENSIONS
# =============================================================================

def distinct_countries(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    return (
        snapshot.customers.select("country")
        .drop_nulls()
        .unique()
        .sort("country")
    )


def distinct_categories(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    return (
        snapshot.products.select("category")
        .drop_nulls()
        .unique()
        .sort("category")
    )


def dimension_counts(snapshot: WarehouseSnapshot) -> dict:
    """Distinct countries, categories and category/subcategory pairs."""
    products = snapshot.products.drop_nulls(["category", "subcategory"])
    return {
        "unique_country_count": distinct_countries(snapshot).height,
        "unique_category_count": distinct_categories(snapshot).height,
        "unique_cat_subcat_combinations": products.select("category", "subcategory").unique().height,
    }


def category_distribution(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Distinct product names per category and subcategory."""
    return (
        snapshot.products.drop_nulls(["category", "subcategory"])
        .group_by(["category", "subcategory"])
        .agg(pl.col("product_name").drop_nulls().n_unique().alias("product_count"))
        .sort(["category", "subcategory"])
    )


def products_missing_category(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Products lacking a category or subcategory."""
    return (
        snapshot.products
        .filter(pl.col("category").is_null() | pl.col("subcategory").is_null())
        .select("product_id", "product_name", "category", "subcategory")
    )


# =============================================================================
# DATE RANGES
# =============================================================================

def order_date_range(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """First and last order date and the span between them."""
    return (
        snapshot.sales.filter(pl.col("order_date").is_not_null())
        .select(
            pl.col("order_date").min().alias("first_order_date"),
            pl.col("order_date").max().alias("last_order_date"),
        )
        .with_columns(
            (pl.col("last_order_date") - pl.col("first_order_date")).dt.total_days().alias("order_range_days"),
            months_between(pl.col("first_order_date"), pl.col("last_order_date")).alias("order_range_months"),
            years_between(pl.col("first_order_date"), pl.col("last_order_date")).alias("order_range_years"),
        )
    )


def shipping_date_range(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Shipping and due date boundaries over lines that carry both."""
    return (
        snapshot.sales.drop_nulls(["shipping_date", "due_date"])
        .select(
            pl.col("shipping_date").min().alias("first_shipping_date"),
            pl.col("shipping_date").max().alias("last_shipping_date"),
            pl.col("due_date").min().alias("earliest_due_date"),
            pl.col("due_date").max().alias("latest_due_date"),
        )
    )


def shipping_lag(snapshot: WarehouseSnapshot) -> pl.DataFrame:
    """Average and maximum days from order to shipping."""
    lag_days = (pl.col("shipping_date") - pl.col("order_date")).dt.total_days()
    return (
        snapshot.sales.drop_nulls(["order_date", "shipping_date"])
        .select(
            lag_days.mean().alias("avg_shipping_lag_days"),
            lag_days.max().alias("max_shipping_lag_days"),
        )
    )


def customer_age_profile(snapshot: WarehouseSnapshot, as_of: Optional[date] = None) -> pl.DataFrame:
    """Oldest, youngest and average customer age."""
    as_of = as_of or date.today()
    reference = pl.lit(as_of, dtype=pl.Date)
    return (
        snapshot.customers.filter(pl.col("birthdate").is_not_null())
        .select(
            pl.col("birthdate").min().alias("oldest_birthdate"),
            pl.col("birthdate").max().alias("youngest_birthdate"),
            ((reference - pl.col("birthdate")).dt.total_days().mean() / 365.25).alias("average_age_years"),
        )
        .with_columns(
            years_between(pl.col("oldest_birthdate"), reference).alias("oldest_age_years"),
            years_between(pl.col("youngest_birthdate"), reference).alias("youngest_age_years"),
        )
    )


def rows_with_missing_dates(snapshot: WarehouseSnapshot) -> int:
    """Sales lines missing any of order, shipping or due date."""
    missing = (
        pl.col("order_date").is_null()
        | pl.col("shipping_date").is_null()
        | pl.col("due_date").is_null()
    )
    return snapshot.sales.filter(missing).height


def data_freshness(snapshot: WarehouseSnapshot, as_of: Optional[date] = None) -> pl.DataFrame:
    """Latest order date and the days elapsed since."""
    as_of = as_of or date.today()
    return (
        snapshot.sales.filter(pl.col("order_date").is_not_null())
        .select(pl.col("order_date").max().alias("last_order_date"))
        .with_columns(
            (pl.lit(as_of, dtype=pl.Date) - pl.col("last_order_date")).dt.total_days().alias("days_since_last_order"),
        )
    )


# =============================================================================
# MEASURES
# =============================================================================

def _ratio(numerator, denominator, scale: float = 1.0) -> Optional[float]:
    if numerator is None or not denominator:
        return None
    return round(numerator * scale / denominator, 2)


def key_metrics(snapshot: WarehouseSnapshot, currency: Optional[str] = None) -> pl.DataFrame:
    """
    Headline business metrics as (metric, value, unit) rows.

    Ratios with a zero denominator are null.
    """
    currency = currency or get_settings().reports.currency
    sales = snapshot.sales

    total_sales = sales["sales_amount"].sum()
    total_quantity = sales["quantity"].sum()
    avg_price = sales["price"].mean()
    total_orders = sales["order_number"].drop_nulls().n_unique()
    ordering_customers = sales["customer_key"].drop_nulls().n_unique()
    total_products = snapshot.products["product_key"].drop_nulls().n_unique()
    total_customers = snapshot.customers["customer_key"].drop_nulls().n_unique()

    metrics: List[Tuple[str, Optional[float], str]] = [
        ("Total Sales", total_sales, currency),
        ("Total Quantity Sold", total_quantity, "Units"),
        ("Average Selling Price", round(avg_price, 2) if avg_price is not None else None, currency),
        ("Total Orders", total_orders, "Orders"),
        ("Revenue Per Order", _ratio(total_sales, total_orders), currency),
        ("Total Products", total_products, "Products"),
        ("Total Customers", total_customers, "Customers"),
        ("Ordering Customers", ordering_customers, "Customers"),
        ("Revenue Per Customer", _ratio(total_sales, ordering_customers), currency),
        ("Avg Quantity per Order", _ratio(total_quantity, total_orders), "Units"),
        ("% Customers Ordered", _ratio(ordering_customers, total_customers, 100.0), "%"),
    ]

    logger.debug("Key metrics computed", metrics=len(metrics))
    return pl.DataFrame(
        {
            "metric": [m[0] for m in metrics],
            "value": [float(m[1]) if m[1] is not None else None for m in metrics],
            "unit": [m[2] for m in metrics],
        },
        schema={"metric": pl.Utf8, "value": pl.Float64, "unit": pl.Utf8},
    )
