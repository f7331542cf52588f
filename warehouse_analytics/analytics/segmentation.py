"""
Segmentation Rules

Classification of aggregated metrics into discrete labels. Each rule set is an
ordered list of (label, conditions) pairs evaluated first-match-wins, with a
default label when nothing matches, so every input maps to exactly one label.

Thresholds are module constants; the rule tables are built from them.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import polars as pl

Predicate = Callable[[Any], bool]


# =============================================================================
# THRESHOLDS
# =============================================================================

# Customer segments
SEGMENT_MIN_LIFESPAN_MONTHS = 12
VIP_MIN_SALES = 10000           # exclusive
LOYAL_MIN_SALES = 5000          # inclusive, up to VIP_MIN_SALES
REGULAR_MIN_LIFESPAN_MONTHS = 6

# Spending segments of the segmentation summary
SPENDING_VIP_MIN_SALES = 5000   # exclusive

# Age buckets, bounds inclusive
AGE_YOUNGEST_BELOW = 20
AGE_BANDS = [(20, 29, "20-29"), (30, 39, "30-39"), (40, 49, "40-49")]

# Product revenue tiers
HIGH_PERFORMER_MIN_SALES = 50000    # exclusive
MID_RANGE_MIN_SALES = 10000         # inclusive

# Product customer reach
BROAD_APPEAL_MIN_CUSTOMERS = 100    # exclusive
MODERATE_APPEAL_MIN_CUSTOMERS = 25  # inclusive

# Category share of yearly sales, in percent
TOP_PERFORMER_MIN_PCT = 30
MODERATE_MIN_PCT = 10

# Product unit cost brackets
COST_LOW = 100
COST_MID = 500
COST_HIGH = 1000


# =============================================================================
# PREDICATES
# =============================================================================
# Missing values never satisfy a comparison, like NULL in a SQL CASE.

def above(threshold: float) -> Predicate:
    return lambda v: v is not None and v > threshold


def at_least(threshold: float) -> Predicate:
    return lambda v: v is not None and v >= threshold


def below(threshold: float) -> Predicate:
    return lambda v: v is not None and v < threshold


def at_most(threshold: float) -> Predicate:
    return lambda v: v is not None and v <= threshold


def between(low: float, high: float) -> Predicate:
    """Inclusive on both ends"""
    return lambda v: v is not None and low <= v <= high


# =============================================================================
# RULE TABLES
# =============================================================================

@dataclass(frozen=True)
class Rule:
    """A label and the conditions, one predicate per metric, that earn it"""
    label: str
    conditions: Mapping[str, Predicate]

    def matches(self, metrics: Mapping[str, Any]) -> bool:
        return all(predicate(metrics.get(name)) for name, predicate in self.conditions.items())


@dataclass(frozen=True)
class RuleSet:
    """
    Ordered rules evaluated first-match-wins.

    Example:
        >>> PRODUCT_REVENUE_TIER.classify(total_sales=60000)
        'High-Performer'
    """
    name: str
    rules: Tuple[Rule, ...]
    default: str
    fields: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        if not self.fields:
            names: List[str] = []
            for rule in self.rules:
                names.extend(n for n in rule.conditions if n not in names)
            object.__setattr__(self, "fields", tuple(names))

    @property
    def labels(self) -> List[str]:
        labels = [rule.label for rule in self.rules]
        if self.default not in labels:
            labels.append(self.default)
        return labels

    def classify(self, **metrics: Any) -> str:
        for rule in self.rules:
            if rule.matches(metrics):
                return rule.label
        return self.default

    def apply(
        self,
        df: pl.DataFrame,
        alias: Optional[str] = None,
        columns: Optional[Mapping[str, str]] = None,
    ) -> pl.DataFrame:
        """
        Classify each row of a frame.

        Args:
            df: Frame holding the metrics
            alias: Output column name; defaults to the rule set name
            columns: Frame column per rule field, where they differ
        """
        columns = dict(columns or {})
        source = {name: columns.get(name, name) for name in self.fields}

        labels = [
            self.classify(**{name: row[column] for name, column in source.items()})
            for row in df.select(list(set(source.values()))).iter_rows(named=True)
        ]
        return df.with_columns(pl.Series(alias or self.name, labels, dtype=pl.Utf8))


def _bands(bands: List[Tuple[float, float, str]], metric: str) -> Tuple[Rule, ...]:
    return tuple(Rule(label, {metric: between(low, high)}) for low, high, label in bands)


CUSTOMER_SEGMENT = RuleSet(
    name="customer_segment",
    rules=(
        Rule("VIP", {
            "lifespan": at_least(SEGMENT_MIN_LIFESPAN_MONTHS),
            "total_sales": above(VIP_MIN_SALES),
        }),
        Rule("Loyal", {
            "lifespan": at_least(SEGMENT_MIN_LIFESPAN_MONTHS),
            "total_sales": between(LOYAL_MIN_SALES, VIP_MIN_SALES),
        }),
        Rule("Regular", {"lifespan": at_least(REGULAR_MIN_LIFESPAN_MONTHS)}),
    ),
    default="New",
)

SPENDING_SEGMENT = RuleSet(
    name="customer_segment",
    rules=(
        Rule("VIP", {
            "lifespan": at_least(SEGMENT_MIN_LIFESPAN_MONTHS),
            "total_spending": above(SPENDING_VIP_MIN_SALES),
        }),
        Rule("Regular", {
            "lifespan": at_least(SEGMENT_MIN_LIFESPAN_MONTHS),
            "total_spending": at_most(SPENDING_VIP_MIN_SALES),
        }),
    ),
    default="New",
)

# A missing age falls through to the oldest bucket
AGE_GROUP = RuleSet(
    name="age_group",
    rules=(
        Rule("Under 20", {"age": below(AGE_YOUNGEST_BELOW)}),
    ) + _bands(AGE_BANDS, "age"),
    default="50 and above",
)

PRODUCT_REVENUE_TIER = RuleSet(
    name="revenue_segment",
    rules=(
        Rule("High-Performer", {"total_sales": above(HIGH_PERFORMER_MIN_SALES)}),
        Rule("Mid-Range", {"total_sales": at_least(MID_RANGE_MIN_SALES)}),
    ),
    default="Low-Performer",
)

PRODUCT_REACH_TIER = RuleSet(
    name="customer_segment",
    rules=(
        Rule("Broad Appeal", {"total_customers": above(BROAD_APPEAL_MIN_CUSTOMERS)}),
        Rule("Moderate Appeal", {
            "total_customers": between(MODERATE_APPEAL_MIN_CUSTOMERS, BROAD_APPEAL_MIN_CUSTOMERS),
        }),
    ),
    default="Niche Product",
)

CATEGORY_CONTRIBUTION = RuleSet(
    name="performance_tag",
    rules=(
        Rule("Top Performer", {"percentage_of_total": at_least(TOP_PERFORMER_MIN_PCT)}),
        Rule("Moderate", {"percentage_of_total": between(MODERATE_MIN_PCT, TOP_PERFORMER_MIN_PCT)}),
    ),
    default="Low Performer",
)

PRODUCT_COST_RANGE = RuleSet(
    name="cost_range",
    rules=(
        Rule("Below 100", {"cost": below(COST_LOW)}),
        Rule("100-500", {"cost": between(COST_LOW, COST_MID)}),
        Rule("500-1000", {"cost": between(COST_MID, COST_HIGH)}),
    ),
    default="Above 1000",
)

AVERAGE_COMPARISON = RuleSet(
    name="avg_change",
    rules=(
        Rule("Above Avg", {"diff_from_avg": above(0)}),
        Rule("Below Avg", {"diff_from_avg": below(0)}),
    ),
    default="At Avg",
)

YEAR_OVER_YEAR_TREND = RuleSet(
    name="yoy_trend",
    rules=(
        Rule("Increase", {"diff_prev_year": above(0)}),
        Rule("Decrease", {"diff_prev_year": below(0)}),
    ),
    default="No Change",
)

RULE_SETS: Dict[str, RuleSet] = {
    "customer_segment": CUSTOMER_SEGMENT,
    "spending_segment": SPENDING_SEGMENT,
    "age_group": AGE_GROUP,
    "product_revenue_tier": PRODUCT_REVENUE_TIER,
    "product_reach_tier": PRODUCT_REACH_TIER,
    "category_contribution": CATEGORY_CONTRIBUTION,
    "product_cost_range": PRODUCT_COST_RANGE,
    "average_comparison": AVERAGE_COMPARISON,
    "year_over_year_trend": YEAR_OVER_YEAR_TREND,
}
