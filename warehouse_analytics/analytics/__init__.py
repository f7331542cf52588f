"""
Analytics Module
"""
from .aggregation import GroupKey, TimeGrain, rollup
from .reports import (
    ReportPublisher,
    build_customer_report,
    build_product_report,
    build_reports,
)
from .segmentation import RULE_SETS, Rule, RuleSet
from .snapshot import WarehouseSnapshot

__all__ = [
    "GroupKey",
    "TimeGrain",
    "rollup",
    "ReportPublisher",
    "build_customer_report",
    "build_product_report",
    "build_reports",
    "RULE_SETS",
    "Rule",
    "RuleSet",
    "WarehouseSnapshot",
]
