"""
Unit Tests - Change Over Time
"""
from datetime import date

from warehouse_analytics.analytics.trends import (
    cumulative_analysis,
    month_over_month,
    monthly_trend,
    moving_average_sales,
    year_to_date,
)
from warehouse_analytics.config import get_settings


class TestMonthlySeries:
    """Tests for monthly trend and growth"""

    def test_monthly_trend(self, sample_snapshot):
        result = monthly_trend(sample_snapshot)

        assert result["order_month"].to_list() == [date(2023, 1, 1), date(2023, 2, 1), date(2024, 3, 1)]
        assert result["total_sales"].to_list() == [1060, 1000, 30]
        assert result["unique_customers"].to_list() == [1, 1, 1]
        assert result["total_quantity"].to_list() == [3, 1, 1]

    def test_month_over_month(self, monthly_snapshot):
        result = month_over_month(monthly_snapshot)

        assert result["month_name"].to_list() == ["2024-Jan", "2024-Feb", "2024-Mar"]
        assert result["prev_month_sales"].to_list() == [None, 100, 150]
        assert result["pct_mom_change"].to_list() == [None, 50.0, -66.67]

    def test_year_to_date_restarts_each_year(self, sample_snapshot):
        result = year_to_date(sample_snapshot)

        assert result["ytd_sales"].to_list() == [1060, 2060, 30]

    def test_moving_average(self, sample_snapshot):
        result = moving_average_sales(sample_snapshot, window=3)

        assert result["moving_avg_3_month"].to_list() == [1060.0, 1030.0, 696.67]

    def test_moving_average_defaults_to_configured_window(self, sample_snapshot):
        result = moving_average_sales(sample_snapshot)

        window = get_settings().reports.moving_window
        assert f"moving_avg_{window}_month" in result.columns


class TestCumulativeAnalysis:
    """Tests for running and rolling monthly measures"""

    def test_running_sales(self, monthly_snapshot):
        result = cumulative_analysis(monthly_snapshot, window=3)

        assert result["running_total_sales"].to_list() == [100, 250, 300]
        assert result["running_total_sales"][-1] == result["total_sales"].sum()

    def test_cumulative_customers_and_rolling_sales(self, sample_snapshot):
        result = cumulative_analysis(sample_snapshot, window=2)

        assert result["cumulative_customers"].to_list() == [1, 2, 3]
        assert result["rolling_2_month_sales"].to_list() == [1060, 2060, 1030]
        assert result["moving_avg_price_2_months"][0] == result["avg_price"][0]
