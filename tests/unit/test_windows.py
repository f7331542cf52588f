"""
Unit Tests - Window Algorithms
"""
import pytest

from warehouse_analytics.analytics import windows


class TestLagAndChange:
    """Tests for LAG and period-over-period change"""

    def test_lag_shifts_by_one(self):
        assert windows.lag([100, 150, 50]) == [None, 100, 150]

    def test_lag_offset_longer_than_sequence(self):
        assert windows.lag([1, 2], offset=3) == [None, None]

    def test_lag_rejects_non_positive_offset(self):
        with pytest.raises(ValueError):
            windows.lag([1, 2, 3], offset=0)

    def test_pct_changes(self):
        """Month-over-month change of 100, 150, 50"""
        assert windows.pct_changes([100, 150, 50]) == [None, 50.0, -66.67]

    def test_pct_change_undefined_for_zero_previous(self):
        assert windows.pct_change(50, 0) is None
        assert windows.pct_change(None, 10) is None
        assert windows.pct_change(10, None) is None


class TestRunningAndMoving:
    """Tests for cumulative and trailing windows"""

    def test_running_total(self):
        assert windows.running_total([100, 150, 50]) == [100, 250, 300]

    def test_running_total_last_equals_sum(self):
        values = [3, 9, 4, 1, 7]
        assert windows.running_total(values)[-1] == sum(values)

    def test_running_total_skips_nulls(self):
        assert windows.running_total([5, None, 2]) == [5, 5, 7]

    def test_running_total_null_until_first_value(self):
        assert windows.running_total([None, None, 4, None, 1]) == [None, None, 4, 4, 5]

    def test_running_total_all_null(self):
        assert windows.running_total([None, None]) == [None, None]

    def test_running_total_empty(self):
        assert windows.running_total([]) == []

    def test_moving_average_uses_partial_window(self):
        result = windows.moving_average([100, 150, 50, 200], window=3, ndigits=2)

        assert result[0] == 100
        assert result[1] == 125.0
        assert result[2] == 100.0
        assert result[3] == 133.33

    def test_moving_average_first_value_is_itself(self):
        assert windows.moving_average([42.5, 10.0])[0] == 42.5

    def test_moving_average_ignores_nulls_in_frame(self):
        assert windows.moving_average([None, 4, None], window=2) == [None, 4.0, 4.0]

    def test_moving_sum(self):
        assert windows.moving_sum([1, 2, 3, 4], window=3) == [1, 3, 6, 9]

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            windows.moving_sum([1, 2], window=0)


class TestRankingAndShares:
    """Tests for ranking and part-to-whole shares"""

    def test_competition_rank_ties_skip(self):
        assert windows.competition_rank([7, 5, 7, 1]) == [1, 3, 1, 4]

    def test_competition_rank_ascending(self):
        assert windows.competition_rank([7, 5, 7, 1], descending=False) == [3, 2, 3, 1]

    def test_competition_rank_nulls_last(self):
        assert windows.competition_rank([None, 3, 8]) == [3, 2, 1]

    def test_contribution_sums_to_hundred(self):
        shares = windows.contribution_pct([1, 1, 1])

        assert shares == [33.33, 33.33, 33.33]
        assert sum(shares) == pytest.approx(100, abs=0.05)

    def test_contribution_of_zero_total(self):
        assert windows.contribution_pct([0, 0]) == [None, None]

    def test_partition_mean_and_total(self):
        assert windows.partition_mean([2, None, 4]) == [3.0, 3.0, 3.0]
        assert windows.partition_total([2, None, 4]) == [6, 6, 6]


class TestApplyOverPartitions:
    """Tests for per-partition application"""

    def test_restarts_per_partition(self):
        keys = [2023, 2023, 2024, 2024]
        values = [10, 20, 5, 5]

        assert windows.apply_over_partitions(keys, values, windows.running_total) == [10, 30, 5, 10]

    def test_single_partition(self):
        assert windows.apply_over_partitions([None] * 3, [1, 2, 3], windows.running_total) == [1, 3, 6]

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            windows.apply_over_partitions([1], [1, 2], windows.running_total)
