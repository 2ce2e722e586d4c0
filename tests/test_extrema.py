"""
Extrema detector tests.
"""

import numpy as np
import pytest

from ta_engine.services.patterns.extrema import find_extrema, is_low_at, is_peak_at


class TestFindExtrema:

    def test_simple_series(self):
        result = find_extrema(np.array([1.0, 3.0, 2.0, 5.0, 1.0, 4.0, 1.0]), order=1)
        assert result.peak_indices == (1, 3, 5)
        assert result.low_indices == (2, 4)

    def test_ties_disqualify(self):
        result = find_extrema(np.array([1.0, 2.0, 2.0, 1.0]), order=1)
        assert result.peak_indices == ()

    def test_nan_disqualifies_window(self):
        result = find_extrema(np.array([0.0, 5.0, np.nan, 1.0, 0.0]), order=1)
        assert result.peak_indices == ()
        assert result.low_indices == ()

    def test_edges_excluded(self):
        result = find_extrema(np.array([9.0, 1.0, 2.0, 3.0, 9.0]), order=2)
        assert result.peak_indices == ()
        assert result.low_indices == ()

    def test_strictness_property(self, walk_series):
        closes = walk_series.closes
        order = 5
        result = find_extrema(closes, order)
        assert result.peak_indices and result.low_indices
        for i in result.peak_indices:
            window = np.delete(closes[i - order : i + order + 1], order)
            assert (closes[i] > window).all()
        for i in result.low_indices:
            window = np.delete(closes[i - order : i + order + 1], order)
            assert (closes[i] < window).all()

    def test_rejects_bad_order(self):
        with pytest.raises(ValueError):
            find_extrema(np.array([1.0, 2.0, 1.0]), order=0)


class TestSingleIndex:

    def test_matches_full_scan(self, walk_series):
        closes = walk_series.closes
        result = find_extrema(closes, 3)
        peaks = [i for i in range(len(closes)) if is_peak_at(closes, i, 3)]
        lows = [i for i in range(len(closes)) if is_low_at(closes, i, 3)]
        assert tuple(peaks) == result.peak_indices
        assert tuple(lows) == result.low_indices

    def test_out_of_range(self):
        values = np.array([1.0, 2.0, 1.0])
        assert not is_peak_at(values, 0, 1)
        assert not is_peak_at(values, 5, 1)
        assert is_peak_at(values, 1, 1)
