"""
Local Extrema

Strict peak/low detection over a symmetric window of `order` bars.
"""

import numpy as np

from ta_engine.schemas.patterns import ExtremaSet


def _window(values: np.ndarray, index: int, order: int):
    if index < order or index + order >= len(values):
        return None
    window = values[index - order : index + order + 1]
    if np.isnan(window).any():
        return None
    return np.delete(window, order)


def is_peak_at(values: np.ndarray, index: int, order: int) -> bool:
    """True iff values[index] is strictly above every neighbour within `order`."""
    others = _window(values, index, order)
    return others is not None and bool(np.all(values[index] > others))


def is_low_at(values: np.ndarray, index: int, order: int) -> bool:
    """True iff values[index] is strictly below every neighbour within `order`."""
    others = _window(values, index, order)
    return others is not None and bool(np.all(values[index] < others))


def find_extrema(values: np.ndarray, order: int = 5) -> ExtremaSet:
    """
    Peaks and lows of `values`.

    Ties disqualify, and any NaN in a window disqualifies its centre.
    O(n * order).
    """
    if order < 1:
        raise ValueError(f"order must be >= 1, got {order}")
    values = np.asarray(values, dtype=float)

    peaks: list[int] = []
    lows: list[int] = []
    for i in range(order, len(values) - order):
        if is_peak_at(values, i, order):
            peaks.append(i)
        elif is_low_at(values, i, order):
            lows.append(i)

    return ExtremaSet(order=order, peak_indices=tuple(peaks), low_indices=tuple(lows))
