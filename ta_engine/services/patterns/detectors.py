"""
Pattern Detection Algorithms

Each detector is a pure function over a Series returning records in
ascending start_index order. Indices are positions in the Series passed in.
"""

from typing import Callable, Hashable, Optional, Sequence, TypeVar

import numpy as np

from ta_engine.schemas.market import Bar, Series
from ta_engine.schemas.patterns import (
    Bias,
    CandlestickPattern,
    CandleType,
    DivergencePattern,
    DivergenceStrength,
    DoubleBottomPattern,
    DoubleTopPattern,
    FlagPattern,
    HeadAndShouldersPattern,
    LevelType,
    PatternBase,
    SupportResistanceLevel,
    TrianglePattern,
    TriangleType,
    VolumeAnomaly,
)
from ta_engine.services.patterns.extrema import find_extrema


P = TypeVar("P", bound=PatternBase)


# =============================================================================
# HELPERS
# =============================================================================


def _span(series: Series, start: int, end: int) -> dict:
    return {
        "start_index": start,
        "end_index": end,
        "start_time": series.time_at(start),
        "end_time": series.time_at(end),
    }


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return float(min(high, max(low, value)))


def _ordered(records: list[P]) -> list[P]:
    return sorted(records, key=lambda r: (r.start_index, r.end_index))


def suppress_overlaps(records: list[P], group: Callable[[P], Hashable]) -> list[P]:
    """Keep the highest-confidence record among overlapping records of one group."""
    ranked = sorted(
        records,
        key=lambda r: (-r.confidence, r.start_index, r.end_index - r.start_index),
    )
    kept: list[P] = []
    for rec in ranked:
        clash = any(
            group(k) == group(rec)
            and rec.start_index <= k.end_index
            and k.start_index <= rec.end_index
            for k in kept
        )
        if not clash:
            kept.append(rec)
    return _ordered(kept)


# =============================================================================
# SUPPORT / RESISTANCE
# =============================================================================


def _cluster_levels(
    series: Series,
    indices: Sequence[int],
    level_type: LevelType,
    cluster_threshold: float,
    min_touches: int,
) -> list[SupportResistanceLevel]:
    closes = series.closes
    clusters: list[list[int]] = []
    means: list[float] = []

    for idx in indices:
        price = closes[idx]
        if price <= 0:
            continue
        best, best_dist = None, None
        for c, mean in enumerate(means):
            dist = abs(price - mean) / mean
            if dist <= cluster_threshold and (best_dist is None or dist < best_dist):
                best, best_dist = c, dist
        if best is None:
            clusters.append([idx])
            means.append(float(price))
        else:
            clusters[best].append(idx)
            means[best] = float(np.mean(closes[clusters[best]]))

    bias = Bias.BULLISH if level_type == LevelType.SUPPORT else Bias.BEARISH
    levels = []
    for members, mean in zip(clusters, means):
        if len(members) < min_touches:
            continue
        levels.append(
            SupportResistanceLevel(
                **_span(series, members[0], members[-1]),
                confidence=min(1.0, len(members) / 5),
                bias=bias,
                level_type=level_type,
                price=mean,
                strength=len(members),
                touches=tuple(members),
            )
        )
    return levels


def detect_support_resistance(
    series: Series,
    order: int = 5,
    cluster_threshold: float = 0.02,
    min_touches: int = 2,
) -> list[SupportResistanceLevel]:
    """Cluster close-price peaks (resistance) and lows (support) into levels."""
    extrema = find_extrema(series.closes, order)
    levels = _cluster_levels(
        series, extrema.peak_indices, LevelType.RESISTANCE, cluster_threshold, min_touches
    ) + _cluster_levels(
        series, extrema.low_indices, LevelType.SUPPORT, cluster_threshold, min_touches
    )
    return _ordered(levels)


# =============================================================================
# TRIANGLES
# =============================================================================


def _linear_fit(x: np.ndarray, y: np.ndarray) -> tuple[float, float, float]:
    """Least-squares line through (x, y). Returns (slope, intercept, r_squared)."""
    slope, intercept = np.polyfit(x, y, 1)
    fitted = slope * x + intercept
    ss_res = float(np.sum((y - fitted) ** 2))
    ss_tot = float(np.sum((y - np.mean(y)) ** 2))
    r_squared = 1.0 if ss_tot == 0 else 1 - ss_res / ss_tot
    return float(slope), float(intercept), _clamp(r_squared)


def _fit_triangle(
    series: Series,
    start: int,
    end: int,
    order: int,
    flat_slope: float,
    symmetry_tolerance: float,
) -> Optional[TrianglePattern]:
    highs = series.highs[start:end]
    lows = series.lows[start:end]
    peaks = np.array(find_extrema(highs, order).peak_indices)
    troughs = np.array(find_extrema(lows, order).low_indices)
    if len(peaks) < 2 or len(troughs) < 2:
        return None

    mean_price = float(np.mean(series.closes[start:end]))
    if mean_price <= 0:
        return None

    up_slope, up_icpt, up_r2 = _linear_fit(peaks.astype(float), highs[peaks])
    lo_slope, lo_icpt, lo_r2 = _linear_fit(troughs.astype(float), lows[troughs])
    a = up_slope / mean_price
    b = lo_slope / mean_price

    if a < -flat_slope and b > flat_slope:
        if abs(abs(a) - abs(b)) / max(abs(a), abs(b)) > symmetry_tolerance:
            return None
        triangle_type, bias, qualifying = TriangleType.SYMMETRICAL, Bias.NEUTRAL, (abs(a) + abs(b)) / 2
    elif abs(a) <= flat_slope and b > flat_slope:
        triangle_type, bias, qualifying = TriangleType.ASCENDING, Bias.BULLISH, abs(b)
    elif a < -flat_slope and abs(b) <= flat_slope:
        triangle_type, bias, qualifying = TriangleType.DESCENDING, Bias.BEARISH, abs(a)
    else:
        return None

    last_x = end - start - 1
    upper_end = up_slope * last_x + up_icpt
    lower_end = lo_slope * last_x + lo_icpt
    if upper_end <= lower_end:
        return None

    strength = min(1.0, qualifying / (4 * flat_slope))
    confidence = _clamp(0.5 * strength + 0.5 * (up_r2 + lo_r2) / 2)

    breakout = "none"
    if end < len(series):
        next_close = series.closes[end]
        if next_close > up_slope * (last_x + 1) + up_icpt:
            breakout = "up"
        elif next_close < lo_slope * (last_x + 1) + lo_icpt:
            breakout = "down"

    return TrianglePattern(
        **_span(series, start, end - 1),
        confidence=confidence,
        bias=bias,
        triangle_type=triangle_type,
        upper_slope=a,
        lower_slope=b,
        upper_start=up_icpt,
        upper_end=upper_end,
        lower_start=lo_icpt,
        lower_end=lower_end,
        breakout_direction=breakout,
    )


def detect_triangles(
    series: Series,
    min_points: int = 20,
    max_points: int = 60,
    step: int = 5,
    order: int = 3,
    flat_slope: float = 0.001,
    symmetry_tolerance: float = 0.35,
    min_confidence: float = 0.3,
) -> list[TrianglePattern]:
    """
    Converging trendlines over sliding windows.

    Every window length in [min_points, max_points] and every start, both
    stepping by `step`, is fitted. Overlapping windows of one triangle type
    collapse to the highest-confidence window.
    """
    n = len(series)
    candidates: list[TrianglePattern] = []
    for length in range(min_points, min(max_points, n) + 1, step):
        for start in range(0, n - length + 1, step):
            rec = _fit_triangle(series, start, start + length, order, flat_slope, symmetry_tolerance)
            if rec is not None and rec.confidence >= min_confidence:
                candidates.append(rec)
    return suppress_overlaps(candidates, group=lambda r: r.triangle_type)


# =============================================================================
# FLAGS
# =============================================================================


def detect_flags(
    series: Series,
    impulse: int = 15,
    channel: int = 20,
    min_pole: float = 0.08,
    pullback_ratio: float = 0.35,
    max_volatility: float = 0.02,
) -> list[FlagPattern]:
    """Sharp pole over `impulse` bars followed by a tight `channel`-bar consolidation."""
    closes = series.closes
    n = len(closes)
    candidates: list[FlagPattern] = []

    for pole_end in range(impulse, n - channel + 1):
        pole_start = pole_end - impulse
        p0, p1 = closes[pole_start], closes[pole_end]
        if p0 <= 0 or p1 <= 0:
            continue
        pole = (p1 - p0) / p0
        if abs(pole) < min_pole:
            continue

        segment = closes[pole_end : pole_end + channel]
        if pole > 0:
            retracement = (np.min(segment) - p1) / p1
        else:
            retracement = (np.max(segment) - p1) / p1
        if abs(retracement) > abs(pole) * pullback_ratio:
            continue

        if np.any(segment[:-1] <= 0):
            continue
        volatility = float(np.mean(np.abs(np.diff(segment) / segment[:-1])))
        if volatility > max_volatility:
            continue

        candidates.append(
            FlagPattern(
                **_span(series, pole_start, pole_end + channel - 1),
                confidence=min(1.0, abs(pole) * 5),
                bias=Bias.BULLISH if pole > 0 else Bias.BEARISH,
                pole_start_index=pole_start,
                pole_end_index=pole_end,
                pole_height=float(pole),
                flag_height=float(abs(retracement)),
                pole_start_price=float(p0),
                pole_end_price=float(p1),
            )
        )

    return suppress_overlaps(candidates, group=lambda r: r.bias)


# =============================================================================
# DOUBLE TOP / BOTTOM
# =============================================================================


def detect_double_tops(
    series: Series, order: int = 5, threshold: float = 0.02
) -> list[DoubleTopPattern]:
    """Consecutive close peaks within `threshold` of each other."""
    closes = series.closes
    peaks = find_extrema(closes, order).peak_indices
    patterns = []
    for first, second in zip(peaks, peaks[1:]):
        a, b = closes[first], closes[second]
        if b <= 0:
            continue
        diff = abs(b - a) / b
        if diff > threshold:
            continue
        patterns.append(
            DoubleTopPattern(
                **_span(series, first, second),
                confidence=_clamp(0.5 + 0.5 * (1 - diff / threshold)),
                bias=Bias.BEARISH,
                first_price=float(a),
                second_price=float(b),
                neckline=float(np.min(closes[first : second + 1])),
            )
        )
    return patterns


def detect_double_bottoms(
    series: Series, order: int = 5, threshold: float = 0.02
) -> list[DoubleBottomPattern]:
    """Consecutive close lows within `threshold`, with a rally strictly between them."""
    closes = series.closes
    lows = find_extrema(closes, order).low_indices
    patterns = []
    for first, second in zip(lows, lows[1:]):
        a, b = closes[first], closes[second]
        if a <= 0:
            continue
        diff = abs(a - b) / a
        if diff > threshold:
            continue
        segment = closes[first : second + 1]
        top = first + int(np.argmax(segment))
        if not first < top < second:
            continue
        patterns.append(
            DoubleBottomPattern(
                **_span(series, first, second),
                confidence=_clamp(0.5 + 0.5 * (1 - diff / threshold)),
                bias=Bias.BULLISH,
                first_price=float(a),
                second_price=float(b),
                neckline=float(closes[top]),
            )
        )
    return patterns


# =============================================================================
# HEAD AND SHOULDERS
# =============================================================================


def _head_and_shoulders(
    series: Series,
    pivots: Sequence[int],
    inverse: bool,
    shoulder_tolerance: float,
    min_head_height: float,
) -> list[HeadAndShouldersPattern]:
    closes = series.closes
    # Mirror lows into peaks so one pass handles both forms
    sign = -1.0 if inverse else 1.0
    patterns = []

    for left, head, right in zip(pivots, pivots[1:], pivots[2:]):
        ls, hd, rs = closes[left], closes[head], closes[right]
        if min(ls, hd, rs) <= 0:
            continue
        if not (sign * hd > sign * ls and sign * hd > sign * rs):
            continue

        shoulder_diff = abs(ls - rs) / max(ls, rs)
        if shoulder_diff > shoulder_tolerance:
            continue
        shoulder_mean = (ls + rs) / 2
        height = sign * (hd - shoulder_mean) / shoulder_mean
        if height < min_head_height:
            continue

        between = (closes[left : head + 1], closes[head : right + 1])
        if inverse:
            neckline = float(np.mean([np.max(s) for s in between]))
        else:
            neckline = float(np.mean([np.min(s) for s in between]))

        symmetry = 1 - shoulder_diff / shoulder_tolerance if shoulder_tolerance > 0 else 1.0
        prominence = min(1.0, height / (3 * min_head_height)) if min_head_height > 0 else 1.0
        patterns.append(
            HeadAndShouldersPattern(
                **_span(series, left, right),
                confidence=_clamp(0.5 * symmetry + 0.5 * prominence),
                bias=Bias.BULLISH if inverse else Bias.BEARISH,
                inverse=inverse,
                left_shoulder_index=left,
                head_index=head,
                right_shoulder_index=right,
                left_shoulder_price=float(ls),
                head_price=float(hd),
                right_shoulder_price=float(rs),
                neckline=neckline,
            )
        )
    return patterns


def detect_head_and_shoulders(
    series: Series,
    order: int = 5,
    shoulder_tolerance: float = 0.05,
    min_head_height: float = 0.03,
) -> list[HeadAndShouldersPattern]:
    """Three consecutive peaks with a dominant head; the inverse form on lows."""
    extrema = find_extrema(series.closes, order)
    patterns = _head_and_shoulders(
        series, extrema.peak_indices, False, shoulder_tolerance, min_head_height
    ) + _head_and_shoulders(
        series, extrema.low_indices, True, shoulder_tolerance, min_head_height
    )
    return _ordered(patterns)


# =============================================================================
# DIVERGENCE
# =============================================================================


def _closest(candidates: Sequence[int], target: int, match_window: int) -> Optional[int]:
    best = None
    for c in candidates:
        dist = abs(c - target)
        if dist <= match_window and (best is None or dist < abs(best - target)):
            best = c
    return best


def _grade(strength: float) -> DivergenceStrength:
    if strength >= 0.05:
        return DivergenceStrength.STRONG
    elif strength >= 0.02:
        return DivergenceStrength.MODERATE
    return DivergenceStrength.WEAK


def detect_divergences(
    series: Series,
    indicator: np.ndarray,
    indicator_name: str = "rsi",
    order: int = 5,
    match_window: int = 5,
    min_strength: float = 0.0,
) -> list[DivergencePattern]:
    """
    Price/indicator disagreement at matched extrema.

    Bearish: price higher high, indicator lower high.
    Bullish: price lower low, indicator higher low.

    Strength is `|dP|/P1 + |dI|/|I1|`; pairs scoring below `min_strength`
    are dropped. The default keeps every qualifying pair.
    """
    closes = series.closes
    indicator = np.asarray(indicator, dtype=float)
    if len(indicator) != len(closes):
        raise ValueError(
            f"indicator length {len(indicator)} does not match series length {len(closes)}"
        )

    price_ext = find_extrema(closes, order)
    ind_ext = find_extrema(indicator, order)
    patterns = []

    for price_pivots, ind_pivots, bearish in (
        (price_ext.peak_indices, ind_ext.peak_indices, True),
        (price_ext.low_indices, ind_ext.low_indices, False),
    ):
        for p1, p2 in zip(price_pivots, price_pivots[1:]):
            i1 = _closest(ind_pivots, p1, match_window)
            i2 = _closest(ind_pivots, p2, match_window)
            if i1 is None or i2 is None or i1 == i2:
                continue

            price1, price2 = closes[p1], closes[p2]
            ind1, ind2 = indicator[i1], indicator[i2]
            if bearish and not (price2 > price1 and ind2 < ind1):
                continue
            if not bearish and not (price2 < price1 and ind2 > ind1):
                continue

            strength = abs(price2 - price1) / price1 if price1 > 0 else 0.0
            if ind1 != 0:
                strength += abs(ind2 - ind1) / abs(ind1)
            if strength < min_strength:
                continue

            patterns.append(
                DivergencePattern(
                    **_span(series, p1, p2),
                    confidence=min(1.0, strength / 0.1),
                    bias=Bias.BEARISH if bearish else Bias.BULLISH,
                    indicator=indicator_name,
                    price_start=float(price1),
                    price_end=float(price2),
                    indicator_start=float(ind1),
                    indicator_end=float(ind2),
                    strength=_grade(strength),
                )
            )

    return _ordered(patterns)


# =============================================================================
# VOLUME ANOMALIES
# =============================================================================


def volume_anomaly_at(
    bar: Bar, index: int, average: float, threshold: float
) -> Optional[VolumeAnomaly]:
    """Classify `bar` (at position `index`) against a precomputed average volume."""
    if average <= 0:
        return None
    ratio = bar.volume / average
    if ratio > threshold:
        anomaly_type = "spike"
        confidence = 0.5 + 0.5 * (ratio - threshold) / threshold
        if bar.close > bar.open:
            bias = Bias.BULLISH
        elif bar.close < bar.open:
            bias = Bias.BEARISH
        else:
            bias = Bias.NEUTRAL
    elif ratio < 1 / threshold:
        anomaly_type = "dip"
        confidence = 1 - ratio
        bias = Bias.NEUTRAL
    else:
        return None

    return VolumeAnomaly(
        start_index=index,
        end_index=index,
        start_time=bar.time,
        end_time=bar.time,
        confidence=_clamp(confidence),
        bias=bias,
        anomaly_type=anomaly_type,
        volume=bar.volume,
        average_volume=float(average),
        ratio=float(ratio),
        price=bar.close,
    )


def detect_volume_anomalies(
    series: Series, window: int = 20, threshold: float = 2.0
) -> list[VolumeAnomaly]:
    """Volume spikes (> threshold x mean) and dips (< mean / threshold) vs the previous `window` bars."""
    volumes = series.volumes
    anomalies = []
    for i in range(window, len(volumes)):
        average = float(np.mean(volumes[i - window : i]))
        rec = volume_anomaly_at(series[i], i, average, threshold)
        if rec is not None:
            anomalies.append(rec)
    return anomalies


# =============================================================================
# CANDLESTICKS
# =============================================================================


def classify_candle(bar: Bar, index: int) -> Optional[CandlestickPattern]:
    """Single-bar doji / hammer / shooting star, or None."""
    if bar.range <= 0:
        return None

    body_pct = bar.body / bar.range
    upper_pct = bar.upper_shadow / bar.range
    lower_pct = bar.lower_shadow / bar.range

    if body_pct < 0.1 and upper_pct > 0.2 and lower_pct > 0.2:
        candle_type, bias, confidence = CandleType.DOJI, Bias.NEUTRAL, 1 - body_pct
    elif body_pct < 0.3 and lower_pct > 0.5 and upper_pct < 0.2 and bar.close > bar.open:
        candle_type, bias, confidence = CandleType.HAMMER, Bias.BULLISH, lower_pct - body_pct
    elif body_pct < 0.3 and upper_pct > 0.5 and lower_pct < 0.2 and bar.close < bar.open:
        candle_type, bias, confidence = CandleType.SHOOTING_STAR, Bias.BEARISH, upper_pct - body_pct
    else:
        return None

    return CandlestickPattern(
        start_index=index,
        end_index=index,
        start_time=bar.time,
        end_time=bar.time,
        confidence=_clamp(confidence),
        bias=bias,
        candle_type=candle_type,
        open=bar.open,
        high=bar.high,
        low=bar.low,
        close=bar.close,
    )


def detect_candlesticks(series: Series) -> list[CandlestickPattern]:
    patterns = []
    for i, bar in enumerate(series.bars):
        rec = classify_candle(bar, i)
        if rec is not None:
            patterns.append(rec)
    return patterns
