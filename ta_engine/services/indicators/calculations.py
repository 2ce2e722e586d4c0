"""
Technical Indicator Calculations

Pure NumPy implementations of technical indicators.
Every function returns arrays of the input length, NaN-filled over the
warm-up prefix. No wall clock, no global state.
"""

import numpy as np


def _nan_like(data: np.ndarray) -> np.ndarray:
    return np.full(len(data), np.nan)


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")


def _first_valid(data: np.ndarray) -> int:
    valid = np.flatnonzero(~np.isnan(data))
    return int(valid[0]) if len(valid) else len(data)


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma(data: np.ndarray, period: int) -> np.ndarray:
    """Simple Moving Average. Any NaN inside a window makes that entry NaN."""
    _check_period(period)
    data = np.asarray(data, dtype=float)
    result = _nan_like(data)
    if len(data) < period:
        return result

    for i in range(period - 1, len(data)):
        result[i] = np.mean(data[i - period + 1 : i + 1])
    return result


def ema(data: np.ndarray, period: int) -> np.ndarray:
    """
    Exponential Moving Average.

    Seeded with the SMA of the first `period` valid values; k = 2 / (period + 1).
    A leading NaN prefix in the input (e.g. the MACD line) shifts the seed.
    """
    _check_period(period)
    data = np.asarray(data, dtype=float)
    result = _nan_like(data)
    start = _first_valid(data)
    if len(data) - start < period:
        return result

    multiplier = 2 / (period + 1)
    seed = start + period - 1
    result[seed] = np.mean(data[start : seed + 1])

    for i in range(seed + 1, len(data)):
        result[i] = (data[i] - result[i - 1]) * multiplier + result[i - 1]

    return result


def wilder_smooth(data: np.ndarray, period: int) -> np.ndarray:
    """Wilder's running average: seeded with the mean of the first `period` values."""
    _check_period(period)
    data = np.asarray(data, dtype=float)
    result = _nan_like(data)
    if len(data) < period:
        return result

    result[period - 1] = np.mean(data[:period])
    for i in range(period, len(data)):
        result[i] = (result[i - 1] * (period - 1) + data[i]) / period
    return result


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


def rsi(closes: np.ndarray, period: int = 14) -> np.ndarray:
    """Relative Strength Index (Wilder). First value at index `period`."""
    _check_period(period)
    closes = np.asarray(closes, dtype=float)
    result = _nan_like(closes)
    if len(closes) < period + 1:
        return result

    deltas = np.diff(closes)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = np.mean(gains[:period])
    avg_loss = np.mean(losses[:period])
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def macd(
    closes: np.ndarray,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    MACD (Moving Average Convergence Divergence).

    Returns: (macd_line, signal_line, histogram)
    """
    closes = np.asarray(closes, dtype=float)
    fast_ema = ema(closes, fast_period)
    slow_ema = ema(closes, slow_period)

    macd_line = fast_ema - slow_ema

    # Signal line seeds from the first valid MACD value
    signal_line = ema(macd_line, signal_period)

    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def stochastic(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Stochastic Oscillator.

    Returns: (k, d)
    """
    _check_period(k_period)
    closes = np.asarray(closes, dtype=float)
    k = _nan_like(closes)
    if len(closes) < k_period:
        return k, _nan_like(closes)

    for i in range(k_period - 1, len(closes)):
        highest_high = np.max(highs[i - k_period + 1 : i + 1])
        lowest_low = np.min(lows[i - k_period + 1 : i + 1])

        if highest_high == lowest_low:
            k[i] = 50.0
        else:
            k[i] = ((closes[i] - lowest_low) / (highest_high - lowest_low)) * 100

    d = sma(k, d_period)

    return k, d


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """True Range; the first bar has no previous close so TR = high - low."""
    highs = np.asarray(highs, dtype=float)
    lows = np.asarray(lows, dtype=float)
    closes = np.asarray(closes, dtype=float)
    tr = np.zeros(len(closes))
    if len(closes) == 0:
        return tr

    tr[0] = highs[0] - lows[0]
    for i in range(1, len(closes)):
        tr[i] = max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )
    return tr


def atr(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> np.ndarray:
    """Average True Range (Wilder smoothing of TR)."""
    return wilder_smooth(true_range(highs, lows, closes), period)


def bollinger_bands(
    closes: np.ndarray, period: int = 20, std_dev: float = 2.0
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Bollinger Bands (population standard deviation).

    Returns: (upper, middle, lower, bandwidth, percent_b)
    """
    closes = np.asarray(closes, dtype=float)
    middle = sma(closes, period)

    std = _nan_like(closes)
    for i in range(period - 1, len(closes)):
        std[i] = np.std(closes[i - period + 1 : i + 1])

    upper = middle + (std_dev * std)
    lower = middle - (std_dev * std)
    width = upper - lower

    with np.errstate(divide="ignore", invalid="ignore"):
        bandwidth = np.where(middle == 0, 0.0, width / middle)
        # Flat window: price sits in the middle of a zero-width band
        percent_b = np.where(width == 0, 0.5, (closes - lower) / width)

    bandwidth[np.isnan(middle)] = np.nan
    percent_b[np.isnan(middle)] = np.nan

    return upper, middle, lower, bandwidth, percent_b


# =============================================================================
# VOLUME INDICATORS
# =============================================================================


def obv(closes: np.ndarray, volumes: np.ndarray) -> np.ndarray:
    """On-Balance Volume, starting from the first bar's volume."""
    closes = np.asarray(closes, dtype=float)
    volumes = np.asarray(volumes, dtype=float)
    result = np.zeros(len(closes))
    if len(closes) == 0:
        return result
    result[0] = volumes[0]

    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            result[i] = result[i - 1] + volumes[i]
        elif closes[i] < closes[i - 1]:
            result[i] = result[i - 1] - volumes[i]
        else:
            result[i] = result[i - 1]

    return result


# =============================================================================
# TREND INDICATORS
# =============================================================================


def adx(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Average Directional Index (Wilder).

    +DI/-DI are valid from index `period`, ADX from `2 * period - 1`.

    Returns: (adx, plus_di, minus_di)
    """
    _check_period(period)
    highs = np.asarray(highs, dtype=float)
    lows = np.asarray(lows, dtype=float)
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    adx_result, plus_di, minus_di = _nan_like(closes), _nan_like(closes), _nan_like(closes)
    if n < period + 1:
        return adx_result, plus_di, minus_di

    plus_dm = np.zeros(n)
    minus_dm = np.zeros(n)
    for i in range(1, n):
        up_move = highs[i] - highs[i - 1]
        down_move = lows[i - 1] - lows[i]

        if up_move > down_move and up_move > 0:
            plus_dm[i] = up_move
        if down_move > up_move and down_move > 0:
            minus_dm[i] = down_move

    tr = true_range(highs, lows, closes)

    # Wilder running sums over bars 1..period, then S = S - S/p + x
    s_tr = np.sum(tr[1 : period + 1])
    s_plus = np.sum(plus_dm[1 : period + 1])
    s_minus = np.sum(minus_dm[1 : period + 1])

    dx = _nan_like(closes)
    for i in range(period, n):
        if i > period:
            s_tr = s_tr - s_tr / period + tr[i]
            s_plus = s_plus - s_plus / period + plus_dm[i]
            s_minus = s_minus - s_minus / period + minus_dm[i]

        plus_di[i] = 100 * s_plus / s_tr if s_tr > 0 else 0.0
        minus_di[i] = 100 * s_minus / s_tr if s_tr > 0 else 0.0
        di_sum = plus_di[i] + minus_di[i]
        dx[i] = 100 * abs(plus_di[i] - minus_di[i]) / di_sum if di_sum > 0 else 0.0

    first_adx = 2 * period - 1
    if n > first_adx:
        adx_result[first_adx] = np.mean(dx[period : first_adx + 1])
        for i in range(first_adx + 1, n):
            adx_result[i] = (adx_result[i - 1] * (period - 1) + dx[i]) / period

    return adx_result, plus_di, minus_di


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def min_length(indicator: str, **params: int) -> int:
    """
    Shortest input that yields at least one non-NaN value on every line.
    """
    if indicator in ("sma", "ema", "bollinger", "volume_sma", "atr"):
        return params["period"]
    if indicator == "rsi":
        return params["period"] + 1
    if indicator == "macd":
        return max(params["fast"], params["slow"]) + params["signal"] - 1
    if indicator == "stochastic":
        return params["period"] + params["smoothing"] - 1
    if indicator == "adx":
        return 2 * params["period"]
    if indicator == "obv":
        return 1
    raise ValueError(f"Unknown indicator: {indicator}")
