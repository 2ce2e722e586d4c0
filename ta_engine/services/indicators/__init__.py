"""
Indicator Service

CONTRACT:
    Input:  Series (validated OHLCV)
    Output: IndicatorBundle

RESPONSIBILITIES:
    - Moving averages (SMA, EMA)
    - Momentum (RSI, MACD, Stochastic)
    - Volatility (Bollinger Bands, ATR)
    - Volume (OBV, volume SMA) and trend strength (ADX, +DI/-DI)

Uses NumPy for calculations.
All math is deterministic and reproducible.
"""

from ta_engine.services.indicators.interface import IndicatorServiceInterface
from ta_engine.services.indicators.service import IndicatorService, get_indicator_service

__all__ = [
    "IndicatorServiceInterface",
    "IndicatorService",
    "get_indicator_service",
]
