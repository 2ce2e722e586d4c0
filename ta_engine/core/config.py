"""
Engine Configuration

All tunable defaults, loaded from environment variables (prefix TA_ENGINE_).
"""

from datetime import timedelta
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TA_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "StockPro TA Engine"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # Series validation
    gap_threshold: timedelta = timedelta(days=7)
    extreme_move_ratio: float = 0.5

    # Indicator periods
    sma_periods: list[int] = [20, 50, 200]
    ema_periods: list[int] = [12, 26, 50]
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    stochastic_period: int = 14
    stochastic_smoothing: int = 3
    atr_period: int = 14
    adx_period: int = 14
    volume_sma_period: int = 20

    # Extrema / support-resistance
    extrema_order: int = 5
    sr_cluster_threshold: float = 0.02
    sr_min_touches: int = 2

    # Triangle
    triangle_min_points: int = 20
    triangle_max_points: int = 60
    triangle_step: int = 5
    triangle_order: int = 3
    triangle_flat_slope: float = 0.001
    triangle_symmetry_tolerance: float = 0.35
    triangle_min_confidence: float = 0.3

    # Flag
    flag_impulse: int = 15
    flag_channel: int = 20
    flag_min_pole: float = 0.08
    flag_pullback_ratio: float = 0.35
    flag_max_volatility: float = 0.02

    # Reversals
    double_pattern_threshold: float = 0.02
    hs_shoulder_tolerance: float = 0.05
    hs_min_head_height: float = 0.03

    # Divergence
    divergence_match_window: int = 5
    divergence_min_strength: float = 0.0

    # Volume anomaly
    volume_window: int = 20
    volume_threshold: float = 2.0

    # Live engine
    live_touch_tolerance: float = 0.01
    live_refresh_every: int = 5
    live_refresh_window: int = 120
    live_buffer_size: int = 500
    live_max_patterns_per_kind: int = 50

    # Consensus weights (by signal name)
    consensus_weights: dict[str, float] = {
        "rsi": 1.0,
        "macd": 1.5,
        "sma_trend": 1.5,
        "bollinger": 0.75,
        "stochastic": 0.75,
        "adx": 1.0,
        "obv": 0.5,
        "patterns": 1.0,
    }

    # Analysis pipeline
    max_parallel_series: int = 8


@lru_cache()
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()


settings = get_settings()
