"""
Settings and logging setup tests.
"""

import logging
from datetime import timedelta

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.core.logging import setup_logging


class TestSettings:

    def test_defaults(self):
        cfg = EngineSettings()
        assert cfg.rsi_period == 14
        assert cfg.gap_threshold == timedelta(days=7)
        assert cfg.live_refresh_every == 5
        assert cfg.consensus_weights["macd"] == 1.5

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TA_ENGINE_RSI_PERIOD", "21")
        monkeypatch.setenv("TA_ENGINE_SMA_PERIODS", "[10, 30]")
        cfg = EngineSettings()
        assert cfg.rsi_period == 21
        assert cfg.sma_periods == [10, 30]

    def test_cached(self):
        assert get_settings() is get_settings()


class TestLogging:

    def test_single_handler(self):
        logger = setup_logging("debug")
        setup_logging("debug")
        assert logger.name == "ta_engine"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
