from ta_engine.core.config import EngineSettings, get_settings, settings
from ta_engine.core.logging import setup_logging

__all__ = ["EngineSettings", "get_settings", "settings", "setup_logging"]
