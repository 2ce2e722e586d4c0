"""
Live Feed Messages

Parses raw feed messages into CandleUpdate / TickUpdate models.
"""

from typing import Any, Union

from ta_engine.schemas.market import CandleUpdate, TickUpdate
from ta_engine.services.base import LiveEngineError

LiveUpdate = Union[CandleUpdate, TickUpdate]


def parse_update(message: Any) -> LiveUpdate:
    """
    Turn a feed message into an update model.

    Messages carrying `price` are ticks; messages carrying OHLC fields are
    candles (`timestamp` or `date` is accepted in place of `time`).

    Raises:
        LiveEngineError: unrecognised message shape
        pydantic.ValidationError: recognised shape with invalid fields
    """
    if isinstance(message, (CandleUpdate, TickUpdate)):
        return message
    if not isinstance(message, dict):
        raise LiveEngineError("LiveFeed", f"Unsupported message type {type(message).__name__}")

    if "price" in message:
        return TickUpdate.model_validate(message)

    if "close" in message:
        data = dict(message)
        if "time" not in data:
            for alias in ("timestamp", "date"):
                if alias in data:
                    data["time"] = data.pop(alias)
                    break
        return CandleUpdate.model_validate(data)

    raise LiveEngineError("LiveFeed", f"Unrecognised message keys: {sorted(message)}")
