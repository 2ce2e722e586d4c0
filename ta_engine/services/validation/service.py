"""
Series Validator Implementation

Normalizes untrusted OHLCV input into a Series. Bars failing a fatal check
are dropped and reported; everything downstream assumes a clean series.
"""

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.schemas.market import Bar, Series, SeriesKey, ensure_utc
from ta_engine.schemas.validation import (
    IssueCode,
    Severity,
    ValidationIssue,
    ValidationReport,
)
from ta_engine.services.base import SeriesValidationError
from ta_engine.services.validation.interface import (
    SeriesValidatorInterface,
    ValidationOutcome,
    ValidationRequest,
)

logger = logging.getLogger(__name__)

_TIME_KEYS = ("time", "timestamp", "date")
_PRICE_KEYS = ("open", "high", "low", "close")

# Epoch values above this are taken to be milliseconds
_EPOCH_MS_CUTOFF = 1e11


# =============================================================================
# FIELD PARSING
# =============================================================================


def _field(raw: Any, key: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(key)
    return getattr(raw, key, None)


def _parse_time(value: Any) -> Optional[datetime]:
    """Parse a bar time into an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000 if abs(value) > _EPOCH_MS_CUTOFF else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def _parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _error(code: IssueCode, message: str, index: Optional[int]) -> ValidationIssue:
    return ValidationIssue(code=code, severity=Severity.ERROR, message=message, index=index)


def _warning(code: IssueCode, message: str, index: int) -> ValidationIssue:
    return ValidationIssue(code=code, severity=Severity.WARNING, message=message, index=index)


class SeriesValidator(SeriesValidatorInterface):
    """
    Series Validator.

    Fatal checks run per input bar; non-fatal checks run over the cleaned,
    sorted series so that re-validating the output reproduces the same
    warnings and no errors.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()

    async def execute(self, input_data: ValidationRequest) -> ValidationOutcome:
        return self.validate(input_data.bars, input_data.key, input_data.now)

    def validate(
        self, raw_bars: Iterable[Any], key: SeriesKey, now: Optional[datetime] = None
    ) -> ValidationOutcome:
        raw = list(raw_bars) if raw_bars is not None else []
        errors: list[ValidationIssue] = []

        if not raw:
            errors.append(_error(IssueCode.EMPTY_SERIES, "No bars supplied", None))
            return ValidationOutcome(
                series=Series(key=key, bars=()),
                report=ValidationReport(errors=errors),
            )

        clean: list[Bar] = []
        for i, item in enumerate(raw):
            bar, issues = self.validate_bar(item, index=i)
            if issues:
                errors.extend(issues)
            else:
                clean.append(bar)

        # sorted() is stable: duplicates keep their input order
        clean.sort(key=lambda b: b.time)
        warnings = self._check_warnings(clean, now or datetime.now(timezone.utc))

        if errors:
            logger.warning(
                f"{key}: {len(errors)} fatal issue(s), {len(raw) - len(clean)} bar(s) dropped"
            )
        if warnings:
            logger.debug(f"{key}: {len(warnings)} warning(s)")

        return ValidationOutcome(
            series=Series(key=key, bars=tuple(clean)),
            report=ValidationReport(errors=errors, warnings=warnings),
        )

    def validate_or_raise(
        self, raw_bars: Iterable[Any], key: SeriesKey, now: Optional[datetime] = None
    ) -> ValidationOutcome:
        outcome = self.validate(raw_bars, key, now)
        if not outcome.report.is_valid:
            first = outcome.report.errors[0]
            raise SeriesValidationError(
                self.name,
                f"{key} failed validation: {first}"
                + (f" (+{len(outcome.report.errors) - 1} more)" if len(outcome.report.errors) > 1 else ""),
                report=outcome.report,
            )
        return outcome

    def validate_bar(
        self, raw_bar: Any, index: Optional[int] = None
    ) -> tuple[Optional[Bar], list[ValidationIssue]]:
        if isinstance(raw_bar, Bar):
            values = raw_bar.model_dump()
            raw_time = raw_bar.time
        else:
            values = {k: _field(raw_bar, k) for k in _PRICE_KEYS + ("volume",)}
            raw_time = next(
                (_field(raw_bar, k) for k in _TIME_KEYS if _field(raw_bar, k) is not None),
                None,
            )

        issues: list[ValidationIssue] = []

        time = _parse_time(raw_time)
        if time is None:
            issues.append(_error(IssueCode.INVALID_TIME, f"Unparseable time {raw_time!r}", index))

        numbers: dict[str, float] = {}
        for name in _PRICE_KEYS + ("volume",):
            num = _parse_number(values.get(name))
            if num is None or not math.isfinite(num):
                issues.append(
                    _error(IssueCode.INVALID_NUMBER, f"{name} is {values.get(name)!r}", index)
                )
            elif num < 0:
                issues.append(_error(IssueCode.NEGATIVE_VALUE, f"{name} is negative ({num})", index))
            elif name == "volume" and not num.is_integer():
                issues.append(_error(IssueCode.INVALID_NUMBER, f"volume {num} is not a whole number", index))
            else:
                numbers[name] = num

        if len(numbers) == 5:
            o, h, l, c = (numbers[k] for k in _PRICE_KEYS)
            if h < l:
                issues.append(_error(IssueCode.OHLC_INCONSISTENT, f"high {h} < low {l}", index))
            if h < max(o, c):
                issues.append(
                    _error(IssueCode.OHLC_INCONSISTENT, f"high {h} below body max {max(o, c)}", index)
                )
            if l > min(o, c):
                issues.append(
                    _error(IssueCode.OHLC_INCONSISTENT, f"low {l} above body min {min(o, c)}", index)
                )

        if issues:
            return None, issues

        bar = Bar(
            time=time,
            open=numbers["open"],
            high=numbers["high"],
            low=numbers["low"],
            close=numbers["close"],
            volume=int(numbers["volume"]),
        )
        return bar, []

    # =========================================================================
    # NON-FATAL CHECKS
    # =========================================================================

    def _check_warnings(self, bars: list[Bar], now: datetime) -> list[ValidationIssue]:
        warnings: list[ValidationIssue] = []
        gap_threshold = self.settings.gap_threshold
        extreme = self.settings.extreme_move_ratio
        now = ensure_utc(now)

        for i, bar in enumerate(bars):
            if i > 0:
                delta = bar.time - bars[i - 1].time
                if delta.total_seconds() == 0:
                    warnings.append(
                        _warning(IssueCode.DUPLICATE_TIMESTAMP, f"Duplicate time {bar.time.isoformat()}", i)
                    )
                elif delta > gap_threshold:
                    warnings.append(
                        _warning(IssueCode.TIME_GAP, f"Gap of {delta} before {bar.time.isoformat()}", i)
                    )

            if bar.volume == 0:
                warnings.append(_warning(IssueCode.ZERO_VOLUME, "Zero volume", i))

            mid = (bar.high + bar.low) / 2
            if mid > 0 and bar.range / mid > extreme:
                warnings.append(
                    _warning(
                        IssueCode.EXTREME_MOVE,
                        f"Range {bar.range:.4f} is {bar.range / mid:.0%} of mid price",
                        i,
                    )
                )

            if bar.time > now:
                warnings.append(
                    _warning(IssueCode.FUTURE_TIMESTAMP, f"Time {bar.time.isoformat()} is in the future", i)
                )

        return warnings


# Singleton instance
_validator: Optional[SeriesValidator] = None


def get_series_validator() -> SeriesValidator:
    """Get or create the series validator singleton."""
    global _validator
    if _validator is None:
        _validator = SeriesValidator()
    return _validator
