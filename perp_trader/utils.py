from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal

from perp_trader.errors import InputValidationError


_DIGITS_RE = re.compile(r"[0-9]+")
_DURATION_RE = re.compile(r"^([0-9]+)(m|h)$")
_INTERVAL_RE = re.compile(r"^([0-9]+)([mhd])$")
_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,12}$")


def round_to(value: float, digits: int) -> float:
    # half-up on exact ties, so 0.03125 -> 0.0313
    return float(Decimal(float(value)).quantize(Decimal(10) ** -digits, rounding=ROUND_HALF_UP))


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def parse_duration_to_minutes(duration: str) -> int:
    m = _DURATION_RE.match(duration.strip().lower())
    if not m:
        raise InputValidationError(f"Invalid duration '{duration}'. Use formats like 15m, 60m, or 1h.")
    amount = int(m.group(1))
    if amount <= 0:
        raise InputValidationError(f"Invalid duration '{duration}'. Amount must be a positive number.")
    return amount if m.group(2) == "m" else amount * 60


def parse_horizon_minutes(value: str) -> int:
    s = str(value).strip()
    if not _DIGITS_RE.fullmatch(s) or int(s) <= 0:
        raise InputValidationError(f"Invalid horizon '{value}'. Use minutes as a positive integer (e.g. 15, 75, 90).")
    return int(s)


def to_candle_count(horizon_minutes: int, interval_minutes: int) -> int:
    if horizon_minutes <= 0 or interval_minutes <= 0:
        raise InputValidationError("Horizon and interval minutes must be positive.")
    return int(math.ceil(horizon_minutes / interval_minutes))


def interval_to_seconds(interval: str) -> int | None:
    m = _INTERVAL_RE.match(interval.strip().lower())
    if not m:
        return None
    amount = int(m.group(1))
    if amount <= 0:
        return None
    unit = m.group(2)
    if unit == "m":
        return amount * 60
    if unit == "h":
        return amount * 3600
    return amount * 86400


def parse_trading_symbol(raw: str) -> str:
    s = raw.strip().upper()
    if not s:
        raise InputValidationError("Symbol is required.")
    if not _SYMBOL_RE.match(s):
        raise InputValidationError(f"Invalid symbol '{raw}'. Use base symbol only, e.g. BTC or ETH.")
    return s


def symbol_to_pair(symbol: str) -> str:
    return f"{symbol}-USD"
