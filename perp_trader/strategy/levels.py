from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from perp_trader.config import DEFAULT_ATR_PROFILES, DEFAULT_TARGETING, AtrProfiles, TargetingConfig
from perp_trader.errors import InputValidationError, LevelInvariantError
from perp_trader.policy.targeting import TargetingResult, apply_objective_targeting
from perp_trader.strategy.scoring import atr_pct_of
from perp_trader.types import IndicatorSnapshot, Signal
from perp_trader.utils import parse_duration_to_minutes, parse_horizon_minutes


@dataclass(frozen=True)
class AtrLevels:
    """Default: stop/target from ATR multiples blended with Bollinger levels."""


@dataclass(frozen=True)
class PercentOverride:
    sl_pct: Optional[float] = None
    tp_pct: Optional[float] = None

    def __post_init__(self) -> None:
        _check_override(self.sl_pct, self.tp_pct, "percent")


@dataclass(frozen=True)
class UsdOverride:
    sl_usd: Optional[float] = None
    tp_usd: Optional[float] = None

    def __post_init__(self) -> None:
        _check_override(self.sl_usd, self.tp_usd, "USD")


@dataclass(frozen=True)
class ObjectiveTargets:
    objective_usdc: Optional[float] = None
    horizon: Optional[str] = None
    base_interval: str = "1m"

    def __post_init__(self) -> None:
        if self.objective_usdc is not None and self.horizon is not None:
            raise InputValidationError("Provide either an objective or a horizon, not both.")
        if self.objective_usdc is None and self.horizon is None:
            raise InputValidationError("Provide either objective or horizon for objective targeting.")
        if self.objective_usdc is not None and self.objective_usdc <= 0:
            raise InputValidationError("Objective must be a positive USDC value.")
        if self.horizon is not None:
            parse_horizon_minutes(self.horizon)
        parse_duration_to_minutes(self.base_interval)


LevelMode = Union[AtrLevels, PercentOverride, UsdOverride, ObjectiveTargets]


@dataclass(frozen=True)
class PriceLevels:
    entry: float
    stop_loss: float
    take_profit: float
    targeting: Optional[TargetingResult] = None


def _check_override(sl: Optional[float], tp: Optional[float], label: str) -> None:
    if sl is None and tp is None:
        raise InputValidationError(f"A {label} override needs a stop-loss or a take-profit value.")
    for v in (sl, tp):
        if v is not None and v <= 0:
            raise InputValidationError(f"{label} override values must be positive (got {v}).")


def atr_levels(
    direction: Signal,
    entry: float,
    indicators: IndicatorSnapshot,
    profiles: AtrProfiles = DEFAULT_ATR_PROFILES,
) -> tuple[float, float]:
    if direction == "NO_TRADE":
        return entry, entry
    atr = indicators.atr14
    p = profiles.select(atr_pct_of(indicators))
    if direction == "LONG":
        stop_loss = min(entry - p.sl_mult * atr, indicators.bb_middle)
        take_profit = max(entry + p.tp_mult * atr, indicators.bb_upper)
        if take_profit <= entry:
            take_profit = entry + p.tp_fallback_mult * atr
        return stop_loss, take_profit
    stop_loss = max(entry + p.sl_mult * atr, indicators.bb_middle)
    take_profit = min(entry - p.tp_mult * atr, indicators.bb_lower)
    if take_profit >= entry:
        take_profit = entry - p.tp_fallback_mult * atr
    return stop_loss, take_profit


def validate_levels(direction: Signal, entry: float, stop_loss: float, take_profit: float) -> None:
    if direction == "LONG":
        if not stop_loss < entry:
            raise LevelInvariantError("Invalid stop loss for LONG: stop loss must be below entry.")
        if not take_profit > entry:
            raise LevelInvariantError("Invalid take profit for LONG: take profit must be above entry.")
    elif direction == "SHORT":
        if not stop_loss > entry:
            raise LevelInvariantError("Invalid stop loss for SHORT: stop loss must be above entry.")
        if not take_profit < entry:
            raise LevelInvariantError("Invalid take profit for SHORT: take profit must be below entry.")


def build_levels(
    direction: Signal,
    entry: float,
    indicators: IndicatorSnapshot,
    mode: LevelMode,
    *,
    leverage: Optional[float] = None,
    position_size_usd: Optional[float] = None,
    profiles: AtrProfiles = DEFAULT_ATR_PROFILES,
    targeting_cfg: TargetingConfig = DEFAULT_TARGETING,
) -> PriceLevels:
    stop_loss, take_profit = atr_levels(direction, entry, indicators, profiles)
    targeting: Optional[TargetingResult] = None

    if direction != "NO_TRADE":
        sign = 1.0 if direction == "LONG" else -1.0
        if isinstance(mode, PercentOverride):
            if mode.sl_pct is not None:
                stop_loss = entry - sign * entry * (mode.sl_pct / 100.0)
            if mode.tp_pct is not None:
                take_profit = entry + sign * entry * (mode.tp_pct / 100.0)
        elif isinstance(mode, UsdOverride):
            if mode.sl_usd is not None:
                stop_loss = entry - sign * mode.sl_usd
            if mode.tp_usd is not None:
                take_profit = entry + sign * mode.tp_usd
        elif isinstance(mode, ObjectiveTargets):
            if leverage is None or position_size_usd is None:
                raise InputValidationError("Objective/horizon targeting requires leverage and position size.")
            targeting = apply_objective_targeting(
                signal=direction,
                entry=entry,
                atr=indicators.atr14,
                base_interval=mode.base_interval,
                leverage=leverage,
                position_size_usd=position_size_usd,
                objective_usdc=mode.objective_usdc,
                horizon=mode.horizon,
                cfg=targeting_cfg,
            )
            stop_loss = targeting.stop_loss
            take_profit = targeting.take_profit

    validate_levels(direction, entry, stop_loss, take_profit)
    return PriceLevels(entry=entry, stop_loss=stop_loss, take_profit=take_profit, targeting=targeting)
