from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from perp_trader.config import DEFAULT_TARGETING, TargetingConfig
from perp_trader.errors import InputValidationError
from perp_trader.types import Direction
from perp_trader.utils import clamp, parse_duration_to_minutes, parse_horizon_minutes, round_to, to_candle_count


@dataclass(frozen=True)
class TargetingResult:
    objective_usdc: float
    horizon: str
    horizon_minutes: int
    horizon_candles: int
    time_stop_rule: str
    notional_usd: float
    target_tp_fraction: float
    target_tp_pct: float
    target_sl_pct: float
    rr: float
    take_profit: float
    stop_loss: float
    expected_pnl_at_take_profit: float
    expected_pnl_at_stop_loss: float
    plausibility_warning: Optional[str] = None


def default_horizon_for_objective(objective_usdc: float, cfg: TargetingConfig = DEFAULT_TARGETING) -> str:
    if objective_usdc <= cfg.small_objective_usdc:
        return cfg.horizon_small
    if objective_usdc >= cfg.large_objective_usdc:
        return cfg.horizon_large
    return cfg.horizon_medium


def default_risk_reward_for_objective(objective_usdc: float, cfg: TargetingConfig = DEFAULT_TARGETING) -> float:
    if objective_usdc <= cfg.small_objective_usdc:
        return cfg.rr_small
    if objective_usdc >= cfg.large_objective_usdc:
        return cfg.rr_large
    return cfg.rr_medium


def expected_move(atr: float, candles: int) -> float:
    return atr * math.sqrt(max(candles, 1))


def derive_objective_from_horizon(
    *,
    entry: float,
    atr: float,
    base_interval: str,
    horizon: Optional[str],
    notional_usd: float,
    cfg: TargetingConfig = DEFAULT_TARGETING,
) -> float:
    if not horizon:
        raise InputValidationError("Provide either objective or horizon for objective targeting.")
    if entry <= 0 or notional_usd <= 0:
        raise InputValidationError("Invalid entry or notional for horizon-based objective.")

    candles = to_candle_count(parse_horizon_minutes(horizon), parse_duration_to_minutes(base_interval))
    move_fraction = expected_move(atr, candles) / entry
    # conservative share of the expected move, clamped to intraday-sized targets
    target_fraction = clamp(move_fraction * cfg.horizon_move_share, cfg.min_target_fraction, cfg.max_target_fraction)
    return round_to(notional_usd * target_fraction, 2)


def apply_objective_targeting(
    *,
    signal: Direction,
    entry: float,
    atr: float,
    base_interval: str,
    leverage: float,
    position_size_usd: float,
    objective_usdc: Optional[float] = None,
    horizon: Optional[str] = None,
    cfg: TargetingConfig = DEFAULT_TARGETING,
) -> TargetingResult:
    """Translate a USDC profit objective (or a horizon) into TP/SL price levels.

    The objective is a PnL target on the leveraged notional; it is not scaled
    by leverage a second time. When only a horizon is given, the objective is
    derived from the ATR-implied move over that horizon. The plausibility
    warning is advisory and never blocks the result.
    """
    if leverage <= 0 or position_size_usd <= 0:
        raise InputValidationError("Objective targeting requires positive leverage and position size.")
    if objective_usdc is not None and objective_usdc <= 0:
        raise InputValidationError("Objective must be a positive USDC value.")

    notional = position_size_usd * leverage
    if objective_usdc is None:
        objective = derive_objective_from_horizon(
            entry=entry,
            atr=atr,
            base_interval=base_interval,
            horizon=horizon,
            notional_usd=notional,
            cfg=cfg,
        )
    else:
        objective = float(objective_usdc)

    tp_fraction = objective / notional
    rr = default_risk_reward_for_objective(objective, cfg)
    sl_fraction = tp_fraction / rr

    if signal == "LONG":
        take_profit = entry * (1 + tp_fraction)
        stop_loss = entry * (1 - sl_fraction)
    else:
        take_profit = entry * (1 - tp_fraction)
        stop_loss = entry * (1 + sl_fraction)

    horizon_value = horizon or default_horizon_for_objective(objective, cfg)
    horizon_minutes = parse_horizon_minutes(horizon_value)
    horizon_label = f"{horizon_minutes}m"
    horizon_candles = to_candle_count(horizon_minutes, parse_duration_to_minutes(base_interval))

    move = expected_move(atr, horizon_candles)
    tp_distance = abs(take_profit - entry)
    warning = None
    if tp_distance > move * cfg.tp_expected_move_threshold:
        warning = (
            f"TP distance is {tp_distance:.2f}, above {cfg.tp_expected_move_threshold}x expected move "
            f"({move:.2f}) for {horizon_label}. Consider a longer horizon or smaller objective."
        )

    return TargetingResult(
        objective_usdc=round_to(objective, 2),
        horizon=horizon_label,
        horizon_minutes=horizon_minutes,
        horizon_candles=horizon_candles,
        time_stop_rule=f"If TP/SL is not hit within {horizon_label}, close at market (time-stop).",
        notional_usd=round_to(notional, 2),
        target_tp_fraction=round_to(tp_fraction, 6),
        target_tp_pct=round_to(tp_fraction * 100, 4),
        target_sl_pct=round_to(sl_fraction * 100, 4),
        rr=round_to(rr, 4),
        take_profit=round_to(take_profit, 4),
        stop_loss=round_to(stop_loss, 4),
        expected_pnl_at_take_profit=round_to(objective, 4),
        expected_pnl_at_stop_loss=round_to(-(notional * sl_fraction), 4),
        plausibility_warning=warning,
    )
