from __future__ import annotations

import math
from typing import Optional

from perp_trader.config import DEFAULT_CONFIG, EngineConfig
from perp_trader.errors import InputValidationError
from perp_trader.policy.guards import apply_trade_guards, risk_reward, to_action
from perp_trader.strategy.levels import AtrLevels, LevelMode, ObjectiveTargets, build_levels
from perp_trader.strategy.scoring import score_signal
from perp_trader.types import Direction, IndicatorSnapshot, PerpMarketSnapshot, Recommendation, Signal
from perp_trader.utils import round_to


def estimate_pnl(
    *,
    signal: Signal,
    entry: float,
    stop_loss: float,
    take_profit: float,
    leverage: Optional[float],
    position_size_usd: Optional[float],
) -> Optional[tuple[float, float]]:
    """(pnl at stop, pnl at target) on the leveraged notional, or None without sizing."""
    if signal == "NO_TRADE" or not leverage or not position_size_usd or entry <= 0:
        return None
    notional = leverage * position_size_usd
    sign = 1.0 if signal == "LONG" else -1.0
    at_sl = notional * sign * (stop_loss - entry) / entry
    at_tp = notional * sign * (take_profit - entry) / entry
    return round_to(at_sl, 4), round_to(at_tp, 4)


def _validate_sizing(mode: LevelMode, leverage: Optional[float], position_size_usd: Optional[float]) -> None:
    if leverage is not None and leverage <= 0:
        raise InputValidationError("Leverage must be positive.")
    if position_size_usd is not None and position_size_usd <= 0:
        raise InputValidationError("Position size must be positive.")
    if isinstance(mode, ObjectiveTargets) and (leverage is None or position_size_usd is None):
        raise InputValidationError("Objective/horizon targeting requires leverage and position size.")


def build_recommendation(
    *,
    pair: str,
    last_price: float,
    indicators: IndicatorSnapshot,
    perp: PerpMarketSnapshot,
    mode: LevelMode = AtrLevels(),
    bias_direction: Optional[Direction] = None,
    bias_label: Optional[str] = None,
    daily_target_usd: Optional[float] = None,
    leverage: Optional[float] = None,
    position_size_usd: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Recommendation:
    _validate_sizing(mode, leverage, position_size_usd)
    daily_target = float(config.default_daily_target_usd if daily_target_usd is None else daily_target_usd)

    score = score_signal(
        indicators,
        perp,
        last_price,
        bias_direction=bias_direction,
        bias_label=bias_label,
        weights=config.weights,
    )
    rationale = list(score.rationale)

    levels = build_levels(
        score.direction,
        float(last_price),
        indicators,
        mode,
        leverage=leverage,
        position_size_usd=position_size_usd,
        profiles=config.atr_profiles,
        targeting_cfg=config.targeting,
    )
    rr = risk_reward(levels.entry, levels.stop_loss, levels.take_profit)

    decision = apply_trade_guards(
        signal=score.direction,
        regime=score.regime,
        confidence=score.confidence,
        risk_reward_ratio=rr,
        th=config.guards,
    )
    if decision.veto:
        rationale.append(decision.veto)
    final = decision.signal

    t = levels.targeting
    pnl: Optional[tuple[float, float]]
    if final == "NO_TRADE" or not leverage or not position_size_usd:
        pnl = None
    elif t is not None:
        pnl = (t.expected_pnl_at_stop_loss, t.expected_pnl_at_take_profit)
    else:
        pnl = estimate_pnl(
            signal=final,
            entry=levels.entry,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            leverage=leverage,
            position_size_usd=position_size_usd,
        )

    trades_to_target = None
    if pnl is not None and pnl[1] > 0:
        trades_to_target = int(math.ceil(daily_target / pnl[1]))

    return Recommendation(
        pair=pair,
        signal=final,
        action=to_action(final),
        regime=score.regime,
        entry=round_to(levels.entry, 4),
        stop_loss=round_to(levels.stop_loss, 4),
        take_profit=round_to(levels.take_profit, 4),
        risk_reward_ratio=round_to(rr, 4),
        daily_target_usd=daily_target,
        confidence=score.confidence,
        rationale=tuple(rationale),
        indicators=indicators,
        perp=perp,
        leverage=leverage,
        position_size_usd=position_size_usd,
        estimated_pnl_at_stop_loss=None if pnl is None else pnl[0],
        estimated_pnl_at_take_profit=None if pnl is None else pnl[1],
        trades_to_daily_target=trades_to_target,
        objective_usdc=None if t is None else t.objective_usdc,
        objective_horizon=None if t is None else t.horizon,
        objective_horizon_minutes=None if t is None else t.horizon_minutes,
        objective_horizon_candles=None if t is None else t.horizon_candles,
        time_stop_rule=None if t is None else t.time_stop_rule,
        objective_target_tp_pct=None if t is None else t.target_tp_pct,
        objective_target_sl_pct=None if t is None else t.target_sl_pct,
        objective_rr=None if t is None else t.rr,
        objective_notional_usd=None if t is None else t.notional_usd,
        plausibility_warning=None if t is None else t.plausibility_warning,
    )
