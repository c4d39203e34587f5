from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from perp_trader.config import DEFAULT_GUARDS, GuardThresholds
from perp_trader.types import Action, Direction, Regime, Signal


@dataclass(frozen=True)
class GuardDecision:
    signal: Signal
    veto: Optional[str]


def risk_reward(entry: float, stop_loss: float, take_profit: float) -> float:
    risk = abs(entry - stop_loss)
    if risk <= 0:
        return 0.0
    return abs(take_profit - entry) / risk


def apply_trade_guards(
    *,
    signal: Direction,
    regime: Regime,
    confidence: int,
    risk_reward_ratio: float,
    th: GuardThresholds = DEFAULT_GUARDS,
) -> GuardDecision:
    # First veto wins.
    if regime == "CHOPPY":
        return GuardDecision(signal="NO_TRADE", veto="No-trade guard: choppy regime.")
    if risk_reward_ratio < th.min_rr:
        return GuardDecision(signal="NO_TRADE", veto=f"No-trade guard: risk/reward below {th.min_rr}.")
    if confidence < th.min_confidence:
        return GuardDecision(signal="NO_TRADE", veto="No-trade guard: confidence too low.")
    return GuardDecision(signal=signal, veto=None)


def to_action(signal: Signal) -> Action:
    if signal == "NO_TRADE":
        return "NO TRADE"
    return signal
