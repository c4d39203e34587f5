from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional


Signal = Literal["LONG", "SHORT", "NO_TRADE"]
Direction = Literal["LONG", "SHORT"]
Action = Literal["LONG", "SHORT", "NO TRADE"]
Regime = Literal["TRADEABLE", "CHOPPY"]
OutcomeStatus = Literal["SUCCESS", "FAILURE"]


@dataclass(frozen=True)
class Candle:
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class IndicatorSnapshot:
    rsi14: float
    ema20: float
    ema50: float
    macd: float
    macd_signal: float
    macd_histogram: float
    atr14: float
    adx14: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    stoch_rsi_k: float
    stoch_rsi_d: float
    vwap: float


@dataclass(frozen=True)
class PerpMarketSnapshot:
    symbol: str
    funding_rate: float
    funding_rate_avg: float
    open_interest: float
    mark_price: float
    index_price: float
    premium_pct: float


@dataclass(frozen=True)
class Recommendation:
    pair: str
    signal: Signal
    action: Action
    regime: Regime
    entry: float
    stop_loss: float
    take_profit: float
    risk_reward_ratio: float
    daily_target_usd: float
    confidence: int
    rationale: tuple[str, ...]
    indicators: IndicatorSnapshot
    perp: PerpMarketSnapshot
    leverage: Optional[float] = None
    position_size_usd: Optional[float] = None
    estimated_pnl_at_stop_loss: Optional[float] = None
    estimated_pnl_at_take_profit: Optional[float] = None
    trades_to_daily_target: Optional[int] = None
    objective_usdc: Optional[float] = None
    objective_horizon: Optional[str] = None
    objective_horizon_minutes: Optional[int] = None
    objective_horizon_candles: Optional[int] = None
    time_stop_rule: Optional[str] = None
    objective_target_tp_pct: Optional[float] = None
    objective_target_sl_pct: Optional[float] = None
    objective_rr: Optional[float] = None
    objective_notional_usd: Optional[float] = None
    plausibility_warning: Optional[str] = None

    @property
    def is_actionable(self) -> bool:
        return self.signal != "NO_TRADE"


@dataclass(frozen=True)
class PaperTrade:
    signal: Direction
    entry: float
    stop_loss: float
    take_profit: float
    opened_at_ms: int


@dataclass(frozen=True)
class SimulationOutcome:
    status: OutcomeStatus
    reason: str
    exit_price: float
    pnl_pct: float


@dataclass(frozen=True)
class RankedOpportunity:
    symbol: str
    pair: str
    probability_positive_pnl: int
    recommendation: Recommendation


@dataclass(frozen=True)
class SkippedOpportunity:
    symbol: str
    reason: str


@dataclass(frozen=True)
class TopOpportunitiesResult:
    scanned_symbols: int
    ranked: list[RankedOpportunity]
    skipped: list[SkippedOpportunity]
