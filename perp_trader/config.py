from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ScoringWeights:
    # Points per factor
    ema_trend: int = 28
    adx_trend: int = 10
    macd_momentum: int = 18
    rsi_continuation: int = 4
    rsi_reversal: int = 5
    stoch_rsi_timing: int = 3
    vwap_side: int = 10
    bollinger_stretch: int = 3
    funding_crowding: int = 4
    premium_crowding: int = 4
    htf_bias: int = 16
    stable_volatility: int = 3

    # Thresholds
    adx_strong: float = 25.0
    adx_choppy: float = 18.0
    rsi_bull_band: tuple[float, float] = (55.0, 70.0)
    rsi_bear_band: tuple[float, float] = (30.0, 45.0)
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    stoch_rsi_upper: float = 80.0
    stoch_rsi_lower: float = 20.0
    funding_threshold: float = 0.00005
    premium_threshold_pct: float = 0.15
    atr_pct_choppy: float = 0.12
    atr_pct_elevated: float = 0.8
    vwap_proximity_pct: float = 0.03

    # Confidence shaping
    strong_diff: int = 15
    strong_base: int = 50
    weak_base: int = 45
    weak_floor: int = 35
    choppy_penalty: int = 18
    vwap_penalty: int = 12
    confidence_floor: int = 25


@dataclass(frozen=True)
class AtrProfile:
    sl_mult: float
    tp_mult: float
    tp_fallback_mult: float


@dataclass(frozen=True)
class AtrProfiles:
    low_band_pct: float = 0.18
    high_band_pct: float = 1.0
    low: AtrProfile = AtrProfile(sl_mult=1.0, tp_mult=1.5, tp_fallback_mult=1.35)
    normal: AtrProfile = AtrProfile(sl_mult=1.2, tp_mult=2.0, tp_fallback_mult=1.8)
    high: AtrProfile = AtrProfile(sl_mult=1.45, tp_mult=2.4, tp_fallback_mult=2.2)

    def select(self, atr_pct: float) -> AtrProfile:
        if atr_pct < self.low_band_pct:
            return self.low
        if atr_pct > self.high_band_pct:
            return self.high
        return self.normal


@dataclass(frozen=True)
class GuardThresholds:
    min_rr: float = 1.2
    min_confidence: int = 45


@dataclass(frozen=True)
class TargetingConfig:
    tp_expected_move_threshold: float = 1.5
    horizon_move_share: float = 0.8
    min_target_fraction: float = 0.001
    max_target_fraction: float = 0.02
    small_objective_usdc: float = 10.0
    large_objective_usdc: float = 30.0
    rr_small: float = 1.4
    rr_medium: float = 1.8
    rr_large: float = 2.1
    horizon_small: str = "15"
    horizon_medium: str = "45"
    horizon_large: str = "75"


@dataclass(frozen=True)
class MarketDataConfig:
    base_url: str = os.environ.get("PERP_TRADER_API_URL", "https://api.backpack.exchange")
    timeout_seconds: float = 10.0
    candle_limit: int = 120
    min_indicator_candles: int = 60


@dataclass(frozen=True)
class EngineConfig:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    atr_profiles: AtrProfiles = field(default_factory=AtrProfiles)
    guards: GuardThresholds = field(default_factory=GuardThresholds)
    targeting: TargetingConfig = field(default_factory=TargetingConfig)
    default_daily_target_usd: float = 100.0


DEFAULT_WEIGHTS = ScoringWeights()
DEFAULT_ATR_PROFILES = AtrProfiles()
DEFAULT_GUARDS = GuardThresholds()
DEFAULT_TARGETING = TargetingConfig()
DEFAULT_MARKET_DATA = MarketDataConfig()
DEFAULT_CONFIG = EngineConfig()
