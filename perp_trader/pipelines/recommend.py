from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, replace
from typing import Callable, Optional, Protocol

from perp_trader.config import DEFAULT_CONFIG, DEFAULT_MARKET_DATA, EngineConfig
from perp_trader.errors import InsufficientDataError
from perp_trader.indicators.snapshot import compute_indicator_snapshot, trend_bias
from perp_trader.strategy.levels import AtrLevels, LevelMode, ObjectiveTargets
from perp_trader.strategy.recommendation import build_recommendation
from perp_trader.types import Candle, PerpMarketSnapshot, Recommendation


logger = logging.getLogger(__name__)


class MarketData(Protocol):
    def get_candles(self, pair: str, interval: str, limit: int) -> list[Candle]: ...

    def get_perp_snapshot(self, pair: str) -> PerpMarketSnapshot: ...


@dataclass(frozen=True)
class RecommendationRun:
    recommendation: Recommendation
    candles: list[Candle]


class RecommendationGenerator:
    """Fetch, compute indicators and build one recommendation per call.

    Instances are callable with ``(pair=, interval=, bias_interval=)`` so they
    can be handed straight to ``rank_opportunities``.
    """

    def __init__(
        self,
        market_data: MarketData,
        *,
        limit: int = DEFAULT_MARKET_DATA.candle_limit,
        mode: LevelMode = AtrLevels(),
        leverage: Optional[float] = None,
        position_size_usd: Optional[float] = None,
        daily_target_usd: Optional[float] = None,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> None:
        self.market_data = market_data
        self.limit = int(limit)
        self.mode = mode
        self.leverage = leverage
        self.position_size_usd = position_size_usd
        self.daily_target_usd = daily_target_usd
        self.config = config

    def _bias(self, pair: str, interval: str, bias_interval: Optional[str]) -> Optional[str]:
        if not bias_interval or bias_interval == interval:
            return None
        candles = self.market_data.get_candles(pair, bias_interval, self.limit)
        return trend_bias(candles)

    def generate(self, *, pair: str, interval: str = "1m", bias_interval: Optional[str] = "15m") -> RecommendationRun:
        candles = self.market_data.get_candles(pair, interval, self.limit)
        if not candles:
            raise InsufficientDataError("No candle data returned from market source.")

        indicators = compute_indicator_snapshot(candles)
        last = max(candles, key=lambda c: c.timestamp)
        perp = self.market_data.get_perp_snapshot(pair)
        bias = self._bias(pair, interval, bias_interval)
        logger.debug("indicators pair=%s %s", pair, asdict(indicators))
        logger.debug("perp_snapshot pair=%s %s", pair, asdict(perp))

        mode = self.mode
        if isinstance(mode, ObjectiveTargets):
            mode = replace(mode, base_interval=interval)

        rec = build_recommendation(
            pair=pair,
            last_price=last.close,
            indicators=indicators,
            perp=perp,
            mode=mode,
            bias_direction=bias,  # type: ignore[arg-type]
            bias_label=bias_interval if bias else None,
            daily_target_usd=self.daily_target_usd,
            leverage=self.leverage,
            position_size_usd=self.position_size_usd,
            config=self.config,
        )
        logger.info("recommendation pair=%s signal=%s confidence=%d rr=%.4f", pair, rec.signal, rec.confidence, rec.risk_reward_ratio)
        return RecommendationRun(recommendation=rec, candles=candles)

    def __call__(self, *, pair: str, interval: str = "1m", bias_interval: Optional[str] = "15m") -> Recommendation:
        return self.generate(pair=pair, interval=interval, bias_interval=bias_interval).recommendation


class PerThreadGenerator:
    """Builds one generator per calling thread and reuses it.

    ``requests.Session`` is not safe to share across threads, so a parallel
    scan gives each worker its own market-data client.
    """

    def __init__(self, factory: Callable[[], RecommendationGenerator]) -> None:
        self._factory = factory
        self._local = threading.local()

    def _generator(self) -> RecommendationGenerator:
        gen = getattr(self._local, "generator", None)
        if gen is None:
            gen = self._factory()
            self._local.generator = gen
        return gen

    def __call__(self, *, pair: str, interval: str = "1m", bias_interval: Optional[str] = "15m") -> Recommendation:
        return self._generator()(pair=pair, interval=interval, bias_interval=bias_interval)
