from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, Sequence, Union

from perp_trader.ranking.probability import estimate_positive_pnl_probability
from perp_trader.types import RankedOpportunity, Recommendation, SkippedOpportunity, TopOpportunitiesResult
from perp_trader.utils import symbol_to_pair


logger = logging.getLogger(__name__)

DEFAULT_REC_SYMBOLS: tuple[str, ...] = (
    "BTC",
    "ETH",
    "SOL",
    "XRP",
    "DOGE",
    "BNB",
    "ADA",
    "AVAX",
    "LINK",
    "LTC",
    "DOT",
    "SUI",
    "APT",
    "NEAR",
    "ARB",
)


class RecommendationSource(Protocol):
    def __call__(self, *, pair: str, interval: str, bias_interval: str) -> Recommendation: ...


def _scan_one(source: RecommendationSource, symbol: str, interval: str, bias_interval: str) -> Union[RankedOpportunity, SkippedOpportunity]:
    pair = symbol_to_pair(symbol)
    try:
        rec = source(pair=pair, interval=interval, bias_interval=bias_interval)
    except Exception as e:  # noqa: BLE001
        logger.warning("scan_symbol_skipped symbol=%s reason=%s", symbol, e)
        return SkippedOpportunity(symbol=symbol, reason=str(e) or type(e).__name__)
    return RankedOpportunity(
        symbol=symbol,
        pair=pair,
        probability_positive_pnl=estimate_positive_pnl_probability(rec),
        recommendation=rec,
    )


def rank_opportunities(
    source: RecommendationSource,
    *,
    symbols: Sequence[str] | None = None,
    interval: str = "1m",
    bias_interval: str = "15m",
    top: int = 5,
    max_workers: int = 1,
) -> TopOpportunitiesResult:
    syms = list(symbols) if symbols else list(DEFAULT_REC_SYMBOLS)

    if max_workers > 1 and len(syms) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            # map() yields in submission order regardless of completion order
            results = list(pool.map(lambda s: _scan_one(source, s, interval, bias_interval), syms))
    else:
        results = [_scan_one(source, s, interval, bias_interval) for s in syms]

    ranked = [r for r in results if isinstance(r, RankedOpportunity)]
    skipped = [r for r in results if isinstance(r, SkippedOpportunity)]

    ranked.sort(
        key=lambda r: (
            r.probability_positive_pnl,
            r.recommendation.confidence,
            r.recommendation.risk_reward_ratio,
        ),
        reverse=True,
    )
    actionable = [r for r in ranked if r.recommendation.signal != "NO_TRADE"]
    logger.info("scan_done scanned=%d actionable=%d skipped=%d", len(syms), len(actionable), len(skipped))

    return TopOpportunitiesResult(
        scanned_symbols=len(syms),
        ranked=actionable[: max(0, int(top))],
        skipped=skipped,
    )
