from __future__ import annotations

import argparse
import json
import logging
import os
import time as time_mod
from dataclasses import asdict
from typing import Optional, Sequence

from perp_trader.backtest.simulation import evaluate_paper_trade
from perp_trader.config import DEFAULT_CONFIG, DEFAULT_MARKET_DATA
from perp_trader.data.backpack_client import BackpackMarketDataClient
from perp_trader.data.csv_loader import load_ohlcv_csv
from perp_trader.errors import InputValidationError
from perp_trader.pipelines.recommend import PerThreadGenerator, RecommendationGenerator
from perp_trader.pipelines.simulate import horizon_minutes_for, simulate_recommendation
from perp_trader.ranking.opportunities import rank_opportunities
from perp_trader.strategy.levels import AtrLevels, LevelMode, ObjectiveTargets, PercentOverride, UsdOverride
from perp_trader.types import PaperTrade
from perp_trader.utils import parse_horizon_minutes, parse_trading_symbol, symbol_to_pair


def _dump(obj: object) -> None:
    print(json.dumps(asdict(obj), separators=(",", ":"), ensure_ascii=False, default=str))  # type: ignore[arg-type]


def level_mode_from_args(args: argparse.Namespace) -> LevelMode:
    pct = args.sl is not None or args.tp is not None
    usd = args.sl_usd is not None or args.tp_usd is not None
    objective = args.objective is not None or args.horizon is not None
    if sum((pct, usd, objective)) > 1:
        raise InputValidationError("Use only one of percent levels (--sl/--tp), USD levels (--sl-usd/--tp-usd), or --objective/--horizon.")
    if pct:
        return PercentOverride(sl_pct=args.sl, tp_pct=args.tp)
    if usd:
        return UsdOverride(sl_usd=args.sl_usd, tp_usd=args.tp_usd)
    if objective:
        if args.leverage is None or args.size is None:
            raise InputValidationError("--objective/--horizon require -l/--leverage and -s/--size.")
        if args.horizon is not None:
            parse_horizon_minutes(args.horizon)
        return ObjectiveTargets(objective_usdc=args.objective, horizon=args.horizon, base_interval=args.tf)
    return AtrLevels()


def _cmd_recommend(args: argparse.Namespace) -> int:
    pair = symbol_to_pair(parse_trading_symbol(args.symbol))
    mode = level_mode_from_args(args)
    client = BackpackMarketDataClient()
    gen = RecommendationGenerator(
        client,
        limit=args.limit,
        mode=mode,
        leverage=args.leverage,
        position_size_usd=args.size,
        daily_target_usd=args.daily_target,
    )
    run = gen.generate(pair=pair, interval=args.tf, bias_interval=args.bias_tf)
    rec = run.recommendation
    _dump(rec)

    if not args.simulate:
        return 0
    if not rec.is_actionable:
        logging.info("simulation_skipped reason=no_trade")
        return 0
    opened_at = max(c.timestamp for c in run.candles)
    minutes = horizon_minutes_for(rec)
    logging.info("simulation_wait minutes=%d", minutes)
    time_mod.sleep(minutes * 60)
    later = client.get_candles(pair, args.tf, args.limit)
    _dump(simulate_recommendation(rec, opened_at_ms=opened_at, candles=later, horizon_minutes=minutes))
    return 0


def _cmd_scan(args: argparse.Namespace) -> int:
    symbols = [parse_trading_symbol(s) for s in args.symbols] or None
    source = PerThreadGenerator(lambda: RecommendationGenerator(BackpackMarketDataClient(), limit=args.limit))
    result = rank_opportunities(
        source,
        symbols=symbols,
        interval=args.tf,
        bias_interval=args.bias_tf,
        top=args.top,
        max_workers=args.workers,
    )
    _dump(result)
    return 0


def _cmd_simulate(args: argparse.Namespace) -> int:
    candles = load_ohlcv_csv(args.candles)
    trade = PaperTrade(
        signal=args.signal,
        entry=args.entry,
        stop_loss=args.sl,
        take_profit=args.tp,
        opened_at_ms=args.opened_at,
    )
    _dump(evaluate_paper_trade(trade, candles, args.horizon_end))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="perp-trader")
    ap.add_argument("--log-file", default="")
    sub = ap.add_subparsers(dest="command", required=True)

    rec = sub.add_parser("recommend", help="score one perp market and print a recommendation")
    rec.add_argument("symbol")
    rec.add_argument("--tf", default="1m")
    rec.add_argument("--bias-tf", default="15m")
    rec.add_argument("--limit", type=int, default=DEFAULT_MARKET_DATA.candle_limit)
    rec.add_argument("-l", "--leverage", type=float, default=None)
    rec.add_argument("-s", "--size", type=float, default=None)
    rec.add_argument("--sl", type=float, default=None)
    rec.add_argument("--tp", type=float, default=None)
    rec.add_argument("--sl-usd", type=float, default=None)
    rec.add_argument("--tp-usd", type=float, default=None)
    rec.add_argument("--objective", type=float, default=None)
    rec.add_argument("--horizon", default=None)
    rec.add_argument("--daily-target", type=float, default=DEFAULT_CONFIG.default_daily_target_usd)
    rec.add_argument("--simulate", action="store_true")
    rec.set_defaults(func=_cmd_recommend)

    scan = sub.add_parser("scan", help="rank symbols by estimated probability of positive PnL")
    scan.add_argument("symbols", nargs="*")
    scan.add_argument("--tf", default="1m")
    scan.add_argument("--bias-tf", default="15m")
    scan.add_argument("--limit", type=int, default=DEFAULT_MARKET_DATA.candle_limit)
    scan.add_argument("--top", type=int, default=5)
    scan.add_argument("--workers", type=int, default=1)
    scan.set_defaults(func=_cmd_scan)

    sim = sub.add_parser("simulate", help="evaluate a paper trade against a candle CSV")
    sim.add_argument("--candles", required=True)
    sim.add_argument("--signal", choices=["LONG", "SHORT"], required=True)
    sim.add_argument("--entry", type=float, required=True)
    sim.add_argument("--sl", type=float, required=True)
    sim.add_argument("--tp", type=float, required=True)
    sim.add_argument("--opened-at", type=int, required=True)
    sim.add_argument("--horizon-end", type=int, required=True)
    sim.set_defaults(func=_cmd_simulate)
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = os.environ.get("PERP_TRADER_LOG_LEVEL", "INFO").upper()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file, encoding="utf-8"))
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), handlers=handlers, format="%(asctime)s %(levelname)s %(message)s")

    try:
        return int(args.func(args))
    except InputValidationError as e:
        logging.error("invalid_input %s", e)
        return 2
    except Exception:  # noqa: BLE001
        logging.exception("command_failed command=%s", args.command)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
