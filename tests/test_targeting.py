from __future__ import annotations

import pytest

from perp_trader.errors import InputValidationError
from perp_trader.policy.targeting import (
    apply_objective_targeting,
    default_horizon_for_objective,
    default_risk_reward_for_objective,
    derive_objective_from_horizon,
)
from perp_trader.utils import parse_duration_to_minutes, parse_horizon_minutes, round_to, to_candle_count


def _target(**kw):
    params = dict(
        signal="LONG",
        entry=100.0,
        atr=0.6,
        base_interval="1m",
        leverage=10.0,
        position_size_usd=250.0,
        objective_usdc=10.0,
    )
    params.update(kw)
    return apply_objective_targeting(**params)


def test_objective_ten_on_2500_notional():
    r = _target()
    assert r.target_tp_fraction == pytest.approx(0.004, abs=1e-9)
    assert r.target_tp_pct == pytest.approx(0.4, abs=1e-9)
    assert r.expected_pnl_at_take_profit == pytest.approx(10.0)
    assert r.rr == 1.4
    assert r.target_sl_pct == pytest.approx(0.2857, abs=1e-4)
    assert r.take_profit == pytest.approx(100.4)
    assert r.stop_loss == pytest.approx(99.7143, abs=1e-4)
    assert r.notional_usd == 2500.0
    assert r.horizon == "15m"
    assert r.horizon_candles == 15
    assert "close at market" in r.time_stop_rule
    assert r.plausibility_warning is None


def test_objective_is_not_scaled_by_leverage():
    low = _target(leverage=5.0)
    high = _target(leverage=10.0)
    assert low.expected_pnl_at_take_profit == 10.0
    assert high.expected_pnl_at_take_profit == 10.0
    assert low.target_tp_pct > high.target_tp_pct


def test_large_and_medium_objectives_pick_wider_rr_and_longer_horizon():
    large = _target(objective_usdc=30.0)
    assert large.target_tp_fraction == pytest.approx(0.012, abs=1e-9)
    assert large.rr == 2.1
    assert large.horizon == "75m"
    medium = _target(objective_usdc=20.0)
    assert medium.rr == 1.8
    assert medium.horizon == "45m"


def test_short_levels_mirror_long():
    long_r = _target(atr=1.0)
    short_r = _target(atr=1.0, signal="SHORT")
    assert long_r.take_profit > 100 > long_r.stop_loss
    assert short_r.take_profit < 100 < short_r.stop_loss
    assert 100 - short_r.take_profit == pytest.approx(long_r.take_profit - 100)


def test_horizon_only_derives_objective():
    objective = derive_objective_from_horizon(entry=100.0, atr=0.2, base_interval="1m", horizon="60", notional_usd=2500.0)
    assert objective == pytest.approx(30.98, abs=1e-9)

    r = _target(atr=0.2, objective_usdc=None, horizon="60")
    assert r.objective_usdc == objective
    assert r.horizon == "60m"
    assert r.horizon_candles == 60


def test_derived_objective_is_clamped():
    tiny = derive_objective_from_horizon(entry=100.0, atr=0.001, base_interval="1m", horizon="15", notional_usd=2500.0)
    huge = derive_objective_from_horizon(entry=100.0, atr=50.0, base_interval="1m", horizon="15", notional_usd=2500.0)
    assert tiny == pytest.approx(2.5)
    assert huge == pytest.approx(50.0)


def test_plausibility_warning_when_target_outruns_atr():
    r = _target(atr=0.02, objective_usdc=30.0)
    assert r.plausibility_warning is not None
    assert "75m" in r.plausibility_warning
    # advisory only, levels are still produced
    assert r.take_profit > 100


@pytest.mark.parametrize(
    "kw",
    [
        {"leverage": 0.0},
        {"position_size_usd": -1.0},
        {"objective_usdc": 0.0},
        {"objective_usdc": None, "horizon": None},
        {"objective_usdc": None, "horizon": "abc"},
        {"base_interval": "1d", "objective_usdc": None, "horizon": "15"},
    ],
)
def test_invalid_inputs_raise(kw):
    with pytest.raises(InputValidationError):
        _target(**kw)


def test_step_functions():
    assert default_horizon_for_objective(10) == "15"
    assert default_horizon_for_objective(30) == "75"
    assert default_horizon_for_objective(11) == "45"
    assert default_risk_reward_for_objective(5) == 1.4
    assert default_risk_reward_for_objective(29.99) == 1.8
    assert default_risk_reward_for_objective(100) == 2.1


def test_duration_parsing_and_candle_counts():
    assert parse_duration_to_minutes("15m") == 15
    assert parse_duration_to_minutes("1h") == 60
    assert parse_duration_to_minutes(" 90M ") == 90
    assert parse_horizon_minutes("75") == 75
    assert to_candle_count(15, 1) == 15
    assert to_candle_count(75, 5) == 15
    assert to_candle_count(90, 15) == 6
    assert to_candle_count(50, 15) == 4
    with pytest.raises(InputValidationError):
        parse_horizon_minutes("-5")
    with pytest.raises(InputValidationError):
        parse_duration_to_minutes("0m")


@pytest.mark.parametrize("raw", ["²", "١٥", "1.5", "15m"])
def test_horizon_accepts_only_ascii_digits(raw):
    with pytest.raises(InputValidationError):
        parse_horizon_minutes(raw)


def test_duration_rejects_non_ascii_digits():
    with pytest.raises(InputValidationError):
        parse_duration_to_minutes("١٥m")


def test_round_to_breaks_ties_upward():
    assert round_to(0.03125, 4) == 0.0313
    assert round_to(-0.03125, 4) == -0.0313
    assert round_to(2.5, 0) == 3.0
