from __future__ import annotations


class TraderError(Exception):
    kind: str = "trader_error"


class InputValidationError(TraderError, ValueError):
    """Caller-correctable input: bad sizing, conflicting level modes, malformed horizon."""

    kind = "input_validation"


class LevelInvariantError(TraderError, RuntimeError):
    """Stop-loss or take-profit ended up on the wrong side of entry."""

    kind = "level_invariant"


class InsufficientDataError(TraderError, RuntimeError):
    kind = "insufficient_data"


class MarketDataError(TraderError, RuntimeError):
    kind = "market_data"
