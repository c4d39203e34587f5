from __future__ import annotations

import numpy as np

from perp_trader.types import Recommendation


def estimate_positive_pnl_probability(rec: Recommendation) -> int:
    p = float(rec.confidence)
    p += -30 if rec.signal == "NO_TRADE" else 4
    p += -14 if rec.regime == "CHOPPY" else 3

    rr = rec.risk_reward_ratio
    if rr >= 2:
        p += 9
    elif rr >= 1.5:
        p += 5
    elif rr < 1.2:
        p -= 16
    elif rr < 1.4:
        p -= 8

    return int(round(float(np.clip(p, 1, 99))))
