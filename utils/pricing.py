#Description: Entry-zone and efficiency math shared by the evaluator, notifier and metrics.
import math
from typing import Optional

from models.schemas import SignalSnapshot, SignalStatus


def entry_average(entry_min: float, entry_max: Optional[float]) -> float:
    entry_min = float(entry_min or 0.0)
    entry_max = float(entry_max or entry_min)
    return (entry_min + entry_max) / 2


def pct_from_entry(price: float, entry_avg: float) -> float:
    if not entry_avg:
        return 0.0
    return (price - entry_avg) / entry_avg * 100.0


def level_percentages(entry_avg: float, tp1: float, tp2: float, tp3: float, sl: float) -> dict:
    return {
        "tp1_pct": pct_from_entry(tp1, entry_avg) if tp1 else 0.0,
        "tp2_pct": pct_from_entry(tp2, entry_avg) if tp2 else 0.0,
        "tp3_pct": pct_from_entry(tp3, entry_avg) if tp3 else 0.0,
        "stop_loss_pct": pct_from_entry(sl, entry_avg) if sl else 0.0,
    }


def is_valid_price(price) -> bool:
    try:
        value = float(price)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


def level_pct(signal: SignalSnapshot, level: str) -> float:
    """Stored percent for tp1/tp2/tp3/stop_loss, recomputed from the price when missing."""
    stored = getattr(signal, f"{level}_pct")
    if stored is not None:
        return float(stored)
    avg = entry_average(signal.entry_price_min, signal.entry_price_max)
    return pct_from_entry(float(getattr(signal, f"{level}_price") or 0.0), avg)


def actual_efficiency(signal: SignalSnapshot) -> float:
    """
    Realized percent move of a signal relative to its entry midpoint.

    Closed signals report the percent of the furthest event that fired (TP3, TP2, TP1, then SL),
    falling back to the raw move for signals closed by expiration. Open signals report the raw
    move of the current price, except that a TP already hit is locked in once price falls back
    below it.
    """
    avg = entry_average(signal.entry_price_min, signal.entry_price_max)
    if avg == 0:
        return 0.0
    market = float(signal.current_price or 0.0)
    raw = pct_from_entry(market, avg)

    if signal.status == SignalStatus.CLOSED:
        if signal.tp3_hit_at:
            return level_pct(signal, "tp3")
        if signal.tp2_hit_at:
            return level_pct(signal, "tp2")
        if signal.tp1_hit_at:
            return level_pct(signal, "tp1")
        if signal.sl_hit_at:
            return level_pct(signal, "stop_loss")
        return raw

    if signal.tp3_hit_at and market < signal.tp3_price:
        return level_pct(signal, "tp3")
    if signal.tp2_hit_at and market < signal.tp2_price:
        return level_pct(signal, "tp2")
    if signal.tp1_hit_at and market < signal.tp1_price:
        return level_pct(signal, "tp1")
    return raw
