#Description: Lifecycle evaluator: one signal + one quote -> next state and the hit events that fired.
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List

from models.schemas import EventKind, Quote, SignalEvent, SignalSnapshot, SignalStatus
from utils.config import settings
from utils.pricing import is_valid_price, level_pct

DEFAULT_GRACE = timedelta(hours=settings.GRACE_PERIOD_HOURS)

# Priority order matters: TP3 and SL close the signal
THRESHOLDS = (
    (EventKind.TP1, "tp1", False),
    (EventKind.TP2, "tp2", False),
    (EventKind.TP3, "tp3", True),
    (EventKind.SL, "stop_loss", True),
)

_HIT_FIELD = {
    EventKind.TP1: "tp1_hit_at",
    EventKind.TP2: "tp2_hit_at",
    EventKind.TP3: "tp3_hit_at",
    EventKind.SL: "sl_hit_at",
}


@dataclass
class Evaluation:
    signal: SignalSnapshot
    events: List[SignalEvent] = field(default_factory=list)
    changed: bool = False

    @property
    def closed(self) -> bool:
        return self.signal.status == SignalStatus.CLOSED


def _crossed(kind: EventKind, price: float, level: float) -> bool:
    if kind == EventKind.SL:
        return price <= level
    return price >= level


def evaluate(signal: SignalSnapshot, quote: Quote, market_open: bool, now: datetime,
             grace: timedelta = DEFAULT_GRACE) -> Evaluation:
    """
    Advance one signal with one fresh quote.

    The input snapshot is never mutated; the returned Evaluation carries an updated copy.
    A closed signal or an unusable price (zero, negative, NaN, non-numeric) is a no-op.
    Threshold evaluation is skipped inside the grace window after signal_date and while
    the exchange is not in session; price fields are refreshed either way.
    """
    if signal.status == SignalStatus.CLOSED or not is_valid_price(quote.price):
        return Evaluation(signal=signal)

    price = float(quote.price)
    updates = {
        "current_price": price,
        "highest_price": max(signal.highest_price or 0.0, price),
        "updated_at": now,
    }
    if quote.change_percent is not None and math.isfinite(quote.change_percent):
        updates["current_change_percent"] = float(quote.change_percent)
    if signal.status == SignalStatus.PENDING:
        updates["status"] = SignalStatus.ACTIVE

    current = signal.model_copy(update=updates)
    result = Evaluation(signal=current, changed=True)

    anchor = signal.signal_date or signal.created_at
    if anchor is not None and now - anchor < grace:
        return result
    if not market_open:
        return result

    hits = {}
    for kind, level_name, closes in THRESHOLDS:
        hit_field = _HIT_FIELD[kind]
        if getattr(current, hit_field) is not None:
            continue
        if closes and hits.get("status") == SignalStatus.CLOSED:
            continue
        level = float(getattr(current, f"{level_name}_price") or 0.0)
        if level <= 0 or not _crossed(kind, price, level):
            continue
        hits[hit_field] = now
        if closes:
            hits["status"] = SignalStatus.CLOSED
            hits["closed_at"] = now
        result.events.append(SignalEvent(
            signal_id=current.id,
            symbol=current.symbol,
            exchange=current.exchange,
            kind=kind,
            price=price,
            change_percent=current.current_change_percent,
            pnl_percent=level_pct(current, level_name),
        ))

    if hits.get("status") != SignalStatus.CLOSED and current.holding_period is not None \
            and now > current.holding_period:
        hits.update(status=SignalStatus.CLOSED, is_expired=True, closed_at=now)

    if hits:
        result.signal = current.model_copy(update=hits)
    return result
