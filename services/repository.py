#Description: Signal store access: scoped reads, conditional lifecycle writes, bulk expiry.
from datetime import datetime, timedelta
from threading import Lock
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.db import get_session
from models.orm import Signal
from models.schemas import OPEN_STATUSES, SignalCreate, SignalSnapshot, SignalStatus
from utils.config import settings
from utils.errors import PersistenceError, StaleSignalRace
from utils.logging import logger
from utils.pricing import entry_average, level_percentages
from utils.timeutils import as_naive_utc, utcnow

# Columns the lifecycle evaluator is allowed to write
LIFECYCLE_FIELDS = (
    "current_price", "current_change_percent", "highest_price", "updated_at", "status",
    "tp1_hit_at", "tp2_hit_at", "tp3_hit_at", "sl_hit_at", "closed_at", "is_expired",
)

# Set once by whichever writer gets there first
HIT_FIELDS = ("tp1_hit_at", "tp2_hit_at", "tp3_hit_at", "sl_hit_at")


def _naive(ts: Optional[datetime]) -> Optional[datetime]:
    return as_naive_utc(ts) if ts is not None else None


class SignalRepository:
    _instance = None
    _lock = Lock()

    @classmethod
    def instance(cls):
        with cls._lock:
            if not cls._instance:
                cls._instance = SignalRepository()
        return cls._instance

    def create(self, data: SignalCreate) -> SignalSnapshot:
        entry_min = data.entry_price_min or data.entry_price
        entry_max = data.entry_price_max or data.entry_price or entry_min
        if not entry_min:
            raise ValueError("entry_price or entry_price_min is required")
        avg = entry_average(entry_min, entry_max)
        tp2 = data.tp2_price or 0.0
        tp3 = data.tp3_price or 0.0
        pcts = level_percentages(avg, data.tp1_price, tp2, tp3, data.stop_loss_price)
        now = utcnow()
        signal_date = _naive(data.signal_date) or now
        holding_period = _naive(data.holding_period) or signal_date + timedelta(days=settings.DEFAULT_HOLDING_DAYS)
        row = Signal(
            symbol=data.symbol.upper(), exchange=data.exchange, price_base=data.price_base,
            entry_price_min=entry_min, entry_price_max=entry_max,
            stop_loss_price=data.stop_loss_price, tp1_price=data.tp1_price, tp2_price=tp2, tp3_price=tp3,
            rr_tp1=pcts["tp1_pct"], rr_tp2=pcts["tp2_pct"], rr_tp3=pcts["tp3_pct"],
            atr_pct=data.atr_pct or 0.0,
            signal_date=signal_date, entry_date=_naive(data.entry_date) or now,
            holding_period=holding_period,
            status=SignalStatus.ACTIVE.value, is_premium=data.is_premium,
            is_notified=False, is_expired=False,
            created_at=now, updated_at=now,
            **pcts,
        )
        try:
            with get_session() as db:
                db.add(row)
                db.commit()
                return SignalSnapshot.model_validate(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"create {data.symbol} failed: {e}") from e

    def get(self, signal_id: str) -> Optional[SignalSnapshot]:
        with get_session() as db:
            row = db.get(Signal, signal_id)
            return SignalSnapshot.model_validate(row) if row else None

    def list_open_symbols(self) -> List[str]:
        with get_session() as db:
            rows = db.execute(
                select(Signal.symbol).where(Signal.status.in_(OPEN_STATUSES)).distinct().order_by(Signal.symbol)
            ).scalars().all()
        return list(rows)

    def list_open_by_symbol(self, symbol: str) -> List[SignalSnapshot]:
        with get_session() as db:
            rows = db.execute(
                select(Signal)
                .where(Signal.symbol == symbol, Signal.status.in_(OPEN_STATUSES))
                .order_by(Signal.created_at.asc())
            ).scalars().all()
            return [SignalSnapshot.model_validate(r) for r in rows]

    def list_open(self) -> List[SignalSnapshot]:
        with get_session() as db:
            rows = db.execute(
                select(Signal).where(Signal.status.in_(OPEN_STATUSES)).order_by(Signal.signal_date.asc())
            ).scalars().all()
            return [SignalSnapshot.model_validate(r) for r in rows]

    def apply_lifecycle(self, signal: SignalSnapshot) -> None:
        """
        Persist the evaluator's delta, but only while the row is still open.

        The status precondition turns the write into a compare-and-swap, so a stale
        in-memory copy cannot clobber a close made by the expiry sweep in between.
        Hit timestamps already stored are kept over the snapshot's values.
        Raises StaleSignalRace when no open row matched.
        """
        values = {}
        for field in LIFECYCLE_FIELDS:
            value = getattr(signal, field)
            values[field] = value.value if isinstance(value, SignalStatus) else value
        for field in HIT_FIELDS:
            values[field] = func.coalesce(getattr(Signal, field), values[field])
        try:
            with get_session() as db:
                result = db.execute(
                    update(Signal)
                    .where(Signal.id == signal.id, Signal.status.in_(OPEN_STATUSES))
                    .values(**values)
                )
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"update {signal.symbol}/{signal.id} failed: {e}") from e
        if result.rowcount == 0:
            raise StaleSignalRace(signal.id)

    def list_unannounced(self, limit: int) -> List[SignalSnapshot]:
        with get_session() as db:
            rows = db.execute(
                select(Signal)
                .where(Signal.is_notified.is_(False), Signal.status.in_(OPEN_STATUSES))
                .order_by(Signal.created_at.asc()).limit(limit)
            ).scalars().all()
            return [SignalSnapshot.model_validate(r) for r in rows]

    def mark_notified(self, signal_id: str) -> bool:
        try:
            with get_session() as db:
                result = db.execute(
                    update(Signal).where(Signal.id == signal_id, Signal.is_notified.is_(False)).values(is_notified=True)
                )
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"mark_notified {signal_id} failed: {e}") from e
        return result.rowcount > 0

    def expire_overdue(self, now: datetime) -> int:
        """Close every open signal whose holding deadline has passed. Hit timestamps are left alone."""
        try:
            with get_session() as db:
                result = db.execute(
                    update(Signal)
                    .where(Signal.status != SignalStatus.CLOSED.value,
                           Signal.holding_period.is_not(None),
                           Signal.holding_period < now)
                    .values(status=SignalStatus.CLOSED.value, is_expired=True, closed_at=now, updated_at=now)
                )
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"expiry sweep failed: {e}") from e
        if result.rowcount:
            logger.info(f"Auto-expired {result.rowcount} signals")
        return result.rowcount

    def list_closed_between(self, start: datetime, end: datetime) -> List[SignalSnapshot]:
        """Signals whose closed_at falls in [start, end)."""
        with get_session() as db:
            rows = db.execute(
                select(Signal)
                .where(Signal.status == SignalStatus.CLOSED.value, Signal.closed_at >= start, Signal.closed_at < end)
                .order_by(Signal.closed_at.asc())
            ).scalars().all()
            return [SignalSnapshot.model_validate(r) for r in rows]

    def list_by_signal_date(self, start: Optional[datetime] = None, end: Optional[datetime] = None,
                            status: Optional[SignalStatus] = None) -> List[SignalSnapshot]:
        stmt = select(Signal)
        if start is not None:
            stmt = stmt.where(Signal.signal_date >= start)
        if end is not None:
            stmt = stmt.where(Signal.signal_date <= end)
        if status is not None:
            stmt = stmt.where(Signal.status == SignalStatus(status).value)
        with get_session() as db:
            rows = db.execute(stmt.order_by(Signal.signal_date.asc())).scalars().all()
            return [SignalSnapshot.model_validate(r) for r in rows]
