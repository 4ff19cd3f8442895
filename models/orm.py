#Description: ORM entity definitions.

import uuid
from datetime import datetime

from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import String, Float, DateTime, Boolean

from models.schemas import SignalStatus
from utils.timeutils import utcnow

Base = declarative_base()

def _uuid() -> str:
    return str(uuid.uuid4())

class Signal(Base):
    __tablename__ = "signals"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    symbol: Mapped[str] = mapped_column(String(10), index=True)
    exchange: Mapped[str] = mapped_column(String(10), default="HOSE")
    price_base: Mapped[float] = mapped_column(Float, default=0.0)

    signal_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    entry_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    holding_period: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # hard deadline

    # Reference levels, immutable once created
    entry_price_min: Mapped[float] = mapped_column(Float)
    entry_price_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    stop_loss_price: Mapped[float] = mapped_column(Float, default=0.0)
    tp1_price: Mapped[float] = mapped_column(Float, default=0.0)
    tp2_price: Mapped[float] = mapped_column(Float, default=0.0)
    tp3_price: Mapped[float] = mapped_column(Float, default=0.0)
    stop_loss_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    tp1_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    tp2_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    tp3_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    rr_tp1: Mapped[float | None] = mapped_column(Float, nullable=True)
    rr_tp2: Mapped[float | None] = mapped_column(Float, nullable=True)
    rr_tp3: Mapped[float | None] = mapped_column(Float, nullable=True)
    atr_pct: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Live tracking
    current_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_change_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    highest_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(String(10), default=SignalStatus.ACTIVE.value, index=True)  # PENDING/ACTIVE/CLOSED
    tp1_hit_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    tp2_hit_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    tp3_hit_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    sl_hit_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_expired: Mapped[bool] = mapped_column(Boolean, default=False)
    is_notified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
