#Description: Pydantic schemas representing signals, quotes, events and metrics for cross-layer transport.

from enum import Enum
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


OPEN_STATUSES = (SignalStatus.ACTIVE.value, SignalStatus.PENDING.value)


class EventKind(str, Enum):
    TP1 = "TP1"
    TP2 = "TP2"
    TP3 = "TP3"
    SL = "SL"


class SignalSnapshot(BaseModel):
    """Detached copy of a signal row; the lifecycle evaluator works on these, never on ORM objects."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    symbol: str
    exchange: str = "HOSE"
    price_base: float = 0.0
    signal_date: Optional[datetime] = None
    entry_date: Optional[datetime] = None
    holding_period: Optional[datetime] = None

    entry_price_min: float
    entry_price_max: Optional[float] = None
    stop_loss_price: float = 0.0
    tp1_price: float = 0.0
    tp2_price: float = 0.0
    tp3_price: float = 0.0
    stop_loss_pct: Optional[float] = None
    tp1_pct: Optional[float] = None
    tp2_pct: Optional[float] = None
    tp3_pct: Optional[float] = None

    current_price: Optional[float] = None
    current_change_percent: Optional[float] = None
    highest_price: Optional[float] = None

    status: SignalStatus = SignalStatus.ACTIVE
    tp1_hit_at: Optional[datetime] = None
    tp2_hit_at: Optional[datetime] = None
    tp3_hit_at: Optional[datetime] = None
    sl_hit_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    is_expired: bool = False
    is_notified: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SignalCreate(BaseModel):
    symbol: str
    exchange: str = "HOSE"
    price_base: float = 0.0
    entry_price: Optional[float] = None
    entry_price_min: Optional[float] = None
    entry_price_max: Optional[float] = None
    stop_loss_price: float
    tp1_price: float
    tp2_price: Optional[float] = None
    tp3_price: Optional[float] = None
    atr_pct: Optional[float] = None
    signal_date: Optional[datetime] = None
    entry_date: Optional[datetime] = None
    holding_period: Optional[datetime] = None
    is_premium: bool = True


class Quote(BaseModel):
    symbol: str
    price: float  # NaN when the feed sent something unreadable
    change_percent: Optional[float] = None
    trading_date: date


class AccessToken(BaseModel):
    token: str
    expires_at: datetime


class SignalEvent(BaseModel):
    signal_id: str
    symbol: str
    exchange: str
    kind: EventKind
    price: float
    change_percent: Optional[float] = None
    pnl_percent: float


class TradingMetrics(BaseModel):
    win_rate: float = 0.0
    avg_profit: float = 0.0
    total_signals: int = 0
    avg_holding_days: int = 0
    max_drawdown: float = 0.0
    max_profit: float = 0.0
    min_profit: float = 0.0


class MonthlyProfitFactor(BaseModel):
    month: str  # MM-YYYY
    profit_factor: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0


class ProfitFactorReport(BaseModel):
    profit_factor: float = 0.0
    monthly_data: List[MonthlyProfitFactor] = Field(default_factory=list)
