#Description: Performance metrics over persisted signals: win rate, drawdown, holding time, monthly profit factor.
from __future__ import annotations

import math
from datetime import date, datetime, time
from threading import Lock

import pandas as pd

from models.schemas import (
    MonthlyProfitFactor, ProfitFactorReport, SignalSnapshot, SignalStatus, TradingMetrics,
)
from services.repository import SignalRepository
from utils.pricing import actual_efficiency
from utils.timeutils import utcnow


def holding_days(signal: SignalSnapshot) -> int:
    start = signal.signal_date or signal.created_at
    end = signal.closed_at if signal.status == SignalStatus.CLOSED else signal.holding_period
    if start is None or end is None:
        return 0
    return math.ceil((end - start).total_seconds() / 86400)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def signals_frame(signals: list[SignalSnapshot]) -> pd.DataFrame:
    rows = [{
        "id": s.id,
        "symbol": s.symbol,
        "status": s.status.value,
        "signal_date": s.signal_date or s.created_at,
        "closed": s.status == SignalStatus.CLOSED,
        "won": s.tp1_hit_at is not None,
        "efficiency": actual_efficiency(s),
        "holding_days": holding_days(s),
    } for s in signals]
    columns = ["id", "symbol", "status", "signal_date", "closed", "won", "efficiency", "holding_days"]
    return pd.DataFrame(rows, columns=columns)


def _month_factor(month: str, effs: pd.Series) -> MonthlyProfitFactor:
    gross_profit = float(effs[effs > 0].sum())
    gross_loss = float(effs[effs < 0].abs().sum())
    if gross_loss > 0:
        pf = gross_profit / gross_loss
    else:
        pf = gross_profit if gross_profit > 0 else 0.0
    return MonthlyProfitFactor(month=month, profit_factor=round(pf, 2),
                               gross_profit=round(gross_profit, 2), gross_loss=round(gross_loss, 2))


class MetricsService:
    _instance = None
    _lock = Lock()

    def __init__(self, repo: SignalRepository | None = None):
        self.repo = repo or SignalRepository.instance()

    @classmethod
    def instance(cls):
        with cls._lock:
            if not cls._instance:
                cls._instance = MetricsService()
        return cls._instance

    def trading_metrics(self, start: date | datetime | None = None, end: date | datetime | None = None) -> TradingMetrics:
        if isinstance(start, date) and not isinstance(start, datetime):
            start = datetime.combine(start, time.min)
        if isinstance(end, date) and not isinstance(end, datetime):
            end = datetime.combine(end, time.max)

        df = signals_frame(self.repo.list_by_signal_date(start, end))
        if df.empty:
            return TradingMetrics()

        out = TradingMetrics(total_signals=len(df), avg_holding_days=_round_half_up(df["holding_days"].mean()))
        closed = df[df["closed"]]
        if closed.empty:
            return out

        effs = closed["efficiency"]
        out.win_rate = round(float(closed["won"].mean() * 100), 2)
        out.avg_profit = round(float(effs.mean()), 2)
        out.max_profit = round(float(effs.max()), 2)
        out.min_profit = round(float(effs.min()), 2)
        out.max_drawdown = round(min(float(effs.min()), 0.0), 2)
        return out

    def profit_factor(self, year: int | None = None) -> ProfitFactorReport:
        """
        Profit factor per calendar month of signal_date.

        PF = sum(positive efficiencies) / sum(|negative efficiencies|). A month without losses
        reports its gross profit; a month without closed signals reports zeros. The headline
        figure is the latest month that had at least one closed signal.
        """
        year = year or utcnow().year
        start = datetime(year, 1, 1)
        end = datetime(year, 12, 31, 23, 59, 59, 999999)
        df = signals_frame(self.repo.list_by_signal_date(start, end, status=SignalStatus.CLOSED))
        if not df.empty:
            df["month"] = pd.to_datetime(df["signal_date"]).dt.month

        report = ProfitFactorReport()
        for month in range(1, 13):
            effs = df.loc[df["month"] == month, "efficiency"] if not df.empty else pd.Series(dtype=float)
            data = _month_factor(f"{month:02d}-{year}", effs)
            report.monthly_data.append(data)
            if len(effs):
                report.profit_factor = data.profit_factor
        return report
