#Description: Notification dispatcher turning lifecycle events, new signals and daily reports into Telegram messages.
from datetime import date
from threading import Lock
from typing import List

from adapters.telegram_bot import TelegramAdapter
from models.schemas import SignalEvent, SignalSnapshot
from utils.logging import logger
from utils.pricing import actual_efficiency, entry_average, pct_from_entry


def format_price(value: float | None) -> str:
    return f"{float(value or 0.0):,.2f}"


def format_pct(value: float) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.2f}%"


def format_event(event: SignalEvent) -> str:
    icon = "✅✅✅" if event.pnl_percent > 0 else "🛑🛑🛑"
    return f"{event.symbol} Done {event.kind.value} ({format_pct(event.pnl_percent)}){icon}"


def format_new_signal(signal: SignalSnapshot) -> str:
    entry_min = float(signal.entry_price_min)
    entry_max = float(signal.entry_price_max or entry_min)
    avg = entry_average(entry_min, entry_max)

    def level(price: float) -> str:
        if not price:
            return f"{format_price(0)} (0.00%)"
        return f"{format_price(price)} ({format_pct(pct_from_entry(price, avg))})"

    if entry_min == entry_max:
        entry = format_price(entry_min)
    else:
        entry = f"{format_price(entry_min)} - {format_price(entry_max)}"
    signal_date = signal.signal_date or signal.created_at
    lines = [
        f"<b>Signal date:</b> {signal_date:%Y-%m-%d}" if signal_date else "<b>Signal date:</b> N/A",
        f"<b>Time:</b> {signal.created_at:%H:%M}" if signal.created_at else "<b>Time:</b> N/A",
        f"<b>{signal.symbol}</b> ({signal.exchange})",
        f"<b>Entry:</b> {entry}",
        f"<b>SL:</b> {level(signal.stop_loss_price)}",
        f"<b>TP1:</b> {level(signal.tp1_price)}",
        f"<b>TP2:</b> {level(signal.tp2_price)}",
        f"<b>TP3:</b> {level(signal.tp3_price)}",
    ]
    return "\n".join(lines)


def _outcome(signal: SignalSnapshot) -> str:
    if signal.sl_hit_at:
        return "SL"
    for name in ("tp3", "tp2", "tp1"):
        if getattr(signal, f"{name}_hit_at"):
            return name.upper()
    if signal.is_expired:
        return "EXPIRED"
    return "OPEN"


def format_daily_summary(day: date, closed: List[SignalSnapshot], still_open: List[SignalSnapshot]) -> str:
    lines = [f"Daily summary {day:%d/%m/%Y}"]
    if closed:
        effs = [actual_efficiency(s) for s in closed]
        wins = sum(1 for e in effs if e > 0)
        lines.append(f"Closed today: {len(closed)} (win {wins}, loss {len(closed) - wins}), "
                     f"total {format_pct(sum(effs))}")
        for s, e in zip(closed, effs):
            lines.append(f"  {s.symbol} {_outcome(s)} {format_pct(e)}")
    else:
        lines.append("Closed today: 0")
    lines.append(f"Open: {len(still_open)}")
    for s in still_open:
        lines.append(f"  {s.symbol} {_outcome(s)} {format_pct(actual_efficiency(s))}")
    return "\n".join(lines)


class NotificationService:
    _instance = None
    _lock = Lock()

    def __init__(self, telegram: TelegramAdapter | None = None):
        self.telegram = telegram or TelegramAdapter()

    @classmethod
    def instance(cls):
        with cls._lock:
            if not cls._instance:
                cls._instance = NotificationService()
        return cls._instance

    def dispatch(self, event: SignalEvent) -> bool:
        sent = self.telegram.send_message(format_event(event))
        if sent:
            logger.info(f"Notified {event.kind.value} for {event.symbol} ({event.signal_id})")
        return sent

    def announce_signal(self, signal: SignalSnapshot) -> bool:
        sent = self.telegram.send_message(format_new_signal(signal), parse_mode="HTML")
        if sent:
            logger.info(f"Announced new signal {signal.symbol} ({signal.id})")
        return sent

    def send_daily_summary(self, text: str) -> bool:
        return self.telegram.send_message(text)
