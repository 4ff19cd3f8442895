#Description: Trading-calendar gate: exchange wall-clock bands plus a data probe for holidays.

from datetime import date, datetime, time, timedelta
from threading import Lock
from typing import List, Tuple
from zoneinfo import ZoneInfo

from utils.config import settings
from utils.errors import EmptyMarketData
from utils.logging import logger
from utils.timeutils import as_aware_utc

Band = Tuple[time, time]


def parse_bands(text: str) -> List[Band]:
    """Parse "09:00-11:30,13:00-14:45" into [(09:00, 11:30), (13:00, 14:45)]."""
    bands = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        start, end = chunk.split("-", 1)
        bands.append((time.fromisoformat(start.strip()), time.fromisoformat(end.strip())))
    return bands


class MarketCalendar:
    _instance = None
    _lock = Lock()

    def __init__(self, tz: str | None = None, sessions: str | None = None, polling_windows: str | None = None):
        self.tz = ZoneInfo(tz or settings.MARKET_TIMEZONE)
        self.sessions = parse_bands(sessions or settings.MARKET_SESSIONS)
        self.polling_windows = parse_bands(polling_windows or settings.POLLING_WINDOWS)

    @classmethod
    def instance(cls):
        with cls._lock:
            if not cls._instance:
                cls._instance = MarketCalendar()
        return cls._instance

    def local(self, now: datetime) -> datetime:
        return as_aware_utc(now).astimezone(self.tz)

    def _in_bands(self, now: datetime, bands: List[Band]) -> bool:
        local = self.local(now)
        if local.weekday() >= 5:
            return False
        t = local.time().replace(tzinfo=None)
        return any(start <= t <= end for start, end in bands)

    def is_polling_window(self, now: datetime) -> bool:
        return self._in_bands(now, self.polling_windows)

    def is_market_open(self, now: datetime) -> bool:
        return self._in_bands(now, self.sessions)

    def trading_date(self, now: datetime) -> date:
        """Exchange-local date; weekends roll back to the preceding Friday."""
        day = self.local(now).date()
        if day.weekday() == 5:
            return day - timedelta(days=1)
        if day.weekday() == 6:
            return day - timedelta(days=2)
        return day

    def ensure_trading_day(self, feed, symbol: str, day: date) -> None:
        # Holidays are not rule-driven: a day is live only if the feed has rows for it
        if not feed.probe_has_data(symbol, day):
            logger.debug(f"Probe {symbol} returned no rows for {day.isoformat()}")
            raise EmptyMarketData(f"No market data for {day.isoformat()}")
