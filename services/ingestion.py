#Description: Guarded periodic jobs: price update, new-signal announcements, expiry sweep, daily summary.
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Callable, List

from adapters.ssi_market import SSIMarketAdapter
from services.lifecycle import evaluate
from services.market_calendar import MarketCalendar
from services.notifier import NotificationService, format_daily_summary
from services.repository import SignalRepository
from utils.config import settings
from utils.errors import (
    EmptyMarketData, PersistenceError, StaleSignalRace, UpstreamAuthError, UpstreamDataError,
)
from utils.logging import logger
from utils.timeutils import as_naive_utc, utcnow


class JobGuard:
    """Skip-if-running mutex for one job kind. A busy guard drops the tick, it never queues."""

    def __init__(self, name: str):
        self.name = name
        self._lock = Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self):
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


def _chunks(items: List[str], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class IngestionService:
    _instance = None
    _lock = Lock()

    def __init__(self, repo: SignalRepository | None = None, feed: SSIMarketAdapter | None = None,
                 calendar: MarketCalendar | None = None, notifier: NotificationService | None = None,
                 clock: Callable[[], datetime] = utcnow, sleep: Callable[[float], None] = time.sleep,
                 batch_size: int | None = None, batch_pause: float | None = None):
        self.repo = repo or SignalRepository.instance()
        self.feed = feed or SSIMarketAdapter.instance()
        self.calendar = calendar or MarketCalendar.instance()
        self.notifier = notifier or NotificationService.instance()
        self.clock = clock
        self.sleep = sleep
        self.batch_size = max(1, batch_size or settings.BATCH_SIZE)
        self.batch_pause = settings.BATCH_PAUSE_SECONDS if batch_pause is None else batch_pause
        self.guards = {
            "price_update": JobGuard("price_update"),
            "announce": JobGuard("announce"),
            "expiry_sweep": JobGuard("expiry_sweep"),
            "daily_summary": JobGuard("daily_summary"),
        }

    @classmethod
    def instance(cls):
        with cls._lock:
            if not cls._instance:
                cls._instance = IngestionService()
        return cls._instance

    def _now(self, now: datetime | None) -> datetime:
        return as_naive_utc(now) if now is not None else self.clock()

    # -----------------------
    # Price update
    # -----------------------
    def run_price_update(self, now: datetime | None = None) -> dict:
        with self.guards["price_update"].hold() as acquired:
            if not acquired:
                logger.warning("Previous price update is still running. Skipping this tick.")
                return {"status": "skipped"}
            return self._price_update(self._now(now))

    def _price_update(self, now: datetime) -> dict:
        if not self.calendar.is_polling_window(now):
            return {"status": "outside_window"}

        started = time.monotonic()
        try:
            symbols = self.repo.list_open_symbols()
        except Exception as e:
            logger.exception(f"Could not load open symbols: {e}")
            return {"status": "error"}
        if not symbols:
            logger.info("No active/pending signals to update")
            return {"status": "idle", "symbols": 0}

        try:
            self.feed.get_token()
        except UpstreamAuthError as e:
            logger.error(f"Price update aborted: {e}")
            return {"status": "auth_failed"}

        day = self.calendar.trading_date(now)
        try:
            self.calendar.ensure_trading_day(self.feed, symbols[0], day)
        except EmptyMarketData:
            logger.info(f"No market data for {day.isoformat()}; treating as a non-trading day")
            return {"status": "no_market_data"}
        except UpstreamDataError as e:
            logger.warning(f"Trading-day probe failed, skipping tick: {e}")
            return {"status": "error"}

        market_open = self.calendar.is_market_open(now)
        updated = 0
        events = 0
        for i, batch in enumerate(_chunks(symbols, self.batch_size)):
            if i:
                self.sleep(self.batch_pause)
            with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="price") as pool:
                results = list(pool.map(lambda s: self._update_symbol(s, day, market_open, now), batch))
            updated += sum(1 for ok, _ in results if ok)
            events += sum(n for _, n in results)

        duration = time.monotonic() - started
        logger.info(f"Price update finished in {duration:.2f}s. Updated {updated}/{len(symbols)} symbols, "
                    f"{events} events (market {'open' if market_open else 'closed'}).")
        return {"status": "ok", "symbols": len(symbols), "updated": updated, "events": events}

    def _update_symbol(self, symbol: str, day: date, market_open: bool, now: datetime) -> tuple:
        """Returns (quote_applied, events_dispatched). Never raises."""
        try:
            quote = self.feed.fetch_quote(symbol, day)
            if quote is None:
                return False, 0

            dispatched = 0
            applied = False
            for signal in self.repo.list_open_by_symbol(symbol):
                ev = evaluate(signal, quote, market_open, now)
                if not ev.changed:
                    logger.warning(f"[{symbol}] ignoring unusable price {quote.price!r}")
                    break
                try:
                    self.repo.apply_lifecycle(ev.signal)
                except StaleSignalRace:
                    logger.debug(f"[{symbol}] {signal.id} closed by another writer; skipping")
                    continue
                except PersistenceError as e:
                    logger.error(f"[{symbol}] {e}")
                    continue
                applied = True
                for event in ev.events:
                    self.notifier.dispatch(event)
                    dispatched += 1
                if ev.closed:
                    logger.info(f"[{symbol}] {signal.id} closed at {quote.price}")
            return applied, dispatched
        except UpstreamDataError as e:
            logger.warning(f"[{symbol}] {e}")
        except UpstreamAuthError as e:
            logger.error(f"[{symbol}] {e}")
        except Exception as e:
            logger.exception(f"Failed to update price for {symbol}: {e}")
        return False, 0

    # -----------------------
    # New-signal announcements
    # -----------------------
    def run_announcements(self, limit: int | None = None) -> dict:
        with self.guards["announce"].hold() as acquired:
            if not acquired:
                logger.warning("Previous announcement job is still running. Skipping this tick.")
                return {"status": "skipped"}
            return self._announce(limit or settings.ANNOUNCE_BATCH_SIZE)

    def _announce(self, limit: int) -> dict:
        try:
            pending = self.repo.list_unannounced(limit)
        except Exception as e:
            logger.exception(f"Could not load unannounced signals: {e}")
            return {"status": "error"}

        announced = 0
        for i, signal in enumerate(pending):
            if i:
                self.sleep(settings.ANNOUNCE_PACING_SECONDS)
            try:
                if not self.notifier.announce_signal(signal):
                    continue
                self.repo.mark_notified(signal.id)
                announced += 1
            except Exception as e:
                logger.exception(f"Announcement failed for {signal.symbol}: {e}")
        return {"status": "ok", "pending": len(pending), "announced": announced}

    # -----------------------
    # Daily expiry sweep
    # -----------------------
    def run_expiry_sweep(self, now: datetime | None = None) -> dict:
        with self.guards["expiry_sweep"].hold() as acquired:
            if not acquired:
                logger.warning("Previous expiry sweep is still running. Skipping this tick.")
                return {"status": "skipped"}
            try:
                expired = self.repo.expire_overdue(self._now(now))
            except Exception as e:
                logger.exception(f"Expiry sweep failed: {e}")
                return {"status": "error"}
            if not expired:
                logger.info("No signals expired in this sweep.")
            return {"status": "ok", "expired": expired}

    # -----------------------
    # Daily summary
    # -----------------------
    def run_daily_summary(self, now: datetime | None = None) -> dict:
        with self.guards["daily_summary"].hold() as acquired:
            if not acquired:
                logger.warning("Previous daily summary is still running. Skipping this tick.")
                return {"status": "skipped"}
            return self._daily_summary(self._now(now))

    def _daily_summary(self, now: datetime) -> dict:
        local = self.calendar.local(now)
        if local.weekday() >= 5:
            return {"status": "weekend"}
        day = local.date()
        # Exchange-local midnight to midnight, expressed in stored naive UTC
        start = as_naive_utc(local.replace(hour=0, minute=0, second=0, microsecond=0))
        end = start + timedelta(days=1)
        try:
            closed = self.repo.list_closed_between(start, end)
            still_open = self.repo.list_open()
        except Exception as e:
            logger.exception(f"Daily summary query failed: {e}")
            return {"status": "error"}

        text = format_daily_summary(day, closed, still_open)
        sent = self.notifier.send_daily_summary(text)
        logger.info(f"Daily summary for {day.isoformat()}: closed={len(closed)} open={len(still_open)} sent={sent}")
        return {"status": "ok", "closed": len(closed), "open": len(still_open), "sent": sent, "text": text}
