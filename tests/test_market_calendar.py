#Description: Trading-calendar gate in exchange local time.
from datetime import date, datetime, timezone

import pytest

from services.market_calendar import MarketCalendar, parse_bands
from utils.errors import EmptyMarketData

cal = MarketCalendar(tz="Asia/Ho_Chi_Minh", sessions="09:00-11:30,13:00-14:45",
                     polling_windows="08:45-11:35,12:55-15:15")


def _utc(day, hour, minute=0):
    # Asia/Ho_Chi_Minh is UTC+7
    return datetime(2026, 10, day, hour, minute)


@pytest.mark.parametrize("now, polling, open_", [
    (_utc(19, 1, 30), False, False),   # 08:30 local
    (_utc(19, 1, 50), True, False),    # 08:50 pre-open
    (_utc(19, 3, 0), True, True),      # 10:00
    (_utc(19, 5, 0), False, False),    # 12:00 lunch
    (_utc(19, 7, 50), True, False),    # 14:50 after close, reconciliation window
    (_utc(19, 8, 30), False, False),   # 15:30
    (_utc(24, 3, 0), False, False),    # Saturday
])
def test_windows(now, polling, open_):
    assert cal.is_polling_window(now) is polling
    assert cal.is_market_open(now) is open_


def test_aware_datetimes_are_converted():
    assert cal.is_market_open(datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)) is True


def test_trading_date_rolls_weekend_back_to_friday():
    assert cal.trading_date(_utc(19, 3)) == date(2026, 10, 19)
    assert cal.trading_date(_utc(24, 3)) == date(2026, 10, 23)
    assert cal.trading_date(_utc(25, 3)) == date(2026, 10, 23)
    # 23:30 UTC Sunday is already Monday in Hanoi
    assert cal.trading_date(_utc(25, 23, 30)) == date(2026, 10, 26)


def test_parse_bands():
    bands = parse_bands(" 09:00-11:30 , 13:00-14:45,")
    assert [(b[0].hour, b[1].minute) for b in bands] == [(9, 30), (13, 45)]


class _Probe:
    def __init__(self, has_data):
        self.has_data = has_data

    def probe_has_data(self, symbol, day):
        return self.has_data


def test_ensure_trading_day():
    cal.ensure_trading_day(_Probe(True), "FPT", date(2026, 10, 19))
    with pytest.raises(EmptyMarketData):
        cal.ensure_trading_day(_Probe(False), "FPT", date(2026, 9, 2))
