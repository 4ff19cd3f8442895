#Description: Signal store: creation defaults, conditional writes, expiry sweep.
import math
from datetime import datetime, timedelta, timezone

import pytest

from models.schemas import SignalCreate, SignalStatus
from utils.errors import StaleSignalRace

NOW = datetime(2026, 10, 19, 3, 0)


def test_create_fills_defaults(repo):
    sig = repo.create(SignalCreate(symbol="fpt", entry_price=39.0, stop_loss_price=37.5,
                                   tp1_price=40.0, signal_date=NOW))
    assert sig.symbol == "FPT"
    assert sig.entry_price_min == sig.entry_price_max == 39.0
    assert sig.status == SignalStatus.ACTIVE
    assert sig.is_notified is False and sig.is_expired is False
    assert sig.holding_period == NOW + timedelta(days=10)
    assert math.isclose(sig.tp1_pct, 1 / 39 * 100)
    assert sig.tp3_price == 0.0 and sig.tp3_pct == 0.0
    assert repo.get(sig.id).id == sig.id


def test_create_requires_entry(repo):
    with pytest.raises(ValueError):
        repo.create(SignalCreate(symbol="FPT", stop_loss_price=1.0, tp1_price=2.0))


def test_open_symbols_are_distinct(make_signal, repo):
    make_signal("FPT")
    make_signal("FPT")
    make_signal("HPG")
    closed = make_signal("VNM")
    repo.apply_lifecycle(closed.model_copy(update={"status": SignalStatus.CLOSED, "closed_at": NOW}))
    assert repo.list_open_symbols() == ["FPT", "HPG"]
    assert len(repo.list_open_by_symbol("FPT")) == 2


def test_conditional_write_refuses_closed_rows(make_signal, repo):
    sig = make_signal()
    assert repo.expire_overdue(sig.holding_period + timedelta(days=1)) == 1
    stale = sig.model_copy(update={"current_price": 50.0, "tp1_hit_at": NOW})
    with pytest.raises(StaleSignalRace):
        repo.apply_lifecycle(stale)
    row = repo.get(sig.id)
    assert row.status == SignalStatus.CLOSED
    assert row.tp1_hit_at is None
    assert row.current_price is None


def test_expiry_sweep_keeps_hit_timestamps(make_signal, repo):
    sig = make_signal()
    hit = NOW - timedelta(days=1)
    repo.apply_lifecycle(sig.model_copy(update={"tp1_hit_at": hit, "current_price": 39.6}))
    not_due = make_signal("HPG", signal_date=NOW)

    swept_at = sig.holding_period + timedelta(minutes=5)
    assert repo.expire_overdue(swept_at) == 1

    row = repo.get(sig.id)
    assert row.status == SignalStatus.CLOSED
    assert row.is_expired is True
    assert row.closed_at == swept_at
    assert row.tp1_hit_at == hit
    assert repo.get(not_due.id).status == SignalStatus.ACTIVE
    assert repo.expire_overdue(swept_at) == 0


def test_mark_notified_once(make_signal, repo):
    a = make_signal("FPT")
    make_signal("HPG")
    assert sorted(s.symbol for s in repo.list_unannounced(10)) == ["FPT", "HPG"]
    assert repo.mark_notified(a.id) is True
    assert repo.mark_notified(a.id) is False
    assert [s.symbol for s in repo.list_unannounced(10)] == ["HPG"]


def test_closed_between(make_signal, repo):
    sig = make_signal()
    repo.apply_lifecycle(sig.model_copy(update={"status": SignalStatus.CLOSED, "closed_at": NOW, "sl_hit_at": NOW}))
    assert [s.id for s in repo.list_closed_between(NOW - timedelta(hours=1), NOW + timedelta(hours=1))] == [sig.id]
    assert repo.list_closed_between(NOW + timedelta(hours=1), NOW + timedelta(hours=2)) == []


def test_stale_snapshot_keeps_stored_hit_timestamps(make_signal, repo):
    sig = make_signal()
    hit = NOW - timedelta(minutes=1)
    # another writer records TP1 after `sig` was read
    repo.apply_lifecycle(sig.model_copy(update={"tp1_hit_at": hit, "current_price": 39.6}))
    repo.apply_lifecycle(sig.model_copy(update={"current_price": 39.2, "tp2_hit_at": NOW}))
    row = repo.get(sig.id)
    assert row.tp1_hit_at == hit
    assert row.tp2_hit_at == NOW
    assert row.current_price == 39.2

    repo.apply_lifecycle(sig.model_copy(update={"tp1_hit_at": NOW + timedelta(hours=1)}))
    assert repo.get(sig.id).tp1_hit_at == hit


def test_create_stores_aware_dates_as_utc(repo):
    ict = timezone(timedelta(hours=7))
    sig = repo.create(SignalCreate(symbol="FPT", entry_price=39.0, stop_loss_price=37.5, tp1_price=40.0,
                                   signal_date=datetime(2026, 10, 19, 10, 0, tzinfo=ict),
                                   entry_date=datetime(2026, 10, 20, 9, 15, tzinfo=ict),
                                   holding_period=datetime(2026, 10, 29, 10, 0, tzinfo=ict)))
    for row in (sig, repo.get(sig.id)):
        assert row.signal_date == datetime(2026, 10, 19, 3, 0)
        assert row.entry_date == datetime(2026, 10, 20, 2, 15)
        assert row.holding_period == datetime(2026, 10, 29, 3, 0)

    dflt = repo.create(SignalCreate(symbol="HPG", entry_price=25.0, stop_loss_price=24.0, tp1_price=26.0,
                                    signal_date=datetime(2026, 10, 19, 10, 0, tzinfo=ict)))
    assert repo.get(dflt.id).holding_period == datetime(2026, 10, 29, 3, 0)


def test_closed_signals_are_not_announced(make_signal, repo):
    make_signal("FPT")
    swept = make_signal("HPG")
    repo.apply_lifecycle(swept.model_copy(update={"status": SignalStatus.CLOSED, "closed_at": NOW,
                                                  "is_expired": True}))
    assert [s.symbol for s in repo.list_unannounced(10)] == ["FPT"]
