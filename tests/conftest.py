#Description: Shared fixtures: a throwaway SQLite store and a signal factory.
from datetime import datetime, timedelta

import pytest

from models import db
from models.orm import Base
from models.schemas import SignalCreate
from services.repository import SignalRepository

# Monday, inside the morning session in Asia/Ho_Chi_Minh (10:00 local)
MONDAY_MORNING = datetime(2026, 10, 19, 3, 0, 0)


@pytest.fixture(autouse=True)
def setup_and_teardown_db(tmp_path):
    engine = db.configure(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield
    db.SessionLocal.remove()
    Base.metadata.drop_all(engine)


@pytest.fixture
def repo():
    return SignalRepository()


@pytest.fixture
def make_signal(repo):
    def _make(symbol="FPT", signal_date=MONDAY_MORNING - timedelta(days=3), holding_days=10, **overrides):
        fields = dict(
            symbol=symbol, exchange="HOSE",
            entry_price_min=38.50, entry_price_max=39.00,
            stop_loss_price=37.50, tp1_price=39.50, tp2_price=40.50, tp3_price=42.00,
            signal_date=signal_date, holding_period=signal_date + timedelta(days=holding_days),
        )
        fields.update(overrides)
        return repo.create(SignalCreate(**fields))
    return _make
