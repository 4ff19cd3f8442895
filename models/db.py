#Description: SQLAlchemy engine/session factory and DB initializer.
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from utils.config import settings


def _make_engine(url: str):
    # Price-update batches write from worker threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, future=True, pool_pre_ping=True, connect_args=connect_args)


engine = _make_engine(settings.DATABASE_URL)
SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False))

def get_session():
    return SessionLocal()

def configure(url: str):
    """Rebind the session factory to another database (tests, one-off scripts)."""
    global engine
    SessionLocal.remove()
    engine.dispose()
    engine = _make_engine(url)
    SessionLocal.configure(bind=engine)
    return engine

def init_db():
    from models.orm import Base
    Base.metadata.create_all(bind=engine)
