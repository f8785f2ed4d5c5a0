# footprint/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from footprint.settings import settings


def make_engine(database_url: str):
    # Determine connect args (sqlite requires special handling)
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

    engine_kwargs = {"connect_args": connect_args}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every session sees an empty database
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_pre_ping"] = True

    return create_engine(database_url, **engine_kwargs)


DATABASE_URL = settings.database_url
engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(database_url: str):
    """Point the process-wide engine and SessionLocal at ``database_url``."""
    global DATABASE_URL, engine
    if database_url != DATABASE_URL:
        engine.dispose()
        engine = make_engine(database_url)
        DATABASE_URL = database_url
        SessionLocal.configure(bind=engine)
    return engine


def init_db():
    """Create tables if they don't exist."""
    from .models import Base
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
