from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from timetable_engine.core.config import get_settings

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    # Check-then-write sequences rely on the isolation level; unique indexes are the backstop.
    return create_engine(
        database_url,
        pool_pre_ping=True,
        isolation_level=settings.db_isolation_level,
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
