# app/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.utils.settings import DATABASE_URL, DB_TIMEOUT_SECONDS

Base = declarative_base()


def engine_options(url: str) -> dict:
    """
    Timeouts for every store call.
    sqlite: busy timeout; postgres: connect + statement timeout.
    """
    if url.startswith("sqlite"):
        return {
            "connect_args": {
                "timeout": DB_TIMEOUT_SECONDS,
                "check_same_thread": False,
            },
        }

    return {
        "pool_pre_ping": True,
        "pool_timeout": DB_TIMEOUT_SECONDS,
        "connect_args": {
            "connect_timeout": DB_TIMEOUT_SECONDS,
            "options": f"-c statement_timeout={DB_TIMEOUT_SECONDS * 1000}",
        },
    }


def make_engine(url: str = DATABASE_URL):
    return create_engine(url, **engine_options(url))


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
