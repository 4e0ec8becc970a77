from __future__ import annotations

import os
from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base

REVIEW_DB_PATH = os.environ.get("FRAMENOTE_DB_PATH", "/database/framenote.sqlite3")
REVIEW_DB_TIMEOUT_SECONDS = float(os.environ.get("FRAMENOTE_DB_TIMEOUT_SECONDS", "30"))
REVIEW_POOL_SIZE = max(1, int(os.environ.get("FRAMENOTE_DB_POOL_SIZE", "4")))

# Applied to every new connection.
SQLITE_PRAGMAS = (
    "journal_mode=WAL",
    "synchronous=NORMAL",
    "busy_timeout=5000",
    "foreign_keys=ON",
)

ReviewBase = declarative_base()


def _apply_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(f"PRAGMA {pragma};")
    finally:
        cursor.close()


@lru_cache(maxsize=1)
def get_review_engine():
    engine = create_engine(
        f"sqlite:///{REVIEW_DB_PATH}",
        connect_args={"check_same_thread": False, "timeout": REVIEW_DB_TIMEOUT_SECONDS},
        pool_pre_ping=True,
        pool_size=REVIEW_POOL_SIZE,
        max_overflow=0,
    )
    event.listen(engine, "connect", _apply_pragmas)
    return engine
