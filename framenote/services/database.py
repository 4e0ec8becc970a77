from __future__ import annotations

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy.exc import OperationalError

from ..models import REVIEW_DB_PATH, ReviewBase, get_review_engine
from ..models import comments as _comment_models  # noqa: F401  (registers tables)
from ..models import projects as _project_models  # noqa: F401
from ..review.models import format_timestamp, parse_timestamp

logger = logging.getLogger("framenote.database")

_REVIEW_ENGINE = get_review_engine()
_review_db_ready: bool = False


class _DriverConnection:
    def __init__(self, conn) -> None:
        self._conn = conn

    def execute(self, sql, params: dict | tuple | list | None = None):
        if isinstance(sql, str):
            return self._conn.exec_driver_sql(sql, params or ()).mappings()
        return self._conn.execute(sql, params or {})


@contextmanager
def _review_conn():
    """One transaction: committed on clean exit, rolled back on error."""
    _ensure_review_db()
    with _REVIEW_ENGINE.begin() as conn:
        yield _DriverConnection(conn)


def _init_review_db() -> None:
    ReviewBase.metadata.create_all(_REVIEW_ENGINE)


def _ensure_review_db() -> None:
    global _review_db_ready
    if _review_db_ready:
        return

    db_dir = os.path.dirname(REVIEW_DB_PATH)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    lock_path = f"{REVIEW_DB_PATH}.init.lock"
    with open(lock_path, "w") as lock_file:
        fcntl.flock(lock_file, fcntl.LOCK_EX)
        try:
            for attempt in range(10):
                try:
                    _init_review_db()
                    _review_db_ready = True
                    return
                except OperationalError as exc:
                    if "locked" in str(exc).lower() and attempt < 9:
                        time.sleep(0.05 * (attempt + 1))
                        continue
                    logger.warning("Review database init failed: %s", exc)
                    raise
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)


def _check_review_db() -> None:
    with _review_conn() as conn:
        conn.execute("SELECT 1").fetchone()


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _iso(value: datetime) -> str:
    return format_timestamp(value)


def _is_expired(expires_at: str | None, now: datetime) -> bool:
    if not expires_at:
        return False
    return parse_timestamp(expires_at) <= now
