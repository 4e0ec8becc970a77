from __future__ import annotations

import os

from flask_limiter import Limiter

from ..utils.request import _get_rate_limit_key

RATE_LIMIT_COMMENTS = os.environ.get("FRAMENOTE_RATE_LIMIT_COMMENTS", "30 per minute")
RATE_LIMIT_REACTIONS = os.environ.get("FRAMENOTE_RATE_LIMIT_REACTIONS", "120 per minute")
RATE_LIMIT_GUEST_SESSIONS = os.environ.get("FRAMENOTE_RATE_LIMIT_GUEST_SESSIONS", "10 per minute")
RATE_LIMIT_TEMP_PROJECTS = os.environ.get("FRAMENOTE_RATE_LIMIT_TEMP_PROJECTS", "5 per minute")

limiter = Limiter(key_func=_get_rate_limit_key, default_limits=[])


def init_rate_limiter(app) -> None:
    limiter.init_app(app)
