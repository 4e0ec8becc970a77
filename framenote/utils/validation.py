from __future__ import annotations

import ipaddress
import math
import re

from ..review.models import REACTION_TYPES

ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
SLUG_RE = re.compile(r"^[a-z0-9]{6,32}$")
SESSION_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")

MAX_CONTENT_LENGTH = 2000
MAX_AUTHOR_NAME_LENGTH = 50
MAX_GUEST_NAME_LENGTH = 30
MAX_TITLE_LENGTH = 200
MAX_URL_LENGTH = 2048


class ReviewValidationError(ValueError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def is_valid_id(value) -> bool:
    return isinstance(value, str) and bool(ID_RE.fullmatch(value))


def is_valid_slug(value) -> bool:
    return isinstance(value, str) and bool(SLUG_RE.fullmatch(value))


def is_valid_session_token(value) -> bool:
    return isinstance(value, str) and bool(SESSION_TOKEN_RE.fullmatch(value))


def _optional_id(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    value = str(value).strip()
    if not is_valid_id(value):
        raise ReviewValidationError(f"Invalid {key}")
    return value


def _require_id(payload: dict, key: str) -> str:
    value = _optional_id(payload, key)
    if value is None:
        raise ReviewValidationError(f"Missing {key}")
    return value


def _clean_content(value) -> str:
    content = str(value or "").strip()
    if not content:
        raise ReviewValidationError("Comment content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ReviewValidationError("Comment too long")
    return content


def _clean_author_name(value) -> str:
    return str(value or "").strip()[:MAX_AUTHOR_NAME_LENGTH] or "Anonymous"


def _clean_guest_name(value) -> str:
    name = str(value or "").strip()[:MAX_GUEST_NAME_LENGTH]
    if not name:
        raise ReviewValidationError("Name is required")
    return name


def _parse_timestamp_seconds(value) -> float:
    if isinstance(value, bool):
        raise ReviewValidationError("Invalid timestamp")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ReviewValidationError("Invalid timestamp") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise ReviewValidationError("Timestamp must be non-negative")
    return seconds


def _clean_reaction_type(value) -> str:
    reaction_type = str(value or "").strip().lower()
    if reaction_type not in REACTION_TYPES:
        raise ReviewValidationError("Invalid reaction type")
    return reaction_type


def _clean_video_url(value) -> str:
    url = str(value or "").strip()
    if not url or len(url) > MAX_URL_LENGTH or not re.match(r"^https?://", url, re.IGNORECASE):
        raise ReviewValidationError("A valid video URL is required")
    return url


def _normalize_ip(value: str | None) -> str | None:
    if not value:
        return None

    value = (value.split(",")[0] if "," in value else value).strip()

    if value.startswith("[") and "]" in value:
        value = value[1 : value.index("]")]
    elif re.fullmatch(r"\d+\.\d+\.\d+\.\d+:\d+", value):
        value = value.split(":")[0]

    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return None
