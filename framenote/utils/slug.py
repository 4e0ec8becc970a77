from __future__ import annotations

import secrets
import string
from collections.abc import Callable

SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_LENGTH = 8
FALLBACK_SLUG_LENGTH = 12
MAX_SLUG_ATTEMPTS = 10


def generate_slug(length: int = SLUG_LENGTH) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def generate_unique_slug(
    exists: Callable[[str], bool], *, attempts: int = MAX_SLUG_ATTEMPTS
) -> str:
    """Short slugs first; after `attempts` collisions fall back to a longer one."""
    for _ in range(attempts):
        slug = generate_slug()
        if not exists(slug):
            return slug
    return generate_slug(FALLBACK_SLUG_LENGTH)
