from __future__ import annotations

import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class ActorIdentity:
    author_name: str | None = None
    user_id: str | None = None
    guest_session_id: str | None = None

    @property
    def reactor_key(self) -> str | None:
        return self.user_id or self.guest_session_id

    @property
    def is_resolved(self) -> bool:
        return bool((self.author_name or "").strip() or self.guest_session_id)


def owns_comment(
    author_id: str | None, guest_session_id: str | None, identity: ActorIdentity | None
) -> bool:
    """Guest sessions match on session id, registered actors on author id."""
    if identity is None:
        return False
    if identity.guest_session_id and guest_session_id == identity.guest_session_id:
        return True
    if identity.user_id and author_id == identity.user_id:
        return True
    return False


def generate_guest_name() -> str:
    return f"Guest #{1000 + secrets.randbelow(9000)}"
