from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

ONLINE = "online"
OFFLINE = "offline"


class RecordError(ValueError):
    """Raised when the store returns a record that cannot be interpreted."""


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    user_name: str
    user_email: str


@dataclass(frozen=True)
class Contact:
    id: int
    name: str
    presence: str
    unread_count: int

    @property
    def online(self) -> bool:
        return self.presence == ONLINE


@dataclass(frozen=True)
class Message:
    """An immutable conversation entry as assigned by the remote store."""

    id: int
    sender_name: str
    body: str | None
    created_at: str
    is_mine: bool
    is_buzz: bool
    is_read: bool


def _flag(value: Any) -> bool:
    # The store emits flags as bools, ints or numeric strings.
    if isinstance(value, str):
        value = value.strip().lower()
        return value not in {"", "0", "false"}
    return bool(value)


def _int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise RecordError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise RecordError(f"{field} must be an integer") from exc


def contact_from_payload(payload: Mapping[str, Any]) -> Contact:
    if not isinstance(payload, Mapping):
        raise RecordError("contact must be an object")
    contact_id = _int(payload.get("id"), "contact.id")
    name = payload.get("name")
    if not isinstance(name, str):
        raise RecordError("contact.name must be a string")
    presence = ONLINE if payload.get("status") == ONLINE else OFFLINE
    try:
        unread = int(payload.get("unread_count") or 0)
    except (TypeError, ValueError):
        unread = 0
    return Contact(id=contact_id, name=name, presence=presence, unread_count=max(unread, 0))


def message_from_payload(payload: Mapping[str, Any]) -> Message:
    if not isinstance(payload, Mapping):
        raise RecordError("message must be an object")
    body = payload.get("message")
    return Message(
        id=_int(payload.get("id"), "message.id"),
        sender_name=str(payload.get("sender_name") or ""),
        body=body if isinstance(body, str) else None,
        created_at=str(payload.get("created_at") or ""),
        is_mine=_flag(payload.get("is_mine")),
        is_buzz=_flag(payload.get("is_buzz")),
        is_read=_flag(payload.get("is_read")),
    )


def session_from_login(payload: Mapping[str, Any]) -> Session:
    user = payload.get("user")
    if not isinstance(user, Mapping):
        raise RecordError("login response is missing user")
    token = payload.get("session_id")
    if not isinstance(token, str) or not token:
        raise RecordError("login response is missing session_id")
    return Session(
        token=token,
        user_id=str(user.get("id", "")),
        user_name=str(user.get("name", "")),
        user_email=str(user.get("email", "")),
    )
