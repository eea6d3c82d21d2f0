"""Session-scoped key/value persistence and the active session context."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from .models import Session

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = Path.home() / ".twin_messenger" / "session.json"

TOKEN_KEY = "php_session_id"
USER_ID_KEY = "user_id"
USER_NAME_KEY = "user_name"
USER_EMAIL_KEY = "user_email"
SOUND_ENABLED_KEY = "twin_sound_enabled"
BUZZ_TIMESTAMP_KEY = "twin_last_buzz_time"
CONTACT_ID_KEY = "current_contact_id"
CONTACT_NAME_KEY = "current_contact_name"


class SessionStorage:
    """String key/value store that lives as long as one browsing session."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemorySessionStorage(SessionStorage):
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()

    def snapshot(self) -> Dict[str, str]:
        return dict(self._values)


def _atomic_write_json(path: Path, payload: Dict[str, str]) -> None:
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    content = json.dumps(payload, indent=2, sort_keys=True)

    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(content)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def _load_json(path: Path) -> Dict[str, str]:
    try:
        data = json.loads(path.expanduser().read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, ValueError):
        logger.warning("ignoring unreadable session state at %s", path)
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(key): str(value) for key, value in data.items() if value is not None}


class FileSessionStorage(SessionStorage):
    """JSON-file backed storage shared by separate CLI invocations."""

    def __init__(self, path: Path | str = DEFAULT_STATE_PATH) -> None:
        self.path = Path(path).expanduser()
        self._values = _load_json(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)
        _atomic_write_json(self.path, self._values)

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            _atomic_write_json(self.path, self._values)

    def clear(self) -> None:
        self._values = {}
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class SessionContext:
    """The single live session plus the session-scoped client settings.

    Token freshness is never checked locally; the store reports a stale token
    through an unauthorized response and the transport calls :meth:`clear`.
    """

    def __init__(self, storage: SessionStorage | None = None) -> None:
        self.storage = storage if storage is not None else MemorySessionStorage()
        if self.storage.get(SOUND_ENABLED_KEY) is None:
            self.storage.set(SOUND_ENABLED_KEY, "true")

    def get(self) -> Session | None:
        token = self.storage.get(TOKEN_KEY)
        user_id = self.storage.get(USER_ID_KEY)
        if not token or not user_id:
            return None
        return Session(
            token=token,
            user_id=user_id,
            user_name=self.storage.get(USER_NAME_KEY) or "",
            user_email=self.storage.get(USER_EMAIL_KEY) or "",
        )

    def set(self, session: Session) -> None:
        self.storage.set(TOKEN_KEY, session.token)
        self.storage.set(USER_ID_KEY, session.user_id)
        self.storage.set(USER_NAME_KEY, session.user_name)
        self.storage.set(USER_EMAIL_KEY, session.user_email)

    def clear(self) -> None:
        self.storage.clear()

    @property
    def token(self) -> Optional[str]:
        return self.storage.get(TOKEN_KEY) or None

    @property
    def user_id(self) -> Optional[str]:
        return self.storage.get(USER_ID_KEY) or None

    @property
    def sound_enabled(self) -> bool:
        # An unset value (after a clear) falls back to the default of on.
        return self.storage.get(SOUND_ENABLED_KEY) in {None, "true"}

    def set_sound_enabled(self, enabled: bool) -> None:
        self.storage.set(SOUND_ENABLED_KEY, "true" if enabled else "false")

    def last_buzz_ms(self) -> Optional[int]:
        raw = self.storage.get(BUZZ_TIMESTAMP_KEY)
        try:
            return int(raw) if raw else None
        except ValueError:
            return None

    def set_last_buzz_ms(self, value: Optional[int]) -> None:
        if value is None:
            self.storage.remove(BUZZ_TIMESTAMP_KEY)
            return
        self.storage.set(BUZZ_TIMESTAMP_KEY, str(int(value)))

    def current_contact(self) -> Tuple[Optional[int], Optional[str]]:
        raw_id = self.storage.get(CONTACT_ID_KEY)
        try:
            contact_id = int(raw_id) if raw_id else None
        except ValueError:
            contact_id = None
        return contact_id, self.storage.get(CONTACT_NAME_KEY)

    def set_current_contact(self, contact_id: int, name: str) -> None:
        self.storage.set(CONTACT_ID_KEY, str(contact_id))
        self.storage.set(CONTACT_NAME_KEY, name)
