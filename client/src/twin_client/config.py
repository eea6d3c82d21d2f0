from __future__ import annotations

import os
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

DEFAULT_API_URL = "http://127.0.0.1:8080/api/"
LOCAL_HOSTS = {"localhost", "127.0.0.1"}

ENDPOINT_PATHS: Dict[str, str] = {
    "authenticate": "login.php",
    "register": "register.php",
    "deauthenticate": "logout.php",
    "list-contacts": "contacts.php",
    "add-contact": "add_contact.php",
    "list-messages": "get_messages.php",
    "send-message": "send_message.php",
    "send-buzz": "send_buzz.php",
}


@dataclass(frozen=True)
class ClientConfig:
    api_url: str = DEFAULT_API_URL
    message_interval_s: float = 2.0
    contact_interval_s: float = 6.0
    buzz_cooldown_ms: int = 5000
    near_bottom_px: int = 150
    session_param: str = "PHPSESSID"
    request_timeout_s: float = 15.0
    state_path: Path | None = None

    @property
    def is_local(self) -> bool:
        return is_local_url(self.api_url)

    def endpoint_url(self, endpoint: str) -> str:
        try:
            path = ENDPOINT_PATHS[endpoint]
        except KeyError as exc:
            raise ValueError(f"unknown endpoint: {endpoint}") from exc
        return f"{self.api_url.rstrip('/')}/{path}"


def is_local_url(url: str) -> bool:
    host = urllib.parse.urlsplit(url).hostname or ""
    return host in LOCAL_HOSTS


def _parse_positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _parse_non_negative_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if parsed < 0:
        raise ValueError(f"{name} must be non-negative")
    return parsed


def load_config_from_env(api_url: str | None = None) -> ClientConfig:
    """Build a :class:`ClientConfig` from ``TWIN_*`` environment variables.

    Polling intervals default to the faster local cadence when the API host
    is ``localhost``/``127.0.0.1`` and to the slower hosted cadence otherwise.
    """

    api_url = api_url or os.environ.get("TWIN_API_URL") or DEFAULT_API_URL
    local = is_local_url(api_url)
    session_param = os.environ.get("TWIN_SESSION_PARAM") or "PHPSESSID"
    state_raw = os.environ.get("TWIN_STATE_PATH")
    return ClientConfig(
        api_url=api_url,
        message_interval_s=_parse_positive_float("TWIN_MESSAGE_POLL_S", 2.0 if local else 5.0),
        contact_interval_s=_parse_positive_float("TWIN_CONTACT_POLL_S", 6.0 if local else 12.0),
        buzz_cooldown_ms=_parse_non_negative_int("TWIN_BUZZ_COOLDOWN_MS", 5000),
        near_bottom_px=_parse_non_negative_int("TWIN_NEAR_BOTTOM_PX", 150),
        session_param=session_param,
        request_timeout_s=_parse_positive_float("TWIN_REQUEST_TIMEOUT_S", 15.0),
        state_path=Path(state_raw).expanduser() if state_raw else None,
    )
