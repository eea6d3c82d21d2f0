from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from twin_client.models import Contact, Message
from twin_client.notify import AlertSink, OsNotification, Tone
from twin_client.presentation import Presentation


def message(
    message_id: int,
    *,
    body: str = "hi",
    sender: str = "Ann",
    mine: bool = False,
    buzz: bool = False,
    read: bool = False,
) -> Message:
    return Message(
        id=message_id,
        sender_name=sender,
        body=None if buzz else body,
        created_at="2024-05-01 21:05:00",
        is_mine=mine,
        is_buzz=buzz,
        is_read=read,
    )


def message_payload(message_id: int, **overrides: Any) -> Dict[str, Any]:
    payload = {
        "id": message_id,
        "sender_name": "Ann",
        "message": f"text {message_id}",
        "created_at": "2024-05-01 21:05:00",
        "is_mine": False,
        "is_buzz": 0,
        "is_read": "0",
    }
    payload.update(overrides)
    return payload


def contact_payload(contact_id: int, name: str, unread: int = 0, status: str = "offline") -> Dict[str, Any]:
    return {"id": contact_id, "name": name, "status": status, "unread_count": unread}


class RecordingPresentation(Presentation):
    def __init__(self) -> None:
        self.contact_renders: List[List[Contact]] = []
        self.rendered: List[Message] = []
        self.scrolls = 0
        self.distance = 0.0
        self.screens: List[str] = []
        self.notices: List[str] = []
        self.compose = ""
        self.foreground = True
        self.shakes: List[Tuple[int, int, bool]] = []

    def render_contacts(self, contacts: Sequence[Contact]) -> None:
        self.contact_renders.append(list(contacts))

    def render_message(self, message: Message) -> None:
        self.rendered.append(message)

    def scroll_to_bottom(self) -> None:
        self.scrolls += 1

    def distance_from_bottom(self) -> float:
        return self.distance

    def navigate(self, screen: str) -> None:
        self.screens.append(screen)

    def show_message(self, text: str) -> None:
        self.notices.append(text)

    def read_compose(self) -> str:
        return self.compose

    def set_compose(self, text: str) -> None:
        self.compose = text

    def is_foreground(self) -> bool:
        return self.foreground

    def shake(self, steps: int, distance_px: int, flash: bool = False) -> None:
        self.shakes.append((steps, distance_px, flash))

    @property
    def rendered_ids(self) -> List[int]:
        return [entry.id for entry in self.rendered]


class RecordingSink(AlertSink):
    def __init__(self, granted: bool = True) -> None:
        self.tones: List[Tone] = []
        self.vibrations: List[Tuple[int, ...]] = []
        self.notifications: List[OsNotification] = []
        self.permission_requests = 0
        self.granted = granted

    def play_tone(self, tone: Tone) -> None:
        self.tones.append(tone)

    def vibrate(self, pattern_ms: Sequence[int]) -> None:
        self.vibrations.append(tuple(pattern_ms))

    def show_notification(self, notification: OsNotification) -> None:
        self.notifications.append(notification)

    def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.granted

    def permission_granted(self) -> bool:
        return self.granted


class ScriptedTransport:
    """Stands in for :class:`twin_client.transport.Transport` in loop tests.

    Results queued per endpoint are returned in order; an empty queue yields
    ``default``. ``hold`` makes the next call on an endpoint wait until the
    returned future is resolved with the result to deliver.
    """

    def __init__(self, default: Any = None) -> None:
        self.default = default
        self.calls: List[Tuple[str, str, Optional[dict], Optional[dict]]] = []
        self._queued: Dict[str, Deque[Any]] = defaultdict(deque)
        self._held: Dict[str, Deque[asyncio.Future]] = defaultdict(deque)

    def queue(self, endpoint: str, *results: Any) -> None:
        self._queued[endpoint].extend(results)

    def hold(self, endpoint: str) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._held[endpoint].append(future)
        return future

    def calls_to(self, endpoint: str) -> List[Tuple[str, str, Optional[dict], Optional[dict]]]:
        return [call for call in self.calls if call[0] == endpoint]

    async def call(self, endpoint: str, method: str = "GET", body=None, params=None) -> Any:
        self.calls.append((endpoint, method, body, params))
        if self._held[endpoint]:
            return await self._held[endpoint].popleft()
        if self._queued[endpoint]:
            return self._queued[endpoint].popleft()
        return self.default
