"""Arrival classification and the sound/haptic/OS/visual alerts it drives."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, TextIO, Tuple

from .models import Message
from .presentation import Presentation
from .session_store import SessionContext

logger = logging.getLogger(__name__)

APP_TITLE = "Twin Messenger"
NOTIFICATION_ICON = "images/user.png"
NOTIFICATION_TAG = "new-message"
BUZZ_VIBRATION_MS: Tuple[int, ...] = (200, 50, 200)

INCOMING_SHAKE = (10, 8, True)
OUTGOING_SHAKE = (5, 3, False)


class Arrival(str, Enum):
    OWN_ECHO = "own_echo"
    INCOMING_BUZZ = "incoming_buzz"
    INCOMING_TEXT = "incoming_text"


@dataclass(frozen=True)
class Tone:
    name: str
    waveform: str
    start_hz: float
    end_hz: float
    sweep_s: float
    duration_s: float
    gain: float


MESSAGE_TONE = Tone("message", "sine", 440.0, 440.0, 0.0, 0.3, 0.05)
BUZZ_TONE = Tone("buzz", "sawtooth", 800.0, 300.0, 0.15, 0.4, 0.3)


@dataclass(frozen=True)
class OsNotification:
    title: str
    body: str
    icon: str = NOTIFICATION_ICON
    tag: str = NOTIFICATION_TAG


def classify_arrival(message: Message) -> Arrival:
    # is_read may already be stale when this runs; the rule is kept as the
    # store defines it (see DESIGN.md).
    if message.is_mine:
        return Arrival.OWN_ECHO
    if message.is_buzz and not message.is_read:
        return Arrival.INCOMING_BUZZ
    return Arrival.INCOMING_TEXT


def new_messages_notification(count: int) -> OsNotification:
    return OsNotification(title=APP_TITLE, body=f"You have {count} new message(s).")


class AlertSink:
    """Platform effects: audio, haptics and OS notifications."""

    def play_tone(self, tone: Tone) -> None:
        raise NotImplementedError

    def vibrate(self, pattern_ms: Sequence[int]) -> None:
        raise NotImplementedError

    def show_notification(self, notification: OsNotification) -> None:
        raise NotImplementedError

    def request_permission(self) -> bool:
        raise NotImplementedError

    def permission_granted(self) -> bool:
        raise NotImplementedError


class NullAlertSink(AlertSink):
    def play_tone(self, tone: Tone) -> None:
        return

    def vibrate(self, pattern_ms: Sequence[int]) -> None:
        return

    def show_notification(self, notification: OsNotification) -> None:
        return

    def request_permission(self) -> bool:
        return False

    def permission_granted(self) -> bool:
        return False


class TerminalAlertSink(AlertSink):
    """Rings the terminal bell and prints notifications as status lines."""

    def __init__(self, output: TextIO | None = None) -> None:
        self.output = output or sys.stderr
        self._granted = False

    def play_tone(self, tone: Tone) -> None:
        self.output.write("\a")
        self.output.flush()

    def vibrate(self, pattern_ms: Sequence[int]) -> None:
        return

    def show_notification(self, notification: OsNotification) -> None:
        self.output.write(f"[{notification.title}] {notification.body}\n")
        self.output.flush()

    def request_permission(self) -> bool:
        self._granted = self.output.isatty() if hasattr(self.output, "isatty") else False
        return self._granted

    def permission_granted(self) -> bool:
        return self._granted


class NotificationEngine:
    def __init__(self, session: SessionContext, sink: AlertSink, presentation: Presentation) -> None:
        self.session = session
        self.sink = sink
        self.presentation = presentation
        self.pending = 0
        self._permission_requested = False

    @property
    def enabled(self) -> bool:
        return self.session.sound_enabled

    def request_permission_once(self) -> None:
        if self._permission_requested:
            return
        self._permission_requested = True
        try:
            granted = self.sink.request_permission()
        except OSError as exc:
            logger.warning("notification permission request failed: %s", exc)
            return
        logger.info("notification permission %s", "granted" if granted else "not granted")

    def toggle_sound(self) -> bool:
        enabled = not self.enabled
        self.session.set_sound_enabled(enabled)
        if enabled:
            self.sink.play_tone(MESSAGE_TONE)
        return enabled

    def mark_seen(self) -> None:
        self.pending = 0

    def foreground_changed(self, foreground: bool) -> None:
        """Coming back to the conversation counts as having seen what is pending."""

        if foreground:
            self.mark_seen()

    def _notify_os(self, count: int) -> None:
        if not self.enabled or not self.sink.permission_granted():
            return
        self.sink.show_notification(new_messages_notification(count))

    def handle_arrivals(self, messages: Sequence[Message], initial: bool = False) -> List[Tuple[Message, Arrival]]:
        """Alert for each newly accepted message and return its classification.

        Text already present on the initial load is history, not an arrival,
        and stays silent; unread buzzes alert on every load.
        """

        classified: List[Tuple[Message, Arrival]] = []
        for message in messages:
            arrival = classify_arrival(message)
            classified.append((message, arrival))
            if arrival is Arrival.INCOMING_BUZZ:
                self._buzz_received()
            elif arrival is Arrival.INCOMING_TEXT and not initial:
                self._text_received()
        return classified

    def _buzz_received(self) -> None:
        if self.enabled:
            self.sink.play_tone(BUZZ_TONE)
            self.sink.vibrate(BUZZ_VIBRATION_MS)
        steps, distance, flash = INCOMING_SHAKE
        self.presentation.shake(steps, distance, flash)

    def _text_received(self) -> None:
        if self.enabled:
            self.sink.play_tone(MESSAGE_TONE)
        if self.presentation.is_foreground():
            self.pending = 0
            return
        self.pending += 1
        self._notify_os(self.pending)

    def handle_unread_increase(self, delta: int) -> None:
        if delta <= 0:
            return
        logger.info("unread count rose by %d", delta)
        if self.enabled:
            self.sink.play_tone(MESSAGE_TONE)
        self._notify_os(delta)

    def buzz_sent(self) -> None:
        steps, distance, flash = OUTGOING_SHAKE
        self.presentation.shake(steps, distance, flash)
