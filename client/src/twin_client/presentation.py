"""Presentation boundary and the terminal renderer used by the CLI."""

from __future__ import annotations

import sys
from datetime import datetime
from typing import List, Sequence, TextIO

from .models import Contact, Message

SCREEN_LOGIN = "login"
SCREEN_REGISTER = "register"
SCREEN_CONTACTS = "contacts"
SCREEN_CONVERSATION = "conversation"

BUZZ_LABEL = "*** BUZZ! ***"

_TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S")


def format_time(value: str | None) -> str:
    """Render a store timestamp as ``h:MM AM``; unparseable input is returned as-is."""

    if not value:
        return ""
    normalized = value.strip().replace("/", "-")
    for fmt in _TIME_FORMATS:
        try:
            parsed = datetime.strptime(normalized, fmt)
        except ValueError:
            continue
        hour = parsed.hour % 12 or 12
        suffix = "PM" if parsed.hour >= 12 else "AM"
        return f"{hour}:{parsed.minute:02d} {suffix}"
    return value


def format_message(message: Message) -> str:
    text = BUZZ_LABEL if message.is_buzz else (message.body or "")
    return f"{message.sender_name} - {format_time(message.created_at)}: {text}"


def format_contact(contact: Contact) -> str:
    marker = "*" if contact.online else "o"
    badge = f" [{contact.unread_count}]" if contact.unread_count > 0 else ""
    return f"{marker} {contact.name}{badge}"


class Presentation:
    """What the sync core needs from the screen. Subclasses own all rendering."""

    def render_contacts(self, contacts: Sequence[Contact]) -> None:
        raise NotImplementedError

    def render_message(self, message: Message) -> None:
        raise NotImplementedError

    def scroll_to_bottom(self) -> None:
        raise NotImplementedError

    def distance_from_bottom(self) -> float:
        raise NotImplementedError

    def navigate(self, screen: str) -> None:
        raise NotImplementedError

    def show_message(self, text: str) -> None:
        raise NotImplementedError

    def read_compose(self) -> str:
        raise NotImplementedError

    def set_compose(self, text: str) -> None:
        raise NotImplementedError

    def is_foreground(self) -> bool:
        raise NotImplementedError

    def shake(self, steps: int, distance_px: int, flash: bool = False) -> None:
        raise NotImplementedError


class ConsolePresentation(Presentation):
    """Line-oriented renderer; the terminal always sits at the bottom."""

    def __init__(self, output: TextIO | None = None) -> None:
        self.output = output or sys.stdout
        self.screen = SCREEN_LOGIN
        self.compose = ""
        self.foreground = True
        self.transcript: List[str] = []

    def _write(self, line: str) -> None:
        self.output.write(line + "\n")
        self.output.flush()

    def render_contacts(self, contacts: Sequence[Contact]) -> None:
        if not contacts:
            self._write("No contacts. Use `add-contact EMAIL` to add one.")
            return
        self._write("-- contacts --")
        for contact in contacts:
            self._write(f"{format_contact(contact)}  (id {contact.id})")

    def render_message(self, message: Message) -> None:
        line = format_message(message)
        self.transcript.append(line)
        self._write(line)

    def scroll_to_bottom(self) -> None:
        return

    def distance_from_bottom(self) -> float:
        return 0.0

    def navigate(self, screen: str) -> None:
        self.screen = screen

    def show_message(self, text: str) -> None:
        self._write(f"! {text}")

    def read_compose(self) -> str:
        return self.compose

    def set_compose(self, text: str) -> None:
        self.compose = text

    def is_foreground(self) -> bool:
        return self.foreground

    def shake(self, steps: int, distance_px: int, flash: bool = False) -> None:
        if flash:
            self._write("~" * max(steps, 1))
