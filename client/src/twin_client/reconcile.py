"""Merge fetched batches into the rendered contact list and message log."""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Set

from .models import Contact, Message
from .presentation import Presentation

logger = logging.getLogger(__name__)

DEFAULT_NEAR_BOTTOM_PX = 150


def _contact_sort_key(contact: Contact) -> tuple:
    return (
        0 if contact.unread_count > 0 else 1,
        0 if contact.online else 1,
        contact.name.casefold(),
    )


def sort_contacts(contacts: Iterable[Contact]) -> List[Contact]:
    """Unread first, then online, then by name (case-insensitive). Stable."""

    return sorted(contacts, key=_contact_sort_key)


def total_unread(contacts: Iterable[Contact]) -> int:
    return sum(contact.unread_count for contact in contacts)


def should_autoscroll(initial: bool, distance_from_bottom: float, threshold: float = DEFAULT_NEAR_BOTTOM_PX) -> bool:
    return initial or distance_from_bottom < threshold


class MessageLog:
    """The rendered conversation transcript.

    A message is new iff its id has never been rendered here. That check is
    the only deduplication rule; cursor arithmetic is not trusted for it.
    """

    def __init__(self, presentation: Presentation, near_bottom_px: float = DEFAULT_NEAR_BOTTOM_PX) -> None:
        self.presentation = presentation
        self.near_bottom_px = near_bottom_px
        self._rendered: Set[int] = set()
        self._order: List[int] = []

    def __contains__(self, message_id: int) -> bool:
        return message_id in self._rendered

    def __len__(self) -> int:
        return len(self._order)

    @property
    def ids(self) -> List[int]:
        return list(self._order)

    def reset(self) -> None:
        self._rendered.clear()
        self._order.clear()

    def accept(self, messages: Sequence[Message], initial: bool = False) -> List[Message]:
        """Render unseen messages in arrival order and return them."""

        fresh: List[Message] = []
        for message in messages:
            if message.id in self._rendered:
                continue
            self._rendered.add(message.id)
            self._order.append(message.id)
            fresh.append(message)
        if not fresh:
            return fresh

        # Measure before inserting; rendering moves the bottom.
        scroll = should_autoscroll(initial, self.presentation.distance_from_bottom(), self.near_bottom_px)
        for message in fresh:
            self.presentation.render_message(message)
        if scroll:
            self.presentation.scroll_to_bottom()
        logger.debug("accepted %d of %d messages", len(fresh), len(messages))
        return fresh


class ContactList:
    """Contact rows, replaced wholesale on every snapshot."""

    def __init__(self, presentation: Presentation) -> None:
        self.presentation = presentation
        self.contacts: List[Contact] = []

    def replace(self, contacts: Iterable[Contact]) -> List[Contact]:
        self.contacts = sort_contacts(contacts)
        self.presentation.render_contacts(self.contacts)
        return list(self.contacts)

    @property
    def total_unread(self) -> int:
        return total_unread(self.contacts)
