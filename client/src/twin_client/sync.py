"""Self-rescheduling polling loops for the open conversation and the contact list.

Each loop owns its timer, cursor and view. A cycle is fetch, then reconcile,
then re-arm; the next timer is only armed once the previous cycle finished,
and any pending timer is cancelled before a new one is created. Results that
arrive after :meth:`stop` (or after a restart) are discarded by comparing the
generation captured when the cycle began.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, List, Optional

from .models import Contact, Message, RecordError, contact_from_payload, message_from_payload
from .notify import NotificationEngine
from .presentation import Presentation
from .reconcile import ContactList, MessageLog
from .scheduler import Scheduler, TimerHandle
from .transport import GET, FailureKind, Transport, TransportFailure

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    SCHEDULED = "scheduled"
    STOPPED = "stopped"


def unread_increase(previous: int, current: int) -> int:
    return max(current - previous, 0)


def _malformed(detail: str) -> TransportFailure:
    logger.warning("unexpected payload shape: %s", detail)
    return TransportFailure(FailureKind.MALFORMED_RESPONSE, "Invalid response from the server.")


class PollingLoop:
    name = "loop"

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        presentation: Presentation,
        interval_s: float,
    ) -> None:
        self.transport = transport
        self.scheduler = scheduler
        self.presentation = presentation
        self.interval_s = interval_s
        self.state = LoopState.IDLE
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        self._rerun = False
        self._last_failure: Optional[FailureKind] = None

    @property
    def running(self) -> bool:
        return self.state not in {LoopState.IDLE, LoopState.STOPPED}

    @property
    def timer(self) -> Optional[TimerHandle]:
        return self._timer

    def _begin(self) -> int:
        self._cancel_timer()
        self._generation += 1
        self._rerun = False
        self._last_failure = None
        return self._generation

    def stop(self) -> None:
        if self.state is not LoopState.STOPPED:
            logger.info("%s loop stopped", self.name)
        self._generation += 1
        self._cancel_timer()
        self._rerun = False
        self.state = LoopState.STOPPED

    def _cancel_timer(self) -> None:
        self.scheduler.cancel(self._timer)
        self._timer = None

    def _arm(self, generation: int) -> None:
        self._cancel_timer()
        handle: Optional[TimerHandle] = None

        async def _tick() -> None:
            # A timer that already fired can still be queued behind a
            # refresh_now() that replaced it; only the current timer may run.
            if generation != self._generation or self._timer is not handle:
                return
            self._timer = None
            await self._cycle(generation)

        handle = self.scheduler.schedule(self.interval_s, _tick)
        self._timer = handle
        self.state = LoopState.SCHEDULED

    async def refresh_now(self) -> None:
        """Run a cycle immediately instead of waiting for the pending timer."""

        if self.state in {LoopState.IDLE, LoopState.STOPPED}:
            return
        if self.state in {LoopState.FETCHING, LoopState.RECONCILING}:
            # Folded into the cycle already in flight.
            self._rerun = True
            return
        self._cancel_timer()
        await self._cycle(self._generation)

    async def _cycle(self, generation: int) -> None:
        while True:
            self.state = LoopState.FETCHING
            result = await self._fetch()
            if generation != self._generation:
                logger.debug("%s loop discarded a stale response", self.name)
                return
            if result is None:
                # Session rejected; the transport already cleared it.
                self.stop()
                return
            if isinstance(result, TransportFailure):
                self._report(result)
            else:
                self.state = LoopState.RECONCILING
                outcome = self._reconcile(result)
                if isinstance(outcome, TransportFailure):
                    self._report(outcome)
                else:
                    self._last_failure = None
            if generation != self._generation:
                return
            if self._rerun:
                self._rerun = False
                continue
            self._arm(generation)
            return

    def _report(self, failure: TransportFailure) -> None:
        # One message per run of identical failures; polling keeps going.
        if failure.kind is self._last_failure:
            return
        self._last_failure = failure.kind
        self.presentation.show_message(failure.message)

    async def _fetch(self) -> Any:
        raise NotImplementedError

    def _reconcile(self, payload: Any) -> Optional[TransportFailure]:
        raise NotImplementedError


class MessageSync(PollingLoop):
    """Cursor-based loop for the open conversation."""

    name = "message"

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        presentation: Presentation,
        log: MessageLog,
        notifier: NotificationEngine,
        interval_s: float = 2.0,
    ) -> None:
        super().__init__(transport, scheduler, presentation, interval_s)
        self.log = log
        self.notifier = notifier
        self.cursor = 0
        self.contact_id: Optional[int] = None
        self._initial = True

    async def start(self, contact_id: int) -> None:
        generation = self._begin()
        self.contact_id = contact_id
        self.cursor = 0
        self._initial = True
        self.log.reset()
        self.notifier.mark_seen()
        logger.info("message loop started for contact %s", contact_id)
        await self._cycle(generation)

    def stop(self) -> None:
        super().stop()
        self.cursor = 0
        self.contact_id = None

    async def _fetch(self) -> Any:
        params: dict = {"contact_id": self.contact_id}
        if not self._initial and self.cursor > 0:
            params["last_id"] = self.cursor
        return await self.transport.call("list-messages", GET, params=params)

    def _reconcile(self, payload: Any) -> Optional[TransportFailure]:
        raw = payload.get("messages") if isinstance(payload, dict) else None
        if not isinstance(raw, list):
            return _malformed("list-messages without a messages list")

        messages: List[Message] = []
        for entry in raw:
            try:
                messages.append(message_from_payload(entry))
            except RecordError as exc:
                logger.warning("skipping message record: %s", exc)

        initial = self._initial
        fresh = self.log.accept(messages, initial=initial)
        if messages:
            self.cursor = max(self.cursor, max(message.id for message in messages))
        self._initial = False
        self.notifier.handle_arrivals(fresh, initial=initial)
        return None


class ContactSync(PollingLoop):
    """Snapshot loop for the contact list; no cursor, unread counts are not append-only."""

    name = "contact"

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        presentation: Presentation,
        contacts: ContactList,
        notifier: NotificationEngine,
        interval_s: float = 6.0,
        *,
        viewing_conversation: Callable[[], bool] = lambda: False,
    ) -> None:
        super().__init__(transport, scheduler, presentation, interval_s)
        self.contacts = contacts
        self.notifier = notifier
        self.viewing_conversation = viewing_conversation
        self.total_unread: Optional[int] = None

    async def start(self) -> None:
        generation = self._begin()
        self.total_unread = None
        logger.info("contact loop started")
        await self._cycle(generation)

    async def _fetch(self) -> Any:
        return await self.transport.call("list-contacts", GET)

    def _reconcile(self, payload: Any) -> Optional[TransportFailure]:
        raw = payload.get("contacts") if isinstance(payload, dict) else None
        if not isinstance(raw, list):
            return _malformed("list-contacts without a contacts list")

        parsed: List[Contact] = []
        for entry in raw:
            try:
                parsed.append(contact_from_payload(entry))
            except RecordError as exc:
                logger.warning("skipping contact record: %s", exc)

        current = sum(contact.unread_count for contact in parsed)
        previous = self.total_unread
        self.total_unread = current
        if previous is not None:
            delta = unread_increase(previous, current)
            if delta and not self.viewing_conversation():
                self.notifier.handle_unread_increase(delta)
        self.contacts.replace(parsed)
        return None
