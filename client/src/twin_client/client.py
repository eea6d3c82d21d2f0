"""User-facing operations wired onto the sync, notification and gate components."""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from .config import ClientConfig
from .gate import ActionGate, Denied
from .models import RecordError, session_from_login
from .notify import AlertSink, NotificationEngine, NullAlertSink
from .presentation import (
    SCREEN_CONTACTS,
    SCREEN_CONVERSATION,
    SCREEN_LOGIN,
    ConsolePresentation,
    Presentation,
)
from .reconcile import ContactList, MessageLog
from .scheduler import AsyncioScheduler, Scheduler
from .session_store import SessionContext, SessionStorage
from .sync import ContactSync, MessageSync
from .transport import POST, Transport, TransportFailure

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """A local precondition for an operation does not hold."""


class MessengerClient:
    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        storage: SessionStorage | None = None,
        presentation: Presentation | None = None,
        sink: AlertSink | None = None,
        scheduler: Scheduler | None = None,
        http: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.session = SessionContext(storage)
        self.presentation = presentation or ConsolePresentation()
        self.scheduler = scheduler or AsyncioScheduler()
        self.screen = SCREEN_LOGIN

        self.transport = Transport(self.config, self.session, http=http)
        self.transport.add_unauthorized_listener(self._on_unauthorized)

        self.notifier = NotificationEngine(self.session, sink or NullAlertSink(), self.presentation)
        self.gate = ActionGate(self.session, self.config.buzz_cooldown_ms)
        self.message_log = MessageLog(self.presentation, self.config.near_bottom_px)
        self.contact_list = ContactList(self.presentation)
        self.messages = MessageSync(
            self.transport,
            self.scheduler,
            self.presentation,
            self.message_log,
            self.notifier,
            self.config.message_interval_s,
        )
        self.contacts = ContactSync(
            self.transport,
            self.scheduler,
            self.presentation,
            self.contact_list,
            self.notifier,
            self.config.contact_interval_s,
            viewing_conversation=lambda: self.screen == SCREEN_CONVERSATION,
        )

    async def __aenter__(self) -> "MessengerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        self.stop_polling()
        await self.transport.close()

    def _navigate(self, screen: str) -> None:
        self.screen = screen
        self.presentation.navigate(screen)

    def stop_polling(self) -> None:
        self.messages.stop()
        self.contacts.stop()

    def _on_unauthorized(self) -> None:
        logger.warning("session invalidated by the store; returning to sign-in")
        self.stop_polling()
        self.session.clear()
        self._navigate(SCREEN_LOGIN)

    def require_session(self) -> bool:
        """Guard for protected screens; without a user id, reset and go to sign-in."""

        if self.session.user_id:
            return True
        self.session.clear()
        self._navigate(SCREEN_LOGIN)
        return False

    # -- authentication -------------------------------------------------

    async def login(self, email: str, password: str) -> bool:
        email = (email or "").strip()
        if not email or not password:
            self.presentation.show_message("Please fill in all fields.")
            return False
        result = await self.transport.call("authenticate", POST, {"email": email, "password": password})
        if result is None:
            return False
        if isinstance(result, TransportFailure):
            self.presentation.show_message(result.message or "Sign-in failed.")
            return False
        try:
            session = session_from_login(result)
        except RecordError as exc:
            logger.error("sign-in response unusable: %s", exc)
            self.presentation.show_message("Sign-in failed: the server did not return a session.")
            return False
        self.session.set(session)
        self.notifier.request_permission_once()
        logger.info("signed in as user %s", session.user_id)
        self._navigate(SCREEN_CONTACTS)
        return True

    async def register(self, name: str, email: str, password: str) -> bool:
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not email or not password:
            self.presentation.show_message("Please fill in all fields.")
            return False
        result = await self.transport.call(
            "register", POST, {"name": name, "email": email, "password": password}
        )
        if result is None:
            return False
        if isinstance(result, TransportFailure):
            self.presentation.show_message(result.message or "Registration failed.")
            return False
        self.presentation.show_message("Registration successful. Please sign in.")
        self._navigate(SCREEN_LOGIN)
        return True

    async def logout(self, call_api: bool = True) -> None:
        self.stop_polling()
        if call_api and self.session.token:
            result = await self.transport.call("deauthenticate", POST)
            if isinstance(result, TransportFailure):
                logger.warning("logout call failed: %s", result.message)
        self.session.clear()
        self._navigate(SCREEN_LOGIN)

    # -- contacts -------------------------------------------------------

    async def open_contacts(self) -> bool:
        if not self.require_session():
            return False
        self._navigate(SCREEN_CONTACTS)
        await self.contacts.start()
        return True

    def close_contacts(self) -> None:
        self.contacts.stop()

    async def add_contact(self, email: str) -> bool:
        email = (email or "").strip()
        if not email:
            self.presentation.show_message("Enter an email address.")
            return False
        result = await self.transport.call("add-contact", POST, {"email": email})
        if result is None:
            return False
        if isinstance(result, TransportFailure):
            self.presentation.show_message(result.message)
            return False
        message = result.get("message") if isinstance(result, dict) else None
        self.presentation.show_message(message or "Contact added.")
        await self.contacts.refresh_now()
        return True

    # -- conversation ---------------------------------------------------

    def open_chat(self, contact_id: int, name: str) -> None:
        self.session.set_current_contact(contact_id, name)
        self._navigate(SCREEN_CONVERSATION)

    async def enter_conversation(self) -> bool:
        if not self.require_session():
            return False
        contact_id, _name = self.session.current_contact()
        if contact_id is None:
            logger.warning("no contact selected; back to the contact list")
            self._navigate(SCREEN_CONTACTS)
            return False
        self.screen = SCREEN_CONVERSATION
        await self.messages.start(contact_id)
        return True

    def leave_conversation(self) -> None:
        self.messages.stop()
        self._navigate(SCREEN_CONTACTS)

    def _open_contact_id(self) -> int:
        contact_id = self.messages.contact_id
        if contact_id is None:
            contact_id, _name = self.session.current_contact()
        if contact_id is None:
            raise ClientError("no conversation is open")
        return contact_id

    async def send_message(self, text: Optional[str] = None) -> bool:
        if text is None:
            text = self.presentation.read_compose()
        text = (text or "").strip()
        if not text:
            return False
        receiver_id = self._open_contact_id()
        self.presentation.set_compose("")
        result = await self.transport.call("send-message", POST, {"receiver_id": receiver_id, "message": text})
        if result is None:
            # Session gone; keep the draft, the sign-in redirect is the only feedback.
            self.presentation.set_compose(text)
            return False
        if isinstance(result, TransportFailure):
            logger.warning("send failed: %s", result.message)
            self.presentation.show_message("Could not send the message.")
            self.presentation.set_compose(text)
            return False
        await self.messages.refresh_now()
        return True

    async def send_buzz(self, now_ms: Optional[int] = None) -> bool:
        receiver_id = self._open_contact_id()
        decision = self.gate.try_fire(now_ms)
        if isinstance(decision, Denied):
            self.presentation.show_message(f"Wait {decision.remaining_s}s to send another Buzz.")
            return False
        result = await self.transport.call("send-buzz", POST, {"receiver_id": receiver_id})
        if result is None or isinstance(result, TransportFailure):
            self.gate.release(decision)
            if result is not None:
                logger.warning("buzz failed: %s", result.message)
                self.presentation.show_message("Could not send the Buzz.")
            return False
        await self.messages.refresh_now()
        self.notifier.buzz_sent()
        return True

    def toggle_sound(self) -> bool:
        return self.notifier.toggle_sound()

    def set_foreground(self, foreground: bool) -> None:
        """Report that the conversation view gained or lost focus."""

        self.notifier.foreground_changed(foreground)
