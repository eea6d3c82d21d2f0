"""Polling client core: sync loops, reconciliation, notifications and the buzz gate."""

from .client import ClientError, MessengerClient
from .config import ClientConfig, load_config_from_env
from .gate import ActionGate, Allowed, Denied, cooldown_decision
from .models import Contact, Message, Session
from .notify import Arrival, NotificationEngine, classify_arrival
from .reconcile import ContactList, MessageLog, should_autoscroll, sort_contacts, total_unread
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler
from .session_store import FileSessionStorage, MemorySessionStorage, SessionContext
from .sync import ContactSync, LoopState, MessageSync
from .transport import FailureKind, Transport, TransportFailure

__all__ = [
    "ActionGate",
    "Allowed",
    "Arrival",
    "AsyncioScheduler",
    "ClientConfig",
    "ClientError",
    "Contact",
    "ContactList",
    "ContactSync",
    "Denied",
    "FailureKind",
    "FileSessionStorage",
    "LoopState",
    "ManualScheduler",
    "MemorySessionStorage",
    "Message",
    "MessageLog",
    "MessageSync",
    "MessengerClient",
    "NotificationEngine",
    "Scheduler",
    "Session",
    "SessionContext",
    "Transport",
    "TransportFailure",
    "classify_arrival",
    "cooldown_decision",
    "load_config_from_env",
    "should_autoscroll",
    "sort_contacts",
    "total_unread",
]
