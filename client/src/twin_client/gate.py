from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .session_store import SessionContext


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Allowed:
    fired_at_ms: int
    previous_ms: Optional[int]


@dataclass(frozen=True)
class Denied:
    remaining_s: int


Decision = Union[Allowed, Denied]


def cooldown_decision(now_ms: int, last_ms: Optional[int], cooldown_ms: int) -> Decision:
    if last_ms is not None:
        elapsed = now_ms - last_ms
        if elapsed < cooldown_ms:
            return Denied(remaining_s=math.ceil((cooldown_ms - elapsed) / 1000))
    return Allowed(fired_at_ms=now_ms, previous_ms=last_ms)


class ActionGate:
    """Cooldown gate for the buzz action, persisted in the session store."""

    def __init__(
        self,
        session: SessionContext,
        cooldown_ms: int = 5000,
        *,
        now_func: Callable[[], int] = _now_ms,
    ) -> None:
        if cooldown_ms < 0:
            raise ValueError("cooldown_ms must be non-negative")
        self.session = session
        self.cooldown_ms = cooldown_ms
        self._now = now_func

    @property
    def last_fired_ms(self) -> Optional[int]:
        return self.session.last_buzz_ms()

    def try_fire(self, now_ms: int | None = None) -> Decision:
        """Check and claim the cooldown window in one step."""

        now = self._now() if now_ms is None else now_ms
        decision = cooldown_decision(now, self.last_fired_ms, self.cooldown_ms)
        if isinstance(decision, Allowed):
            self.session.set_last_buzz_ms(now)
        return decision

    def release(self, allowed: Allowed) -> None:
        """Give the window back after the store refused the action."""

        if self.last_fired_ms == allowed.fired_at_ms:
            self.session.set_last_buzz_ms(allowed.previous_ms)
