"""Cancellation context passed through a single reconcile pass."""
from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .keycloak.exceptions import OperationCancelledError


@dataclass(frozen=True)
class Context:
    """Deadline plus a cancel event, shared by every call of one reconcile.

    Usage:
        ctx = Context.with_timeout(30)
        adapter.bind(ctx).realms.realm_exists("demo")
    """
    deadline: Optional[float] = None
    cancel_event: threading.Event = field(default_factory=threading.Event, compare=False)

    @classmethod
    def background(cls) -> "Context":
        return cls()

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "Context":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        if self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self, operation: str = "") -> None:
        if not self.cancelled:
            return
        reason = "cancelled" if self.cancel_event.is_set() else "deadline exceeded"
        prefix = f"{operation}: " if operation else ""
        raise OperationCancelledError(f"{prefix}{reason}")
