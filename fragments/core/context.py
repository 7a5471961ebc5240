"""Explicit cancellation carrier passed to every suspending call.

A ``Context`` is a tree node: cancelling a node cancels every node derived
from it, never its parent.  Workers are plain threads, so cancellation is
cooperative: IO helpers call ``ctx.check()`` before they touch the network
or disk and long waits poll ``ctx.wait()``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from fragments.errors import FragmentsError


class ContextCancelled(FragmentsError):
    """Raised by a suspending call whose context has been cancelled."""


class Context:
    """A cancellable token.  Create roots with :func:`background`."""

    def __init__(self, parent: Context | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: set[Context] = set()
        self._reason = ""
        self._parent = parent
        if parent is not None:
            parent._attach(self)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def with_cancel(self) -> tuple[Context, Callable[[], None]]:
        """Derive a child context and the function that cancels it."""
        child = Context(self)
        return child, child.cancel

    def with_timeout(self, seconds: float) -> tuple[Context, Callable[[], None]]:
        """Derive a child that cancels itself after *seconds*."""
        child = Context(self)
        timer = threading.Timer(seconds, child.cancel, kwargs={"reason": "deadline exceeded"})
        timer.daemon = True
        timer.start()

        def cancel() -> None:
            timer.cancel()
            child.cancel()

        return child, cancel

    def _attach(self, child: Context) -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.add(child)
                return
            reason = self._reason
        child.cancel(reason=reason)

    def _detach(self, child: Context) -> None:
        with self._lock:
            self._children.discard(child)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, reason: str = "context canceled") -> None:
        """Cancel this context and all of its descendants.  Idempotent."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            children = list(self._children)
            self._children.clear()
        for child in children:
            child.cancel(reason=reason)
        if self._parent is not None:
            self._parent._detach(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def err(self) -> ContextCancelled | None:
        """Return the cancellation error, or ``None`` while still live."""
        if self._event.is_set():
            return ContextCancelled(self._reason)
        return None

    def check(self) -> None:
        """Raise ``ContextCancelled`` if this context has been cancelled."""
        exc = self.err()
        if exc is not None:
            raise exc

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or *timeout* elapses; return ``cancelled``."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = f"cancelled: {self._reason}" if self.cancelled else "live"
        return f"Context({state})"


def background() -> Context:
    """Return a new root context that is never cancelled by anyone else."""
    return Context()
