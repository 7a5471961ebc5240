"""Backend contracts."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Protocol

from fragments.core.context import Context

Unlock = Callable[[], None]


class KV(Protocol):
    """Read/write/list/lock over a transactional key-value store.

    ``get`` and ``delete`` raise ``NotFoundError`` for a missing key.
    ``put`` overwrites silently and rejects an empty key.
    ``list`` returns the direct children of ``prefix/`` keyed by suffix.
    ``lock`` blocks until the key's lock is held and returns an idempotent
    release function; a cancelled context fails without acquiring.
    """

    def get(self, ctx: Context, key: str) -> str:
        raise NotImplementedError

    def put(self, ctx: Context, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, ctx: Context, key: str) -> None:
        raise NotImplementedError

    def list(self, ctx: Context, prefix: str) -> dict[str, str]:
        raise NotImplementedError

    def lock(self, ctx: Context, key: str) -> Unlock:
        raise NotImplementedError


class SecretStore(Protocol):
    """Opaque credential storage.  Same ``NotFoundError`` contract as ``KV``."""

    def get(self, ctx: Context, key: str) -> str:
        raise NotImplementedError

    def put(self, ctx: Context, key: str, value: str) -> None:
        raise NotImplementedError


def normalize_prefix(prefix: str) -> str:
    """Ensure a list prefix ends with exactly one trailing slash."""
    return prefix if prefix.endswith("/") else prefix + "/"


def direct_children(prefix: str, items: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Filter ``(key, value)`` pairs to the direct children of *prefix*.

    *prefix* must already be normalized.  Keys are returned with the prefix
    stripped; deeper descendants (a ``/`` in the remainder) are dropped.
    """
    out: dict[str, str] = {}
    for key, value in items:
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):]
        if not suffix or "/" in suffix:
            continue
        out[suffix] = value
    return out


def once(fn: Callable[[], None]) -> Unlock:
    """Wrap a release function so that only the first call has an effect."""
    called = False

    def release() -> None:
        nonlocal called
        if called:
            return
        called = True
        fn()

    return release
