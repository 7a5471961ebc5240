"""In-memory backends.  Only meant for unit tests and local dry runs."""

from __future__ import annotations

import logging
import threading

from fragments.backend.base import Unlock, direct_children, normalize_prefix, once
from fragments.core.context import Context
from fragments.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_LOCK_POLL_SECONDS = 0.01


class MemoryKV:
    """Thread-safe dictionary implementing the ``KV`` contract.

    One mutex guards ``data``; ``lock`` hands out a per-key mutex so that
    holders of different keys never contend.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self._mu = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}

    def put(self, ctx: Context, key: str, value: str) -> None:
        if not key:
            raise ValidationError("key is empty")
        ctx.check()
        with self._mu:
            self.data[key] = value

    def get(self, ctx: Context, key: str) -> str:
        ctx.check()
        with self._mu:
            try:
                return self.data[key]
            except KeyError:
                raise NotFoundError(key) from None

    def delete(self, ctx: Context, key: str) -> None:
        ctx.check()
        with self._mu:
            if key not in self.data:
                raise NotFoundError(key)
            del self.data[key]

    def list(self, ctx: Context, prefix: str) -> dict[str, str]:
        ctx.check()
        root = normalize_prefix(prefix)
        with self._mu:
            items = list(self.data.items())
        return direct_children(root, items)

    def lock(self, ctx: Context, key: str) -> Unlock:
        if not key:
            raise ValidationError("key is empty")
        ctx.check()
        with self._mu:
            mutex = self._key_locks.setdefault(key, threading.Lock())
        while not mutex.acquire(timeout=_LOCK_POLL_SECONDS):
            ctx.check()
        if ctx.cancelled:
            mutex.release()
            ctx.check()
        logger.debug("memory kv: locked %s", key)
        return once(mutex.release)

    def close(self) -> None:
        pass


class MemorySecrets:
    """Thread-safe dictionary implementing the ``SecretStore`` contract."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self._mu = threading.Lock()

    def put(self, ctx: Context, key: str, value: str) -> None:
        if not key:
            raise ValidationError("key is empty")
        ctx.check()
        with self._mu:
            self.data[key] = value

    def get(self, ctx: Context, key: str) -> str:
        ctx.check()
        with self._mu:
            try:
                return self.data[key]
            except KeyError:
                raise NotFoundError(key) from None

    def delete(self, ctx: Context, key: str) -> None:
        ctx.check()
        with self._mu:
            if key not in self.data:
                raise NotFoundError(key)
            del self.data[key]

    def close(self) -> None:
        pass
