"""etcd v3 implementation of the ``KV`` contract.

The ``etcd3`` client is imported when a connection is opened so that code
paths that only use the in-memory backend never load gRPC.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Any

from fragments.backend.base import Unlock, direct_children, normalize_prefix, once
from fragments.core.context import Context
from fragments.errors import BackendError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

LOCK_TTL_SECONDS = 60
_LOCK_POLL_SECONDS = 0.5


def _parse_endpoint(endpoint: str) -> tuple[str, int]:
    host, _, port = endpoint.rpartition(":")
    if not host:
        return endpoint, 2379
    try:
        return host, int(port)
    except ValueError as exc:
        raise ValidationError(f"invalid etcd endpoint {endpoint!r}") from exc


class _LeaseKeeper:
    """Refreshes a held lock's lease until the lock is released."""

    def __init__(self, lock: Any, key: str, interval: float) -> None:
        self._lock = lock
        self._key = key
        self._interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="etcd-lock-refresh", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._lock.refresh()
            except Exception as exc:  # noqa: BLE001 - retried on the next tick
                logger.warning("etcd: could not refresh lock %s: %s", self._key, exc)

    def release(self) -> None:
        self._stop.set()
        self._thread.join()
        self._lock.release()
        logger.debug("etcd: unlocked %s", self._key)


class EtcdKV:
    """Desired and observed state stored in etcd.

    Parameters
    ----------
    client:
        An ``etcd3.Etcd3Client`` (or anything with the same surface).
    lock_ttl:
        Lease TTL of a lock, in seconds.  A lock whose holder dies is
        freed after this long.
    refresh_interval:
        How often a held lock's lease is kept alive.  Defaults to a third
        of ``lock_ttl``.
    """

    def __init__(
        self,
        client: Any,
        *,
        lock_ttl: int = LOCK_TTL_SECONDS,
        refresh_interval: float | None = None,
    ) -> None:
        if lock_ttl < 1:
            raise ValidationError("lock ttl must be at least 1 second")
        self._client = client
        self.lock_ttl = lock_ttl
        self.refresh_interval = refresh_interval or lock_ttl / 3

    @classmethod
    def connect(cls, endpoints: Sequence[str], dial_timeout: float = 3.0) -> EtcdKV:
        """Connect to the first reachable endpoint in *endpoints*."""
        if not endpoints:
            raise ValidationError("no etcd endpoints supplied")
        import etcd3

        last_error: Exception | None = None
        for endpoint in endpoints:
            host, port = _parse_endpoint(endpoint)
            try:
                client = etcd3.client(host=host, port=port, timeout=dial_timeout)
                client.status()
            except Exception as exc:
                logger.warning("etcd: could not connect to %s: %s", endpoint, exc)
                last_error = exc
                continue
            logger.info("etcd: connected to %s", endpoint)
            return cls(client)
        raise BackendError("could not connect to etcd") from last_error

    def put(self, ctx: Context, key: str, value: str) -> None:
        if not key:
            raise ValidationError("key is empty")
        ctx.check()
        try:
            self._client.put(key, value)
        except Exception as exc:
            raise BackendError(f"could not put key: {key}") from exc

    def get(self, ctx: Context, key: str) -> str:
        ctx.check()
        try:
            value, _meta = self._client.get(key)
        except Exception as exc:
            raise BackendError(f"could not get key: {key}") from exc
        if value is None:
            raise NotFoundError(key)
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def delete(self, ctx: Context, key: str) -> None:
        ctx.check()
        try:
            deleted = self._client.delete(key)
        except Exception as exc:
            raise BackendError(f"could not delete key: {key}") from exc
        if not deleted:
            raise NotFoundError(key)

    def list(self, ctx: Context, prefix: str) -> dict[str, str]:
        ctx.check()
        root = normalize_prefix(prefix)
        try:
            items = [
                (_text(meta.key), _text(value))
                for value, meta in self._client.get_prefix(root)
            ]
        except Exception as exc:
            raise BackendError(f"could not list prefix: {root}") from exc
        return direct_children(root, items)

    def lock(self, ctx: Context, key: str) -> Unlock:
        """Acquire an etcd lease lock on *key*.

        The lease is refreshed while the lock is held and expires
        ``lock_ttl`` seconds after a holder dies without releasing it.
        """
        if not key:
            raise ValidationError("key is empty")
        ctx.check()
        try:
            lock = self._client.lock(key, ttl=self.lock_ttl)
        except Exception as exc:
            raise BackendError(f"could not create lock for {key}") from exc
        while True:
            try:
                acquired = lock.acquire(timeout=_LOCK_POLL_SECONDS)
            except Exception as exc:
                raise BackendError(f"could not acquire lock for {key}") from exc
            if acquired:
                break
            ctx.check()
        if ctx.cancelled:
            lock.release()
            ctx.check()
        logger.debug("etcd: locked %s", key)
        return once(_LeaseKeeper(lock, key, self.refresh_interval).release)

    def close(self) -> None:
        self._client.close()


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value
