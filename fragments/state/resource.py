"""Resource pointers: the locked read-modify-write primitive.

Every infrastructure reconciler converges a cloud resource the same way::

    pointer = ResourcePointer(InfraType.AWS, "lambda", name)
    unlock = pointer.lock(ctx, kv)
    try:
        existing = pointer.get(ctx, kv, LambdaData)
        if existing is None:
            ...create in the cloud...
        else:
            ...diff mutable fields, update in the cloud...
        pointer.put(ctx, kv, clock, payload)
    finally:
        unlock()

``created`` is written once; ``updated`` follows the injected clock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar, overload

from fragments.backend.base import KV, Unlock
from fragments.core.clock import Clock
from fragments.core.context import Context
from fragments.errors import BackendError, NotFoundError
from fragments.models.codec import from_json_value, marshal, to_json_value, unmarshal
from fragments.models.envelope import ResourceEnvelope
from fragments.models.records import InfraType
from fragments.state.paths import resource_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ResourcePointer:
    """Address of one cloud resource's envelope."""

    infra: InfraType | str
    resource_type: str
    name: str

    @property
    def key(self) -> str:
        infra = self.infra.value if isinstance(self.infra, InfraType) else self.infra
        return resource_path(infra, self.resource_type, self.name)

    def lock(self, ctx: Context, kv: KV) -> Unlock:
        """Acquire the KV lock for this resource and return its release function."""
        try:
            return kv.lock(ctx, self.key)
        except BackendError as exc:
            raise BackendError(f"could not acquire lock for {self.key}") from exc

    @contextmanager
    def locked(self, ctx: Context, kv: KV) -> Iterator[None]:
        """Hold the resource lock for the duration of a ``with`` block."""
        unlock = self.lock(ctx, kv)
        try:
            yield
        finally:
            unlock()

    @overload
    def get(self, ctx: Context, kv: KV, cls: type[T]) -> T | None: ...

    @overload
    def get(self, ctx: Context, kv: KV, cls: None = None) -> Any: ...

    def get(self, ctx: Context, kv: KV, cls: type[T] | None = None) -> Any:
        """Return the stored payload, or ``None`` if the resource does not exist.

        With *cls* the payload is validated into that type; without it the
        plain JSON value is returned.
        """
        envelope = self.envelope(ctx, kv)
        if envelope is None:
            return None
        if cls is None:
            return envelope.data
        return from_json_value(envelope.data, cls)

    def exists(self, ctx: Context, kv: KV) -> bool:
        return self.envelope(ctx, kv) is not None

    def put(self, ctx: Context, kv: KV, clock: Clock, payload: Any) -> ResourceEnvelope:
        """Create or update the envelope around *payload*."""
        existing = self.envelope(ctx, kv)
        now = clock.now()
        envelope = ResourceEnvelope(
            data=to_json_value(payload),
            created=existing.created if existing is not None else now,
            updated=now,
        )
        try:
            kv.put(ctx, self.key, marshal(envelope))
        except BackendError as exc:
            raise BackendError(f"could not store resource {self.key}") from exc
        logger.debug(
            "resource: %s %s", "updated" if existing is not None else "created", self.key
        )
        return envelope

    def envelope(self, ctx: Context, kv: KV) -> ResourceEnvelope | None:
        """Read the raw envelope, ``None`` if absent."""
        try:
            raw = kv.get(ctx, self.key)
        except NotFoundError:
            return None
        except BackendError as exc:
            raise BackendError(f"could not read resource {self.key}") from exc
        return unmarshal(raw, ResourceEnvelope)
