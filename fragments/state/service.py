"""State service: typed CRUD over the KV and secret stores.

Getters return ``None`` for a missing record: absence is ordinary control
flow for the apply server and reconciler, not an error.  Everything else
propagates as a ``FragmentsError`` with the failing key in the message.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel

from fragments.backend.base import KV, SecretStore
from fragments.core.context import Context, ContextCancelled
from fragments.core.errgroup import ErrGroup
from fragments.errors import BackendError, NotFoundError, ValidationError
from fragments.models.codec import marshal, unmarshal
from fragments.models.records import (
    Deployment,
    Environment,
    Function,
    ModelKind,
    PendingUpload,
    Record,
)
from fragments.state.matchers import Matcher, matches_all
from fragments.state.paths import (
    model_list_path,
    model_path,
    upload_list_path,
    upload_path,
    user_secret_paths,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class StateService:
    """Desired state, pending uploads and user credentials.

    Parameters
    ----------
    kv:
        Store for ``/models/...`` and ``/uploads/...``.
    secrets:
        Store for user credentials.  Only needed by the credential methods.
    """

    def __init__(self, kv: KV, secrets: SecretStore | None = None) -> None:
        self.kv = kv
        self.secrets = secrets

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def put_model(self, ctx: Context, record: Record) -> None:
        """Create or overwrite a record under its kind's prefix."""
        if record is None:
            raise ValidationError("model is None")
        if not record.meta.name:
            raise ValidationError(f"{record.kind.value} name is required")
        key = model_path(record.kind, record.meta.name)
        raw = marshal(record)
        try:
            self.kv.put(ctx, key, raw)
        except BackendError as exc:
            raise BackendError(f"could not store {record.kind.value} {record.name}") from exc
        logger.debug("state: stored %s", key)

    def get_function(self, ctx: Context, name: str) -> Function | None:
        return self._get(ctx, model_path(ModelKind.FUNCTION, name), Function)

    def get_environment(self, ctx: Context, name: str) -> Environment | None:
        return self._get(ctx, model_path(ModelKind.ENVIRONMENT, name), Environment)

    def get_deployment(self, ctx: Context, name: str) -> Deployment | None:
        return self._get(ctx, model_path(ModelKind.DEPLOYMENT, name), Deployment)

    def list_functions(self, ctx: Context, *matchers: Matcher) -> list[Function]:
        return self._list(ctx, ModelKind.FUNCTION, Function, matchers)

    def list_environments(self, ctx: Context, *matchers: Matcher) -> list[Environment]:
        return self._list(ctx, ModelKind.ENVIRONMENT, Environment, matchers)

    def list_deployments(self, ctx: Context, *matchers: Matcher) -> list[Deployment]:
        return self._list(ctx, ModelKind.DEPLOYMENT, Deployment, matchers)

    def _get(self, ctx: Context, key: str, cls: type[T]) -> T | None:
        try:
            raw = self.kv.get(ctx, key)
        except NotFoundError:
            return None
        return unmarshal(raw, cls)

    def _list(
        self,
        ctx: Context,
        kind: ModelKind,
        cls: type[T],
        matchers: tuple[Matcher, ...],
    ) -> list[T]:
        prefix = model_list_path(kind)
        try:
            items = self.kv.list(ctx, prefix)
        except BackendError as exc:
            raise BackendError(f"could not list {kind.value}s") from exc
        result: list[T] = []
        for suffix in sorted(items):
            record = unmarshal(items[suffix], cls)
            if matches_all(record.meta, matchers):
                result.append(record)
        return result

    # ------------------------------------------------------------------
    # Pending uploads
    # ------------------------------------------------------------------

    def put_pending_upload(self, ctx: Context, token: str, upload: PendingUpload) -> None:
        if upload is None:
            raise ValidationError("pending upload is None")
        if upload.function is None:
            raise ValidationError("pending upload must have a function")
        if not upload.filename:
            raise ValidationError("pending upload must have a filename")
        key = upload_path(token)
        self.kv.put(ctx, key, marshal(upload))
        logger.debug("state: stored pending upload %s", key)

    def get_pending_upload(self, ctx: Context, token: str) -> PendingUpload | None:
        return self._get(ctx, upload_path(token), PendingUpload)

    def delete_pending_upload(self, ctx: Context, token: str) -> None:
        """Delete a pending upload; a missing token raises ``NotFoundError``."""
        self.kv.delete(ctx, upload_path(token))
        logger.debug("state: deleted pending upload %s", token)

    def list_pending_uploads(self, ctx: Context) -> list[PendingUpload]:
        items = self.kv.list(ctx, upload_list_path())
        return [unmarshal(items[token], PendingUpload) for token in sorted(items)]

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def put_user_credentials(self, ctx: Context, env_name: str, user: str, password: str) -> None:
        """Store both halves of a credential pair in parallel."""
        secrets = self._require_secrets()
        user_key, pass_key = user_secret_paths(env_name)

        def put(wctx: Context, key: str, value: str, what: str) -> None:
            try:
                secrets.put(wctx, key, value)
            except ContextCancelled:
                raise
            except Exception as exc:
                raise BackendError(f"could not store credentials: {what}") from exc

        group = ErrGroup(ctx)
        group.go(put, user_key, user, "user")
        group.go(put, pass_key, password, "pass")
        group.wait()
        logger.info("state: stored credentials for environment %s", env_name)

    def get_user_credentials(self, ctx: Context, env_name: str) -> tuple[str, str]:
        """Read ``(username, password)`` for an environment in parallel."""
        secrets = self._require_secrets()
        user_key, pass_key = user_secret_paths(env_name)
        values: dict[str, str] = {}

        def get(wctx: Context, key: str, what: str) -> None:
            try:
                values[what] = secrets.get(wctx, key)
            except ContextCancelled:
                raise
            except Exception as exc:
                raise BackendError(f"could not read credentials: {what}") from exc

        group = ErrGroup(ctx)
        group.go(get, user_key, "user")
        group.go(get, pass_key, "pass")
        group.wait()
        return values["user"], values["pass"]

    def _require_secrets(self) -> SecretStore:
        if self.secrets is None:
            raise ValidationError("no secret store configured")
        return self.secrets
