"""HashiCorp Vault implementation of the ``SecretStore`` contract.

Values are stored as generic (kv v1) secrets under the ``secret`` mount.
Vault stores maps, not strings, so each value is wrapped as
``{"data": value}``.
"""

from __future__ import annotations

import logging
from typing import Any

import hvac
from hvac.exceptions import InvalidPath

from fragments.core.context import Context
from fragments.errors import BackendError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MOUNT_POINT = "secret"
DATA_KEY = "data"


def wrap_vault_data(value: str) -> dict[str, Any]:
    return {DATA_KEY: value}


def unwrap_vault_data(data: dict[str, Any] | None) -> str:
    value = (data or {}).get(DATA_KEY)
    if not isinstance(value, str):
        raise BackendError(f"secret data does not contain {DATA_KEY!r}")
    return value


class VaultSecrets:
    """Credentials kept in Vault.

    Parameters
    ----------
    client:
        An authenticated ``hvac.Client``.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def connect(cls, address: str, token: str | None = None) -> VaultSecrets:
        """Create a client for *address*.  ``VAULT_TOKEN`` is used if *token* is empty."""
        if not address:
            raise ValidationError("no vault address supplied")
        return cls(hvac.Client(url=address, token=token or None))

    @property
    def _kv(self) -> Any:
        return self._client.secrets.kv.v1

    def put(self, ctx: Context, key: str, value: str) -> None:
        if not key:
            raise ValidationError("key is empty")
        ctx.check()
        try:
            self._kv.create_or_update_secret(
                path=key, secret=wrap_vault_data(value), mount_point=MOUNT_POINT
            )
        except Exception as exc:
            raise BackendError(f"could not write secret {key}") from exc

    def get(self, ctx: Context, key: str) -> str:
        ctx.check()
        try:
            response = self._kv.read_secret(path=key, mount_point=MOUNT_POINT)
        except InvalidPath:
            raise NotFoundError(key) from None
        except Exception as exc:
            raise BackendError(f"could not read secret {key}") from exc
        if response is None:
            raise NotFoundError(key)
        return unwrap_vault_data(response.get("data"))

    def delete(self, ctx: Context, key: str) -> None:
        # Vault does not report whether a delete removed anything.
        self.get(ctx, key)
        ctx.check()
        try:
            self._kv.delete_secret(path=key, mount_point=MOUNT_POINT)
        except Exception as exc:
            raise BackendError(f"could not delete secret {key}") from exc

    def close(self) -> None:
        adapter = getattr(self._client, "adapter", None)
        if adapter is not None and hasattr(adapter, "close"):
            adapter.close()
