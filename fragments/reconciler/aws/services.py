"""boto3 clients for one environment's AWS account.

Every environment carries its own credentials, so clients are built per
reconcile from a session holding that environment's keys.  Tests pass a
``provider_factory`` that returns fakes instead.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError

from fragments.errors import BackendError


class ServiceProvider(Protocol):
    def iam(self) -> Any:
        raise NotImplementedError

    def lambda_(self) -> Any:
        raise NotImplementedError


class SessionProvider:
    """Clients from a boto3 session with static credentials."""

    def __init__(self, access_key_id: str, secret_access_key: str, region: str) -> None:
        try:
            self.session = boto3.session.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
            )
        except BotoCoreError as exc:
            raise BackendError("error creating aws session") from exc
        self.region = region

    def iam(self) -> Any:
        return self._client("iam")

    def lambda_(self) -> Any:
        return self._client("lambda")

    def _client(self, service: str) -> Any:
        try:
            return self.session.client(service)
        except BotoCoreError as exc:
            raise BackendError(f"error creating aws {service} client") from exc


# (access key id, secret access key, region) -> provider
ProviderFactory = Callable[[str, str, str], ServiceProvider]


def strip_response_metadata(response: dict[str, Any]) -> dict[str, Any]:
    """Drop the per-request bookkeeping boto3 adds to every response."""
    return {k: v for k, v in response.items() if k != "ResponseMetadata"}
