"""Shared test fixtures for Fragments."""

from __future__ import annotations

import io
import tarfile
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from fragments.backend.memory import MemoryKV, MemorySecrets
from fragments.core.clock import FrozenClock
from fragments.core.context import Context, background
from fragments.filestore.local import LocalFileStore
from fragments.models.records import (
    Deployment,
    Environment,
    Function,
    FunctionAWS,
    InfrastructureAWS,
    InfraType,
    Meta,
)
from fragments.state.service import StateService


@pytest.fixture
def ctx() -> Iterator[Context]:
    """Provide a live root context, cancelled after the test."""
    root, cancel = background().with_cancel()
    yield root
    cancel()


@pytest.fixture
def kv() -> MemoryKV:
    return MemoryKV()


@pytest.fixture
def secrets() -> MemorySecrets:
    return MemorySecrets()


@pytest.fixture
def clock() -> FrozenClock:
    """A clock pinned at 2018-01-01 UTC."""
    return FrozenClock()


@pytest.fixture
def state(kv: MemoryKV, secrets: MemorySecrets) -> StateService:
    return StateService(kv, secrets)


@pytest.fixture
def filestore(tmp_path: Path) -> Iterator[LocalFileStore]:
    """A local file store with its upload listener running."""
    store = LocalFileStore(tmp_path / "uploads", tmp_path / "source")
    yield store
    store.shutdown()


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_function() -> Callable[..., Function]:
    def _factory(
        name: str = "foo",
        checksum: str = "abc",
        runtime: str = "go",
        labels: dict[str, str] | None = None,
        memory: int = 0,
        timeout: int = 0,
        source_filename: str = "",
    ) -> Function:
        aws = FunctionAWS(memory=memory, timeout=timeout) if memory or timeout else None
        return Function(
            meta=Meta(name=name, labels=labels or {}),
            runtime=runtime,
            checksum=checksum,
            source_filename=source_filename,
            aws=aws,
        )

    return _factory


@pytest.fixture
def make_environment() -> Callable[..., Environment]:
    def _factory(
        name: str = "dev",
        labels: dict[str, str] | None = None,
        region: str = "",
        infrastructure: InfraType = InfraType.AWS,
    ) -> Environment:
        return Environment(
            meta=Meta(name=name, labels=labels or {}),
            infrastructure=infrastructure,
            aws=InfrastructureAWS(region=region) if region else None,
        )

    return _factory


@pytest.fixture
def make_deployment() -> Callable[..., Deployment]:
    def _factory(
        name: str = "deploy",
        environment_labels: dict[str, str] | None = None,
        function_labels: dict[str, str] | None = None,
    ) -> Deployment:
        return Deployment(
            meta=Meta(name=name),
            environment_labels=environment_labels or {},
            function_labels=function_labels or {},
        )

    return _factory


def make_tarball(files: dict[str, bytes], dirs: tuple[str, ...] = ()) -> bytes:
    """Build a gzipped tarball in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def tarball() -> Callable[..., bytes]:
    return make_tarball


# ---------------------------------------------------------------------------
# Fake AWS clients
# ---------------------------------------------------------------------------


class FakeIAM:
    """Records IAM calls and answers like the real API."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def create_role(self, **kwargs: Any) -> dict[str, Any]:
        with self._lock:
            self.calls.append(("create_role", kwargs))
        name = kwargs["RoleName"]
        return {
            "Role": {
                "RoleName": name,
                "RoleId": "AROA" + name.upper()[:8],
                "Arn": f"arn:aws:iam::123456789012:role{kwargs['Path']}{name}",
                "Path": kwargs["Path"],
                "Description": kwargs.get("Description", ""),
                "AssumeRolePolicyDocument": kwargs["AssumeRolePolicyDocument"],
            },
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }

    def update_role_description(self, **kwargs: Any) -> dict[str, Any]:
        with self._lock:
            self.calls.append(("update_role_description", kwargs))
        return {
            "Role": {"RoleName": kwargs["RoleName"], "Description": kwargs["Description"]},
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }


class FakeLambda:
    """Records Lambda calls and keeps the last configuration per function."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.configs: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _record(self, op: str, kwargs: dict[str, Any]) -> None:
        with self._lock:
            self.calls.append((op, kwargs))

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def create_function(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_function", kwargs)
        config = {
            "FunctionName": kwargs["FunctionName"],
            "FunctionArn": f"arn:aws:lambda:us-east-1:123456789012:function:{kwargs['FunctionName']}",
            "Runtime": kwargs["Runtime"],
            "Role": kwargs["Role"],
            "Handler": kwargs["Handler"],
            "Description": kwargs["Description"],
            "Timeout": kwargs["Timeout"],
            "MemorySize": kwargs["MemorySize"],
            "Version": "1",
        }
        self.configs[kwargs["FunctionName"]] = config
        return {**config, "ResponseMetadata": {"HTTPStatusCode": 201}}

    def update_function_configuration(self, **kwargs: Any) -> dict[str, Any]:
        self._record("update_function_configuration", kwargs)
        config = dict(self.configs.get(kwargs["FunctionName"], {}))
        config.update(
            {k: v for k, v in kwargs.items() if k in ("Runtime", "Timeout", "MemorySize", "Handler", "Description")}
        )
        self.configs[kwargs["FunctionName"]] = config
        return {**config, "ResponseMetadata": {"HTTPStatusCode": 200}}

    def update_function_code(self, **kwargs: Any) -> dict[str, Any]:
        self._record("update_function_code", kwargs)
        config = dict(self.configs.get(kwargs["FunctionName"], {}))
        config["Version"] = str(int(config.get("Version", "1")) + 1)
        self.configs[kwargs["FunctionName"]] = config
        return {**config, "ResponseMetadata": {"HTTPStatusCode": 200}}


class FakeProvider:
    def __init__(self) -> None:
        self.iam_client = FakeIAM()
        self.lambda_client = FakeLambda()
        self.created_with: list[tuple[str, str, str]] = []

    def iam(self) -> FakeIAM:
        return self.iam_client

    def lambda_(self) -> FakeLambda:
        return self.lambda_client

    def factory(self, access_key: str, secret_key: str, region: str) -> FakeProvider:
        self.created_with.append((access_key, secret_key, region))
        return self


@pytest.fixture
def aws() -> FakeProvider:
    return FakeProvider()
