"""Tests for the apply server's two-phase upload protocol."""

from __future__ import annotations

import itertools

import pytest
import requests

from fragments.core.context import Context
from fragments.errors import BackendError, ConflictError, NotFoundError, ValidationError
from fragments.filestore.local import LocalFileStore
from fragments.models.records import Function, InfraType, Meta
from fragments.models.requests import EnvironmentInput
from fragments.server.server import ApplyServer


@pytest.fixture
def tokens():
    counter = itertools.count(1)
    return lambda: f"TOKEN{next(counter):021d}"


@pytest.fixture
def server(state, filestore, tokens) -> ApplyServer:
    return ApplyServer(state, filestore, token_factory=tokens)


class FlakyFileStore:
    """Wraps a file store and fails the first ``persist``."""

    def __init__(self, inner: LocalFileStore) -> None:
        self.inner = inner
        self.failures = 1

    def new_upload_url(self, name: str) -> str:
        return self.inner.new_upload_url(name)

    def persist(self, ctx: Context, name: str) -> None:
        if self.failures:
            self.failures -= 1
            raise BackendError("disk full")
        self.inner.persist(ctx, name)


# ---------------------------------------------------------------------------
# put_function / confirm_upload
# ---------------------------------------------------------------------------


class TestPutFunction:
    def test_new_function_requests_upload(self, server, state, kv, ctx, make_function):
        request = server.put_function(ctx, make_function(name="foo", checksum="abc"))
        assert request is not None
        assert request.url.endswith("/" + request.token)

        pending = state.get_pending_upload(ctx, request.token)
        assert pending is not None
        assert pending.filename == request.token
        assert pending.previous_filename == ""
        assert pending.function.source_filename == ""
        assert "/models/function/foo" not in kv.data

    def test_confirm_commits_function(self, server, state, filestore, ctx, make_function):
        request = server.put_function(ctx, make_function(name="foo"))
        requests.put(request.url, data=b"archive", timeout=5)

        committed = server.confirm_upload(ctx, request.token)

        assert committed.source_filename == request.token
        stored = state.get_function(ctx, "foo")
        assert stored is not None
        assert stored.source_filename == request.token
        assert state.get_pending_upload(ctx, request.token) is None
        assert (filestore.source_dir / request.token).read_bytes() == b"archive"

    def test_same_checksum_updates_config_only(self, server, state, ctx, make_function):
        state.put_model(
            ctx, make_function(name="foo", checksum="abc", memory=256, source_filename="src1")
        )

        result = server.put_function(ctx, make_function(name="foo", checksum="abc", memory=512))

        assert result is None
        stored = state.get_function(ctx, "foo")
        assert stored.aws.memory == 512
        assert stored.source_filename == "src1"
        assert state.list_pending_uploads(ctx) == []

    def test_changed_checksum_records_previous_source(self, server, state, ctx, make_function):
        state.put_model(
            ctx, make_function(name="foo", checksum="abc", memory=256, source_filename="src1")
        )

        request = server.put_function(ctx, make_function(name="foo", checksum="def"))

        assert request is not None
        pending = state.get_pending_upload(ctx, request.token)
        assert pending.previous_filename == "src1"

    def test_second_put_after_confirm_needs_no_upload(
        self, server, ctx, make_function
    ):
        request = server.put_function(ctx, make_function(name="foo"))
        requests.put(request.url, data=b"archive", timeout=5)
        server.confirm_upload(ctx, request.token)
        assert server.put_function(ctx, make_function(name="foo")) is None

    def test_second_put_before_confirm_needs_upload(self, server, ctx, make_function):
        first = server.put_function(ctx, make_function(name="foo"))
        second = server.put_function(ctx, make_function(name="foo"))
        assert first is not None and second is not None
        assert first.token != second.token

    def test_name_required(self, server, ctx):
        with pytest.raises(ValidationError):
            server.put_function(ctx, Function(meta=Meta(name="")))


class TestConfirmUpload:
    def test_empty_token(self, server, ctx):
        with pytest.raises(ValidationError):
            server.confirm_upload(ctx, "")

    def test_unknown_token(self, server, ctx):
        with pytest.raises(NotFoundError):
            server.confirm_upload(ctx, "NOPE")

    def test_failed_persist_keeps_pending(self, state, filestore, tokens, ctx, make_function):
        server = ApplyServer(state, FlakyFileStore(filestore), token_factory=tokens)
        request = server.put_function(ctx, make_function(name="foo"))
        requests.put(request.url, data=b"archive", timeout=5)

        with pytest.raises(BackendError):
            server.confirm_upload(ctx, request.token)
        assert state.get_pending_upload(ctx, request.token) is not None
        assert state.get_function(ctx, "foo") is None

        server.confirm_upload(ctx, request.token)
        assert state.get_function(ctx, "foo").source_filename == request.token

    def test_retry_after_persist_succeeded(self, server, state, filestore, ctx, make_function):
        """A confirm interrupted after persisting can simply be run again."""
        request = server.put_function(ctx, make_function(name="foo"))
        requests.put(request.url, data=b"archive", timeout=5)
        filestore.persist(ctx, request.token)

        server.confirm_upload(ctx, request.token)
        assert state.get_function(ctx, "foo").source_filename == request.token

    def test_without_filestore(self, state, ctx):
        with pytest.raises(ValidationError):
            ApplyServer(state).put_function(ctx, Function(meta=Meta(name="foo")))


# ---------------------------------------------------------------------------
# Deployments and environments
# ---------------------------------------------------------------------------


class TestDeploymentsAndEnvironments:
    def test_put_deployment(self, server, state, ctx, make_deployment):
        deployment = make_deployment(name="d", environment_labels={"tier": "prod"})
        server.put_deployment(ctx, deployment)
        assert state.get_deployment(ctx, "d") == deployment

    def test_put_deployment_requires_name(self, server, ctx, make_deployment):
        with pytest.raises(ValidationError):
            server.put_deployment(ctx, make_deployment(name=""))

    def test_create_environment(self, server, state, secrets, ctx):
        env = server.create_environment(
            ctx,
            EnvironmentInput(
                name="prod",
                labels={"tier": "prod"},
                infrastructure=InfraType.AWS,
                username="AKIA",
                password="secret",
                aws_region="eu-west-1",
            ),
        )
        assert state.get_environment(ctx, "prod") == env
        assert env.aws is not None and env.aws.region == "eu-west-1"
        assert state.get_user_credentials(ctx, "prod") == ("AKIA", "secret")

    def test_create_environment_rejects_existing(self, server, ctx):
        spec = EnvironmentInput(name="prod", username="u", password="p")
        server.create_environment(ctx, spec)
        with pytest.raises(ConflictError):
            server.create_environment(ctx, spec)

    def test_create_environment_requires_name(self, server, ctx):
        with pytest.raises(ValidationError):
            server.create_environment(ctx, EnvironmentInput(username="u", password="p"))
