"""Tests for the AWS adapter with fake IAM and Lambda clients."""

from __future__ import annotations

import hashlib
import io
import json
import zipfile
from datetime import timedelta

import pytest

from fragments.errors import BackendError, ValidationError
from fragments.reconciler.aws.adapter import DEFAULT_REGION, AWSReconciler
from fragments.reconciler.aws.awslambda import (
    DEFAULT_ROLE_DESCRIPTION,
    DEFAULT_ROLE_NAME,
    DEFAULT_ROLE_PATH,
    LambdaData,
    LambdaReconciler,
    default_role,
    function_runtime,
)
from fragments.reconciler.aws.iam import IAMReconciler, RoleInput
from fragments.reconciler.aws.policies import assume_lambda_exec_policy
from fragments.reconciler.aws.services import strip_response_metadata


@pytest.fixture
def source_blob(filestore, tarball):
    """Write a confirmed source tarball and return a helper to add more."""

    def _write(name: str, files: dict[str, bytes]) -> str:
        (filestore.source_dir / name).write_bytes(tarball(files))
        return name

    return _write


@pytest.fixture
def lambdas(kv, filestore, aws, clock) -> LambdaReconciler:
    return LambdaReconciler(kv, filestore, aws, clock)


# ---------------------------------------------------------------------------
# Policies and helpers
# ---------------------------------------------------------------------------


class TestPolicies:
    def test_assume_role_policy_is_compact(self):
        policy = assume_lambda_exec_policy()
        assert " " not in policy and "\n" not in policy
        doc = json.loads(policy)
        statement = doc["Statement"][0]
        assert doc["Version"] == "2012-10-17"
        assert statement["Principal"] == {"Service": "lambda.amazonaws.com"}
        assert statement["Action"] == "sts:AssumeRole"

    def test_default_role(self):
        role = default_role()
        assert role.role_name == DEFAULT_ROLE_NAME == "fragments-default-lambda-role"
        assert role.path == DEFAULT_ROLE_PATH == "/fragments/"

    def test_runtime_alias(self, make_function):
        assert function_runtime(make_function(runtime="nodejs")) == "nodejs6.10"
        assert function_runtime(make_function(runtime="python3.9")) == "python3.9"

    def test_strip_response_metadata(self):
        assert strip_response_metadata({"A": 1, "ResponseMetadata": {}}) == {"A": 1}


# ---------------------------------------------------------------------------
# IAM
# ---------------------------------------------------------------------------


class TestIAMReconciler:
    def role(self, description: str = "desc", path: str = "/x/") -> RoleInput:
        return RoleInput(
            role_name="r", description=description, path=path, assume_role_policy_document="{}"
        )

    def test_create(self, kv, aws, clock, ctx):
        role = IAMReconciler(kv, aws, clock).put_role(ctx, self.role())
        assert role["Arn"].endswith("role/x/r")
        assert [op for op, _ in aws.iam_client.calls] == ["create_role"]
        assert IAMReconciler.pointer("r").get(ctx, kv)["Description"] == "desc"

    def test_unchanged_description_makes_no_call(self, kv, aws, clock, ctx):
        iam = IAMReconciler(kv, aws, clock)
        iam.put_role(ctx, self.role())
        iam.put_role(ctx, self.role())
        assert len(aws.iam_client.calls) == 1

    def test_update_description(self, kv, aws, clock, ctx):
        iam = IAMReconciler(kv, aws, clock)
        first = iam.put_role(ctx, self.role("old"))
        clock.advance(timedelta(minutes=1))
        updated = iam.put_role(ctx, self.role("new"))

        assert updated["Description"] == "new"
        assert updated["Arn"] == first["Arn"]
        assert aws.iam_client.calls[-1] == (
            "update_role_description",
            {"RoleName": "r", "Description": "new"},
        )
        envelope = IAMReconciler.pointer("r").envelope(ctx, kv)
        assert envelope.updated > envelope.created

    def test_path_change_is_ignored(self, kv, aws, clock, ctx):
        iam = IAMReconciler(kv, aws, clock)
        iam.put_role(ctx, self.role(path="/a/"))
        role = iam.put_role(ctx, self.role(path="/b/"))
        assert role["Path"] == "/a/"
        assert len(aws.iam_client.calls) == 1


# ---------------------------------------------------------------------------
# Lambda
# ---------------------------------------------------------------------------


class TestLambdaReconciler:
    def test_create(self, lambdas, aws, kv, ctx, source_blob, make_function):
        source_blob("src1", {"index.js": b"exports.handler = () => 1;"})
        fn = make_function(
            name="foo", runtime="nodejs", labels={"app": "foo"}, source_filename="src1"
        )

        config = lambdas.put_function(ctx, fn)

        assert config["FunctionName"] == "foo"
        assert [op for op, _ in aws.iam_client.calls] == ["create_role"]
        role_call = aws.iam_client.calls[0][1]
        assert role_call["RoleName"] == DEFAULT_ROLE_NAME
        assert role_call["Description"] == DEFAULT_ROLE_DESCRIPTION

        op, args = aws.lambda_client.calls[0]
        assert op == "create_function"
        assert args["Runtime"] == "nodejs6.10"
        assert args["MemorySize"] == 128
        assert args["Timeout"] == 3
        assert args["Handler"] == "index.handler"
        assert args["Publish"] is True
        assert args["Tags"] == {"app": "foo"}
        assert args["Description"] == "Fragments function foo"
        assert args["Role"].endswith(f"role/fragments/{DEFAULT_ROLE_NAME}")
        with zipfile.ZipFile(io.BytesIO(args["Code"]["ZipFile"])) as zf:
            assert zf.read("index.js") == b"exports.handler = () => 1;"

        stored = LambdaReconciler.pointer("foo").get(ctx, kv, LambdaData)
        assert stored.code_checksum == hashlib.sha256(args["Code"]["ZipFile"]).hexdigest()
        assert stored.source_filename == "src1"
        assert "ResponseMetadata" not in stored.function_configuration

    def test_no_change_makes_no_lambda_call(self, lambdas, aws, ctx, source_blob, make_function):
        source_blob("src1", {"index.js": b"1"})
        fn = make_function(source_filename="src1")
        lambdas.put_function(ctx, fn)
        lambdas.put_function(ctx, fn)
        assert aws.lambda_client.ops() == ["create_function"]

    def test_config_change(self, lambdas, aws, ctx, source_blob, make_function):
        source_blob("src1", {"index.js": b"1"})
        lambdas.put_function(ctx, make_function(source_filename="src1"))
        config = lambdas.put_function(ctx, make_function(source_filename="src1", memory=512))

        assert aws.lambda_client.ops() == ["create_function", "update_function_configuration"]
        assert aws.lambda_client.calls[-1][1]["MemorySize"] == 512
        assert config["MemorySize"] == 512

    def test_code_change(self, lambdas, aws, kv, ctx, source_blob, make_function):
        source_blob("src1", {"index.js": b"1"})
        source_blob("src2", {"index.js": b"2"})
        lambdas.put_function(ctx, make_function(source_filename="src1"))
        lambdas.put_function(ctx, make_function(checksum="def", source_filename="src2"))

        assert aws.lambda_client.ops() == ["create_function", "update_function_code"]
        stored = LambdaReconciler.pointer("foo").get(ctx, kv, LambdaData)
        assert stored.source_filename == "src2"
        args = aws.lambda_client.calls[-1][1]
        assert args["Publish"] is True
        assert stored.code_checksum == hashlib.sha256(args["ZipFile"]).hexdigest()

    def test_new_blob_with_identical_package(self, lambdas, aws, kv, ctx, source_blob, make_function):
        source_blob("src1", {"index.js": b"1"})
        source_blob("src2", {"index.js": b"1"})
        lambdas.put_function(ctx, make_function(source_filename="src1"))
        lambdas.put_function(ctx, make_function(source_filename="src2"))

        assert aws.lambda_client.ops() == ["create_function"]
        stored = LambdaReconciler.pointer("foo").get(ctx, kv, LambdaData)
        assert stored.source_filename == "src2"

    def test_requires_source(self, lambdas, ctx, make_function):
        with pytest.raises(ValidationError):
            lambdas.put_function(ctx, make_function())


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class TestAWSReconciler:
    def test_uses_environment_credentials_and_region(
        self, state, filestore, aws, clock, ctx, source_blob, make_environment, make_function
    ):
        state.put_user_credentials(ctx, "prod", "AKIA", "secret")
        source_blob("src1", {"index.js": b"1"})
        adapter = AWSReconciler(state, filestore, clock=clock, provider_factory=aws.factory)

        adapter.reconcile(
            ctx, make_environment(name="prod", region="eu-west-1"), make_function(source_filename="src1")
        )

        assert aws.created_with == [("AKIA", "secret", "eu-west-1")]
        assert aws.lambda_client.ops() == ["create_function"]

    def test_default_region(self, make_environment):
        assert AWSReconciler.region(make_environment()) == DEFAULT_REGION == "us-east-1"

    def test_missing_credentials(self, state, filestore, aws, ctx, make_environment, make_function):
        adapter = AWSReconciler(state, filestore, provider_factory=aws.factory)
        with pytest.raises(BackendError, match="could not get aws credentials for dev"):
            adapter.reconcile(ctx, make_environment(), make_function(source_filename="x"))
        assert aws.created_with == []
