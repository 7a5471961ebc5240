"""Lambda function reconciler.

The stored payload keeps the configuration Lambda returned, the sha256 of
the deployment package last uploaded, and the source blob it was built
from.  Blob keys are unique per upload, so an unchanged
``source_filename`` means the code is unchanged and the blob is not
fetched again.
"""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from fragments.backend.base import KV
from fragments.core.clock import Clock
from fragments.core.context import Context
from fragments.core.hasher import sha256_hex
from fragments.errors import BackendError, ValidationError
from fragments.filestore.archive import tar_gz_to_zip_bytes
from fragments.filestore.base import SourceReader
from fragments.models.records import Function, InfraType
from fragments.reconciler.aws.iam import IAMReconciler, RoleInput
from fragments.reconciler.aws.policies import assume_lambda_exec_policy
from fragments.reconciler.aws.services import ServiceProvider, strip_response_metadata
from fragments.state.resource import ResourcePointer

logger = logging.getLogger(__name__)

LAMBDA_RESOURCE = "lambda"

DEFAULT_ROLE_NAME = "fragments-default-lambda-role"
DEFAULT_ROLE_DESCRIPTION = "Default Fragments Lambda execute role"
DEFAULT_ROLE_PATH = "/fragments/"
DEFAULT_MEMORY = 128  # MB
DEFAULT_TIMEOUT = 3  # seconds
DEFAULT_HANDLER = "index.handler"

RUNTIME_ALIASES = {"nodejs": "nodejs6.10"}


class LambdaData(BaseModel):
    function_configuration: dict[str, Any] = {}
    code_checksum: str = ""
    source_filename: str = ""


def default_role() -> RoleInput:
    return RoleInput(
        role_name=DEFAULT_ROLE_NAME,
        description=DEFAULT_ROLE_DESCRIPTION,
        path=DEFAULT_ROLE_PATH,
        assume_role_policy_document=assume_lambda_exec_policy(),
    )


def function_timeout(fn: Function) -> int:
    if fn.aws is not None and fn.aws.timeout:
        return fn.aws.timeout
    return DEFAULT_TIMEOUT


def function_memory(fn: Function) -> int:
    if fn.aws is not None and fn.aws.memory:
        return fn.aws.memory
    return DEFAULT_MEMORY


def function_runtime(fn: Function) -> str:
    return RUNTIME_ALIASES.get(fn.runtime, fn.runtime)


def function_description(fn: Function) -> str:
    return f"Fragments function {fn.name}"


class LambdaReconciler:
    """Converges one Lambda function and its execution role.

    Parameters
    ----------
    kv:
        Store holding the resource envelopes and their locks.
    source:
        Reader for confirmed source blobs (gzipped tarballs).
    provider:
        Supplies IAM and Lambda clients for the target account.
    clock:
        Timestamps the envelopes.
    """

    def __init__(
        self,
        kv: KV,
        source: SourceReader,
        provider: ServiceProvider,
        clock: Clock,
    ) -> None:
        self.kv = kv
        self.source = source
        self.provider = provider
        self.clock = clock

    @staticmethod
    def pointer(name: str) -> ResourcePointer:
        return ResourcePointer(InfraType.AWS, LAMBDA_RESOURCE, name)

    def put_function(self, ctx: Context, fn: Function) -> dict[str, Any]:
        """Create or update the Lambda for *fn*; return its configuration."""
        if not fn.meta.name:
            raise ValidationError("function name is required")
        if not fn.source_filename:
            raise ValidationError(f"function {fn.name} has no confirmed source")

        res = self.pointer(fn.name)
        with res.locked(ctx, self.kv):
            existing = res.get(ctx, self.kv, LambdaData)
            # TODO: let functions name their own execution role
            role = IAMReconciler(self.kv, self.provider, self.clock).put_role(
                ctx, default_role()
            )
            if existing is None:
                return self._create(ctx, res, role, fn)
            return self._update(ctx, res, existing, fn)

    def _create(
        self, ctx: Context, res: ResourcePointer, role: dict[str, Any], fn: Function
    ) -> dict[str, Any]:
        package = self.source_zip(ctx, fn)
        svc = self.provider.lambda_()
        ctx.check()
        try:
            out = svc.create_function(
                FunctionName=fn.name,
                Runtime=function_runtime(fn),
                Role=role["Arn"],
                Handler=DEFAULT_HANDLER,
                Code={"ZipFile": package},
                Description=function_description(fn),
                Timeout=function_timeout(fn),
                MemorySize=function_memory(fn),
                Publish=True,
                Tags=dict(fn.meta.labels),
            )
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"could not create lambda {fn.name}") from exc
        data = LambdaData(
            function_configuration=strip_response_metadata(out),
            code_checksum=sha256_hex(package),
            source_filename=fn.source_filename,
        )
        res.put(ctx, self.kv, self.clock, data)
        logger.info("aws: created lambda %s", fn.name)
        return data.function_configuration

    def _update(
        self, ctx: Context, res: ResourcePointer, data: LambdaData, fn: Function
    ) -> dict[str, Any]:
        config = data.function_configuration
        function_name = config.get("FunctionName", fn.name)

        if (
            config.get("Timeout") != function_timeout(fn)
            or config.get("MemorySize") != function_memory(fn)
            or config.get("Runtime") != function_runtime(fn)
        ):
            svc = self.provider.lambda_()
            ctx.check()
            try:
                out = svc.update_function_configuration(
                    FunctionName=function_name,
                    Description=function_description(fn),
                    Handler=config.get("Handler", DEFAULT_HANDLER),
                    MemorySize=function_memory(fn),
                    Runtime=function_runtime(fn),
                    Timeout=function_timeout(fn),
                )
            except (ClientError, BotoCoreError) as exc:
                raise BackendError(f"could not update lambda config {fn.name}") from exc
            data = data.model_copy(
                update={"function_configuration": strip_response_metadata(out)}
            )
            res.put(ctx, self.kv, self.clock, data)
            logger.info("aws: updated lambda %s configuration", fn.name)

        if data.source_filename != fn.source_filename:
            package = self.source_zip(ctx, fn)
            checksum = sha256_hex(package)
            update: dict[str, Any] = {"source_filename": fn.source_filename}
            if checksum != data.code_checksum:
                svc = self.provider.lambda_()
                ctx.check()
                try:
                    out = svc.update_function_code(
                        FunctionName=function_name,
                        ZipFile=package,
                        Publish=True,
                        DryRun=False,
                    )
                except (ClientError, BotoCoreError) as exc:
                    raise BackendError(f"could not update lambda code {fn.name}") from exc
                update["function_configuration"] = strip_response_metadata(out)
                update["code_checksum"] = checksum
                logger.info("aws: updated lambda %s code", fn.name)
            data = data.model_copy(update=update)
            res.put(ctx, self.kv, self.clock, data)

        return data.function_configuration

    def source_zip(self, ctx: Context, fn: Function) -> bytes:
        """Fetch the function's source tarball and transcode it to a zip."""
        stream = self.source.get_file(ctx, fn.source_filename)
        try:
            return tar_gz_to_zip_bytes(stream)
        finally:
            stream.close()
