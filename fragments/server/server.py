"""Apply server: accepts desired state from clients.

The server only mutates desired state (``/models/...``) and pending uploads
(``/uploads/...``).  Cloud resources are left to the reconciler.

Source changes go through two phases:

1. ``put_function`` compares the declared checksum with the stored one.
   A new function or a changed checksum mints a token, records a
   ``PendingUpload`` and hands the client an upload URL.
2. ``confirm_upload`` persists the uploaded blob, commits the function
   with ``source_filename`` set, then drops the pending record.

A confirmation that fails part way leaves the pending record behind, so
running ``confirm_upload`` again with the same token finishes the job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fragments.core.context import Context
from fragments.core.token import generate_token
from fragments.errors import ConflictError, NotFoundError, ValidationError
from fragments.filestore.base import SourceTarget
from fragments.models.records import (
    Deployment,
    Environment,
    Function,
    InfrastructureAWS,
    InfraType,
    Meta,
    PendingUpload,
)
from fragments.models.requests import EnvironmentInput, UploadRequest
from fragments.state.paths import upload_path
from fragments.state.service import StateService

logger = logging.getLogger(__name__)


class ApplyServer:
    """Entry point for ``apply`` and ``environment create``.

    Parameters
    ----------
    state:
        State service over the KV and secret stores.
    filestore:
        Issues upload URLs and persists confirmed uploads.  Not needed
        to create environments.
    token_factory:
        Mints upload tokens.  Tests pass a deterministic one.
    """

    def __init__(
        self,
        state: StateService,
        filestore: SourceTarget | None = None,
        *,
        token_factory: Callable[[], str] = generate_token,
    ) -> None:
        self.state = state
        self.filestore = filestore
        self._new_token = token_factory

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def put_function(self, ctx: Context, desired: Function) -> UploadRequest | None:
        """Record a function intent.

        Returns an ``UploadRequest`` when the client must upload source,
        or ``None`` when only configuration changed and the record was
        updated in place.
        """
        if desired is None or not desired.meta.name:
            raise ValidationError("function name is required")
        name = desired.meta.name

        existing = self.state.get_function(ctx, name)
        if existing is not None and existing.checksum == desired.checksum:
            updated = desired.model_copy(update={"source_filename": existing.source_filename})
            self.state.put_model(ctx, updated)
            logger.info("function %s unchanged source, configuration stored", name)
            return None

        if self.filestore is None:
            raise ValidationError("no file store configured for source uploads")
        token = self._new_token()
        previous = existing.source_filename if existing is not None else ""
        pending = PendingUpload(
            token=token,
            filename=token,
            previous_filename=previous,
            function=desired.model_copy(update={"source_filename": ""}),
        )
        self.state.put_pending_upload(ctx, token, pending)
        url = self.filestore.new_upload_url(token)
        logger.info("function %s needs source upload, token %s", name, token)
        return UploadRequest(token=token, url=url)

    def confirm_upload(self, ctx: Context, token: str) -> Function:
        """Persist an uploaded source and commit its function.

        Returns the committed function.
        """
        if not token:
            raise ValidationError("upload token is required")
        pending = self.state.get_pending_upload(ctx, token)
        if pending is None:
            raise NotFoundError(upload_path(token))
        if pending.function is None:
            raise ValidationError(f"pending upload {token} has no function")

        if self.filestore is None:
            raise ValidationError("no file store configured for source uploads")
        self.filestore.persist(ctx, pending.filename)

        function = pending.function.model_copy(update={"source_filename": pending.filename})
        self.state.put_model(ctx, function)
        self.state.delete_pending_upload(ctx, token)
        logger.info("function %s committed with source %s", function.name, pending.filename)
        return function

    # ------------------------------------------------------------------
    # Deployments and environments
    # ------------------------------------------------------------------

    def put_deployment(self, ctx: Context, deployment: Deployment) -> None:
        if deployment is None or not deployment.meta.name:
            raise ValidationError("deployment name is required")
        self.state.put_model(ctx, deployment)
        logger.info("deployment %s stored", deployment.name)

    def create_environment(self, ctx: Context, spec: EnvironmentInput) -> Environment:
        """Create an environment and store its credentials.

        Environments are create-only: an existing name is rejected.
        """
        if spec is None or not spec.name:
            raise ValidationError("environment name is required")
        if self.state.get_environment(ctx, spec.name) is not None:
            raise ConflictError(f"environment {spec.name} already exists")

        aws = None
        if spec.infrastructure == InfraType.AWS and spec.aws_region:
            aws = InfrastructureAWS(region=spec.aws_region)
        environment = Environment(
            meta=Meta(name=spec.name, labels=dict(spec.labels)),
            infrastructure=spec.infrastructure,
            aws=aws,
        )
        self.state.put_model(ctx, environment)
        self.state.put_user_credentials(ctx, spec.name, spec.username, spec.password)
        logger.info("environment %s created on %s", spec.name, spec.infrastructure.value)
        return environment
