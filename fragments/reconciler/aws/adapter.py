"""AWS infrastructure adapter."""

from __future__ import annotations

import logging

from fragments.core.clock import Clock, RealClock
from fragments.core.context import Context, ContextCancelled
from fragments.errors import BackendError, FragmentsError
from fragments.filestore.base import SourceReader
from fragments.models.records import Environment, Function
from fragments.reconciler.aws.awslambda import LambdaReconciler
from fragments.reconciler.aws.services import ProviderFactory, SessionProvider
from fragments.state.service import StateService

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class AWSReconciler:
    """Deploys functions to AWS Lambda with the environment's credentials.

    The environment's stored username and password are used as the access
    key id and secret access key.
    """

    def __init__(
        self,
        state: StateService,
        source: SourceReader,
        *,
        clock: Clock | None = None,
        provider_factory: ProviderFactory = SessionProvider,
    ) -> None:
        self.state = state
        self.source = source
        self.clock = clock or RealClock()
        self.provider_factory = provider_factory

    def reconcile(self, ctx: Context, env: Environment, fn: Function) -> None:
        try:
            access_key, secret_key = self.state.get_user_credentials(ctx, env.name)
        except ContextCancelled:
            raise
        except FragmentsError as exc:
            raise BackendError(f"could not get aws credentials for {env.name}") from exc

        region = self.region(env)
        provider = self.provider_factory(access_key, secret_key, region)
        logger.debug("aws: reconciling %s in %s (%s)", fn.name, env.name, region)
        lambdas = LambdaReconciler(self.state.kv, self.source, provider, self.clock)
        lambdas.put_function(ctx, fn)

    @staticmethod
    def region(env: Environment) -> str:
        if env.aws is not None and env.aws.region:
            return env.aws.region
        return DEFAULT_REGION
