"""Reconciler core: projects desired state onto infrastructure.

One ``run`` walks every deployment in parallel.  For each deployment the
matching environments and functions are resolved first (also in
parallel), then every ``(environment, function)`` pair is handed to the
adapter registered for the environment's infrastructure.

The reconciler keeps no state of its own; running it again against
unchanged desired state only costs a lock, a read and a compare per
resource.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from fragments.config import settings
from fragments.core.context import Context, ContextCancelled
from fragments.core.errgroup import ErrGroup
from fragments.errors import ReconcileError, UnsupportedInfrastructureError
from fragments.models.records import Deployment, Environment, Function, InfraType
from fragments.state.matchers import LabelMatcher
from fragments.state.service import StateService

logger = logging.getLogger(__name__)


class Infrastructure(Protocol):
    """Converges one function in one environment of a given infrastructure."""

    def reconcile(self, ctx: Context, env: Environment, fn: Function) -> None:
        raise NotImplementedError


class Reconciler:
    """Fans deployments out to infrastructure adapters.

    Parameters
    ----------
    state:
        Source of deployments, environments and functions.
    adapters:
        Adapter per infrastructure type.
    max_workers:
        Upper bound on concurrently running workers per fan-out level.
        Defaults to the configured ``max_workers``.
    """

    def __init__(
        self,
        state: StateService,
        adapters: Mapping[InfraType, Infrastructure],
        *,
        max_workers: int | None = None,
    ) -> None:
        self.state = state
        self.adapters = dict(adapters)
        self.max_workers = max_workers if max_workers is not None else settings.max_workers

    def run(self, ctx: Context) -> None:
        """Reconcile every deployment once.

        Fails fast on the first error but returns only after every worker
        has finished.
        """
        deployments = self.state.list_deployments(ctx)
        logger.info("reconciler: %d deployment(s)", len(deployments))
        group = ErrGroup(ctx, limit=self.max_workers)
        for deployment in deployments:
            group.go(self.reconcile_deployment, deployment)
        group.wait()

    def reconcile_deployment(self, ctx: Context, deployment: Deployment) -> None:
        envs, fns = self.resolve_models(ctx, deployment)
        logger.debug(
            "reconciler: deployment %s matched %d environment(s), %d function(s)",
            deployment.name,
            len(envs),
            len(fns),
        )
        targets = [(env, self._adapter_for(env)) for env in envs]

        group = ErrGroup(ctx, limit=self.max_workers)
        for env, adapter in targets:
            for fn in fns:
                group.go(self._reconcile_pair, adapter, env, fn)
        group.wait()

    def resolve_models(
        self, ctx: Context, deployment: Deployment
    ) -> tuple[list[Environment], list[Function]]:
        """List the environments and functions a deployment selects."""
        result: dict[str, list] = {}

        def list_envs(gctx: Context) -> None:
            result["envs"] = self.state.list_environments(
                gctx, LabelMatcher(deployment.environment_labels)
            )

        def list_fns(gctx: Context) -> None:
            result["fns"] = self.state.list_functions(
                gctx, LabelMatcher(deployment.function_labels)
            )

        group = ErrGroup(ctx)
        group.go(list_envs)
        group.go(list_fns)
        group.wait()
        return result["envs"], result["fns"]

    def _adapter_for(self, env: Environment) -> Infrastructure:
        adapter = self.adapters.get(env.infrastructure)
        if adapter is None:
            raise UnsupportedInfrastructureError(
                getattr(env.infrastructure, "value", str(env.infrastructure))
            )
        return adapter

    def _reconcile_pair(
        self, ctx: Context, adapter: Infrastructure, env: Environment, fn: Function
    ) -> None:
        try:
            adapter.reconcile(ctx, env, fn)
        except ContextCancelled:
            raise
        except Exception as exc:
            raise ReconcileError(env.infrastructure.value, fn.name, exc) from exc
        logger.info(
            "reconciler: function %s converged in environment %s", fn.name, env.name
        )
