"""IAM role reconciler.

Only a role's description can change once it exists.  A desired change of
path or trust policy on an existing role is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from fragments.backend.base import KV
from fragments.core.clock import Clock
from fragments.core.context import Context
from fragments.errors import BackendError
from fragments.models.records import InfraType
from fragments.reconciler.aws.services import ServiceProvider
from fragments.state.resource import ResourcePointer

logger = logging.getLogger(__name__)

IAM_RESOURCE = "iam"


@dataclass(frozen=True)
class RoleInput:
    role_name: str
    description: str
    path: str
    assume_role_policy_document: str


class IAMReconciler:
    def __init__(self, kv: KV, provider: ServiceProvider, clock: Clock) -> None:
        self.kv = kv
        self.provider = provider
        self.clock = clock

    @staticmethod
    def pointer(name: str) -> ResourcePointer:
        return ResourcePointer(InfraType.AWS, IAM_RESOURCE, name)

    def put_role(self, ctx: Context, role: RoleInput) -> dict[str, Any]:
        """Converge one role and return its stored description from IAM."""
        res = self.pointer(role.role_name)
        with res.locked(ctx, self.kv):
            existing = res.get(ctx, self.kv)
            if existing is None:
                return self._create(ctx, res, role)
            return self._update(ctx, res, existing, role)

    def _create(self, ctx: Context, res: ResourcePointer, role: RoleInput) -> dict[str, Any]:
        svc = self.provider.iam()
        ctx.check()
        try:
            out = svc.create_role(
                AssumeRolePolicyDocument=role.assume_role_policy_document,
                Description=role.description,
                Path=role.path,
                RoleName=role.role_name,
            )
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"could not create iam role {role.role_name}") from exc
        created = out["Role"]
        res.put(ctx, self.kv, self.clock, created)
        logger.info("aws: created iam role %s", role.role_name)
        return created

    def _update(
        self, ctx: Context, res: ResourcePointer, existing: dict[str, Any], role: RoleInput
    ) -> dict[str, Any]:
        if existing.get("Path", role.path) != role.path:
            logger.warning(
                "aws: iam role %s path change to %s ignored", role.role_name, role.path
            )
        if (existing.get("Description") or "") == role.description:
            return existing

        svc = self.provider.iam()
        ctx.check()
        try:
            out = svc.update_role_description(
                RoleName=role.role_name,
                Description=role.description,
            )
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"could not update iam role {role.role_name}") from exc
        updated = dict(existing)
        updated["Description"] = out.get("Role", {}).get("Description", role.description)
        res.put(ctx, self.kv, self.clock, updated)
        logger.info("aws: updated iam role %s description", role.role_name)
        return updated
