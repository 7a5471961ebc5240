"""Manifest documents as written by users.

A manifest is ``{kind, meta, spec}``; ``kind`` is the tag of a
discriminated union so a loaded document is validated straight into the
matching model without inspecting types at runtime.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from fragments.models.records import Deployment, Function, FunctionAWS, Meta


class FunctionSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    runtime: str = ""
    aws: FunctionAWS | None = None


class DeploymentSpec(BaseModel):
    """Selectors as written in a manifest: ``environment`` and ``function``."""

    model_config = ConfigDict(frozen=True)

    environment: dict[str, str] = {}
    function: dict[str, str] = {}


class FunctionManifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["function"] = "function"
    meta: Meta
    spec: FunctionSpec = Field(default_factory=FunctionSpec)
    file: str = Field(default="", exclude=True)

    def to_function(self, checksum: str) -> Function:
        """Desired state for this manifest with the given source checksum."""
        return Function(
            meta=self.meta,
            runtime=self.spec.runtime,
            checksum=checksum,
            aws=self.spec.aws,
        )


class DeploymentManifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["deployment"] = "deployment"
    meta: Meta
    spec: DeploymentSpec = Field(default_factory=DeploymentSpec)
    file: str = Field(default="", exclude=True)

    def to_deployment(self) -> Deployment:
        return Deployment(
            meta=self.meta,
            environment_labels=self.spec.environment,
            function_labels=self.spec.function,
        )


Manifest = Annotated[
    Union[FunctionManifest, DeploymentManifest],
    Field(discriminator="kind"),
]

MANIFEST_ADAPTER: TypeAdapter[Manifest] = TypeAdapter(Manifest)
