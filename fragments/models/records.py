"""Desired-state records and pending uploads.

Every top-level record carries ``Meta`` and is stored as JSON under
``/models/<kind>/<name>``.  Records are frozen; derive changed copies with
``model_copy(update=...)``.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field


class ModelKind(str, Enum):
    """Record families stored under ``/models/``."""

    FUNCTION = "function"
    ENVIRONMENT = "environment"
    DEPLOYMENT = "deployment"


class InfraType(str, Enum):
    """Target infrastructure an environment deploys to."""

    AWS = "aws"


class Meta(BaseModel):
    """Name and labels shared by every record.

    ``name`` is unique within its kind.  Label keys and values are compared
    case-insensitively by selectors.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    labels: dict[str, str] = {}


class FunctionAWS(BaseModel):
    """Lambda specific configuration."""

    model_config = ConfigDict(frozen=True)

    timeout: int = 0  # seconds
    memory: int = 0  # MB


class Function(BaseModel):
    """A function as declared by the user.

    ``checksum`` is the client-computed digest of the source files.
    ``source_filename`` is the blob key of the confirmed source; it is
    empty until an upload has been confirmed.
    """

    model_config = ConfigDict(frozen=True)
    kind: ClassVar[ModelKind] = ModelKind.FUNCTION

    meta: Meta = Field(default_factory=Meta)
    runtime: str = ""
    checksum: str = ""
    source_filename: str = ""
    aws: FunctionAWS | None = None

    @property
    def name(self) -> str:
        return self.meta.name


class InfrastructureAWS(BaseModel):
    model_config = ConfigDict(frozen=True)

    region: str = ""


class Environment(BaseModel):
    """A target deployment environment."""

    model_config = ConfigDict(frozen=True)
    kind: ClassVar[ModelKind] = ModelKind.ENVIRONMENT

    meta: Meta = Field(default_factory=Meta)
    infrastructure: InfraType = InfraType.AWS
    aws: InfrastructureAWS | None = None

    @property
    def name(self) -> str:
        return self.meta.name


class Deployment(BaseModel):
    """Connects functions to environments through two label selectors.

    A record is selected only if it carries every label in the selector.
    """

    model_config = ConfigDict(frozen=True)
    kind: ClassVar[ModelKind] = ModelKind.DEPLOYMENT

    meta: Meta = Field(default_factory=Meta)
    environment_labels: dict[str, str] = {}
    function_labels: dict[str, str] = {}

    @property
    def name(self) -> str:
        return self.meta.name


Record = Union[Function, Environment, Deployment]


class PendingUpload(BaseModel):
    """An upload handed to a client and not yet confirmed.

    ``previous_filename`` is the source blob the function used before this
    upload, blank for new functions.  ``function`` is the desired state to
    commit once the upload is confirmed; its ``source_filename`` is empty.
    """

    model_config = ConfigDict(frozen=True)

    token: str = ""
    filename: str = ""
    previous_filename: str = ""
    function: Function | None = None
