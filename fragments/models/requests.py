"""Inputs and outputs of the apply server."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from fragments.models.records import InfraType


class UploadRequest(BaseModel):
    """Where a client must PUT a function's source archive.

    ``token`` is passed back to ``confirm_upload`` once the PUT succeeded.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    url: str


class EnvironmentInput(BaseModel):
    """Everything needed to create an environment.

    The credentials go to the secret store; the rest becomes the
    ``Environment`` record.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    labels: dict[str, str] = {}
    infrastructure: InfraType = InfraType.AWS
    username: str = ""
    password: str = ""
    aws_region: str = ""
