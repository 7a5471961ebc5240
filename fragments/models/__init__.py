"""Fragments data models: Pydantic v2, frozen."""

from fragments.models.codec import from_json_value, marshal, to_json_value, unmarshal
from fragments.models.envelope import ResourceEnvelope
from fragments.models.manifests import (
    DeploymentManifest,
    DeploymentSpec,
    FunctionManifest,
    FunctionSpec,
    Manifest,
)
from fragments.models.records import (
    Deployment,
    Environment,
    Function,
    FunctionAWS,
    InfrastructureAWS,
    InfraType,
    Meta,
    ModelKind,
    PendingUpload,
    Record,
)
from fragments.models.requests import EnvironmentInput, UploadRequest

__all__ = [
    # records
    "ModelKind",
    "InfraType",
    "Meta",
    "Function",
    "FunctionAWS",
    "Environment",
    "InfrastructureAWS",
    "Deployment",
    "PendingUpload",
    "Record",
    # apply server
    "UploadRequest",
    "EnvironmentInput",
    # envelope
    "ResourceEnvelope",
    # manifests
    "FunctionManifest",
    "FunctionSpec",
    "DeploymentManifest",
    "DeploymentSpec",
    "Manifest",
    # codec
    "marshal",
    "unmarshal",
    "to_json_value",
    "from_json_value",
]
