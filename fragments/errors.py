"""Exception hierarchy shared by every Fragments layer.

Absent records are a normal control-flow value for the state service, so
``NotFoundError`` is raised unwrapped by the backends and converted to
``None`` one layer up.  Every other error carries one line of context per
layer through exception chaining.
"""

from __future__ import annotations


class FragmentsError(Exception):
    """Base class for all Fragments errors."""


class ValidationError(FragmentsError):
    """Raised when a required field is missing or an input is malformed."""


class NotFoundError(FragmentsError):
    """Raised by a backend when a key does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"key not found: {key}")
        self.key = key


class ConflictError(FragmentsError):
    """Raised when an operation conflicts with existing state."""


class BackendError(FragmentsError):
    """Raised when a KV, secret or blob backend call fails."""


class CodecError(FragmentsError):
    """Raised when a record cannot be marshalled or unmarshalled."""


class UnsupportedInfrastructureError(FragmentsError):
    """Raised when an environment names an infrastructure with no adapter."""

    def __init__(self, infrastructure: str) -> None:
        super().__init__(f"unsupported infrastructure {infrastructure!r}")
        self.infrastructure = infrastructure


class ReconcileError(FragmentsError):
    """Raised when reconciling one function in one environment fails."""

    def __init__(self, infrastructure: str, function: str, cause: BaseException) -> None:
        super().__init__(f"env: {infrastructure}, func: {function}: {cause}")
        self.infrastructure = infrastructure
        self.function = function
