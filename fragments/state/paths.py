"""Key layout.  The only module that knows how the stores are namespaced.

    /models/<kind>/<name>                 desired state
    /uploads/<token>                      pending uploads
    /resources/<infra>/<type>/<name>      resource envelopes
    user/<env>/username, user/<env>/password   (secret store only)
"""

from __future__ import annotations

from fragments.errors import ValidationError
from fragments.models.records import ModelKind

SECRET_USER = "username"
SECRET_PASS = "password"


def _require(value: str, what: str) -> str:
    if not value:
        raise ValidationError(f"{what} is required")
    return value


def model_path(kind: ModelKind | str, name: str) -> str:
    kind = ModelKind(kind)
    return f"/models/{kind.value}/{_require(name, 'name')}"


def model_list_path(kind: ModelKind | str) -> str:
    kind = ModelKind(kind)
    return f"/models/{kind.value}/"


def upload_path(token: str) -> str:
    return f"/uploads/{_require(token, 'token')}"


def upload_list_path() -> str:
    return "/uploads/"


def resource_path(infra: str, resource_type: str, name: str) -> str:
    return "/resources/{}/{}/{}".format(
        _require(str(infra), "infrastructure"),
        _require(str(resource_type), "resource type"),
        _require(name, "name"),
    )


def user_secret_paths(env_name: str) -> tuple[str, str]:
    """Return the ``(username, password)`` secret keys for an environment."""
    _require(env_name, "environment name")
    return (
        f"user/{env_name}/{SECRET_USER}",
        f"user/{env_name}/{SECRET_PASS}",
    )
