"""Runtime configuration, environment driven.

Every setting can be overridden with a ``FRAGMENTS_*`` environment
variable or a ``.env`` file in the working directory.

Examples
--------
Point the CLI at a remote etcd cluster and Vault::

    export FRAGMENTS_ETCD_ENDPOINTS='["10.0.0.5:2379", "10.0.0.6:2379"]'
    export FRAGMENTS_VAULT_ADDRESS=https://vault.internal:8200
    export FRAGMENTS_VAULT_TOKEN=s.xxxxx

Keep sources in S3 instead of on local disk::

    FRAGMENTS_FILESTORE=s3
    FRAGMENTS_UPLOAD_BUCKET=fragments-uploads
    FRAGMENTS_SOURCE_BUCKET=fragments-source
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connection and storage settings shared by the CLI commands."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FRAGMENTS_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # State and secrets
    etcd_endpoints: list[str] = ["127.0.0.1:2379"]
    etcd_dial_timeout: float = 3.0
    vault_address: str = "http://127.0.0.1:8200"
    vault_token: str | None = None

    # Source storage
    data_dir: Path = Path("~/.fragments")
    filestore: Literal["local", "s3"] = "local"
    upload_bucket: str = ""
    source_bucket: str = ""
    upload_expiry_seconds: int = 600

    # AWS
    aws_region: str = "us-east-1"

    # Runtime
    log_level: str = "INFO"
    max_workers: int = 8

    @property
    def upload_dir(self) -> Path:
        return self.data_dir.expanduser() / "uploads"

    @property
    def source_dir(self) -> Path:
        return self.data_dir.expanduser() / "source"

    @property
    def upload_expiry(self) -> timedelta:
        return timedelta(seconds=self.upload_expiry_seconds)


# Module-level singleton: `from fragments.config import settings`
settings = Settings()
