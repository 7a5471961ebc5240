"""Wiring shared by the CLI commands: backends, file store, signals."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from fragments.backend.base import KV, SecretStore
from fragments.backend.etcd import EtcdKV
from fragments.backend.vault import VaultSecrets
from fragments.config import Settings, settings
from fragments.core.context import Context, background
from fragments.filestore.base import FileStore
from fragments.filestore.local import LocalFileStore
from fragments.filestore.s3 import S3FileStore

logger = logging.getLogger(__name__)


@dataclass
class CLIOptions:
    """Global options, resolved against ``Settings`` by the app callback."""

    etcd: list[str] = field(default_factory=list)
    vault: str = ""
    settings: Settings = field(default_factory=lambda: settings)


def open_kv(options: CLIOptions) -> KV:
    return EtcdKV.connect(options.etcd, options.settings.etcd_dial_timeout)


def open_secrets(options: CLIOptions) -> SecretStore:
    return VaultSecrets.connect(options.vault, options.settings.vault_token)


def open_filestore(options: CLIOptions) -> FileStore:
    cfg = options.settings
    if cfg.filestore == "s3":
        return S3FileStore.create(
            upload_bucket=cfg.upload_bucket,
            source_bucket=cfg.source_bucket,
            upload_expiry=cfg.upload_expiry,
            region=cfg.aws_region,
        )
    return LocalFileStore(cfg.upload_dir, cfg.source_dir)


def close_quietly(resource: object) -> None:
    """Release a backend or file store, logging instead of raising."""
    for method in ("close", "shutdown"):
        fn = getattr(resource, method, None)
        if fn is None:
            continue
        try:
            fn()
        except Exception as exc:  # noqa: BLE001 - cleanup after the real work
            logger.warning("could not %s %s: %s", method, type(resource).__name__, exc)
        return


@contextmanager
def signal_context() -> Iterator[Context]:
    """A root context cancelled by SIGINT or SIGTERM."""
    ctx, cancel = background().with_cancel()
    if threading.current_thread() is not threading.main_thread():
        try:
            yield ctx
        finally:
            cancel()
        return

    def handler(signum: int, frame: object) -> None:
        logger.warning("received %s, cancelling", signal.Signals(signum).name)
        cancel()

    previous = {
        sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield ctx
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
        cancel()
