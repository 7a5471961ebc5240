"""Blob store contracts."""

from __future__ import annotations

from typing import BinaryIO, Protocol

from fragments.core.context import Context
from fragments.errors import ValidationError


class SourceTarget(Protocol):
    """Accepts source uploads and moves confirmed ones to permanent storage."""

    def new_upload_url(self, name: str) -> str:
        """Return a URL that accepts an HTTP PUT of the blob for *name*."""
        raise NotImplementedError

    def persist(self, ctx: Context, name: str) -> None:
        """Move an uploaded blob from staging to permanent storage.

        Persisting a blob that is already permanent and no longer staged
        succeeds, so a retried confirmation does not fail.
        """
        raise NotImplementedError


class SourceReader(Protocol):
    """Reads persisted source blobs."""

    def get_file(self, ctx: Context, name: str) -> BinaryIO:
        raise NotImplementedError


class FileStore(SourceTarget, SourceReader, Protocol):
    pass


def validate_blob_name(name: str) -> str:
    """Reject names that are empty or could escape the store's namespace."""
    if not name:
        raise ValidationError("name not set")
    if "/" in name or "\\" in name or name in (".", ".."):
        raise ValidationError(f"invalid blob name {name!r}")
    return name
