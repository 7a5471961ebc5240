"""Digest and compact JSON helpers.

Source checksums are computed client-side over the function files (sha1,
matching what existing clients send); the reconciler fingerprints the
transcoded deployment package with sha256.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, BinaryIO

_CHUNK = 64 * 1024


def compact_json(document: str) -> str:
    """Re-serialize a JSON document without insignificant whitespace.

    Key order is preserved so policy documents read the way they were
    written.
    """
    return json.dumps(json.loads(document), separators=(",", ":"))


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha1_files_hex(paths: Iterable[Path | str]) -> str:
    """SHA-1 over the concatenated contents of *paths*, in the given order."""
    digest = hashlib.sha1()
    for path in paths:
        with open(path, "rb") as fh:
            _feed(digest, fh)
    return digest.hexdigest()


def _feed(digest: Any, stream: BinaryIO) -> None:
    while True:
        chunk = stream.read(_CHUNK)
        if not chunk:
            return
        digest.update(chunk)
