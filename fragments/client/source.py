"""Function source collection, checksumming and archiving.

The checksum decides whether a function's code changed, so it covers only
source files: the manifest itself and nested functions are left out and a
pure configuration change does not trigger an upload.
"""

from __future__ import annotations

import gzip
import io
import os
import tarfile
from collections.abc import Iterable, Sequence
from pathlib import Path

from fragments.core.hasher import sha1_files_hex
from fragments.errors import ValidationError


def collect_source(
    root: str | Path,
    ignore: Iterable[str] = (),
    exclude_dirs: Iterable[str | Path] = (),
) -> list[str]:
    """List every file below *root*.

    Directories whose path relative to *root* contains one of the *ignore*
    substrings are skipped, as is every directory in *exclude_dirs* (used
    for functions nested inside another function's directory).
    """
    root = os.path.normpath(root)
    patterns = list(ignore)
    excluded = {os.path.abspath(d) for d in exclude_dirs}
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        kept = []
        for d in sorted(dirnames):
            full = os.path.join(dirpath, d)
            rel = os.path.relpath(full, root)
            if any(p in rel for p in patterns) or os.path.abspath(full) in excluded:
                continue
            kept.append(d)
        dirnames[:] = kept
        files.extend(os.path.join(dirpath, f) for f in sorted(filenames))
    return files


def checksum(files: Iterable[str], ignore: Iterable[str] = ()) -> str:
    """SHA-1 hex digest over the contents of *files* in sorted order.

    Files whose path contains one of the *ignore* substrings are left out.
    Raises ``ValidationError`` if nothing is left to hash.
    """
    patterns = list(ignore)
    included = sorted(f for f in files if not any(p in f for p in patterns))
    if not included:
        raise ValidationError("no files were included in checksum")
    return sha1_files_hex(included)


def compress(files: Sequence[str], base_dir: str | Path | None = None) -> bytes:
    """Archive *files* into a gzipped tarball.

    Entry names are relative to *base_dir* when given, else the file's
    base name.
    """
    if not files:
        raise ValidationError("no files specified")
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb") as gz:
        with tarfile.open(fileobj=gz, mode="w") as tar:
            for path in files:
                if base_dir is not None:
                    arcname = os.path.relpath(path, base_dir)
                else:
                    arcname = os.path.basename(path)
                tar.add(path, arcname=arcname, recursive=False)
    return buffer.getvalue()
