"""Manifest discovery."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from pathlib import Path

MANIFEST_EXTENSIONS = (".json", ".yml", ".yaml")


def walk(root: str | Path, ignore_dirs: Iterable[str] = ()) -> list[str]:
    """Return manifest files below *root*, in walk order.

    Hidden files and directories are skipped, as are directories whose
    name matches one of the ``fnmatch`` patterns in *ignore_dirs*.
    """
    patterns = list(ignore_dirs)
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not d.startswith(".") and not any(fnmatch.fnmatch(d, p) for p in patterns)
        )
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            if os.path.splitext(filename)[1].lower() not in MANIFEST_EXTENSIONS:
                continue
            found.append(os.path.join(dirpath, filename))
    return found
