"""Manifest loading.

A manifest file holds one or more documents: a JSON object, a JSON array
of objects, or YAML documents separated by ``---``.  Documents without a
``kind`` are not manifests and are skipped.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from fragments.errors import CodecError, ConflictError, ValidationError
from fragments.models.manifests import MANIFEST_ADAPTER, Manifest

KNOWN_KINDS = ("function", "deployment")


def load(path: str | Path) -> list[Manifest]:
    """Load every manifest in one file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CodecError(f"could not load file {path}") from exc

    manifests: list[Manifest] = []
    for document in split_documents(text):
        manifest = parse(document, str(path))
        if manifest is not None:
            manifests.append(manifest)
    return manifests


def split_documents(text: str) -> list[Any]:
    trimmed = text.strip()
    try:
        if trimmed.startswith("{"):
            return [json.loads(trimmed)]
        if trimmed.startswith("["):
            documents = json.loads(trimmed)
            return list(documents)
        return [doc for doc in yaml.safe_load_all(trimmed) if doc is not None]
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CodecError("could not parse manifest") from exc


def parse(document: Any, file: str) -> Manifest | None:
    """Turn one document into a manifest; ``None`` if it has no kind."""
    if not isinstance(document, dict):
        raise ValidationError(f"manifest must be an object, got {type(document).__name__}")
    kind = document.get("kind")
    if not kind:
        return None
    meta = document.get("meta")
    if not meta:
        raise ValidationError("model meta not set")
    if not isinstance(meta, dict) or not meta.get("name"):
        raise ValidationError("model name not set")

    kind = str(kind).lower()
    if kind not in KNOWN_KINDS:
        raise ValidationError(f"unknown model type {document['kind']}")

    try:
        manifest = MANIFEST_ADAPTER.validate_python({**document, "kind": kind})
    except PydanticValidationError as exc:
        raise CodecError(f"could not unmarshal {kind} model") from exc
    return manifest.model_copy(update={"file": file})


def check_duplicates(manifests: Iterable[Manifest]) -> None:
    """Reject two manifests of the same kind and name."""
    seen: dict[tuple[str, str], list[str]] = defaultdict(list)
    for manifest in manifests:
        seen[(manifest.kind, manifest.meta.name)].append(manifest.file)

    for (kind, name), files in seen.items():
        if len(files) > 1:
            listing = "\n- ".join(files)
            raise ConflictError(f"duplicate {kind} definitions for {name}:\n- {listing}")
