"""Source upload over HTTP PUT."""

from __future__ import annotations

import logging

import requests

from fragments.errors import BackendError

logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT_SECONDS = 60


def upload(data: bytes, url: str, *, timeout: float = UPLOAD_TIMEOUT_SECONDS) -> None:
    """PUT *data* to an upload URL; anything but 200 is an error."""
    try:
        response = requests.put(url, data=data, timeout=timeout)
    except requests.RequestException as exc:
        raise BackendError("upload request failed") from exc
    if response.status_code != 200:
        raise BackendError(f"received unexpected status {response.status_code}")
    logger.debug("uploaded %d bytes to %s", len(data), url)
