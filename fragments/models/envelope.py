"""The wrapper stored at ``/resources/<infra>/<type>/<name>``."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ResourceEnvelope(BaseModel):
    """Adapted state for one cloud resource.

    ``data`` is the provider-shaped object as plain JSON; its shape belongs
    to the reconciler that wrote it.  ``created`` never changes after the
    first write and ``updated`` moves with every write.
    """

    model_config = ConfigDict(frozen=True)

    data: Any = None
    created: datetime
    updated: datetime
