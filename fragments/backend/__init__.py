"""State and secret backends.

``KV`` is the transactional store for desired state, pending uploads and
resource envelopes (etcd in production, ``MemoryKV`` in tests).
``SecretStore`` holds credentials (Vault in production, ``MemorySecrets``
in tests) and deliberately offers neither listing nor locking.
"""

from fragments.backend.base import KV, SecretStore, Unlock, direct_children, normalize_prefix
from fragments.backend.memory import MemoryKV, MemorySecrets

__all__ = [
    "KV",
    "SecretStore",
    "Unlock",
    "MemoryKV",
    "MemorySecrets",
    "direct_children",
    "normalize_prefix",
]
