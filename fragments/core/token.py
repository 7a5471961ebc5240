"""Upload tokens: ULIDs in canonical 26-character Crockford Base32.

The high 48 bits are the millisecond timestamp and the low 80 bits come
from ``secrets``, so tokens sort by creation time and need no
coordination between processes.  Example: ``01AN4Z07BY79KA1307SR9X4MV3``.
"""

from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
TOKEN_LENGTH = 26


def generate_token(*, timestamp_ms: int | None = None) -> str:
    """Generate a new lexicographically sortable upload token."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")

    entropy = int.from_bytes(secrets.token_bytes(10), byteorder="big", signed=False)
    number = (ts_ms << 80) | entropy
    chars: list[str] = []
    for _ in range(TOKEN_LENGTH):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


def token_timestamp_ms(token: str) -> int:
    """Decode the millisecond timestamp embedded in *token*."""
    candidate = token.strip().upper()
    if len(candidate) != TOKEN_LENGTH:
        raise ValueError("token must be exactly 26 characters")
    number = 0
    for char in candidate:
        index = _ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"invalid token character: {char!r}")
        number = (number << 5) | index
    return number >> 80
