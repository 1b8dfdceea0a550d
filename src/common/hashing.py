"""Default content hasher for chart payloads.

Any callable ``payload -> int`` in the unsigned 64-bit range can replace it;
the solver only requires the function to be pure and deterministic.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any

HASH_BITS = 64


def _payload_bytes(payload: Any) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, (dict, list, tuple)):
        # YAML timestamps and other scalars render through str()
        text = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
        return text.encode("utf-8")
    raise TypeError(f"Cannot hash payload of type {type(payload).__name__}")


def chart_hash(payload: Any) -> int:
    """Return a 64-bit unsigned hash of ``payload``; ``None`` hashes to 0."""
    if payload is None:
        return 0
    digest = hashlib.blake2b(_payload_bytes(payload), digest_size=HASH_BITS // 8).digest()
    return int.from_bytes(digest, "big")
