"""
Integrity verification and canonical JSON helpers.

Provides the single SHA-256 policy used to pin downloaded grammar sources and to
stamp generated artifacts, plus a canonical JSON policy for stamps so that
identical inputs always serialize (and hash) identically. This module is zero-IO
and uses only the Python standard library.

Notes:
    - Digests are lower-case hex strings; comparisons are case-insensitive so
      manifests may pin either case.
    - Canonical JSON:
        - sort_keys=True
        - separators=(",", ":")
        - ensure_ascii=False
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

__all__ = [
    "sha256_hex",
    "verify_digest",
    "json_dumps_canonical",
]


def sha256_hex(data: bytes) -> str:
    """
    Compute the SHA-256 hex digest of a byte buffer.

    Args:
        data (bytes): Buffer to hash.

    Returns:
        str: 64-character lower-case hex digest.

    Examples:
        >>> sha256_hex(b"")
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    h = hashlib.sha256()
    h.update(data)
    return h.hexdigest()


def verify_digest(data: bytes, expected: str) -> bool:
    """
    Check whether a buffer hashes to an expected digest.

    Args:
        data (bytes): Buffer to hash.
        expected (str): Expected hex digest (any case).

    Returns:
        bool: True if sha256_hex(data) equals expected, ignoring case.
    """
    return sha256_hex(data) == expected.strip().lower()


def json_dumps_canonical(obj: Any) -> str:
    """
    Serialize an object to a canonical JSON string.

    Args:
        obj (Any): JSON-serializable object.

    Returns:
        str: Canonical JSON string with sorted keys and compact separators.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

