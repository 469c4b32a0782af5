"""
Generated-artifact persistence with verification stamps.

Layout (file protocol baseline)
- <root>/generated/<name>/<name>.dfa|.zip          artifact bytes
- <root>/generated/<name>/<name>.dfa.stamp.json    stamp

Stamp (canonical JSON):
{
  "artifact_sha256": "<hex>",
  "bytes": 1234,
  "fingerprint": "<generator fingerprint>",
  "name": "<entry>",
  "sources": [{"sha256": "<hex>", "url": "<url>"}, …]
}

Notes
- Both files are written tmp → fsync → os.replace; the stamp is written last, so an
  artifact without a matching stamp (crash mid-write, generator failure after a
  partial write) is never reused.
- An artifact is reused only if its stamp matches the current sources and generator
  fingerprint AND the file on disk still hashes to the stamped digest.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from lexforge.core.hashing import json_dumps_canonical, sha256_hex
from lexforge.core.schema import DownloadedArtifact, GeneratedArtifact

from .fs import read_bytes, write_bytes_atomic
from .paths import stamp_path

logger = logging.getLogger(__name__)


def _stamp(
    name: str, fingerprint: str, sources: Sequence[DownloadedArtifact], data: bytes
) -> dict[str, Any]:
    return {
        "name": name,
        "fingerprint": fingerprint,
        "sources": [{"url": s.url, "sha256": s.sha256} for s in sources],
        "artifact_sha256": sha256_hex(data),
        "bytes": len(data),
    }


def persist_artifact(
    path: str,
    data: bytes,
    *,
    name: str,
    strategy: str,
    fingerprint: str,
    sources: Sequence[DownloadedArtifact],
    extensions: Sequence[str] = (),
) -> GeneratedArtifact:
    """
    Atomically write an artifact and its stamp.

    Args:
        path: Final artifact path.
        data: Generator output.
        name: Manifest entry name.
        strategy: Generator strategy name.
        fingerprint: Generator fingerprint recorded in the stamp.
        sources: Verified inputs the artifact was generated from.
        extensions: Extensions declared by the entry.

    Returns:
        GeneratedArtifact: Record of the persisted artifact.

    Raises:
        IoError: If either write fails.
    """
    stamp = _stamp(name, fingerprint, sources, data)
    write_bytes_atomic(path, data)
    write_bytes_atomic(stamp_path(path), (json_dumps_canonical(stamp) + "\n").encode("utf-8"))
    return GeneratedArtifact(
        name=name,
        data=data,
        path=path,
        sha256=stamp["artifact_sha256"],
        strategy=strategy,
        extensions=tuple(extensions),
    )


def load_valid_artifact(
    path: str,
    *,
    name: str,
    strategy: str,
    fingerprint: str,
    sources: Sequence[DownloadedArtifact],
    extensions: Sequence[str] = (),
) -> GeneratedArtifact | None:
    """
    Return the existing artifact if it is verifiably current, else None.

    Args:
        path: Artifact path.
        name, strategy, fingerprint, sources, extensions: As for persist_artifact.

    Returns:
        GeneratedArtifact | None: The reused artifact (reused=True), or None when it
        is missing, unstamped, stale, or corrupted.
    """
    raw_stamp = read_bytes(stamp_path(path))
    data = read_bytes(path)
    if raw_stamp is None or data is None:
        return None
    try:
        stamp = json.loads(raw_stamp.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.info("ignoring unreadable stamp for %s", path)
        return None
    if stamp != _stamp(name, fingerprint, sources, data):
        logger.debug("stamp mismatch for %s; regenerating", path)
        return None
    return GeneratedArtifact(
        name=name,
        data=data,
        path=path,
        sha256=stamp["artifact_sha256"],
        strategy=strategy,
        extensions=tuple(extensions),
        reused=True,
    )
