"""
lexforge.io: filesystem, network and configuration layer.

## Responsibilities
- Load BuildSettings (env > TOML > defaults) and grammar manifests.
- Fetch hash-pinned sources over HTTP into a self-healing on-disk cache.
- Persist generated artifacts atomically with verification stamps.
- Own the on-disk layout (downloaded/<name>/, generated/<name>/).

## Public API
- BuildSettings: build configuration.
- Fetcher, fetch: hash-verified, cache-aware download.
- load_manifest: read and validate a manifest file.

## Import DAG discipline
- Depends on stdlib, httpx and lexforge.core.*; MUST NOT import lexforge.gen or lexforge.cli.

## Notes
- Write path: tmp → fsync → os.replace(tmp, final) on the same filesystem.
"""

from __future__ import annotations

from .config import BuildSettings
from .fetch import Fetcher, fetch
from .manifest import load_manifest

__all__ = [
    "BuildSettings",
    "Fetcher",
    "fetch",
    "load_manifest",
]
