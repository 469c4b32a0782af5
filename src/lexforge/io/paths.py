"""
Path and layout helpers for lexforge.io.

Overview (under BuildSettings.root_dir)
- <root>/downloaded/<name>/<filename>            verified source cache
- <root>/downloaded/.tool/<filename>             external generator tool
- <root>/generated/<name>/<name>.<ext>           generated artifact (+ .stamp.json)
- <root>/generated/dispatch.py, dispatch.json    dispatch table

Notes
- Entry names match lexforge.core.constants.ENTRY_NAME_RE (no leading ".", no "/"),
  so per-entry directories are disjoint from each other and from the tool directory.
- This module focuses solely on path construction; it creates nothing.
"""

from __future__ import annotations

import os

from lexforge.core.constants import (
    DISPATCH_INDEX_NAME,
    DISPATCH_MODULE_NAME,
    DOWNLOADED_DIRNAME,
    GENERATED_DIRNAME,
    STAMP_SUFFIX,
    TOOL_DIRNAME,
)

from .config import BuildSettings

_ARTIFACT_SUFFIX = {"embedded": ".dfa", "external": ".zip"}


def downloaded_root(settings: BuildSettings) -> str:
    """
    Returns:
        str: "<root>/downloaded"
    """
    return os.path.join(settings.root_dir, DOWNLOADED_DIRNAME)


def generated_root(settings: BuildSettings) -> str:
    """
    Returns:
        str: "<root>/generated"
    """
    return os.path.join(settings.root_dir, GENERATED_DIRNAME)


def download_dir(settings: BuildSettings, name: str) -> str:
    """
    Cache directory for one manifest entry.

    Args:
        settings (BuildSettings): Build settings containing root_dir.
        name (str): Manifest entry name.

    Returns:
        str: "<root>/downloaded/<name>"
    """
    return os.path.join(downloaded_root(settings), name)


def tool_dir(settings: BuildSettings) -> str:
    """
    Returns:
        str: "<root>/downloaded/.tool"
    """
    return os.path.join(downloaded_root(settings), TOOL_DIRNAME)


def generated_dir(settings: BuildSettings, name: str) -> str:
    """
    Returns:
        str: "<root>/generated/<name>"
    """
    return os.path.join(generated_root(settings), name)


def artifact_path(settings: BuildSettings, name: str) -> str:
    """
    Artifact file for an entry under the configured strategy.

    Returns:
        str: "<root>/generated/<name>/<name>.dfa" (embedded) or ".zip" (external).
    """
    return os.path.join(generated_dir(settings, name), name + _ARTIFACT_SUFFIX[settings.strategy])


def stamp_path(artifact: str) -> str:
    """
    Returns:
        str: "<artifact>.stamp.json"
    """
    return artifact + STAMP_SUFFIX


def dispatch_module_path(settings: BuildSettings) -> str:
    return os.path.join(generated_root(settings), DISPATCH_MODULE_NAME)


def dispatch_index_path(settings: BuildSettings) -> str:
    return os.path.join(generated_root(settings), DISPATCH_INDEX_NAME)
