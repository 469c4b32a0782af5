"""
Grammar manifest file reader.

Manifest layout (TOML, as in grammars/grammars.toml):

    [json]
    url = "https://…/JSON.g4"
    sha256 = "…"
    extensions = ["json"]

A .json file with the same shape is accepted as well. Decoding into
GrammarManifestEntry models (and every consistency check) is delegated to
lexforge.core.schema.entries_from_mapping, so a bad manifest fails before the
pipeline touches the network or the output directory.
"""

from __future__ import annotations

import json
import os
import tomllib

from lexforge.core.errors import ConfigError
from lexforge.core.schema import GrammarManifestEntry, entries_from_mapping


def load_manifest(path: str | os.PathLike[str]) -> dict[str, GrammarManifestEntry]:
    """
    Read and validate a grammar manifest.

    Args:
        path: Manifest file; ".json" is parsed as JSON, anything else as TOML.

    Returns:
        dict[str, GrammarManifestEntry]: Entries keyed by grammar name.

    Raises:
        ConfigError: If the file is missing, cannot be decoded, or is inconsistent.
    """
    p = os.fspath(path)
    try:
        with open(p, "rb") as fh:
            raw = fh.read()
    except OSError as e:
        raise ConfigError(f"cannot read manifest: {e.strerror or e}", path=p) from e
    try:
        if p.endswith(".json"):
            doc = json.loads(raw.decode("utf-8"))
        else:
            doc = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot decode manifest: {e}", path=p) from e
    return entries_from_mapping(doc)
