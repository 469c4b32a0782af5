"""
Dispatch table: file extension → generated artifact.

Built once, after every entry has been generated, from the (extension, artifact)
pairs of all entries, then emitted as:

- generated/dispatch.py: a self-contained Python module embedding each artifact as
  a bytes constant, with ARTIFACTS / GRAMMARS dicts and lookup(extension) returning
  b"" for unknown extensions. Downstream code imports it as a static lookup.
- generated/dispatch.json: extension to {grammar, sha256, path} index.

Rules
- Extensions must match [A-Za-z0-9]+; any violation aborts emission with
  InvalidExtensionError listing every offender. Nothing is written in that case.
- An extension claimed by two grammars is also InvalidExtensionError; repeating an
  extension inside one entry is harmless.
- Output is sorted by extension (artifact constants by grammar name), so it is
  byte-stable regardless of the order entries finished in.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass

from lexforge.core.constants import EXTENSION_RE
from lexforge.core.errors import InvalidExtensionError
from lexforge.core.schema import GeneratedArtifact
from lexforge.io.fs import write_bytes_atomic

logger = logging.getLogger(__name__)

_CHUNK = 48


@dataclass(frozen=True, slots=True)
class DispatchEntry:
    extension: str
    grammar: str
    sha256: str
    path: str
    data: bytes


@dataclass(frozen=True, slots=True)
class DispatchTable:
    """
    Validated, extension-sorted dispatch entries.

    Examples:
        >>> from lexforge.core.schema import GeneratedArtifact
        >>> art = GeneratedArtifact("json", b"x", "g/json/json.dfa", "ab", "embedded", ("json",))
        >>> table = build_dispatch_table(pairs_from_artifacts([art]))
        >>> table.lookup("json"), table.lookup("yaml")
        (b'x', b'')
    """

    entries: tuple[DispatchEntry, ...]

    def lookup(self, extension: str) -> bytes:
        for e in self.entries:
            if e.extension == extension:
                return e.data
        return b""

    def extensions(self) -> list[str]:
        return [e.extension for e in self.entries]


def pairs_from_artifacts(artifacts: Iterable[GeneratedArtifact]) -> list[tuple[str, GeneratedArtifact]]:
    """Flatten artifacts into (extension, artifact) pairs."""
    return [(ext, art) for art in artifacts for ext in art.extensions]


def build_dispatch_table(pairs: Iterable[tuple[str, GeneratedArtifact]]) -> DispatchTable:
    """
    Validate (extension, artifact) pairs and build a sorted DispatchTable.

    Args:
        pairs: Every (extension, artifact) pair across all entries.

    Returns:
        DispatchTable: One entry per extension, sorted by extension.

    Raises:
        InvalidExtensionError: If any extension is not alphanumeric, or one extension
            maps to two different grammars.
    """
    pairs = list(pairs)
    bad = sorted({ext for ext, _ in pairs if not EXTENSION_RE.fullmatch(ext)})
    if bad:
        owners = sorted({art.name for ext, art in pairs if ext in bad})
        raise InvalidExtensionError(
            f"extensions must match [A-Za-z0-9]+: {', '.join(repr(e) for e in bad)}",
            extensions=tuple(bad),
            entry=", ".join(owners),
        )

    by_ext: dict[str, GeneratedArtifact] = {}
    for ext, art in pairs:
        prev = by_ext.get(ext)
        if prev is not None and prev.name != art.name:
            raise InvalidExtensionError(
                f"extension {ext!r} is claimed by both {prev.name} and {art.name}",
                extensions=(ext,),
            )
        by_ext[ext] = art
    return DispatchTable(
        tuple(
            DispatchEntry(ext, art.name, art.sha256, art.path, art.data)
            for ext, art in sorted(by_ext.items())
        )
    )


def _bytes_literal(data: bytes, indent: str) -> str:
    if not data:
        return 'b""'
    lines = [f"{indent}{data[i : i + _CHUNK]!r}" for i in range(0, len(data), _CHUNK)]
    return "(\n" + "\n".join(lines) + f"\n{indent[:-4]})"


def render_module(table: DispatchTable) -> str:
    """
    Render the dispatch table as Python source.

    Returns:
        str: Module text; identical tables render identically.
    """
    grammars: dict[str, bytes] = {}
    for e in table.entries:
        grammars.setdefault(e.grammar, e.data)
    const = {g: f"_ARTIFACT_{i}" for i, g in enumerate(sorted(grammars))}

    out = [
        "# Generated by lexforge. Do not edit.",
        '"""File extension to lexer artifact dispatch table."""',
        "",
        "from __future__ import annotations",
        "",
    ]
    for g in sorted(grammars):
        out.append(f"# {g}")
        out.append(f"{const[g]} = {_bytes_literal(grammars[g], '    ')}")
        out.append("")
    out.append("ARTIFACTS: dict[str, bytes] = {")
    out.extend(f"    {e.extension!r}: {const[e.grammar]}," for e in table.entries)
    out.append("}")
    out.append("")
    out.append("GRAMMARS: dict[str, str] = {")
    out.extend(f"    {e.extension!r}: {e.grammar!r}," for e in table.entries)
    out.append("}")
    out.append("")
    out.append("")
    out.append("def lookup(extension: str) -> bytes:")
    out.append('    """Artifact bytes for a file extension, or b"" when it is unknown."""')
    out.append('    return ARTIFACTS.get(extension, b"")')
    return "\n".join(out) + "\n"


def render_index(table: DispatchTable, relative_to: str | None = None) -> str:
    """Render the JSON index (paths made relative to relative_to when given)."""
    index = {}
    for e in table.entries:
        path = os.path.relpath(e.path, relative_to) if relative_to else e.path
        index[e.extension] = {
            "grammar": e.grammar,
            "sha256": e.sha256,
            "path": path.replace(os.sep, "/"),
        }
    return json.dumps(index, indent=2, sort_keys=True) + "\n"


def emit_dispatch(table: DispatchTable, module_path: str, index_path: str) -> None:
    """
    Atomically write dispatch.py and dispatch.json.

    Args:
        table: Validated table from build_dispatch_table().
        module_path: Destination of the generated Python module.
        index_path: Destination of the JSON index; artifact paths in it are relative
            to its directory.

    Raises:
        IoError: If either write fails.
    """
    write_bytes_atomic(module_path, render_module(table).encode("utf-8"))
    write_bytes_atomic(
        index_path, render_index(table, os.path.dirname(index_path) or ".").encode("utf-8")
    )
    logger.info("wrote dispatch table with %d extension(s) to %s", len(table.entries), module_path)

