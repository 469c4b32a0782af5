"""
lexforge layout and format constants.

Defines directory names, artifact suffixes and the automaton wire format
identifiers consumed by the io and gen layers. This module is zero-IO and uses
only the Python standard library.

Notes:
    - No URLs or hashes live here; those come from the manifest and BuildSettings.
    - Changing AUTOMATON_FORMAT_VERSION invalidates every stamped .dfa artifact.
"""

from __future__ import annotations

import re
from typing import Final

__all__ = [
    "DOWNLOADED_DIRNAME",
    "GENERATED_DIRNAME",
    "TOOL_DIRNAME",
    "STAMP_SUFFIX",
    "DISPATCH_MODULE_NAME",
    "DISPATCH_INDEX_NAME",
    "EXTENSION_RE",
    "ENTRY_NAME_RE",
    "SHA256_RE",
    "AUTOMATON_MAGIC",
    "AUTOMATON_FORMAT_VERSION",
    "MAX_CODE_POINT",
    "DEFAULT_TOOL_COMMAND",
    "DEFAULT_TARGET_LANGUAGE",
]

# <root>/downloaded/<name>/<filename>
DOWNLOADED_DIRNAME: Final[str] = "downloaded"
# <root>/generated/<name>/<artifact>
GENERATED_DIRNAME: Final[str] = "generated"
# <root>/downloaded/.tool/<filename>; entry names cannot start with "."
TOOL_DIRNAME: Final[str] = ".tool"

STAMP_SUFFIX: Final[str] = ".stamp.json"
DISPATCH_MODULE_NAME: Final[str] = "dispatch.py"
DISPATCH_INDEX_NAME: Final[str] = "dispatch.json"

EXTENSION_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9]+")
ENTRY_NAME_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_-]*")
SHA256_RE: Final[re.Pattern[str]] = re.compile(r"[0-9a-f]{64}")

AUTOMATON_MAGIC: Final[bytes] = b"LXDFA"
AUTOMATON_FORMAT_VERSION: Final[int] = 1
MAX_CODE_POINT: Final[int] = 0x10FFFF

# Argument template for the external generator; {grammars} expands to one
# argument per fetched source file.
DEFAULT_TOOL_COMMAND: Final[tuple[str, ...]] = (
    "java",
    "-jar",
    "{tool}",
    "-Dlanguage={language}",
    "-o",
    "{out}",
    "{grammars}",
)
DEFAULT_TARGET_LANGUAGE: Final[str] = "Python3"
