"""
Error taxonomy for the lexforge build pipeline.

Every failure raised by the pipeline is a BuildError tagged with an ErrorKind.
Variants are subclasses so callers can catch a single kind, while the CLI only
needs to catch BuildError and render the message plus its cause chain.

Kinds
- config: malformed or inconsistent manifest/settings (raised before any IO).
- network: transport failure or non-2xx response while fetching.
- integrity: fetched bytes do not hash to the declared SHA-256.
- grammar_parse: grammar bytes rejected by the embedded compiler.
- generator: external generator tool crashed or exited nonzero.
- invalid_extension: dispatch extension outside [A-Za-z0-9]+ or claimed twice.
- io: filesystem failure creating directories or writing artifacts.

Notes:
    - Lower-level exceptions are attached with ``raise ... from exc``; the
      ``cause`` property exposes them.
    - This module uses only the Python standard library and has no side effects.

Examples:
    >>> from lexforge.core.errors import ErrorKind, IntegrityError
    >>> err = IntegrityError(
    ...     "downloaded file has wrong SHA-256",
    ...     entry="json", url="https://x/JSON.g4", expected="aa", actual="bb",
    ... )
    >>> err.kind is ErrorKind.INTEGRITY
    True
    >>> "expected aa, got bb" in str(err)
    True
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

__all__ = [
    "ErrorKind",
    "BuildError",
    "ConfigError",
    "NetworkError",
    "IntegrityError",
    "GrammarParseError",
    "GeneratorError",
    "InvalidExtensionError",
    "IoError",
    "LexError",
]


class ErrorKind(str, Enum):
    """Tag carried by every BuildError variant."""

    CONFIG = "config"
    NETWORK = "network"
    INTEGRITY = "integrity"
    GRAMMAR_PARSE = "grammar_parse"
    GENERATOR = "generator"
    INVALID_EXTENSION = "invalid_extension"
    IO = "io"


class BuildError(Exception):
    """
    Base class for all pipeline failures.

    Attributes:
        kind (ErrorKind): Variant tag.
        message (str): Human-readable description without context.
        entry (str | None): Manifest entry name the failure belongs to.
        url (str | None): Source URL involved, if any.
        path (str | None): Filesystem path involved, if any.

    Notes:
        str(err) renders "[kind] entry: message (url=..., path=...)" so a build
        log line is actionable on its own.
    """

    kind: ClassVar[ErrorKind]

    def __init__(
        self,
        message: str,
        *,
        entry: str | None = None,
        url: str | None = None,
        path: str | None = None,
    ) -> None:
        self.message = message
        self.entry = entry
        self.url = url
        self.path = path
        super().__init__(self._render())

    @property
    def cause(self) -> BaseException | None:
        """The wrapped lower-level exception, if any."""
        return self.__cause__

    def _details(self) -> list[str]:
        out: list[str] = []
        if self.url:
            out.append(f"url={self.url}")
        if self.path:
            out.append(f"path={self.path}")
        return out

    def _render(self) -> str:
        head = f"[{self.kind.value}] "
        if self.entry:
            head += f"{self.entry}: "
        details = self._details()
        if details:
            return f"{head}{self.message} ({', '.join(details)})"
        return head + self.message


class ConfigError(BuildError):
    """Malformed or inconsistent manifest or settings."""

    kind = ErrorKind.CONFIG


class NetworkError(BuildError):
    """
    Fetch failure: transport error or non-2xx HTTP status.

    Attributes:
        status_code (int | None): HTTP status when a response was received.
    """

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, *, status_code: int | None = None, **context: str | None):
        self.status_code = status_code
        super().__init__(message, **context)

    def _details(self) -> list[str]:
        out = super()._details()
        if self.status_code is not None:
            out.insert(0, f"status={self.status_code}")
        return out


class IntegrityError(BuildError):
    """
    Fetched bytes do not match the manifest-declared SHA-256.

    Attributes:
        expected (str): Declared hex digest.
        actual (str): Digest of the received bytes.
    """

    kind = ErrorKind.INTEGRITY

    def __init__(self, message: str, *, expected: str, actual: str, **context: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(message, **context)

    def _render(self) -> str:
        return f"{super()._render()}: expected {self.expected}, got {self.actual}"


class GrammarParseError(BuildError):
    """
    Grammar bytes could not be parsed or compiled by the embedded compiler.

    Attributes:
        line (int | None): 1-based line of the offending token.
        column (int | None): 1-based column of the offending token.
    """

    kind = ErrorKind.GRAMMAR_PARSE

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
        **context: str | None,
    ) -> None:
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} at line {line}, column {column}"
        super().__init__(message, **context)


class GeneratorError(BuildError):
    """
    External generator process failed.

    Attributes:
        returncode (int | None): Exit status (None when the process never ran).
        stderr (str): Tail of the captured standard error.
    """

    kind = ErrorKind.GENERATOR

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
        **context: str | None,
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, **context)

    def _render(self) -> str:
        text = super()._render()
        if self.stderr:
            text += "\n" + self.stderr
        return text


class InvalidExtensionError(BuildError):
    """
    Dispatch extension rejected.

    Attributes:
        extensions (tuple[str, ...]): The offending extension strings.
    """

    kind = ErrorKind.INVALID_EXTENSION

    def __init__(self, message: str, *, extensions: tuple[str, ...] = (), **context: str | None):
        self.extensions = extensions
        super().__init__(message, **context)


class IoError(BuildError):
    """Filesystem failure (directory creation, atomic write, rename)."""

    kind = ErrorKind.IO


class LexError(ValueError):
    """Raised by Automaton.tokenize when no token matches at a position."""

    def __init__(self, message: str, *, offset: int) -> None:
        self.offset = offset
        super().__init__(f"{message} at offset {offset}")
