"""
Manifest entry model, manifest decoding, and pipeline artifact records.

The manifest is a mapping of grammar name to a table of source URLs, their pinned
SHA-256 digests and the file extensions the generated lexer serves:

    [json]
    url = "https://raw.githubusercontent.com/antlr/grammars-v4/master/json/JSON.g4"
    sha256 = "6b2c…"
    extensions = ["json"]

    [java]
    url = ["https://…/JavaLexer.g4", "https://…/JavaParser.g4"]
    sha256 = ["…", "…"]
    extensions = ["java"]
    main = "JavaLexer.g4"

Responsibilities
- Decode a loosely-typed mapping into GrammarManifestEntry models (Pydantic v2).
- Enforce the parallel-array invariant len(url) == len(sha256) and the other
  load-time checks, raising ConfigError before any network or filesystem access.
- Define the DownloadedArtifact and GeneratedArtifact records passed between the
  io and gen layers.

Style
- Zero-IO (stdlib + pydantic only).
- Extensions are kept verbatim here; they are validated when the dispatch table is
  built so that a bad extension never prevents generation.
"""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .constants import ENTRY_NAME_RE, SHA256_RE
from .errors import ConfigError

__all__ = [
    "GrammarManifestEntry",
    "DownloadedArtifact",
    "GeneratedArtifact",
    "entries_from_mapping",
    "filename_from_url",
]


def filename_from_url(url: str) -> str:
    """
    Derive the cache filename from a URL's final path segment.

    Args:
        url (str): Absolute source URL.

    Returns:
        str: Percent-decoded last path segment.

    Raises:
        ValueError: If the URL has no usable final segment.

    Examples:
        >>> filename_from_url("https://example.org/g/JSON.g4?raw=1")
        'JSON.g4'
    """
    name = posixpath.basename(unquote(urlsplit(url).path))
    if name in ("", ".", ".."):
        raise ValueError(f"cannot derive a filename from URL {url!r}")
    return name


def _as_str_list(v: Any) -> Any:
    if isinstance(v, str):
        return [v]
    return v


class GrammarManifestEntry(BaseModel):
    """
    One grammar declared in the manifest.

    Attributes:
        name (str): Entry key; also the per-entry directory name.
        urls (list[str]): Source URLs (manifest key "url"; a string is promoted to a list).
        hashes (list[str]): Expected SHA-256 per URL (manifest key "sha256"), lower-cased.
        extensions (list[str]): File extensions served by this grammar (may be empty).
        main (str | None): Filename of the source the embedded compiler compiles;
            defaults to the first URL's filename.

    Raises:
        pydantic.ValidationError: On any shape or invariant violation
            (entries_from_mapping converts it to ConfigError).

    Examples:
        >>> e = GrammarManifestEntry(
        ...     name="json", url="https://x/JSON.g4", sha256="A" * 64, extensions=["json"]
        ... )
        >>> e.urls, e.hashes[0] == "a" * 64, e.main_filename
        (['https://x/JSON.g4'], True, 'JSON.g4')
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    name: str
    urls: list[str] = Field(alias="url", min_length=1)
    hashes: list[str] = Field(alias="sha256", min_length=1)
    extensions: list[str] = Field(default_factory=list)
    main: str | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not ENTRY_NAME_RE.fullmatch(v):
            raise ValueError(f"grammar name must match {ENTRY_NAME_RE.pattern}, got {v!r}")
        return v

    @field_validator("urls", mode="before")
    @classmethod
    def _promote_urls(cls, v: Any) -> Any:
        return _as_str_list(v)

    @field_validator("extensions", mode="before")
    @classmethod
    def _promote_extensions(cls, v: Any) -> Any:
        return _as_str_list(v)

    @field_validator("hashes", mode="before")
    @classmethod
    def _normalize_hashes(cls, v: Any) -> Any:
        """
        Promote a scalar to a list and lower-case every digest.

        Raises:
            ValueError: If a digest is not 64 hex characters.
        """
        v = _as_str_list(v)
        if not isinstance(v, list):
            return v
        out = []
        for h in v:
            if not isinstance(h, str):
                return v  # let pydantic report the type error
            norm = h.strip().lower()
            if not SHA256_RE.fullmatch(norm):
                raise ValueError(f"sha256 must be 64 hex characters, got {h!r}")
            out.append(norm)
        return out

    @model_validator(mode="after")
    def _check_parallel_arrays(self) -> GrammarManifestEntry:
        """
        Enforce len(url) == len(sha256) and per-entry filename uniqueness.

        Returns:
            GrammarManifestEntry: self when consistent.
        """
        if len(self.urls) != len(self.hashes):
            raise ValueError(
                f"the amount of URLs and SHA-256 for {self.name} is different "
                f"({len(self.urls)} != {len(self.hashes)})"
            )
        names = [filename_from_url(u) for u in self.urls]
        seen: set[str] = set()
        for n in names:
            if n in seen:
                raise ValueError(f"two URLs of {self.name} share the filename {n!r}")
            seen.add(n)
        if self.main is not None and self.main not in seen:
            raise ValueError(f"main {self.main!r} is not one of the fetched files {names}")
        return self

    @property
    def filenames(self) -> list[str]:
        """Cache filenames, one per URL, in URL order."""
        return [filename_from_url(u) for u in self.urls]

    @property
    def main_filename(self) -> str:
        """Filename compiled by the embedded generator."""
        return self.main or self.filenames[0]

    def sources(self) -> list[tuple[str, str]]:
        """(url, sha256) pairs in manifest order."""
        return list(zip(self.urls, self.hashes, strict=True))


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def entries_from_mapping(doc: Any) -> dict[str, GrammarManifestEntry]:
    """
    Decode a manifest document into GrammarManifestEntry models.

    Args:
        doc (Any): Decoded manifest (expected Mapping[str, Mapping[str, Any]]).

    Returns:
        dict[str, GrammarManifestEntry]: Entries keyed by name, in document order.

    Raises:
        ConfigError: If the document is not a mapping of tables, or any entry is
            malformed (including mismatched url/sha256 lengths).

    Notes:
        - Every entry is validated before this function returns, so a bad entry
          anywhere in the document aborts the build before any IO happens.
    """
    if not isinstance(doc, Mapping):
        raise ConfigError(f"manifest must be a mapping of grammar tables, got {type(doc).__name__}")
    entries: dict[str, GrammarManifestEntry] = {}
    for name, body in doc.items():
        if not isinstance(body, Mapping):
            raise ConfigError("manifest entry must be a table", entry=str(name))
        try:
            entries[str(name)] = GrammarManifestEntry.model_validate({**body, "name": str(name)})
        except ValidationError as e:
            raise ConfigError(_describe_validation_error(e), entry=str(name)) from e
    return entries


@dataclass(frozen=True, slots=True)
class DownloadedArtifact:
    """
    Verified source bytes produced by the fetcher.

    Attributes:
        data (bytes): Raw content.
        url (str): Origin URL.
        sha256 (str): Verified digest (equals the manifest-declared hash).
        path (str): Cache file holding the same bytes.
        from_cache (bool): True when no network call was made.
    """

    data: bytes
    url: str
    sha256: str
    path: str
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class GeneratedArtifact:
    """
    Generator output persisted under generated/<name>/.

    Attributes:
        name (str): Manifest entry the artifact derives from.
        data (bytes): Serialized automaton or packed tool output.
        path (str): Artifact file path.
        sha256 (str): Digest of data.
        strategy (str): Generator strategy that produced it.
        extensions (tuple[str, ...]): Extensions declared by the entry.
        reused (bool): True when a stamped, verified artifact was reused.
    """

    name: str
    data: bytes
    path: str
    sha256: str
    strategy: str
    extensions: tuple[str, ...] = ()
    reused: bool = False
