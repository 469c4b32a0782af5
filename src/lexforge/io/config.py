"""
Configuration for a lexforge build.

Defines BuildSettings, a frozen dataclass carrying everything the pipeline needs
that is not part of the grammar manifest: output root, generator strategy, worker
count, and the external generator tool (URL, pinned hash, argument template).
Nothing is compiled in; defaults are layout-only (see lexforge.core.constants).

Precedence: environment > TOML > defaults.
- TOML search (when no explicit path): ./lexforge.toml (top-level keys or a
  [build] table), then ./pyproject.toml under [tool.lexforge].
- Environment variables use the LEXFORGE_ prefix (see BuildSettings.from_env).

Notes
- Invalid values raise ConfigError; a build never runs on silently-coerced settings.
- The external strategy needs a tool_command; tool_url and tool_sha256 go together.
"""

from __future__ import annotations

import os
import shlex
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

from lexforge.core.constants import DEFAULT_TARGET_LANGUAGE, DEFAULT_TOOL_COMMAND, SHA256_RE
from lexforge.core.errors import ConfigError

Strategy = Literal["embedded", "external"]
_STRATEGIES = ("embedded", "external")


@dataclass(frozen=True)
class BuildSettings:
    """
    Runtime settings for a lexforge build.

    Attributes:
        root_dir (str): Root holding downloaded/ and generated/ (e.g., "build").
        manifest (str): Path to the grammar manifest (TOML or JSON).
        strategy (Literal["embedded","external"]): Generator used for every entry.
        jobs (int): Worker pool size; 0 means os.cpu_count().
        timeout (float | None): HTTP timeout in seconds; None waits indefinitely.
        tool_url (str | None): Where to fetch the external generator (e.g., an ANTLR jar).
        tool_sha256 (str | None): Pinned digest of the tool.
        tool_command (tuple[str, ...]): Argument template; placeholders {tool},
            {language}, {out}, {grammars}.
        target_language (str): Value substituted for {language}.

    Examples:
        >>> from lexforge.io.config import BuildSettings
        >>> BuildSettings(root_dir="out", strategy="embedded")  # doctest: +ELLIPSIS
        BuildSettings(...)
    """

    root_dir: str = "build"
    manifest: str = "grammars/grammars.toml"
    strategy: Strategy = "embedded"
    jobs: int = 0
    timeout: float | None = None
    tool_url: str | None = None
    tool_sha256: str | None = None
    tool_command: tuple[str, ...] = DEFAULT_TOOL_COMMAND
    target_language: str = DEFAULT_TARGET_LANGUAGE

    def __post_init__(self) -> None:
        if self.strategy not in _STRATEGIES:
            raise ConfigError(f"strategy must be one of {_STRATEGIES}, got {self.strategy!r}")
        if self.jobs < 0:
            raise ConfigError(f"jobs must be >= 0, got {self.jobs}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.timeout}")
        if (self.tool_url is None) != (self.tool_sha256 is None):
            raise ConfigError("tool_url and tool_sha256 must be given together")
        if self.tool_sha256 is not None and not SHA256_RE.fullmatch(self.tool_sha256.lower()):
            raise ConfigError(f"tool_sha256 must be 64 hex characters, got {self.tool_sha256!r}")
        if self.strategy == "external":
            if not self.tool_command:
                raise ConfigError("the external strategy needs a tool_command")
            if any("{tool}" in a for a in self.tool_command) and self.tool_url is None:
                raise ConfigError("tool_command references {tool} but no tool_url is configured")

    @property
    def workers(self) -> int:
        """Effective worker pool size."""
        return self.jobs or os.cpu_count() or 1

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _changes(cls, cfg: dict[str, Any] | None) -> dict[str, Any]:
        """Coerce a loose config mapping into typed field changes, without validating combinations."""
        if not cfg:
            return {}
        if not isinstance(cfg, dict):
            raise ConfigError(f"settings must be a table, got {type(cfg).__name__}")

        changes: dict[str, Any] = {}
        for key in ("root_dir", "manifest", "strategy", "target_language", "tool_url", "tool_sha256"):
            if key in cfg:
                if not isinstance(cfg[key], str):
                    raise ConfigError(f"{key} must be a string, got {cfg[key]!r}")
                changes[key] = cfg[key].strip() if key == "strategy" else cfg[key]

        if "jobs" in cfg:
            try:
                changes["jobs"] = int(cfg["jobs"])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"jobs must be an integer, got {cfg['jobs']!r}") from e

        if "timeout" in cfg:
            v = cfg["timeout"]
            if v in (None, "", "none", "None"):
                changes["timeout"] = None
            else:
                try:
                    changes["timeout"] = float(v)
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"timeout must be a number, got {v!r}") from e

        if "tool_command" in cfg:
            v = cfg["tool_command"]
            if isinstance(v, str):
                changes["tool_command"] = tuple(shlex.split(v))
            elif isinstance(v, list) and all(isinstance(a, str) for a in v):
                changes["tool_command"] = tuple(v)
            else:
                raise ConfigError(f"tool_command must be a string or list of strings, got {v!r}")

        unknown = sorted(set(cfg) - {f for f in cls.__dataclass_fields__})
        if unknown:
            raise ConfigError(f"unknown settings: {', '.join(unknown)}")
        return changes

    @classmethod
    def _apply_mapping(cls, base: BuildSettings, cfg: dict[str, Any] | None) -> BuildSettings:
        """Apply a loose config mapping onto BuildSettings, returning a new instance."""
        changes = cls._changes(cfg)
        return replace(base, **changes) if changes else base

    @staticmethod
    def _env_mapping(prefix: str) -> dict[str, Any]:
        mapping: dict[str, Any] = {}
        for key in (
            "root_dir",
            "manifest",
            "strategy",
            "jobs",
            "timeout",
            "tool_url",
            "tool_sha256",
            "tool_command",
            "target_language",
        ):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return mapping

    @staticmethod
    def _toml_mapping(path: str | os.PathLike[str] | None) -> dict[str, Any] | None:
        """Return the first settings table found, or None when no file holds one."""
        cand: list[Path] = []
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise ConfigError(f"settings file not found: {p}")
            cand.append(p)
        else:
            cand.append(Path.cwd() / "lexforge.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"cannot read settings from {p}: {e}") from e
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("lexforge") if isinstance(tool, dict) else None
            elif isinstance(data.get("build"), dict):
                cfg = data["build"]
            else:
                cfg = data
            if cfg:
                return cfg
        return None

    @classmethod
    def from_env(
        cls, base: BuildSettings | None = None, prefix: str = "LEXFORGE_"
    ) -> BuildSettings:
        """
        Build BuildSettings from environment variables. Precedence is env > base (if provided) > defaults.

        Recognized variables:
            - LEXFORGE_ROOT_DIR
            - LEXFORGE_MANIFEST
            - LEXFORGE_STRATEGY ("embedded" | "external")
            - LEXFORGE_JOBS
            - LEXFORGE_TIMEOUT (seconds; "none" disables)
            - LEXFORGE_TOOL_URL / LEXFORGE_TOOL_SHA256
            - LEXFORGE_TOOL_COMMAND (shell-style string, split with shlex)
            - LEXFORGE_TARGET_LANGUAGE
        """
        return cls._apply_mapping(base or cls(), cls._env_mapping(prefix))

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> BuildSettings:
        """
        Build BuildSettings from a TOML file.

        Search order when `path` is None:
            1) ./lexforge.toml (with either a top-level [build] table or direct keys)
            2) ./pyproject.toml under [tool.lexforge]

        Returns defaults if no file is present.

        Raises:
            ConfigError: If an explicit path is missing, or a file cannot be decoded.
        """
        return cls._apply_mapping(cls(), cls._toml_mapping(path))

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> BuildSettings:
        """
        Load BuildSettings applying precedence: environment > TOML > defaults.

        Both layers are merged before the result is validated, so a setting may
        be split across them (e.g. tool_url in TOML, tool_sha256 in the env).

        Args:
            path: Optional explicit TOML path. If None, search defaults (lexforge.toml, pyproject.toml).

        Returns:
            BuildSettings
        """
        changes = cls._changes(cls._toml_mapping(path))
        changes.update(cls._changes(cls._env_mapping("LEXFORGE_")))
        return cls(**changes)
