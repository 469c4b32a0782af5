"""
External-tool strategy: run a generator process and pack its output tree.

The command is built from BuildSettings.tool_command, an argument template with
placeholders:
- {tool}      absolute path of the fetched tool (e.g., an ANTLR jar)
- {language}  BuildSettings.target_language
- {out}       absolute path of a fresh, empty output directory
- {grammars}  expands to one argument per source file name

The process runs with the entry's download directory as its working directory and
receives bare grammar file names, so absolute machine paths never leak into the
generated tree. The tree is packed into a zip with sorted members, fixed timestamps
and fixed permissions; that archive is the artifact.

Notes
- Blocking, no timeout. Nonzero exit, a missing executable or any OSError launching
  the process raises GeneratorError with the exit status and the stderr tail.
- The scratch directory lives under generated/<name>/ and is always removed.
"""

from __future__ import annotations

import io
import logging
import os
import subprocess
import tempfile
import zipfile
from collections.abc import Sequence

from lexforge.core.errors import GeneratorError
from lexforge.core.hashing import json_dumps_canonical
from lexforge.io.fs import makedirs

from .base import GenerationRequest, Generator

logger = logging.getLogger(__name__)

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_STDERR_TAIL = 2000


def tree_files(root: str) -> list[str]:
    """Sorted relative POSIX paths of every file under root."""
    files: list[str] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            rel = os.path.relpath(os.path.join(dirpath, name), root)
            files.append(rel.replace(os.sep, "/"))
    return sorted(files)


def pack_tree(root: str) -> bytes:
    """
    Pack a directory tree into a deterministic zip archive.

    Args:
        root (str): Directory to pack.

    Returns:
        bytes: Zip archive; members sorted by relative POSIX path, timestamps fixed to
        1980-01-01, permissions fixed to 0644.
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for rel in tree_files(root):
            info = zipfile.ZipInfo(rel, date_time=_ZIP_EPOCH)
            info.external_attr = 0o644 << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            with open(os.path.join(root, rel), "rb") as fh:
                zf.writestr(info, fh.read())
    return buf.getvalue()


class ExternalToolGenerator(Generator):
    """
    Run an external generator and return its packed output tree.

    Args:
        command: Argument template (see module docstring).
        language: Value for {language}.
        tool_path: Fetched tool file for {tool}, if the template uses it.
        tool_sha256: Pinned tool digest, part of the fingerprint.
    """

    strategy = "external"

    def __init__(
        self,
        command: Sequence[str],
        *,
        language: str,
        tool_path: str | None = None,
        tool_sha256: str | None = None,
    ) -> None:
        self.command = tuple(command)
        self.language = language
        self.tool_path = os.path.abspath(tool_path) if tool_path else None
        self.tool_sha256 = tool_sha256

    def fingerprint(self) -> str:
        return "external:" + json_dumps_canonical(
            {"command": list(self.command), "language": self.language, "tool": self.tool_sha256}
        )

    def argv(self, grammars: Sequence[str], out: str) -> list[str]:
        """Expand the template for the given grammar file names and output directory."""
        args: list[str] = []
        for part in self.command:
            if part == "{grammars}":
                args.extend(grammars)
                continue
            if "{tool}" in part and self.tool_path is None:
                raise GeneratorError("command references {tool} but no tool was fetched")
            args.append(
                part.replace("{tool}", self.tool_path or "")
                .replace("{language}", self.language)
                .replace("{out}", out)
            )
        return args

    def generate(self, request: GenerationRequest) -> bytes:
        name = request.entry.name
        cwd = os.path.dirname(request.sources[0].path)
        grammars = [os.path.basename(s.path) for s in request.sources]
        makedirs(request.work_dir)
        with tempfile.TemporaryDirectory(prefix=".out-", dir=request.work_dir) as out:
            argv = self.argv(grammars, os.path.abspath(out))
            logger.info("running generator for %s: %s", name, " ".join(argv))
            try:
                proc = subprocess.run(
                    argv, cwd=cwd, capture_output=True, text=True, errors="replace", check=False
                )
            except FileNotFoundError as e:
                raise GeneratorError(
                    f"generator executable not found: {argv[0]}", entry=name
                ) from e
            except OSError as e:
                raise GeneratorError(f"cannot launch generator: {e}", entry=name) from e
            if proc.returncode != 0:
                raise GeneratorError(
                    f"generator exited with status {proc.returncode}",
                    returncode=proc.returncode,
                    stderr=(proc.stderr or "")[-_STDERR_TAIL:],
                    entry=name,
                )
            if not tree_files(out):
                raise GeneratorError("generator produced no files", returncode=0, entry=name)
            data = pack_tree(out)
        logger.info("generated %s (%d bytes packed)", name, len(data))
        return data
