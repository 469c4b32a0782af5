"""
Filesystem helpers for lexforge.io.

Responsibilities
- Provide a minimal stdlib-only abstraction for the filesystem operations used by the
  cache and artifact writers: directory creation, safe reads, fsync,
  and atomic renames.
- Establish the atomic write path: tmp write → fsync → atomic rename, so a crash never
  leaves a truncated file under a final name.

Notes
- Atomicity via os.replace is guaranteed only when src and dst reside on the same filesystem;
  temporary files are always created next to their destination.
- OSError from the write path is wrapped in lexforge.core.errors.IoError with the path.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

from lexforge.core.errors import IoError


def makedirs(path: str, exist_ok: bool = True) -> None:
    """
    Create directories recursively.

    Args:
        path (str): Directory path to create.
        exist_ok (bool): Do not error if the directory already exists.

    Raises:
        IoError: If the directory cannot be created.
    """
    try:
        os.makedirs(path, exist_ok=exist_ok)
    except OSError as e:
        raise IoError(f"cannot create directory: {e.strerror or e}", path=path) from e


@contextmanager
def open_write(path: str) -> Iterator[BinaryIO]:
    """
    Open a file for binary write as a context manager.

    Args:
        path (str): Destination path to open in write-binary mode.

    Yields:
        BinaryIO: A writable handle supporting .flush() and .fileno().

    Notes:
        Caller is responsible for fsync and the atomic os.replace of the temporary file.
    """
    fh = open(path, "wb")
    try:
        yield fh
    finally:
        fh.close()


def fsync_file(fh: BinaryIO) -> None:
    """
    Flush and fsync an open file handle.

    Args:
        fh (BinaryIO): A file object with .fileno() and .flush().
    """
    fh.flush()
    os.fsync(fh.fileno())


def rename_atomic(src: str, dst: str) -> None:
    """
    Atomically rename src -> dst on the same filesystem.

    Args:
        src (str): Existing source path (typically a temporary file).
        dst (str): Final destination path.
    """
    os.replace(src, dst)


def read_bytes(path: str) -> bytes | None:
    """
    Read a whole file, treating a missing or unreadable file as absent.

    Args:
        path (str): File to read.

    Returns:
        bytes | None: Content, or None if the file cannot be read.
    """
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError:
        return None


def write_bytes_atomic(path: str, data: bytes) -> None:
    """
    Atomically replace path with data.

    The write path is: makedirs(parent) → write "<final>.tmp" → fsync → os.replace.

    Args:
        path (str): Final destination path.
        data (bytes): Full content.

    Raises:
        IoError: If any step fails; the temporary file is removed best-effort.
    """
    makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    try:
        with open_write(tmp) as fh:
            fh.write(data)
            fsync_file(fh)
        rename_atomic(tmp, path)
    except OSError as e:
        try:
            os.remove(tmp)
        except OSError:
            pass  # tmp may never have been created
        raise IoError(f"atomic write failed: {e.strerror or e}", path=path) from e
