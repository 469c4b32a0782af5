from __future__ import annotations

import json
from pathlib import Path

import pytest

from lexforge.core.errors import IoError
from lexforge.core.hashing import sha256_hex
from lexforge.core.schema import DownloadedArtifact
from lexforge.io.artifacts import load_valid_artifact, persist_artifact
from lexforge.io.config import BuildSettings
from lexforge.io.fs import read_bytes, write_bytes_atomic
from lexforge.io.paths import (
    artifact_path,
    dispatch_index_path,
    dispatch_module_path,
    download_dir,
    stamp_path,
    tool_dir,
)


def _source(tmp_path: Path, body: bytes = b"lexer grammar T; A : 'a' ;") -> DownloadedArtifact:
    p = tmp_path / "T.g4"
    p.write_bytes(body)
    return DownloadedArtifact(body, "https://x/T.g4", sha256_hex(body), str(p))


def test_write_bytes_atomic_creates_parents_and_leaves_no_tmp(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "out.bin"
    write_bytes_atomic(str(target), b"one")
    write_bytes_atomic(str(target), b"two")
    assert target.read_bytes() == b"two"
    assert [p.name for p in target.parent.iterdir()] == ["out.bin"]


def test_write_bytes_atomic_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    with pytest.raises(IoError) as ei:
        write_bytes_atomic(str(blocker / "child.bin"), b"x")
    assert isinstance(ei.value.cause, OSError)
    assert ei.value.path is not None


def test_read_bytes_missing_is_none(tmp_path: Path) -> None:
    assert read_bytes(str(tmp_path / "nope")) is None


def test_layout_paths() -> None:
    s = BuildSettings(root_dir="out")
    assert Path(download_dir(s, "json")) == Path("out/downloaded/json")
    assert Path(tool_dir(s)) == Path("out/downloaded/.tool")
    assert Path(artifact_path(s, "json")) == Path("out/generated/json/json.dfa")
    assert Path(dispatch_module_path(s)) == Path("out/generated/dispatch.py")
    assert Path(dispatch_index_path(s)) == Path("out/generated/dispatch.json")
    assert stamp_path("x/json.dfa") == "x/json.dfa.stamp.json"


def test_persist_then_reuse(tmp_path: Path) -> None:
    src = _source(tmp_path)
    path = str(tmp_path / "gen" / "t" / "t.dfa")
    meta = {
        "name": "t",
        "strategy": "embedded",
        "fingerprint": "embedded:lxdfa-v1",
        "sources": (src,),
        "extensions": ("t",),
    }

    art = persist_artifact(path, b"DFA", **meta)
    assert art.reused is False
    assert art.sha256 == sha256_hex(b"DFA")

    stamp = json.loads(Path(stamp_path(path)).read_text())
    assert stamp == {
        "artifact_sha256": sha256_hex(b"DFA"),
        "bytes": 3,
        "fingerprint": "embedded:lxdfa-v1",
        "name": "t",
        "sources": [{"sha256": src.sha256, "url": src.url}],
    }

    again = load_valid_artifact(path, **meta)
    assert again is not None
    assert again.reused is True
    assert again.data == b"DFA"
    assert again.extensions == ("t",)


def test_stale_or_tampered_artifacts_are_not_reused(tmp_path: Path) -> None:
    src = _source(tmp_path)
    path = tmp_path / "t.dfa"
    meta = {"name": "t", "strategy": "embedded", "fingerprint": "f1", "sources": (src,)}
    persist_artifact(str(path), b"DFA", **meta)

    # generator changed
    assert load_valid_artifact(str(path), **{**meta, "fingerprint": "f2"}) is None
    # source changed
    other = _source(tmp_path, b"lexer grammar T; B : 'b' ;")
    assert load_valid_artifact(str(path), **{**meta, "sources": (other,)}) is None
    # artifact edited after the stamp was written
    path.write_bytes(b"DFB")
    assert load_valid_artifact(str(path), **meta) is None
    # artifact without a stamp
    Path(stamp_path(str(path))).unlink()
    path.write_bytes(b"DFA")
    assert load_valid_artifact(str(path), **meta) is None


def test_unreadable_stamp_is_ignored(tmp_path: Path) -> None:
    src = _source(tmp_path)
    path = tmp_path / "t.dfa"
    meta = {"name": "t", "strategy": "embedded", "fingerprint": "f1", "sources": (src,)}
    persist_artifact(str(path), b"DFA", **meta)
    Path(stamp_path(str(path))).write_bytes(b"{not json")
    assert load_valid_artifact(str(path), **meta) is None
