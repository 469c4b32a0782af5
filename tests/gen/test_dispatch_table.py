from __future__ import annotations

import json
from pathlib import Path

import pytest

from lexforge.core.errors import InvalidExtensionError
from lexforge.core.schema import GeneratedArtifact
from lexforge.gen.dispatch import (
    build_dispatch_table,
    emit_dispatch,
    pairs_from_artifacts,
    render_module,
)


def _art(name: str, data: bytes, *exts: str, root: str = "gen") -> GeneratedArtifact:
    return GeneratedArtifact(
        name=name,
        data=data,
        path=f"{root}/{name}/{name}.dfa",
        sha256=name * 4,
        strategy="embedded",
        extensions=exts,
    )


def _load_module(path: Path) -> dict:
    ns: dict = {}
    exec(compile(path.read_text(), str(path), "exec"), ns)
    return ns


def test_table_is_sorted_by_extension_regardless_of_input_order() -> None:
    arts = [_art("yaml", b"Y", "yml", "yaml"), _art("json", b"J", "json"), _art("c", b"C", "h", "c")]
    t1 = build_dispatch_table(pairs_from_artifacts(arts))
    t2 = build_dispatch_table(pairs_from_artifacts(reversed(arts)))
    assert t1 == t2
    assert t1.extensions() == ["c", "h", "json", "yaml", "yml"]
    assert t1.lookup("yml") == b"Y"
    assert t1.lookup("toml") == b""
    assert render_module(t1) == render_module(t2)


def test_invalid_extensions_rejected_even_with_valid_entries() -> None:
    arts = [_art("json", b"J", "json"), _art("cpp", b"P", "cpp", "c++"), _art("web", b"W", "d.ts")]
    with pytest.raises(InvalidExtensionError) as ei:
        build_dispatch_table(pairs_from_artifacts(arts))
    assert ei.value.extensions == ("c++", "d.ts")
    assert ei.value.entry == "cpp, web"


@pytest.mark.parametrize("ext", ["", "c++", ".json", "tar gz", "js\n", "ü"])
def test_extension_alphabet(ext: str) -> None:
    with pytest.raises(InvalidExtensionError):
        build_dispatch_table([(ext, _art("g", b"G", ext))])


def test_extension_claimed_twice() -> None:
    with pytest.raises(InvalidExtensionError, match="claimed by both"):
        build_dispatch_table(pairs_from_artifacts([_art("a", b"A", "x"), _art("b", b"B", "x")]))
    # repeating an extension inside one entry is fine
    t = build_dispatch_table(pairs_from_artifacts([_art("a", b"A", "x", "x")]))
    assert t.extensions() == ["x"]


def test_emitted_module_and_index(tmp_path: Path) -> None:
    root = str(tmp_path / "generated")
    big = bytes(range(256)) * 2
    arts = [_art("json", big, "json", root=root), _art("ini", b"", "ini", "cfg", root=root)]
    table = build_dispatch_table(pairs_from_artifacts(arts))
    module = tmp_path / "generated" / "dispatch.py"
    index = tmp_path / "generated" / "dispatch.json"

    emit_dispatch(table, str(module), str(index))

    ns = _load_module(module)
    assert ns["lookup"]("json") == big
    assert ns["lookup"]("cfg") == b""
    assert ns["lookup"]("nope") == b""
    assert list(ns["ARTIFACTS"]) == ["cfg", "ini", "json"]
    assert ns["GRAMMARS"] == {"cfg": "ini", "ini": "ini", "json": "json"}
    # one constant per grammar, shared by its extensions
    assert module.read_text().count("_ARTIFACT_0 = ") == 1

    doc = json.loads(index.read_text())
    assert list(doc) == ["cfg", "ini", "json"]
    assert doc["json"] == {"grammar": "json", "sha256": "json" * 4, "path": "json/json.dfa"}


def test_empty_table_still_emits_lookup(tmp_path: Path) -> None:
    table = build_dispatch_table([])
    module = tmp_path / "dispatch.py"
    emit_dispatch(table, str(module), str(tmp_path / "dispatch.json"))
    ns = _load_module(module)
    assert ns["ARTIFACTS"] == {}
    assert ns["lookup"]("json") == b""
