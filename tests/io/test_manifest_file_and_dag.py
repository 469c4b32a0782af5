from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from lexforge.core.errors import ConfigError
from lexforge.io.manifest import load_manifest

H1 = "1" * 64
H2 = "2" * 64


def test_load_toml_manifest(tmp_path: Path) -> None:
    p = tmp_path / "grammars.toml"
    p.write_text(
        f"""
[json]
url = "https://x/json/JSON.g4"
sha256 = "{H1}"
extensions = ["json"]

[java]
url = ["https://x/java/JavaLexer.g4", "https://x/java/JavaParser.g4"]
sha256 = ["{H1}", "{H2}"]
extensions = ["java"]
main = "JavaLexer.g4"
""".lstrip()
    )
    entries = load_manifest(p)
    assert list(entries) == ["json", "java"]
    assert entries["java"].main_filename == "JavaLexer.g4"
    assert entries["json"].extensions == ["json"]


def test_load_json_manifest(tmp_path: Path) -> None:
    p = tmp_path / "grammars.json"
    p.write_text(json.dumps({"ini": {"url": "https://x/INI.g4", "sha256": H1, "extensions": ["ini", "cfg"]}}))
    assert load_manifest(str(p))["ini"].extensions == ["ini", "cfg"]


def test_manifest_read_and_decode_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="cannot read manifest"):
        load_manifest(tmp_path / "absent.toml")
    bad = tmp_path / "bad.toml"
    bad.write_text("[json\nurl = 1\n")
    with pytest.raises(ConfigError, match="cannot decode manifest") as ei:
        load_manifest(bad)
    assert ei.value.path == str(bad)


def _imported_after(module: str, forbidden: list[str]) -> str:
    code = f"""
import sys
import {module}  # noqa: F401

forbidden = {forbidden!r}
present = [m for m in forbidden if m in sys.modules]
print(",".join(present))
"""
    proc = subprocess.run([sys.executable, "-c", code], capture_output=True, text=True, check=True)
    return proc.stdout.strip()


def test_import_dag_core_is_zero_io():
    # Run in a clean Python process to avoid pollution from other tests
    present = _imported_after("lexforge.core", ["httpx", "lexforge.io", "lexforge.gen", "lexforge.cli"])
    assert present == ""


def test_import_dag_io_does_not_reach_up():
    present = _imported_after("lexforge.io", ["lexforge.gen", "lexforge.cli"])
    assert present == ""
