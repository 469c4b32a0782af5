from __future__ import annotations

from pathlib import Path

import pytest

from lexforge.core.constants import DEFAULT_TOOL_COMMAND
from lexforge.core.errors import ConfigError
from lexforge.io.config import BuildSettings

TOOL_SHA = "c" * 64


def _write_lexforge_toml(tmp: Path, content: str) -> Path:
    p = tmp / "lexforge.toml"
    p.write_text(content)
    return p


def test_build_settings_precedence_env_over_toml(tmp_path: Path, monkeypatch) -> None:
    # Arrange TOML
    _write_lexforge_toml(
        tmp_path,
        """
        [build]
        root_dir = "out_toml"
        jobs = 2
        strategy = "embedded"
        """.strip(),
    )
    # Ensure cwd for BuildSettings.from_toml() search
    monkeypatch.chdir(tmp_path)
    # Arrange ENV that should override TOML
    monkeypatch.setenv("LEXFORGE_ROOT_DIR", "out_env")
    monkeypatch.setenv("LEXFORGE_JOBS", "8")

    # Act
    s = BuildSettings.load()

    # Assert precedence: env > TOML
    assert s.root_dir == "out_env"
    assert s.jobs == 8  # env override
    assert s.workers == 8
    assert s.strategy == "embedded"  # from TOML


def test_build_settings_from_toml_when_no_env(tmp_path: Path, monkeypatch) -> None:
    _write_lexforge_toml(
        tmp_path,
        f"""
        root_dir = "out_toml"
        manifest = "g.json"
        strategy = "external"
        timeout = 30
        tool_url = "https://tools.example/antlr-4.13.2-complete.jar"
        tool_sha256 = "{TOOL_SHA}"
        tool_command = ["java", "-jar", "{{tool}}", "-o", "{{out}}", "{{grammars}}"]
        """.strip(),
    )
    monkeypatch.chdir(tmp_path)

    s = BuildSettings.load()

    assert s.root_dir == "out_toml"
    assert s.manifest == "g.json"
    assert s.strategy == "external"
    assert s.timeout == 30.0
    assert s.tool_sha256 == TOOL_SHA
    assert s.tool_command == ("java", "-jar", "{tool}", "-o", "{out}", "{grammars}")


def test_build_settings_from_pyproject_tool_table(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "pyproject.toml").write_text(
        """
        [project]
        name = "downstream"

        [tool.lexforge]
        root_dir = "gen_out"
        jobs = 1
        """.strip()
    )
    monkeypatch.chdir(tmp_path)

    s = BuildSettings.load()

    assert s.root_dir == "gen_out"
    assert s.workers == 1


def test_build_settings_defaults_when_no_config(tmp_path: Path, monkeypatch) -> None:
    # No TOML, no env
    monkeypatch.chdir(tmp_path)

    s = BuildSettings.load()

    assert s.root_dir == "build"
    assert s.manifest == "grammars/grammars.toml"
    assert s.strategy == "embedded"
    assert s.timeout is None
    assert s.tool_url is None and s.tool_sha256 is None
    assert s.tool_command == DEFAULT_TOOL_COMMAND
    assert s.target_language == "Python3"
    assert s.workers >= 1


def test_env_tool_command_is_shell_split(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LEXFORGE_TOOL_COMMAND", "antlr4 -o '{out} dir' {grammars}")
    monkeypatch.setenv("LEXFORGE_TIMEOUT", "none")

    s = BuildSettings.load()

    assert s.tool_command == ("antlr4", "-o", "{out} dir", "{grammars}")
    assert s.timeout is None


def test_explicit_config_path(tmp_path: Path) -> None:
    cfg = tmp_path / "ci.toml"
    cfg.write_text('[build]\nroot_dir = "ci_out"\n')
    assert BuildSettings.load(cfg).root_dir == "ci_out"
    with pytest.raises(ConfigError, match="not found"):
        BuildSettings.load(tmp_path / "missing.toml")


@pytest.mark.parametrize(
    "kwargs, fragment",
    [
        ({"strategy": "bison"}, "strategy"),
        ({"jobs": -1}, "jobs"),
        ({"timeout": 0}, "timeout"),
        ({"tool_url": "https://tools.example/t.jar"}, "together"),
        ({"tool_url": "https://tools.example/t.jar", "tool_sha256": "xyz"}, "64 hex"),
        ({"strategy": "external"}, "{tool}"),
        ({"strategy": "external", "tool_command": ()}, "tool_command"),
    ],
)
def test_invalid_settings_raise_config_error(kwargs: dict, fragment: str) -> None:
    with pytest.raises(ConfigError) as ei:
        BuildSettings(**kwargs)
    assert fragment in str(ei.value)


def test_bad_toml_values_raise_config_error(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _write_lexforge_toml(tmp_path, 'jobs = "many"\n')
    with pytest.raises(ConfigError, match="jobs"):
        BuildSettings.load()
    _write_lexforge_toml(tmp_path, 'root_dri = "typo"\n')
    with pytest.raises(ConfigError, match="unknown settings: root_dri"):
        BuildSettings.load()
    _write_lexforge_toml(tmp_path, "root_dir = \n")
    with pytest.raises(ConfigError, match="cannot read settings"):
        BuildSettings.load()


def test_settings_split_across_toml_and_env_are_validated_together(tmp_path: Path, monkeypatch) -> None:
    # Arrange: external strategy in TOML, pinned tool only in the environment
    _write_lexforge_toml(tmp_path, 'strategy = "external"\n')
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LEXFORGE_TOOL_URL", "https://tools.example/antlr.jar")
    monkeypatch.setenv("LEXFORGE_TOOL_SHA256", TOOL_SHA)

    # Act
    s = BuildSettings.load()

    # Assert
    assert s.strategy == "external"
    assert s.tool_url == "https://tools.example/antlr.jar"
    assert s.tool_sha256 == TOOL_SHA


def test_tool_pin_split_across_toml_and_env(tmp_path: Path, monkeypatch) -> None:
    _write_lexforge_toml(tmp_path, 'tool_url = "https://tools.example/antlr.jar"\n')
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LEXFORGE_TOOL_SHA256", TOOL_SHA)

    s = BuildSettings.load()

    assert (s.tool_url, s.tool_sha256) == ("https://tools.example/antlr.jar", TOOL_SHA)


def test_merged_settings_are_still_validated(tmp_path: Path, monkeypatch) -> None:
    _write_lexforge_toml(tmp_path, 'tool_url = "https://tools.example/antlr.jar"\n')
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigError, match="together"):
        BuildSettings.load()
