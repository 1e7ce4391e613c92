from __future__ import annotations

from pathlib import Path
import tomllib


def _pyproject() -> dict:
    pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    return tomllib.loads(pyproject_path.read_text(encoding="utf-8"))


def test_runtime_dependencies_cover_yaml_and_bson() -> None:
    dependencies = _pyproject()["project"]["dependencies"]
    assert any(str(item).startswith("PyYAML") for item in dependencies)
    assert any(str(item).startswith("pymongo") for item in dependencies)


def test_console_script_and_packaged_defaults() -> None:
    pyproject = _pyproject()
    assert pyproject["project"]["scripts"]["quarry"] == "quarry.cli:main"
    assert "defaults.yml" in pyproject["tool"]["setuptools"]["package-data"]["quarry.config"]
    assert any(str(item).startswith("pytest") for item in pyproject["project"]["optional-dependencies"]["test"])
