"""YAML settings source with layered files and include: directives."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

CONFIG_FILENAME = "porter.yaml"
DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"


def cli_includes(argv: list[str]) -> list[str]:
    """Collect the values of every --include option in argv."""
    includes = []
    args = iter(argv[1:])
    for arg in args:
        if arg == "--include":
            value = next(args, None)
            if value is not None:
                includes.append(value)
        elif arg.startswith("--include="):
            includes.append(arg.split("=", 1)[1])
    return includes


def deep_merge(base: dict, override: dict) -> dict:
    """Return base updated recursively with override (override wins)."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """Loads configuration from a stack of YAML files.

    Files, lowest priority first:
        1. package defaults (defaults/default.yaml)
        2. user config (platformdirs user_config_dir/porter.yaml)
        3. project config (./porter.yaml, or the yaml_file given)
        4. every --include FILE on the command line

    Each file may itself carry an include: key naming further files,
    resolved relative to the including file. The including file wins
    over what it includes.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        self.project_file = Path(
            yaml_file
            or settings_cls.model_config.get("yaml_file")
            or CONFIG_FILENAME
        )
        self.includes = [Path(p).expanduser() for p in cli_includes(sys.argv)]
        super().__init__(settings_cls, yaml_file=self.project_file)

    def _read_files(self, files, *args, **kwargs):  # noqa: ARG002
        user_file = (
            Path(user_config_dir("porter", appauthor=False))
            / CONFIG_FILENAME
        )
        result = {}
        for path in [DEFAULTS_FILE, user_file, self.project_file,
                     *self.includes]:
            if path.is_file():
                result = deep_merge(result, self._load(path, set()))
        return result

    def _load(self, path: Path, visited: set[Path]) -> dict:
        path = path.resolve()
        if path in visited:
            raise ValueError(f"Circular include: {path}")
        visited = visited | {path}

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: top level must be a mapping")

        includes = data.pop("include", None) or []
        if isinstance(includes, (str, os.PathLike)):
            includes = [includes]

        merged = {}
        for include in includes:
            include_path = Path(include).expanduser()
            if not include_path.is_absolute():
                include_path = path.parent / include_path
            merged = deep_merge(merged, self._load(include_path, visited))
        return deep_merge(merged, data)
