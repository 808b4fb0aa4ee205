# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""YAML configuration: defaults, then ``~/.dock-copy``, then the project's ``.dock-copy``."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import yaml

_CONFIG_DIRNAME = ".dock-copy"
_CONFIG_FILENAME = "dock-copy.yaml"
_SECTIONS = ("logging", "transfer")


@dataclasses.dataclass(frozen=True)
class DockCopyConfig:
    """Settings shared by every transfer.

    Per-copy choices such as archive mode live on the request, not here.
    """

    socket: str | None = None
    compress: bool = False
    spool_max_size: str = "16MB"
    chunk_size: int = 64 * 1024
    auto_log: bool = True
    log_dir: str | None = None


def _config_files(project_root: Path | None) -> list[Path]:
    """Config files in increasing order of precedence."""
    roots = [Path.home()]
    if project_root is not None:
        roots.append(project_root)
    return [root / _CONFIG_DIRNAME / _CONFIG_FILENAME for root in roots]


def load_config(project_root: Path | None = None) -> DockCopyConfig:
    """Resolve the configuration for *project_root*.

    Later files override earlier ones key by key; missing files are skipped.
    """
    overrides: dict[str, Any] = {}
    for path in _config_files(project_root):
        if path.is_file():
            _merge_yaml(overrides, path)
    return _build_config(overrides)


def _merge_yaml(target: dict[str, Any], path: Path) -> None:
    """Merge one YAML file into *target*, flattening the known sections.

    A file that is not valid YAML, or not a mapping, contributes nothing.
    """
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError:
        return
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if key in _SECTIONS and isinstance(value, dict):
            target.update(value)
        else:
            target[key] = value


def _build_config(overrides: dict[str, Any]) -> DockCopyConfig:
    known = {field.name for field in dataclasses.fields(DockCopyConfig)}
    return DockCopyConfig(**{k: v for k, v in overrides.items() if k in known})
