#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleetinv/config.py — settings for one inventory run.

Precedence (lowest → highest)
-----------------------------
1. InventoryConfig defaults
2. YAML file (--config path)
3. Environment variables FLEETINV_<KEY>, e.g. FLEETINV_SUMMARY_FILE
4. Explicit overrides (CLI flags)

The merged mapping is validated against schemas/config.schema.yaml.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError
from .validators import lint_config

ENV_PREFIX = "FLEETINV_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class InventoryConfig:
    # node source: nodes_dir (YAML descriptors) or controller_url (Jenkins)
    label: Optional[str] = None
    nodes_dir: Optional[str] = None
    controller_url: Optional[str] = None
    workers: int = 8
    timeout: float = 30.0
    # outputs; a stage runs only when its path/target is set
    summary_file: Optional[str] = None
    ini_file: Optional[str] = None
    template_file: Optional[str] = None
    csv_file: Optional[str] = None
    json_file: Optional[str] = None
    slack_webhook: Optional[str] = None
    slack_channel: Optional[str] = None
    git_repo: Optional[str] = None
    git_branch: str = "master"
    archive_dir: Optional[str] = None
    legacy_keys: bool = False
    validate_nodes: bool = True

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


_FIELD_TYPES = {f.name: f.default for f in fields(InventoryConfig)}


def _coerce_env(key: str, raw: str) -> Any:
    default = _FIELD_TYPES[key]
    if isinstance(default, bool):
        v = raw.strip().lower()
        if v in _TRUE:
            return True
        if v in _FALSE:
            return False
        raise ConfigError(f"{ENV_PREFIX}{key.upper()}: expected a boolean, got {raw!r}")
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{key.upper()}: expected a number, got {raw!r}") from None
    return raw or None


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    out: Dict[str, Any] = {}
    for key in _FIELD_TYPES:
        name = ENV_PREFIX + key.upper()
        if name in environ:
            out[key] = _coerce_env(key, environ[name])
    return out


def load_config_file(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> InventoryConfig:
    merged: Dict[str, Any] = InventoryConfig().as_dict()
    if path:
        merged.update(load_config_file(path))
    merged.update(env_overrides(environ))
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    problems = lint_config(merged)
    if problems:
        detail = "; ".join(f"{ptr}: {msg}" for ptr, msg in problems)
        raise ConfigError(f"invalid configuration: {detail}")
    cfg = InventoryConfig(**merged)
    if not cfg.nodes_dir and not cfg.controller_url:
        raise ConfigError("set either nodes_dir or controller_url")
    return cfg
