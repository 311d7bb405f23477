#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleetinv/validators.py — JSON Schema validation for node descriptors and config.

Features
--------
- Load & cache Draft 2020-12 schemas (YAML) from the packaged schemas/ dir
- Two modes:
    • lint_*()    → return list of (path, message) problems (non-throwing)
    • assert_*()  → raise ValidationError on first problem
- Optional default injection (schema "default" → instance), opt-in per call
- strict_warnings(): non-fatal label hygiene checks for a descriptor

Dependencies
------------
pip install jsonschema pyyaml
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import Draft202012Validator, validators, exceptions as js_ex

from .labels import ARCH_PATTERN, OS_PATTERN, ROLE_BUILD, ROLE_TEST, tokenize

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"


# --------------------------- Exceptions ---------------------------

class ValidationError(RuntimeError):
    def __init__(self, where: str, message: str, schema_path: str = "", instance_path: str = ""):
        super().__init__(f"{where}: {message} (at $.{instance_path}; rule {schema_path})")
        self.where = where
        self.message = message
        self.schema_path = schema_path
        self.instance_path = instance_path


# --------------------------- Helpers ------------------------------

def _extend_with_default(validator_class):
    """Return a validator that sets defaults onto instances (opt-in)."""
    validate_props = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for prop, subschema in (properties or {}).items():
                if "default" in subschema and prop not in instance:
                    instance[prop] = subschema["default"]
        for error in validate_props(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


def _format_error(err: js_ex.ValidationError) -> Tuple[str, str]:
    """Return (instance_pointer, schema_pointer) strings."""
    inst = "/".join([str(x) for x in err.path]) if err.path else "(root)"
    sch = "/".join([str(x) for x in err.schema_path])
    return inst, sch


def load_yaml(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# --------------------------- Schema Cache -------------------------

class SchemaRegistry:
    """Load and cache schemas from a directory."""

    def __init__(self, schemas_dir: Optional[Path] = None):
        self.schemas_dir = Path(schemas_dir) if schemas_dir else SCHEMAS_DIR
        self._cache: Dict[str, Draft202012Validator] = {}
        self._with_defaults = _extend_with_default(Draft202012Validator)

    def _compile(self, name: str, apply_defaults: bool = False) -> Draft202012Validator:
        path = (self.schemas_dir / name).resolve()
        if not path.exists():
            raise FileNotFoundError(f"Schema not found: {path}")
        raw = load_yaml(path)
        cls = self._with_defaults if apply_defaults else Draft202012Validator
        return cls(raw)

    def get(self, name: str, apply_defaults: bool = False) -> Draft202012Validator:
        key = f"{name}::defaults={bool(apply_defaults)}"
        v = self._cache.get(key)
        if v is None:
            v = self._compile(name, apply_defaults=apply_defaults)
            self._cache[key] = v
        return v


_DEFAULT_REGISTRY = SchemaRegistry()


# --------------------------- Public API ---------------------------

NODE_SCHEMA = "node.schema.yaml"
CONFIG_SCHEMA = "config.schema.yaml"


def lint_instance(
    instance: Any,
    schema_file: str,
    registry: Optional[SchemaRegistry] = None,
    apply_defaults: bool = False,
) -> List[Tuple[str, str]]:
    """Returns a list of (instance_pointer, message); empty when valid."""
    reg = registry or _DEFAULT_REGISTRY
    validator = reg.get(schema_file, apply_defaults=apply_defaults)
    errs = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    return [(_format_error(e)[0], e.message) for e in errs]


def assert_instance(
    instance: Any,
    schema_file: str,
    where: str = "instance",
    registry: Optional[SchemaRegistry] = None,
    apply_defaults: bool = False,
) -> None:
    reg = registry or _DEFAULT_REGISTRY
    validator = reg.get(schema_file, apply_defaults=apply_defaults)
    for e in validator.iter_errors(instance):
        inst_ptr, sch_ptr = _format_error(e)
        raise ValidationError(where=where, message=e.message, schema_path=sch_ptr, instance_path=inst_ptr)


def lint_node(node: Dict[str, Any], registry: Optional[SchemaRegistry] = None, apply_defaults: bool = False):
    return lint_instance(node, NODE_SCHEMA, registry=registry, apply_defaults=apply_defaults)

def assert_node(node: Dict[str, Any], registry: Optional[SchemaRegistry] = None, apply_defaults: bool = False):
    where = node.get("name", "node") if isinstance(node, dict) else "node"
    return assert_instance(node, NODE_SCHEMA, where=where, registry=registry, apply_defaults=apply_defaults)

def lint_config(cfg: Dict[str, Any], registry: Optional[SchemaRegistry] = None):
    return lint_instance(cfg, CONFIG_SCHEMA, registry=registry)


def strict_warnings(node: Dict[str, Any]) -> List[str]:
    """Non-fatal suggestions; a valid descriptor can still be unclassifiable."""
    w: List[str] = []
    name = node.get("name", "<unnamed>")
    labels = tokenize(node.get("labels") or [])

    arch = [l for l in labels if ARCH_PATTERN.search(l)]
    oses = [l for l in labels if OS_PATTERN.search(l)]
    if not arch:
        w.append(f"{name}: no hw.arch.* label.")
    elif len(arch) > 1:
        w.append(f"{name}: several hw.arch.* labels ({', '.join(arch)}); first one wins.")
    if not oses:
        w.append(f"{name}: no sw.os.<family>.<version> label.")
    elif len(oses) > 1:
        w.append(f"{name}: several sw.os.* labels ({', '.join(oses)}); first one wins.")

    if ROLE_BUILD not in labels and ROLE_TEST not in labels:
        w.append(f"{name}: neither {ROLE_BUILD} nor {ROLE_TEST} present.")

    if node.get("online") is False and not (node.get("offline_reason") or "").strip():
        w.append(f"{name}: offline without offline_reason.")
    return w


# ---- Directory helpers ----

@dataclass
class DirReport:
    total: int
    valid: int
    invalid: int
    files: List[Dict[str, Any]]  # [{path, valid, problems:[(ptr,msg),...], warnings:[...]}]


def validate_nodes_dir(
    nodes_dir: str = "nodes",
    registry: Optional[SchemaRegistry] = None,
    apply_defaults: bool = False,
    strict: bool = False,
) -> DirReport:
    """Validate all *.yaml in a directory against node.schema.yaml."""
    base = Path(nodes_dir)
    results: List[Dict[str, Any]] = []
    valid = 0
    invalid = 0
    files = sorted(base.glob("*.yaml"))

    for f in files:
        try:
            inst = load_yaml(f)
        except yaml.YAMLError as e:
            invalid += 1
            results.append({"path": f.as_posix(), "valid": False,
                            "problems": [("(root)", f"failed to load YAML: {e}")], "warnings": []})
            continue

        probs = lint_node(inst, registry=registry, apply_defaults=apply_defaults)
        if probs:
            invalid += 1
            results.append({"path": f.as_posix(), "valid": False, "problems": probs, "warnings": []})
        else:
            valid += 1
            warns = strict_warnings(inst) if strict else []
            results.append({"path": f.as_posix(), "valid": True, "problems": [], "warnings": warns})

    return DirReport(total=len(files), valid=valid, invalid=invalid, files=results)
