#!/usr/bin/env python3
"""
Validate ./nodes/*.yaml node descriptors against fleetinv's node schema.

Usage:
  python3 tools/validate_nodes.py
  python3 tools/validate_nodes.py --dir nodes --strict
  python3 tools/validate_nodes.py --dir nodes --fail-fast

Features:
- Draft 2020-12 JSON Schema validation (schemas/node.schema.yaml).
- Human-friendly error printing with JSON Pointer to the offending field.
- --strict: warns on label hygiene (missing/duplicate arch or os labels,
  no ci.role.* label, offline without a reason).
- --fail-fast: stop at first invalid file.
- Prints a summary and returns non-zero on any validation error.
"""

from __future__ import annotations
import argparse
import sys
from pathlib import Path

from fleetinv.validators import validate_nodes_dir


def main():
    ap = argparse.ArgumentParser(description="Validate node descriptors against node.schema.yaml")
    ap.add_argument("--dir", default="nodes", help="Directory with per-node YAMLs")
    ap.add_argument("--apply-defaults", action="store_true", help="Apply JSON Schema defaults before validating")
    ap.add_argument("--strict", action="store_true", help="Emit additional non-fatal warnings")
    ap.add_argument("--fail-fast", action="store_true", help="Stop at first invalid file")
    args = ap.parse_args()

    nodes_dir = Path(args.dir)
    rep = validate_nodes_dir(str(nodes_dir), apply_defaults=args.apply_defaults, strict=args.strict)
    if rep.total == 0:
        print(f"[error] No YAML files found in {nodes_dir.as_posix()}")
        return 1

    warned = 0
    checked = 0
    for entry in rep.files:
        checked += 1
        if not entry["valid"]:
            print("=" * 80)
            print(f"File: {entry['path']}")
            for ptr, msg in entry["problems"][:5]:
                print(f"  At:  $.{ptr}\n  Msg: {msg}")
            if args.fail_fast:
                break
        elif entry["warnings"]:
            warned += len(entry["warnings"])
            print("-" * 80)
            print(f"File: {entry['path']}  (valid, {len(entry['warnings'])} warning(s))")
            for w in entry["warnings"]:
                print(f"  warn: {w}")

    print("\nSummary")
    print("-------")
    print(f"Directory : {nodes_dir.as_posix()}")
    print(f"Checked   : {checked} of {rep.total} file(s)")
    print(f"Invalid   : {rep.invalid}")
    print(f"Warnings  : {warned} (strict={'on' if args.strict else 'off'})")
    return 1 if rep.invalid else 0


if __name__ == "__main__":
    sys.exit(main())
