#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Report rendering and file outputs.

Renderers (pure)
----------------
- render_table(histogram)        pipe-delimited OS/VERSION/ARCH/BUILD TYPE/NUMBER table
- render_template(tree, text)    Jinja2 inventory (INI by default), tree bound as `tree`
- render_alert(records)          one line per offline or role-less node; "" when none
- summarize(result, histogram)   JSON-friendly aggregate view

Outputs
-------
write_reports() writes whichever of summary/ini/csv/json paths are configured
and returns the written paths plus per-output errors. A template or write
failure only skips that one file.
"""
from __future__ import annotations

import csv
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from jinja2 import Environment, StrictUndefined, TemplateError

from .aggregate import GroupingTree, HistogramEntry, build_histogram, build_tree
from .errors import InventoryError, OutputError, TemplateRenderError
from .labels import BuildType
from .records import ClassificationResult, NodeFailure, NodeRecord

log = logging.getLogger(__name__)

DEFAULT_TEMPLATE = Path(__file__).resolve().parent / "templates" / "inventory.ini.j2"

TABLE_HEADER = "| OS | VERSION | ARCH | BUILD TYPE | NUMBER |"
TABLE_SEPARATOR = "| --- | --- | --- | --- | --- |"
NO_ROLE_MESSAGE = "There is no Build or Test label for this machine"


# ----------------- renderers -----------------

def render_table(histogram: Iterable[HistogramEntry]) -> str:
    lines = [TABLE_HEADER, TABLE_SEPARATOR]
    for e in histogram:
        lines.append("|" + "|".join([e.os, e.os_version, e.arch, str(e.build_type), str(e.count)]) + "|")
    return "\n".join(lines) + "\n"


def load_template(path: Optional[Path] = None) -> str:
    p = Path(path) if path else DEFAULT_TEMPLATE
    try:
        return p.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateRenderError(f"cannot read template {p}: {e}") from e


def render_template(tree: GroupingTree, template_text: str) -> str:
    env = Environment(undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True,
                      keep_trailing_newline=True, autoescape=False)
    try:
        return env.from_string(template_text).render(tree=tree)
    except TemplateError as e:
        raise TemplateRenderError(f"template rendering failed: {e}") from e


def alert_lines(records: Iterable[NodeRecord]) -> List[str]:
    lines = []
    for r in records:
        if not r.is_online:
            lines.append(f"{r.name}: {r.offline_reason}")
        elif r.build_type is BuildType.NONE:
            lines.append(f"{r.name}: {NO_ROLE_MESSAGE}")
    return lines


def render_alert(records: Iterable[NodeRecord]) -> str:
    return "\n".join(alert_lines(records))


def render_failures(failures: Iterable[NodeFailure]) -> List[str]:
    return [f"{f.name}: {f.error}" for f in failures]


def summarize(result: ClassificationResult, histogram: Optional[List[HistogramEntry]] = None) -> Dict[str, Any]:
    records = result.records
    if histogram is None:
        histogram = build_histogram(records)
    return {
        "total_nodes": result.total,
        "classified": len(records),
        "unclassified": len(result.failures),
        "offline": sum(1 for r in records if not r.is_online),
        "by_arch": dict(Counter(r.arch for r in records)),
        "by_os": dict(Counter(f"{r.os} {r.os_version}" for r in records)),
        "by_build_type": dict(Counter(str(r.build_type) for r in records)),
        "histogram": [e.as_dict() for e in histogram],
        "alerts": alert_lines(records),
        "failures": [f.as_dict() for f in result.failures],
    }


# ----------------- exports -----------------

def _write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def export_csv(path: Path, records: List[NodeRecord]) -> Path:
    fieldnames = ["name", "host_name", "arch", "os", "os_version", "build_type", "is_online", "offline_reason"]
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        for r in records:
            w.writerow(r.as_dict())
    return path


def export_json(path: Path, summary: Dict[str, Any]) -> Path:
    return _write_text(path, json.dumps(summary, indent=2))


@dataclass
class ReportOutputs:
    paths: List[Path] = field(default_factory=list)
    errors: List[InventoryError] = field(default_factory=list)


def _emit(out: ReportOutputs, what: str, path: Path, write: Callable[[], Path]) -> None:
    """Run one output write; a failure is recorded and the other outputs still run."""
    try:
        out.paths.append(write())
    except TemplateRenderError as e:
        log.error("%s not written: %s", what, e)
        out.errors.append(e)
    except OSError as e:
        err = OutputError(f"cannot write {what} to {path.as_posix()}: {e}")
        log.error("%s", err)
        out.errors.append(err)
    else:
        log.info("%s -> %s", what, path.as_posix())


def write_reports(result: ClassificationResult, cfg) -> ReportOutputs:
    out = ReportOutputs()
    histogram = build_histogram(result.records, legacy_keys=cfg.legacy_keys)

    if cfg.summary_file:
        p = Path(cfg.summary_file)
        _emit(out, "summary table", p, lambda: _write_text(p, render_table(histogram)))

    if cfg.ini_file:
        p = Path(cfg.ini_file)

        def _ini() -> Path:
            text = render_template(build_tree(result.records), load_template(cfg.template_file))
            return _write_text(p, text)

        _emit(out, "INI inventory", p, _ini)

    if cfg.csv_file:
        p = Path(cfg.csv_file)
        _emit(out, "CSV inventory", p, lambda: export_csv(p, result.records))

    if cfg.json_file:
        p = Path(cfg.json_file)
        _emit(out, "JSON summary", p, lambda: export_json(p, summarize(result, histogram)))

    return out
