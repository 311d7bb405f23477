#!/usr/bin/env python3
"""
Run one fleet inventory pass.

Examples
--------
# Console summary from local descriptors
python3 -m fleetinv.cli --nodes nodes

# Live Jenkins controller, only nodes carrying the "ci" label, all outputs
fleetinv --controller https://ci.example.org --label ci \
    --summary-file out/summary.md --ini-file out/inventory.ini --json out/summary.json

# Settings from a YAML file (keys as in InventoryConfig), env FLEETINV_* also honoured
fleetinv --config inventory.yaml

Stages
------
1. list nodes (optionally filtered by --label) and classify them in parallel
2. console summary (always)
3. summary table / INI inventory / CSV / JSON, each only when its path is set
4. Slack alert for offline, role-less and unclassifiable machines
5. publish written files to git (--git-repo) and/or an archive directory

Exit codes: 0 ok, 1 an output stage failed (or --fail-on-unclassified),
2 configuration problem or no nodes found.
"""

from __future__ import annotations
import argparse
import logging
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from .aggregate import HistogramEntry, build_histogram
from .config import InventoryConfig, load_config
from .errors import ConfigError, InventoryError, SourceError
from .notify import notify_problems
from .publish import archive_outputs, git_publish
from .records import ClassificationResult, classify_nodes
from .report import alert_lines, render_failures, write_reports
from .sources import make_source

log = logging.getLogger("fleetinv")
console = Console()


# ----------------- console -----------------

def print_summary(result: ClassificationResult, histogram: List[HistogramEntry]) -> None:
    t = Table(title=f"Fleet inventory ({len(result.records)}/{result.total} classified)", box=box.SIMPLE)
    for col in ("OS", "Version", "Arch", "Build type"):
        t.add_column(col)
    t.add_column("Nodes", justify="right")
    for e in histogram:
        t.add_row(e.os, e.os_version, e.arch, str(e.build_type), str(e.count))
    console.print(t)

    problems = alert_lines(result.records)
    if problems:
        console.print(f"[b]Problematic machines[/b] ({len(problems)}):")
        for line in problems:
            console.print(f"  [yellow]{line}[/yellow]")
    if result.failures:
        console.print(f"[b]Unclassified machines[/b] ({len(result.failures)}):")
        for line in render_failures(result.failures):
            console.print(f"  [red]{line}[/red]")


# ----------------- pipeline -----------------

def run(cfg: InventoryConfig, source=None, fail_on_unclassified: bool = False) -> int:
    src = source if source is not None else make_source(cfg)
    try:
        names = src.node_names(cfg.label)
    except SourceError as e:
        log.error("could not list nodes: %s", e)
        return 2
    if not names:
        log.error("no nodes found%s", f" for label {cfg.label!r}" if cfg.label else "")
        return 2

    result = classify_nodes(src, names=names, workers=cfg.workers)
    histogram = build_histogram(result.records, legacy_keys=cfg.legacy_keys)
    print_summary(result, histogram)

    status = 0
    outputs = write_reports(result, cfg)
    if outputs.errors:
        status = 1

    alert = "\n".join(alert_lines(result.records) + render_failures(result.failures))
    try:
        notify_problems(alert, cfg.slack_webhook, channel=cfg.slack_channel)
    except InventoryError as e:
        log.error("%s", e)
        status = 1

    if outputs.paths:
        try:
            if cfg.git_repo and cfg.git_branch:
                with tempfile.TemporaryDirectory(prefix="fleetinv-") as tmp:
                    git_publish(outputs.paths, cfg.git_repo, cfg.git_branch, Path(tmp))
            if cfg.archive_dir:
                archive_outputs(outputs.paths, Path(cfg.archive_dir))
        except InventoryError as e:
            log.error("%s", e)
            status = 1

    for p in outputs.paths:
        console.print(f"[green]wrote[/green] {p.as_posix()}")
    if fail_on_unclassified and result.failures:
        status = max(status, 1)
    return status


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Inventory CI worker nodes by arch/os/role")
    ap.add_argument("--config", default=None, help="YAML config file")
    ap.add_argument("--nodes", dest="nodes_dir", default=None, help="Directory with per-node YAMLs")
    ap.add_argument("--controller", dest="controller_url", default=None, help="Jenkins base URL")
    ap.add_argument("--label", default=None, help="Only inventory nodes carrying this label")
    ap.add_argument("-w", "--workers", type=int, default=None, help="Parallel classification workers")
    ap.add_argument("--summary-file", default=None, help="Write the summary table here")
    ap.add_argument("--ini-file", default=None, help="Write the templated INI inventory here")
    ap.add_argument("--template", dest="template_file", default=None, help="Jinja2 template for the INI inventory")
    ap.add_argument("--csv", dest="csv_file", default=None, help="Export per-node CSV")
    ap.add_argument("--json", dest="json_file", default=None, help="Export JSON summary")
    ap.add_argument("--slack-webhook", default=None, help="Slack incoming webhook URL")
    ap.add_argument("--slack-channel", default=None, help="Slack channel for problem alerts")
    ap.add_argument("--git-repo", default=None, help="Push written files to this git repo")
    ap.add_argument("--git-branch", default=None, help="Branch to push to (default master)")
    ap.add_argument("--archive-dir", default=None, help="Copy written files here")
    ap.add_argument("--legacy-keys", action="store_true", default=None,
                    help="Group the table with the old concatenated-string keys")
    ap.add_argument("--no-validate", dest="validate_nodes", action="store_false", default=None,
                    help="Skip schema validation of node YAMLs")
    ap.add_argument("--fail-on-unclassified", action="store_true", help="Exit 1 if any node could not be classified")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    return ap


_OVERRIDE_KEYS = ("nodes_dir", "controller_url", "label", "workers", "summary_file", "ini_file",
                  "template_file", "csv_file", "json_file", "slack_webhook", "slack_channel",
                  "git_repo", "git_branch", "archive_dir", "legacy_keys", "validate_nodes")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    try:
        cfg = load_config(Path(args.config) if args.config else None,
                          overrides={k: getattr(args, k) for k in _OVERRIDE_KEYS})
    except ConfigError as e:
        log.error("%s", e)
        return 2
    return run(cfg, fail_on_unclassified=args.fail_on_unclassified)


if __name__ == "__main__":
    raise SystemExit(main())
