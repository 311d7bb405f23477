#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleetinv/api.py — Flask API over live inventory passes

Endpoints
---------
GET /health
GET /inventory      records + failures
GET /summary        pipe table (text/plain); ?legacy=1 for legacy histogram keys
GET /tree           arch -> os -> version -> [records]
GET /alert          {"alert": "...", "lines": [...]}; alert is "" when nothing is wrong

Every request runs a fresh classification pass against the configured source.

Run
---
python3 -m fleetinv.api --config inventory.yaml --host 0.0.0.0 --port 8080
"""

from __future__ import annotations
import argparse
import logging
import time
from pathlib import Path
from typing import Any, Optional

from flask import Flask, Response, jsonify, request

from .aggregate import build_histogram, build_tree, tree_as_dict
from .config import InventoryConfig, load_config
from .errors import InventoryError
from .records import ClassificationResult, classify_nodes
from .report import alert_lines, render_alert, render_failures, render_table
from .sources import make_source

log = logging.getLogger(__name__)


def _ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


def create_app(cfg: InventoryConfig, source: Optional[Any] = None) -> Flask:
    app = Flask(__name__)
    src = source if source is not None else make_source(cfg)

    def _classify() -> ClassificationResult:
        return classify_nodes(src, label=request.args.get("label") or cfg.label, workers=cfg.workers)

    @app.errorhandler(InventoryError)
    def _inventory_error(e: InventoryError):
        log.exception("inventory pass failed")
        return _err(f"inventory failed: {e}", status=502)

    @app.get("/health")
    def health():
        return _ok({"ts": int(time.time() * 1000)})

    @app.get("/inventory")
    def inventory():
        result = _classify()
        return _ok({
            "total": result.total,
            "records": [r.as_dict() for r in result.records],
            "failures": [f.as_dict() for f in result.failures],
        })

    @app.get("/summary")
    def summary():
        legacy = request.args.get("legacy", "").lower() in ("1", "true", "yes") or cfg.legacy_keys
        result = _classify()
        table = render_table(build_histogram(result.records, legacy_keys=legacy))
        return Response(table, mimetype="text/plain")

    @app.get("/tree")
    def tree():
        result = _classify()
        return _ok(tree_as_dict(build_tree(result.records)))

    @app.get("/alert")
    def alert():
        result = _classify()
        return _ok({
            "alert": render_alert(result.records),
            "lines": alert_lines(result.records),
            "unclassified": render_failures(result.failures),
        })

    return app


def main():
    ap = argparse.ArgumentParser(description="Fleet inventory HTTP API")
    ap.add_argument("--config", default=None, help="YAML config file")
    ap.add_argument("--nodes", default=None, help="Directory with node YAMLs")
    ap.add_argument("--controller", default=None, help="Jenkins base URL")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8080)
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_config(Path(args.config) if args.config else None,
                      overrides={"nodes_dir": args.nodes, "controller_url": args.controller})
    create_app(cfg).run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
