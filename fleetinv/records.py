#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleetinv/records.py — per-node records and the parallel classification pass.

A classification pass fetches every node from a source, parses its labels and
builds one immutable NodeRecord per node. Nodes that cannot be classified are
kept as NodeFailure entries, so every input node is accounted for:

    len(result.records) + len(result.failures) == result.total
"""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import InventoryError, MissingLabelError
from .labels import BuildType, classify_role, parse_labels, tokenize

log = logging.getLogger(__name__)


# --------------------------- Data model ---------------------------

@dataclass(frozen=True)
class NodeSnapshot:
    """Point-in-time view of a node as reported by the controller."""
    name: str
    host_name: str = ""
    labels: Tuple[str, ...] = ()
    online: bool = True
    offline_reason: str = ""


@dataclass(frozen=True)
class NodeRecord:
    name: str
    host_name: str
    arch: str
    os: str
    os_version: str
    build_type: BuildType
    is_online: bool
    offline_reason: str = ""

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["build_type"] = self.build_type.value
        return d


@dataclass(frozen=True)
class NodeFailure:
    name: str
    error: InventoryError

    @property
    def kind(self) -> str:
        if isinstance(self.error, MissingLabelError):
            return self.error.kind
        return type(self.error).__name__

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "error": str(self.error)}


@dataclass
class ClassificationResult:
    records: List[NodeRecord] = field(default_factory=list)
    failures: List[NodeFailure] = field(default_factory=list)
    total: int = 0

    def check(self) -> None:
        """Every input node must end up as a record or a failure."""
        seen = len(self.records) + len(self.failures)
        if seen != self.total:
            raise InventoryError(f"classified {seen} of {self.total} nodes")


# --------------------------- Builder ------------------------------

def first_line(text: Optional[str]) -> str:
    if not text:
        return ""
    return text.split("\n")[0]


def build_record(snapshot: NodeSnapshot) -> NodeRecord:
    """Raises MissingLabelError (carrying the node name) if labels are incomplete."""
    labels = tokenize(snapshot.labels)
    try:
        parsed = parse_labels(labels)
    except MissingLabelError as e:
        raise e.for_node(snapshot.name) from None
    online = bool(snapshot.online)
    return NodeRecord(
        name=snapshot.name,
        host_name=snapshot.host_name or "",
        arch=parsed.arch,
        os=parsed.os,
        os_version=parsed.os_version,
        build_type=classify_role(labels),
        is_online=online,
        offline_reason="" if online else first_line(snapshot.offline_reason),
    )


# --------------------------- Parallel pass ------------------------

class _Collector:
    """Thread-safe sink for per-node outcomes, keyed by input position."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[int, NodeRecord] = {}
        self._failures: Dict[int, NodeFailure] = {}

    def add_record(self, idx: int, record: NodeRecord) -> None:
        with self._lock:
            self._records[idx] = record

    def add_failure(self, idx: int, failure: NodeFailure) -> None:
        with self._lock:
            self._failures[idx] = failure

    def result(self, total: int) -> ClassificationResult:
        with self._lock:
            return ClassificationResult(
                records=[self._records[i] for i in sorted(self._records)],
                failures=[self._failures[i] for i in sorted(self._failures)],
                total=total,
            )


def _classify_one(source, idx: int, name: str, out: _Collector) -> None:
    try:
        out.add_record(idx, build_record(source.fetch(name)))
    except InventoryError as e:
        log.warning("node %s not classified: %s", name, e)
        out.add_failure(idx, NodeFailure(name=name, error=e))
    except Exception as e:
        log.exception("unexpected error while classifying %s", name)
        out.add_failure(idx, NodeFailure(name=name, error=InventoryError(f"{type(e).__name__}: {e}")))


def _worker(source, work: "queue.Queue[Tuple[int, str]]", out: _Collector) -> None:
    while True:
        try:
            idx, name = work.get_nowait()
        except queue.Empty:
            return
        _classify_one(source, idx, name, out)


def classify_nodes(
    source,
    names: Optional[Sequence[str]] = None,
    label: Optional[str] = None,
    workers: int = 8,
) -> ClassificationResult:
    """
    Fetch and classify every node of `source` (or just `names`) in parallel.

    Each node is one task on a shared queue drained by up to `workers` threads,
    so a slow node only holds up its own thread. All threads are joined before
    the result is assembled. Records and failures keep the order of the input
    names.
    """
    if names is None:
        names = source.node_names(label)
    items = list(enumerate(names))
    out = _Collector()
    if items:
        work: "queue.Queue[Tuple[int, str]]" = queue.Queue()
        for item in items:
            work.put(item)
        threads = [
            threading.Thread(target=_worker, args=(source, work, out), name=f"classify-{n}", daemon=True)
            for n in range(min(max(1, workers), len(items)))
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
    result = out.result(len(items))
    result.check()
    log.info("classified %d node(s), %d failure(s)", len(result.records), len(result.failures))
    return result
