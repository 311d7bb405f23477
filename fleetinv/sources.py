#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Node sources: where NodeSnapshots come from.

Every source exposes the same two calls:

    node_names(label=None) -> List[str]   # which nodes to inventory
    fetch(name) -> NodeSnapshot           # one node, called from worker threads

YamlNodeSource reads ./nodes/*.yaml descriptors (see schemas/node.schema.yaml).
JenkinsNodeSource reads a Jenkins controller over its JSON API; authentication
is whatever requests picks up on its own (e.g. ~/.netrc).
"""
from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
import yaml

from .errors import SourceError
from .labels import tokenize
from .records import NodeSnapshot
from .validators import ValidationError, assert_node, load_yaml

log = logging.getLogger(__name__)


def snapshot_from_dict(d: Dict[str, Any]) -> NodeSnapshot:
    return NodeSnapshot(
        name=str(d.get("name")),
        host_name=str(d.get("host_name") or ""),
        labels=tuple(tokenize(d.get("labels") or [])),
        online=bool(d.get("online", True)),
        offline_reason=str(d.get("offline_reason") or ""),
    )


# ----------------- YAML descriptors -----------------

class YamlNodeSource:
    def __init__(self, nodes_dir: Path, validate: bool = True):
        self.nodes_dir = Path(nodes_dir)
        self.validate = validate
        self._index: Dict[str, Path] = {}
        # listing key -> node name it duplicates
        self._duplicates: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _scan(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        self._duplicates = {}
        for f in sorted(self.nodes_dir.glob("*.yaml")):
            try:
                doc = load_yaml(f)
                name = doc.get("name") if isinstance(doc, dict) else None
            except (OSError, yaml.YAMLError) as e:
                log.warning("could not load %s: %s", f.name, e)
                name = None
            # unreadable descriptors still count as nodes; fetch() reports them
            key = str(name or f.stem)
            if key in index:
                log.warning("%s: duplicate node name %r, already defined in %s", f.name, key, index[key].name)
                # listed under its file name (or full path) so fetch() can report it
                name_key = next(k for k in (f.name, f.as_posix()) if k not in index)
                self._duplicates[name_key] = key
                key = name_key
            index[key] = f
        return index

    def node_names(self, label: Optional[str] = None) -> List[str]:
        if not self.nodes_dir.is_dir():
            raise SourceError(f"nodes directory not found: {self.nodes_dir.as_posix()}")
        with self._lock:
            self._index = self._scan()
            index = dict(self._index)
        if not label:
            return list(index)
        names = []
        for name, path in index.items():
            try:
                labels = tokenize((load_yaml(path) or {}).get("labels") or [])
            except (OSError, yaml.YAMLError, AttributeError):
                log.warning("skipping %s for label filter %r: unreadable descriptor", path.name, label)
                continue
            if label in labels:
                names.append(name)
        return names

    def fetch(self, name: str) -> NodeSnapshot:
        with self._lock:
            if not self._index:
                self._index = self._scan()
            path = self._index.get(name)
            dup_of = self._duplicates.get(name)
            first = self._index.get(dup_of) if dup_of is not None else None
        if path is None:
            raise SourceError(f"no descriptor in {self.nodes_dir.as_posix()}")
        if dup_of is not None:
            raise SourceError(f"duplicate node name {dup_of!r}, already defined in {first.name}")
        try:
            doc = load_yaml(path)
        except (OSError, yaml.YAMLError) as e:
            raise SourceError(f"could not load {path.name}: {e}") from e
        if self.validate:
            try:
                assert_node(doc)
            except ValidationError as e:
                raise SourceError(f"{path.name}: {e}") from e
        elif not isinstance(doc, dict):
            raise SourceError(f"{path.name}: descriptor is not a mapping")
        return snapshot_from_dict(doc)


# ----------------- Jenkins controller -----------------

MASTER_COMPUTER_CLASS = "hudson.model.Hudson$MasterComputer"
NODE_TREE = "displayName,offline,offlineCauseReason,assignedLabels[name]"


class JenkinsNodeSource:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        log.debug("GET %s %s", url, params or "")
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise SourceError(f"GET {url} failed: {e}") from e
        return r

    def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        r = self._get(path, params)
        try:
            return r.json()
        except ValueError as e:
            raise SourceError(f"{path}: invalid JSON from controller") from e

    def node_names(self, label: Optional[str] = None) -> List[str]:
        if label:
            data = self._get_json(f"/label/{quote(label, safe='')}/api/json", {"tree": "nodes[nodeName]"})
            # the built-in node reports an empty nodeName
            return [n["nodeName"] for n in data.get("nodes") or [] if n.get("nodeName")]
        data = self._get_json("/computer/api/json", {"tree": "computer[displayName]"})
        return [
            c["displayName"]
            for c in data.get("computer") or []
            if c.get("_class") != MASTER_COMPUTER_CLASS and c.get("displayName")
        ]

    def host_name(self, name: str) -> str:
        """SSH launcher host from the agent config; falls back to the node name."""
        try:
            r = self._get(f"/computer/{quote(name, safe='')}/config.xml")
            host = ET.fromstring(r.content).findtext(".//launcher/host")
        except (SourceError, ET.ParseError) as e:
            log.debug("no launcher host for %s: %s", name, e)
            host = None
        return (host or "").strip() or name

    def fetch(self, name: str) -> NodeSnapshot:
        data = self._get_json(f"/computer/{quote(name, safe='')}/api/json", {"tree": NODE_TREE})
        labels = tuple(l["name"] for l in data.get("assignedLabels") or [] if l.get("name"))
        return NodeSnapshot(
            name=name,
            host_name=self.host_name(name),
            labels=labels,
            online=not bool(data.get("offline")),
            offline_reason=data.get("offlineCauseReason") or "",
        )


def make_source(cfg) -> Any:
    if cfg.controller_url:
        return JenkinsNodeSource(cfg.controller_url, timeout=cfg.timeout)
    return YamlNodeSource(Path(cfg.nodes_dir), validate=cfg.validate_nodes)
