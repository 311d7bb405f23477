from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pytest
import requests
import yaml

from fleetinv.errors import SourceError
from fleetinv.labels import BuildType
from fleetinv.records import NodeRecord, NodeSnapshot


def make_record(
    name: str = "node-1",
    os: str = "ubuntu",
    os_version: str = "20.04",
    arch: str = "x86_64",
    build_type: BuildType = BuildType.BUILD,
    is_online: bool = True,
    offline_reason: str = "",
    host_name: str = "",
) -> NodeRecord:
    return NodeRecord(
        name=name,
        host_name=host_name or f"{name}.example.org",
        arch=arch,
        os=os,
        os_version=os_version,
        build_type=build_type,
        is_online=is_online,
        offline_reason=offline_reason,
    )


class FakeSource:
    """In-memory node source; names listed in `broken` fail with SourceError."""

    def __init__(self, snapshots: Sequence[NodeSnapshot], broken: Sequence[str] = ()):
        self.snapshots = {s.name: s for s in snapshots}
        self.broken = set(broken)
        self.fetched: List[str] = []

    def node_names(self, label: Optional[str] = None) -> List[str]:
        names = list(self.snapshots) + [b for b in self.broken if b not in self.snapshots]
        if label:
            names = [n for n in names if n in self.snapshots and label in self.snapshots[n].labels]
        return names

    def fetch(self, name: str) -> NodeSnapshot:
        self.fetched.append(name)
        if name in self.broken:
            raise SourceError(f"{name}: controller unreachable")
        return self.snapshots[name]


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, content: bytes = b""):
        self.status_code = status
        self._payload = payload
        self.content = content

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Records calls; GET answers come from a {url: FakeResponse} routing table."""

    def __init__(self, routes: Optional[Dict[str, FakeResponse]] = None, post_response: Optional[FakeResponse] = None):
        self.routes = routes or {}
        self.post_response = post_response or FakeResponse(200, {"ok": True})
        self.gets: List[Dict[str, Any]] = []
        self.posts: List[Dict[str, Any]] = []

    def get(self, url: str, params=None, timeout=None):
        self.gets.append({"url": url, "params": params, "timeout": timeout})
        if url not in self.routes:
            return FakeResponse(404)
        return self.routes[url]

    def post(self, url: str, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        return self.post_response


@pytest.fixture
def snapshots() -> List[NodeSnapshot]:
    return [
        NodeSnapshot("ub1", "ub1.example.org", ("hw.arch.x86_64", "sw.os.ubuntu.20_04", "ci.role.build"), True, ""),
        NodeSnapshot("ub2", "ub2.example.org", ("hw.arch.x86_64", "sw.os.ubuntu.20_04", "ci.role.build"), True, ""),
        NodeSnapshot("cent1", "cent1.example.org", ("hw.arch.arm64", "sw.os.centos.7", "ci.role.test"), False,
                     "disk full\nretrying"),
        NodeSnapshot("bare", "bare.example.org", ("hw.arch.x86_64",), True, ""),
        NodeSnapshot("norole", "norole.example.org", ("hw.arch.s390x", "sw.os.rhel.8"), True, ""),
    ]


@pytest.fixture
def nodes_dir(tmp_path, snapshots):
    d = tmp_path / "nodes"
    d.mkdir()
    for s in snapshots:
        doc = {
            "name": s.name,
            "host_name": s.host_name,
            "labels": list(s.labels),
            "online": s.online,
            "offline_reason": s.offline_reason,
        }
        (d / f"{s.name}.yaml").write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
    return d
