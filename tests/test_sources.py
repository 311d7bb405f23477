"""Tests for the YAML and Jenkins node sources."""

from __future__ import annotations

import pytest

from conftest import FakeResponse, FakeSession
from fleetinv.config import InventoryConfig
from fleetinv.errors import SourceError
from fleetinv.records import classify_nodes
from fleetinv.sources import JenkinsNodeSource, YamlNodeSource, make_source, snapshot_from_dict

BASE = "https://ci.example.org"


# ----------------- YAML -----------------

def test_yaml_source_lists_and_fetches(nodes_dir) -> None:
    src = YamlNodeSource(nodes_dir)

    names = src.node_names()
    snap = src.fetch("cent1")

    assert sorted(names) == ["bare", "cent1", "norole", "ub1", "ub2"]
    assert snap.host_name == "cent1.example.org"
    assert snap.online is False
    assert snap.offline_reason == "disk full\nretrying"
    assert "sw.os.centos.7" in snap.labels


def test_yaml_source_label_filter(nodes_dir) -> None:
    assert YamlNodeSource(nodes_dir).node_names("ci.role.build") == ["ub1", "ub2"]


def test_yaml_source_end_to_end(nodes_dir) -> None:
    result = classify_nodes(YamlNodeSource(nodes_dir), workers=2)

    assert result.total == 5
    assert [f.name for f in result.failures] == ["bare"]
    cent = next(r for r in result.records if r.name == "cent1")
    assert cent.offline_reason == "disk full"


def test_yaml_source_broken_file_becomes_failure(nodes_dir) -> None:
    (nodes_dir / "zz-broken.yaml").write_text("name: [unclosed\n", encoding="utf-8")

    src = YamlNodeSource(nodes_dir)
    result = classify_nodes(src)

    assert "zz-broken" in src.node_names()
    assert result.total == 6
    assert "zz-broken" in [f.name for f in result.failures]


def test_yaml_source_schema_violation(nodes_dir) -> None:
    (nodes_dir / "odd.yaml").write_text("name: odd\nlabels: [hw.arch.x86_64]\ncolour: blue\n", encoding="utf-8")

    with pytest.raises(SourceError):
        YamlNodeSource(nodes_dir).fetch("odd")
    # without validation the extra key is ignored
    assert YamlNodeSource(nodes_dir, validate=False).fetch("odd").labels == ("hw.arch.x86_64",)


def test_yaml_source_duplicate_name_is_a_failure(tmp_path) -> None:
    d = tmp_path / "nodes"
    d.mkdir()
    for stem in ("a", "b"):
        (d / f"{stem}.yaml").write_text(
            "name: b\nlabels: [hw.arch.x86_64, sw.os.rhel.9, ci.role.build]\n", encoding="utf-8")

    src = YamlNodeSource(d)
    result = classify_nodes(src)

    assert src.node_names() == ["b", "b.yaml"]
    assert result.total == 2
    assert [r.name for r in result.records] == ["b"]
    assert [f.name for f in result.failures] == ["b.yaml"]
    assert "duplicate node name 'b'" in str(result.failures[0].error)
    assert "a.yaml" in str(result.failures[0].error)


def test_yaml_source_missing_dir(tmp_path) -> None:
    with pytest.raises(SourceError):
        YamlNodeSource(tmp_path / "missing").node_names()


def test_yaml_source_unknown_node(nodes_dir) -> None:
    with pytest.raises(SourceError):
        YamlNodeSource(nodes_dir).fetch("nope")


def test_snapshot_from_dict_accepts_label_string() -> None:
    snap = snapshot_from_dict({"name": "n1", "labels": "hw.arch.x86_64 sw.os.rhel.9"})

    assert snap.labels == ("hw.arch.x86_64", "sw.os.rhel.9")
    assert snap.online is True
    assert snap.offline_reason == ""


# ----------------- Jenkins -----------------

def _computer(name: str, labels, offline=False, reason=""):
    return {
        "_class": "hudson.slaves.SlaveComputer",
        "displayName": name,
        "offline": offline,
        "offlineCauseReason": reason,
        "assignedLabels": [{"name": l} for l in labels],
    }


def test_jenkins_node_names_skips_builtin() -> None:
    session = FakeSession({
        f"{BASE}/computer/api/json": FakeResponse(200, {"computer": [
            {"_class": "hudson.model.Hudson$MasterComputer", "displayName": "Built-In Node"},
            {"_class": "hudson.slaves.SlaveComputer", "displayName": "agent-1"},
            {"_class": "hudson.slaves.SlaveComputer", "displayName": "agent-2"},
        ]}),
    })

    assert JenkinsNodeSource(BASE + "/", session=session).node_names() == ["agent-1", "agent-2"]
    assert session.gets[0]["params"] == {"tree": "computer[displayName]"}


def test_jenkins_node_names_by_label() -> None:
    session = FakeSession({
        f"{BASE}/label/ci.role.test/api/json": FakeResponse(200, {"nodes": [
            {"nodeName": ""}, {"nodeName": "agent-2"},
        ]}),
    })

    assert JenkinsNodeSource(BASE, session=session).node_names("ci.role.test") == ["agent-2"]


def test_jenkins_fetch_with_ssh_host() -> None:
    config = b"""<?xml version='1.1' encoding='UTF-8'?>
<slave><name>agent-1</name>
  <launcher class="hudson.plugins.sshslaves.SSHLauncher"><host>10.0.0.7</host><port>22</port></launcher>
</slave>"""
    session = FakeSession({
        f"{BASE}/computer/agent-1/api/json": FakeResponse(200, _computer(
            "agent-1", ["agent-1", "hw.arch.ppc64le", "sw.os.rhel.8", "ci.role.build"],
            offline=True, reason="Disconnected by admin\nmaintenance")),
        f"{BASE}/computer/agent-1/config.xml": FakeResponse(200, content=config),
    })

    snap = JenkinsNodeSource(BASE, session=session, timeout=5).fetch("agent-1")

    assert snap.host_name == "10.0.0.7"
    assert snap.online is False
    assert snap.offline_reason == "Disconnected by admin\nmaintenance"
    assert "hw.arch.ppc64le" in snap.labels
    assert all(g["timeout"] == 5 for g in session.gets)


def test_jenkins_host_falls_back_to_name() -> None:
    session = FakeSession({
        f"{BASE}/computer/agent-2/api/json": FakeResponse(200, _computer("agent-2", ["hw.arch.x86_64"])),
    })

    assert JenkinsNodeSource(BASE, session=session).fetch("agent-2").host_name == "agent-2"


def test_jenkins_http_error_is_source_error() -> None:
    with pytest.raises(SourceError):
        JenkinsNodeSource(BASE, session=FakeSession()).fetch("agent-9")


def test_jenkins_invalid_json() -> None:
    session = FakeSession({f"{BASE}/computer/api/json": FakeResponse(200, None)})

    with pytest.raises(SourceError):
        JenkinsNodeSource(BASE, session=session).node_names()


def test_jenkins_end_to_end() -> None:
    session = FakeSession({
        f"{BASE}/computer/api/json": FakeResponse(200, {"computer": [
            {"displayName": "a1"}, {"displayName": "a2"}, {"displayName": "a3"},
        ]}),
        f"{BASE}/computer/a1/api/json": FakeResponse(200, _computer(
            "a1", ["hw.arch.x86_64", "sw.os.ubuntu.22_04", "ci.role.build", "ci.role.test"])),
        f"{BASE}/computer/a2/api/json": FakeResponse(200, _computer(
            "a2", ["hw.arch.x86_64", "sw.os.ubuntu.22_04"], offline=True, reason="disk full\nretrying")),
        # a3 is gone between listing and fetching
    })

    result = classify_nodes(JenkinsNodeSource(BASE, session=session), workers=3)

    assert [r.name for r in result.records] == ["a1", "a2"]
    assert result.records[1].offline_reason == "disk full"
    assert [f.name for f in result.failures] == ["a3"]


def test_make_source() -> None:
    assert isinstance(make_source(InventoryConfig(controller_url=BASE)), JenkinsNodeSource)
    src = make_source(InventoryConfig(nodes_dir="nodes", validate_nodes=False))
    assert isinstance(src, YamlNodeSource) and src.validate is False
