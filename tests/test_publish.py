"""Tests for archiving and git publishing of report files."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from fleetinv import publish
from fleetinv.errors import PublishError


@pytest.fixture
def reports(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    paths = []
    for name in ("summary.md", "inventory.ini"):
        p = out / name
        p.write_text(f"{name}\n", encoding="utf-8")
        paths.append(p)
    return paths


def test_archive_outputs(tmp_path, reports) -> None:
    copied = publish.archive_outputs(reports, tmp_path / "archive")

    assert [p.name for p in copied] == ["summary.md", "inventory.ini"]
    assert (tmp_path / "archive" / "summary.md").read_text() == "summary.md\n"


def test_archive_missing_file(tmp_path) -> None:
    with pytest.raises(PublishError):
        publish.archive_outputs([tmp_path / "nope.md"], tmp_path / "archive")


def test_archive_rejects_clashing_file_names(tmp_path, reports) -> None:
    other = tmp_path / "elsewhere" / "summary.md"
    other.parent.mkdir()
    other.write_text("other\n", encoding="utf-8")

    with pytest.raises(PublishError) as exc:
        publish.archive_outputs(reports + [other], tmp_path / "archive")
    assert "summary.md" in str(exc.value)
    assert not (tmp_path / "archive").exists()


def test_git_publish_rejects_clashing_file_names(tmp_path, reports, monkeypatch) -> None:
    fake = _FakeGit()
    monkeypatch.setattr(publish.subprocess, "run", fake)
    other = tmp_path / "elsewhere" / "inventory.ini"
    other.parent.mkdir()
    other.write_text("other\n", encoding="utf-8")

    with pytest.raises(PublishError):
        publish.git_publish(reports + [other], "repo", "master", tmp_path / "work")
    assert fake.calls == []


def test_commit_message() -> None:
    msg = publish.commit_message(0)

    assert msg.startswith("This File has been updated on ")
    assert msg.endswith(" from fleetinv")


class _FakeGit:
    def __init__(self, porcelain: str = " M summary.md\n", fail_on: str = ""):
        self.calls = []
        self.porcelain = porcelain
        self.fail_on = fail_on

    def __call__(self, cmd, cwd=None, check=False, capture_output=False, text=False):
        self.calls.append((cmd[1:], cwd))
        if cmd[1] == self.fail_on:
            raise subprocess.CalledProcessError(1, cmd, stderr="remote rejected")
        if cmd[1] == "clone":
            Path(cmd[-1]).mkdir(parents=True)
        stdout = self.porcelain if cmd[1] == "status" else ""
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")


def test_git_publish_commits_and_pushes(tmp_path, reports, monkeypatch) -> None:
    fake = _FakeGit()
    monkeypatch.setattr(publish.subprocess, "run", fake)

    checkout = publish.git_publish(reports, "git@example.org:ci/inventory.git", "main", tmp_path / "work")

    verbs = [args[0] for args, _ in fake.calls]
    assert verbs == ["clone", "add", "status", "commit", "push"]
    assert fake.calls[0][0][:3] == ["clone", "--branch", "main"]
    assert fake.calls[1][0] == ["add", "summary.md", "inventory.ini"]
    assert fake.calls[4][0] == ["push", "origin", "main"]
    assert (checkout / "inventory.ini").read_text() == "inventory.ini\n"


def test_git_publish_nothing_changed(tmp_path, reports, monkeypatch) -> None:
    fake = _FakeGit(porcelain="")
    monkeypatch.setattr(publish.subprocess, "run", fake)

    publish.git_publish(reports, "repo", "master", tmp_path / "work")

    assert [args[0] for args, _ in fake.calls] == ["clone", "add", "status"]


def test_git_publish_push_failure(tmp_path, reports, monkeypatch) -> None:
    monkeypatch.setattr(publish.subprocess, "run", _FakeGit(fail_on="push"))

    with pytest.raises(PublishError) as exc:
        publish.git_publish(reports, "repo", "master", tmp_path / "work")
    assert "remote rejected" in str(exc.value)
