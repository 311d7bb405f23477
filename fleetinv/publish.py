#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Publish report files: copy them into an archive directory and/or commit them
to a git branch. Git authentication is left to the environment (ssh-agent,
credential helpers).
"""
from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .errors import PublishError

log = logging.getLogger(__name__)


def _check_basenames(paths: Sequence[Path]) -> None:
    """Files land side by side under their base names, so those must be unique."""
    seen: Dict[str, Path] = {}
    for p in paths:
        p = Path(p)
        if p.name in seen:
            raise PublishError(f"{p.as_posix()} and {seen[p.name].as_posix()} share the file name {p.name!r}")
        seen[p.name] = p


def archive_outputs(paths: Sequence[Path], archive_dir: Path) -> List[Path]:
    _check_basenames(paths)
    archive_dir = Path(archive_dir)
    archive_dir.mkdir(parents=True, exist_ok=True)
    copied = []
    for p in paths:
        dst = archive_dir / Path(p).name
        try:
            shutil.copy2(p, dst)
        except OSError as e:
            raise PublishError(f"cannot archive {p}: {e}") from e
        copied.append(dst)
    return copied


def _git(args: List[str], cwd: Path) -> str:
    log.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        proc = subprocess.run(["git", *args], cwd=str(cwd), check=True,
                              capture_output=True, text=True)
    except FileNotFoundError as e:
        raise PublishError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise PublishError(f"git {args[0]} failed: {(e.stderr or '').strip()}") from e
    return proc.stdout


def commit_message(when: Optional[float] = None) -> str:
    ts = time.strftime("%a %b %d %H:%M:%S %Z %Y", time.localtime(when))
    return f"This File has been updated on {ts} from fleetinv"


def git_publish(paths: Sequence[Path], repo: str, branch: str, workdir: Path) -> Path:
    """
    Clone `branch` of `repo` into workdir/git_repo, copy the report files to
    its root, commit and push. Returns the checkout path.
    """
    _check_basenames(paths)
    checkout = Path(workdir) / "git_repo"
    if checkout.exists():
        shutil.rmtree(checkout)
    checkout.parent.mkdir(parents=True, exist_ok=True)
    _git(["clone", "--branch", branch, "--depth", "1", repo, str(checkout)], cwd=checkout.parent)

    names = []
    for p in paths:
        p = Path(p)
        try:
            shutil.copy2(p, checkout / p.name)
        except OSError as e:
            raise PublishError(f"cannot copy {p} into checkout: {e}") from e
        names.append(p.name)

    _git(["add", *names], cwd=checkout)
    if not _git(["status", "--porcelain"], cwd=checkout).strip():
        log.info("reports unchanged, nothing to push")
        return checkout
    _git(["commit", "-m", commit_message()], cwd=checkout)
    _git(["push", "origin", branch], cwd=checkout)
    log.info("pushed %d file(s) to %s (%s)", len(names), repo, branch)
    return checkout
