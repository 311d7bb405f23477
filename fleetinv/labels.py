#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleetinv/labels.py — turn a node's free-text labels into arch/os/role.

Label conventions
-----------------
- hw.arch.<arch>               e.g. hw.arch.x86_64, hw.arch.aarch64
- sw.os.<family>.<version>     e.g. sw.os.ubuntu.20_04 (version "20.04")
- ci.role.build / ci.role.test CI role; both, one or neither may be present

The first matching label wins. A node is expected to carry exactly one arch
and one os label; conflicting duplicates are not detected here (see
tools/validate_nodes.py --strict for that).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Pattern, Tuple, Union

from .errors import MissingLabelError

ROLE_BUILD = "ci.role.build"
ROLE_TEST = "ci.role.test"

Labels = Union[str, Iterable[str]]


class BuildType(str, Enum):
    BUILD = "Build"
    TEST = "Test"
    BUILD_AND_TEST = "Build and Test"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ParsedLabels:
    arch: str
    os: str
    os_version: str


ARCH_PATTERN = re.compile(r"hw\.arch\.(\w+)")
OS_PATTERN = re.compile(r"sw\.os\.(\w+)\.(\w+)")

# (kind, pattern, field names for the capture groups)
_RULES: List[Tuple[str, Pattern[str], Tuple[str, ...]]] = [
    ("arch", ARCH_PATTERN, ("arch",)),
    ("os", OS_PATTERN, ("os", "os_version")),
]


def tokenize(labels: Labels) -> List[str]:
    """Labels arrive either as one whitespace separated string or as a collection."""
    if isinstance(labels, str):
        return labels.split()
    return [str(l) for l in labels]


def normalize_version(raw: str) -> str:
    return raw.replace("_", ".")


def parse_labels(labels: Labels) -> ParsedLabels:
    """
    Extract arch, os and os version. Raises MissingLabelError(kind="arch"|"os")
    when a required label is absent.
    """
    tokens = tokenize(labels)
    found: Dict[str, str] = {}
    for kind, pattern, fields in _RULES:
        for tok in tokens:
            m = pattern.search(tok)
            if m:
                found.update(zip(fields, m.groups()))
                break
        else:
            raise MissingLabelError(kind)
    return ParsedLabels(
        arch=found["arch"],
        os=found["os"],
        os_version=normalize_version(found["os_version"]),
    )


def classify_role(labels: Labels) -> BuildType:
    tokens = set(tokenize(labels))
    build = ROLE_BUILD in tokens
    test = ROLE_TEST in tokens
    if build and test:
        return BuildType.BUILD_AND_TEST
    if build:
        return BuildType.BUILD
    if test:
        return BuildType.TEST
    return BuildType.NONE
