#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Aggregation passes over classified node records.

- build_histogram(): count of nodes per (os, os_version, arch, build_type),
  in order of first occurrence
- build_tree(): arch -> os -> os_version -> [NodeRecord], used by the
  templated INI inventory

Both are pure and can be called repeatedly on the same records.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List

from .labels import BuildType
from .records import NodeRecord

GroupingTree = Dict[str, Dict[str, Dict[str, List[NodeRecord]]]]


@dataclass
class HistogramEntry:
    os: str
    os_version: str
    arch: str
    build_type: BuildType
    count: int = 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "os": self.os,
            "os_version": self.os_version,
            "arch": self.arch,
            "build_type": str(self.build_type),
            "count": self.count,
        }


def histogram_key(record: NodeRecord, legacy: bool = False) -> Hashable:
    """
    Identity of a histogram row. legacy=True reproduces the old report's
    plain string concatenation, where e.g. ("linux", "8", "x86") and
    ("linux8", "", "x86") share a row.
    """
    if legacy:
        return record.os + record.os_version + record.arch + str(record.build_type)
    return (record.os, record.os_version, record.arch, record.build_type)


def build_histogram(records: Iterable[NodeRecord], legacy_keys: bool = False) -> List[HistogramEntry]:
    table: Dict[Hashable, HistogramEntry] = {}
    for r in records:
        key = histogram_key(r, legacy=legacy_keys)
        entry = table.get(key)
        if entry is None:
            table[key] = HistogramEntry(os=r.os, os_version=r.os_version, arch=r.arch, build_type=r.build_type)
        else:
            entry.count += 1
    return list(table.values())


def build_tree(records: Iterable[NodeRecord]) -> GroupingTree:
    tree: GroupingTree = {}
    for r in records:
        tree.setdefault(r.arch, {}).setdefault(r.os, {}).setdefault(r.os_version, []).append(r)
    return tree


def tree_size(tree: GroupingTree) -> int:
    return sum(len(leaf) for oses in tree.values() for versions in oses.values() for leaf in versions.values())


def tree_as_dict(tree: GroupingTree) -> Dict[str, Any]:
    return {
        arch: {
            os_: {ver: [r.as_dict() for r in leaf] for ver, leaf in versions.items()}
            for os_, versions in oses.items()
        }
        for arch, oses in tree.items()
    }
