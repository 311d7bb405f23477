#!/usr/bin/env python3
"""
Generate N sample CI worker node descriptors into ./nodes/
Usage:
  python3 tools/gen_nodes.py --count 40 --seed 42
  python3 -m fleetinv.cli --nodes nodes --summary-file out/summary.md
"""
import argparse, random
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List
import yaml

# -----------------------------
# Tunables
# -----------------------------
ARCH_WEIGHTS = {"x86_64": 0.6, "aarch64": 0.2, "ppc64le": 0.1, "s390x": 0.06, "riscv64": 0.04}

OS_WEIGHTS_BY_ARCH = {
    "x86_64":  {"ubuntu": 0.45, "rhel": 0.2, "windows": 0.2, "osx": 0.15},
    "aarch64": {"ubuntu": 0.5, "rhel": 0.2, "osx": 0.3},
    "ppc64le": {"ubuntu": 0.4, "rhel": 0.4, "aix": 0.2},
    "s390x":   {"ubuntu": 0.3, "rhel": 0.3, "zos": 0.4},
    "riscv64": {"ubuntu": 1.0},
}

OS_VERSIONS = {
    "ubuntu":  ["20_04", "22_04", "24_04"],
    "rhel":    ["7", "8", "9"],
    "windows": ["2016", "2019", "2022"],
    "osx":     ["12", "13", "14"],
    "aix":     ["7_2", "7_3"],
    "zos":     ["2_5"],
}

ROLE_WEIGHTS = {"both": 0.45, "build": 0.2, "test": 0.25, "none": 0.1}

OFFLINE_REASONS = [
    "Disk space is too low. Only 0.412GB left on /home/jenkins.",
    "Disconnected by admin\nmaintenance window",
    "Agent went offline during the build",
    "Time out for last 5 try",
]

PREFIX_BY_OS = {"ubuntu": "ub", "rhel": "rh", "windows": "win", "osx": "mac", "aix": "aix", "zos": "zos"}

# -----------------------------
def choice_weighted(d: Dict[str, float]) -> str:
    items = list(d.items())
    r = random.random() * sum(w for _, w in items)
    s = 0.0
    for k, w in items:
        s += w
        if r <= s:
            return k
    return items[-1][0]

def maybe(p: float) -> bool:
    return random.random() < p

def role_labels(role: str) -> List[str]:
    return {
        "both":  ["ci.role.build", "ci.role.test"],
        "build": ["ci.role.build"],
        "test":  ["ci.role.test"],
        "none":  [],
    }[role]

def make_node(idx: int) -> Dict[str, Any]:
    arch = choice_weighted(ARCH_WEIGHTS)
    os_ = choice_weighted(OS_WEIGHTS_BY_ARCH[arch])
    ver = random.choice(OS_VERSIONS[os_])
    name = f"test-{PREFIX_BY_OS[os_]}{ver.split('_')[0]}-{arch.replace('_', '')}-{idx}"
    labels = [f"hw.arch.{arch}", f"sw.os.{os_}", f"sw.os.{os_}.{ver}"] + role_labels(choice_weighted(ROLE_WEIGHTS))
    if maybe(0.03):
        # descriptor nobody finished: no os version label
        labels = [l for l in labels if not l.startswith(f"sw.os.{os_}.")]
    online = not maybe(0.12)
    return {
        "name": name,
        "host_name": f"{name}.ci.example.org",
        "labels": labels,
        "online": online,
        "offline_reason": "" if online else random.choice(OFFLINE_REASONS),
    }

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--count", type=int, default=40)
    ap.add_argument("--seed", type=int, default=123)
    ap.add_argument("--outdir", type=str, default="nodes")
    args = ap.parse_args()

    random.seed(args.seed)
    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    nodes = []
    for i in range(1, args.count + 1):
        node = make_node(i)
        nodes.append(node)
        with open(outdir / f"{node['name']}.yaml", "w", encoding="utf-8") as f:
            yaml.safe_dump(node, f, sort_keys=False)

    c_arch = Counter(l for n in nodes for l in n["labels"] if l.startswith("hw.arch."))
    c_offline = sum(1 for n in nodes if not n["online"])
    print(f"Generated {len(nodes)} nodes in {outdir.as_posix()}/")
    print("By arch:", dict(c_arch))
    print("Offline:", c_offline)
    print("Tip: run `python3 tools/validate_nodes.py --strict` to lint them.")


if __name__ == "__main__":
    main()
