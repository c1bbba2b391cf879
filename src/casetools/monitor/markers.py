"""
Marker sets for scanning free-text logs of the external mesher and solver.

Each set is plain data: regexes matched line by line. A new solver version
with different wording gets a new set (or a ``markers:`` override in
case.yaml); the scanning code does not change.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple

SUCCEEDED = "succeeded"
FAILED = "failed"
UNKNOWN = "unknown"
NOT_FOUND = "not_found"
IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class MarkerSet:
    name: str
    success: Tuple[str, ...] = ()
    failure: Tuple[str, ...] = ()
    # lines kept in a trailing window, e.g. iteration headers
    progress: Optional[str] = None
    # name -> regex with one group; the last match in the log wins
    counts: Dict[str, str] = field(default_factory=dict)
    # name -> regex; the last matching line is kept verbatim
    lines: Dict[str, str] = field(default_factory=dict)
    # process name used to probe whether the program is running
    process: Optional[str] = None

    def with_overrides(self, overrides: Optional[Dict[str, Any]]) -> "MarkerSet":
        if not overrides:
            return self
        known = {"success", "failure", "progress", "counts", "lines", "process"}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown marker key(s) for {self.name}: {sorted(unknown)}")
        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key in ("success", "failure"):
                value = (value,) if isinstance(value, str) else tuple(value)
            elif key in ("counts", "lines"):
                value = {**getattr(self, key), **dict(value)}
            changes[key] = value
        return replace(self, **changes)


# checkMesh / snappyHexMesh output
MESH_MARKERS = MarkerSet(
    name="mesh",
    success=(r"Mesh OK",),
    failure=(r"Failed",),
    counts={
        "cells": r"^\s*cells:\s+(\d+)",
        "points": r"^\s*points:\s+(\d+)",
        "faces": r"^\s*internal faces:\s+(\d+)",
    },
)

# steady compressible solver output
SOLVER_MARKERS = MarkerSet(
    name="solver",
    success=(r"^End\s*$",),
    failure=(r"solution singularity", r"Floating point exception"),
    progress=r"^Time = ",
    lines={"execution_time": r"ExecutionTime\s*="},
    process="rhoSimpleFoam",
)

MARKER_SETS = {"mesh": MESH_MARKERS, "solver": SOLVER_MARKERS}


def marker_set(kind: str, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> MarkerSet:
    base = MARKER_SETS[kind]
    return base.with_overrides((overrides or {}).get(kind))


def _compile(kind: str, key: str, pattern: Any) -> "re.Pattern[str]":
    try:
        return re.compile(str(pattern))
    except re.error as exc:
        raise ValueError(f"Invalid regex for markers.{kind}.{key}: {pattern!r} ({exc})") from exc


def check_marker_overrides(overrides: Optional[Dict[str, Any]]) -> None:
    """
    Build and compile every overridden set so a bad ``markers:`` block fails
    when case.yaml is loaded. Raises ValueError.
    """
    overrides = overrides or {}
    unknown = set(overrides) - set(MARKER_SETS)
    if unknown:
        raise ValueError(f"Unknown marker set(s): {sorted(unknown)}. Choose from {sorted(MARKER_SETS)}")

    for kind, block in overrides.items():
        if block is None:
            continue
        if not isinstance(block, dict):
            raise ValueError(f"markers.{kind} must be a mapping")
        for key in ("counts", "lines"):
            if key in block and not isinstance(block[key], dict):
                raise ValueError(f"markers.{kind}.{key} must be a mapping of name -> regex")
        for key in ("success", "failure"):
            if key in block and not isinstance(block[key], (str, list)):
                raise ValueError(f"markers.{kind}.{key} must be a regex or a list of regexes")

        ms = marker_set(kind, overrides)
        for pattern in ms.success:
            _compile(kind, "success", pattern)
        for pattern in ms.failure:
            _compile(kind, "failure", pattern)
        if ms.progress:
            _compile(kind, "progress", ms.progress)
        for name, pattern in ms.counts.items():
            if _compile(kind, f"counts.{name}", pattern).groups < 1:
                raise ValueError(f"markers.{kind}.counts.{name} needs one capture group: {pattern!r}")
        for name, pattern in ms.lines.items():
            _compile(kind, f"lines.{name}", pattern)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------
@dataclass
class LogScan:
    path: Path
    success: List[str] = field(default_factory=list)
    failure: List[str] = field(default_factory=list)
    progress: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    lines: Dict[str, str] = field(default_factory=dict)

    @property
    def state(self) -> str:
        """Success wins over failure; no marker at all is UNKNOWN, never FAILED."""
        if self.success:
            return SUCCEEDED
        if self.failure:
            return FAILED
        return UNKNOWN


def scan_log(path: Optional[Path], markers: MarkerSet, window: int = 5) -> Optional[LogScan]:
    """
    Single pass over ``path``. Returns None when there is no log to read.
    """
    if path is None:
        return None
    path = Path(path)
    if not path.is_file():
        return None

    success = [re.compile(p) for p in markers.success]
    failure = [re.compile(p) for p in markers.failure]
    progress = re.compile(markers.progress) if markers.progress else None
    counts = {k: re.compile(p) for k, p in markers.counts.items()}
    lines = {k: re.compile(p) for k, p in markers.lines.items()}

    scan = LogScan(path=path)
    recent: Deque[str] = deque(maxlen=max(window, 0))

    try:
        with path.open("r", errors="ignore") as f:
            for raw in f:
                line = raw.rstrip("\n")
                if any(rx.search(line) for rx in success):
                    scan.success.append(line.strip())
                if any(rx.search(line) for rx in failure):
                    scan.failure.append(line.strip())
                if progress is not None and progress.search(line):
                    recent.append(line.strip())
                for key, rx in counts.items():
                    m = rx.search(line)
                    if m:
                        scan.counts[key] = int(m.group(1))
                for key, rx in lines.items():
                    if rx.search(line):
                        scan.lines[key] = line.strip()
    except OSError:
        return None

    scan.progress = list(recent)
    return scan
