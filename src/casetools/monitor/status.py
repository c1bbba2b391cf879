from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from casetools.config import CaseConfig
from casetools.monitor.logs import latest_log
from casetools.monitor.markers import (
    FAILED,
    IN_PROGRESS,
    NOT_FOUND,
    SUCCEEDED,
    UNKNOWN,
    LogScan,
    marker_set,
    scan_log,
)

ProcessProbe = Callable[[str], Optional[bool]]


def process_running(name: str) -> Optional[bool]:
    """
    True/False from ``pgrep -f``; None when the probe itself is unavailable.
    """
    try:
        proc = subprocess.run(["pgrep", "-f", name], capture_output=True, text=True)
    except OSError:
        return None
    if proc.returncode == 0:
        return True
    if proc.returncode == 1:
        return False
    return None


@dataclass(frozen=True)
class DirEntry:
    name: str
    size: int
    is_dir: bool


def _list_dir(path: Path) -> Optional[List[DirEntry]]:
    if not path.is_dir():
        return None
    out = []
    for p in sorted(path.iterdir()):
        out.append(DirEntry(name=p.name, size=p.stat().st_size, is_dir=p.is_dir()))
    return out


# ---------------------------------------------------------------------------
# Mesh
# ---------------------------------------------------------------------------
@dataclass
class MeshStatus:
    mesh_dir: Path
    mesh_present: bool
    log_path: Optional[Path] = None
    scan: Optional[LogScan] = None
    processor_dirs: int = 0

    @property
    def state(self) -> str:
        """
        The mesh directory comes first: without it the best a log can report
        is FAILED. With it, log markers decide, and no log means UNKNOWN.
        """
        if not self.mesh_present:
            if self.scan is not None and self.scan.state == FAILED:
                return FAILED
            return NOT_FOUND
        if self.scan is not None:
            return self.scan.state
        return UNKNOWN

    @property
    def stale(self) -> bool:
        # log claims success but the mesh it describes is gone
        return self.scan is not None and not self.mesh_present and self.scan.state == SUCCEEDED

    @property
    def counts(self) -> Dict[str, int]:
        return dict(self.scan.counts) if self.scan else {}


def mesh_status(config: CaseConfig, log_path: Optional[Path] = None) -> MeshStatus:
    """
    Read-only mesh inspection: mesh output on disk first, then the latest
    mesh log (if any) scanned for the mesh marker set.
    """
    mesh_dir = config.mesh_path
    present = mesh_dir.is_dir()

    if log_path is None:
        log_path = latest_log(config, "mesh")
    scan = scan_log(log_path, marker_set("mesh", config.markers)) if log_path else None

    procs = [p for p in config.case_dir.glob("processor*") if p.is_dir()]

    return MeshStatus(
        mesh_dir=mesh_dir,
        mesh_present=present,
        log_path=log_path if scan else None,
        scan=scan,
        processor_dirs=len(procs),
    )


# ---------------------------------------------------------------------------
# Solver
# ---------------------------------------------------------------------------
@dataclass
class SolverStatus:
    log_path: Optional[Path] = None
    scan: Optional[LogScan] = None
    running: Optional[bool] = None
    process: Optional[str] = None
    post_dir: Optional[Path] = None
    post_entries: Optional[List[DirEntry]] = None

    @property
    def state(self) -> str:
        if self.scan is None:
            return NOT_FOUND
        state = self.scan.state
        return IN_PROGRESS if state == UNKNOWN else state

    @property
    def recent(self) -> List[str]:
        return list(self.scan.progress) if self.scan else []

    @property
    def execution_time(self) -> Optional[str]:
        return self.scan.lines.get("execution_time") if self.scan else None


def solver_status(
    config: CaseConfig,
    log_path: Optional[Path] = None,
    probe: Optional[ProcessProbe] = None,
    window: int = 5,
) -> SolverStatus:
    markers = marker_set("solver", config.markers)
    if log_path is None:
        log_path = latest_log(config, "solver")

    scan = scan_log(log_path, markers, window=window) if log_path else None
    if scan is None:
        return SolverStatus()

    probe = probe or process_running
    running = probe(markers.process) if markers.process else None

    return SolverStatus(
        log_path=log_path,
        scan=scan,
        running=running,
        process=markers.process,
        post_dir=config.post_path,
        post_entries=_list_dir(config.post_path),
    )
