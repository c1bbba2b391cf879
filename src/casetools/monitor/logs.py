from __future__ import annotations

import os
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from casetools.config import CaseConfig

WORKFLOW_GLOB = "workflow_*.log"


@dataclass(frozen=True)
class LogFile:
    path: Path
    size: int
    mtime: float

    @property
    def name(self) -> str:
        return self.path.name


def log_globs(config: CaseConfig) -> Dict[str, str]:
    return {
        "mesh": config.job("mesh").log_glob,
        "solver": config.job("solver").log_glob,
        "workflow": WORKFLOW_GLOB,
    }


def list_logs(log_dir: Path, pattern: str, limit: Optional[int] = 5) -> List[LogFile]:
    """Top-level files in ``log_dir`` matching ``pattern``, newest first."""
    log_dir = Path(log_dir)
    if not log_dir.is_dir():
        return []
    files = []
    for p in log_dir.glob(pattern):
        if not p.is_file():
            continue
        st = p.stat()
        files.append(LogFile(path=p, size=st.st_size, mtime=st.st_mtime))
    files.sort(key=lambda f: (f.mtime, f.name), reverse=True)
    return files if limit is None else files[:max(limit, 0)]


def latest_log(config: CaseConfig, kind: str) -> Optional[Path]:
    files = list_logs(config.log_path, log_globs(config)[kind], limit=1)
    return files[0].path if files else None


def tail(path: Path, lines: int = 20) -> List[str]:
    with Path(path).open("r", errors="ignore") as f:
        return [ln.rstrip("\n") for ln in deque(f, maxlen=max(lines, 0))]


def follow(
    path: Path,
    poll: float = 1.0,
    max_idle_polls: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[str]:
    """
    Yield lines appended to ``path`` after the call, like ``tail -f``.

    Runs until interrupted unless ``max_idle_polls`` is set.
    """
    with Path(path).open("r", errors="ignore") as f:
        f.seek(0, os.SEEK_END)
        idle = 0
        while True:
            line = f.readline()
            if line:
                idle = 0
                yield line.rstrip("\n")
                continue
            if max_idle_polls is not None and idle >= max_idle_polls:
                return
            idle += 1
            sleep(poll)
