from __future__ import annotations

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

LOG_PATTERNS = ("*.out", "*.log")
SECONDS_PER_DAY = 86400


@dataclass
class ArchiveResult:
    archive_dir: Path
    moved: List[Path] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.moved)


def archive_dir_for(log_dir: Path, now: float) -> Path:
    return Path(log_dir) / f"archive_{time.strftime('%Y%m%d', time.localtime(now))}"


def _free_name(dest_dir: Path, name: str) -> Path:
    target = dest_dir / name
    n = 1
    while target.exists():
        target = dest_dir / f"{name}.{n}"
        n += 1
    return target


def archive_logs(
    log_dir: Path,
    retention_days: int = 7,
    now: Optional[float] = None,
    patterns: Sequence[str] = LOG_PATTERNS,
) -> ArchiveResult:
    """
    Move top-level log files older than ``retention_days`` into
    ``log_dir/archive_YYYYMMDD/``. Files are moved, never deleted; a second
    run with nothing newly eligible moves nothing.
    """
    log_dir = Path(log_dir)
    now = time.time() if now is None else now
    dest = archive_dir_for(log_dir, now)
    result = ArchiveResult(archive_dir=dest)

    if not log_dir.is_dir():
        return result

    cutoff = now - retention_days * SECONDS_PER_DAY
    candidates = set()
    for pattern in patterns:
        candidates.update(p for p in log_dir.glob(pattern) if p.is_file())

    for p in sorted(candidates):
        if p.stat().st_mtime >= cutoff:
            continue
        dest.mkdir(parents=True, exist_ok=True)
        target = _free_name(dest, p.name)
        shutil.move(str(p), str(target))
        result.moved.append(target)

    return result
