from __future__ import annotations

import time
from typing import Iterable, List

import pandas as pd

from casetools.monitor.logs import LogFile
from casetools.slurm.scheduler import QUEUE_FIELDS, QueueEntry

QUEUE_COLUMNS = {
    "job_id": "JOBID",
    "name": "NAME",
    "state": "STATE",
    "result": "RESULT",
    "elapsed": "TIME",
    "nodes": "NODES",
    "cpus": "CPUS",
    "memory": "MEMORY",
    "time_limit": "TIME_LIMIT",
    "start_time": "START_TIME",
}


def _human_size(n: int) -> str:
    size = float(n)
    for unit in ("B", "K", "M", "G"):
        if size < 1024 or unit == "G":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{n}B"


def queue_frame(entries: Iterable[QueueEntry]) -> pd.DataFrame:
    rows = []
    for e in entries:
        row = {k: getattr(e, k) for k in QUEUE_FIELDS}
        row["result"] = e.result
        rows.append(row)
    df = pd.DataFrame(rows, columns=list(QUEUE_COLUMNS))
    return df.rename(columns=QUEUE_COLUMNS)


def queue_table(entries: Iterable[QueueEntry]) -> str:
    df = queue_frame(entries)
    if df.empty:
        return "No jobs found"
    return df.to_string(index=False)


def logs_frame(files: List[LogFile]) -> pd.DataFrame:
    rows = [
        {
            "FILE": f.name,
            "SIZE": _human_size(f.size),
            "MODIFIED": time.strftime("%Y-%m-%d %H:%M", time.localtime(f.mtime)),
        }
        for f in files
    ]
    return pd.DataFrame(rows, columns=["FILE", "SIZE", "MODIFIED"])


def logs_table(files: List[LogFile]) -> str:
    if not files:
        return ""
    return logs_frame(files).to_string(index=False)
