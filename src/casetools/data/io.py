from __future__ import annotations
import json, pathlib
from typing import Dict, Any, List

def jsonl_append(path: str, rec: Dict[str, Any]):
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("a", encoding="utf-8") as f:
        f.write(json.dumps(rec, ensure_ascii=False) + "\n")

def jsonl_read(path: str) -> List[Dict[str, Any]]:
    """Read every well-formed record; blank or truncated lines are skipped."""
    p = pathlib.Path(path)
    if not p.exists():
        return []
    rows = []
    with p.open("r", encoding="utf-8", errors="ignore") as f:
        for line in f:
            s = line.strip()
            if not s:
                continue
            try:
                rows.append(json.loads(s))
            except json.JSONDecodeError:
                continue
    return rows
