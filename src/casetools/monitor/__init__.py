"""
Read-only job inspection and log housekeeping.

Exports the public API:
- mesh_status / solver_status
- scan_log / MarkerSet
- archive_logs
"""
from .archive import ArchiveResult, archive_logs
from .markers import MESH_MARKERS, SOLVER_MARKERS, LogScan, MarkerSet, marker_set, scan_log
from .status import MeshStatus, SolverStatus, mesh_status, solver_status
