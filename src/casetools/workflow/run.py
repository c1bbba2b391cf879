from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from casetools.schemas.models import SubmissionRecord, SubmittedJobRecord
from casetools.validate import ValidationReport

FULL = "full"
MESH_ONLY = "mesh-only"
SOLVER_ONLY = "solver-only"
CHECK_ONLY = "check-only"

MODES = (FULL, MESH_ONLY, SOLVER_ONLY, CHECK_ONLY)

# Run outcomes
CHECKED = "checked"
SUBMITTED = "submitted"
FAILED = "failed"


def _timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime())


@dataclass(frozen=True)
class SubmittedJob:
    role: str
    name: str
    job_id: str
    log_file: Path
    dependency: Optional[str] = None


@dataclass
class WorkflowRun:
    """
    One orchestrator invocation. Jobs are appended in submission order;
    once ``close`` is called the run is final.
    """

    mode: str
    case_dir: Path
    log_path: Path
    started: str = field(default_factory=_timestamp)
    jobs: List[SubmittedJob] = field(default_factory=list)
    report: Optional[ValidationReport] = None
    status: str = "running"
    error: Optional[str] = None
    finished: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.finished is not None

    @property
    def job_ids(self) -> Dict[str, str]:
        return {j.role: j.job_id for j in self.jobs}

    def add_job(self, job: SubmittedJob) -> None:
        if self.closed:
            raise RuntimeError("WorkflowRun is closed")
        self.jobs.append(job)

    def close(self, status: str, error: Optional[str] = None) -> None:
        if self.closed:
            raise RuntimeError("WorkflowRun is closed")
        self.status = status
        self.error = error
        self.finished = _timestamp()

    def to_record(self) -> SubmissionRecord:
        return SubmissionRecord(
            started=self.started,
            finished=self.finished or _timestamp(),
            mode=self.mode,
            case_dir=str(self.case_dir),
            workflow_log=str(self.log_path),
            status=self.status,
            jobs=[
                SubmittedJobRecord(
                    role=j.role,
                    name=j.name,
                    job_id=j.job_id,
                    dependency=j.dependency,
                    log_file=str(j.log_file),
                )
                for j in self.jobs
            ],
            error=self.error,
            validation_errors=self.report.error_count if self.report else 0,
            validation_warnings=self.report.warning_count if self.report else 0,
        )
