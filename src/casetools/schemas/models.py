from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, Field

class SubmittedJobRecord(BaseModel):
    # One job handed to the scheduler during a workflow run
    role: str
    name: str
    job_id: str
    dependency: Optional[str] = None
    log_file: Optional[str] = None

class SubmissionRecord(BaseModel):
    # Schema for one orchestrator invocation, appended to logs/submissions.jsonl
    schema_version: str = Field(default='0.1.0')
    started: str
    finished: str
    mode: str
    case_dir: str
    workflow_log: str
    status: str
    jobs: List[SubmittedJobRecord] = Field(default_factory=list)
    error: Optional[str] = None
    validation_errors: int = 0
    validation_warnings: int = 0
