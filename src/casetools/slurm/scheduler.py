"""
SLURM collaborator: submission with optional afterok dependency, queue
queries, and the scancel hint handed to operators.

Every external command goes through ``runner`` so callers (and tests) can
substitute the process boundary.
"""

from __future__ import annotations

import getpass
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from casetools.config import JobSpec, SchedulerCommands
from casetools.errors import SchedulerQueryError, SubmissionError

Pathish = Union[str, Path]
Runner = Callable[..., subprocess.CompletedProcess]

JOB_ID_RE = re.compile(r"Submitted batch job (\d+)")

# ---------------------------------------------------------------------------
# Job outcome labels, always re-derived from the scheduler or from logs
# ---------------------------------------------------------------------------
PENDING = "pending"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"
CANCELLED = "cancelled"
UNKNOWN = "unknown"

SLURM_STATES = {
    "PENDING": PENDING,
    "CONFIGURING": PENDING,
    "REQUEUED": PENDING,
    "RUNNING": RUNNING,
    "COMPLETING": RUNNING,
    "SUSPENDED": RUNNING,
    "COMPLETED": SUCCEEDED,
    "FAILED": FAILED,
    "TIMEOUT": FAILED,
    "NODE_FAIL": FAILED,
    "OUT_OF_MEMORY": FAILED,
    "BOOT_FAIL": FAILED,
    "PREEMPTED": FAILED,
    "DEADLINE": FAILED,
    "CANCELLED": CANCELLED,
}

QUEUE_FIELDS = ["job_id", "name", "state", "elapsed", "nodes", "cpus", "memory", "time_limit", "start_time"]
QUEUE_FORMAT = "%i|%j|%T|%M|%D|%C|%m|%l|%S"


def job_result(slurm_state: str) -> str:
    # squeue may print e.g. "CANCELLED by 1234"
    key = slurm_state.strip().split(" ")[0].upper()
    return SLURM_STATES.get(key, UNKNOWN)


def _default_runner(cmd: Sequence[str], cwd: Optional[str] = None) -> subprocess.CompletedProcess:
    return subprocess.run(list(cmd), cwd=cwd, capture_output=True, text=True)


def current_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Dependency:
    """Start only once ``job_id`` reaches ``condition`` (afterok = exit code 0)."""

    job_id: str
    condition: str = "afterok"

    @property
    def expression(self) -> str:
        return f"{self.condition}:{self.job_id}"


@dataclass(frozen=True)
class SubmitResult:
    job_id: str
    job_name: str
    command: List[str]
    output: str
    dependency: Optional[Dependency] = None


@dataclass(frozen=True)
class QueueEntry:
    job_id: str
    name: str
    state: str
    elapsed: str = ""
    nodes: str = ""
    cpus: str = ""
    memory: str = ""
    time_limit: str = ""
    start_time: str = ""

    @property
    def result(self) -> str:
        return job_result(self.state)

    @classmethod
    def from_line(cls, line: str) -> Optional["QueueEntry"]:
        parts = [p.strip() for p in line.split("|")]
        if len(parts) < 3 or not parts[0]:
            return None
        parts += [""] * (len(QUEUE_FIELDS) - len(parts))
        return cls(**dict(zip(QUEUE_FIELDS, parts[: len(QUEUE_FIELDS)])))


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------
class Scheduler:
    def __init__(
        self,
        commands: Optional[SchedulerCommands] = None,
        runner: Optional[Runner] = None,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self.commands = commands or SchedulerCommands()
        self.runner = runner or _default_runner
        self.which = which or shutil.which

    def available(self, command: Optional[str] = None) -> bool:
        return self.which(command or self.commands.submit) is not None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def build_submit_command(
        self,
        job: JobSpec,
        script: Pathish,
        log_dir: Optional[Pathish] = None,
        dependency: Optional[Dependency] = None,
    ) -> List[str]:
        res = job.resources
        cmd = [
            self.commands.submit,
            f"--job-name={job.name}",
            f"--ntasks={res.cores}",
            f"--mem={res.mem}",
            f"--time={res.time}",
        ]
        if log_dir is not None:
            cmd.append(f"--output={Path(log_dir) / job.log_pattern}")
        if dependency is not None:
            cmd.append(f"--dependency={dependency.expression}")
        cmd.append(str(script))
        return cmd

    def submit(
        self,
        job: JobSpec,
        script: Pathish,
        *,
        log_dir: Optional[Pathish] = None,
        cwd: Optional[Pathish] = None,
        dependency: Optional[Dependency] = None,
    ) -> SubmitResult:
        """
        Hand one job to the scheduler and return the id it assigned.

        With a dependency the scheduler holds the job until the predecessor
        succeeds and cancels it if the predecessor fails; nothing here
        re-implements that. Raises SubmissionError on a non-zero exit or
        when no id can be parsed. No retries.
        """
        cmd = self.build_submit_command(job, script, log_dir=log_dir, dependency=dependency)
        try:
            proc = self.runner(cmd, cwd=str(cwd) if cwd else None)
        except OSError as exc:
            raise SubmissionError(
                f"Failed to run {self.commands.submit} for {job.name}: {exc}",
                output=str(exc),
                job_name=job.name,
            ) from exc

        output = ((proc.stdout or "") + (proc.stderr or "")).strip()
        if proc.returncode != 0:
            raise SubmissionError(
                f"Failed to submit {job.role} job {job.name}",
                output=output,
                returncode=proc.returncode,
                job_name=job.name,
            )

        m = JOB_ID_RE.search(proc.stdout or "")
        if not m:
            raise SubmissionError(
                f"Could not extract {job.role} job ID from output: {output}",
                output=output,
                returncode=proc.returncode,
                job_name=job.name,
            )

        return SubmitResult(
            job_id=m.group(1),
            job_name=job.name,
            command=cmd,
            output=output,
            dependency=dependency,
        )

    # ------------------------------------------------------------------
    # Queue inspection (read-only)
    # ------------------------------------------------------------------
    def queue(self, user: Optional[str] = None, names: Optional[Iterable[str]] = None) -> List[QueueEntry]:
        cmd = [self.commands.query, "-u", user or current_user()]
        names = list(names or [])
        if names:
            cmd.append(f"--name={','.join(names)}")
        cmd += ["--noheader", "-o", QUEUE_FORMAT]

        try:
            proc = self.runner(cmd)
        except OSError as exc:
            raise SchedulerQueryError(f"Failed to run {self.commands.query}: {exc}") from exc

        if proc.returncode != 0:
            raise SchedulerQueryError(
                f"{self.commands.query} exited with status {proc.returncode}: "
                f"{(proc.stderr or '').strip()}"
            )

        entries = []
        for line in (proc.stdout or "").splitlines():
            entry = QueueEntry.from_line(line)
            if entry is not None:
                entries.append(entry)
        return entries

    def cancel_command(self, job_ids: Iterable[str]) -> str:
        return " ".join([self.commands.cancel, *[str(j) for j in job_ids]])
