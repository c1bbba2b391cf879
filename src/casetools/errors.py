from __future__ import annotations

from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from casetools.validate import ValidationReport


class CaseToolsError(Exception):
    """Base class for errors that abort a workflow invocation."""


class ConfigurationError(CaseToolsError):
    """
    Pre-flight validation failed.

    The full report is attached so callers can print every finding,
    not just the first one.
    """

    def __init__(self, report: "ValidationReport") -> None:
        self.report = report
        super().__init__(
            f"Configuration check failed with {report.error_count} error(s)"
        )


class MeshNotReadyError(CaseToolsError):
    """Solver-only submission refused: no mesh output on disk."""

    def __init__(self, mesh_dir: Path) -> None:
        self.mesh_dir = Path(mesh_dir)
        super().__init__(f"Mesh not found in {self.mesh_dir}")


class SubmissionError(CaseToolsError):
    """
    The scheduler rejected a submission, or its output carried no job id.

    ``output`` holds the raw stdout/stderr for diagnosis.
    """

    def __init__(
        self,
        message: str,
        output: str = "",
        returncode: Optional[int] = None,
        job_name: Optional[str] = None,
    ) -> None:
        self.output = output
        self.returncode = returncode
        self.job_name = job_name
        super().__init__(message)


class SchedulerQueryError(CaseToolsError):
    """The queue query command could not be run or exited non-zero."""
