"""
Pre-flight checks for a case directory.

A flat, order-independent checklist: every check runs, every finding is
collected, nothing raises. ``ValidationReport.error_count > 0`` is the
submission gate; warnings are advisory.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from casetools.config import CaseConfig

OK = "ok"
WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class Finding:
    severity: str
    message: str
    path: Optional[str] = None


@dataclass
class ValidationReport:
    case_dir: Path
    findings: List[Finding] = field(default_factory=list)

    def add(self, severity: str, message: str, path: Optional[str] = None) -> None:
        self.findings.append(Finding(severity, message, path))

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity == ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.severity == WARNING]

    @property
    def passed(self) -> List[Finding]:
        return [f for f in self.findings if f.severity == OK]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def ok(self) -> bool:
        return self.error_count == 0

    def summary(self) -> str:
        if self.ok:
            line = "All pre-flight checks passed"
            if self.warning_count:
                line += f" ({self.warning_count} warning(s))"
            return line
        return (
            f"Configuration check failed with {self.error_count} error(s), "
            f"{self.warning_count} warning(s)"
        )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(errors="ignore")
    except OSError:
        return ""


class ConfigValidator:
    """
    Checks that the artifacts the external mesher and solver consume are
    present before anything is handed to the scheduler.

    ``which`` resolves scheduler commands on PATH; tests replace it.
    """

    def __init__(
        self,
        config: CaseConfig,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self.config = config
        self.which = which or shutil.which

    # ------------------------------------------------------------------
    def validate(self) -> ValidationReport:
        report = ValidationReport(case_dir=self.config.case_dir)
        self._check_scheduler(report)
        self._check_job_scripts(report)
        self._check_dirs(report)
        self._check_required_files(report)
        self._check_optional_files(report)
        self._check_geometry(report)
        self._check_cross_references(report)
        self._check_boundary_conditions(report)
        self._check_executables(report)
        self._check_log_dir(report)
        return report

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------
    def _check_scheduler(self, report: ValidationReport) -> None:
        cmd = self.config.scheduler.submit
        if self.which(cmd):
            report.add(OK, f"Scheduler detected ({cmd} available)")
        else:
            report.add(ERROR, f"{cmd} command not found. Not on a SLURM system?")

    def _check_job_scripts(self, report: ValidationReport) -> None:
        for role in ("mesh", "solver"):
            script = self.config.script_path(role)
            rel = f"{self.config.scripts_dir}/{script.name}"
            if script.is_file():
                report.add(OK, f"{script.name} found", rel)
            else:
                report.add(ERROR, f"{script.name} not found", rel)

    def _check_dirs(self, report: ValidationReport) -> None:
        for rel in self.config.required_dirs:
            if self.config.path(rel).is_dir():
                report.add(OK, f"{rel}/ directory found", rel)
            else:
                report.add(ERROR, f"{rel}/ directory not found", rel)

    def _check_required_files(self, report: ValidationReport) -> None:
        for rel in self.config.required_files:
            p = self.config.path(rel)
            if not p.is_file():
                report.add(ERROR, f"MISSING: {rel}", rel)
                continue
            size = p.stat().st_size
            if size == 0:
                report.add(ERROR, f"{rel} is EMPTY", rel)
            else:
                report.add(OK, f"{rel} ({size} bytes)", rel)

    def _check_optional_files(self, report: ValidationReport) -> None:
        for rel in self.config.optional_files:
            if self.config.path(rel).is_file():
                report.add(OK, f"{rel} found", rel)
            else:
                report.add(WARNING, f"{rel} not found (optional)", rel)

    def _check_geometry(self, report: ValidationReport) -> None:
        geom = self.config.path(self.config.geometry_dir)
        stls = sorted(geom.glob("*.stl")) if geom.is_dir() else []
        if not stls:
            report.add(ERROR, f"No STL files found in {self.config.geometry_dir}/",
                       self.config.geometry_dir)
        else:
            report.add(OK, f"{len(stls)} STL geometry files found", self.config.geometry_dir)

    def _reported_missing(self, rel: str) -> bool:
        # one error per missing required file; content checks skip it
        return rel in self.config.required_files and not self.config.path(rel).is_file()

    def _check_cross_references(self, report: ValidationReport) -> None:
        for rel, needle in self.config.cross_references:
            p = self.config.path(rel)
            if self._reported_missing(rel):
                continue
            if needle in _read_text(p):
                report.add(OK, f"'{needle}' found in {rel}", rel)
            else:
                report.add(ERROR, f"'{needle}' NOT found in {rel}", rel)

    def _check_boundary_conditions(self, report: ValidationReport) -> None:
        for rel in self.config.bc_files:
            if self._reported_missing(rel):
                continue
            text = _read_text(self.config.path(rel))
            for patch in self.config.patches:
                if patch in text:
                    report.add(OK, f"{rel} includes {patch} BC", rel)
                else:
                    report.add(ERROR, f"{rel} MISSING {patch} BC", rel)

    def _check_executables(self, report: ValidationReport) -> None:
        for rel in self.config.executables or []:
            p = self.config.path(rel)
            if p.is_file() and os.access(p, os.X_OK):
                report.add(OK, f"{rel} is executable", rel)
            else:
                report.add(WARNING, f"{rel} is NOT executable (run: chmod +x {rel})", rel)

    def _check_log_dir(self, report: ValidationReport) -> None:
        if self.config.log_path.is_dir():
            report.add(OK, f"{self.config.log_dir}/ directory exists", self.config.log_dir)
        else:
            report.add(WARNING, f"{self.config.log_dir}/ directory missing (will be created)",
                       self.config.log_dir)
