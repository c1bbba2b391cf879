# casetools/workflow/orchestrator.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from casetools.config import CaseConfig
from casetools.data.io import jsonl_append
from casetools.errors import CaseToolsError, ConfigurationError, MeshNotReadyError, SubmissionError
from casetools.slurm.scheduler import Dependency, Scheduler, SubmitResult
from casetools.validate import ERROR, OK, WARNING, ConfigValidator, ValidationReport
from casetools.workflow.logbook import SUCCESS, get_logger, workflow_log, workflow_log_path
from casetools.workflow.run import (
    CHECK_ONLY,
    CHECKED,
    FAILED,
    FULL,
    MESH_ONLY,
    MODES,
    SOLVER_ONLY,
    SUBMITTED,
    SubmittedJob,
    WorkflowRun,
)

SUBMISSIONS_FILE = "submissions.jsonl"

_SEVERITY_LEVEL = {OK: SUCCESS, WARNING: logging.WARNING, ERROR: logging.ERROR}


# ===============================================================
class WorkflowOrchestrator:
    """
    Validates a case and submits its mesh and/or solver jobs.

    Modes:
      full         mesh job, then solver job with afterok on the mesh id
      mesh-only    mesh job alone
      solver-only  solver job alone; mesh output must already be on disk
      check-only   validation report, no submission

    Submission is fire-and-forget: nothing here waits on a job. One run
    per case directory at a time; concurrent runs are not guarded against.
    """

    def __init__(
        self,
        config: CaseConfig,
        scheduler: Optional[Scheduler] = None,
        validator: Optional[ConfigValidator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.scheduler = scheduler or Scheduler(config.scheduler)
        self.validator = validator or ConfigValidator(config)
        self.log = logger or get_logger()

    # ---------------------------------------------------------------
    # Entry point
    # ---------------------------------------------------------------
    def run(self, mode: str = FULL) -> WorkflowRun:
        if mode not in MODES:
            raise ValueError(f"Unknown mode '{mode}'. Expected one of {list(MODES)}")

        report = self.validator.validate()

        log_dir = self.config.log_path
        log_dir.mkdir(parents=True, exist_ok=True)
        run = WorkflowRun(mode=mode, case_dir=self.config.case_dir, log_path=workflow_log_path(log_dir))

        with workflow_log(self.log, run.log_path):
            try:
                self._header("OpenFOAM Case Workflow Automation")
                self.log.info(f"Case directory: {self.config.case_dir}")
                self.log.info(f"Workflow log: {run.log_path}")
                self.log.info(f"Mode: {mode}")

                run.report = report
                self._log_report(report)

                if mode == CHECK_ONLY:
                    if report.ok:
                        self.log.log(SUCCESS, "Check complete. Ready for submission.")
                    else:
                        self.log.error("Check complete. Fix errors before submitting.")
                    run.close(CHECKED)
                    return run

                if not report.ok:
                    self.log.error("Configuration check failed. Aborting.")
                    raise ConfigurationError(report)

                if mode == MESH_ONLY:
                    self._submit(run, "mesh")
                elif mode == SOLVER_ONLY:
                    self._require_mesh()
                    self._submit(run, "solver")
                else:
                    self._submit_chain(run)

                self._summary(run)
                run.close(SUBMITTED)
                return run

            except CaseToolsError as exc:
                run.close(FAILED, error=str(exc))
                raise
            finally:
                self._record(run)

    # ---------------------------------------------------------------
    # Steps
    # ---------------------------------------------------------------
    def _require_mesh(self) -> None:
        mesh = self.config.mesh_path
        if not mesh.is_dir():
            self.log.error(f"Mesh not found in {self.config.mesh_dir}/")
            self.log.error("Run mesh generation first or use full workflow")
            raise MeshNotReadyError(mesh)

    def _submit_chain(self, run: WorkflowRun) -> None:
        # a mesh failure propagates here, so the solver is never attempted
        try:
            mesh = self._submit(run, "mesh")
        except SubmissionError:
            self.log.error("Mesh job submission failed. Aborting workflow.")
            raise

        try:
            self._submit(run, "solver", dependency=Dependency(mesh.job_id))
        except SubmissionError:
            # the mesh job stays queued; cancelling it is the operator's call
            self.log.error("Solver job submission failed.")
            self.log.warning(f"Mesh job {mesh.job_id} is still running/queued")
            self.log.info(f"You can cancel it with: {self.scheduler.cancel_command([mesh.job_id])}")
            raise

    def _submit(self, run: WorkflowRun, role: str, dependency: Optional[Dependency] = None) -> SubmitResult:
        job = self.config.job(role)
        self._header(f"Submitting {role.capitalize()} Job")
        if dependency is not None:
            self.log.info(f"Setting dependency: {dependency.expression}")

        try:
            result = self.scheduler.submit(
                job,
                self.config.script_path(role),
                log_dir=self.config.log_path,
                cwd=self.config.case_dir,
                dependency=dependency,
            )
        except SubmissionError as exc:
            self.log.error(str(exc))
            if exc.output:
                self.log.error(exc.output)
            raise

        log_file = self.config.log_path / job.log_name(result.job_id)
        run.add_job(
            SubmittedJob(
                role=role,
                name=job.name,
                job_id=result.job_id,
                log_file=log_file,
                dependency=dependency.expression if dependency else None,
            )
        )

        res = job.resources
        self.log.log(SUCCESS, f"{role.capitalize()} job submitted: Job ID = {result.job_id}")
        self.log.info(f"Job name: {job.name}")
        self.log.info(f"Cores: {res.cores}")
        self.log.info(f"Memory: {res.mem}")
        self.log.info(f"Time limit: {res.time}")
        self.log.info(f"Log file: {self._rel(log_file)}")
        if dependency is not None:
            self.log.info(f"Dependency: Will start after job {dependency.job_id} completes successfully")
        return result

    # ---------------------------------------------------------------
    # Reporting
    # ---------------------------------------------------------------
    def _header(self, title: str) -> None:
        self.log.info("=" * 40)
        self.log.info(title)
        self.log.info("=" * 40)

    def _log_report(self, report: ValidationReport) -> None:
        self._header("Pre-flight Configuration Check")
        for finding in report.findings:
            self.log.log(_SEVERITY_LEVEL[finding.severity], finding.message)
        level = SUCCESS if report.ok else logging.ERROR
        self.log.log(level, report.summary())

    def _summary(self, run: WorkflowRun) -> None:
        ids = run.job_ids
        query = self.config.scheduler.query

        if run.mode == FULL:
            self._header("Workflow Submission Summary")
            self.log.log(SUCCESS, "Full workflow submitted successfully!")
            mesh, solver = run.jobs
            self.log.info("Job Chain:")
            self.log.info(f"  1. Mesh Generation: Job {mesh.job_id}")
            self.log.info("     -> Will run immediately or when resources available")
            self.log.info(f"  2. Solver: Job {solver.job_id}")
            self.log.info("     -> Will run ONLY after mesh job completes successfully")
            self.log.info("     -> Will be CANCELLED if mesh job fails")
        else:
            self._header("Submission Summary")
            for job in run.jobs:
                self.log.log(SUCCESS, f"{job.role.capitalize()} job submitted: {job.job_id}")

        self.log.info("Monitoring Commands:")
        self.log.info(f"  {query} -u $USER")
        for job in run.jobs:
            self.log.info(f"  tail -f {job.log_file}")
        self.log.info("Management Commands:")
        for job in run.jobs:
            self.log.info(f"  {self.scheduler.cancel_command([job.job_id])}")
        if len(ids) > 1:
            self.log.info(f"  {self.scheduler.cancel_command(ids.values())}")
        self.log.log(SUCCESS, f"Workflow log saved to: {run.log_path}")

    def _record(self, run: WorkflowRun) -> None:
        jsonl_append(self.config.log_path / SUBMISSIONS_FILE, run.to_record().model_dump())

    def _rel(self, path: Path) -> str:
        try:
            return str(Path(path).relative_to(self.config.case_dir))
        except ValueError:
            return str(path)
