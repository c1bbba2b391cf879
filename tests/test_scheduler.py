import pytest

from casetools.config import CaseConfig
from casetools.errors import SchedulerQueryError, SubmissionError
from casetools.slurm.scheduler import (
    CANCELLED,
    FAILED,
    PENDING,
    RUNNING,
    UNKNOWN,
    Dependency,
    QueueEntry,
    Scheduler,
    job_result,
)


@pytest.fixture
def mesh_job(tmp_path):
    return CaseConfig(case_dir=tmp_path).job("mesh")


def test_build_submit_command_carries_resources_and_dependency(mesh_job, tmp_path):
    cmd = Scheduler().build_submit_command(
        mesh_job, tmp_path / "submit_mesh.slurm", log_dir=tmp_path / "logs", dependency=Dependency("12345")
    )
    assert cmd[0] == "sbatch"
    assert "--job-name=BeamClean_mesh" in cmd
    assert "--ntasks=12" in cmd
    assert "--mem=36G" in cmd
    assert "--time=01:00:00" in cmd
    assert f"--output={tmp_path / 'logs' / 'mesh_%j.out'}" in cmd
    assert "--dependency=afterok:12345" in cmd
    assert cmd[-1] == str(tmp_path / "submit_mesh.slurm")


def test_no_dependency_flag_without_dependency(mesh_job):
    cmd = Scheduler().build_submit_command(mesh_job, "submit_mesh.slurm")
    assert not any(c.startswith("--dependency") for c in cmd)


def test_submit_parses_job_id(mesh_job, runner_factory, submitted, tmp_path):
    runner = runner_factory([submitted(4242)])
    result = Scheduler(runner=runner).submit(mesh_job, "submit_mesh.slurm", cwd=tmp_path)

    assert result.job_id == "4242"
    assert result.job_name == "BeamClean_mesh"
    assert result.dependency is None
    assert runner.calls == [result.command]


def test_submit_nonzero_exit_raises_with_output(mesh_job, runner_factory):
    runner = runner_factory([(1, "", "sbatch: error: Invalid account\n")])
    with pytest.raises(SubmissionError) as ei:
        Scheduler(runner=runner).submit(mesh_job, "submit_mesh.slurm")
    assert ei.value.returncode == 1
    assert "Invalid account" in ei.value.output
    assert ei.value.job_name == "BeamClean_mesh"


def test_submit_without_job_id_raises(mesh_job, runner_factory):
    runner = runner_factory([(0, "queued, probably\n", "")])
    with pytest.raises(SubmissionError, match="Could not extract"):
        Scheduler(runner=runner).submit(mesh_job, "submit_mesh.slurm")


def test_submit_oserror_becomes_submission_error(mesh_job):
    def boom(cmd, cwd=None):
        raise FileNotFoundError("sbatch")

    with pytest.raises(SubmissionError):
        Scheduler(runner=boom).submit(mesh_job, "submit_mesh.slurm")


def test_queue_parses_rows(runner_factory):
    out = (
        "101|BeamClean_mesh|RUNNING|5:02|1|12|36G|1:00:00|2026-10-17T09:00:00\n"
        "102|BeamClean_solver|PENDING|0:00|1|48|144G|8:00:00|N/A\n"
        "\n"
    )
    runner = runner_factory([(0, out, "")])
    entries = Scheduler(runner=runner).queue(user="alice", names=["BeamClean_mesh", "BeamClean_solver"])

    assert [e.job_id for e in entries] == ["101", "102"]
    assert [e.result for e in entries] == [RUNNING, PENDING]
    cmd = runner.calls[0]
    assert cmd[:3] == ["squeue", "-u", "alice"]
    assert "--name=BeamClean_mesh,BeamClean_solver" in cmd


def test_queue_failure_raises(runner_factory):
    runner = runner_factory([(1, "", "slurm_load_jobs error")])
    with pytest.raises(SchedulerQueryError, match="slurm_load_jobs"):
        Scheduler(runner=runner).queue(user="alice")


def test_short_queue_line_is_padded():
    entry = QueueEntry.from_line("7|job|COMPLETING")
    assert entry.job_id == "7"
    assert entry.start_time == ""
    assert QueueEntry.from_line("garbage") is None


@pytest.mark.parametrize(
    "state, expected",
    [("RUNNING", RUNNING), ("TIMEOUT", FAILED), ("CANCELLED by 1234", CANCELLED), ("WEIRD", UNKNOWN)],
)
def test_job_result(state, expected):
    assert job_result(state) == expected


def test_cancel_command_lists_ids():
    assert Scheduler().cancel_command(["1", "2"]) == "scancel 1 2"


def test_available_uses_which():
    assert Scheduler(which=lambda c: None).available() is False
    assert Scheduler(which=lambda c: "/usr/bin/" + c).available("squeue") is True
