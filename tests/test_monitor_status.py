import pytest

from casetools.config import CaseConfig
from casetools.monitor import marker_set, mesh_status, scan_log, solver_status
from casetools.monitor.markers import FAILED, IN_PROGRESS, NOT_FOUND, SUCCEEDED, UNKNOWN

CHECKMESH_OK = """\
Mesh stats
    points:           204812
    faces:            583210
    internal faces:   559100
    cells:            189744

Checking geometry...
    Boundary openness (-1.2e-17 3.4e-18 0) OK.

Mesh OK.

End
"""

CHECKMESH_FAILED = """\
Mesh stats
    points:           1200
    cells:            900

 ***Failed 3 mesh checks.
"""

SOLVER_RUNNING = "".join(
    f"Time = {i}\n\nsmoothSolver:  Solving for Ux\nExecutionTime = {i * 1.5} s  ClockTime = {i * 2} s\n\n"
    for i in range(1, 9)
)


@pytest.fixture
def cfg(tmp_path):
    (tmp_path / "logs").mkdir()
    return CaseConfig(case_dir=tmp_path)


def _write_log(cfg, name, text):
    p = cfg.log_path / name
    p.write_text(text)
    return p


def test_mesh_ok_and_counts(cfg):
    cfg.mesh_path.mkdir(parents=True)
    _write_log(cfg, "mesh_100.out", CHECKMESH_OK)

    st = mesh_status(cfg)

    assert st.state == SUCCEEDED
    assert st.mesh_present
    assert st.counts == {"cells": 189744, "points": 204812, "faces": 559100}
    assert st.log_path.name == "mesh_100.out"


def test_mesh_failed_marker(cfg):
    _write_log(cfg, "mesh_100.out", CHECKMESH_FAILED)
    st = mesh_status(cfg)
    assert st.state == FAILED
    assert st.counts["cells"] == 900


def test_mesh_without_markers_is_unknown(cfg):
    cfg.mesh_path.mkdir(parents=True)
    _write_log(cfg, "mesh_100.out", "Create time\n\nsnappyHexMesh running\n")
    assert mesh_status(cfg).state == UNKNOWN


def test_mesh_without_log_or_directory(cfg):
    st = mesh_status(cfg)
    assert st.state == NOT_FOUND
    assert st.log_path is None

    cfg.mesh_path.mkdir(parents=True)
    assert mesh_status(cfg).state == UNKNOWN


def test_mesh_success_wins_over_failure(tmp_path):
    log = tmp_path / "mesh.out"
    log.write_text("Failed to read optional dictionary\nMesh OK.\n")
    assert scan_log(log, marker_set("mesh")).state == SUCCEEDED


def test_processor_dirs_counted(cfg):
    for i in range(3):
        (cfg.case_dir / f"processor{i}").mkdir()
    assert mesh_status(cfg).processor_dirs == 3


def test_latest_mesh_log_is_used(cfg):
    import os

    cfg.mesh_path.mkdir(parents=True)
    old = _write_log(cfg, "mesh_1.out", CHECKMESH_FAILED)
    os.utime(old, (1_000_000, 1_000_000))
    _write_log(cfg, "mesh_2.out", CHECKMESH_OK)
    assert mesh_status(cfg).state == SUCCEEDED


def test_solver_not_run(cfg):
    st = solver_status(cfg, probe=lambda name: pytest.fail("probe must not run without a log"))
    assert st.state == NOT_FOUND
    assert st.recent == []


def test_solver_in_progress_window(cfg):
    _write_log(cfg, "solver_200.out", SOLVER_RUNNING)
    seen = []

    def probe(name):
        seen.append(name)
        return True

    st = solver_status(cfg, probe=probe, window=3)

    assert st.state == IN_PROGRESS
    assert st.running is True
    assert seen == ["rhoSimpleFoam"]
    assert st.recent == ["Time = 6", "Time = 7", "Time = 8"]
    assert st.execution_time.startswith("ExecutionTime = 12.0 s")


def test_solver_completed(cfg):
    _write_log(cfg, "solver_200.out", SOLVER_RUNNING + "End\n")
    st = solver_status(cfg, probe=lambda name: False)
    assert st.state == SUCCEEDED
    assert st.running is False


def test_solver_end_must_be_whole_line(cfg):
    _write_log(cfg, "solver_200.out", SOLVER_RUNNING + "Endpoint reached\n")
    assert solver_status(cfg, probe=lambda name: None).state == IN_PROGRESS


def test_solver_diverged(cfg):
    _write_log(cfg, "solver_200.out", SOLVER_RUNNING + "--> FOAM FATAL ERROR: solution singularity\n")
    assert solver_status(cfg, probe=lambda name: False).state == FAILED


def test_solver_post_processing_entries(cfg):
    _write_log(cfg, "solver_200.out", SOLVER_RUNNING)
    (cfg.post_path / "forces").mkdir(parents=True)
    (cfg.post_path / "residuals.dat").write_text("1 2 3\n")

    st = solver_status(cfg, probe=lambda name: None)

    assert [e.name for e in st.post_entries] == ["forces", "residuals.dat"]
    assert st.post_entries[0].is_dir


def test_marker_overrides_from_config(tmp_path):
    (tmp_path / "logs").mkdir()
    cfg = CaseConfig(
        case_dir=tmp_path,
        markers={"solver": {"process": "simpleFoam", "success": "Finalising"}},
    )
    _write_log(cfg, "solver_1.out", "Time = 1\nFinalising parallel run\n")
    seen = []

    st = solver_status(cfg, probe=lambda name: seen.append(name) or False)

    assert st.state == SUCCEEDED
    assert seen == ["simpleFoam"]


def test_unknown_marker_override_rejected():
    with pytest.raises(ValueError, match="sucess"):
        marker_set("mesh", {"mesh": {"sucess": "OK"}})


def test_scan_missing_log_returns_none(tmp_path):
    assert scan_log(tmp_path / "nope.out", marker_set("mesh")) is None


def test_stale_success_log_without_mesh_is_not_found(cfg):
    _write_log(cfg, "mesh_1.out", CHECKMESH_OK)

    st = mesh_status(cfg)

    assert not st.mesh_present
    assert st.state == NOT_FOUND
    assert st.stale
    assert st.counts["cells"] == 189744


def test_failure_log_without_mesh_is_failed(cfg):
    _write_log(cfg, "mesh_1.out", CHECKMESH_FAILED)
    st = mesh_status(cfg)
    assert st.state == FAILED
    assert not st.stale


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"meshh": {"success": "OK"}}, "meshh"),
        ({"mesh": {"sucess": "OK"}}, "sucess"),
        ({"solver": {"failure": "(unclosed"}}, "Invalid regex"),
        ({"mesh": {"counts": {"cells": r"cells:\s+\d+"}}}, "capture group"),
        ({"mesh": {"counts": ["cells"]}}, "mapping"),
    ],
)
def test_bad_marker_overrides_rejected_at_load(tmp_path, overrides, message):
    with pytest.raises(ValueError, match=message):
        CaseConfig.from_config({"markers": overrides}, tmp_path)
