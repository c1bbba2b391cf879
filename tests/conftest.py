import subprocess
from pathlib import Path

import pytest

from casetools.config import BC_FILES, DEFAULT_REQUIRED_FILES, CaseConfig


SCRIPTS = ["Allrun.mesh", "Allrun.solver", "submit_mesh.slurm", "submit_solver.slurm"]


def _bc_text(patches):
    body = "".join(f"    {name}\n    {{\n        type zeroGradient;\n    }}\n" for name in patches)
    return "FoamFile\n{\n}\nboundaryField\n{\n" + body + "}\n"


def write_case(root: Path, patches=("enclosure",)) -> Path:
    """A minimal case directory that passes every pre-flight check."""
    for rel in DEFAULT_REQUIRED_FILES:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if rel in BC_FILES:
            p.write_text(_bc_text(patches))
        elif rel.endswith("snappyHexMeshDict"):
            p.write_text("geometry\n{\n    enclosure.stl { type triSurfaceMesh; name enclosure; }\n}\n")
        elif rel.endswith("surfaceFeaturesDict"):
            p.write_text('surfaces ("enclosure.stl" "beam_walls.stl");\n')
        elif rel.endswith(".stl"):
            p.write_text("solid part\nendsolid part\n")
        else:
            p.write_text("FoamFile\n{\n}\n")

    (root / "system" / "decomposeParDict.mesh").write_text("numberOfSubdomains 12;\n")

    scripts = root / "scripts"
    scripts.mkdir(parents=True, exist_ok=True)
    for name in SCRIPTS:
        s = scripts / name
        s.write_text("#!/bin/bash\n")
        s.chmod(0o755)

    (root / "logs").mkdir(exist_ok=True)
    return root


class FakeRunner:
    """Stands in for subprocess.run; records argv, replays canned results."""

    def __init__(self, responses=None):
        self.calls = []
        self.responses = list(responses or [])

    def __call__(self, cmd, cwd=None):
        self.calls.append(list(cmd))
        rc, out, err = self.responses.pop(0) if self.responses else (0, "", "")
        return subprocess.CompletedProcess(list(cmd), rc, stdout=out, stderr=err)

    @property
    def submit_calls(self):
        return [c for c in self.calls if c[0] == "sbatch"]


def sbatch_ok(job_id):
    return (0, f"Submitted batch job {job_id}\n", "")


def always_found(cmd):
    return f"/usr/bin/{cmd}"


@pytest.fixture
def case_dir(tmp_path):
    return write_case(tmp_path / "case")


@pytest.fixture
def config(case_dir):
    return CaseConfig(case_dir=case_dir)


@pytest.fixture
def runner_factory():
    return FakeRunner


@pytest.fixture
def submitted():
    return sbatch_ok


@pytest.fixture
def which_ok():
    return always_found
