from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml

CASE_FILE = "case.yaml"

# ---------------------------------------------------------------------------
# Resource profiles (optional presets for job resource requests)
# ---------------------------------------------------------------------------
RESOURCE_PROFILES: Dict[str, Dict[str, Any]] = {
    "test":   {"cores": 4,  "mem": "8G",   "time": "00:10:00"},
    "mesh":   {"cores": 12, "mem": "36G",  "time": "01:00:00"},
    "solver": {"cores": 48, "mem": "144G", "time": "08:00:00"},
}

BC_FILES = ["0/p", "0/U", "0/T", "0/k", "0/epsilon", "0/nut"]

DEFAULT_REQUIRED_FILES = [
    "system/snappyHexMeshDict",
    "system/surfaceFeaturesDict",
    "system/blockMeshDict",
    "system/controlDict",
    "system/fvSchemes",
    "system/fvSolution",
    "system/decomposeParDict",
    "constant/triSurface/enclosure.stl",
    "constant/triSurface/beam_walls.stl",
    "constant/triSurface/beam_holes.stl",
    "constant/triSurface/nozzle.stl",
    *BC_FILES,
]

DEFAULT_CROSS_REFERENCES = [
    ("system/snappyHexMeshDict", "enclosure"),
    ("system/surfaceFeaturesDict", "enclosure.stl"),
]


# ---------------------------------------------------------------------------
# Job description
# ---------------------------------------------------------------------------
@dataclass
class ResourceRequest:
    cores: int
    mem: str
    time: str

    @classmethod
    def from_config(cls, cfg: Dict[str, Any] | None, default_profile: str) -> "ResourceRequest":
        """
        Profile first, explicit values on top:

        resources:
          profile: solver
          time: "12:00:00"
        """
        cfg = dict(cfg or {})
        profile_name = cfg.pop("profile", default_profile)
        if profile_name not in RESOURCE_PROFILES:
            raise ValueError(
                f"Unknown resource profile '{profile_name}'. "
                f"Choose one of {sorted(RESOURCE_PROFILES)}"
            )
        merged = {**RESOURCE_PROFILES[profile_name], **cfg}
        return cls(
            cores=int(merged["cores"]),
            mem=str(merged["mem"]),
            time=str(merged["time"]),
        )


@dataclass
class JobSpec:
    """A named unit of cluster work and what it asks the scheduler for."""

    role: str
    name: str
    script: str
    run_script: str
    resources: ResourceRequest
    # %j is replaced by the scheduler-assigned id
    log_pattern: str = "job_%j.out"
    template: str = ""

    def log_name(self, job_id: str) -> str:
        return self.log_pattern.replace("%j", str(job_id))

    @property
    def log_glob(self) -> str:
        return self.log_pattern.replace("%j", "*")


DEFAULT_JOBS: Dict[str, Dict[str, Any]] = {
    "mesh": {
        "name": "BeamClean_mesh",
        "script": "submit_mesh.slurm",
        "run_script": "Allrun.mesh",
        "log_pattern": "mesh_%j.out",
        "template": "mesh.slurm.j2",
        "resources": {"profile": "mesh"},
    },
    "solver": {
        "name": "BeamClean_solver",
        "script": "submit_solver.slurm",
        "run_script": "Allrun.solver",
        "log_pattern": "solver_%j.out",
        "template": "solver.slurm.j2",
        "resources": {"profile": "solver"},
    },
}


def _job_from_config(role: str, cfg: Dict[str, Any] | None) -> JobSpec:
    merged = {**DEFAULT_JOBS[role], **(cfg or {})}
    resources = ResourceRequest.from_config(merged.pop("resources", None), default_profile=role)
    unknown = set(merged) - {"name", "script", "run_script", "log_pattern", "template"}
    if unknown:
        raise ValueError(f"Unknown key(s) in jobs.{role}: {sorted(unknown)}")
    return JobSpec(role=role, resources=resources, **merged)


@dataclass
class SchedulerCommands:
    submit: str = "sbatch"
    query: str = "squeue"
    cancel: str = "scancel"


# ---------------------------------------------------------------------------
# CaseConfig
# ---------------------------------------------------------------------------
@dataclass
class CaseConfig:
    """
    Everything the orchestration layer needs to know about one case
    directory. Paths are stored relative to ``case_dir``.
    """

    case_dir: Path
    scripts_dir: str = "scripts"
    log_dir: str = "logs"
    mesh_dir: str = "constant/polyMesh"
    post_dir: str = "postProcessing"
    geometry_dir: str = "constant/triSurface"

    required_dirs: List[str] = field(default_factory=lambda: ["system", "constant"])
    required_files: List[str] = field(default_factory=lambda: list(DEFAULT_REQUIRED_FILES))
    optional_files: List[str] = field(default_factory=lambda: ["system/decomposeParDict.mesh"])
    bc_files: List[str] = field(default_factory=lambda: list(BC_FILES))
    patches: List[str] = field(default_factory=lambda: ["enclosure"])
    cross_references: List[Tuple[str, str]] = field(
        default_factory=lambda: list(DEFAULT_CROSS_REFERENCES)
    )
    executables: Optional[List[str]] = None

    jobs: Dict[str, JobSpec] = field(
        default_factory=lambda: {role: _job_from_config(role, None) for role in DEFAULT_JOBS}
    )
    scheduler: SchedulerCommands = field(default_factory=SchedulerCommands)
    retention_days: int = 7
    markers: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.case_dir = Path(self.case_dir).expanduser().resolve()
        if self.executables is None:
            self.executables = [
                f"{self.scripts_dir}/{name}"
                for job in self.jobs.values()
                for name in (job.run_script, job.script)
            ]

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------
    def path(self, rel: str) -> Path:
        return self.case_dir / rel

    @property
    def log_path(self) -> Path:
        return self.path(self.log_dir)

    @property
    def mesh_path(self) -> Path:
        return self.path(self.mesh_dir)

    @property
    def post_path(self) -> Path:
        return self.path(self.post_dir)

    @property
    def scripts_path(self) -> Path:
        return self.path(self.scripts_dir)

    def script_path(self, role: str) -> Path:
        return self.scripts_path / self.jobs[role].script

    def job(self, role: str) -> JobSpec:
        return self.jobs[role]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_config(cls, cfg: Dict[str, Any] | None, case_dir: Path) -> "CaseConfig":
        """
        Build from a case.yaml mapping. Every key is optional:

        log_dir: logs
        patches: [enclosure, outlet]
        jobs:
          solver:
            name: BeamClean_solver
            resources: {profile: solver, time: "12:00:00"}
        scheduler: {submit: sbatch}
        retention_days: 14
        markers:
          solver: {process: rhoSimpleFoam}
        """
        cfg = dict(cfg or {})
        kwargs: Dict[str, Any] = {}

        for key in ("scripts_dir", "log_dir", "mesh_dir", "post_dir", "geometry_dir"):
            if key in cfg:
                kwargs[key] = str(cfg.pop(key))

        for key in ("required_dirs", "required_files", "optional_files",
                    "bc_files", "patches", "executables"):
            if key in cfg:
                kwargs[key] = [str(v) for v in (cfg.pop(key) or [])]

        if "cross_references" in cfg:
            refs = []
            for item in cfg.pop("cross_references") or []:
                if isinstance(item, dict):
                    refs.append((str(item["file"]), str(item["contains"])))
                else:
                    f, s = item
                    refs.append((str(f), str(s)))
            kwargs["cross_references"] = refs

        jobs_cfg = cfg.pop("jobs", None) or {}
        unknown_roles = set(jobs_cfg) - set(DEFAULT_JOBS)
        if unknown_roles:
            raise ValueError(f"Unknown job role(s): {sorted(unknown_roles)}")
        kwargs["jobs"] = {role: _job_from_config(role, jobs_cfg.get(role)) for role in DEFAULT_JOBS}

        if "scheduler" in cfg:
            sched = dict(cfg.pop("scheduler") or {})
            unknown = set(sched) - {"submit", "query", "cancel"}
            if unknown:
                raise ValueError(f"Unknown key(s) in scheduler: {sorted(unknown)}")
            kwargs["scheduler"] = SchedulerCommands(**sched)

        if "retention_days" in cfg:
            kwargs["retention_days"] = int(cfg.pop("retention_days"))

        if "markers" in cfg:
            # deferred: casetools.monitor imports this module
            from casetools.monitor.markers import check_marker_overrides

            markers = cfg.pop("markers") or {}
            if not isinstance(markers, dict):
                raise ValueError("markers must be a mapping of kind -> overrides")
            check_marker_overrides(markers)
            kwargs["markers"] = dict(markers)

        if cfg:
            raise ValueError(f"Unknown key(s) in {CASE_FILE}: {sorted(cfg)}")

        return cls(case_dir=case_dir, **kwargs)

    @classmethod
    def load(cls, case_dir: Path, config_file: Optional[Path] = None) -> "CaseConfig":
        """Read ``case.yaml`` from the case root if present, else use defaults."""
        case_dir = Path(case_dir).expanduser().resolve()
        path = Path(config_file) if config_file else case_dir / CASE_FILE
        if not path.exists():
            if config_file:
                raise FileNotFoundError(f"Config file not found: {path}")
            return cls(case_dir=case_dir)

        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping")
        return cls.from_config(data, case_dir)
