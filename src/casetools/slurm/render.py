from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from casetools.config import CaseConfig, JobSpec

TEMPLATE_ROOT = Path(__file__).resolve().parents[1] / "templates" / "sbatch"


def _env(search_dirs: List[Path]) -> Environment:
    return Environment(
        loader=FileSystemLoader([str(d) for d in search_dirs]),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )


def render_template(template_path: Path, out_path: Optional[Path], params: dict, return_text: bool = False):
    """
    Render a sbatch template. ``template_path`` may be an explicit file or a
    bare name looked up in the bundled templates/sbatch directory.
    """
    template_path = Path(template_path)

    if template_path.is_file():
        search_dirs = [template_path.parent]
    else:
        search_dirs = [TEMPLATE_ROOT]
    tpl = _env(search_dirs).get_template(template_path.name)
    text = tpl.render(**params)

    if return_text or out_path is None:
        return text

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text)
    return out_path


def job_params(job: JobSpec, config: CaseConfig) -> Dict[str, Any]:
    return {
        "job_name": job.name,
        "role": job.role,
        "cores": job.resources.cores,
        "mem": job.resources.mem,
        "time": job.resources.time,
        "log_dir": config.log_dir,
        "log_pattern": job.log_pattern,
        "run_script": f"{config.scripts_dir}/{job.run_script}",
        "case_dir": str(config.case_dir),
        "mesh_dir": config.mesh_dir,
    }


def render_job_script(role: str, config: CaseConfig, force: bool = False) -> Optional[Path]:
    """
    Write the job description for ``role`` into the scripts directory.

    Returns the written path, or None when a script already exists and
    ``force`` is not set.
    """
    job = config.job(role)
    out = config.script_path(role)
    if out.exists() and not force:
        return None
    if not job.template:
        raise ValueError(f"No template configured for {role} job")

    render_template(Path(job.template), out, job_params(job, config))
    out.chmod(out.stat().st_mode | 0o111)
    return out
