"""
SLURM integration.

Exports the public API:
- Scheduler
- Dependency
- SubmitResult
- QueueEntry
- render_job_script
"""
from .scheduler import Dependency, QueueEntry, Scheduler, SubmitResult
from .render import render_job_script
