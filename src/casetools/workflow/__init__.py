"""
Workflow orchestration for mesh -> solver job chains.

Exports the public API:
- WorkflowOrchestrator
- WorkflowRun
- SubmittedJob
"""
from .orchestrator import WorkflowOrchestrator
from .run import SubmittedJob, WorkflowRun
