"""Job orchestration for a cluster-run CFD case: validate, submit, monitor, archive."""

__version__ = "0.1.0"
