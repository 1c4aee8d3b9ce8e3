"""
Error taxonomy for the research orchestrator.

Every exception carries an ErrorKind so that retry policy and user-facing
messages branch on the kind rather than on message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Structured error kinds"""
    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    NOT_READY = "not_ready"
    CONFLICT = "conflict"
    EXPANSION = "expansion_error"
    SEARCH = "search_error"
    SYNTHESIS = "synthesis_error"
    TIMEOUT = "timeout"
    NO_MATERIAL = "no_material_found"


# Kinds that end a job attempt and are retried by the scheduler
RETRYABLE_KINDS = frozenset({
    ErrorKind.EXPANSION,
    ErrorKind.NO_MATERIAL,
    ErrorKind.SYNTHESIS,
    ErrorKind.TIMEOUT,
})


class ResearchError(Exception):
    """Base class for all orchestrator errors"""
    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def summary(self) -> str:
        """Short, user-safe description of the failure."""
        return f"{self.kind.value}: {self.message}"


class InvalidArgumentError(ResearchError):
    kind = ErrorKind.INVALID_ARGUMENT


class JobNotFoundError(ResearchError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobNotReadyError(ResearchError):
    kind = ErrorKind.NOT_READY

    def __init__(self, job_id: str, status: str):
        super().__init__(f"Job {job_id} is not completed yet (current status: {status})")
        self.job_id = job_id
        self.status = status


class JobConflictError(ResearchError):
    """Raised when a store operation would violate the job lifecycle"""
    kind = ErrorKind.CONFLICT


class PipelineError(ResearchError):
    """Failure raised from inside a pipeline stage"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class ExpansionError(PipelineError):
    kind = ErrorKind.EXPANSION


class SearchError(PipelineError):
    kind = ErrorKind.SEARCH


class SynthesisError(PipelineError):
    kind = ErrorKind.SYNTHESIS


class NoMaterialFoundError(PipelineError):
    kind = ErrorKind.NO_MATERIAL


class JobTimeoutError(PipelineError):
    kind = ErrorKind.TIMEOUT
