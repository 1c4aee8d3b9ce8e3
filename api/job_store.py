"""
Thread-safe job storage for tracking research job status and results

JobStore is the seam where a durable backend plugs in; the in-memory
implementation keeps state for the lifetime of the process.
"""

import copy
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from threading import Lock, RLock
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from errors import JobConflictError, JobNotFoundError, JobNotReadyError
from graph.state import ResearchResult


class JobStatus(str, Enum):
    """Job lifecycle states, in pipeline order"""
    QUEUED = "queued"
    EXPANDING = "expanding"
    SEARCHING = "searching"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Job(BaseModel):
    """Snapshot of one research job"""
    job_id: str
    query: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class JobStore(ABC):
    """
    Authoritative state of every submitted job and its result.

    Implementations must serialize access per job id and keep updates on
    different ids independent.
    """

    @abstractmethod
    def create_job(self, job_id: str, query: str) -> Job:
        """Create a queued job; raises JobConflictError if the id exists"""

    @abstractmethod
    def get_job(self, job_id: str) -> Job:
        """Return a snapshot of the job; raises JobNotFoundError"""

    @abstractmethod
    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: int,
        message: Optional[str] = None
    ) -> Job:
        """Record a status/progress transition and bump updated_at"""

    @abstractmethod
    def requeue_job(self, job_id: str, message: str) -> Job:
        """Move a failed job back to queued for another attempt"""

    @abstractmethod
    def put_result(self, job_id: str, result: ResearchResult) -> None:
        """Store the result of a completed job exactly once"""

    @abstractmethod
    def complete_job(self, job_id: str, result: ResearchResult, message: str) -> Job:
        """Atomically mark the job completed and store its result"""

    @abstractmethod
    def get_result(self, job_id: str) -> ResearchResult:
        """Return the result; raises JobNotFoundError or JobNotReadyError"""

    @abstractmethod
    def list_jobs(self) -> List[Job]:
        """All jobs, newest first"""

    @abstractmethod
    def count_active_jobs(self) -> int:
        """Number of jobs not in a terminal state"""


class _JobRecord:
    """Mutable record held by InMemoryJobStore, guarded by its own lock"""

    __slots__ = ("job", "result", "lock")

    def __init__(self, job: Job):
        self.job = job
        self.result: Optional[ResearchResult] = None
        self.lock = RLock()


class InMemoryJobStore(JobStore):
    """
    Thread-safe in-memory job tracking system

    A registry lock guards the id -> record map only; every mutation of a
    job happens under that job's own lock.
    """

    def __init__(self):
        self._records: Dict[str, _JobRecord] = {}
        self._registry_lock = Lock()
        logger.info("InMemoryJobStore initialized")

    def _record(self, job_id: str) -> _JobRecord:
        with self._registry_lock:
            record = self._records.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def create_job(self, job_id: str, query: str) -> Job:
        now = datetime.now()
        job = Job(job_id=job_id, query=query, created_at=now, updated_at=now)

        with self._registry_lock:
            if job_id in self._records:
                raise JobConflictError(f"Job {job_id} already exists")
            self._records[job_id] = _JobRecord(job)

        logger.info(f"Created job {job_id}: {query}")
        return job.model_copy()

    def get_job(self, job_id: str) -> Job:
        record = self._record(job_id)
        with record.lock:
            return record.job.model_copy()

    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: int,
        message: Optional[str] = None
    ) -> Job:
        record = self._record(job_id)
        status = JobStatus(status)

        with record.lock:
            job = record.job
            if job.status.is_terminal:
                raise JobConflictError(
                    f"Job {job_id} is {job.status.value}; cannot move to {status.value}"
                )

            progress = max(0, min(100, progress))
            if status == JobStatus.FAILED:
                progress = 0
            else:
                # Progress never regresses while the job is alive
                progress = max(job.progress, progress)

            job.status = status
            job.progress = progress
            job.message = message
            job.updated_at = datetime.now()

            logger.debug(f"Updated job {job_id}: {status.value} {progress}%")
            return job.model_copy()

    def requeue_job(self, job_id: str, message: str) -> Job:
        record = self._record(job_id)

        with record.lock:
            job = record.job
            if job.status != JobStatus.FAILED:
                raise JobConflictError(
                    f"Job {job_id} is {job.status.value}; only failed jobs can be requeued"
                )
            job.status = JobStatus.QUEUED
            job.progress = 0
            job.message = message
            job.updated_at = datetime.now()

            logger.debug(f"Requeued job {job_id}")
            return job.model_copy()

    def put_result(self, job_id: str, result: ResearchResult) -> None:
        record = self._record(job_id)

        with record.lock:
            if record.job.status != JobStatus.COMPLETED:
                raise JobConflictError(
                    f"Job {job_id} is {record.job.status.value}; results can only be stored once completed"
                )
            if record.result is not None:
                raise JobConflictError(f"Job {job_id} already has a result")
            record.result = copy.deepcopy(result)

    def complete_job(self, job_id: str, result: ResearchResult, message: str) -> Job:
        record = self._record(job_id)

        # RLock: update_job_status and put_result re-acquire it
        with record.lock:
            if record.result is not None:
                raise JobConflictError(f"Job {job_id} already has a result")
            job = self.update_job_status(job_id, JobStatus.COMPLETED, 100, message)
            self.put_result(job_id, result)

        logger.info(f"Job {job_id} completed")
        return job

    def get_result(self, job_id: str) -> ResearchResult:
        record = self._record(job_id)

        with record.lock:
            if record.job.status != JobStatus.COMPLETED or record.result is None:
                raise JobNotReadyError(job_id, record.job.status.value)
            return copy.deepcopy(record.result)

    def list_jobs(self) -> List[Job]:
        with self._registry_lock:
            records = list(self._records.values())

        jobs = []
        for record in records:
            with record.lock:
                jobs.append(record.job.model_copy())

        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs

    def count_active_jobs(self) -> int:
        return len([j for j in self.list_jobs() if not j.status.is_terminal])
