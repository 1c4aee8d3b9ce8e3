"""
Job scheduler: FIFO admission, bounded worker pool and retry policy

Workers are asyncio tasks pulling from a single queue. Each dispatched
attempt runs under a wall-clock budget; fatal failures are retried with
exponential backoff until the attempt limit is reached.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from loguru import logger
from pydantic import BaseModel, Field

from api.job_store import JobStore
from api.research_worker import PipelineExecutor
from config import Settings, settings as default_settings
from errors import ErrorKind, JobTimeoutError, PipelineError


class WorkItem(BaseModel):
    """One admitted unit of work"""
    job_id: str
    query: str


class AttemptInfo(BaseModel):
    """Retry bookkeeping for a job; never exposed to callers directly"""
    attempt_count: int = 0
    next_eligible_time: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_kind: Optional[ErrorKind] = None
    failures: List[str] = Field(default_factory=list)


class ResearchScheduler:
    """
    Dispatches admitted jobs to a bounded pool of workers.

    No two workers ever hold the same job: a job is either in the queue,
    waiting on a retry timer, or in flight, never more than one of these.
    """

    def __init__(
        self,
        executor: PipelineExecutor,
        job_store: JobStore,
        config: Optional[Settings] = None
    ):
        self.executor = executor
        self.job_store = job_store
        self.config = config or default_settings

        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._retry_timers: Set[asyncio.Task] = set()
        self._attempts: Dict[str, AttemptInfo] = {}
        self._active: Set[str] = set()
        self._idle: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Create the queue and spawn the worker pool"""
        if self.running:
            return

        self._queue = asyncio.Queue()
        self._idle = asyncio.Event()
        self._idle.set()

        worker_count = max(1, self.config.WORKER_COUNT)
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"research-worker-{index}")
            for index in range(worker_count)
        ]
        logger.info(
            f"Scheduler started: {worker_count} workers, max {self.config.MAX_ATTEMPTS} attempts, "
            f"{self.config.JOB_TIMEOUT_SECONDS}s budget per attempt"
        )

    async def stop(self) -> None:
        """Cancel workers and pending retries; in-flight attempts are abandoned"""
        tasks = list(self._workers) + list(self._retry_timers)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._workers = []
        self._retry_timers.clear()
        self._active.clear()
        logger.info("Scheduler stopped")

    async def wait_until_idle(self) -> None:
        """Block until nothing is queued, running or waiting to be retried"""
        if self._idle is None:
            return
        while not self._is_idle():
            self._idle.clear()
            await self._idle.wait()

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def enqueue(self, job_id: str, query: str) -> None:
        """
        Admit a job for execution.

        Must be called from the event loop thread that started the scheduler.
        """
        if self._queue is None:
            raise RuntimeError("Scheduler has not been started")

        self._attempts[job_id] = AttemptInfo(next_eligible_time=datetime.now())
        self._admit(WorkItem(job_id=job_id, query=query))
        logger.info(f"Enqueued job {job_id} (queue depth {self._queue.qsize()})")

    def _admit(self, item: WorkItem) -> None:
        self._idle.clear()
        self._queue.put_nowait(item)

    @property
    def queued_count(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def active_count(self) -> int:
        return len(self._active)

    def get_attempt_info(self, job_id: str) -> Optional[AttemptInfo]:
        info = self._attempts.get(job_id)
        return info.model_copy(deep=True) if info is not None else None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _worker(self, index: int) -> None:
        logger.debug(f"Worker {index} ready")
        while True:
            item = await self._queue.get()
            self._active.add(item.job_id)
            try:
                await self.dispatch(item)
            except Exception as e:
                # dispatch handles pipeline failures itself; this is a scheduler bug
                logger.exception(f"Worker {index} crashed on job {item.job_id}: {e}")
            finally:
                self._active.discard(item.job_id)
                self._queue.task_done()
                self._signal_if_idle()

    async def dispatch(self, item: WorkItem) -> None:
        """Run one attempt of a job and apply the retry policy to its outcome"""
        info = self._attempts.setdefault(item.job_id, AttemptInfo())
        info.attempt_count += 1
        info.next_eligible_time = None
        attempt = info.attempt_count

        timeout = self.config.JOB_TIMEOUT_SECONDS
        try:
            await asyncio.wait_for(
                self.executor.run(item.job_id, item.query, attempt=attempt),
                timeout=timeout
            )

        except asyncio.TimeoutError:
            error = JobTimeoutError(f"Job exceeded its {timeout:g}s time budget")
            logger.error(f"Job {item.job_id} attempt {attempt} timed out after {timeout:g}s")
            self.executor.fail(item.job_id, error, attempt)
            self._handle_failure(item, info, error)

        except PipelineError as e:
            self._handle_failure(item, info, e)

        except Exception as e:
            # Not a pipeline failure; retrying would repeat the same defect
            info.last_error = str(e)
            logger.exception(f"Job {item.job_id} failed unexpectedly; not retrying: {e}")

        else:
            info.last_error = None
            info.last_error_kind = None

    def _handle_failure(self, item: WorkItem, info: AttemptInfo, error: PipelineError) -> None:
        info.last_error = error.message
        info.last_error_kind = error.kind
        info.failures.append(f"attempt {info.attempt_count} ({error.summary()})")
        max_attempts = self.config.MAX_ATTEMPTS

        if not error.retryable:
            logger.error(f"Job {item.job_id} failed with non-retryable {error.kind.value}")
            return

        if info.attempt_count >= max_attempts:
            logger.error(
                f"Job {item.job_id} failed permanently after {info.attempt_count} attempts: "
                f"{error.summary()}"
            )
            return

        delay = self.backoff_delay(info.attempt_count)
        info.next_eligible_time = datetime.now() + timedelta(seconds=delay)

        message = f"Attempt {info.attempt_count}/{max_attempts} failed ({error.summary()})."
        earlier = info.failures[:-1]
        if earlier:
            message += f" Previously: {'; '.join(earlier)}."
        self.job_store.requeue_job(item.job_id, f"{message} Retrying in {delay:.1f}s")
        logger.warning(
            f"Job {item.job_id} attempt {info.attempt_count}/{max_attempts} failed; "
            f"retrying in {delay:.1f}s"
        )

        self._idle.clear()
        timer = asyncio.create_task(self._readmit_after(item, delay))
        self._retry_timers.add(timer)
        timer.add_done_callback(self._retry_timers.discard)

    def backoff_delay(self, attempt_count: int) -> float:
        """Delay before attempt `attempt_count + 1`"""
        return self.config.RETRY_INITIAL_DELAY * (
            self.config.RETRY_BACKOFF_MULTIPLIER ** (attempt_count - 1)
        )

    async def _readmit_after(self, item: WorkItem, delay: float) -> None:
        await asyncio.sleep(delay)
        self._admit(item)
        logger.info(f"Re-admitted job {item.job_id} for another attempt")

    # ------------------------------------------------------------------
    # Idle tracking
    # ------------------------------------------------------------------

    def _is_idle(self) -> bool:
        pending_timers = [t for t in self._retry_timers if not t.done()]
        return self.queued_count == 0 and not self._active and not pending_timers

    def _signal_if_idle(self) -> None:
        if self._idle is not None and self._is_idle():
            self._idle.set()
