"""Job store: lifecycle rules, result storage and per-job locking."""
import threading
import time

import pytest

from api.job_store import InMemoryJobStore, JobStatus
from errors import JobConflictError, JobNotFoundError, JobNotReadyError


def _result(query="q"):
    return {
        "query": query,
        "topics": ["t"],
        "documents_by_topic": {"t": []},
        "analysis": {"summary": "s"},
        "documents_found": 0,
        "documents_with_full_text": 0,
        "documents_failed": 0,
    }


def _walk_to_completed(store, job_id):
    for status, progress in [
        (JobStatus.EXPANDING, 10),
        (JobStatus.SEARCHING, 20),
        (JobStatus.PROCESSING, 70),
        (JobStatus.ANALYZING, 90),
    ]:
        store.update_job_status(job_id, status, progress, status.value)


def test_create_job_starts_queued():
    store = InMemoryJobStore()
    job = store.create_job("job-1", "graph neural networks")

    assert job.status == JobStatus.QUEUED
    assert job.progress == 0
    assert job.query == "graph neural networks"
    assert job.updated_at == job.created_at


def test_create_duplicate_id_fails():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")

    with pytest.raises(JobConflictError):
        store.create_job("job-1", "other")


def test_unknown_job_raises_not_found():
    store = InMemoryJobStore()

    with pytest.raises(JobNotFoundError):
        store.get_job("missing")
    with pytest.raises(JobNotFoundError):
        store.update_job_status("missing", JobStatus.EXPANDING, 10)
    with pytest.raises(JobNotFoundError):
        store.get_result("missing")


def test_update_overwrites_message_and_bumps_updated_at():
    store = InMemoryJobStore()
    created = store.create_job("job-1", "q")
    time.sleep(0.001)

    updated = store.update_job_status("job-1", JobStatus.EXPANDING, 10, "Expanding")

    assert updated.message == "Expanding"
    assert updated.updated_at > created.created_at
    assert updated.created_at == created.created_at


def test_progress_never_regresses_while_alive():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    store.update_job_status("job-1", JobStatus.SEARCHING, 45)

    job = store.update_job_status("job-1", JobStatus.SEARCHING, 30)

    assert job.progress == 45


def test_failed_resets_progress_to_zero():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    store.update_job_status("job-1", JobStatus.SEARCHING, 45)

    job = store.update_job_status("job-1", JobStatus.FAILED, 45, "boom")

    assert job.status == JobStatus.FAILED
    assert job.progress == 0


def test_no_transition_out_of_terminal_state():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    store.update_job_status("job-1", JobStatus.FAILED, 0, "boom")

    with pytest.raises(JobConflictError):
        store.update_job_status("job-1", JobStatus.EXPANDING, 10)


def test_requeue_only_from_failed():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")

    with pytest.raises(JobConflictError):
        store.requeue_job("job-1", "retry")

    store.update_job_status("job-1", JobStatus.FAILED, 0, "boom")
    job = store.requeue_job("job-1", "Retrying in 2.0s")

    assert job.status == JobStatus.QUEUED
    assert job.progress == 0
    assert job.message == "Retrying in 2.0s"


def test_put_result_requires_completed_job():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    _walk_to_completed(store, "job-1")

    with pytest.raises(JobConflictError):
        store.put_result("job-1", _result())


def test_complete_job_stores_result_once():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    _walk_to_completed(store, "job-1")

    job = store.complete_job("job-1", _result(), "done")

    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert store.get_result("job-1")["query"] == "q"
    with pytest.raises(JobConflictError):
        store.put_result("job-1", _result("clobber"))
    assert store.get_result("job-1")["query"] == "q"


def test_get_result_not_ready_before_completion():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    store.update_job_status("job-1", JobStatus.PROCESSING, 70)

    with pytest.raises(JobNotReadyError) as exc_info:
        store.get_result("job-1")

    assert exc_info.value.status == "processing"


def test_result_is_isolated_from_callers():
    store = InMemoryJobStore()
    store.create_job("job-1", "q")
    _walk_to_completed(store, "job-1")
    store.complete_job("job-1", _result(), "done")

    fetched = store.get_result("job-1")
    fetched["topics"].append("mutated")

    assert store.get_result("job-1")["topics"] == ["t"]


def test_snapshots_are_copies():
    store = InMemoryJobStore()
    job = store.create_job("job-1", "q")
    job.progress = 99

    assert store.get_job("job-1").progress == 0


def test_list_jobs_newest_first_and_active_count():
    store = InMemoryJobStore()
    store.create_job("old", "q1")
    time.sleep(0.001)
    store.create_job("new", "q2")
    store.update_job_status("old", JobStatus.FAILED, 0, "boom")

    assert [j.job_id for j in store.list_jobs()] == ["new", "old"]
    assert store.count_active_jobs() == 1


def test_updates_on_different_jobs_do_not_contend():
    store = InMemoryJobStore()
    store.create_job("a", "q")
    store.create_job("b", "q")
    done = threading.Event()

    def update_b():
        store.update_job_status("b", JobStatus.EXPANDING, 10)
        done.set()

    # Hold job a's lock while another thread updates job b
    with store._record("a").lock:
        worker = threading.Thread(target=update_b)
        worker.start()
        assert done.wait(timeout=2)
        worker.join()

    assert store.get_job("b").status == JobStatus.EXPANDING
