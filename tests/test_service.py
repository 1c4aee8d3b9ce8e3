"""Orchestration facade: submission validation, status and results."""
import asyncio

import pytest

from api.job_store import JobStatus
from errors import InvalidArgumentError, JobNotFoundError, JobNotReadyError
from conftest import FakeDocumentProcessor, FakeTopicExpander


@pytest.mark.parametrize("query", ["", "   ", "\n\t"])
async def test_submit_rejects_blank_queries(make_service, query):
    service = await make_service()

    with pytest.raises(InvalidArgumentError):
        service.submit(query)

    assert service.list_jobs() == []


async def test_submit_rejects_overlong_queries(make_service, test_settings):
    service = await make_service()

    with pytest.raises(InvalidArgumentError):
        service.submit("x" * (test_settings.MAX_QUERY_LENGTH + 1))


async def test_submit_returns_fresh_ids_and_queued_status(make_service):
    service = await make_service()

    first = service.submit("protein folding")
    second = service.submit("protein folding")

    assert first != second
    for job_id in (first, second):
        job = service.get_status(job_id)
        assert job.status == JobStatus.QUEUED
        assert job.progress == 0
        assert job.query == "protein folding"


async def test_unknown_job_is_not_found(make_service):
    service = await make_service()

    with pytest.raises(JobNotFoundError):
        service.get_status("does-not-exist")
    with pytest.raises(JobNotFoundError):
        service.get_results("does-not-exist")


async def test_results_not_ready_while_processing(make_service):
    release = asyncio.Event()
    entered = asyncio.Event()

    async def gate():
        entered.set()
        await release.wait()

    expander = FakeTopicExpander(topics=["cryo-em"])
    service = await make_service(
        topic_expander=expander,
        document_processor=FakeDocumentProcessor(gate=gate),
    )

    job_id = service.submit("  cryo-em reconstruction  ")
    await asyncio.wait_for(entered.wait(), timeout=2)

    assert service.get_status(job_id).status == JobStatus.PROCESSING
    with pytest.raises(JobNotReadyError):
        service.get_results(job_id)

    release.set()
    await service.scheduler.wait_until_idle()

    result = service.get_results(job_id)
    assert result["query"] == "cryo-em reconstruction"
    assert result["topics"] == ["cryo-em"]
    assert expander.calls == ["cryo-em reconstruction"]


async def test_list_jobs_reports_every_submission(make_service):
    service = await make_service()

    job_ids = {service.submit(f"query {i}") for i in range(3)}
    await service.scheduler.wait_until_idle()

    listed = service.list_jobs()
    assert {job.job_id for job in listed} == job_ids
    assert service.count_active_jobs() == 0


async def test_results_report_every_expanded_topic(make_service):
    topics = [f"topic {i}" for i in range(7)]
    service = await make_service(topic_expander=FakeTopicExpander(topics=topics))

    job_id = service.submit("many angles")
    await service.scheduler.wait_until_idle()

    assert service.get_results(job_id)["topics"] == topics
