"""Pytest fixtures: test settings, in-process fake collaborators, service factory."""
import asyncio
from typing import Dict, List, Optional

import pytest

from agents.base import (
    AnalysisSynthesizer,
    DocumentProcessor,
    DocumentSearchProvider,
    TopicExpander,
)
from api.job_store import InMemoryJobStore
from api.service import build_service
from config import Settings
from errors import ExpansionError, SynthesisError


def make_document(title: str, pdf_url: Optional[str] = None, year: int = 2024) -> dict:
    return {
        "title": title,
        "authors": ["Ada Lovelace", "Alan Turing"],
        "year": year,
        "venue": "Journal of Tests",
        "abstract": f"Abstract of {title}",
        "url": f"https://example.org/{title.replace(' ', '-')}",
        "pdf_url": pdf_url,
        "full_text": None,
        "citation": f"Lovelace, A., Turing, A. ({year}). {title}. Journal of Tests."
    }


class FakeTopicExpander(TopicExpander):
    def __init__(self, topics=None, fail_times: int = 0, error: Optional[Exception] = None, delay: float = 0):
        self.topics = ["topic a", "topic b", "topic c"] if topics is None else topics
        self.fail_times = fail_times
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def expand(self, query: str) -> List[str]:
        self.calls.append(query)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if self.fail_times > 0:
                self.fail_times -= 1
                raise ExpansionError("model unavailable")
            return list(self.topics)
        finally:
            self.in_flight -= 1


class FakeSearchProvider(DocumentSearchProvider):
    """Per-topic canned results; a topic mapped to an exception raises it"""

    def __init__(self, results: Optional[Dict[str, object]] = None, default_count: int = 2, delay: float = 0):
        self.results = results or {}
        self.default_count = default_count
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def search(self, topic: str, limit: int) -> List[dict]:
        self.calls.append(topic)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.results.get(topic)
            if isinstance(outcome, Exception):
                raise outcome
            if outcome is None:
                outcome = [
                    make_document(f"{topic} paper {i}", pdf_url=f"https://example.org/{topic}/{i}.pdf")
                    for i in range(self.default_count)
                ]
            return list(outcome)[:limit]
        finally:
            self.in_flight -= 1


class FakeDocumentProcessor(DocumentProcessor):
    """Returns text for every link unless told otherwise"""

    def __init__(self, texts: Optional[Dict[str, object]] = None, gate=None):
        self.texts = texts or {}
        self.gate = gate
        self.calls: List[str] = []

    async def extract(self, source_link: str) -> Optional[str]:
        self.calls.append(source_link)
        if self.gate is not None:
            await self.gate()
        outcome = self.texts.get(source_link, f"Full text from {source_link}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeSynthesizer(AnalysisSynthesizer):
    def __init__(self, analysis=None, fail_times: int = 0, always_fail: bool = False):
        self.analysis = {"summary": "A summary", "keyFindings": []} if analysis is None else analysis
        self.fail_times = fail_times
        self.always_fail = always_fail
        self.calls: List[tuple] = []

    async def synthesize(self, query: str, documents_by_topic: Dict[str, List[dict]]):
        self.calls.append((query, documents_by_topic))
        if self.always_fail:
            raise SynthesisError("model returned garbage")
        if self.fail_times > 0:
            self.fail_times -= 1
            raise SynthesisError("model returned garbage")
        return self.analysis


class RecordingJobStore(InMemoryJobStore):
    """Keeps every (status, progress, message) written, per job"""

    def __init__(self):
        super().__init__()
        self.history: Dict[str, List[tuple]] = {}

    def create_job(self, job_id, query):
        job = super().create_job(job_id, query)
        self.history[job_id] = [(job.status.value, job.progress, job.message)]
        return job

    def update_job_status(self, job_id, status, progress, message=None):
        job = super().update_job_status(job_id, status, progress, message)
        self.history[job_id].append((job.status.value, job.progress, job.message))
        return job

    def requeue_job(self, job_id, message):
        job = super().requeue_job(job_id, message)
        self.history[job_id].append((job.status.value, job.progress, job.message))
        return job

    def statuses(self, job_id) -> List[str]:
        collapsed = []
        for status, _, _ in self.history[job_id]:
            if not collapsed or collapsed[-1] != status:
                collapsed.append(status)
        return collapsed


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        LOGS_DIR=tmp_path / "logs",
        OUTPUT_DIR=tmp_path / "outputs",
        WORKER_COUNT=2,
        MAX_ATTEMPTS=3,
        RETRY_INITIAL_DELAY=0.01,
        RETRY_BACKOFF_MULTIPLIER=2.0,
        JOB_TIMEOUT_SECONDS=5.0,
        SEARCH_CONCURRENCY=3,
        EXTRACTION_CONCURRENCY=4,
        PAPERS_PER_TOPIC=5,
        MAX_TOPICS=5,
    )


@pytest.fixture
def store() -> RecordingJobStore:
    return RecordingJobStore()


@pytest.fixture
async def make_service(test_settings, store):
    """Factory for started services; every service is stopped at teardown."""
    services = []

    async def _make(config: Optional[Settings] = None, **collaborators):
        service = build_service(
            topic_expander=collaborators.get("topic_expander") or FakeTopicExpander(),
            search_provider=collaborators.get("search_provider") or FakeSearchProvider(),
            document_processor=collaborators.get("document_processor") or FakeDocumentProcessor(),
            synthesizer=collaborators.get("synthesizer") or FakeSynthesizer(),
            config=config or test_settings,
            job_store=collaborators.get("job_store") or store,
        )
        await service.start()
        services.append(service)
        return service

    yield _make

    for service in services:
        await service.stop()
