"""
Orchestration facade: the only entry point used by the HTTP layer and CLI
"""

import uuid
from typing import List, Optional

from loguru import logger

from api.job_store import InMemoryJobStore, Job, JobStore
from api.research_worker import PipelineExecutor
from api.scheduler import ResearchScheduler
from config import Settings, settings as default_settings
from errors import InvalidArgumentError
from graph.state import ResearchResult


class ResearchService:
    """Submit research queries and poll their status and results"""

    def __init__(
        self,
        job_store: JobStore,
        scheduler: ResearchScheduler,
        config: Optional[Settings] = None
    ):
        self.job_store = job_store
        self.scheduler = scheduler
        self.config = config or default_settings

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    def submit(self, query: str) -> str:
        """
        Create a job for the query and queue it.

        Returns immediately; no stage runs before this returns.

        Raises:
            InvalidArgumentError: If the query is empty, whitespace or too long
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgumentError("Query is required")

        query = query.strip()
        if len(query) > self.config.MAX_QUERY_LENGTH:
            raise InvalidArgumentError(
                f"Query exceeds {self.config.MAX_QUERY_LENGTH} characters"
            )

        job_id = str(uuid.uuid4())
        self.job_store.create_job(job_id, query)
        self.scheduler.enqueue(job_id, query)

        logger.info(f"Submitted job {job_id}")
        return job_id

    def get_status(self, job_id: str) -> Job:
        return self.job_store.get_job(job_id)

    def get_results(self, job_id: str) -> ResearchResult:
        return self.job_store.get_result(job_id)

    def list_jobs(self) -> List[Job]:
        return self.job_store.list_jobs()

    def count_active_jobs(self) -> int:
        return self.job_store.count_active_jobs()


def build_service(
    topic_expander,
    search_provider,
    document_processor,
    synthesizer,
    config: Optional[Settings] = None,
    job_store: Optional[JobStore] = None
) -> ResearchService:
    """Wire store, executor and scheduler around the given collaborators"""
    config = config or default_settings
    job_store = job_store or InMemoryJobStore()

    executor = PipelineExecutor(
        job_store=job_store,
        topic_expander=topic_expander,
        search_provider=search_provider,
        document_processor=document_processor,
        synthesizer=synthesizer,
        config=config
    )
    scheduler = ResearchScheduler(executor, job_store, config)
    return ResearchService(job_store, scheduler, config)


def build_default_service(config: Optional[Settings] = None) -> ResearchService:
    """Service backed by Ollama, arXiv and remote PDF extraction"""
    from agents.synthesizer import OllamaAnalysisSynthesizer
    from agents.topic_expander import OllamaTopicExpander
    from tools.arxiv_tool import ArxivSearchProvider
    from tools.pdf_processor import PdfDocumentProcessor

    config = config or default_settings
    return build_service(
        topic_expander=OllamaTopicExpander(config),
        search_provider=ArxivSearchProvider(config),
        document_processor=PdfDocumentProcessor(config),
        synthesizer=OllamaAnalysisSynthesizer(config),
        config=config
    )
