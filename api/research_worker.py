"""
Pipeline executor for research jobs

Runs the LangGraph stage sequence for one job attempt, translating
collaborator calls and their failures into job store transitions.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from loguru import logger

from agents.base import (
    AnalysisSynthesizer,
    DocumentProcessor,
    DocumentSearchProvider,
    TopicExpander,
)
from api.job_store import JobStatus, JobStore
from config import Settings, settings as default_settings
from errors import (
    ExpansionError,
    NoMaterialFoundError,
    PipelineError,
    ResearchError,
    SynthesisError,
)
from graph.research_graph import create_research_graph
from graph.state import Document, ResearchResult, ResearchState, count_documents


def normalize_topics(raw_topics: Any) -> List[str]:
    """
    Clean up expander output: drop blanks and de-duplicate case-insensitively
    (first occurrence wins), keeping order. Every distinct topic is kept.
    """
    if isinstance(raw_topics, str) or raw_topics is None:
        return []

    topics: List[str] = []
    seen = set()
    for topic in raw_topics:
        if not isinstance(topic, str):
            continue
        cleaned = " ".join(topic.split())
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        topics.append(cleaned)
    return topics


class PipelineExecutor:
    """
    Executes the Expand → Search → Process → Analyze pipeline for a job.

    One executor is shared by all scheduler workers; per-job data lives in
    the graph state, never on the executor.
    """

    def __init__(
        self,
        job_store: JobStore,
        topic_expander: TopicExpander,
        search_provider: DocumentSearchProvider,
        document_processor: DocumentProcessor,
        synthesizer: AnalysisSynthesizer,
        config: Optional[Settings] = None
    ):
        self.job_store = job_store
        self.topic_expander = topic_expander
        self.search_provider = search_provider
        self.document_processor = document_processor
        self.synthesizer = synthesizer
        self.config = config or default_settings

        self.graph = create_research_graph(
            expand=self._expand_node,
            search=self._search_node,
            process=self._process_node,
            analyze=self._analyze_node
        )

    async def run(self, job_id: str, query: str, attempt: int = 1) -> ResearchResult:
        """
        Run every stage for one attempt of a job.

        On success the result is stored and the job marked completed.
        On failure the job is marked failed and the error re-raised so the
        scheduler can decide whether to retry.

        Args:
            job_id: Job identifier
            query: Original research query
            attempt: 1-based attempt number, used in failure messages

        Returns:
            The stored ResearchResult
        """
        logger.info(f"Starting research job {job_id} (attempt {attempt}): {query}")

        initial_state: ResearchState = {
            "job_id": job_id,
            "attempt": attempt,
            "query": query,
            "topics": [],
            "documents_by_topic": {},
            "documents_failed": 0,
            "analysis": None,
            "processing_stage": "expanding"
        }
        final_state: Dict[str, Any] = {**initial_state}

        try:
            async for event in self.graph.astream(initial_state):
                # Event format: {node_name: state_update}
                for node_name, state_update in event.items():
                    logger.debug(f"Job {job_id} - Node '{node_name}' completed")
                    if state_update:
                        final_state = {**final_state, **state_update}

            if final_state.get("analysis") is None:
                raise SynthesisError("Pipeline finished without an analysis", stage="analyzing")

        except PipelineError as e:
            logger.error(f"Job {job_id} attempt {attempt} failed: {e.summary()}")
            self.fail(job_id, e, attempt)
            raise

        except Exception as e:
            logger.exception(f"Job {job_id} unexpected error: {e}")
            self.fail(job_id, e, attempt)
            raise

        result = self._build_result(final_state)
        self.job_store.complete_job(job_id, result, "Research analysis completed")

        logger.info(
            f"Job {job_id} completed: {len(result['topics'])} topics, "
            f"{result['documents_found']} documents "
            f"({result['documents_with_full_text']} with full text)"
        )
        return result

    def fail(self, job_id: str, error: BaseException, attempt: int) -> None:
        """
        Mark the current attempt failed with a summarized cause.

        The stage named in the message is the job's status at the time of
        failure, which is the stage that was running.
        """
        job = self.job_store.get_job(job_id)
        if job.status.is_terminal:
            logger.warning(f"Job {job_id} already {job.status.value}; not marking failed")
            return

        if isinstance(error, ResearchError):
            cause = error.summary()
        else:
            cause = f"unexpected_error: {error}"

        message = f"Attempt {attempt} failed during {job.status.value}: {cause}"
        self.job_store.update_job_status(job_id, JobStatus.FAILED, 0, message)

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def _expand_node(self, state: ResearchState) -> Dict[str, Any]:
        job_id = state["job_id"]
        logger.info(f"═══ Job {job_id}: expanding query ═══")

        self.job_store.update_job_status(
            job_id,
            JobStatus.EXPANDING,
            self.config.PROGRESS_EXPANDING,
            "Expanding research query into topics"
        )

        try:
            raw_topics = await self.topic_expander.expand(state["query"])
        except ExpansionError:
            raise
        except Exception as e:
            raise ExpansionError(f"Topic expansion failed: {e}", stage="expanding") from e

        topics = normalize_topics(raw_topics)
        if not topics:
            raise ExpansionError("Topic expansion produced no topics", stage="expanding")

        logger.info(f"  ✓ Expanded into {len(topics)} topics: {topics}")
        return {"topics": topics, "processing_stage": "searching"}

    async def _search_node(self, state: ResearchState) -> Dict[str, Any]:
        job_id = state["job_id"]
        topics = state["topics"]
        total_topics = len(topics)
        logger.info(f"═══ Job {job_id}: searching {total_topics} topics ═══")

        start = self.config.PROGRESS_SEARCHING
        band = self.config.PROGRESS_PROCESSING - start

        self.job_store.update_job_status(
            job_id,
            JobStatus.SEARCHING,
            start,
            f"Searching for papers on {total_topics} topics"
        )

        semaphore = asyncio.Semaphore(self.config.SEARCH_CONCURRENCY)
        searched = 0

        async def search_topic(topic: str) -> List[Document]:
            nonlocal searched
            async with semaphore:
                try:
                    documents = list(
                        await self.search_provider.search(topic, self.config.PAPERS_PER_TOPIC)
                    )
                    logger.info(f"  ✓ '{topic}': {len(documents)} documents")
                except Exception as e:
                    # One topic failing only thins the dataset
                    logger.warning(f"  ✗ Search failed for topic '{topic}': {e}")
                    documents = []

            searched += 1
            self.job_store.update_job_status(
                job_id,
                JobStatus.SEARCHING,
                start + band * searched // total_topics,
                f"Searched topic {searched}/{total_topics}: {topic}"
            )
            return documents

        results = await asyncio.gather(*(search_topic(topic) for topic in topics))
        documents_by_topic = dict(zip(topics, results))

        total_documents = count_documents(documents_by_topic)
        if total_documents == 0:
            raise NoMaterialFoundError(
                f"No material found for any of {total_topics} topics",
                stage="searching"
            )

        logger.info(f"  ✓ Gathered {total_documents} documents")
        return {"documents_by_topic": documents_by_topic, "processing_stage": "processing"}

    async def _process_node(self, state: ResearchState) -> Dict[str, Any]:
        job_id = state["job_id"]
        documents_by_topic = state["documents_by_topic"]
        logger.info(f"═══ Job {job_id}: processing {count_documents(documents_by_topic)} documents ═══")

        self.job_store.update_job_status(
            job_id,
            JobStatus.PROCESSING,
            self.config.PROGRESS_PROCESSING,
            "Downloading and processing papers"
        )

        semaphore = asyncio.Semaphore(self.config.EXTRACTION_CONCURRENCY)
        failed = 0

        async def enrich(document: Document) -> Document:
            nonlocal failed
            source_link = document.get("pdf_url")
            if not source_link:
                return {**document}

            async with semaphore:
                try:
                    text = await self.document_processor.extract(source_link)
                except Exception as e:
                    logger.warning(f"  ✗ Extraction raised for '{document.get('title')}': {e}")
                    text = None

            if not text:
                failed += 1
            return {**document, "full_text": text or document.get("full_text")}

        enriched: Dict[str, List[Document]] = {}
        for topic, documents in documents_by_topic.items():
            enriched[topic] = list(await asyncio.gather(*(enrich(d) for d in documents)))

        logger.info(f"  ✓ Processing done ({failed} documents without extractable text)")
        return {
            "documents_by_topic": enriched,
            "documents_failed": failed,
            "processing_stage": "analyzing"
        }

    async def _analyze_node(self, state: ResearchState) -> Dict[str, Any]:
        job_id = state["job_id"]
        logger.info(f"═══ Job {job_id}: synthesizing analysis ═══")

        self.job_store.update_job_status(
            job_id,
            JobStatus.ANALYZING,
            self.config.PROGRESS_ANALYZING,
            "Generating research analysis"
        )

        try:
            analysis = await self.synthesizer.synthesize(
                state["query"], state["documents_by_topic"]
            )
        except SynthesisError:
            raise
        except Exception as e:
            raise SynthesisError(f"Analysis generation failed: {e}", stage="analyzing") from e

        if not isinstance(analysis, Mapping) or not analysis:
            raise SynthesisError("Synthesizer returned no usable analysis", stage="analyzing")

        return {"analysis": dict(analysis), "processing_stage": "complete"}

    @staticmethod
    def _build_result(final_state: Dict[str, Any]) -> ResearchResult:
        documents_by_topic = final_state["documents_by_topic"]
        all_documents = [d for docs in documents_by_topic.values() for d in docs]

        return {
            "query": final_state["query"],
            "topics": list(final_state["topics"]),
            "documents_by_topic": documents_by_topic,
            "analysis": final_state["analysis"],
            "documents_found": len(all_documents),
            "documents_with_full_text": len([d for d in all_documents if d.get("full_text")]),
            "documents_failed": final_state.get("documents_failed", 0)
        }
