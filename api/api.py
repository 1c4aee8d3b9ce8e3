"""
FastAPI application exposing research job submission and polling

Usage:
    uvicorn api.api:app --reload --port 8000
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from api import __version__
from api.schemas import (
    HealthResponse,
    JobListResponse,
    JobResultsResponse,
    JobStatusResponse,
    JobSummary,
    ResearchJobRequest,
    ResearchJobResponse,
)
from api.service import ResearchService, build_default_service
from config import Settings, configure_logging, settings as default_settings
from errors import ErrorKind, ResearchError

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NOT_READY: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
}


def create_app(
    service: Optional[ResearchService] = None,
    config: Optional[Settings] = None
) -> FastAPI:
    """
    Build the API around a research service.

    Args:
        service: Pre-built service (tests inject fakes); defaults to the
            Ollama/arXiv/PDF service
        config: Settings used when building the default service
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        research_service = service
        if research_service is None:
            configure_logging(config)
            research_service = build_default_service(config)

        app.state.service = research_service
        await research_service.start()
        logger.info("Research API started")
        try:
            yield
        finally:
            await research_service.stop()
            logger.info("Research API stopped")

    app = FastAPI(
        title="Research Orchestrator API",
        description="Asynchronous research pipeline: topic expansion, literature search, extraction and synthesis",
        version=__version__,
        lifespan=lifespan
    )

    @app.exception_handler(ResearchError)
    async def research_error_handler(request: Request, exc: ResearchError) -> JSONResponse:
        status_code = ERROR_STATUS_CODES.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(
            status_code=status_code,
            content={
                "detail": exc.message,
                "kind": exc.kind.value,
                "job_id": request.path_params.get("job_id")
            }
        )

    def get_service(request: Request) -> ResearchService:
        return request.app.state.service

    @app.post("/research", response_model=ResearchJobResponse, status_code=status.HTTP_202_ACCEPTED)
    async def start_research(body: ResearchJobRequest, request: Request):
        research_service = get_service(request)
        job_id = research_service.submit(body.query)
        job = research_service.get_status(job_id)
        return ResearchJobResponse(
            job_id=job.job_id,
            status=job.status.value,
            created_at=job.created_at
        )

    @app.get("/status/{job_id}", response_model=JobStatusResponse)
    async def get_research_status(job_id: str, request: Request):
        job = get_service(request).get_status(job_id)
        return JobStatusResponse(
            job_id=job.job_id,
            query=job.query,
            status=job.status.value,
            progress=job.progress,
            message=job.message,
            created_at=job.created_at,
            updated_at=job.updated_at
        )

    @app.get("/results/{job_id}", response_model=JobResultsResponse)
    async def get_research_results(job_id: str, request: Request):
        research_service = get_service(request)
        result = research_service.get_results(job_id)
        job = research_service.get_status(job_id)
        return JobResultsResponse(
            job_id=job_id,
            created_at=job.created_at,
            completed_at=job.updated_at,
            **result
        )

    @app.get("/jobs", response_model=JobListResponse)
    async def list_jobs(request: Request):
        jobs = get_service(request).list_jobs()
        summaries = [
            JobSummary(
                job_id=job.job_id,
                query=job.query,
                status=job.status.value,
                progress=job.progress,
                message=job.message,
                created_at=job.created_at,
                updated_at=job.updated_at
            )
            for job in jobs
        ]
        return JobListResponse(jobs=summaries, total_count=len(summaries))

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        research_service = get_service(request)
        return HealthResponse(
            status="healthy",
            active_jobs=research_service.count_active_jobs(),
            queued_jobs=research_service.scheduler.queued_count,
            timestamp=datetime.now()
        )

    return app


app = create_app()
