"""
Pydantic schemas for FastAPI request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class ResearchJobRequest(BaseModel):
    """Request schema for creating a research job"""
    query: str = Field(..., description="Research query to investigate")

    class Config:
        json_schema_extra = {
            "example": {
                "query": "quantum computing error correction"
            }
        }


class ResearchJobResponse(BaseModel):
    """Response schema when a job is created"""
    job_id: str = Field(..., description="Unique job identifier")
    status: str = Field(..., description="Job status (queued)")
    created_at: datetime = Field(..., description="Job creation timestamp")
    message: str = Field(default="Research job has been queued", description="Status message")

    class Config:
        json_schema_extra = {
            "example": {
                "job_id": "550e8400-e29b-41d4-a716-446655440000",
                "status": "queued",
                "created_at": "2026-01-03T10:30:00",
                "message": "Research job has been queued"
            }
        }


class JobStatusResponse(BaseModel):
    """Response schema for job status checks"""
    job_id: str = Field(..., description="Unique job identifier")
    query: str = Field(..., description="Original research query")
    status: str = Field(..., description="queued, expanding, searching, processing, analyzing, completed or failed")
    progress: int = Field(..., ge=0, le=100, description="Progress percentage (0-100)")
    message: Optional[str] = Field(None, description="Latest status message")
    created_at: datetime = Field(..., description="Job creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "job_id": "550e8400-e29b-41d4-a716-446655440000",
                "query": "quantum computing error correction",
                "status": "searching",
                "progress": 45,
                "message": "Searched topic 3/5: surface codes",
                "created_at": "2026-01-03T10:30:00",
                "updated_at": "2026-01-03T10:35:00"
            }
        }


class DocumentModel(BaseModel):
    """One retrieved document"""
    title: str
    authors: List[str] = Field(default_factory=list)
    year: Optional[int] = None
    venue: Optional[str] = None
    abstract: str = ""
    url: Optional[str] = None
    pdf_url: Optional[str] = None
    full_text: Optional[str] = None
    citation: str = ""


class JobResultsResponse(BaseModel):
    """Response schema for completed job results"""
    job_id: str = Field(..., description="Unique job identifier")
    query: str = Field(..., description="Original research query")
    topics: List[str] = Field(..., description="Topics the query was expanded into")
    documents_by_topic: Dict[str, List[DocumentModel]] = Field(..., description="Documents grouped by topic")
    analysis: Dict[str, Any] = Field(..., description="Synthesized research analysis")
    documents_found: int = Field(..., description="Total documents retrieved")
    documents_with_full_text: int = Field(..., description="Documents whose full text was extracted")
    documents_failed: int = Field(..., description="Documents whose source could not be processed")
    created_at: datetime = Field(..., description="Job creation timestamp")
    completed_at: datetime = Field(..., description="Job completion timestamp")


class ErrorResponse(BaseModel):
    """Error response schema"""
    detail: str = Field(..., description="Error description")
    kind: str = Field(..., description="Error kind")
    job_id: Optional[str] = Field(None, description="Job ID if applicable")

    class Config:
        json_schema_extra = {
            "example": {
                "detail": "Job 550e8400-e29b-41d4-a716-446655440000 not found",
                "kind": "not_found",
                "job_id": "550e8400-e29b-41d4-a716-446655440000"
            }
        }


class HealthResponse(BaseModel):
    """Health check response schema"""
    status: str = Field(..., description="API health status")
    active_jobs: int = Field(..., description="Number of jobs not yet completed or failed")
    queued_jobs: int = Field(..., description="Number of jobs waiting for a worker")
    timestamp: datetime = Field(..., description="Health check timestamp")


class JobSummary(BaseModel):
    """Summary of a job for history listing"""
    job_id: str = Field(..., description="Unique job identifier")
    query: str = Field(..., description="Research query")
    status: str = Field(..., description="Job status")
    progress: int = Field(..., ge=0, le=100, description="Progress percentage")
    message: Optional[str] = Field(None, description="Latest status message")
    created_at: datetime = Field(..., description="Job creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class JobListResponse(BaseModel):
    """Response schema for listing all jobs"""
    jobs: List[JobSummary] = Field(..., description="List of job summaries")
    total_count: int = Field(..., description="Total number of jobs")
