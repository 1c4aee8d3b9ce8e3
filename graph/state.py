"""
State definitions for the research workflow.

Defines TypedDict schemas for LangGraph state management.
"""

from typing import TypedDict, List, Dict, Optional, Any


class Document(TypedDict):
    """Metadata (and optionally extracted text) for one retrieved work"""
    title: str
    authors: List[str]
    year: Optional[int]
    venue: Optional[str]
    abstract: str
    url: Optional[str]  # Landing page
    pdf_url: Optional[str]  # Retrievable source link, used by the processing stage
    full_text: Optional[str]
    citation: str  # Pre-formatted: Authors. (Year). Title. Venue.


class ResearchResult(TypedDict):
    """Terminal artifact of a completed job"""
    query: str
    topics: List[str]
    documents_by_topic: Dict[str, List[Document]]
    analysis: Dict[str, Any]
    documents_found: int
    documents_with_full_text: int
    documents_failed: int  # Had a source link but no text could be extracted


class ResearchState(TypedDict):
    """Main state shared across all stages in the research workflow"""

    # Job identification
    job_id: str
    attempt: int

    # Input
    query: str

    # Expansion output
    topics: List[str]

    # Search / processing output (topic -> documents, in topic order)
    documents_by_topic: Dict[str, List[Document]]
    documents_failed: int

    # Analysis output
    analysis: Optional[Dict[str, Any]]

    # Metadata
    processing_stage: str  # "expanding", "searching", "processing", "analyzing", "complete"


def count_documents(documents_by_topic: Dict[str, List[Document]]) -> int:
    return sum(len(docs) for docs in documents_by_topic.values())
