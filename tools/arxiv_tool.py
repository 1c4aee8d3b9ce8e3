"""
arXiv search provider for the literature search stage.

The arxiv client is synchronous, so each search runs in a worker thread
to keep the event loop free.
"""

import asyncio
from typing import Any, List, Optional

import arxiv
from arxiv import Client, Search, SortCriterion
from loguru import logger

from agents.base import DocumentSearchProvider
from config import Settings, settings as default_settings
from errors import SearchError
from graph.state import Document
from tools.pdf_processor import format_citation


def paper_to_document(paper: Any) -> Document:
    """Map an arxiv.Result onto the pipeline's Document shape"""
    authors = [a.name for a in paper.authors]
    year = paper.published.year if paper.published else None
    venue = paper.journal_ref or (f"arXiv ({paper.primary_category})" if paper.primary_category else "arXiv")
    title = " ".join(paper.title.split())

    return {
        "title": title,
        "authors": authors,
        "year": year,
        "venue": venue,
        "abstract": " ".join(paper.summary.split()),
        "url": paper.entry_id,
        "pdf_url": paper.pdf_url,
        "full_text": None,
        "citation": format_citation(authors, year, title, venue)
    }


class ArxivSearchProvider(DocumentSearchProvider):
    """Searches arXiv for papers on a topic"""

    def __init__(self, config: Optional[Settings] = None, client: Optional[Client] = None):
        self.config = config or default_settings
        # arxiv's client enforces the delay between page requests itself
        self.client = client or Client(
            delay_seconds=self.config.ARXIV_RATE_LIMIT_DELAY,
            num_retries=self.config.ARXIV_NUM_RETRIES
        )

    async def search(self, topic: str, limit: int) -> List[Document]:
        return await asyncio.to_thread(self._search, topic, limit)

    def _search(self, topic: str, limit: int) -> List[Document]:
        logger.info(f"Searching arXiv for: '{topic}' (max_results={limit})")

        search = Search(
            query=topic,
            max_results=limit,
            sort_by=SortCriterion.Relevance
        )

        try:
            documents = [paper_to_document(paper) for paper in self.client.results(search)]
        except arxiv.UnexpectedEmptyPageError:
            # arXiv returns this when a query has fewer hits than requested
            documents = []
        except (arxiv.ArxivError, OSError) as e:
            raise SearchError(f"arXiv search failed for '{topic}': {e}") from e

        logger.info(f"ArxivSearchProvider: Found {len(documents)} papers for '{topic}'")
        return documents
