"""
Capability interfaces for the pipeline's external collaborators.

Each stage of the pipeline talks to exactly one of these. Concrete
implementations wrap an external system (Ollama, arXiv, remote PDFs);
tests substitute in-process fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from graph.state import Document


class TopicExpander(ABC):
    """Expands a research query into an ordered list of sub-topics"""

    @abstractmethod
    async def expand(self, query: str) -> List[str]:
        """
        Raises:
            ExpansionError: If no topics can be produced
        """


class DocumentSearchProvider(ABC):
    """Finds documents for a single topic"""

    @abstractmethod
    async def search(self, topic: str, limit: int) -> List[Document]:
        """
        Raises:
            SearchError: If the search itself fails (empty results are not an error)
        """


class DocumentProcessor(ABC):
    """Extracts full text from a document's source link"""

    @abstractmethod
    async def extract(self, source_link: str) -> Optional[str]:
        """Return extracted text, or None on any failure. Never raises."""


class AnalysisSynthesizer(ABC):
    """Produces the structured analysis for a completed search"""

    @abstractmethod
    async def synthesize(
        self,
        query: str,
        documents_by_topic: Dict[str, List[Document]]
    ) -> Dict[str, Any]:
        """
        Raises:
            SynthesisError: If the model fails or its output cannot be parsed
        """
