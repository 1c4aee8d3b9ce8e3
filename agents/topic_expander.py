"""
Topic Expander Agent - Expands a research query into sub-topics.

Asks the LLM for a JSON array of 3-5 focused research subtopics that
drive the fan-out of the search stage.
"""

from typing import List, Optional

from loguru import logger

from agents.base import TopicExpander
from agents.llm import create_llm, extract_json
from config import Settings, settings as default_settings
from errors import ExpansionError


EXPANSION_PROMPT = """You are a research assistant helping to expand a research query into relevant subtopics for academic research.

User Query: "{query}"

Identify 3-5 specific subtopics or research areas related to this query that would be valuable to explore.
Focus on academic relevance and current research directions.
Each subtopic must work on its own as a literature search query.

Format your response as a JSON array of strings, with each string being a specific research subtopic.
Example: ["Topic 1", "Topic 2", "Topic 3"]

Return ONLY the JSON array."""


class OllamaTopicExpander(TopicExpander):
    """Topic expansion through a local Ollama model"""

    def __init__(self, config: Optional[Settings] = None, llm=None):
        self.config = config or default_settings
        self.llm = llm or create_llm(self.config)

    async def expand(self, query: str) -> List[str]:
        logger.info(f"Expanding query: '{query}'")

        try:
            response = await self.llm.ainvoke(EXPANSION_PROMPT.format(query=query))
        except Exception as e:
            raise ExpansionError(f"Failed to expand research query: {e}") from e

        topics = extract_json(response.content, expect="array")
        if topics is None:
            logger.error(f"Unparseable expansion response: {response.content[:200]}")
            raise ExpansionError("Failed to parse topics from model response")

        topics = [t.strip() for t in topics if isinstance(t, str) and t.strip()]
        topics = topics[:self.config.MAX_TOPICS]
        if not topics:
            raise ExpansionError("Model returned an empty topic list")

        logger.info(f"✓ Expanded into {len(topics)} topics")
        return topics
