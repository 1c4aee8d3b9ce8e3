"""
Synthesizer Agent - Produces the final structured research analysis.

Summarizes every retrieved document (abstract and a slice of full text)
into one prompt and asks the LLM for a JSON research guide.
"""

import json
from typing import Any, Dict, List, Optional

from loguru import logger

from agents.base import AnalysisSynthesizer
from agents.llm import create_llm, extract_json
from config import Settings, settings as default_settings
from errors import SynthesisError
from graph.state import Document


SYNTHESIS_PROMPT = """You are an academic research assistant tasked with analyzing research papers and creating a comprehensive research guide.

Original Research Query: "{query}"

Information about {paper_count} research papers related to this query:
{papers}

Based on these papers, create a comprehensive research analysis in JSON format with the following structure:

{{
  "summary": "Overall summary of the research area (250-300 words)",
  "keyFindings": [{{"topic": "Topic name", "findings": "Key findings for this topic (100-150 words)"}}],
  "methodologies": {{"common": ["..."], "emerging": ["..."]}},
  "researchGaps": ["..."],
  "futureDirections": ["..."],
  "keyPapers": [{{"title": "...", "authors": "...", "year": "...", "summary": "Brief summary of importance (50-75 words)", "citation": "Full citation in APA format"}}],
  "comparativeAnalysis": "Analysis comparing different approaches or findings across papers (200-250 words)"
}}

CRITICAL INSTRUCTIONS:
- Only cite papers from the list above; do not invent papers
- If the papers do not support a section, leave its list empty
- Return ONLY the JSON object without any additional text"""

REQUIRED_SECTIONS = ("summary", "keyFindings")


def _truncate(text: Optional[str], limit: int) -> Optional[str]:
    if not text:
        return None
    return text[:limit] + ("..." if len(text) > limit else "")


def summarize_documents(
    documents_by_topic: Dict[str, List[Document]],
    abstract_chars: int,
    full_text_chars: int
) -> List[Dict[str, Any]]:
    """Compact per-document records for the synthesis prompt"""
    summaries = []
    for topic, documents in documents_by_topic.items():
        for document in documents:
            if not document.get("title"):
                continue
            summaries.append({
                "topic": topic,
                "title": document["title"],
                "authors": document.get("authors", []),
                "year": document.get("year"),
                "abstract": _truncate(document.get("abstract"), abstract_chars),
                "fullText": _truncate(document.get("full_text"), full_text_chars),
                "url": document.get("url"),
                "citation": document.get("citation")
            })
    return summaries


class OllamaAnalysisSynthesizer(AnalysisSynthesizer):
    """Analysis synthesis through a local Ollama model"""

    def __init__(self, config: Optional[Settings] = None, llm=None):
        self.config = config or default_settings
        self.llm = llm or create_llm(self.config)

    async def synthesize(
        self,
        query: str,
        documents_by_topic: Dict[str, List[Document]]
    ) -> Dict[str, Any]:
        summaries = summarize_documents(
            documents_by_topic,
            self.config.ABSTRACT_PROMPT_CHARS,
            self.config.FULL_TEXT_PROMPT_CHARS
        )
        logger.info(f"Synthesizing analysis from {len(summaries)} papers")

        prompt = SYNTHESIS_PROMPT.format(
            query=query,
            paper_count=len(summaries),
            papers=json.dumps(summaries, indent=2, ensure_ascii=False)
        )

        try:
            response = await self.llm.ainvoke(prompt)
        except Exception as e:
            raise SynthesisError(f"Failed to generate research analysis: {e}") from e

        analysis = extract_json(response.content, expect="object")
        if analysis is None:
            logger.error(f"Unparseable synthesis response: {response.content[:200]}")
            raise SynthesisError("Failed to parse analysis from model response")

        missing = [key for key in REQUIRED_SECTIONS if key not in analysis]
        if missing:
            raise SynthesisError(f"Analysis is missing sections: {', '.join(missing)}")

        logger.info("✓ Analysis generated")
        return analysis
