"""
PDF download and text extraction utilities.

Handles fetching PDFs from a source link and extracting their text with
error handling; failures resolve to "no full text", never to an exception.
"""

import asyncio
from io import BytesIO
from typing import List, Optional

import requests
from loguru import logger
from pypdf import PdfReader

from agents.base import DocumentProcessor
from config import Settings, settings as default_settings


def extract_text_from_pdf(pdf_bytes: bytes, min_chars: int = 100) -> str:
    """
    Extract text from PDF bytes using PyPDF.

    Args:
        pdf_bytes: Raw PDF content
        min_chars: Minimum length for the text to count as extracted

    Returns:
        Extracted text with normalized whitespace

    Raises:
        Exception: If PDF extraction fails
    """
    reader = PdfReader(BytesIO(pdf_bytes))
    pages = []

    for page_num, page in enumerate(reader.pages):
        try:
            pages.append(page.extract_text() or "")
        except Exception as e:
            logger.warning(f"Failed to extract page {page_num}: {e}")
            continue

    # Clean up
    text = " ".join(pages).replace("\x00", "")  # Remove null bytes
    text = " ".join(text.split())  # Normalize whitespace

    if len(text) < min_chars:
        raise ValueError(f"Extracted text too short ({len(text)} chars)")

    return text


def format_citation(
    authors: List[str],
    year: Optional[int],
    title: str,
    venue: Optional[str]
) -> str:
    """
    Format citation string in APA-like form.

    Returns:
        Formatted citation: Authors. (Year). Title. Venue.
    """
    if not authors:
        author_text = "Unknown Authors"
    elif len(authors) <= 3:
        author_text = ", ".join(authors)
    else:
        author_text = f"{authors[0]} et al."

    year_text = str(year) if year else "n.d."
    citation = f"{author_text.rstrip('.')}. ({year_text}). {title.rstrip('.')}."
    if venue:
        citation += f" {venue.rstrip('.')}."
    return citation


class PdfDocumentProcessor(DocumentProcessor):
    """Downloads a PDF and extracts its text"""

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.session = session or requests.Session()

    async def extract(self, source_link: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._extract, source_link)
        except Exception as e:
            logger.warning(f"PDF processing failed for {source_link}: {e}")
            return None

    def _extract(self, source_link: str) -> Optional[str]:
        pdf_bytes = self._download(source_link)
        if pdf_bytes is None:
            return None

        text = extract_text_from_pdf(pdf_bytes, self.config.MIN_EXTRACTED_CHARS)
        logger.info(f"Extracted {len(text)} characters from {source_link}")
        return text[:self.config.MAX_FULL_TEXT_CHARS]

    def _download(self, pdf_url: str) -> Optional[bytes]:
        """
        Download a PDF, refusing anything over MAX_PDF_BYTES.

        Returns:
            PDF bytes, or None if the download failed
        """
        logger.info(f"Downloading PDF from {pdf_url}")

        try:
            with self.session.get(pdf_url, timeout=self.config.PDF_DOWNLOAD_TIMEOUT, stream=True) as response:
                response.raise_for_status()

                buffer = BytesIO()
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    buffer.write(chunk)
                    if buffer.tell() > self.config.MAX_PDF_BYTES:
                        logger.warning(f"PDF at {pdf_url} exceeds {self.config.MAX_PDF_BYTES} bytes, skipping")
                        return None
        except requests.RequestException as e:
            logger.error(f"PDF download failed for {pdf_url}: {e}")
            return None

        return buffer.getvalue()
