"""
Configuration settings for the research orchestrator.

Uses Pydantic for validation and environment variable loading.
"""

import sys
from pathlib import Path

from loguru import logger
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Project paths
    PROJECT_ROOT: Path = Path(__file__).parent
    OUTPUT_DIR: Path = PROJECT_ROOT / "outputs"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    LOG_LEVEL: str = "INFO"

    # Ollama LLM settings
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1"
    LLM_TEMPERATURE: float = 0.7

    # Scheduler settings
    WORKER_COUNT: int = 2
    MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY: float = 2.0  # seconds before the second attempt
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    JOB_TIMEOUT_SECONDS: float = 900.0  # wall-clock budget per attempt

    # Pipeline settings
    MAX_QUERY_LENGTH: int = 500
    MAX_TOPICS: int = 5
    PAPERS_PER_TOPIC: int = 5
    SEARCH_CONCURRENCY: int = 3
    EXTRACTION_CONCURRENCY: int = 4

    # Progress checkpoints (percent)
    PROGRESS_EXPANDING: int = 10
    PROGRESS_SEARCHING: int = 20
    PROGRESS_PROCESSING: int = 70
    PROGRESS_ANALYZING: int = 90

    # arXiv settings
    ARXIV_RATE_LIMIT_DELAY: float = 3.0  # seconds between page requests
    ARXIV_NUM_RETRIES: int = 3

    # PDF settings
    PDF_DOWNLOAD_TIMEOUT: int = 30  # seconds
    MAX_PDF_BYTES: int = 25 * 1024 * 1024
    MIN_EXTRACTED_CHARS: int = 100
    MAX_FULL_TEXT_CHARS: int = 50_000

    # Synthesis prompt truncation
    ABSTRACT_PROMPT_CHARS: int = 500
    FULL_TEXT_PROMPT_CHARS: int = 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_job_output_dir(self, job_id: str) -> Path:
        """
        Get output directory for a specific job

        Args:
            job_id: Unique job identifier

        Returns:
            Path to job-specific output directory
        """
        path = self.OUTPUT_DIR / job_id
        path.mkdir(parents=True, exist_ok=True)
        return path


def configure_logging(config: Settings) -> None:
    """Route loguru output to stderr and a rotating file in LOGS_DIR."""
    config.LOGS_DIR.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)
    logger.add(
        config.LOGS_DIR / "research_{time:YYYY-MM-DD}.log",
        level=config.LOG_LEVEL,
        rotation="10 MB",
        retention="7 days",
        enqueue=True,
    )
    logger.debug(f"Logging configured (level={config.LOG_LEVEL}, dir={config.LOGS_DIR})")


# Global settings instance
settings = Settings()
