# config.py
"""Configuration settings for the lesson generation pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class LessonSettings(BaseSettings):
    """Full configuration for the lesson generator."""

    # API and Model Configuration
    OPENAI_API_BASE: str = "http://127.0.0.1:8080/v1"
    OPENAI_API_KEY: str = "nope"
    GENERATION_MODEL: str = "gemini-2.0-flash"
    FALLBACK_GENERATION_MODEL: str | None = None
    CONTEXT_MODEL: str | None = None

    # Temperature Settings
    TEMPERATURE_DEFAULT: float = 0.7
    TEMPERATURE_CONTEXT: float = 0.3
    TEMPERATURE_SECTION: float = 0.7
    TEMPERATURE_REGENERATION: float = 0.5
    LLM_TOP_P: float = 0.9

    # LLM Call Settings & Fallbacks
    LLM_RETRY_ATTEMPTS: int = 1
    LLM_RETRY_DELAY_SECONDS: float = 1.0
    HTTPX_TIMEOUT: float = 120.0
    MAX_GENERATION_TOKENS: int = 4096
    TIKTOKEN_DEFAULT_ENCODING: str = "cl100k_base"
    FALLBACK_CHARS_PER_TOKEN: float = 4.0
    TOKENIZER_CACHE_SIZE: int = 10
    LLM_CALL_CACHE_SIZE: int = 64

    # Concurrency and Rate Limiting
    MAX_CONCURRENT_LLM_CALLS: int = 4
    SECTION_CALL_TIMEOUT_SECONDS: float = 60.0

    # Shared context extraction
    CONTEXT_SOURCE_MAX_TOKENS: int = 800
    CONTEXT_VOCABULARY_MIN: int = 6
    CONTEXT_VOCABULARY_MAX: int = 12
    CONTEXT_THEMES_MIN: int = 2
    CONTEXT_THEMES_MAX: int = 5
    CONTEXT_SUMMARY_MAX_CHARS: int = 300
    CONTEXT_FALLBACK_SUMMARY_SENTENCES: int = 2

    # Section generation
    SECTION_MAX_ATTEMPTS: int = 2
    VOCABULARY_WORDS_PER_LESSON: int = 8
    READING_PARAGRAPHS: int = 3

    # Input gate thresholds
    MIN_WORD_COUNT: int = 50
    EXTRACTION_MIN_WORD_COUNT: int = 200
    MIN_QUALITY_SCORE: int = 60
    MIN_ALPHABETIC_TOKEN_RATIO: float = 0.5

    # Error handling
    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_MS: int = 1000
    SUPPORT_CONTACT: str = "support@linguaspark.com"

    # Output and File Paths
    BASE_OUTPUT_DIR: str = "lesson_output"
    LESSONS_DIR: str = "lessons"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="AGENT_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = "lesson_run.log"
    ENABLE_RICH_PROGRESS: bool = True

    # API server
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000

    @model_validator(mode="after")
    def set_dynamic_model_defaults(self) -> LessonSettings:
        if self.FALLBACK_GENERATION_MODEL is None:
            self.FALLBACK_GENERATION_MODEL = self.GENERATION_MODEL
        if self.CONTEXT_MODEL is None:
            self.CONTEXT_MODEL = self.GENERATION_MODEL
        return self

    @model_validator(mode="after")
    def warn_placeholder_api_key(self) -> LessonSettings:
        if self.OPENAI_API_KEY == "nope":
            logger.warning(
                "OPENAI_API_KEY is using the placeholder value. Model calls will "
                "fail unless the endpoint ignores authentication."
            )
        return self

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")


class GenerationConfig(BaseModel):
    """Per-session options recognised by the generation entrypoint."""

    min_word_count: int = Field(default=50, ge=1)
    min_quality_score: int = Field(default=60, ge=0, le=100)
    strict_mode: bool = False
    max_retry_attempts: int | None = 3
    enable_retry: bool = True
    show_technical_details: bool = False
    max_attempts: int = Field(default=2, ge=1)
    accept_best_on_exhaustion: bool = True
    call_timeout_seconds: float = Field(default=60.0, gt=0)
    retry_base_delay_ms: int = Field(default=1000, ge=0)

    @classmethod
    def from_settings(cls, **overrides: object) -> GenerationConfig:
        """Build a config seeded from environment settings."""
        values: dict[str, object] = {
            "min_word_count": settings.MIN_WORD_COUNT,
            "min_quality_score": settings.MIN_QUALITY_SCORE,
            "max_retry_attempts": settings.MAX_RETRY_ATTEMPTS,
            "max_attempts": settings.SECTION_MAX_ATTEMPTS,
            "call_timeout_seconds": settings.SECTION_CALL_TIMEOUT_SECONDS,
            "retry_base_delay_ms": settings.RETRY_BASE_DELAY_MS,
        }
        values.update(overrides)
        return cls(**values)


settings = LessonSettings()
