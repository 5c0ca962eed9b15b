from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

DEFAULT_RESOURCE_LIBRARY = Path(__file__).resolve().parent / "data" / "resources.tsv"


class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
	# Optional: model override for the final diagnostic report
	gemini_summary_model: str | None = Field(default=None, validation_alias="GEMINI_SUMMARY_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Transport behaviour
	llm_timeout_seconds: float = Field(default=30.0, validation_alias="LLM_TIMEOUT_SECONDS")
	llm_max_retries: int = Field(default=2, ge=0, validation_alias="LLM_MAX_RETRIES")
	llm_retry_delay_seconds: float = Field(default=1.0, ge=0, validation_alias="LLM_RETRY_DELAY_SECONDS")

	# Quiz shape
	total_questions: int = Field(default=6, ge=1, validation_alias="TOTAL_QUESTIONS")
	summary_min_analysis_chars: int = Field(default=200, ge=0, validation_alias="SUMMARY_MIN_ANALYSIS_CHARS")

	# Sessions live in memory only; idle ones are purged by the cleanup loop
	session_idle_timeout_seconds: int = Field(default=3600, ge=1, validation_alias="SESSION_IDLE_TIMEOUT_SECONDS")
	session_cleanup_interval_seconds: int = Field(default=300, ge=1, validation_alias="SESSION_CLEANUP_INTERVAL_SECONDS")

	resource_library_path: Path = Field(default=DEFAULT_RESOURCE_LIBRARY, validation_alias="RESOURCE_LIBRARY_PATH")

	cors_origin: str = Field(default="http://localhost:5173", validation_alias="CORS_ORIGIN")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
