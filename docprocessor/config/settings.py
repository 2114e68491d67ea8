from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "documents"
    db_username: str = "documents"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    processing_directory: Path = Path("/tmp/docprocessor")
    allow_deletion: bool = False
    max_pages_limit: int = 100
    max_documents_per_run: int = 1000
    processing_batch_size: int = 20

    pdf_engine: str = "pymupdf"
    ocr_language: str = "deu"
    ocr_min_text_length: int = 32
    ocr_render_dpi: int = 300
    download_timeout_seconds: int = 100

    llamaparse_api_key: str = ""
    llamaparse_base_url: str = "https://api.cloud.llamaindex.ai/api/parsing"
    remote_parse_page_threshold: int = 0
    llamaparse_poll_interval_seconds: float = 1.0
    llamaparse_timeout_seconds: int = 600

    llm_provider: str = "openai"
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_model_name: str = "gpt-4o-mini"
    openai_embedding_model_name: str = "text-embedding-3-small"
    capability_timeout_seconds: int = 30

    retry_max_attempts: int = 10
    retry_base_delay_seconds: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay_seconds: float = 60.0

    tokenizer_encoding: str = "cl100k_base"
    summary_token_budget: int = 15000
    summary_batch_size: int = 10
    summary_max_levels: int = 8
    max_tags: int = 10
    embedding_token_budget: int = 1500
    embedding_batch_size: int = 20
    regeneration_batch_size: int = 5

    cost_per_million_input_tokens: float = 0.15
    cost_per_million_output_tokens: float = 0.60
    cost_per_million_embedding_tokens: float = 0.02

    @property
    def remote_parse_enabled(self) -> bool:
        return bool(self.llamaparse_api_key) and self.remote_parse_page_threshold > 0
