"""Environment-based configuration for the claim extraction service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Claim extraction settings, loaded from environment variables."""

    # Server
    PORT: int = 8092
    LOG_LEVEL: str = "INFO"

    # Directory that filePath requests may read from. Empty = filePath rejected over HTTP.
    DOCUMENT_ROOT: str = ""

    # Remote analyzer (Ollama-compatible). Empty = AI extraction disabled.
    ANALYZER_URL: str = ""
    ANALYZER_MODEL: str = "llama3.1:latest"

    # Timeouts
    ANALYZER_PROBE_TIMEOUT: float = 5.0
    ANALYZER_TIMEOUT_SECONDS: float = 30.0
    ANALYZER_CONNECT_TIMEOUT: float = 5.0

    # Sampling options for the extraction prompt
    ANALYZER_TEMPERATURE: float = 0.3
    ANALYZER_MAX_TOKENS: int = 512

    # Retry for free-text completions (extraction is single-attempt)
    ANALYZER_RETRY_ATTEMPTS: int = 3
    ANALYZER_RETRY_DELAY: float = 1.0
    ANALYZER_RETRY_BACKOFF: float = 2.0

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
