"""Configuration management for the Insight Assistant."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    APP_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Provider keys
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key (embeddings, classifier)")
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic API key (chat, cards)")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Chat completion
    CHAT_MODEL: str = Field(
        default="claude-3-5-haiku-20241022", description="Model for streamed chat answers"
    )
    CHAT_RESPONSE_BUFFER: int = Field(default=4096, description="Max tokens per chat answer")
    CHAT_TEMPERATURE: float = Field(default=0.2, description="Chat sampling temperature")
    CHAT_HISTORY_WINDOW: int = Field(
        default=10, description="Prior conversation messages sent with each request"
    )

    # Card generation
    CARDS_ENABLED: bool = Field(default=True, description="Generate UI cards after each answer")
    CARDS_MODEL: str = Field(
        default="claude-3-5-haiku-20241022", description="Model for card tool calls"
    )
    CARDS_TIMEOUT_SECONDS: float = Field(
        default=20.0, description="Upper bound on the card generation call"
    )

    # Query classification
    CLASSIFIER_LLM_ENABLED: bool = Field(
        default=False, description="Escalate unmatched queries to the LLM classifier"
    )
    CLASSIFIER_MODEL: str = Field(default="gpt-4o-mini", description="Model for query classification")
    CLASSIFIER_TIMEOUT_SECONDS: float = Field(
        default=5.0, description="Upper bound on the LLM classifier call"
    )
    CLASSIFIER_MAX_K: int = Field(default=20, description="Largest k the LLM classifier may return")

    # Retrieval defaults
    DEFAULT_SIMILARITY_K: int = Field(default=3, description="k for plain similarity search")
    DEFAULT_ACTION_K: int = Field(
        default=5, description="k for quick-win, high-value and ratio searches"
    )
    QUICK_WIN_MIN_VALUE: int = Field(default=6, description="Quick-win minimum value score")
    QUICK_WIN_MAX_EFFORT: int = Field(default=4, description="Quick-win maximum effort score")
    HIGH_VALUE_MIN_VALUE: int = Field(default=7, description="High-value minimum value score")
    MIN_VALUE_EFFORT_RATIO: float = Field(default=1.5, description="Minimum value/effort ratio")
    OVER_FETCH_FACTOR: int = Field(
        default=4, description="Candidates fetched per requested result before filtering"
    )
    OVER_FETCH_FLOOR: int = Field(
        default=20, description="Minimum candidates fetched before filtering"
    )
    RATIO_FETCH_FLOOR: int = Field(
        default=30, description="Minimum candidates fetched for the ratio strategy"
    )
    BROAD_FETCH: int = Field(
        default=20, description="Candidates fetched for company and impact lookups"
    )

    # HTTP
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If an environment variable has an invalid value
    """
    return Settings()
