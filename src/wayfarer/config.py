"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    PLANNER: str = "openai"  # Options: openai, anthropic
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    TEMPERATURE: float = 0.0
    REQUEST_TIMEOUT: float = 30.0  # seconds, applies to planner and tool calls

    # Agent loop
    MAX_ITERATIONS: int = 8  # reason/act cycles per user turn
    MAX_PARALLEL_TOOLS: int = 4
    MAX_OBSERVATION_CHARS: int = 4000

    # Travel guide index
    VECTOR_DB_HOST: str = "localhost"
    VECTOR_DB_PORT: int = 8000
    COLLECTION_NAME: str = "travel_guide"
    EMBED_MODEL: str = "all-MiniLM-L6-v2"  # small; runs CPU-only
    RETRIEVAL_K: int = 4

    # Flight search
    SERPAPI_API_KEY: str | None = None
    SERPAPI_ENDPOINT: str = "https://serpapi.com/search.json"
    FLIGHT_CURRENCY: str = "USD"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
