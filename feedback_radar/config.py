from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/feedback_radar"
    anthropic_api_key: str = ""
    redis_url: str = "redis://redis:6379/0"
    dramatiq_broker: str = "redis"  # "redis" or "stub" (tests, local CLI runs)

    judgment_model: str = "claude-haiku-4-5-20251001"  # Sentiment + under-radar judgments
    edition_model: str = "claude-sonnet-4-5-20250929"  # Daily edition + case verdicts

    # Anthropic API timeout settings (seconds)
    anthropic_timeout: int = 60
    anthropic_connect_timeout: int = 10

    # Similarity search (Qdrant + FastEmbed)
    qdrant_url: str = "http://qdrant:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "feedback"
    qdrant_timeout: int = 10
    embedding_model: str = "BAAI/bge-small-en-v1.5"

    # Triage thresholds
    batch_detection_window: int = 1000  # Most recent feedback items swept per batch run
    similar_feedback_limit: int = 10  # topK for neighbour queries
    case_title_max_length: int = 50

    # Durable step defaults
    step_retry_limit: int = 3
    step_retry_delay_seconds: float = 2.0
    edition_step_retry_delay_seconds: float = 5.0

    class Config:
        env_file = ".env"


settings = Settings()
