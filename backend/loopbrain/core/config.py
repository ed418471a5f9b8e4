"""
Application configuration.
All sensitive values loaded from environment variables.
"""
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/loopwell"
    
    # AI Provider Configuration
    # Supported providers: openai, deepseek, claude
    AI_PROVIDER: str = "openai"
    AI_API_KEY: str = ""
    AI_BASE_URL: Optional[str] = None  # Custom base URL if needed
    AI_MODEL: Optional[str] = None  # Custom model name
    
    # Provider-specific API keys (optional, falls back to AI_API_KEY)
    OPENAI_API_KEY: Optional[str] = None
    CLAUDE_API_KEY: Optional[str] = None
    DEEPSEEK_API_KEY: Optional[str] = None
    
    # Loopbrain answer generation
    LOOPBRAIN_MODEL: Optional[str] = None  # Falls back to AI_MODEL, then provider default
    LOOPBRAIN_TEMPERATURE: float = 0.7
    LOOPBRAIN_MAX_TOKENS: int = 2000
    
    # Embeddings
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_BASE_URL: str = "https://api.openai.com/v1"
    EMBEDDING_API_KEY: Optional[str] = None  # Falls back to OPENAI_API_KEY, then AI_API_KEY
    
    # Semantic search
    SEARCH_MAX_CANDIDATES: int = 500
    SEARCH_MAX_RESULTS: int = 50
    
    # Per-source timeout (seconds) when assembling context in parallel
    CONTEXT_SOURCE_TIMEOUT: float = 10.0
    
    # Embedding backfill throttling
    BACKFILL_BATCH_SIZE: int = 10
    BACKFILL_DELAY_MS: int = 1000
    BACKFILL_PAGE_SIZE: int = 100
    
    # Slack action integration (disabled when no token is set)
    SLACK_BOT_TOKEN: Optional[str] = None
    SLACK_BASE_URL: str = "https://slack.com/api"
    ACTION_DEFAULT_CHANNEL: str = "#general"
    
    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console
    
    # AI Debug Logging - enables detailed message content logging
    # WARNING: Set to True only for debugging, logs may contain sensitive data
    AI_DEBUG_LOG: bool = False
    # Maximum length of message content to log (0 = unlimited)
    AI_DEBUG_LOG_MAX_LENGTH: int = 2000
    
    # Pipeline decision logging for the orchestrator graph
    AGENT_DECISION_LOG: bool = False
    
    def get_api_key(self, provider: str) -> str:
        """Get API key for a specific provider."""
        provider_keys = {
            "openai": self.OPENAI_API_KEY,
            "claude": self.CLAUDE_API_KEY,
            "deepseek": self.DEEPSEEK_API_KEY,
        }
        # Return provider-specific key if set, otherwise fall back to AI_API_KEY
        return provider_keys.get(provider.lower()) or self.AI_API_KEY
    
    def get_embedding_api_key(self) -> str:
        return self.EMBEDDING_API_KEY or self.OPENAI_API_KEY or self.AI_API_KEY
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
