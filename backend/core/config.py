import os
from typing import List, Optional

class Settings:
    """Application settings and configuration"""
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000

    # Primary provider (hosted OpenAI chat completions)
    OPENAI_API_KEY: Optional[str] = None
    DEFAULT_MODEL: str = "gpt-4o-mini"
    PREMIUM_MODEL: str = "gpt-4o"
    AVAILABLE_MODELS: List[str] = ["gpt-4o", "gpt-4o-mini", "gpt-3.5-turbo"]
    OPENAI_MAX_TOKENS: int = 800
    OPENAI_PREMIUM_MAX_TOKENS: int = 1200
    OPENAI_TEMPERATURE: float = 0.7
    OPENAI_TIMEOUT: float = 30.0

    # Secondary provider (local Ollama server)
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.2:1b"
    OLLAMA_TIMEOUT: float = 10.0
    OLLAMA_TEMPERATURE: float = 0.5
    OLLAMA_TOP_P: float = 0.8
    OLLAMA_MAX_TOKENS: int = 500

    # Activity log
    ACTIVITY_LOG_MAX_ENTRIES: int = 1000
    ADMIN_TOKEN: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"

    @property
    def primary_configured(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables"""
        settings = cls()

        settings.API_HOST = os.getenv("API_HOST", settings.API_HOST)
        settings.API_PORT = int(os.getenv("API_PORT", settings.API_PORT))

        settings.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or None
        settings.DEFAULT_MODEL = os.getenv("DEFAULT_MODEL", settings.DEFAULT_MODEL)
        settings.PREMIUM_MODEL = os.getenv("PREMIUM_MODEL", settings.PREMIUM_MODEL)
        models = os.getenv("AVAILABLE_MODELS")
        if models:
            settings.AVAILABLE_MODELS = [m.strip() for m in models.split(",") if m.strip()]
        settings.OPENAI_MAX_TOKENS = int(os.getenv("OPENAI_MAX_TOKENS", settings.OPENAI_MAX_TOKENS))
        settings.OPENAI_PREMIUM_MAX_TOKENS = int(os.getenv("OPENAI_PREMIUM_MAX_TOKENS", settings.OPENAI_PREMIUM_MAX_TOKENS))
        settings.OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", settings.OPENAI_TEMPERATURE))
        settings.OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", settings.OPENAI_TIMEOUT))

        settings.OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", settings.OLLAMA_BASE_URL)
        settings.OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", settings.OLLAMA_MODEL)
        settings.OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", settings.OLLAMA_TIMEOUT))
        settings.OLLAMA_TEMPERATURE = float(os.getenv("OLLAMA_TEMPERATURE", settings.OLLAMA_TEMPERATURE))
        settings.OLLAMA_TOP_P = float(os.getenv("OLLAMA_TOP_P", settings.OLLAMA_TOP_P))
        settings.OLLAMA_MAX_TOKENS = int(os.getenv("OLLAMA_MAX_TOKENS", settings.OLLAMA_MAX_TOKENS))

        settings.ACTIVITY_LOG_MAX_ENTRIES = int(os.getenv("ACTIVITY_LOG_MAX_ENTRIES", settings.ACTIVITY_LOG_MAX_ENTRIES))
        settings.ADMIN_TOKEN = os.getenv("ADMIN_TOKEN") or None

        settings.LOG_LEVEL = os.getenv("LOG_LEVEL", settings.LOG_LEVEL).upper()
        settings.DEBUG = os.getenv("DEBUG", "True").lower() == "true"
        settings.ENVIRONMENT = os.getenv("ENVIRONMENT", settings.ENVIRONMENT)

        return settings

# Global settings instance
settings = Settings.from_env()
