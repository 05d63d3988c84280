"""
Configuration for AstraSemi Assistant
=====================================

Environment variables:
- LLM_MODE: none|openai|openrouter (default: openai)
- OPENAI_API_KEY: API key for OpenAI
- OPENAI_MODEL: Text model (default: gpt-4o-mini)
- OPENAI_VISION_MODEL: Model for image explanation (default: gpt-4o)
- OPENROUTER_API_KEY / OPENROUTER_MODEL: OpenRouter alternative
- AUTH_SECRET: Key used to sign session cookies
- SESSION_DAYS: Session cookie lifetime in days (default: 7)
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./astrasemi.db)
- SEED_DEMO_DATA: Seed roles, sample tasks and demo users at startup
- CORS_ALLOW_ORIGINS: Comma separated origins allowed to call the API
- ENFORCE_HTTPS / HSTS_MAX_AGE: Redirect plain HTTP and send HSTS
- FRONTEND_DIR: Prebuilt frontend to serve (optional)
"""

from typing import List, Optional
from functools import lru_cache

from pydantic_settings import BaseSettings

from .schemas import LLMMode


DEV_AUTH_SECRET = "dev-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # LLM Configuration
    llm_mode: LLMMode = LLMMode.OPENAI

    # OpenAI (primary)
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_vision_model: str = "gpt-4o"

    # OpenRouter (alternative, OpenAI-compatible)
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "openai/gpt-4o-mini"
    openrouter_vision_model: str = "openai/gpt-4o"

    # Timeouts (seconds)
    llm_timeout: int = 30
    vision_timeout: int = 45
    glossary_timeout: int = 20
    briefing_timeout: int = 30

    # Input guards
    max_csv_input_chars: int = 50000
    max_text_input_chars: int = 10000
    max_image_bytes: int = 20 * 1024 * 1024
    max_term_chars: int = 200

    # Auth / session cookie
    auth_secret: str = DEV_AUTH_SECRET
    session_days: int = 7
    session_cookie_name: str = "session"
    cookie_secure: bool = False

    # Database
    database_url: str = "sqlite:///./astrasemi.db"

    # Startup
    seed_demo_data: bool = True

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://localhost:5173"
    enforce_https: bool = False
    hsts_max_age: int = 31536000
    frontend_dir: Optional[str] = None

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def active_api_key(self) -> Optional[str]:
        if self.llm_mode == LLMMode.OPENROUTER:
            return self.openrouter_api_key
        if self.llm_mode == LLMMode.OPENAI:
            return self.openai_api_key
        return None

    def validate_llm_config(self) -> List[str]:
        """Validate LLM and auth configuration, return list of warnings"""
        warnings = []

        if self.llm_mode == LLMMode.OPENAI and not self.openai_api_key:
            warnings.append("LLM_MODE=openai but OPENAI_API_KEY not set (AI endpoints will fail, briefings use fallback)")

        elif self.llm_mode == LLMMode.OPENROUTER and not self.openrouter_api_key:
            warnings.append("LLM_MODE=openrouter but OPENROUTER_API_KEY not set")

        if self.auth_secret == DEV_AUTH_SECRET:
            warnings.append("AUTH_SECRET not set - using development signing key")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Convenience function
def get_llm_mode() -> LLMMode:
    """Get current LLM mode"""
    return get_settings().llm_mode


def get_cors_origins() -> List[str]:
    """CORS_ALLOW_ORIGINS split into a list"""
    raw = get_settings().cors_allow_origins
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
