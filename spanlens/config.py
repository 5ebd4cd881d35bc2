"""
SpanLens Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    VERSION: str = "0.3.0"

    # --- Upstream classifier ---
    LLM_PROVIDER: str = os.getenv("SPANLENS_LLM_PROVIDER", "gemini")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    TEMPERATURE: float = float(os.getenv("SPANLENS_TEMPERATURE", "0.2"))

    # --- Highlight engine ---
    MAX_FINDINGS: int = int(os.getenv("SPANLENS_MAX_FINDINGS", "12"))
    ALPHA_CAP: float = float(os.getenv("SPANLENS_ALPHA_CAP", "0.40"))
    FLASH_SECONDS: float = float(os.getenv("SPANLENS_FLASH_SECONDS", "1.8"))

    # --- Analysis cache ---
    CACHE_TTL: int = int(os.getenv("SPANLENS_CACHE_TTL", "3600"))
    CACHE_MAX_ENTRIES: int = int(os.getenv("SPANLENS_CACHE_MAX_ENTRIES", "500"))

    # --- Server ---
    HOST: str = os.getenv("SPANLENS_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("SPANLENS_PORT", "5174"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("SPANLENS_CORS_ORIGINS", "*")


settings = Settings()
