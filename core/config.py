import os
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "MCP Context Server"
    API_PREFIX: str = "/api/mcp"

    # Environment mode
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "")

    # Snapshot files (relative paths resolve against the working directory)
    CONTEXT_FILE_PATH: str = os.getenv("CONTEXT_FILE_PATH", "mcp_contexts.json")
    CONFIG_FILE_PATH: str = os.getenv("CONFIG_FILE_PATH", "mcp_config.json")

    # Backstop autosave for the context store, 0 disables it
    CONTEXT_AUTOSAVE_SECONDS: float = float(os.getenv("CONTEXT_AUTOSAVE_SECONDS", "30"))

    # Shared secret for admin routes (X-Admin-Secret header). Unset = admin routes always 403.
    ADMIN_SECRET: Optional[str] = os.getenv("ADMIN_SECRET")

    # Language model providers
    EVOLUTION_PROVIDER: str = os.getenv("EVOLUTION_PROVIDER", "openai")
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_API_URL: str = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1")
    OPENAI_DEFAULT_MODEL: str = os.getenv("OPENAI_DEFAULT_MODEL", "gpt-3.5-turbo")
    HUGGINGFACE_TOKEN: Optional[str] = os.getenv("HUGGINGFACE_TOKEN")
    HF_API_URL: str = os.getenv("HF_API_URL", "https://router.huggingface.co/v1")
    HF_DEFAULT_MODEL: str = os.getenv("HF_DEFAULT_MODEL", "Qwen/Qwen2.5-72B-Instruct")
    LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "60.0"))

    # CORS Configuration (comma-separated origins)
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS as comma-separated list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @field_validator("ADMIN_SECRET", mode="before")
    @classmethod
    def validate_admin_secret(cls, v):
        if v == "":
            return None
        return v

    @field_validator("EVOLUTION_PROVIDER")
    @classmethod
    def validate_evolution_provider(cls, v: str) -> str:
        return v.strip().lower()

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
