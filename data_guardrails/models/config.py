"""Runtime settings for the guardrail service."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings

from data_guardrails.models.guardrails import GuardrailMode


class GuardrailSettings(BaseSettings):
    """Process-level settings (storage, defaults, logging)."""

    # Storage Settings
    storage_backend: str = Field(default="memory", description="Key-value backend (memory|sql)")
    database_url: str = Field(default="sqlite:///guardrails.db", description="SQLAlchemy URL for the sql backend")
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    # Guardrail Defaults
    default_mode: GuardrailMode = Field(default=GuardrailMode.STRICT, description="Preset used when nothing is stored")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "GUARDRAILS_"
        extra = "ignore"

    @property
    def uses_sql_storage(self) -> bool:
        return self.storage_backend.lower() == "sql"
