from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Any

class Settings(BaseSettings):
    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"

    # list via default_factory (not a literal list)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )

    # HTTP client + workflow poller
    api_base_url: str = "http://localhost:8000"
    api_timeout_seconds: float = 6.0
    poll_interval_seconds: float = 30.0

    scrap_unit: str = "KG"
    drobilka_min_operators: int = 2
    drobilka_max_operators: int = 3

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
    )

    # accept either a JSON list or a comma separated list from .env
    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors(cls, v: Any):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                try:
                    return json.loads(s)
                except ValueError:
                    pass
            return [p.strip() for p in s.split(",") if p.strip()]
        return v

settings = Settings()
