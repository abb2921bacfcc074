"""Application configuration — loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_tokens: SecretStr | None = None  # comma-separated
    ghes_host: str | None = None
    marker: str = "jfrog"
    config_filename: str = ".lfsconfig"
    max_attempts: int = 5
    request_timeout_seconds: float = 30.0
    checkpoint_dir: str = "checkpoints"
    max_finished_scans: int = 20
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    def token_list(self) -> list[str]:
        """Configured credentials, blanks and duplicates dropped, order kept."""
        if self.github_tokens is None:
            return []
        tokens: list[str] = []
        for raw in self.github_tokens.get_secret_value().split(","):
            token = raw.strip()
            if token and token not in tokens:
                tokens.append(token)
        return tokens


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()
