from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    llm_provider: str = "anthropic"  # "openai" or "anthropic"

    @model_validator(mode="after")
    def normalize_provider(self) -> "Settings":
        self.llm_provider = self.llm_provider.strip().lower()
        return self

    openai_api_key: str = ""
    openai_model: str = "gpt-4o"

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_max_tokens: int = 8192

    generation_max_retries: int = 2
    generation_base_delay_seconds: float = 1.0

    sentry_dsn: str = ""

    environment: str = "development"
    allowed_origins: str = ""

    @property
    def active_api_key(self) -> str:
        if self.llm_provider == "openai":
            return self.openai_api_key
        return self.anthropic_api_key


settings = Settings()
