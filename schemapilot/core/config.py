from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", ".env.local"), extra="ignore")

    engine_model: str = "gpt-4o-mini"
    engine_api_key: str | None = None
    engine_base_url: str | None = None

    step_budget: int = Field(15, ge=1)
    step_timeout: float = 120.0
    max_observation_chars: int = 20000

    project_root: str = "."

    migration_generate_command: str = "alembic revision --autogenerate"
    migration_label_flag: str = "-m"
    migration_apply_command: str = "alembic upgrade head"

    ledger_url: str = "sqlite:///.schemapilot/runs.db"

settings = Settings()
