from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    API_PREFIX: str = "/api/v1"
    DB_URL: str = Field(default="sqlite+aiosqlite:///./flowplan.db")
    LOG_LEVEL: str = Field(default="INFO")
    RUN_WORKERS: int = Field(default=2, ge=1)
    RUN_MAX_RETRIES: int = Field(default=1, ge=0)
    RUN_REDIS_URL: str | None = Field(default=None, alias="RUN_QUEUE_REDIS_URL")
    RUN_REDIS_QUEUE: str = Field(default="flowplan:runs")
    RUN_REDIS_REJECTED_QUEUE: str | None = Field(default="flowplan:runs:rejected")

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
