from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_JWT_SECRET: str | None = None
    # must not exceed the project's PostgREST max-rows (1000 by default)
    SUPABASE_PAGE_SIZE: int = 1000

    AWS_REGION: str
    AWS_S3_BUCKET: str
    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str

    FRONTEND_ORIGINS: List[str] = [
        "http://localhost:8081",
        "http://localhost:19006",
    ]

    # calendar days are derived in this zone unless the client sends ?tz=
    DEFAULT_TIMEZONE: str = "UTC"
    PNL_SERIES_MONTHS: int = 6
    DEFAULT_LOT_SIZE: float = 100.0

    IB_IMPORT_FUNCTION: str = "import-ib-trades"
    IB_IMPORT_MAX_ATTEMPTS: int = 3
    IB_IMPORT_BASE_DELAY_SECONDS: float = 1.0

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
