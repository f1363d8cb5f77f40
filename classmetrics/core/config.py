from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql+psycopg2://classmetrics:classmetrics@db:5432/classmetrics"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://planner.example.com,https://api.planner.example.com"
    CORS_ORIGINS: str = "*"

    # IANA zone used as "local time" for period boundaries.
    TIMEZONE: str = "UTC"
    DEFAULT_WEEK_START_DAY: str = "Sunday"

    # Cached GPA fields are only rewritten when they move by more than this.
    GPA_CHANGE_EPSILON: float = 0.01

    # Query endpoints fall back to the first user when no identity is sent.
    ALLOW_ANONYMOUS_READS: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
