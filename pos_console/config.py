from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:8088/api"
    request_timeout_seconds: float = 12.0
    storage_path: str = ".pos_console/session.json"
    login_path: str = "/login"
    # No origin is allowed until the UI origin is configured.
    cors_allow_origins: list[str] = []
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="POS_CONSOLE_",
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
