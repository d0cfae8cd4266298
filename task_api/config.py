from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASK_API_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Task API"
    version: str = "1.0.0"

    # Database
    database_url: str = "sqlite:///./tasks.db"

    # Authentication
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    auth_enabled: bool = False

    # CORS, comma-separated; empty means any origin
    cors_origins: str = ""

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    keep_alive_seconds: int = 60
    shutdown_grace_seconds: int = 5

    @field_validator("jwt_algorithm")
    @classmethod
    def algorithm_must_be_hmac(cls, v: str) -> str:
        """Only symmetric HMAC signing is supported"""
        v = v.upper()
        if v not in HMAC_ALGORITHMS:
            raise ValueError(f"jwt_algorithm must be one of {', '.join(HMAC_ALGORITHMS)}")
        return v

    @property
    def allowed_origins(self) -> list[str]:
        """Parse the CORS allow-list, falling back to the wildcard"""
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Cache settings to avoid reading .env multiple times"""
    return Settings()
