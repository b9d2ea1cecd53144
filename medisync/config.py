# medisync/config.py - Settings for the clinical record store and its API
from dotenv import load_dotenv

load_dotenv()
from typing import Union
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from .models import DeletePolicy


class Settings(BaseSettings):
    """Application settings with validation and environment variable support (Pydantic V2 Syntax)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application
    app_name: str = "MediSync Clinical Records"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(default=False, alias="JSON_LOGS")

    # Store
    database_url: str = Field(default="sqlite://", alias="DATABASE_URL")
    seed_demo_data: bool = Field(default=True, alias="SEED_DEMO_DATA")
    expiring_horizon_days: int = Field(default=30, alias="EXPIRING_HORIZON_DAYS")
    delete_policy: DeletePolicy = Field(default=DeletePolicy.orphan, alias="DELETE_POLICY")

    # CORS
    cors_origins: Union[str, list[str]] = Field(default=["http://localhost:5173", "http://localhost:5000"], alias="CORS_ORIGINS")

    # --- Pydantic V2 Validators ---
    @field_validator("cors_origins", mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return ["http://localhost:5173", "http://localhost:5000"]
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        # The store is memory resident; anything that would persist to disk is refused.
        if v not in ("sqlite://", "sqlite:///:memory:", "sqlite+pysqlite://", "sqlite+pysqlite:///:memory:"):
            raise ValueError("DATABASE_URL must be an in-memory SQLite URL (e.g. 'sqlite://')")
        return v

    @field_validator("expiring_horizon_days")
    @classmethod
    def validate_horizon(cls, v):
        if v < 1:
            raise ValueError("EXPIRING_HORIZON_DAYS must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance for the environment named by ENVIRONMENT"""
    return get_config_by_env(Settings().environment)

# Environment-specific configurations
class DevelopmentConfig(Settings):
    """Development environment configuration"""
    debug: bool = True
    environment: str = "development"

class ProductionConfig(Settings):
    """Production environment configuration"""
    debug: bool = False
    environment: str = "production"
    json_logs: bool = True

class TestingConfig(Settings):
    """Testing environment configuration"""
    debug: bool = True
    environment: str = "testing"
    log_level: str = "WARNING"

def get_config_by_env(env: str) -> Settings:
    """Get configuration by environment name"""
    configs = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig
    }

    config_class = configs.get(env.lower(), Settings)
    return config_class()
