import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple, Type

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLASSJOURNAL_CONFIG"
DEFAULT_CONFIG_FILE = "config.toml"


def config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))


class WebSettings(BaseModel):
    listen: str = "127.0.0.1:8080"
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:9000", "http://127.0.0.1:9000"]
    )

    @property
    def host_port(self) -> Tuple[str, int]:
        host, _, port = self.listen.rpartition(":")
        return host or "127.0.0.1", int(port)


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    user: str = "username"
    password: str = "password"
    dbname: str = "database_name"
    # Full SQLAlchemy URL; wins over the discrete fields when set.
    url: Optional[str] = None
    timeout: float = Field(3.0, gt=0)
    pool_size: int = Field(10, ge=1)

    @property
    def database_url(self) -> str:
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.dbname}"
        )


class AuthSettings(BaseModel):
    session_lifetime_hours: int = Field(24, ge=1)
    bcrypt_rounds: int = Field(12, ge=12, le=31)


class Settings(BaseSettings):
    """Application configuration: TOML file, overridden by environment variables."""

    model_config = SettingsConfigDict(env_nested_delimiter="__", extra="ignore")

    web: WebSettings = Field(default_factory=WebSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=config_path()),
        )


def load_settings() -> Settings:
    """Read settings; a missing file falls back to defaults, a malformed one raises."""
    path = config_path()
    if not path.exists():
        logger.warning("config file %s doesn't exist, default values will be used", path)
    return Settings()


settings = load_settings()
