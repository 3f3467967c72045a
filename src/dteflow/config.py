"""Configuration management using pydantic-settings."""

import tomllib
from enum import Enum
from pathlib import Path
from typing import Self

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.catalog import DEFAULT_MAX_RETRIES
from .domain.models import Environment

DEFAULT_BASE = "~/.local/share/dteflow"
CONFIG_PATH = Path("~/.config/dteflow/config.toml").expanduser()

DEFAULT_SIGNER_URL = "https://api-firma.onrender.com/firma"
DEFAULT_TEST_URL = "https://apitest.dtes.mh.gob.sv"
DEFAULT_PRODUCTION_URL = "https://api.dtes.mh.gob.sv"


class LedgerBackend(str, Enum):
    """Available ledger stores."""

    FILESYSTEM = "filesystem"
    MEMORY = "memory"


class PathsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DTEFLOW_PATHS_")

    base: Path = Path(DEFAULT_BASE).expanduser()

    @field_validator("base", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()

    @property
    def ledger(self) -> Path:
        return self.base / "ledger"

    @property
    def archive(self) -> Path:
        return self.base / "archive"


class SigningConfig(BaseSettings):
    """Signing gateway configuration."""

    model_config = SettingsConfigDict(env_prefix="DTEFLOW_SIGNING_")

    url: str = DEFAULT_SIGNER_URL
    timeout: float = 30.0
    wake_timeout: float = 60.0
    max_retries: int = 2
    wake_retries: int = 3
    backoff_base: float = 2.0
    credential: SecretStr | None = None


class AuthorityConfig(BaseSettings):
    """Tax authority (reception service) configuration."""

    model_config = SettingsConfigDict(env_prefix="DTEFLOW_AUTHORITY_")

    environment: Environment = Environment.TEST
    test_url: str = DEFAULT_TEST_URL
    production_url: str = DEFAULT_PRODUCTION_URL
    user: str = ""
    password: SecretStr = SecretStr("")
    timeout: float = 8.0
    token_ttl: int = 3600

    def url_for(self, environment: Environment) -> str:
        if environment is Environment.PRODUCTION:
            return self.production_url
        return self.test_url


class WorkflowConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DTEFLOW_WORKFLOW_")

    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = 1.0
    backoff_cap: float = 30.0

    @field_validator("max_retries")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


class LedgerConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DTEFLOW_LEDGER_")

    backend: LedgerBackend = LedgerBackend.FILESYSTEM


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DTEFLOW_")

    paths: PathsConfig = PathsConfig()
    signing: SigningConfig = SigningConfig()
    authority: AuthorityConfig = AuthorityConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    ledger: LedgerConfig = LedgerConfig()

    @model_validator(mode="after")
    def ensure_dirs(self) -> Self:
        self.paths.base.mkdir(parents=True, exist_ok=True)
        self.paths.archive.mkdir(parents=True, exist_ok=True)
        if self.ledger.backend is LedgerBackend.FILESYSTEM:
            self.paths.ledger.mkdir(parents=True, exist_ok=True)
        return self


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from TOML file, falling back to defaults.

    Sections are built at call time so ``DTEFLOW_SIGNING_*`` and
    ``DTEFLOW_AUTHORITY_*`` environment overrides are read on every load.
    """
    path = config_path or CONFIG_PATH

    data: dict = {}
    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)

    return Settings(
        paths=PathsConfig(**data.get("paths", {})),
        signing=SigningConfig(**data.get("signing", {})),
        authority=AuthorityConfig(**data.get("authority", {})),
        workflow=WorkflowConfig(**data.get("workflow", {})),
        ledger=LedgerConfig(**data.get("ledger", {})),
    )
