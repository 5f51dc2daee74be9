"""
Runtime configuration.

Values come from MIGRATE_DATA_* environment variables and an optional .env
file. The AWS region and the relay bucket keep their conventional names
(AWS_REGION / AWS_DEFAULT_REGION and BUCKET).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

DEFAULT_MANIFEST = "service.json"


class Settings(BaseSettings):
    """
    Central configuration for data-migrator.

    region: AWS region for all clients (None lets boto3 pick its default chain)
    manifest_path: serverless service manifest used to resolve resource refs
    invoke_timeout / fetch_timeout / write_timeout: per-stage deadlines in seconds
    write_concurrency: max in-flight item writes in the write stage
    relay_bucket: target bucket of the relay function (env BUCKET)
    """
    model_config = SettingsConfigDict(
        env_prefix="MIGRATE_DATA_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    region: Optional[str] = Field(None, validation_alias=AliasChoices("region", "AWS_REGION", "AWS_DEFAULT_REGION"))
    manifest_path: Path = Field(
        Path(DEFAULT_MANIFEST), validation_alias=AliasChoices("manifest_path", "MIGRATE_DATA_MANIFEST")
    )
    invoke_timeout: float = Field(900.0, gt=0)
    fetch_timeout: float = Field(60.0, gt=0)
    write_timeout: float = Field(120.0, gt=0)
    connect_timeout: float = Field(10.0, gt=0)
    write_concurrency: int = Field(8, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    relay_bucket: Optional[str] = Field(None, validation_alias=AliasChoices("relay_bucket", "BUCKET"))

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


def load_settings(*, dotenv: bool = True, **overrides: object) -> Settings:
    """
    Build Settings from the environment, then apply non-None overrides.

    Raises ConfigError when a value does not validate.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        if dotenv:
            return Settings(**values)
        return Settings(_env_file=None, **values)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ConfigError(f"Invalid configuration: {problems}") from e
