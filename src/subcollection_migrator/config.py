from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from subcollection_migrator.exceptions import ConfigurationError

MAX_BATCH_SIZE = 500

Backend = Literal["firestore", "mongodb"]


class EnvConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SUBMIGRATE_", case_sensitive=False)

    backend: Optional[Backend] = None
    credentials_path: Optional[Path] = Field(
        None,
        validation_alias=AliasChoices("SUBMIGRATE_CREDENTIALS_PATH", "FIREBASE_ADMIN_KEY_PATH"),
    )
    mongodb_uri: Optional[str] = None
    default_db: Optional[str] = None
    max_batch_size: Optional[int] = None
    retry_attempts: Optional[int] = None
    retry_wait_seconds: Optional[float] = None
    manifest_path: Optional[Path] = None


class FileConfig(BaseModel):
    backend: Optional[Backend] = None
    credentials_path: Optional[Path] = None
    mongodb_uri: Optional[str] = None
    default_db: Optional[str] = None
    max_batch_size: Optional[int] = None
    retry_attempts: Optional[int] = None
    retry_wait_seconds: Optional[float] = None
    manifest_path: Optional[Path] = None
    mongodb_transactions: Optional[bool] = None


class RuntimeConfig(BaseModel):
    backend: Backend = "firestore"
    credentials_path: Path = Field(..., description="Service account JSON for Firestore")
    mongodb_uri: Optional[str] = None
    default_db: Optional[str] = None
    max_batch_size: int = Field(MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)
    retry_attempts: int = Field(3, ge=1, le=10)
    retry_wait_seconds: float = Field(0.5, ge=0)
    manifest_path: Path = Field(..., description="Where executed runs are recorded")
    mongodb_transactions: bool = False


DEFAULT_CONFIG_PATH = Path.cwd() / ".submigrate.yml"
LOCAL_CONFIG_PATH = Path.cwd() / ".submigrate.local.yml"
DEFAULT_CREDENTIALS_PATH = Path.cwd() / "firebase-admin-key.json"
DEFAULT_MANIFEST_PATH = Path.cwd() / ".submigrate" / "manifest.yml"


def load_file_config(path: Path = DEFAULT_CONFIG_PATH) -> FileConfig:
    if not path.exists():
        return FileConfig()

    try:
        data = yaml.safe_load(path.read_text()) or {}
        return FileConfig(**data)
    except (yaml.YAMLError, TypeError, ValidationError) as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def load_runtime_config(path: Path = DEFAULT_CONFIG_PATH) -> RuntimeConfig:
    """Load configuration with priority: env vars > local file > main file."""
    file_config = load_file_config(path)

    local_path = path.parent / ".submigrate.local.yml" if path != DEFAULT_CONFIG_PATH else LOCAL_CONFIG_PATH
    local_config = load_file_config(local_path)

    try:
        env_config = EnvConfig()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid SUBMIGRATE_* environment: {e}") from e

    merged = {}
    for name in FileConfig.model_fields:
        value = _first(
            getattr(env_config, name, None),
            getattr(local_config, name),
            getattr(file_config, name),
        )
        if value is not None:
            merged[name] = value

    merged.setdefault("credentials_path", DEFAULT_CREDENTIALS_PATH)
    merged.setdefault("manifest_path", DEFAULT_MANIFEST_PATH)

    try:
        config = RuntimeConfig(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if config.backend == "mongodb":
        if not config.mongodb_uri:
            raise ConfigurationError("Missing MongoDB URI. Set in .submigrate.yml or SUBMIGRATE_MONGODB_URI.")
        if not config.default_db:
            raise ConfigurationError("Missing default DB. Set in .submigrate.yml or SUBMIGRATE_DEFAULT_DB.")

    return config


def write_default_config(path: Path = DEFAULT_CONFIG_PATH) -> Path:
    if path.exists():
        return path

    content = {
        "backend": "firestore",
        "credentials_path": "firebase-admin-key.json",
        "mongodb_uri": "",
        "default_db": "",
        "max_batch_size": MAX_BATCH_SIZE,
        "retry_attempts": 3,
        "manifest_path": ".submigrate/manifest.yml",
    }
    path.write_text(yaml.safe_dump(content, sort_keys=False))
    return path
