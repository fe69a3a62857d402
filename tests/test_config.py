"""Tests for configuration loading."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import pytest
import yaml

from subcollection_migrator.config import (
    FileConfig,
    load_file_config,
    load_runtime_config,
    write_default_config,
)
from subcollection_migrator.exceptions import ConfigurationError
from subcollection_migrator.stores.firestore import load_service_account

ENV_VARS = [
    "SUBMIGRATE_BACKEND",
    "SUBMIGRATE_CREDENTIALS_PATH",
    "FIREBASE_ADMIN_KEY_PATH",
    "SUBMIGRATE_MONGODB_URI",
    "SUBMIGRATE_DEFAULT_DB",
    "SUBMIGRATE_MAX_BATCH_SIZE",
    "SUBMIGRATE_MANIFEST_PATH",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestFileConfig:
    """Tests for FileConfig model."""

    def test_all_optional(self):
        """All fields should be optional."""
        config = FileConfig()
        assert config.backend is None
        assert config.credentials_path is None
        assert config.max_batch_size is None


class TestLoadFileConfig:
    """Tests for load_file_config function."""

    def test_missing_file_returns_empty(self):
        """Missing file should return empty config."""
        config = load_file_config(Path("/nonexistent/.submigrate.yml"))
        assert config.backend is None

    def test_valid_yaml_file(self):
        """Valid YAML file should be parsed."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            yaml.dump({"backend": "mongodb", "mongodb_uri": "mongodb://test:27017", "default_db": "kennel"}, f)
            f.flush()

            try:
                config = load_file_config(Path(f.name))
                assert config.backend == "mongodb"
                assert config.default_db == "kennel"
            finally:
                os.unlink(f.name)

    def test_invalid_backend_raises(self, tmp_path):
        """Unknown backends are rejected."""
        path = tmp_path / ".submigrate.yml"
        path.write_text("backend: sqlite\n")

        with pytest.raises(ConfigurationError):
            load_file_config(path)


class TestLoadRuntimeConfig:
    """Tests for load_runtime_config function."""

    def test_defaults(self, clean_env, tmp_path):
        """Firestore with a 500-operation batch is the default."""
        config = load_runtime_config(tmp_path / ".submigrate.yml")

        assert config.backend == "firestore"
        assert config.max_batch_size == 500
        assert config.retry_attempts == 3
        assert config.credentials_path.name == "firebase-admin-key.json"

    def test_legacy_credentials_env(self, clean_env, tmp_path):
        """FIREBASE_ADMIN_KEY_PATH is honoured."""
        clean_env.setenv("FIREBASE_ADMIN_KEY_PATH", "/keys/admin.json")

        config = load_runtime_config(tmp_path / ".submigrate.yml")

        assert config.credentials_path == Path("/keys/admin.json")

    def test_env_overrides_file(self, clean_env, tmp_path):
        """Environment variables should override file config."""
        path = tmp_path / ".submigrate.yml"
        path.write_text(yaml.safe_dump({"credentials_path": "/file/key.json", "max_batch_size": 100}))
        clean_env.setenv("SUBMIGRATE_CREDENTIALS_PATH", "/env/key.json")

        config = load_runtime_config(path)

        assert config.credentials_path == Path("/env/key.json")
        assert config.max_batch_size == 100

    def test_local_file_overrides_main_file(self, clean_env, tmp_path):
        """The .local file wins over the main file."""
        (tmp_path / ".submigrate.yml").write_text(yaml.safe_dump({"max_batch_size": 100}))
        (tmp_path / ".submigrate.local.yml").write_text(yaml.safe_dump({"max_batch_size": 50}))

        config = load_runtime_config(tmp_path / ".submigrate.yml")

        assert config.max_batch_size == 50

    def test_batch_size_above_ceiling_raises(self, clean_env, tmp_path):
        """Batches larger than the store ceiling are a configuration error."""
        clean_env.setenv("SUBMIGRATE_MAX_BATCH_SIZE", "1000")

        with pytest.raises(ConfigurationError):
            load_runtime_config(tmp_path / ".submigrate.yml")

    def test_mongodb_requires_uri(self, clean_env, tmp_path):
        """Missing MongoDB URI should raise ConfigurationError."""
        clean_env.setenv("SUBMIGRATE_BACKEND", "mongodb")

        with pytest.raises(ConfigurationError) as exc_info:
            load_runtime_config(tmp_path / ".submigrate.yml")

        assert "Missing MongoDB URI" in str(exc_info.value)


class TestServiceAccount:
    """Tests for credential loading."""

    def test_missing_file(self, tmp_path):
        """A missing key file is fatal."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_service_account(tmp_path / "missing.json")
        assert "not found" in str(exc_info.value)

    def test_unparsable_file(self, tmp_path):
        """A key file that is not JSON is fatal."""
        path = tmp_path / "key.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            load_service_account(path)

    def test_requires_project_id(self, tmp_path):
        """A key without project_id is rejected."""
        path = tmp_path / "key.json"
        path.write_text(json.dumps({"type": "service_account"}))

        with pytest.raises(ConfigurationError):
            load_service_account(path)

    def test_valid_file(self, tmp_path):
        """A parsable key is returned as a dict."""
        path = tmp_path / "key.json"
        path.write_text(json.dumps({"type": "service_account", "project_id": "kennel-prod"}))

        assert load_service_account(path)["project_id"] == "kennel-prod"


class TestWriteDefaultConfig:
    """Tests for write_default_config function."""

    def test_creates_config_file(self, tmp_path):
        """Should create config file if it doesn't exist."""
        path = tmp_path / ".submigrate.yml"
        result = write_default_config(path)

        assert result == path
        content = yaml.safe_load(path.read_text())
        assert content["backend"] == "firestore"
        assert content["max_batch_size"] == 500

    def test_does_not_overwrite_existing(self, tmp_path):
        """Should not overwrite existing config file."""
        path = tmp_path / ".submigrate.yml"
        path.write_text("custom: value\n")

        write_default_config(path)

        assert "custom: value" in path.read_text()
