"""Tests for the submigrate CLI."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from subcollection_migrator import cli
from subcollection_migrator.config import RuntimeConfig
from subcollection_migrator.manifest import load_manifest
from subcollection_migrator.stores.memory import MemoryStore

runner = CliRunner()


@pytest.fixture
def config(tmp_path):
    return RuntimeConfig(
        credentials_path=tmp_path / "key.json",
        manifest_path=tmp_path / "manifest.yml",
        retry_attempts=1,
        retry_wait_seconds=0,
    )


@pytest.fixture
def store(monkeypatch, config):
    memory = MemoryStore(
        {
            "dogs": {"dog-1": {"healthTests": [{"type": "OFA", "date": "2021-01-01"}]}},
            "litters": {
                "litter-2": {"expenses": []},
                "litter-3": {"puppies": [{"sex": "male"}, {"sex": "female"}, {"sex": "male"}]},
            },
        }
    )
    monkeypatch.setattr(cli, "load_runtime_config", lambda path: config)
    monkeypatch.setattr(cli, "get_store", lambda cfg: memory)
    return memory


class TestHelp:
    """Tests for help output."""

    def test_help_lists_mappings(self):
        """Root help shows the configured migration mappings."""
        result = runner.invoke(cli.app, ["--help"])

        assert result.exit_code == 0
        assert "healthTests" in result.output
        assert "health_tests" in result.output

    def test_targets_command(self):
        """The targets command prints every mapping."""
        result = runner.invoke(cli.app, ["targets"])

        assert result.exit_code == 0
        assert "weight_history" in result.output

    def test_command_help_lists_mappings(self):
        """migrate and cleanup help also show the mappings."""
        for command in ("migrate", "cleanup"):
            result = runner.invoke(cli.app, [command, "--help"])

            assert result.exit_code == 0
            assert "health_tests" in result.output


class TestMigrateCommand:
    """Tests for `submigrate migrate`."""

    def test_dry_run_is_default(self, store, config):
        """Without --execute nothing is written and the manifest is not touched."""
        before = store.snapshot()

        result = runner.invoke(cli.app, ["migrate"])

        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert store.snapshot() == before
        assert not config.manifest_path.exists()

    def test_execute_records_manifest(self, store, config):
        """An executed migration writes children and records the targets."""
        result = runner.invoke(cli.app, ["migrate", "--execute"])

        assert result.exit_code == 0
        assert len(store.get_children("dogs", "dog-1", "health_tests")) == 1
        assert len(store.get_children("litters", "litter-3", "puppies")) == 3
        assert load_manifest(config.manifest_path).targets["litters.puppies"].children_created == 3

    def test_unknown_target_is_fatal(self, store):
        """An unknown --target aborts before processing."""
        result = runner.invoke(cli.app, ["migrate", "--target", "cats.whiskers"])

        assert result.exit_code == 1
        assert store.commit_attempts == 0

    def test_json_output(self, store):
        """--output json prints the run summary as JSON."""
        result = runner.invoke(cli.app, ["migrate", "--output", "json"])

        assert result.exit_code == 0
        assert '"phase": "migrate"' in result.output
        assert '"mode": "dry-run"' in result.output

    def test_unknown_output_is_fatal(self, store):
        """An unsupported --output value aborts before processing."""
        result = runner.invoke(cli.app, ["migrate", "--output", "xml"])

        assert result.exit_code == 1
        assert store.commit_attempts == 0

    def test_commit_failure_exits_non_zero(self, monkeypatch, config):
        """Execute mode with recorded errors exits with code 2."""
        memory = MemoryStore({"litters": {"l": {"expenses": [{"amount": 5}]}}}, transient_failures=5)
        monkeypatch.setattr(cli, "load_runtime_config", lambda path: config)
        monkeypatch.setattr(cli, "get_store", lambda cfg: memory)

        result = runner.invoke(cli.app, ["migrate", "--execute", "--target", "litters.expenses"])

        assert result.exit_code == 2


class TestCleanupCommand:
    """Tests for `submigrate cleanup`."""

    def test_refuses_without_migration(self, store):
        """Cleanup before any executed migration changes nothing."""
        result = runner.invoke(cli.app, ["cleanup", "--execute"])

        assert result.exit_code == 2
        assert "expenses" in store.get_parent("litters", "litter-2")

    def test_migrate_then_cleanup(self, store, config):
        """After migration every verified field is removed."""
        runner.invoke(cli.app, ["migrate", "--execute"])

        result = runner.invoke(cli.app, ["cleanup", "--execute"])

        assert result.exit_code == 0
        assert "healthTests" not in store.get_parent("dogs", "dog-1")
        assert "expenses" not in store.get_parent("litters", "litter-2")
        assert "puppies" not in store.get_parent("litters", "litter-3")
        assert load_manifest(config.manifest_path).targets["litters.puppies"].cleaned_at is not None

    def test_unsafe_field_is_reported(self, store):
        """With the manifest bypassed, unmigrated data is still protected."""
        result = runner.invoke(cli.app, ["cleanup", "--execute", "--ignore-manifest"])

        assert result.exit_code == 2
        assert "puppies" in store.get_parent("litters", "litter-3")
        assert "expenses" not in store.get_parent("litters", "litter-2")

    def test_dry_run_exits_zero_with_warnings(self, store):
        """A dry run never fails because of what it found."""
        before = store.snapshot()

        result = runner.invoke(cli.app, ["cleanup", "--ignore-manifest"])

        assert result.exit_code == 0
        assert store.snapshot() == before


class TestVerifyCommand:
    """Tests for `submigrate verify`."""

    def test_read_only(self, store):
        """verify reports without writing."""
        result = runner.invoke(cli.app, ["verify"])

        assert result.exit_code == 0
        assert store.commit_attempts == 0
        assert "Verification" in result.output


class TestStartup:
    """Fatal startup errors."""

    def test_missing_credentials_exit_one(self, monkeypatch, config):
        """A missing service-account key aborts with exit code 1."""
        monkeypatch.setattr(cli, "load_runtime_config", lambda path: config)

        result = runner.invoke(cli.app, ["migrate"])

        assert result.exit_code == 1
        assert "Service account key not found" in result.output
