"""
Unit Tests for Configuration Module

Tests configuration loading, validation, environment variable merging,
and error handling.

Author: Scheduled Copy Project
License: MIT
"""

import pytest
import yaml
from pathlib import Path

from scheduled_copy.config.config_loader import ConfigLoader, load_config
from scheduled_copy.config.schema import Config, CopyConfig, SchedulingConfig, StorageConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep overrides from the developer's environment out of the tests."""
    for env_name, _, _, _ in ConfigLoader.ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.delenv("CONFIG_PATH", raising=False)


class TestConfigLoader:
    """Test suite for ConfigLoader class."""

    def test_create_default_config(self):
        """Test default configuration structure."""
        loader = ConfigLoader()
        default_config = loader._create_default_config()

        assert "app" in default_config
        assert "storage" in default_config
        assert "scheduling" in default_config
        assert default_config["copy"]["buffer_size"] == 81920
        assert default_config["app"]["log_level"] == "INFO"

    def test_load_nonexistent_config_uses_defaults(self, tmp_path):
        """Test that a missing config file yields the built-in defaults."""
        config_path = tmp_path / "config.yaml"
        loader = ConfigLoader(str(config_path))

        config = loader.load()

        assert config is not None
        assert config.app.log_level == "INFO"
        assert config.scheduling.tick_seconds == 30
        assert config.scheduling.low_water_mark == 3
        assert config.copy_settings.hash_algorithm == "sha256"

    def test_load_yaml_file(self, tmp_path):
        """Test values are read from YAML."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "app:\n"
            "  log_level: debug\n"
            "storage:\n"
            "  directory: /srv/copy\n"
            "scheduling:\n"
            "  tick_seconds: 5\n"
            "copy:\n"
            "  buffer_size: 4096\n"
        )

        config = ConfigLoader(str(config_path)).load()

        assert config.app.log_level == "DEBUG"
        assert config.storage.directory == "/srv/copy"
        assert config.scheduling.tick_seconds == 5
        assert config.copy_settings.buffer_size == 4096

    def test_invalid_yaml_raises_value_error(self, tmp_path):
        """Test that malformed YAML is reported as ValueError."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("app: [unclosed\n")

        with pytest.raises(ValueError):
            ConfigLoader(str(config_path)).load()

    def test_non_mapping_root_rejected(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            ConfigLoader(str(config_path)).load()

    def test_env_var_override(self, tmp_path, monkeypatch):
        """Test environment variables override file values."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("scheduling:\n  tick_seconds: 5\n")

        monkeypatch.setenv("SCHEDULER_TICK_SECONDS", "12.5")
        monkeypatch.setenv("STORAGE_DIRECTORY", str(tmp_path / "store"))
        monkeypatch.setenv("APP_LOG_JSON", "true")

        config = ConfigLoader(str(config_path)).load()

        assert config.scheduling.tick_seconds == 12.5
        assert config.storage.directory == str(tmp_path / "store")
        assert config.app.json_logs is True

    def test_bad_env_value_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COPY_BUFFER_SIZE", "lots")

        with pytest.raises(ValueError):
            ConfigLoader(str(tmp_path / "missing.yaml")).load()

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        config_path = tmp_path / "from_env.yaml"
        config_path.write_text("copy:\n  max_rename_attempts: 7\n")
        monkeypatch.setenv("CONFIG_PATH", str(config_path))

        config = load_config()

        assert config.copy_settings.max_rename_attempts == 7

    def test_save_round_trip(self, tmp_path):
        """Test saving writes the 'copy' section under its alias."""
        config_path = tmp_path / "out" / "config.yaml"
        loader = ConfigLoader(str(config_path))
        config = Config()
        config.scheduling.max_workers = 2

        loader.save(config)

        data = yaml.safe_load(config_path.read_text())
        assert "copy" in data
        assert data["scheduling"]["max_workers"] == 2
        assert loader.reload().scheduling.max_workers == 2


class TestConfigSchema:
    """Test suite for schema validation."""

    def test_tick_must_be_positive(self):
        with pytest.raises(ValueError):
            SchedulingConfig(tick_seconds=0)

    def test_weak_hash_algorithm_rejected(self):
        """Test that short digests are refused for content comparison."""
        with pytest.raises(ValueError):
            CopyConfig(hash_algorithm="md5")

    def test_strong_hash_algorithm_normalized(self):
        assert CopyConfig(hash_algorithm="SHA512").hash_algorithm == "sha512"

    def test_buffer_size_must_be_positive(self):
        with pytest.raises(ValueError):
            CopyConfig(buffer_size=0)

    def test_storage_file_must_be_plain_name(self):
        with pytest.raises(ValueError):
            StorageConfig(tasks_file="nested/tasks.json")

    def test_storage_paths(self, tmp_path):
        storage = StorageConfig(directory=str(tmp_path))

        assert storage.tasks_path == Path(tmp_path) / "tasks.json"
        assert storage.schedules_path == Path(tmp_path) / "schedules.json"

    def test_copy_section_accepts_field_name(self):
        config = Config(copy_settings=CopyConfig(buffer_size=1024))
        assert config.copy_settings.buffer_size == 1024


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
