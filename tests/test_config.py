"""Unit tests for configuration management module."""

import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from commit_order.config import (
    CommitOrderConfig,
    GraphConfig,
    LoggingConfig,
    get_config,
    load_config,
    reset_config,
)
from commit_order.graph.dependency_graph import EdgeConflictPolicy


@pytest.fixture
def valid_config_dict() -> dict[str, Any]:
    """Fixture providing valid configuration dictionary."""
    return {
        "graph": {
            "edge_conflict_policy": "strongest_wins",
        },
        "logging": {
            "level": "DEBUG",
            "json_logs": False,
        },
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, valid_config_dict: dict[str, Any]) -> Path:
    """Fixture providing temporary YAML config file."""
    config_path = tmp_path / "commit_order.yaml"
    with config_path.open("w") as f:
        yaml.dump(valid_config_dict, f)
    return config_path


@pytest.fixture
def temp_json_config_file(tmp_path: Path, valid_config_dict: dict[str, Any]) -> Path:
    """Fixture providing temporary JSON config file."""
    config_path = tmp_path / "commit_order.json"
    with config_path.open("w") as f:
        json.dump(valid_config_dict, f)
    return config_path


@pytest.fixture(autouse=True)
def reset_config_singleton(monkeypatch):
    """Reset configuration singleton and environment before and after each test."""
    for env_var in (
        "COMMIT_ORDER_EDGE_CONFLICT_POLICY",
        "COMMIT_ORDER_LOG_LEVEL",
        "COMMIT_ORDER_JSON_LOGS",
    ):
        monkeypatch.delenv(env_var, raising=False)
    reset_config()
    yield
    reset_config()


class TestGraphConfig:
    """Tests for GraphConfig model."""

    def test_default_policy(self):
        """Test that last_write_wins is the default policy."""
        config = GraphConfig()
        assert config.edge_conflict_policy is EdgeConflictPolicy.LAST_WRITE_WINS

    def test_policy_from_string(self):
        """Test that the policy is parsed from its string value."""
        config = GraphConfig(edge_conflict_policy="strongest_wins")
        assert config.edge_conflict_policy is EdgeConflictPolicy.STRONGEST_WINS

    def test_invalid_policy(self):
        """Test that an unknown policy is rejected."""
        with pytest.raises(ValidationError):
            GraphConfig(edge_conflict_policy="first_write_wins")


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_defaults(self):
        """Test default logging settings."""
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.json_logs is True

    def test_level_is_normalized(self):
        """Test that lower-case levels are accepted."""
        config = LoggingConfig(level=" warning ")
        assert config.level == "WARNING"

    def test_invalid_level(self):
        """Test that an unknown level is rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="VERBOSE")


class TestCommitOrderConfig:
    """Tests for the combined configuration model."""

    def test_all_sections_default(self):
        """Test that every section can be omitted."""
        config = CommitOrderConfig()
        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.LAST_WRITE_WINS
        assert config.logging.level == "INFO"

    def test_valid_config(self, valid_config_dict):
        """Test creating a configuration from a dictionary."""
        config = CommitOrderConfig(**valid_config_dict)
        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.STRONGEST_WINS
        assert config.logging.level == "DEBUG"
        assert config.logging.json_logs is False

    def test_validate_config_warnings(self):
        """Test warnings for the downgrade hazard and verbose logging."""
        config = CommitOrderConfig(logging={"level": "DEBUG"})

        warnings = config.validate_config()

        assert any("last_write_wins" in warning for warning in warnings)
        assert any("DEBUG" in warning for warning in warnings)

    def test_validate_config_no_warnings(self, valid_config_dict):
        """Test that a strongest_wins INFO configuration has no warnings."""
        valid_config_dict["logging"]["level"] = "INFO"
        config = CommitOrderConfig(**valid_config_dict)

        assert config.validate_config() == []


class TestLoadConfig:
    """Tests for loading configuration files."""

    def test_load_yaml_config(self, temp_config_file):
        """Test loading a YAML configuration file."""
        config = load_config(temp_config_file)
        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.STRONGEST_WINS
        assert config.logging.level == "DEBUG"

    def test_load_json_config(self, temp_json_config_file):
        """Test loading a JSON configuration file."""
        config = load_config(temp_json_config_file)
        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.STRONGEST_WINS

    def test_load_config_not_found(self, tmp_path):
        """Test loading a missing configuration file."""
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_config(tmp_path / "missing.yaml")

    def test_load_config_invalid_yaml(self, tmp_path):
        """Test loading a file that is not valid YAML."""
        config_path = tmp_path / "broken.yaml"
        config_path.write_text("graph: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(config_path)

    def test_load_config_empty_file(self, tmp_path):
        """Test loading an empty configuration file."""
        config_path = tmp_path / "empty.yaml"
        config_path.write_text("")

        with pytest.raises(ValueError, match="empty"):
            load_config(config_path)

    def test_load_config_not_a_mapping(self, tmp_path):
        """Test loading a file whose top level is a list."""
        config_path = tmp_path / "list.yaml"
        config_path.write_text("- graph\n- logging\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path)

    def test_load_config_validation_error(self, tmp_path):
        """Test loading a file with an invalid value."""
        config_path = tmp_path / "invalid.yaml"
        config_path.write_text("logging:\n  level: LOUD\n")

        with pytest.raises(ValidationError):
            load_config(config_path)

    def test_load_config_default_location(self, tmp_path, valid_config_dict, monkeypatch):
        """Test that commit_order.yaml in the working directory is found."""
        monkeypatch.chdir(tmp_path)
        with (tmp_path / "commit_order.yaml").open("w") as f:
            yaml.dump(valid_config_dict, f)

        config = load_config()

        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.STRONGEST_WINS

    def test_load_config_without_file_uses_defaults(self, tmp_path, monkeypatch):
        """Test that defaults are used when no configuration file exists."""
        monkeypatch.chdir(tmp_path)

        config = load_config()

        assert config == CommitOrderConfig()


class TestEnvironmentVariableOverrides:
    """Tests for environment variable override support."""

    def test_policy_override(self, temp_config_file, monkeypatch):
        """Test COMMIT_ORDER_EDGE_CONFLICT_POLICY overrides file value."""
        monkeypatch.setenv("COMMIT_ORDER_EDGE_CONFLICT_POLICY", "LAST_WRITE_WINS")

        config = load_config(temp_config_file)
        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.LAST_WRITE_WINS

    def test_log_level_override(self, temp_config_file, monkeypatch):
        """Test COMMIT_ORDER_LOG_LEVEL overrides file value."""
        monkeypatch.setenv("COMMIT_ORDER_LOG_LEVEL", "error")

        config = load_config(temp_config_file)
        assert config.logging.level == "ERROR"

    def test_json_logs_override(self, temp_config_file, monkeypatch):
        """Test boolean environment variable override."""
        monkeypatch.setenv("COMMIT_ORDER_JSON_LOGS", "yes")

        config = load_config(temp_config_file)
        assert config.logging.json_logs is True

    def test_override_without_file(self, tmp_path, monkeypatch):
        """Test overrides apply when no configuration file exists."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("COMMIT_ORDER_EDGE_CONFLICT_POLICY", "strongest_wins")
        monkeypatch.setenv("COMMIT_ORDER_JSON_LOGS", "false")

        config = load_config()

        assert config.graph.edge_conflict_policy is EdgeConflictPolicy.STRONGEST_WINS
        assert config.logging.json_logs is False

    def test_override_section_missing_from_file(self, tmp_path, monkeypatch):
        """Test an override for a section the file does not define."""
        config_path = tmp_path / "commit_order.yaml"
        config_path.write_text("graph:\n  edge_conflict_policy: strongest_wins\n")
        monkeypatch.setenv("COMMIT_ORDER_LOG_LEVEL", "WARNING")

        config = load_config(config_path)

        assert config.logging.level == "WARNING"


class TestGetConfig:
    """Tests for get_config singleton function."""

    def test_get_config_singleton(self, temp_config_file):
        """Test get_config returns same instance."""
        config1 = get_config(temp_config_file)
        config2 = get_config()

        assert config1 is config2

    def test_get_config_reload(self, temp_config_file, tmp_path, valid_config_dict):
        """Test get_config with reload parameter."""
        config1 = get_config(temp_config_file)
        assert config1.logging.level == "DEBUG"

        valid_config_dict["logging"]["level"] = "ERROR"
        modified_path = tmp_path / "modified.yaml"
        with modified_path.open("w") as f:
            yaml.dump(valid_config_dict, f)

        config2 = get_config(modified_path, reload=True)
        assert config2.logging.level == "ERROR"

    def test_reset_config(self, temp_config_file):
        """Test reset_config clears cached instance."""
        config1 = get_config(temp_config_file)
        reset_config()
        config2 = get_config(temp_config_file)

        assert config1 is not config2
