"""Configuration Management with Pydantic.

This module implements configuration models using Pydantic for parsing and
validation of YAML/JSON configuration files with environment variable overrides.
"""

import os
import threading
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field, field_validator

from commit_order.graph.dependency_graph import EdgeConflictPolicy

# Initialize logger
logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_FILES = ("commit_order.yaml", "commit_order.yml", "commit_order.json")
TRUE_VALUES = ("true", "1", "yes")


class GraphConfig(BaseModel):
    """Dependency graph settings.

    Attributes:
        edge_conflict_policy: How a repeated edge for the same pair of nodes is handled
    """

    edge_conflict_policy: EdgeConflictPolicy = Field(
        default=EdgeConflictPolicy.LAST_WRITE_WINS,
        description="Policy for a second edge between the same two nodes",
    )


class LoggingConfig(BaseModel):
    """Logging settings.

    Attributes:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines instead of the development console format
    """

    level: str = Field(
        default="INFO",
        description="Logging level",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        """Accept lower-case level names."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


class CommitOrderConfig(BaseModel):
    """Main configuration combining all settings.

    Attributes:
        graph: Dependency graph configuration
        logging: Logging configuration
    """

    graph: GraphConfig = Field(default_factory=GraphConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "CommitOrderConfig":
        """Load configuration from a YAML (or JSON) file.

        Args:
            path: Path to the configuration file

        Returns:
            Parsed and validated CommitOrderConfig instance

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If configuration is empty or not valid YAML
            pydantic.ValidationError: If a value fails validation
        """
        config_path = Path(path)

        if not config_path.exists():
            msg = f"Configuration file not found: {config_path}"
            raise FileNotFoundError(msg)

        logger.info("loading_configuration", path=str(config_path))

        try:
            with config_path.open() as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.exception("yaml_parse_error", error=str(e), path=str(config_path))
            msg = f"Invalid YAML in configuration file: {e}"
            raise ValueError(msg) from e

        if not config_data:
            msg = "Configuration file is empty"
            raise ValueError(msg)

        if not isinstance(config_data, dict):
            msg = "Configuration file must contain a mapping"
            raise ValueError(msg)

        config_data = cls._apply_env_overrides(config_data)
        config = cls(**config_data)

        logger.info(
            "configuration_loaded",
            edge_conflict_policy=config.graph.edge_conflict_policy.value,
            logging_level=config.logging.level,
        )

        return config

    @classmethod
    def from_env(cls) -> "CommitOrderConfig":
        """Build configuration from defaults and environment variables only."""
        return cls(**cls._apply_env_overrides({}))

    @classmethod
    def _apply_env_overrides(cls, config_data: dict) -> dict:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: COMMIT_ORDER_<KEY>
        Example: COMMIT_ORDER_LOG_LEVEL=DEBUG

        Args:
            config_data: Base configuration dictionary from file

        Returns:
            Configuration dictionary with environment overrides applied
        """
        env_overrides = {
            ("graph", "edge_conflict_policy"): "COMMIT_ORDER_EDGE_CONFLICT_POLICY",
            ("logging", "level"): "COMMIT_ORDER_LOG_LEVEL",
            ("logging", "json_logs"): "COMMIT_ORDER_JSON_LOGS",
        }

        for path, env_var in env_overrides.items():
            value = os.environ.get(env_var)
            if value is None:
                continue

            current = config_data
            for key in path[:-1]:
                if key not in current or current[key] is None:
                    current[key] = {}
                current = current[key]

            value = value.strip()
            if env_var.endswith("_JSON_LOGS"):
                value = value.lower() in TRUE_VALUES
            elif env_var.endswith("_POLICY"):
                value = value.lower()

            current[path[-1]] = value

            logger.debug(
                "env_override_applied",
                env_var=env_var,
                config_path=".".join(path),
            )

        return config_data

    def validate_config(self) -> list[str]:
        """Validate configuration and return list of warnings.

        Returns:
            List of validation warning messages (empty if no warnings)
        """
        warnings = []

        if self.graph.edge_conflict_policy is EdgeConflictPolicy.LAST_WRITE_WINS:
            warnings.append(
                "Edge conflict policy is last_write_wins - adding a relaxable edge "
                "after a mandatory one for the same pair drops the mandatory constraint",
            )

        if self.logging.level == "DEBUG":
            warnings.append("DEBUG logging traces every node and edge - expect verbose output")

        return warnings


class ConfigManager:
    """Configuration manager using singleton pattern."""

    _instance: CommitOrderConfig | None = None
    _init_lock: threading.Lock = threading.Lock()

    @classmethod
    def load_config(cls, config_path: str | Path | None = None) -> CommitOrderConfig:
        """Load configuration from file.

        Args:
            config_path: Path to configuration file. If None, looks for
                commit_order.yaml, commit_order.yml or commit_order.json in the
                current directory and falls back to defaults plus environment
                variables when none exists.

        Returns:
            Loaded CommitOrderConfig instance

        Raises:
            FileNotFoundError: If an explicit config file is not found
            ValueError: If config file is invalid
        """
        if config_path is None:
            for default_name in DEFAULT_CONFIG_FILES:
                default_path = Path(default_name)
                if default_path.exists():
                    config_path = default_path
                    break
            else:
                logger.debug("no_configuration_file_found", candidates=list(DEFAULT_CONFIG_FILES))
                return CommitOrderConfig.from_env()

        return CommitOrderConfig.from_yaml(config_path)

    @classmethod
    def get_config(
        cls,
        config_path: str | Path | None = None,
        reload: bool = False,
    ) -> CommitOrderConfig:
        """Get configuration instance (singleton pattern).

        Uses double-checked locking so concurrent first calls load once.

        Args:
            config_path: Path to configuration file. Only used on first call or when reload=True.
            reload: If True, force reload configuration from file.

        Returns:
            CommitOrderConfig instance
        """
        if cls._instance is not None and not reload:
            return cls._instance

        with cls._init_lock:
            if cls._instance is None or reload:
                cls._instance = cls.load_config(config_path)

            return cls._instance

    @classmethod
    def reset_config(cls) -> None:
        """Reset the configuration instance."""
        cls._instance = None


def load_config(config_path: str | Path | None = None) -> CommitOrderConfig:
    """Load configuration from file."""
    return ConfigManager.load_config(config_path)


def get_config(config_path: str | Path | None = None, reload: bool = False) -> CommitOrderConfig:
    """Get configuration instance (singleton pattern)."""
    return ConfigManager.get_config(config_path, reload)


def reset_config() -> None:
    """Reset the configuration instance."""
    ConfigManager.reset_config()


__all__ = [
    "CommitOrderConfig",
    "ConfigManager",
    "GraphConfig",
    "LoggingConfig",
    "get_config",
    "load_config",
    "reset_config",
]
