# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for context cache insight."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from context_insight.similarity import SimilarityWeights

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".context_insight.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for context cache analysis.

    Loads configuration from .context_insight.yml with validation and defaults.
    """

    DEFAULTS = {
        "acceptable_load_time_ms": 1000,
        "opportunity_threshold_ms": 500,
        "max_opportunities": 5,
        "large_context_bean_threshold": 100,
        "slow_load_threshold_ms": 2000,
        "similarity_source_weight": 10,
        "similarity_profiles_weight": 5,
        "similarity_loader_weight": 3,
        "similarity_property_weight": 1,
        "similarity_initializers_weight": 2,
        "enable_metrics_logging": True,
        "metrics_log_dir": ".context_insight_logs",
    }

    # Must be strictly positive
    _POSITIVE_INT_KEYS = (
        "acceptable_load_time_ms",
        "max_opportunities",
        "large_context_bean_threshold",
        "slow_load_threshold_ms",
    )

    # May be zero
    _NON_NEGATIVE_INT_KEYS = (
        "opportunity_threshold_ms",
        "similarity_source_weight",
        "similarity_profiles_weight",
        "similarity_loader_weight",
        "similarity_property_weight",
        "similarity_initializers_weight",
    )

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILE

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file.

        Raises:
            ConfigurationError: If config_path points at a directory.
        """
        if self.config_path.is_dir():
            raise ConfigurationError(f"Configuration path {self.config_path} is a directory")

        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
            return
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
            return

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
            return

        # Start with defaults and override with loaded values
        self._config = self.DEFAULTS.copy()
        self._validate_and_merge(loaded_config)

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int; reject True/False for numeric keys
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key in self._POSITIVE_INT_KEYS:
            return bool(value > 0)
        if key in self._NON_NEGATIVE_INT_KEYS:
            return bool(value >= 0)
        if key == "metrics_log_dir":
            return bool(value.strip())

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Effective configuration values."""
        return dict(self._config)

    def similarity_weights(self) -> SimilarityWeights:
        """Build SimilarityWeights from the configured weights."""
        return SimilarityWeights(
            source=self._config["similarity_source_weight"],
            profiles=self._config["similarity_profiles_weight"],
            loader=self._config["similarity_loader_weight"],
            property=self._config["similarity_property_weight"],
            initializers=self._config["similarity_initializers_weight"],
        )

    @property
    def acceptable_load_time_ms(self) -> int:
        """Per-context load time considered reasonable."""
        value = self._config["acceptable_load_time_ms"]
        assert isinstance(value, int)
        return value

    @property
    def opportunity_threshold_ms(self) -> int:
        """Minimum load time for a context to be reported as an opportunity."""
        value = self._config["opportunity_threshold_ms"]
        assert isinstance(value, int)
        return value

    @property
    def max_opportunities(self) -> int:
        """Number of optimization opportunities to report."""
        value = self._config["max_opportunities"]
        assert isinstance(value, int)
        return value

    @property
    def large_context_bean_threshold(self) -> int:
        """Bean count above which a context is considered large."""
        value = self._config["large_context_bean_threshold"]
        assert isinstance(value, int)
        return value

    @property
    def slow_load_threshold_ms(self) -> int:
        """Load time above which a context is considered slow."""
        value = self._config["slow_load_threshold_ms"]
        assert isinstance(value, int)
        return value

    @property
    def enable_metrics_logging(self) -> bool:
        """Whether suite metrics are written at the end of a run."""
        value = self._config["enable_metrics_logging"]
        assert isinstance(value, bool)
        return value

    @property
    def metrics_log_dir(self) -> Path:
        """Directory for suite metrics, relative to the working directory."""
        value = self._config["metrics_log_dir"]
        assert isinstance(value, str)
        return Path(value)
