"""
Configuration management utilities.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

logger = logging.getLogger(__name__)

DEFAULT_MODELS = [
    "XGBOOST",
    "ARIMA W/ XGBOOST ERRORS",
    "ETS",
    "PROPHET",
    "PROPHET W/ XGBOOST ERRORS",
]


@dataclass
class PipelineConfig:
    """
    Run-level constants for the fare loss pipeline.

    Attributes:
        validation_year: Calendar year held out for model selection
        test_year: First calendar year of the counterfactual (COVID) period
        assess_weeks: Length of the walk-forward assessment window
        fare_price: Dollars per swipe used to monetise the ridership gap
        enabled_models: Model ids to fit, in ranking tie-break order
        seed: Random seed handed to every forecaster
        alpha: Significance level of prediction intervals (0.05 -> 95%)
        n_jobs: Number of threads used to fit the ensemble
        model_params: Per-model hyperparameter overrides keyed by model id
    """
    validation_year: int = 2019
    test_year: int = 2020
    assess_weeks: int = 52
    fare_price: float = 2.00
    enabled_models: List[str] = field(default_factory=lambda: list(DEFAULT_MODELS))
    seed: int = 123
    alpha: float = 0.05
    n_jobs: int = 1
    model_params: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"

    def __post_init__(self):
        if self.test_year <= self.validation_year:
            raise ValueError(
                f"test_year ({self.test_year}) must be after "
                f"validation_year ({self.validation_year})"
            )
        if self.assess_weeks < 1:
            raise ValueError("assess_weeks must be positive")
        if self.fare_price < 0:
            raise ValueError("fare_price cannot be negative")
        if not 0 < self.alpha < 1:
            raise ValueError("alpha must be in (0, 1)")
        if not self.enabled_models:
            raise ValueError("At least one model must be enabled")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Create from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def params_for(self, model_id: str) -> Dict[str, Any]:
        """Hyperparameter overrides for one model (empty if none)."""
        return dict(self.model_params.get(model_id, {}))


class ConfigManager:
    """
    Manages loading, validation, and merging of configurations.
    """

    def __init__(self, config_dir: Optional[str] = None, schema_dir: Optional[str] = None):
        self.config_dir = Path(config_dir) if config_dir else Path("config")
        self.schema_dir = Path(schema_dir) if schema_dir else self.config_dir / "schemas"

    def load_config(self, config_name: str, schema_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Load a configuration file (YAML or JSON).
        Optionally validate against a schema.

        Args:
            config_name: Name of config file (e.g. 'pipeline_config.yaml')
            schema_name: Name of schema file (e.g. 'pipeline_config_schema.json')

        Returns:
            Loaded configuration dictionary
        """
        config_path = self.config_dir / config_name

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r") as f:
            if config_path.suffix in (".yaml", ".yml"):
                config = yaml.safe_load(f) or {}
            elif config_path.suffix == ".json":
                config = json.load(f)
            else:
                raise ValueError(f"Unsupported configuration format: {config_path.suffix}")

        if schema_name:
            self.validate_config(config, schema_name)

        return config

    def validate_config(self, config: Dict[str, Any], schema_name: str) -> None:
        """
        Validate configuration against a schema.

        Args:
            config: Configuration dictionary
            schema_name: Name of schema file
        """
        schema_path = self.schema_dir / schema_name

        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        with open(schema_path, "r") as f:
            schema = json.load(f)

        try:
            jsonschema.validate(instance=config, schema=schema)
        except jsonschema.exceptions.ValidationError as e:
            path_str = " -> ".join(str(p) for p in e.path) if e.path else "root"
            error_msg = f"Configuration validation failed at '{path_str}': {e.message}"
            logger.error(error_msg)
            raise ValueError(error_msg) from e

        logger.info(f"Configuration successfully validated against {schema_name}")

    def load_pipeline_config(
        self,
        config_name: str = "pipeline_config.yaml",
        schema_name: Optional[str] = "pipeline_config_schema.json",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> PipelineConfig:
        """
        Load, validate and materialise a PipelineConfig.

        Args:
            config_name: Config file inside ``config_dir``
            schema_name: Schema file inside ``schema_dir`` (None skips validation)
            overrides: Values merged on top of the file contents

        Returns:
            PipelineConfig instance
        """
        config = self.load_config(config_name, schema_name)
        pipeline_section = config.get("pipeline", config)
        if overrides:
            pipeline_section = self.merge_configs(pipeline_section, overrides)
        return PipelineConfig.from_dict(pipeline_section)

    def merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two configurations.

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        merged = base.copy()
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self.merge_configs(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get_value(self, config: Dict[str, Any], path: str, default: Any = None) -> Any:
        """
        Get a value from configuration using dot notation.

        Args:
            config: Configuration dictionary
            path: Dot-separated path (e.g., 'pipeline.fare_price')
            default: Default value if path not found
        """
        current = config
        for key in path.split("."):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    def set_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """
        Set a value in configuration using dot notation.
        Creates intermediate dictionaries if they don't exist.
        """
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            if key not in current or not isinstance(current[key], dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value
