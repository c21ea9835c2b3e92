"""
Configuration Parser for the scenario harness

This module handles loading and validation of scenario configuration files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

import jsonschema
import yaml

from ..core.config import (FLOW_MONITOR_FILE, LOG_LEVELS, DelayReduction, ScenarioConfig,
                           ThroughputReduction)
from ..core.exceptions import InvalidConfiguration

logger = logging.getLogger(__name__)


class ConfigParser:
    """
    Configuration parser and validator for scenario parameters
    """

    # The traffic pattern is only typed here; the traffic scheduler decides
    # whether the name is known.
    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "scenario": {
                "type": "object",
                "properties": {
                    "num_wireless_stations": {"type": "integer", "minimum": 0},
                    "mobility_enabled": {"type": "boolean"},
                    "traffic_pattern": {"type": "string"}
                },
                "additionalProperties": False
            },
            "simulation": {
                "type": "object",
                "properties": {
                    "random_seed": {"type": ["integer", "null"]},
                    "log_level": {"type": "string", "enum": list(LOG_LEVELS)},
                    "output_directory": {"type": "string"},
                    "flow_monitor_file": {"type": "string", "minLength": 1}
                },
                "additionalProperties": False
            },
            "report": {
                "type": "object",
                "properties": {
                    "throughput_reduction": {
                        "type": "string",
                        "enum": [r.value for r in ThroughputReduction]
                    },
                    "delay_reduction": {
                        "type": "string",
                        "enum": [r.value for r in DelayReduction]
                    }
                },
                "additionalProperties": False
            }
        },
        "required": ["scenario"],
        "additionalProperties": False
    }

    @classmethod
    def load_config(cls, config_path: str) -> ScenarioConfig:
        """
        Load configuration from a JSON or YAML file

        Args:
            config_path: Path to configuration file

        Returns:
            ScenarioConfig object

        Raises:
            FileNotFoundError: If config file doesn't exist
            InvalidConfiguration: If the file can't be parsed or doesn't match the schema
        """
        return cls._dict_to_config(cls.load_dict(config_path))

    @classmethod
    def load_dict(cls, config_path: str) -> Dict[str, Any]:
        """Load and validate a configuration file without building the config"""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from {config_path}")

        try:
            with open(config_file, 'r') as f:
                if config_file.suffix.lower() in ('.yaml', '.yml'):
                    config_data = yaml.safe_load(f)
                elif config_file.suffix.lower() == '.json':
                    config_data = json.load(f)
                else:
                    raise InvalidConfiguration(
                        f"Unsupported configuration file format: {config_file.suffix}")
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error(f"Invalid configuration file {config_path}: {e}")
            raise InvalidConfiguration(f"Invalid configuration file {config_path}: {e}") from e

        cls.validate_config(config_data)
        logger.info("Configuration loaded and validated successfully")
        return config_data

    @classmethod
    def validate_config(cls, config_data: Dict[str, Any]):
        try:
            jsonschema.validate(config_data, cls.CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            logger.error(f"Configuration validation error: {e.message}")
            raise InvalidConfiguration(f"Configuration validation error: {e.message}") from e

    @classmethod
    def _dict_to_config(cls, config_data: Dict[str, Any]) -> ScenarioConfig:
        """Convert configuration dictionary to ScenarioConfig object"""
        scenario = config_data.get('scenario', {})
        simulation = config_data.get('simulation', {})
        report = config_data.get('report', {})

        return ScenarioConfig(
            num_wireless_stations=scenario.get('num_wireless_stations', 5),
            mobility_enabled=scenario.get('mobility_enabled', False),
            traffic_pattern=scenario.get('traffic_pattern', 'CBR'),

            random_seed=simulation.get('random_seed', 1),
            log_level=simulation.get('log_level', 'INFO'),
            output_directory=simulation.get('output_directory', '.'),
            flow_monitor_file=simulation.get('flow_monitor_file', FLOW_MONITOR_FILE),

            throughput_reduction=report.get('throughput_reduction', ThroughputReduction.LEGACY.value),
            delay_reduction=report.get('delay_reduction', DelayReduction.SUM_OF_FLOW_MEANS.value)
        )

    @classmethod
    def get_scenario_configs(cls) -> Dict[str, Dict]:
        """Get predefined scenario configurations"""
        return {
            "static_cbr": {
                "scenario": {
                    "num_wireless_stations": 5,
                    "mobility_enabled": False,
                    "traffic_pattern": "CBR"
                },
                "simulation": {"random_seed": 1, "output_directory": "results/static_cbr"}
            },
            "static_burst": {
                "scenario": {
                    "num_wireless_stations": 5,
                    "mobility_enabled": False,
                    "traffic_pattern": "Burst"
                },
                "simulation": {"random_seed": 1, "output_directory": "results/static_burst"}
            },
            "mobile_mixed": {
                "scenario": {
                    "num_wireless_stations": 5,
                    "mobility_enabled": True,
                    "traffic_pattern": "CBR_Burst"
                },
                "simulation": {"random_seed": 1, "output_directory": "results/mobile_mixed"}
            },
            "dense_mobile_cbr": {
                "scenario": {
                    "num_wireless_stations": 20,
                    "mobility_enabled": True,
                    "traffic_pattern": "CBR"
                },
                "simulation": {"random_seed": 7, "output_directory": "results/dense_mobile_cbr"},
                "report": {
                    "throughput_reduction": "mbps_over_window",
                    "delay_reduction": "weighted_mean"
                }
            }
        }

    @classmethod
    def create_default_config(cls, output_path: str, scenario: str = "static_cbr"):
        """Write a predefined scenario to a JSON or YAML file"""
        scenarios = cls.get_scenario_configs()
        if scenario not in scenarios:
            raise InvalidConfiguration(
                f"Unknown scenario: {scenario} (expected one of: {', '.join(scenarios)})")

        config_path = Path(output_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            if config_path.suffix.lower() in ('.yaml', '.yml'):
                yaml.dump(scenarios[scenario], f, default_flow_style=False, indent=2)
            else:
                json.dump(scenarios[scenario], f, indent=2)
        logger.info(f"Scenario configuration {scenario} written to {output_path}")

    @classmethod
    def merge_configs(cls, base_config: Dict, override_config: Dict) -> Dict:
        """
        Merge two configuration dictionaries

        Args:
            base_config: Base configuration
            override_config: Override values

        Returns:
            Merged configuration
        """
        def deep_merge(base: Dict, override: Dict) -> Dict:
            result = base.copy()

            for key, value in override.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value

            return result

        return deep_merge(base_config, override_config)
