"""
Configuration utilities for validator set simulations
"""

import json
import os
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import yaml
from omegaconf import OmegaConf


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    if config_path.suffix in ['.yaml', '.yml']:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
    elif config_path.suffix == '.json':
        with open(config_path, 'r') as f:
            config = json.load(f)
    else:
        raise ValueError(f"Unsupported config format: {config_path.suffix}")

    return resolve_env_vars(config)


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge multiple configuration dictionaries

    Later configs override earlier ones
    """
    merged = OmegaConf.merge(*[OmegaConf.create(c) for c in configs])
    return OmegaConf.to_container(merged, resolve=True)


def apply_overrides(config: Dict[str, Any], overrides: Iterable[str]) -> Dict[str, Any]:
    """Apply dotted command line overrides like 'cluster.dup_validators=true'"""
    overrides = list(overrides)
    if not overrides:
        return config
    return merge_configs(config, OmegaConf.to_container(OmegaConf.from_dotlist(overrides)))


def resolve_env_vars(config: Any) -> Any:
    """
    Resolve environment variables in configuration

    Supports ${ENV_VAR} and ${ENV_VAR:default} syntax
    """
    if isinstance(config, str):
        if config.startswith('${') and config.endswith('}'):
            env_var = config[2:-1]

            if ':' in env_var:
                var_name, default = env_var.split(':', 1)
                return os.environ.get(var_name, default)
            else:
                return os.environ.get(env_var, config)
        return config

    elif isinstance(config, dict):
        return {k: resolve_env_vars(v) for k, v in config.items()}

    elif isinstance(config, list):
        return [resolve_env_vars(item) for item in config]

    return config


def parse_fraction(value: Any) -> Fraction:
    """Parse a fraction from '1/3', 0.25, or an existing Fraction"""
    if isinstance(value, bool):
        raise ValueError(f"Invalid fraction: {value!r}")
    if isinstance(value, float):
        return Fraction(value).limit_denominator(1000)
    try:
        return Fraction(value)
    except (TypeError, ValueError, ZeroDivisionError):
        raise ValueError(f"Invalid fraction: {value!r}")


def save_config(config: Dict[str, Any], filepath: Union[str, Path]):
    """Save configuration to file"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    elif filepath.suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(config, f, indent=2)
    else:
        raise ValueError(f"Unsupported format: {filepath.suffix}")


def create_default_config() -> Dict[str, Any]:
    """Create default simulation configuration"""
    return {
        'cluster': {
            'nodes': ['n1', 'n2', 'n3', 'n4', 'n5'],
            'dup_validators': False,
            'super_byzantine_validators': False,
            'max_byzantine_vote_fraction': None
        },
        'generator': {
            'max_attempts': 100,
            'seed': 42
        },
        'simulation': {
            'cycles': 50,
            'drop_probability': 0.1,
            'unreachable_probability': 0.1
        },
        'logging': {
            'level': 'INFO',
            'structured': True,
            'log_file': None
        }
    }


def max_byzantine_vote_fraction(cluster: Dict[str, Any]) -> Fraction:
    """
    The configured bound on byzantine vote fraction. Super-byzantine
    validators are meant to hold just under 2/3 of the vote, so that is their
    default bound; otherwise it is 1/3.
    """
    value = cluster.get('max_byzantine_vote_fraction')
    if value is None:
        if cluster.get('super_byzantine_validators'):
            return Fraction(2, 3)
        return Fraction(1, 3)
    return parse_fraction(value)


class ConfigValidator:
    """Validate configuration against schema"""

    @staticmethod
    def validate_simulation_config(config: Dict[str, Any]) -> bool:
        """Validate simulation configuration"""
        required_keys = ['cluster', 'generator', 'simulation']

        for key in required_keys:
            if key not in config:
                raise ValueError(f"Missing required config key: {key}")

        nodes = config['cluster'].get('nodes') or []
        if not nodes:
            raise ValueError("At least one cluster node is required")
        if len(set(nodes)) != len(nodes):
            raise ValueError(f"Duplicate cluster nodes: {nodes}")
        # The duplicate gets n - 2 votes over n = len(nodes) - 1 validators
        if config['cluster'].get('dup_validators') and len(nodes) < 4:
            raise ValueError("dup_validators requires at least four nodes")

        fraction = max_byzantine_vote_fraction(config['cluster'])
        if not 0 < fraction <= 1:
            raise ValueError(f"max_byzantine_vote_fraction must be in (0, 1], got {fraction}")

        if config['generator'].get('max_attempts', 0) <= 0:
            raise ValueError("max_attempts must be positive")

        if config['simulation'].get('cycles', 0) <= 0:
            raise ValueError("cycles must be positive")

        for key in ('drop_probability', 'unreachable_probability'):
            p = config['simulation'].get(key, 0.0)
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{key} must be between 0 and 1, got {p}")

        return True
