"""
Utility functions for validator set simulations
"""

from .logger import setup_logger, get_logger
from .metrics import SimulationMetrics
from .config import load_config, merge_configs, apply_overrides, create_default_config

__all__ = [
    'setup_logger',
    'get_logger',
    'SimulationMetrics',
    'load_config',
    'merge_configs',
    'apply_overrides',
    'create_default_config'
]
