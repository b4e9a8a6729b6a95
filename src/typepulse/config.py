"""
Configuration loading for the analytics engine

Settings live in a YAML file whose sections mirror the components that read
them. Anything the file leaves out falls back to the defaults below.
"""

import copy
import logging
from typing import Dict, Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"

DEFAULT_CONFIG: Dict = {
    'system': {'log_level': 'INFO'},
    'buffer': {'capacity': 1000},
    'metrics': {
        'wpm_window_ms': 5000,  # trailing window for real-time WPM
        'wpm_sample_size': 200,
        'min_time_span_ms': 1000,  # shorter spans report 0 WPM
        'paste_threshold_ms': 10,
        'average_word_length': 5,
        'accuracy_sample_size': 500,
        'consistency_sample_size': 100,
        'consistency_min_events': 10,
        'consistency_min_samples': 5,
        'outlier_threshold_ms': 1000,
        'debounce_ms': 100,  # at most ~10 recomputes per second
    },
    'session': {'default_target_wpm': 60},
    'difficulty': {
        'starting_level': 'beginner-1',
        'history_limit': 50,
        'level_sample_size': 10,
        'min_sessions': 3,
        'target_accuracy': 95,
        'wpm_advance_ratio': 0.8,
        'min_consistency': 70,
        'regress_accuracy': 85,
        'wpm_regress_ratio': 0.5,
        'recommend_wpm_ratio': 0.6,
        'trend_threshold': 2,
        'max_error_patterns': 3,
    },
}


def get_default_config() -> Dict:
    """Get a private copy of the default configuration"""
    return copy.deepcopy(DEFAULT_CONFIG)


def _deep_merge(base: Dict, overrides: Dict) -> Dict:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def merge_config(overrides: Optional[Dict] = None) -> Dict:
    """Layer a (possibly partial) configuration over the defaults"""
    config = get_default_config()
    if overrides:
        _deep_merge(config, copy.deepcopy(overrides))
    return config


def load_config(config_file: str = DEFAULT_CONFIG_FILE) -> Dict:
    """Load configuration from YAML file"""
    try:
        with open(config_file, 'r') as f:
            loaded = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning(f"Config file {config_file} not found, using defaults")
        return get_default_config()
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if loaded is None:
        return get_default_config()
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping, got {type(loaded).__name__}")
    return merge_config(loaded)
