"""Configuration management."""

import copy
import json
import yaml
from pathlib import Path
from typing import Dict, Any


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML or JSON file, filled in with defaults."""
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        if path.suffix.lower() in ['.yaml', '.yml']:
            loaded = yaml.safe_load(f)
        elif path.suffix.lower() == '.json':
            loaded = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

    if loaded is not None and not isinstance(loaded, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    return merge_config(get_default_config(), loaded or {})


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        'scheduling': {
            'planning_horizon_days': 14,
            'working_hours_start': 9,
            'working_hours_end': 17,
            'working_days': [0, 1, 2, 3, 4],  # Monday to Friday
            'max_block_minutes': 120,
            'min_focus_minutes': 30,
            'default_task_minutes': 60,
        },
        'slot_weights': {
            'priority': 0.4,
            'dependency': 0.4,
            'preference': 0.2,
            'adjacency': 0.1,
        },
        'capacity': {
            'utilization_ceiling': 0.9,
            'iteration_cap_multiplier': 3,
        },
        'critical_path': {
            'tie_break': 'earliest_task_id',
            'buffer_percentage': 20,
        },
        'estimation': {
            'analogy_top_k': 5,
            'analogy_min_similarity': 0.3,
            'pert_confidence': 0.8,
            'calibration_min_samples': 3,
        },
        'sessions': {
            'concurrent_request_mode': 'queue',  # or 'reject'
        },
        'advisory': {
            'enabled': False,
            'timeout_seconds': 10,
        },
        'evaluation': {
            'task_count': 20,
            'actor_count': 3,
            'history_count': 30,
        },
        'logging': {
            'level': 'INFO',
        },
    }
