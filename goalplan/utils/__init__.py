"""Utility functions."""

from .config import get_default_config, load_config, merge_config
from .datetime_utils import get_working_days

__all__ = ['load_config', 'get_default_config', 'merge_config', 'get_working_days']
