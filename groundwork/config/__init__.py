"""Configuration module -- exports Settings, load_config and prioritization rules."""

from groundwork.config.loader import load_config
from groundwork.config.prioritization import PrioritizationRules
from groundwork.config.settings import Settings

__all__ = ["PrioritizationRules", "Settings", "load_config"]
