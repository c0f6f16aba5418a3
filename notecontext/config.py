"""
Configuration management for notecontext.

This module handles loading and accessing configuration values from a YAML
file. A ConfigManager is passed to the components that need it, so several
independently configured engines can live side by side.
"""

import yaml
import sys
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from .models import SectionKind


class ConfigManager:
    """
    Manages configuration loading and access for notecontext.
    """

    def __init__(self, config_path: str = "config.yaml", overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
            overrides: Optional nested values applied on top of the loaded file
        """
        self.config_path = Path(config_path)
        self._overrides = overrides or {}
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        config = self._get_default_config()
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                _merge(config, yaml.safe_load(f) or {})

            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.info(f"Using default configuration: {e}")

        _merge(config, self._overrides)
        self._config = config

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "context": {
                "reserve_fraction": 0.7,
                "default_context_window": 6000,
                "section_shares": {
                    "current_page": 0.5,
                    "visible_content": 0.2,
                    "sidebar_notes": 0.2,
                    "linked_references": 0.1
                },
                "section_priorities": {
                    "current_page": 1,
                    "visible_content": 2,
                    "sidebar_notes": 3,
                    "linked_references": 4
                }
            },
            "cache": {
                "default_ttl_ms": 30000,
                "max_entries": 100,
                "debounce_ms": 300
            },
            "search": {
                "ttl_ms": 60000
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "cache.debounce_ms")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("cache.debounce_ms")  # Returns 300
            config.get("context.section_shares.current_page")  # Returns 0.5
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def reserve_fraction(self) -> float:
        """Fraction of the model window spent on context."""
        return self.get("context.reserve_fraction", 0.7)

    @property
    def default_context_window(self) -> int:
        """Context window assumed when the model is unknown."""
        return self.get("context.default_context_window", 6000)

    @property
    def default_ttl_ms(self) -> int:
        return self.get("cache.default_ttl_ms", 30000)

    @property
    def cache_max_entries(self) -> int:
        return self.get("cache.max_entries", 100)

    @property
    def debounce_ms(self) -> int:
        return self.get("cache.debounce_ms", 300)

    @property
    def search_ttl_ms(self) -> int:
        return self.get("search.ttl_ms", 60000)

    def section_share(self, kind: SectionKind) -> float:
        """
        Get the budget share configured for a section kind.

        Args:
            kind: The section kind

        Returns:
            The share, a float in (0, 1]
        """
        return float(self.get(f"context.section_shares.{kind.value}"))

    def section_priority(self, kind: SectionKind) -> int:
        """Get the emission priority configured for a section kind."""
        return int(self.get(f"context.section_priorities.{kind.value}"))


def _merge(base: Dict[str, Any], update: Dict[str, Any]) -> None:
    """Recursively merge update into base in place."""
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value


def setup_logging(config: ConfigManager, log_file: Optional[str] = None) -> None:
    """Configure logging from the configuration's logging section."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=handlers
    )
