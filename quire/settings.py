#!/usr/bin/env python3
"""
Global configuration loader for Quire.
Supports configuration from _global.yml, _global.yaml, or _global.json files.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional

import yaml
from babel import default_locale

from .dates import Date, from_datetime
from .errors import ConfigError, MetadataTypeError

logger = logging.getLogger('Quire')

FALLBACK_LOCALE = 'en_US'


def system_locale() -> str:
    """Detect the locale of the running system, falling back to en_US."""
    detected = default_locale('LC_TIME')
    if not detected or detected.startswith(('C', 'POSIX')):
        return FALLBACK_LOCALE
    return detected


@dataclass
class Global:
    """Process-wide build configuration, read-only once loaded."""

    locale: str
    date: Date
    minify: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    def as_context(self) -> Dict[str, Any]:
        """The mapping view exposed to templates as `global`."""
        context = dict(self.data)
        context['locale'] = self.locale
        context['minify'] = self.minify
        context['date'] = self.date
        return context


class QuireSettings:
    """Load and manage the global configuration of a site."""

    # Default configuration; locale is detected at load time
    DEFAULT_SETTINGS = {
        'locale': None,
        'minify': False,
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['_global.yml', '_global.yaml', '_global.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from the configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if loaded_settings:
                self.settings.update(loaded_settings)
                logger.debug(f"Loaded configuration from: {os.path.relpath(config_file)}")

        if self.settings.get('locale') is None:
            self.settings['locale'] = system_locale()

        return self.settings.copy()

    def load_global(self, now: Optional[datetime] = None) -> Global:
        """
        Build the Global config, stamping it with the build start time.

        Args:
            now: Build start time; defaults to the current UTC time

        Returns:
            Global configuration
        """
        settings = self.load_settings()
        source = self.config_file_path or os.path.join(self.config_dir, self.CONFIG_FILES[0])

        locale = settings['locale']
        if not isinstance(locale, str):
            raise MetadataTypeError('locale', locale, source, 'string')
        minify = settings['minify']
        if not isinstance(minify, bool):
            raise MetadataTypeError('minify', minify, source, 'boolean')

        moment = now or datetime.now(timezone.utc)
        return Global(
            locale=locale,
            date=from_datetime(moment, locale, source),
            minify=minify,
            data=settings,
        )

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    loaded = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    loaded = json.load(f) or {}
                else:
                    raise ConfigError(config_path, f"unsupported config file format: {file_ext}")
        except PermissionError as e:
            raise ConfigError(config_path, "permission denied") from e
        except yaml.YAMLError as e:
            raise ConfigError(config_path, f"invalid YAML: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(config_path, f"invalid JSON: {e}") from e
        except (IOError, OSError) as e:
            raise ConfigError(config_path, str(e)) from e

        if not isinstance(loaded, dict):
            raise ConfigError(config_path, f"expected a mapping, got {type(loaded).__name__}")
        return {str(key): value for key, value in loaded.items()}

    def create_sample_config(self) -> str:
        """
        Create a sample configuration file.

        Returns:
            Path to created sample config file
        """
        config_path = os.path.join(self.config_dir, self.CONFIG_FILES[0])

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                f.write("# Quire Global Configuration\n")
                f.write("# Every key here is available to templates as {{ global.<key> }}\n\n")
                f.write("# Locale used for month and weekday names\n")
                f.write("locale: en_US\n\n")
                f.write("# Minify rendered pages unless a page sets minify: false\n")
                f.write("minify: false\n\n")
                f.write("# Site information\n")
                f.write("title: My Quire Site\n")
        except PermissionError as e:
            raise ConfigError(config_path, "permission denied creating configuration file") from e
        except (IOError, OSError) as e:
            raise ConfigError(config_path, f"error writing configuration file: {e}") from e

        return config_path
