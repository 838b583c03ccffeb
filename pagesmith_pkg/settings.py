#!/usr/bin/env python3
"""
Settings loader for Pagesmith.
Supports configuration from pagesmith.yml, pagesmith.yaml, or pagesmith.json files.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional


DEFAULT_ASSETS = [
    'mapikids-logo-txt.png',
    'favicon.ico',
    'favicon-32x32.png',
    'favicon-16x16.png',
    'apple-touch-icon.png',
]


class PagesmithSettings:
    """Load and manage Pagesmith configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'src': 'src',
        'output': 'dist',
        'config': None,
        'index_document': 'index.html',
        'stats_document': 'stats.html',
        'assets': DEFAULT_ASSETS,
        'site_url': None,
        'minify': False,
        'strict': False,
        'watch': False,
        'verbose': False,
        'log_dir': None,
    }

    PATH_SETTINGS = ['src', 'output', 'index_document', 'stats_document']

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['pagesmith.yml', 'pagesmith.yaml', 'pagesmith.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.settings['assets'] = list(DEFAULT_ASSETS)
        self.config_file_path = None
        self.warnings = []

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        A file that cannot be read or parsed is recorded in ``warnings``
        and the defaults are kept.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            try:
                loaded_settings = self._load_config_file(config_file)
                if loaded_settings:
                    if not isinstance(loaded_settings, dict):
                        raise ValueError(f"Configuration file {config_file} must contain a mapping")
                    self.settings.update(loaded_settings)
            except (ValueError, IOError, OSError) as e:
                self.warnings.append(f"Failed to load config file {config_file}: {e}")
            self._normalize()

        return self.settings.copy()

    def _normalize(self) -> None:
        """Coerce loaded values to the types the builder expects.

        Invalid values are reported in ``warnings`` and replaced by the default.
        """
        for key in self.PATH_SETTINGS:
            value = self.settings.get(key)
            if not isinstance(value, str) or not value.strip():
                self.warnings.append(f"Setting '{key}' must be a non-empty path, using {self.DEFAULT_SETTINGS[key]!r}")
                self.settings[key] = self.DEFAULT_SETTINGS[key]

        for key in ('config', 'site_url', 'log_dir'):
            value = self.settings.get(key)
            if value is not None and not isinstance(value, str):
                self.warnings.append(f"Setting '{key}' must be a string, ignoring {value!r}")
                self.settings[key] = None

        assets = self.settings.get('assets')
        if assets is None:
            assets = []
        elif isinstance(assets, str):
            assets = [asset.strip() for asset in assets.split(',') if asset.strip()]
        elif isinstance(assets, list) and all(isinstance(asset, str) for asset in assets):
            assets = list(assets)
        else:
            self.warnings.append("Setting 'assets' must be a list of file names, using the default list")
            assets = list(DEFAULT_ASSETS)
        self.settings['assets'] = assets

        for key in ('minify', 'strict', 'watch', 'verbose'):
            value = self.settings.get(key)
            if not isinstance(value, bool):
                self.warnings.append(f"Setting '{key}' must be true or false, using {self.DEFAULT_SETTINGS[key]}")
                self.settings[key] = self.DEFAULT_SETTINGS[key]

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
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'pagesmith.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        with open(config_path, 'w', encoding='utf-8') as f:
            if file_format in ['yml', 'yaml']:
                f.write("# Pagesmith Configuration File\n\n")
                f.write("# Source layout\n")
                f.write("src: src\n")
                f.write("output: dist\n")
                f.write("# config: src/config/pages.json\n\n")
                f.write("# Legacy documents mined for styles, body and scripts\n")
                f.write("index_document: index.html\n")
                f.write("stats_document: stats.html\n\n")
                f.write("# Files copied verbatim into the output root\n")
                f.write("assets:\n")
                for asset in DEFAULT_ASSETS:
                    f.write(f"  - {asset}\n")
                f.write("\n# Canonical URL prefix for {{PAGE_URL}}\n")
                f.write("site_url: https://example.com\n\n")
                f.write("# Build settings\n")
                f.write("minify: false\n")
                f.write("strict: false\n")
                f.write("watch: false\n")
            elif file_format == 'json':
                sample_config = {k: v for k, v in self.DEFAULT_SETTINGS.items()
                                 if k not in ('verbose', 'log_dir')}
                sample_config['site_url'] = 'https://example.com'
                json.dump(sample_config, f, indent=2)
            else:
                raise ValueError(f"Unsupported config file format: {file_format}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        for key, value in args_dict.items():
            if value is None:
                continue
            # store_true flags only override when switched on
            if value is False and key in ('minify', 'strict', 'watch', 'verbose'):
                continue
            if key == 'assets' and isinstance(value, str):
                merged[key] = [asset.strip() for asset in value.split(',') if asset.strip()]
            else:
                merged[key] = value

        return merged
