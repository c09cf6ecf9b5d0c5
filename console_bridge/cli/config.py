"""Configuration system for the console-bridge CLI with precedence handling.

Configuration sources, highest precedence first:
CLI flags > environment variables > config file > auto-discovered file > defaults
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..capture.browser_factory import BrowserEngineType
from ..capture.serializer import SerializerLimits
from ..formatting.formatter import FormatterOptions
from ..models.events import ConsoleMethod
from ..utils.url import validate_url


class ConfigurationError(ValueError):
    """Raised when configuration cannot be loaded or is invalid."""
    pass


class CaptureConfig(BaseModel):
    """Capture configuration options."""
    urls: List[str] = Field(default_factory=list, description="Local URLs to monitor")
    levels: Optional[List[str]] = Field(default=None, description="Console methods to show (all when unset)")
    engine: str = Field(default=BrowserEngineType.CHROMIUM, description="Browser engine")
    headless: bool = Field(default=True, description="Run browser without a window")
    max_instances: int = Field(default=10, ge=1, le=50, description="Maximum monitored pages")
    navigation_timeout_ms: float = Field(default=30000, ge=1000, description="Page load timeout")
    capture_page_errors: bool = Field(default=True, description="Report uncaught page errors")
    capture_network_failures: bool = Field(default=True, description="Report failed requests")

    @field_validator('levels')
    @classmethod
    def validate_levels(cls, v):
        if v is None:
            return v
        unknown = [level for level in v if ConsoleMethod.resolve(level) is None]
        if unknown:
            raise ValueError(f"unknown console levels: {', '.join(unknown)}")
        return v

    @field_validator('engine')
    @classmethod
    def validate_engine(cls, v):
        engines = [BrowserEngineType.CHROMIUM, BrowserEngineType.FIREFOX, BrowserEngineType.WEBKIT]
        if v not in engines:
            raise ValueError(f"engine must be one of: {', '.join(engines)}")
        return v


class FormatterConfig(FormatterOptions):
    """Formatter configuration: display options plus formatter selection."""
    style: Literal["text", "badges", "json"] = Field(default="text", description="Output style")
    shared: bool = Field(default=False, description="One formatter state for all sources")


class OutputConfig(BaseModel):
    """Output configuration options."""
    output_file: Optional[Path] = Field(default=None, description="Also append lines to this file")
    quiet: bool = Field(default=False, description="Do not write to the terminal")
    verbose: bool = Field(default=False, description="Verbose diagnostics")


class ServerConfig(BaseModel):
    """Extension-mode server options."""
    extension_mode: bool = Field(default=False, description="Receive events from the browser extension")
    host: str = Field(default="localhost", description="Interface to bind")
    port: int = Field(default=9223, ge=1, le=65535, description="WebSocket port")


class BridgeConfiguration(BaseModel):
    """Complete CLI configuration with all sections."""

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    formatter: FormatterConfig = Field(default_factory=FormatterConfig)
    serializer: SerializerLimits = Field(default_factory=SerializerLimits)
    output: OutputConfig = Field(default_factory=OutputConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    # Metadata
    config_file_path: Optional[Path] = Field(default=None, description="Source config file")
    loaded_from: List[str] = Field(default_factory=list, description="Configuration sources")


class ConfigurationLoader:
    """Loads and merges configuration from multiple sources with proper precedence."""

    ENV_PREFIX = "CONSOLE_BRIDGE_"

    # Default configuration file names (searched in order)
    DEFAULT_CONFIG_FILES = [
        "console-bridge.yaml",
        "console-bridge.yml",
        "console-bridge.json",
        ".console-bridge.yaml",
        ".console-bridge.yml",
        ".console-bridge.json",
    ]

    BOOLEAN_KEYS = (
        '.headless', '.capture_page_errors', '.capture_network_failures',
        '.show_timestamp', '.show_source', '.show_location', '.colors', '.shared',
        '.quiet', '.verbose', '.extension_mode',
    )
    INTEGER_KEYS = (
        '.max_instances', '.port', '.max_depth', '.max_string_length',
        '.max_object_keys', '.max_array_length', '.max_map_entries', '.max_set_values',
    )
    FLOAT_KEYS = ('.navigation_timeout_ms',)
    LIST_KEYS = ('.urls', '.levels')
    PATH_KEYS = ('.output_file',)

    def __init__(self):
        self.loaded_sources: List[str] = []

    def load_configuration(
        self,
        config_file: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        search_paths: Optional[List[Path]] = None
    ) -> BridgeConfiguration:
        """Load configuration with proper precedence.

        Precedence (highest to lowest):
        1. CLI overrides (flags)
        2. Environment variables
        3. Specified config file
        4. Auto-discovered config files
        5. Defaults

        Args:
            config_file: Explicitly specified config file
            cli_overrides: CLI flag overrides, nested by section
            search_paths: Paths to search for config files

        Returns:
            Merged configuration

        Raises:
            ConfigurationError: If a source cannot be read or the result is invalid
        """
        self.loaded_sources = []

        config_data: Dict[str, Any] = {}
        self.loaded_sources.append("defaults")

        if not config_file:
            discovered = self._discover_config_file(search_paths or [Path.cwd()])
            if discovered:
                source_file = discovered.pop("_source_file")
                config_data = self._merge_config(config_data, discovered)
                self.loaded_sources.append(f"auto-discovered: {source_file}")

        if config_file:
            if not config_file.exists():
                raise ConfigurationError(f"Configuration file not found: {config_file}")

            file_config = self._load_config_file(config_file)
            config_data = self._merge_config(config_data, file_config)
            self.loaded_sources.append(f"config file: {config_file}")

        env_config = self._load_environment_variables()
        if env_config:
            config_data = self._merge_config(config_data, env_config)
            self.loaded_sources.append("environment variables")

        if cli_overrides:
            config_data = self._merge_config(config_data, cli_overrides)
            self.loaded_sources.append("CLI flags")

        config_data["loaded_from"] = self.loaded_sources
        if config_file:
            config_data["config_file_path"] = config_file

        try:
            return BridgeConfiguration(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _discover_config_file(self, search_paths: List[Path]) -> Optional[Dict[str, Any]]:
        """Discover configuration file in search paths."""
        for search_path in search_paths:
            for config_filename in self.DEFAULT_CONFIG_FILES:
                config_path = search_path / config_filename
                if config_path.exists() and config_path.is_file():
                    config_data = self._load_config_file(config_path)
                    config_data["_source_file"] = str(config_path)
                    return config_data
        return None

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML or JSON file."""
        suffix = config_path.suffix.lower()
        if suffix not in ('.yaml', '.yml', '.json'):
            raise ConfigurationError(f"Unsupported config file format: {config_path.suffix}")

        try:
            content = config_path.read_text(encoding='utf-8')
            if suffix == '.json':
                data = json.loads(content)
            else:
                data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Error loading config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        return data

    def _load_environment_variables(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        env_mapping = {
            f"{self.ENV_PREFIX}URLS": "capture.urls",
            f"{self.ENV_PREFIX}LEVELS": "capture.levels",
            f"{self.ENV_PREFIX}ENGINE": "capture.engine",
            f"{self.ENV_PREFIX}HEADLESS": "capture.headless",
            f"{self.ENV_PREFIX}MAX_INSTANCES": "capture.max_instances",
            f"{self.ENV_PREFIX}NAVIGATION_TIMEOUT_MS": "capture.navigation_timeout_ms",
            f"{self.ENV_PREFIX}SHOW_TIMESTAMP": "formatter.show_timestamp",
            f"{self.ENV_PREFIX}SHOW_SOURCE": "formatter.show_source",
            f"{self.ENV_PREFIX}SHOW_LOCATION": "formatter.show_location",
            f"{self.ENV_PREFIX}TIMESTAMP_FORMAT": "formatter.timestamp_format",
            f"{self.ENV_PREFIX}COLORS": "formatter.colors",
            f"{self.ENV_PREFIX}STYLE": "formatter.style",
            f"{self.ENV_PREFIX}SHARED_FORMATTER": "formatter.shared",
            f"{self.ENV_PREFIX}MAX_DEPTH": "serializer.max_depth",
            f"{self.ENV_PREFIX}MAX_STRING_LENGTH": "serializer.max_string_length",
            f"{self.ENV_PREFIX}OUTPUT_FILE": "output.output_file",
            f"{self.ENV_PREFIX}QUIET": "output.quiet",
            f"{self.ENV_PREFIX}VERBOSE": "output.verbose",
            f"{self.ENV_PREFIX}EXTENSION_MODE": "server.extension_mode",
            f"{self.ENV_PREFIX}HOST": "server.host",
            f"{self.ENV_PREFIX}PORT": "server.port",
        }

        for env_var, config_path in env_mapping.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                converted_value = self._convert_env_value(env_value, config_path)
                self._set_nested_value(config, config_path, converted_value)

        return config

    def _convert_env_value(self, value: str, config_path: str) -> Any:
        """Convert environment variable string to appropriate type."""
        if config_path.endswith(self.BOOLEAN_KEYS):
            return value.strip().lower() in ('true', '1', 'yes', 'on')

        try:
            if config_path.endswith(self.INTEGER_KEYS):
                return int(value)
            if config_path.endswith(self.FLOAT_KEYS):
                return float(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric value for {config_path}: {value!r}") from e

        if config_path.endswith(self.LIST_KEYS):
            return [item.strip() for item in value.split(',') if item.strip()]

        if config_path.endswith(self.PATH_KEYS):
            return Path(value) if value else None

        return value

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge configuration dictionaries, with override taking precedence."""
        if not override:
            return base

        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result


def load_configuration(
    config_file: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    search_paths: Optional[List[Path]] = None
) -> BridgeConfiguration:
    """Convenience function to load configuration.

    Args:
        config_file: Path to configuration file
        cli_overrides: CLI flag overrides
        search_paths: Paths to search for config files

    Returns:
        Loaded and merged configuration
    """
    loader = ConfigurationLoader()
    return loader.load_configuration(config_file, cli_overrides, search_paths)


def print_configuration(config: BridgeConfiguration, format: str = "yaml") -> str:
    """Render the effective configuration for debugging.

    Args:
        config: Configuration to print
        format: Output format (yaml, json)

    Returns:
        Formatted configuration string
    """
    config_dict = config.model_dump(
        mode="json",
        exclude={'loaded_from', 'config_file_path'},
        exclude_none=False
    )

    if format.lower() == "json":
        return json.dumps(config_dict, indent=2, default=str)
    return yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=True)


def validate_configuration(config: BridgeConfiguration) -> List[str]:
    """Validate configuration and return list of validation errors.

    Args:
        config: Configuration to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if config.server.extension_mode:
        if config.capture.urls:
            errors.append("URLs cannot be combined with extension mode")
    elif not config.capture.urls:
        errors.append("At least one URL is required (or use extension mode)")

    for url in config.capture.urls:
        valid, message = validate_url(url)
        if not valid:
            errors.append(f"{url}: {message}")

    if config.output.output_file:
        try:
            config.output.output_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create output directory {config.output.output_file.parent}: {e}")

    if config.output.quiet and not config.output.output_file:
        errors.append("Quiet mode needs an output file")

    return errors
