"""
Configuration management for library-loader.

Provides configurable settings for repository access, the artifact cache
and logging, loaded from an optional config file and environment overrides.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console

try:
    import yaml

    HAS_YAML = True
except ImportError:
    HAS_YAML = False

console = Console(stderr=True)

DEFAULT_REPOSITORY = "https://repo1.maven.org/maven2"


@dataclass
class NetworkConfig:
    """Repository access configuration."""

    user_agent: str = "library-loader/1.0.0"
    default_repository: str = DEFAULT_REPOSITORY
    # None means no timeout: callers impose their own deadline
    connect_timeout: Optional[float] = None
    read_timeout: Optional[float] = None
    follow_redirects: bool = True
    chunk_size: int = 64 * 1024


@dataclass
class CacheConfig:
    """Artifact cache configuration."""

    libraries_dir_name: str = "libraries"
    temp_dir: Optional[str] = None
    artifact_extension: str = ".jar"


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "INFO"


@dataclass
class LoaderConfig:
    """Main configuration containing all subsections."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_config: Optional[LoaderConfig] = None


def validate_config_values(config: LoaderConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.network.connect_timeout is not None and config.network.connect_timeout <= 0:
        errors.append("network.connect_timeout must be positive or null")
    if config.network.read_timeout is not None and config.network.read_timeout <= 0:
        errors.append("network.read_timeout must be positive or null")
    if config.network.chunk_size <= 0:
        errors.append("network.chunk_size must be positive")
    if not config.network.default_repository.startswith(("http://", "https://")):
        errors.append("network.default_repository must be an http(s) URL")

    name = config.cache.libraries_dir_name
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        errors.append("cache.libraries_dir_name must be a plain directory name")
    if not config.cache.artifact_extension.startswith("."):
        errors.append("cache.artifact_extension must start with '.'")

    if config.logging.log_level.upper() not in (
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ):
        errors.append(f"logging.log_level is not a valid level: {config.logging.log_level}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                if HAS_YAML:
                    return yaml.safe_load(f)
                console.print("⚠️  PyYAML not installed, skipping YAML config", style="yellow")
                return None
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError) as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".library-loader.json",
        Path.cwd() / ".library-loader.yaml",
        Path.cwd() / ".library-loader.yml",
        Path.home() / ".config" / "library-loader" / "config.json",
        Path.home() / ".config" / "library-loader" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: LoaderConfig) -> None:
    """Apply LIBRARY_LOADER_* environment variable overrides."""

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return None

    def get_env_bool(key: str, default: bool) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    if user_agent := os.environ.get("LIBRARY_LOADER_USER_AGENT"):
        config.network.user_agent = user_agent
    if repository := os.environ.get("LIBRARY_LOADER_DEFAULT_REPOSITORY"):
        config.network.default_repository = repository
    if connect_timeout := get_env_float("LIBRARY_LOADER_CONNECT_TIMEOUT"):
        config.network.connect_timeout = connect_timeout
    if read_timeout := get_env_float("LIBRARY_LOADER_READ_TIMEOUT"):
        config.network.read_timeout = read_timeout
    config.network.follow_redirects = get_env_bool(
        "LIBRARY_LOADER_FOLLOW_REDIRECTS", config.network.follow_redirects
    )

    if libraries_dir := os.environ.get("LIBRARY_LOADER_LIBRARIES_DIR"):
        config.cache.libraries_dir_name = libraries_dir
    if temp_dir := os.environ.get("LIBRARY_LOADER_TEMP_DIR"):
        config.cache.temp_dir = temp_dir

    if log_level := os.environ.get("LIBRARY_LOADER_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(config: Any, section_data: Dict[str, Any], section_name: str) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def load_config() -> LoaderConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = LoaderConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section_name in ("network", "cache", "logging"):
                if isinstance(file_config.get(section_name), dict):
                    apply_config_section(
                        getattr(config, section_name), file_config[section_name], section_name
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = LoaderConfig()

    _global_config = config
    return config


def get_config() -> LoaderConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration file."""
    return json.dumps(LoaderConfig().to_dict(), indent=2)
