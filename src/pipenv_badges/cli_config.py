"""
Configuration management for pipenv-badges.

Provides configurable settings for the GitHub fetcher, input limits,
output and logging, loaded from config files and environment variables.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)


@dataclass
class GitHubConfig:
    """GitHub API and content access configuration."""

    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    token: Optional[str] = None
    user_agent: str = "pipenv-badges/1.0.0"
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    default_branch: str = "HEAD"

    @property
    def has_token(self) -> bool:
        return bool(self.token)


@dataclass
class SecurityConfig:
    """Input validation limits."""

    max_file_size_mb: int = 5
    max_credential_length: int = 500
    min_credential_length: int = 8
    max_param_length: int = 255
    allowed_lockfile_names: List[str] = field(
        default_factory=lambda: ["Pipfile.lock"]
    )

    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class OutputConfig:
    """Badge output configuration."""

    output_format: str = "console"
    quiet: bool = False


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True
    enable_sensitive_data_masking: bool = True


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global configuration instance
_global_config: Optional[ComprehensiveConfig] = None

VALID_OUTPUT_FORMATS = ("console", "json")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if not config.github.api_url.startswith(("http://", "https://")):
        errors.append("github.api_url must be an http(s) URL")
    if not config.github.raw_url.startswith(("http://", "https://")):
        errors.append("github.raw_url must be an http(s) URL")
    if config.github.connect_timeout <= 0:
        errors.append("github.connect_timeout must be positive")
    if config.github.read_timeout <= 0:
        errors.append("github.read_timeout must be positive")
    if not config.github.default_branch:
        errors.append("github.default_branch must not be empty")

    if config.security.max_file_size_mb <= 0:
        errors.append("security.max_file_size_mb must be positive")
    if config.security.max_param_length <= 0:
        errors.append("security.max_param_length must be positive")
    if config.security.min_credential_length <= 0:
        errors.append("security.min_credential_length must be positive")
    if config.security.min_credential_length > config.security.max_credential_length:
        errors.append("security.min_credential_length must be <= max_credential_length")

    if config.output.output_format not in VALID_OUTPUT_FORMATS:
        errors.append(
            f"output.output_format must be one of: {', '.join(VALID_OUTPUT_FORMATS)}"
        )

    if config.logging.log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"logging.log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".pipenv-badges.json",
        Path.cwd() / ".pipenv-badges.yaml",
        Path.cwd() / ".pipenv-badges.yml",
        Path.home() / ".config" / "pipenv-badges" / "config.json",
        Path.home() / ".config" / "pipenv-badges" / "config.yaml",
        Path.home() / ".pipenv-badges.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_float(key: str, default: Optional[float] = None) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(
                f"⚠️  Invalid float value for {key}, using default", style="yellow"
            )
            return default

    # GitHub overrides
    if api_url := os.environ.get("PIPENV_BADGES_GITHUB_API_URL"):
        config.github.api_url = api_url.rstrip("/")
    if raw_url := os.environ.get("PIPENV_BADGES_GITHUB_RAW_URL"):
        config.github.raw_url = raw_url.rstrip("/")
    if token := os.environ.get("PIPENV_BADGES_GITHUB_TOKEN") or os.environ.get(
        "GITHUB_TOKEN"
    ):
        config.github.token = token.strip()
    if user_agent := os.environ.get("PIPENV_BADGES_USER_AGENT"):
        config.github.user_agent = user_agent
    if connect_timeout := get_env_float("PIPENV_BADGES_CONNECT_TIMEOUT"):
        config.github.connect_timeout = connect_timeout
    if read_timeout := get_env_float("PIPENV_BADGES_READ_TIMEOUT"):
        config.github.read_timeout = read_timeout

    # Output overrides
    if output_format := os.environ.get("PIPENV_BADGES_OUTPUT_FORMAT"):
        config.output.output_format = output_format.lower()
    config.output.quiet = get_env_bool("PIPENV_BADGES_QUIET", config.output.quiet)

    # Logging overrides
    if log_level := os.environ.get("PIPENV_BADGES_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    config.logging.enable_json = get_env_bool(
        "PIPENV_BADGES_LOG_JSON", config.logging.enable_json
    )


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section_name in ("github", "security", "output", "logging"):
                if section_name in file_config and isinstance(
                    file_config[section_name], dict
                ):
                    apply_config_section(
                        getattr(config, section_name),
                        file_config[section_name],
                        section_name,
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")

    _global_config = config
    return config


def get_config() -> ComprehensiveConfig:
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
    """Generate a sample configuration. Tokens are never written out."""
    sample_config = {
        "github": {
            "api_url": "https://api.github.com",
            "raw_url": "https://raw.githubusercontent.com",
            "user_agent": "pipenv-badges/1.0.0",
            "connect_timeout": 10.0,
            "read_timeout": 30.0,
            "default_branch": "HEAD",
        },
        "security": {
            "max_file_size_mb": 5,
            "max_credential_length": 500,
            "min_credential_length": 8,
            "max_param_length": 255,
        },
        "output": {
            "output_format": "console",
            "quiet": False,
        },
        "logging": {
            "log_level": "WARNING",
            "enable_json": True,
            "enable_sensitive_data_masking": True,
        },
    }

    return json.dumps(sample_config, indent=2)
