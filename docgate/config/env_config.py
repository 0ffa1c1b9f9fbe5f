"""Environment variable overrides for the configuration.

Variables are read from the process environment and, when present, from a
``.env`` file. Every value is validated; an invalid value is reported and
ignored rather than silently coerced.
"""
import os
import logging
from typing import Optional, Dict, Any, Union
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

ENV_PREFIX = "DOCGATE_"


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable set of validated overrides taken from the environment."""

    overrides: Dict[str, Any] = field(default_factory=dict)
    source_file: Optional[str] = None

    @property
    def has_overrides(self) -> bool:
        return bool(self.overrides)


class EnvironmentError(Exception):
    """Custom exception for environment configuration errors."""
    pass


class EnvironmentValidator:
    """Validates environment variable values."""

    TRUE_VALUES = ('true', '1', 'yes', 'on')
    FALSE_VALUES = ('false', '0', 'no', 'off')
    VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}

    @classmethod
    def sanitize_path(cls, path: str) -> str:
        """Normalize a path, rejecting shell metacharacters.

        Raises:
            EnvironmentError: If path is empty or contains dangerous characters
        """
        if not path or not path.strip():
            raise EnvironmentError("Path cannot be empty")

        dangerous_patterns = ['$', '`', ';', '|', '&', '<', '>', '"', "'"]
        for pattern in dangerous_patterns:
            if pattern in path:
                raise EnvironmentError(f"Path contains dangerous pattern: {pattern}")

        return os.path.normpath(path.strip())

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                              min_val: Optional[Union[int, float]] = None,
                              max_val: Optional[Union[int, float]] = None,
                              value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            EnvironmentError: If validation fails
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise EnvironmentError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise EnvironmentError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise EnvironmentError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value

    @classmethod
    def parse_bool(cls, value: str) -> bool:
        lowered = value.strip().lower()
        if lowered in cls.TRUE_VALUES:
            return True
        if lowered in cls.FALSE_VALUES:
            return False
        raise EnvironmentError(f"Invalid boolean value: {value}")

    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in cls.VALID_LOG_LEVELS:
            raise EnvironmentError(f"Invalid log level: {value}")
        return level


# key -> (config key, parser)
_ENV_KEYS = {
    "REFERENCE_IMAGE": ("reference_image_path", EnvironmentValidator.sanitize_path),
    "CAMERA_INDEX": ("camera_index", lambda v: EnvironmentValidator.validate_numeric_range(v, 0, 64, int)),
    "MIN_GOOD_MATCHES": ("min_good_matches", lambda v: EnvironmentValidator.validate_numeric_range(v, 1, 500, int)),
    "MATCH_RATIO": ("match_ratio_threshold", lambda v: EnvironmentValidator.validate_numeric_range(v, 0.1, 1.0, float)),
    "ANALYSIS_INTERVAL_MS": ("analysis_interval_ms", lambda v: EnvironmentValidator.validate_numeric_range(v, 0, 10000, int)),
    "LOG_LEVEL": ("log_level", EnvironmentValidator.validate_log_level),
    "LOG_DIR": ("log_dir", EnvironmentValidator.sanitize_path),
    "DEBUG": ("debug", EnvironmentValidator.parse_bool),
    "STRUCTURED_LOGGING": ("structured_logging", EnvironmentValidator.parse_bool),
}


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file (missing file -> empty dict)."""
    if env_path is None:
        env_path = ".env"

    env_vars: Dict[str, str] = {}
    env_file_path = Path(env_path)

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_path} not found, using system environment only")
        return env_vars

    try:
        with open(env_file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()

                if not line or line.startswith('#'):
                    continue

                if '=' in line:
                    key, value = line.split('=', 1)
                    key = key.strip()
                    value = value.strip()

                    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                        value = value[1:-1]

                    env_vars[key] = value
                else:
                    logger.warning(f"Invalid line format in {env_path}:{line_num}: {line}")

        logger.info(f"Loaded {len(env_vars)} variables from {env_path}")

    except OSError as e:
        logger.error(f"Error reading environment file {env_path}: {e}")

    return env_vars


def get_env_var(key: str, default: Optional[str] = None,
                env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
    """System environment first, then values loaded from the .env file."""
    value = os.getenv(key)
    if value is None and env_vars:
        value = env_vars.get(key)
    return default if value is None else value


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Collect every valid ``DOCGATE_*`` override."""
    env_vars = load_env_file(env_file_path)
    overrides: Dict[str, Any] = {}

    for suffix, (config_key, parser) in _ENV_KEYS.items():
        name = ENV_PREFIX + suffix
        raw = get_env_var(name, env_vars=env_vars)
        if raw is None:
            continue
        try:
            overrides[config_key] = parser(raw)
        except EnvironmentError as e:
            logger.warning(f"Ignoring {name}: {e}")

    if overrides:
        logger.info(f"Environment overrides applied for: {sorted(overrides)}")

    return EnvironmentConfig(overrides=overrides, source_file=env_file_path)
