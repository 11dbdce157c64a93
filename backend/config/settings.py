"""
Configuration Management for compose-status
Centralizes all environment-based configuration and logging setup
"""

import os
import logging
from dataclasses import dataclass, replace
from logging.handlers import RotatingFileHandler
from typing import Mapping, Optional

ENV_PREFIX = 'CS_'
ALLOWED_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Projects without a group label are collected under this name.
# '~' sorts after every letter and digit, so the pseudo-group renders last.
# A group label of exactly '~' is ignored and the project counts as ungrouped.
UNGROUPED = '~'


class HealthCheckFilter(logging.Filter):
    """Filter out health check and routine polling requests to reduce log noise"""
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()

        # For uvicorn access logs, the message format is:
        # 'IP:PORT - "METHOD /path HTTP/1.1" STATUS'
        if '200 OK' in message or '200' in str(getattr(record, 'args', '')):
            if '/health' in message:
                return False
            if '/api/status' in message:
                return False
        return True


def setup_logging(settings: 'StatusSettings'):
    """Configure application logging, with rotation when a log directory is set"""
    root_logger = logging.getLogger()

    # Close and clear any existing handlers to ensure our logging configuration
    # is used and prevent file descriptor leaks
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    log_level = getattr(logging, settings.log_level)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if settings.log_dir:
        os.makedirs(settings.log_dir, mode=0o700, exist_ok=True)
        # Max 10MB per file, keep 14 backups
        file_handler = RotatingFileHandler(
            os.path.join(settings.log_dir, 'compose-status.log'),
            maxBytes=10*1024*1024,
            backupCount=14,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(console_formatter)
        root_logger.addHandler(file_handler)

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthCheckFilter())

    # Health probes go through httpx every cycle; only show WARNING and above
    httpx_logger = logging.getLogger("httpx")
    httpx_logger.setLevel(logging.WARNING)


def _safe_int(env: Mapping[str, str], name: str, default: int, min_val: int = None, max_val: int = None) -> int:
    """
    Safely parse an integer from the environment with validation.

    Args:
        env: Environment mapping (usually os.environ)
        name: Variable name without the CS_ prefix
        default: Default value if not set
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)

    Raises:
        ValueError: If value is not a valid integer or out of range
    """
    env_var = ENV_PREFIX + name
    value_str = env.get(env_var)
    if value_str is None or value_str.strip() == '':
        return default

    try:
        value = int(value_str)
    except ValueError:
        raise ValueError(
            f"{env_var} must be a valid integer, got: '{value_str}'"
        )

    _check_range(env_var, value, min_val, max_val)
    return value


def _check_range(name: str, value: int, min_val: Optional[int], max_val: Optional[int]):
    if min_val is not None and value < min_val:
        raise ValueError(
            f"{name} must be at least {min_val}, got: {value}"
        )
    if max_val is not None and value > max_val:
        raise ValueError(
            f"{name} must be at most {max_val}, got: {value}"
        )


def _safe_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(ENV_PREFIX + name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _label(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(ENV_PREFIX + name, default).strip()
    if not value:
        raise ValueError(f"{ENV_PREFIX}{name} must not be empty")
    return value


@dataclass(frozen=True)
class LabelKeys:
    """Container label keys read by the monitor. Matching is case-sensitive."""
    project: str = 'com.docker.compose.project'
    group: str = 'compose-status.group'
    link: str = 'traefik.frontend.rule'
    health_port: str = 'compose-status.health.port'
    health_method: str = 'compose-status.health.method'
    health_path: str = 'compose-status.health.path'
    health_code: str = 'compose-status.health.code'


@dataclass(frozen=True)
class StatusSettings:
    """Main application configuration, built once at startup"""

    # Seconds a down unit is remembered before it is forgotten
    clean_cutoff: int
    scan_interval: int = 5
    history_window: int = 600
    source_timeout: int = 10
    health_timeout_ms: int = 50

    page_title: str = ''
    show_credit: bool = True

    host: str = '0.0.0.0'
    port: int = 9293

    save_path: str = 'save.json'

    labels: LabelKeys = LabelKeys()

    log_level: str = 'INFO'
    log_dir: str = ''

    @property
    def history_capacity(self) -> int:
        """Length of the rolling metric buffers, fixed at startup"""
        return max(1, self.history_window // self.scan_interval)

    @property
    def health_timeout(self) -> float:
        return self.health_timeout_ms / 1000.0

    @classmethod
    def from_env(cls, env: Mapping[str, str] = None) -> 'StatusSettings':
        """
        Load configuration from CS_* environment variables.

        Raises:
            ValueError: On any malformed or out-of-range value
        """
        if env is None:
            env = os.environ

        defaults = LabelKeys()
        labels = LabelKeys(
            project=_label(env, 'PROJECT_LABEL', defaults.project),
            group=_label(env, 'GROUP_LABEL', defaults.group),
            link=env.get(ENV_PREFIX + 'LINK_LABEL', defaults.link).strip(),
            health_port=_label(env, 'HEALTH_PORT_LABEL', defaults.health_port),
            health_method=_label(env, 'HEALTH_METHOD_LABEL', defaults.health_method),
            health_path=_label(env, 'HEALTH_PATH_LABEL', defaults.health_path),
            health_code=_label(env, 'HEALTH_CODE_LABEL', defaults.health_code),
        )

        settings = cls(
            clean_cutoff=_safe_int(env, 'CLEAN_CUTOFF', 3 * 24 * 3600, min_val=0, max_val=365 * 24 * 3600),
            scan_interval=_safe_int(env, 'SCAN_INTERVAL', 5, min_val=1, max_val=3600),
            history_window=_safe_int(env, 'HISTORY_WINDOW', 600, min_val=1),
            source_timeout=_safe_int(env, 'SOURCE_TIMEOUT', 10, min_val=1, max_val=300),
            health_timeout_ms=_safe_int(env, 'HEALTH_TIMEOUT_MS', 50, min_val=1, max_val=5000),
            page_title=env.get(ENV_PREFIX + 'PAGE_TITLE', ''),
            show_credit=_safe_bool(env, 'SHOW_CREDIT', True),
            host=env.get(ENV_PREFIX + 'HOST', '0.0.0.0'),
            port=_safe_int(env, 'PORT', 9293, min_val=1, max_val=65535),
            save_path=env.get(ENV_PREFIX + 'SAVE_PATH', 'save.json').strip(),
            labels=labels,
            log_level=env.get(ENV_PREFIX + 'LOG_LEVEL', 'INFO').strip().upper(),
            log_dir=env.get(ENV_PREFIX + 'LOG_DIR', '').strip(),
        )
        settings.validate()
        return settings

    def with_overrides(self, **overrides) -> 'StatusSettings':
        """Return a copy with the non-None overrides applied, validated again"""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if 'log_level' in changes:
            changes['log_level'] = changes['log_level'].upper()
        settings = replace(self, **changes)
        settings.validate()
        return settings

    def validate(self):
        """
        Validate cross-field rules and values that did not pass through _safe_int().

        Raises:
            ValueError: On the first invalid field
        """
        if self.log_level not in ALLOWED_LOG_LEVELS:
            raise ValueError(
                f"Invalid {ENV_PREFIX}LOG_LEVEL: '{self.log_level}'. "
                f"Must be one of {ALLOWED_LOG_LEVELS}"
            )
        _check_range('clean_cutoff', self.clean_cutoff, 0, 365 * 24 * 3600)
        _check_range('scan_interval', self.scan_interval, 1, 3600)
        _check_range('port', self.port, 1, 65535)
        if self.history_window < self.scan_interval:
            raise ValueError(
                f"history_window ({self.history_window}s) must be at least "
                f"scan_interval ({self.scan_interval}s)"
            )
        return True
