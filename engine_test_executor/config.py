"""Configuration loading for the engine test executor."""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_POLL_DEADLINE_SECONDS = 5.0
DEFAULT_POLL_INTERVAL_MS = 200
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_REPORT_DIR = "./test-reports"

ENV_KEYS = [
    'ENGINE_URL', 'ENGINE_USERNAME', 'ENGINE_PASSWORD', 'ENGINE_VERIFY_TLS',
    'ENGINE_HTTP_TIMEOUT', 'ALLOW_EMPTY_RESULTS', 'POLL_DEADLINE_SECONDS',
    'POLL_INTERVAL_MS', 'REPORT_DIR',
]


@dataclass(frozen=True)
class ExecutorConfig:
    """Settings for one run of the executor."""
    base_url: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    verify_tls: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    allow_empty_results: bool = False
    poll_deadline: float = DEFAULT_POLL_DEADLINE_SECONDS
    poll_interval: float = DEFAULT_POLL_INTERVAL_MS / 1000
    report_dir: Path = Path(DEFAULT_REPORT_DIR)
    route_patterns: str = ""
    filter_patterns: str = ""

    def require_url(self) -> str:
        if not self.base_url:
            raise ConfigError("ENGINE_URL is not configured")
        return self.base_url


def load_env() -> dict:
    """Load config from environment variables and .env file.

    Environment variables take precedence over .env file values.
    """
    paths = [
        os.environ.get('ENGINE_TEST_EXECUTOR_CONFIG'),
        Path.cwd() / '.env',
        Path(__file__).parent.parent / '.env',
    ]
    config = {}
    for p in paths:
        if p and Path(p).exists():
            try:
                for line in Path(p).read_text().splitlines():
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        config[key.strip()] = value.strip()
                break
            except OSError as e:
                logger.warning(f"Failed to read {p}: {e}")

    for key in ENV_KEYS:
        env_value = os.environ.get(key)
        if env_value is not None:
            config[key] = env_value

    return config


def load_job_file(path: Path) -> dict:
    """Read a YAML job description (patterns, policy, polling)."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read job file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Job file {path} must contain a mapping")
    return data


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _number(value, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return number


def _patterns(value) -> str:
    if isinstance(value, (list, tuple)):
        return "\n".join(str(v) for v in value)
    return str(value or "")


def build_config(env: Optional[dict] = None, job: Optional[dict] = None, **overrides) -> ExecutorConfig:
    """Merge .env/environment, job file and explicit overrides, in increasing priority.

    Overrides whose value is None are ignored so CLI flags that were not given
    do not mask lower-priority sources.
    """
    env = load_env() if env is None else env
    job = job or {}

    config = ExecutorConfig(
        base_url=env.get('ENGINE_URL', '').rstrip('/'),
        username=env.get('ENGINE_USERNAME') or None,
        password=env.get('ENGINE_PASSWORD') or None,
        verify_tls=parse_bool(env.get('ENGINE_VERIFY_TLS', False)),
        http_timeout=_number(env.get('ENGINE_HTTP_TIMEOUT', DEFAULT_HTTP_TIMEOUT), 'ENGINE_HTTP_TIMEOUT'),
        allow_empty_results=parse_bool(env.get('ALLOW_EMPTY_RESULTS', False)),
        poll_deadline=_number(env.get('POLL_DEADLINE_SECONDS', DEFAULT_POLL_DEADLINE_SECONDS),
                              'POLL_DEADLINE_SECONDS'),
        poll_interval=_number(env.get('POLL_INTERVAL_MS', DEFAULT_POLL_INTERVAL_MS), 'POLL_INTERVAL_MS') / 1000,
        report_dir=Path(env.get('REPORT_DIR', DEFAULT_REPORT_DIR)).expanduser(),
    )

    changes = {}
    if 'route_patterns' in job:
        changes['route_patterns'] = _patterns(job['route_patterns'])
    if 'filter_patterns' in job:
        changes['filter_patterns'] = _patterns(job['filter_patterns'])
    if 'allow_empty_results' in job:
        changes['allow_empty_results'] = parse_bool(job['allow_empty_results'])
    if 'poll_deadline_seconds' in job:
        changes['poll_deadline'] = _number(job['poll_deadline_seconds'], 'poll_deadline_seconds')
    if 'poll_interval_ms' in job:
        changes['poll_interval'] = _number(job['poll_interval_ms'], 'poll_interval_ms') / 1000
    if 'report_dir' in job:
        changes['report_dir'] = Path(job['report_dir']).expanduser()

    for key, value in overrides.items():
        if value is None:
            continue
        if key in ('route_patterns', 'filter_patterns'):
            value = _patterns(value)
        elif key == 'report_dir':
            value = Path(value).expanduser()
        elif key in ('poll_deadline', 'poll_interval', 'http_timeout'):
            value = _number(value, key)
        changes[key] = value

    return replace(config, **changes)
