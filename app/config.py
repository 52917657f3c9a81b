from __future__ import annotations

import argparse
import os
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from diskhealth import __version__
from diskhealth.device_filter import DEFAULT_IGNORE_PATTERNS
from diskhealth.errors import ConfigError

LOG_LEVELS = ('debug', 'info', 'warning', 'error', 'critical')
LOG_FORMATS = ('json', 'text')
SETTINGS = (
    'port', 'metrics_path', 'collect_interval', 'log_level',
    'log_format', 'target_disks', 'command_timeout',
)

_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|h|m|s)')
_DURATION_UNITS = {'ms': 0.001, 's': 1.0, 'm': 60.0, 'h': 3600.0}


def parse_duration(value: Any, default: float) -> float:
    """Seconds from ``30s``/``2m``/``1h30m``/``500ms`` or a bare number."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip().lower()
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            return default
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        return default
    return total


def parse_target_disks(value: Any) -> List[str]:
    if not value:
        return []
    items = value if isinstance(value, (list, tuple)) else str(value).split(',')
    return [str(item).strip() for item in items if str(item).strip()]


def load_yaml_config(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return {str(key).replace('-', '_'): value for key, value in data.items()}


class Config:
    # Exporter defaults
    PORT = 9100
    METRICS_PATH = '/metrics'
    COLLECT_INTERVAL = 30.0
    LOG_LEVEL = 'info'
    LOG_FORMAT = 'json'
    TARGET_DISKS: List[str] = []
    COMMAND_TIMEOUT = 30.0

    # Device prefixes never exported
    IGNORE_PATTERNS = list(DEFAULT_IGNORE_PATTERNS)

    def __init__(self, **overrides: Any):
        for key, value in overrides.items():
            setattr(self, key.upper(), value)

    def as_mapping(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in dir(self) if key.isupper()}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='disk-health-exporter',
        description='Prometheus exporter for disk, RAID array and controller battery health',
    )
    parser.add_argument('--port', type=int, help='HTTP port (env PORT, default 9100)')
    parser.add_argument('--metrics-path', help='Metrics endpoint path (env METRICS_PATH, default /metrics)')
    parser.add_argument('--collect-interval', help='Collection interval, e.g. 30s or 2m (env COLLECT_INTERVAL)')
    parser.add_argument('--log-level', help='debug, info, warning or error (env LOG_LEVEL)')
    parser.add_argument('--log-format', help='json or text (env LOG_FORMAT)')
    parser.add_argument('--target-disks', help='Comma separated device allowlist (env TARGET_DISKS)')
    parser.add_argument('--command-timeout', help='Timeout for each tool invocation (env COMMAND_TIMEOUT)')
    parser.add_argument('--config', help='YAML config file (env CONFIG_FILE)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def _layer(values: Dict[str, Any], source: Mapping[str, Any], keys: Mapping[str, str]) -> None:
    for source_key, key in keys.items():
        value = source.get(source_key)
        if value is not None and value != '':
            values[key] = value


def load_config(argv: Optional[Sequence[str]] = None,
                environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Resolve configuration from defaults, YAML file, environment and flags.

    Later layers win: flags over environment over the YAML file over
    defaults.

    Raises:
        ConfigError: For values the exporter cannot start with
    """
    environ = os.environ if environ is None else environ
    args = build_arg_parser().parse_args(argv)

    values: Dict[str, Any] = {}
    config_file = args.config or environ.get('CONFIG_FILE')
    if config_file:
        _layer(values, load_yaml_config(config_file), {key: key for key in SETTINGS})

    _layer(values, environ, {key.upper(): key for key in SETTINGS})
    _layer(values, vars(args), {key: key for key in SETTINGS})

    try:
        port = int(values.get('port', Config.PORT))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid port: {values.get('port')}") from e
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid port: {port}")

    metrics_path = str(values.get('metrics_path', Config.METRICS_PATH))
    if not metrics_path.startswith('/'):
        metrics_path = '/' + metrics_path

    interval = parse_duration(values.get('collect_interval'), Config.COLLECT_INTERVAL)
    if interval <= 0:
        raise ConfigError(f"Collect interval must be positive, got {values.get('collect_interval')}")

    timeout = parse_duration(values.get('command_timeout'), Config.COMMAND_TIMEOUT)
    if timeout <= 0:
        raise ConfigError(f"Command timeout must be positive, got {values.get('command_timeout')}")

    log_level = str(values.get('log_level', Config.LOG_LEVEL)).lower()
    if log_level == 'warn':
        log_level = 'warning'
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level: {log_level}")

    log_format = str(values.get('log_format', Config.LOG_FORMAT)).lower()
    if log_format not in LOG_FORMATS:
        raise ConfigError(f"Unknown log format: {log_format}")

    return Config(
        port=port,
        metrics_path=metrics_path,
        collect_interval=interval,
        log_level=log_level,
        log_format=log_format,
        target_disks=parse_target_disks(values.get('target_disks')),
        command_timeout=timeout,
    )
