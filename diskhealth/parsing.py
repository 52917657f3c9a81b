"""Helpers shared by the tool output parsers."""

import re
from typing import Optional

_SIZE_PATTERN = re.compile(r'^([0-9]*\.?[0-9]+)(.*)$')

_SIZE_UNITS = {
    '': 1,
    'B': 1,
    'K': 1024,
    'KB': 1024,
    'KIB': 1024,
    'M': 1024 ** 2,
    'MB': 1024 ** 2,
    'MIB': 1024 ** 2,
    'G': 1024 ** 3,
    'GB': 1024 ** 3,
    'GIB': 1024 ** 3,
    'T': 1024 ** 4,
    'TB': 1024 ** 4,
    'TIB': 1024 ** 4,
    'P': 1024 ** 5,
    'PB': 1024 ** 5,
    'PIB': 1024 ** 5,
}

_HEALTH_CRITICAL = ('CRITICAL', 'FAILED', 'OFFLINE', 'OFFLN', 'UNCONFIGURED(BAD)', 'UBAD')
_HEALTH_WARNING = ('WARNING', 'CAUTION', 'REBUILD', 'RBLD', 'DEGRADED', 'SPUN DOWN')
_HEALTH_OK = (
    'OK', 'PASSED', 'ONLINE', 'ONLN', 'OPTIMAL', 'SPUN UP', 'SPARE',
    'GHS', 'DHS', 'UNCONFIGURED(GOOD)', 'UGOOD',
)


def parse_size_to_bytes(size_str: str) -> int:
    """
    Convert a human readable size such as ``"113.795 TB"`` to bytes.

    Units are binary (1 KB = 1024 B). A number followed by an unknown unit
    is returned as-is; anything unparsable yields 0.

    Args:
        size_str: Size string from tool output

    Returns:
        Size in bytes
    """
    if not size_str:
        return 0

    cleaned = size_str.replace(' ', '').upper()
    match = _SIZE_PATTERN.match(cleaned)
    if not match:
        return 0

    try:
        value = float(match.group(1))
    except ValueError:
        return 0

    multiplier = _SIZE_UNITS.get(match.group(2))
    if multiplier is None:
        return int(value)
    return int(value * multiplier)


def health_status_value(health: str) -> int:
    """Map a disk health string to 0 unknown, 1 ok, 2 warning or 3 critical."""
    upper = (health or '').strip().upper()
    if not upper:
        return 0
    # "UNCONFIGURED(BAD)" must win over the "OK"-ish markers below
    if any(marker in upper for marker in _HEALTH_CRITICAL):
        return 3
    if any(marker in upper for marker in _HEALTH_OK):
        return 1
    if any(marker in upper for marker in _HEALTH_WARNING):
        return 2
    return 0


def raid_status_value(state: str) -> int:
    """Map a controller array state to 0 unknown, 1 ok, 2 degraded or 3 failed."""
    upper = (state or '').strip().upper()
    if any(marker in upper for marker in ('FAILED', 'FAIL', 'OFFLINE', 'OFLN')):
        return 3
    if any(marker in upper for marker in ('DEGRADED', 'DGRD', 'REBUILDING', 'PARTIALLY', 'PDGD')):
        return 2
    if any(marker in upper for marker in ('OPTIMAL', 'OPTL', 'OK')):
        return 1
    return 0


def software_raid_status_value(state: str) -> int:
    """Status of an md array from its /proc/mdstat state."""
    lower = (state or '').lower()
    if 'failed' in lower or 'inactive' in lower:
        return 3
    if 'degraded' in lower or 'recovering' in lower or 'resyncing' in lower:
        return 2
    if 'clean' in lower or 'active' in lower:
        return 1
    return 0


def zfs_status_value(health: str) -> int:
    """Status of a ZFS pool from ``zpool list`` health."""
    lower = (health or '').strip().lower()
    if lower == 'online':
        return 1
    if lower == 'degraded':
        return 2
    if lower in ('faulted', 'offline', 'unavail', 'removed'):
        return 3
    return 0


def battery_status_value(state: str) -> int:
    lower = (state or '').lower()
    if any(marker in lower for marker in ('critical', 'failed', 'missing')):
        return 3
    if any(marker in lower for marker in ('discharging', 'warning', 'low')):
        return 2
    if 'optimal' in lower or 'charging' in lower:
        return 1
    return 0


def split_key_value(line: str, separator: str = ':') -> Optional[tuple]:
    """Split ``key : value`` into a stripped pair, or None when there is no separator."""
    if separator not in line:
        return None
    key, value = line.split(separator, 1)
    return key.strip(), value.strip()


def extract_int(text: str, pattern: str) -> int:
    """First integer captured by ``pattern`` in ``text``, or 0."""
    match = re.search(pattern, text or '')
    if not match:
        return 0
    try:
        return int(match.group(1))
    except (ValueError, IndexError):
        return 0


def to_int(value, default: int = 0) -> int:
    """Lenient int conversion for JSON and table fields."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip().replace(',', '')
    match = re.match(r'^-?\d+', text)
    if not match:
        return default
    return int(match.group(0))


def yes(value: str) -> bool:
    return (value or '').strip().lower() in ('yes', 'true', 'on', '1')
