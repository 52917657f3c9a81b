"""RAID role classification and per-disk capacity utilization."""

import logging
import re
from typing import Dict, Iterable, List, Optional

from .models import Disk, RaidArray, RaidRole

logger = logging.getLogger(__name__)

# StorCLI abbreviates drive states into single tokens
_SPARE_TOKENS = {'ghs', 'dhs'}
_REBUILD_TOKENS = {'rbld'}
_ACTIVE_TOKENS = {'onln'}
_FAILED_TOKENS = {'offln'}
_UNCONFIGURED_TOKENS = {'ugood', 'ubad', 'ugunsp', 'ubunsp', 'jbod'}

_SPARE_LABELS = {
    RaidRole.HOT_SPARE: 'Hot-Spare',
    RaidRole.COMMISSIONED_SPARE: 'Commissioned-Spare',
    RaidRole.EMERGENCY_SPARE: 'Emergency-Spare',
}

_LEVEL_PATTERN = re.compile(r'^(?:RAID)?[\s-]*(\d+(?:\+\d+)?)$')


def classify_role(health: str) -> RaidRole:
    """
    Classify a drive state string into a RAID role.

    Precedence: spare markers, rebuild, online/optimal, failed/offline,
    unconfigured, otherwise unknown.
    """
    text = (health or '').strip().lower()
    if not text:
        return RaidRole.UNKNOWN
    tokens = set(re.split(r'[^a-z0-9]+', text))

    if 'commissioned' in text:
        return RaidRole.COMMISSIONED_SPARE
    if 'emergency' in text:
        return RaidRole.EMERGENCY_SPARE
    if 'spare' in text or tokens & _SPARE_TOKENS:
        return RaidRole.HOT_SPARE
    if 'rebuild' in text or tokens & _REBUILD_TOKENS:
        return RaidRole.REBUILDING
    if 'online' in text or 'optimal' in text or tokens & _ACTIVE_TOKENS:
        return RaidRole.ACTIVE
    if 'failed' in text or 'offline' in text or tokens & _FAILED_TOKENS:
        return RaidRole.FAILED
    if 'unconfigured' in text or tokens & _UNCONFIGURED_TOKENS:
        return RaidRole.UNCONFIGURED
    return RaidRole.UNKNOWN


def assign_role(disk: Disk, health: Optional[str] = None) -> RaidRole:
    """Set ``disk.raid_role`` from a raw state string and derive spare flags."""
    raw = disk.health if health is None else health
    role = classify_role(raw)
    disk.raid_role = role
    lowered = (raw or '').lower()
    if role == RaidRole.COMMISSIONED_SPARE:
        disk.is_commissioned_spare = True
    elif role == RaidRole.EMERGENCY_SPARE:
        disk.is_emergency_spare = True
    elif role == RaidRole.HOT_SPARE:
        if 'dhs' in lowered or 'dedicated' in lowered:
            disk.is_dedicated_spare = True
        elif 'global' in lowered or 'ghs' in lowered:
            disk.is_global_spare = True
    return role


def normalize_level(level: str) -> Optional[str]:
    """Reduce a RAID level string to its numeric form ("5", "10", ...)."""
    text = (level or '').strip().upper()
    match = _LEVEL_PATTERN.match(text)
    if not match:
        return None
    number = match.group(1)
    return {'1+0': '10', '5+0': '50', '6+0': '60'}.get(number, number)


def _set_usage(disk: Disk, used: int, available: int, percentage: float,
               mountpoint: str, filesystem: str) -> None:
    disk.used_bytes = used
    disk.available_bytes = available
    disk.usage_percentage = percentage
    disk.mountpoint = mountpoint
    disk.filesystem = filesystem


def calculate_utilization(disk: Disk, array: Optional[RaidArray]) -> None:
    """
    Fill the disk's usage fields from its role and owning array.

    Disks with unknown capacity are left untouched. Active members need the
    array's size and member count; without them nothing is estimated.
    """
    capacity = disk.capacity
    if capacity <= 0:
        return

    role = disk.raid_role
    if disk.is_spare:
        label = _SPARE_LABELS.get(role, 'Hot-Spare')
        _set_usage(disk, 0, capacity, 0.0, 'SPARE', label)
        return

    if role == RaidRole.FAILED:
        _set_usage(disk, 0, 0, 0.0, 'FAILED', 'Failed-Drive')
        return

    if role == RaidRole.REBUILDING:
        used = capacity // 2
        _set_usage(disk, used, capacity - used, 50.0, 'REBUILDING', 'Rebuilding-Drive')
        return

    if role == RaidRole.UNCONFIGURED:
        mountpoint = 'JBOD' if 'jbod' in disk.health.lower() else 'UNCONFIGURED'
        filesystem = 'JBOD' if mountpoint == 'JBOD' else 'Unconfigured'
        _set_usage(disk, 0, capacity, 0.0, mountpoint, filesystem)
        return

    if role != RaidRole.ACTIVE:
        return

    if array is None or array.size <= 0 or array.num_drives <= 0:
        return

    members = array.num_drives
    level = normalize_level(array.raid_level)
    if level == '0':
        used = array.size // members
        percentage = 100.0
    elif level in ('1', '10'):
        used = capacity // 2
        percentage = 50.0
    elif level == '5' and members > 1:
        used = array.size // (members - 1)
        percentage = (members - 1) * 100.0 / members
    elif level == '6' and members > 2:
        used = array.size // (members - 2)
        percentage = (members - 2) * 100.0 / members
    else:
        used = capacity
        percentage = 100.0

    used = min(used, capacity)
    _set_usage(disk, used, max(0, capacity - used), percentage,
               f"RAID-{array.array_id}", f"{array.raid_level}-Array")


def find_array(arrays: Dict[str, RaidArray], array_id: str) -> Optional[RaidArray]:
    """Look up an array by id, accepting a disk group id for "DG/VD" arrays."""
    if not array_id:
        return None
    if array_id in arrays:
        return arrays[array_id]
    prefix = f"{array_id}/"
    for key, array in arrays.items():
        if key.startswith(prefix):
            return array
    return None


def is_raid_member(disk: Disk) -> bool:
    return (disk.raid_role is not None or disk.type == 'raid'
            or bool(disk.raid_array_id) or disk.is_spare)


def apply_raid_model(disks: Iterable[Disk], arrays: List[RaidArray]) -> None:
    """Classify unclassified RAID disks and compute their utilization in place."""
    by_id: Dict[str, RaidArray] = {}
    for array in arrays:
        by_id.setdefault(array.array_id, array)

    for disk in disks:
        if not is_raid_member(disk):
            continue
        if disk.raid_role is None:
            role = assign_role(disk)
            logger.debug(f"Classified {disk.device} as {role.value} from state '{disk.health}'")
        calculate_utilization(disk, find_array(by_id, disk.raid_array_id))


def format_raid_level(level: str) -> str:
    """Render "raid5", "RAID-5" or "1+0" as "RAID 5" / "RAID 10"; other levels pass through."""
    number = normalize_level(level)
    if number is None:
        return (level or '').strip()
    return f"RAID {number}"
