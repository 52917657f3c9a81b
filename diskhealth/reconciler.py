"""
Reconciliation of per-tool disk reports.

Several tools often describe the same physical disk. Reports sharing a
device identifier are merged field by field, then reports of the same
serial/model within one device class are deduplicated. Neither step ever
replaces a populated field with an empty one.
"""

import dataclasses
import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from .models import Disk, RaidArray, RaidRole
from .parsing import health_status_value

logger = logging.getLogger(__name__)

MIN_SERIAL_LENGTH = 8


def is_empty(value) -> bool:
    """Zero values never overwrite anything."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, RaidRole):
        return value == RaidRole.UNKNOWN
    return False


def _non_empty(existing, new):
    return existing if is_empty(new) else new


def _any(existing, new):
    return bool(existing) or bool(new)


def _max(existing, new):
    return max(existing, new)


def _min_positive(existing, new):
    candidates = [value for value in (existing, new) if value > 0]
    return min(candidates) if candidates else existing


# Combinators take (existing, new) and return the merged value
NON_EMPTY = _non_empty
ANY = _any
MAX = _max
MIN_POSITIVE = _min_positive


def is_smart_source(disk: Disk) -> bool:
    """A record whose health boolean comes from smartctl itself."""
    return disk.smart_enabled and (disk.type == 'regular' or 'smart' in disk.type)


def _trusted_raid_ok(disk: Disk) -> bool:
    return 'raid' in disk.type and disk.health == 'OK'


def smart_healthy_of(existing: Disk, new: Disk) -> bool:
    """
    Resolve the SMART health boolean of two reports of one device.

    A SMART-capable record wins outright, the newer one first. A RAID
    controller's explicit OK counts only when neither side has SMART data.
    """
    if is_smart_source(new):
        return new.smart_healthy
    if is_smart_source(existing):
        return existing.smart_healthy
    if _trusted_raid_ok(new) or _trusted_raid_ok(existing):
        return True
    return existing.smart_healthy or new.smart_healthy


def health_of(existing: Disk, new: Disk) -> str:
    """
    Resolve the health string of two reports of one device.

    When exactly one side is a SMART source its verdict stands against a
    pool or controller view, unless that view is worse.
    """
    smart_sides = [disk for disk in (existing, new) if is_smart_source(disk) and disk.health]
    if len(smart_sides) != 1:
        return _non_empty(existing.health, new.health)
    smart = smart_sides[0]
    other = new if smart is existing else existing
    if health_status_value(other.health) > health_status_value(smart.health):
        return other.health
    return smart.health


# Record-level combinators: receive both disks, not field values
SMART_PREFERRED = smart_healthy_of
SMART_HEALTH = health_of
RECORD_COMBINATORS = (SMART_PREFERRED, SMART_HEALTH)

FIELD_POLICY: Tuple[Tuple[str, Callable], ...] = (
    ('serial', NON_EMPTY),
    ('model', NON_EMPTY),
    ('vendor', NON_EMPTY),
    ('interface', NON_EMPTY),
    ('form_factor', NON_EMPTY),
    ('rpm', NON_EMPTY),
    ('capacity', NON_EMPTY),
    ('type', NON_EMPTY),
    ('location', NON_EMPTY),
    ('mountpoint', NON_EMPTY),
    ('filesystem', NON_EMPTY),
    ('used_bytes', NON_EMPTY),
    ('available_bytes', NON_EMPTY),
    ('usage_percentage', NON_EMPTY),
    ('health', SMART_HEALTH),
    ('temperature', NON_EMPTY),
    ('temperature_max', MAX),
    ('temperature_min', MIN_POSITIVE),
    ('power_on_hours', NON_EMPTY),
    ('power_cycles', NON_EMPTY),
    ('reallocated_sectors', NON_EMPTY),
    ('pending_sectors', NON_EMPTY),
    ('uncorrectable_errors', NON_EMPTY),
    ('data_units_written', NON_EMPTY),
    ('data_units_read', NON_EMPTY),
    ('wear_leveling', NON_EMPTY),
    ('percentage_used', NON_EMPTY),
    ('available_spare', NON_EMPTY),
    ('critical_warning', NON_EMPTY),
    ('media_errors', NON_EMPTY),
    ('error_log_entries', NON_EMPTY),
    ('smart_enabled', ANY),
    ('smart_healthy', SMART_PREFERRED),
    ('raid_array_id', NON_EMPTY),
    ('raid_position', NON_EMPTY),
    ('raid_role', NON_EMPTY),
    ('is_commissioned_spare', ANY),
    ('is_emergency_spare', ANY),
    ('is_global_spare', ANY),
    ('is_dedicated_spare', ANY),
)


def merge_disks(existing: Disk, new: Disk) -> Disk:
    """Merge ``new`` into ``existing``; populated values in ``new`` win conflicts."""
    changes = {}
    for name, combine in FIELD_POLICY:
        if combine in RECORD_COMBINATORS:
            changes[name] = combine(existing, new)
        else:
            changes[name] = combine(getattr(existing, name), getattr(new, name))
    return dataclasses.replace(existing, **changes)


def merge_disk_lists(disk_lists: Iterable[Sequence[Disk]]) -> List[Disk]:
    """
    Merge per-tool lists into one list keyed by device identifier.

    Lists are applied in the order given, so a later tool wins conflicting
    populated fields. Output keeps first-seen device order.
    """
    by_device: Dict[str, Disk] = OrderedDict()
    for disks in disk_lists:
        for disk in disks:
            current = by_device.get(disk.device)
            by_device[disk.device] = disk if current is None else merge_disks(current, disk)
    return list(by_device.values())


def device_class(disk: Disk) -> str:
    """Coarse identifier convention, the scope of deduplication."""
    if disk.device.startswith('/dev/'):
        if 'PERC' in disk.model or 'RAID' in disk.model:
            return 'raid_virtual'
        return 'block_device'
    if disk.device.startswith('raid-'):
        return 'raid_physical'
    return 'other'


def completeness_score(disk: Disk) -> int:
    score = 0
    if disk.device.startswith('/dev/'):
        score += 100
    elif disk.device.startswith('raid-'):
        score += 50
    if disk.model:
        score += 10
    if disk.serial:
        score += 10
    if disk.temperature > 0:
        score += 5
    if disk.capacity > 0:
        score += 5
    if disk.power_on_hours > 0:
        score += 5
    if disk.smart_enabled:
        score += 10
    if disk.interface:
        score += 5
    if disk.health:
        score += 5
    return score


def fill_missing(target: Disk, source: Disk) -> Disk:
    """Copy into ``target`` only what it lacks; flags are OR-ed."""
    changes = {}
    for name, _ in FIELD_POLICY:
        current = getattr(target, name)
        other = getattr(source, name)
        if isinstance(current, bool):
            changes[name] = current or other
        elif is_empty(current) and not is_empty(other):
            changes[name] = other
    return dataclasses.replace(target, **changes)


def _best_of(group: List[Disk]) -> Disk:
    best = group[0]
    best_score = completeness_score(best)
    for candidate in group[1:]:
        score = completeness_score(candidate)
        if score > best_score:
            best = fill_missing(candidate, best)
            best_score = score
        else:
            best = fill_missing(best, candidate)
    return best


def deduplicate(disks: List[Disk]) -> List[Disk]:
    """
    Collapse reports of one physical disk seen under two device names.

    Only disks with a serial of at least eight characters are grouped, by
    (serial, model, device class). Everything else passes through.
    """
    groups: Dict[Tuple[str, str, str], List[Disk]] = OrderedDict()
    order: List[object] = []

    for disk in disks:
        if len(disk.serial) < MIN_SERIAL_LENGTH:
            order.append(disk)
            continue
        key = (disk.serial, disk.model, device_class(disk))
        if key not in groups:
            groups[key] = []
            order.append(key)
        groups[key].append(disk)

    result = []
    for entry in order:
        if isinstance(entry, Disk):
            result.append(entry)
            continue
        group = groups[entry]
        if len(group) > 1:
            logger.debug(f"Deduplicating {[d.device for d in group]} (serial {entry[0]})")
        result.append(_best_of(group))
    return result


def reconcile(disk_lists: Iterable[Sequence[Disk]]) -> List[Disk]:
    """Merge by device, then deduplicate across naming conventions."""
    merged = merge_disk_lists(disk_lists)
    result = deduplicate(merged)
    if len(result) != len(merged):
        logger.info(f"Reconciled {len(merged)} device records into {len(result)} disks")
    return result


def backfill_array_counts(arrays: List[RaidArray], disks: Iterable[Disk]) -> None:
    """Raise spare/failed counts to what the member disks show when a tool under-reports."""
    spares: Dict[str, int] = {}
    failed: Dict[str, int] = {}
    for disk in disks:
        if not disk.raid_array_id:
            continue
        if disk.is_spare:
            spares[disk.raid_array_id] = spares.get(disk.raid_array_id, 0) + 1
        elif disk.raid_role == RaidRole.FAILED:
            failed[disk.raid_array_id] = failed.get(disk.raid_array_id, 0) + 1

    for array in arrays:
        # StorCLI disks carry the disk group of a "DG/VD" array id
        keys = (array.array_id, array.array_id.split('/')[0])
        key = next((k for k in keys if k in spares or k in failed), array.array_id)
        array.num_spare_drives = max(array.num_spare_drives, spares.get(key, 0))
        array.num_failed_drives = max(array.num_failed_drives, failed.get(key, 0))
