"""Microsemi/Adaptec arcconf adapter."""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..errors import CommandError
from ..models import Battery, Disk, RaidArray
from ..parsing import parse_size_to_bytes, split_key_value, yes
from ..raid_roles import assign_role, format_raid_level
from .base import ToolAdapter

logger = logging.getLogger(__name__)

_CONTROLLER = re.compile(r'Controller\s+(\d+):')
_LOGICAL_DEVICE = re.compile(r'^Logical device number\s+(\d+)', re.IGNORECASE)
_PHYSICAL_DEVICE = re.compile(r'Device #(\d+)')
_SEGMENT = re.compile(r'^Group\s+\d+,\s*Segment\s+\d+\s*:\s*(.*)$', re.IGNORECASE)
_ENCLOSURE_SLOT = re.compile(r'Enclosure[:\s]*(\d+),\s*Slot[:\s]*(\d+)', re.IGNORECASE)
_CHANNEL_DEVICE = re.compile(r'(\d+),(\d+)')
_REPORTED_CHANNEL = re.compile(r'^Reported Channel,Device(?:\(T:L\))?\s*:\s*(.+)$', re.IGNORECASE)


def arcconf_status_value(state: str) -> int:
    lowered = (state or '').strip().lower()
    if lowered in ('optimal', 'ok'):
        return 1
    if lowered in ('degraded', 'rebuilding', 'initializing') or 'degraded' in lowered:
        return 2
    if lowered in ('failed', 'offline'):
        return 3
    return 0


def parse_controllers(output: str) -> List[str]:
    return _CONTROLLER.findall(output)


def parse_logical_devices(output: str, controller_id: str) -> Tuple[List[RaidArray], Dict[str, str]]:
    """
    Parse ``getconfig <c> ld``.

    Returns:
        Tuple of (arrays, membership) where membership maps an
        "enc:slot" key or a member serial to the owning array id
    """
    arrays: List[RaidArray] = []
    membership: Dict[str, str] = {}
    current: Optional[RaidArray] = None

    for raw_line in output.splitlines():
        line = raw_line.strip()
        match = _LOGICAL_DEVICE.match(line)
        if match:
            if current is not None:
                arrays.append(current)
            current = RaidArray(
                array_id=f"{controller_id}:{match.group(1)}",
                controller='arcconf',
                type='hardware',
            )
            continue
        if current is None:
            continue

        segment = _SEGMENT.match(line)
        if segment:
            current.num_drives += 1
            detail = segment.group(1)
            if 'present' in detail.lower():
                current.num_active_drives += 1
            elif 'missing' in detail.lower() or 'failed' in detail.lower():
                current.num_failed_drives += 1
            location = _ENCLOSURE_SLOT.search(detail)
            if location:
                membership[f"{location.group(1)}:{location.group(2)}"] = current.array_id
            tail = detail.split()
            if tail and re.match(r'^[A-Z0-9]{8,}$', tail[-1]):
                membership[tail[-1]] = current.array_id
            continue

        pair = split_key_value(line)
        if pair is None:
            continue
        key, value = pair
        key = key.lower()
        if key == 'raid level':
            current.raid_level = format_raid_level(value)
        elif key == 'status of logical device':
            current.state = value
            current.status = arcconf_status_value(value)
        elif key == 'size':
            current.size = parse_size_to_bytes(value)

    if current is not None:
        arrays.append(current)
    return arrays, membership


class _DeviceRecord:
    def __init__(self, controller_id: str, number: str):
        self.controller_id = controller_id
        self.number = number
        self.fields: Dict[str, str] = {}
        self.description = ""

    def feed(self, line: str) -> None:
        if line.lower().startswith('device is'):
            self.description = line.lower()
            return
        reported = _REPORTED_CHANNEL.match(line)
        if reported:
            self.fields['reported channel'] = reported.group(1)
            return
        pair = split_key_value(line)
        if pair is not None:
            key, value = pair
            self.fields.setdefault(key.lower(), value)

    def build(self) -> Optional[Disk]:
        if 'enclosure' in self.description or 'state' not in self.fields:
            return None
        fields = self.fields
        location = fields.get('reported location') or fields.get('location', '')
        enclosure_slot = _ENCLOSURE_SLOT.search(location)
        if enclosure_slot:
            device = f"raid-c{self.controller_id}-enc{enclosure_slot.group(1)}-slot{enclosure_slot.group(2)}"
        else:
            device = f"raid-c{self.controller_id}-dev{self.number}"

        interface = fields.get('interface') or fields.get('transfer speed', '')
        disk = Disk(
            device=device,
            model=fields.get('model', ''),
            vendor=fields.get('vendor', ''),
            serial=fields.get('serial number', ''),
            health=fields.get('state', ''),
            interface=interface.split()[0] if interface else '',
            location=location,
            type='raid',
        )
        size = fields.get('total size') or fields.get('size', '')
        disk.capacity = parse_size_to_bytes(size)
        temperature = re.search(r'(\d+)\s*C', fields.get('temperature', ''))
        if temperature:
            disk.temperature = float(temperature.group(1))
        if 's.m.a.r.t.' in fields:
            disk.smart_enabled = True
            disk.smart_healthy = not yes(fields['s.m.a.r.t.'])
        assign_role(disk)
        return disk

    @property
    def channel_device(self) -> Optional[Tuple[str, str]]:
        match = _CHANNEL_DEVICE.search(self.fields.get('reported channel', ''))
        return (match.group(1), match.group(2)) if match else None


def parse_physical_devices(output: str, controller_id: str) -> List[Tuple[Disk, Optional[Tuple[str, str]]]]:
    """
    Parse ``getconfig <c> pd``; a device record ends at a blank line.

    Returns:
        List of (disk, (channel, device)) pairs for SMART lookups
    """
    results = []
    record: Optional[_DeviceRecord] = None

    def flush() -> None:
        if record is None:
            return
        disk = record.build()
        if disk is not None:
            results.append((disk, record.channel_device))

    for raw_line in output.splitlines():
        line = raw_line.strip()
        match = _PHYSICAL_DEVICE.search(line)
        if match:
            flush()
            record = _DeviceRecord(controller_id, match.group(1))
            continue
        if record is None:
            continue
        if not line:
            flush()
            record = None
            continue
        record.feed(line)

    flush()
    return results


def apply_smart_details(disk: Disk, output: str) -> None:
    for raw_line in output.splitlines():
        pair = split_key_value(raw_line.strip())
        if pair is None:
            continue
        key, value = pair
        key = key.lower()
        if key == 'temperature':
            match = re.search(r'(\d+)\s*C', value)
            if match:
                disk.temperature = float(match.group(1))
        elif key.startswith('s.m.a.r.t.') and 'warnings' not in key:
            disk.smart_enabled = 'disabled' not in value.lower()
        elif key == 'state':
            lowered = value.lower()
            if 'online' in lowered or 'optimal' in lowered:
                disk.smart_healthy = True
                disk.health = 'OK'
            elif 'failed' in lowered or 'critical' in lowered:
                disk.smart_healthy = False
                disk.health = 'FAILED'


def parse_battery(output: str, controller_id: str) -> Optional[Battery]:
    """Parse the battery section of ``getconfig <c> ad``."""
    battery = Battery(adapter_id=controller_id, tool_name='Arcconf')
    in_section = False
    found = False

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if 'Battery Information' in line or 'Battery Unit' in line:
            in_section = True
            continue
        if not in_section:
            continue
        if line.endswith('Information'):
            break

        pair = split_key_value(line)
        if pair is None:
            continue
        key, value = pair
        key = key.lower()
        found = True

        if key == 'battery type':
            battery.battery_type = value
        elif 'voltage' in key:
            match = re.search(r'(\d+\.?\d*)\s*V', value)
            if match:
                battery.voltage = int(float(match.group(1)) * 1000)
        elif 'current' in key:
            match = re.search(r'(\d+\.?\d*)\s*A', value)
            if match:
                battery.current = int(float(match.group(1)) * 1000)
        elif 'temperature' in key and 'over' not in key:
            match = re.search(r'(\d+\.?\d*)\s*C', value)
            if match:
                battery.temperature = int(float(match.group(1)))
        elif key in ('status', 'state'):
            battery.state = value
        elif 'replacement required' in key:
            battery.replacement_required = yes(value)
        elif 'capacity low' in key:
            battery.remaining_capacity_low = yes(value)
        elif 'pack missing' in key:
            battery.pack_missing = yes(value)

    if not found:
        return None
    if not battery.battery_type:
        battery.battery_type = 'BBU'
    return battery


class ArcconfTool(ToolAdapter):
    """Reads logical and physical devices through arcconf."""

    TOOL_NAME = "arcconf"
    BINARIES = ('arcconf',)
    VERSION_ARGS = ('version',)

    def get_controllers(self) -> List[str]:
        try:
            output = self._run(['list'])
        except CommandError as e:
            logger.warning(f"Error getting arcconf controller list: {e}")
            return []
        return parse_controllers(output)

    def get_raid_arrays(self) -> List[RaidArray]:
        arrays = []
        for controller_id in self.get_controllers():
            controller_arrays, _ = self._logical_devices(controller_id)
            battery = self.get_battery_info(controller_id) if controller_arrays else None
            for array in controller_arrays:
                array.battery = battery
            arrays.extend(controller_arrays)
        return arrays

    def get_raid_disks(self) -> List[Disk]:
        disks = []
        for controller_id in self.get_controllers():
            _, membership = self._logical_devices(controller_id)
            try:
                output = self._run(['getconfig', controller_id, 'pd'])
            except CommandError as e:
                logger.warning(f"Error getting arcconf physical devices for controller {controller_id}: {e}")
                continue

            for disk, channel_device in parse_physical_devices(output, controller_id):
                location = _ENCLOSURE_SLOT.search(disk.location)
                key = f"{location.group(1)}:{location.group(2)}" if location else ""
                disk.raid_array_id = membership.get(key) or membership.get(disk.serial, "")
                if channel_device:
                    self._enrich_with_smart(disk, controller_id, channel_device)
                disks.append(disk)
        return disks

    def get_battery_info(self, adapter_id: str) -> Optional[Battery]:
        try:
            output = self._run(['getconfig', adapter_id, 'ad'])
        except CommandError as e:
            logger.info(f"No arcconf battery information for controller {adapter_id}: {e}")
            return None
        return parse_battery(output, adapter_id)

    def _logical_devices(self, controller_id: str) -> Tuple[List[RaidArray], Dict[str, str]]:
        try:
            output = self._run(['getconfig', controller_id, 'ld'])
        except CommandError as e:
            logger.warning(f"Error getting arcconf logical devices for controller {controller_id}: {e}")
            return [], {}
        return parse_logical_devices(output, controller_id)

    def _enrich_with_smart(self, disk: Disk, controller_id: str, channel_device: Tuple[str, str]) -> None:
        channel, device = channel_device
        try:
            output = self._run(['getconfig', controller_id, 'pd', channel, device])
        except CommandError as e:
            logger.debug(f"No arcconf SMART details for {disk.device}: {e}")
            return
        apply_smart_details(disk, output)
