"""smartctl adapter: SMART data for directly attached disks."""

import json
import logging
import re
from typing import Dict, List, Optional

from ..errors import CommandError
from ..models import Disk
from ..parsing import split_key_value, to_int
from .base import ToolAdapter

logger = logging.getLogger(__name__)

SCAN_MARKERS = ('sd', 'nvme', 'hd', 'vd')

# ATA attribute ids
ATTR_REALLOCATED = 5
ATTR_REALLOCATION_EVENTS = 196
ATTR_PENDING = 197
ATTR_UNCORRECTABLE = 198
ATTR_SSD_LIFE_LEFT = 231
ATTR_MEDIA_WEAROUT = 233
ATTR_LBAS_WRITTEN = 241
ATTR_LBAS_READ = 242


def parse_scan(output: str) -> List[str]:
    """Device paths from ``smartctl --scan`` worth querying."""
    devices = []
    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        device = fields[0]
        if any(marker in device for marker in SCAN_MARKERS):
            devices.append(device)
    return devices


def _nvme_metrics(disk: Disk, log: Dict) -> None:
    disk.percentage_used = to_int(log.get('percentage_used'))
    disk.available_spare = to_int(log.get('available_spare'))
    disk.critical_warning = to_int(log.get('critical_warning'))
    disk.media_errors = to_int(log.get('media_errors'))
    disk.error_log_entries = to_int(log.get('num_err_log_entries'))
    disk.data_units_written = to_int(log.get('data_units_written'))
    disk.data_units_read = to_int(log.get('data_units_read'))
    disk.power_on_hours = to_int(log.get('power_on_hours'), disk.power_on_hours)
    disk.power_cycles = to_int(log.get('power_cycles'), disk.power_cycles)

    sensors = log.get('temperature_sensors') or []
    sensor1 = to_int(sensors[0]) if len(sensors) > 0 else 0
    sensor2 = to_int(sensors[1]) if len(sensors) > 1 else 0
    if sensor1 > 0:
        disk.temperature_max = float(sensor1)
    if 0 < sensor2 < disk.temperature_max:
        disk.temperature_min = float(sensor2)


def _ata_metrics(disk: Disk, data: Dict) -> None:
    table = (data.get('ata_smart_attributes') or {}).get('table') or []
    for attr in table:
        attr_id = attr.get('id')
        raw = to_int((attr.get('raw') or {}).get('value'))
        if attr_id == ATTR_REALLOCATED:
            disk.reallocated_sectors = raw
        elif attr_id == ATTR_REALLOCATION_EVENTS:
            if disk.reallocated_sectors == 0:
                disk.reallocated_sectors = raw
        elif attr_id == ATTR_PENDING:
            disk.pending_sectors = raw
        elif attr_id == ATTR_UNCORRECTABLE:
            disk.uncorrectable_errors = raw
        elif attr_id in (ATTR_SSD_LIFE_LEFT, ATTR_MEDIA_WEAROUT):
            disk.wear_leveling = 100 - to_int(attr.get('value'))
        elif attr_id == ATTR_LBAS_WRITTEN:
            disk.data_units_written = raw
        elif attr_id == ATTR_LBAS_READ:
            disk.data_units_read = raw

    summary = (data.get('ata_smart_error_log') or {}).get('summary') or {}
    disk.error_log_entries = to_int(summary.get('count'))


def parse_smart_json(device: str, data: Dict) -> Disk:
    """
    Build a Disk from the JSON document of ``smartctl -a -j``.

    Args:
        device: Device path the document was read from
        data: Decoded JSON

    Returns:
        Disk populated with identity, SMART status and counters
    """
    family = (data.get('model_family') or '').split()
    disk = Disk(
        device=device,
        serial=data.get('serial_number', ''),
        model=data.get('model_name', ''),
        vendor=family[0] if family else '',
        interface=(data.get('device') or {}).get('protocol', ''),
        capacity=to_int((data.get('user_capacity') or {}).get('bytes')),
        form_factor=(data.get('form_factor') or {}).get('name', ''),
        rpm=to_int(data.get('rotation_rate')),
        type='regular',
    )

    passed = bool((data.get('smart_status') or {}).get('passed', False))
    disk.smart_enabled = bool((data.get('smart_support') or {}).get('enabled', False))
    disk.smart_healthy = passed
    disk.health = 'OK' if passed else 'FAILED'

    disk.temperature = float(to_int((data.get('temperature') or {}).get('current')))
    disk.power_on_hours = to_int((data.get('power_on_time') or {}).get('hours'))
    disk.power_cycles = to_int(data.get('power_cycle_count'))

    if 'nvme' in disk.interface.lower():
        _nvme_metrics(disk, data.get('nvme_smart_health_information_log') or {})
    else:
        _ata_metrics(disk, data)
    return disk


def parse_smart_text(device: str, output: str) -> Disk:
    """Parse the plain ``smartctl -a`` report where JSON output is unavailable."""
    disk = Disk(device=device, type='regular')

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith('Model Family:'):
            disk.vendor = split_key_value(line)[1]
        elif line.startswith(('Device Model:', 'Model Number:')):
            disk.model = split_key_value(line)[1]
        elif line.startswith('Serial Number:'):
            disk.serial = split_key_value(line)[1]
        elif line.startswith('User Capacity:'):
            match = re.search(r'([\d,]+)\s+bytes', line)
            if match:
                disk.capacity = int(match.group(1).replace(',', ''))
        elif line.startswith('Rotation Rate:'):
            value = split_key_value(line)[1]
            disk.rpm = 0 if 'Solid State' in value else to_int(value)
        elif 'SMART overall-health' in line:
            disk.smart_enabled = True
            disk.smart_healthy = 'PASSED' in line
            disk.health = 'OK' if disk.smart_healthy else 'FAILED'
        elif 'Current Temperature:' in line or 'Temperature_Celsius' in line:
            for token in line.split():
                try:
                    value = float(token)
                except ValueError:
                    continue
                if 0 < value < 100:
                    disk.temperature = value
                    break
        elif 'Power_On_Hours' in line:
            fields = line.split()
            if len(fields) >= 10:
                disk.power_on_hours = to_int(fields[9])

    return disk


class SmartctlTool(ToolAdapter):
    """Queries every scanned device with smartctl."""

    TOOL_NAME = "smartctl"
    BINARIES = ('smartctl',)

    def get_disks(self) -> List[Disk]:
        try:
            output = self._run(['--scan'])
        except CommandError as e:
            logger.warning(f"Error scanning for devices with smartctl: {e}")
            return []

        disks = []
        for device in parse_scan(output):
            disk = self.get_smart_info(device)
            if disk is not None:
                disks.append(disk)
        logger.info(f"Found {len(disks)} disks using smartctl")
        return disks

    def get_smart_info(self, device: str, device_type: str = 'auto') -> Optional[Disk]:
        args = ['-a', '-j', device] if device_type == 'auto' else ['-d', device_type, '-a', '-j', device]
        try:
            output = self._run(args)
        except CommandError as e:
            logger.warning(f"Error getting smartctl info for {device} ({device_type}): {e}")
            return None

        try:
            data = json.loads(output)
        except ValueError as e:
            logger.warning(f"Error parsing smartctl JSON for {device}: {e}")
            return None
        return parse_smart_json(device, data)

    def get_smart_text(self, device: str) -> Optional[Disk]:
        """Text-mode report, tried with ``-d auto`` first."""
        for args in (['-a', '-d', 'auto', device], ['-a', device]):
            try:
                return parse_smart_text(device, self._run(args))
            except CommandError as e:
                logger.debug(f"smartctl {' '.join(args)} failed: {e}")
        logger.warning(f"smartctl failed for {device}")
        return None
