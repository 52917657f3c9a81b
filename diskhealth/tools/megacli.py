"""LSI/Broadcom MegaCLI adapter."""

import logging
import re
from typing import Callable, Dict, List, Optional

from ..errors import CommandError
from ..models import Battery, Disk, RaidArray, RaidRole, RaidStatus
from ..parsing import extract_int, parse_size_to_bytes, raid_status_value, split_key_value, yes
from ..raid_roles import assign_role
from .base import ToolAdapter

logger = logging.getLogger(__name__)

_ADAPTER_HEADER = re.compile(r'Adapter\s*#?\s*(\d+)')
_VIRTUAL_DRIVE = re.compile(r'Virtual Drive:\s*(\d+)')
_PRIMARY_LEVEL = re.compile(r'Primary-(\d+)')
_TEMPERATURE = re.compile(r'(\d+)\s*C')
_ARM = re.compile(r'Arm:\s*(\d+)')

# Drive states that mean the disk is outside any logical drive
_UNASSIGNED_STATES = ('hotspare', 'spare', 'unconfigured', 'jbod', 'failed')


def extract_model_from_inquiry(inquiry: str) -> str:
    """
    Pick the model number out of a MegaCLI ``Inquiry Data`` value.

    Vendor-model pairs glued with a dash keep only the model part;
    otherwise the second field wins when it looks like a part number.
    """
    fields = inquiry.split()
    if not fields:
        return ""
    if '-' in fields[0]:
        parts = fields[0].split('-')
        return parts[1].strip() if len(parts) >= 2 else fields[0]
    if len(fields) >= 2:
        candidate = fields[1]
        if len(candidate) >= 3 and (any(c.isdigit() for c in candidate) or len(candidate) > 5):
            return candidate
    return fields[0]


def normalize_megacli_level(value: str) -> str:
    match = _PRIMARY_LEVEL.search(value)
    if match:
        return f"RAID {match.group(1)}"
    return value


class _PhysicalDiskRecord:
    """Accumulates the key/value lines describing one physical drive."""

    def __init__(self, adapter: str):
        self.adapter = adapter
        self.enclosure = ""
        self.slot = ""
        self.device_id = ""
        self.fields: Dict[str, str] = {}
        self.hotspare_section = False
        self.spare_type = ""

    def feed(self, line: str) -> None:
        if 'Hotspare Information' in line:
            self.hotspare_section = True
            return
        pair = split_key_value(line)
        if pair is None:
            return
        key, value = pair
        if key == 'Enclosure Device ID':
            self.enclosure = value
        elif key == 'Slot Number':
            self.slot = value
        elif key == 'Device Id':
            self.device_id = value
        elif key == 'Type' and self.hotspare_section:
            self.spare_type = value
        elif key == "Drive's position":
            self.fields['position'] = value
        else:
            self.fields[key] = value

    @property
    def has_state(self) -> bool:
        return 'Firmware state' in self.fields

    def build(self) -> Optional[Disk]:
        if not (self.enclosure and self.slot and self.device_id):
            return None

        fields = self.fields
        disk = Disk(
            device=f"raid-c{self.adapter}-enc{self.enclosure}-slot{self.slot}",
            serial=fields.get('WWN', ''),
            model=extract_model_from_inquiry(fields.get('Inquiry Data', '')),
            interface=fields.get('PD Type', ''),
            health=fields.get('Firmware state', ''),
            type='raid',
            location=f"Enc:{self.enclosure} Slot:{self.slot}",
        )
        size = fields.get('Coerced Size', '')
        disk.capacity = parse_size_to_bytes(size.split('[', 1)[0].strip())
        temperature = _TEMPERATURE.search(fields.get('Drive Temperature', ''))
        if temperature:
            disk.temperature = float(temperature.group(1))
        disk.media_errors = extract_int(fields.get('Media Error Count', ''), r'(\d+)')
        disk.raid_position = extract_int(fields.get('position', ''), _ARM.pattern)

        assign_role(disk)
        if self.hotspare_section and disk.raid_role != RaidRole.HOT_SPARE:
            disk.raid_role = RaidRole.HOT_SPARE
        if disk.raid_role == RaidRole.HOT_SPARE:
            spare_type = self.spare_type.lower()
            if 'dedicated' in spare_type:
                disk.is_dedicated_spare = True
            elif self.hotspare_section or 'global' in spare_type or 'global' in disk.health.lower():
                disk.is_global_spare = True
        if yes(fields.get('Commissioned Spare', '')):
            disk.is_commissioned_spare = True
        if yes(fields.get('Emergency Spare', '')):
            disk.is_emergency_spare = True
        return disk


def parse_ld_info(output: str,
                  battery_lookup: Optional[Callable[[str], Optional[Battery]]] = None) -> List[RaidArray]:
    """
    Parse ``-LDInfo -Lall -aALL`` output.

    An array is emitted once its ``State`` has been read and the next
    virtual drive, the next adapter or the end of output is reached.
    """
    arrays: List[RaidArray] = []
    batteries: Dict[str, Optional[Battery]] = {}
    adapter_id = ""
    current: Optional[RaidArray] = None
    current_adapter = ""

    def flush() -> None:
        if current is None or not current.state:
            return
        current.type = 'hardware'
        current.controller = 'MegaCLI'
        if current_adapter and battery_lookup is not None:
            if current_adapter not in batteries:
                batteries[current_adapter] = battery_lookup(current_adapter)
            current.battery = batteries[current_adapter]
        arrays.append(current)

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        header = re.match(r'Adapter\s+(\d+)\s+--', line)
        if header:
            flush()
            current = None
            adapter_id = header.group(1)
            continue

        match = _VIRTUAL_DRIVE.search(line)
        if match:
            flush()
            current = RaidArray(array_id=match.group(1))
            current_adapter = adapter_id
            continue

        if current is None:
            continue
        pair = split_key_value(line)
        if pair is None:
            continue
        key, value = pair

        if key == 'RAID Level':
            current.raid_level = normalize_megacli_level(value)
        elif key == 'Size':
            current.size = parse_size_to_bytes(value)
        elif key == 'Number Of Drives':
            drives = extract_int(value, r'^(\d+)$')
            if drives > 0:
                current.num_drives = drives
        elif key == 'State':
            current.state = value
            current.status = raid_status_value(value)

    flush()
    return arrays


def parse_pd_list(output: str) -> List[Disk]:
    """
    Parse ``-PDList -aALL`` output into one Disk per physical drive.

    A drive is complete once its ``Firmware state`` has been read and the
    next drive (or the end of output) begins.
    """
    disks: List[Disk] = []
    adapter = "0"
    record: Optional[_PhysicalDiskRecord] = None

    def flush() -> None:
        if record is not None and record.has_state:
            disk = record.build()
            if disk is not None:
                disks.append(disk)

    for raw_line in output.splitlines():
        line = raw_line.strip()
        header = re.match(r'^Adapter\s*#\s*(\d+)', line)
        if header:
            flush()
            record = None
            adapter = header.group(1)
            continue
        if line.startswith('Enclosure Device ID'):
            flush()
            record = _PhysicalDiskRecord(adapter)
        if record is not None and line:
            record.feed(line)

    flush()
    return disks


def parse_ld_pd_info(output: str, target_arrays: Optional[set] = None) -> List[Disk]:
    """
    Parse ``-LdPdInfo -aALL`` output into array member disks.

    Members are emitted when the next ``PD: n Information`` header, the next
    virtual drive or the end of output is reached. A member whose
    ``Firmware state`` was never read is dropped.
    """
    disks: List[Disk] = []
    adapter = "0"
    logical_drive = ""
    in_target = False
    record: Optional[_PhysicalDiskRecord] = None

    def flush() -> None:
        if record is None or not record.has_state:
            return
        disk = record.build()
        if disk is None:
            return
        disk.raid_array_id = logical_drive
        disks.append(disk)

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        header = re.match(r'^Adapter\s*#\s*(\d+)', line)
        if header:
            flush()
            record = None
            adapter = header.group(1)
            continue

        match = _VIRTUAL_DRIVE.search(line)
        if match:
            flush()
            record = None
            logical_drive = match.group(1)
            in_target = target_arrays is None or logical_drive in target_arrays
            continue

        if not in_target:
            continue

        if 'PD:' in line and 'Info' in line:
            flush()
            record = _PhysicalDiskRecord(adapter)
            continue

        if record is not None:
            record.feed(line)

    flush()
    return disks


def parse_battery(output: str, adapter_id: str) -> Optional[Battery]:
    """Parse ``-AdpBbuCmd -aN`` output; None when no battery is fitted."""
    battery = Battery(adapter_id=adapter_id, tool_name='MegaCLI')

    for raw_line in output.splitlines():
        pair = split_key_value(raw_line.strip())
        if pair is None:
            continue
        key, value = pair
        key = key.lower()

        if key == 'batterytype':
            battery.battery_type = value
        elif key == 'voltage':
            battery.voltage = battery.voltage or extract_int(value, r'(\d+)\s*mV')
        elif key == 'current':
            battery.current = extract_int(value, r'(\d+)\s*mA')
        elif key == 'temperature':
            battery.temperature = battery.temperature or extract_int(value, r'(\d+)\s*C')
        elif key == 'battery state':
            battery.state = value
        elif key == 'charging status':
            battery.charging_status = value
        elif key == 'learn cycle active':
            battery.learn_cycle_active = yes(value)
        elif key == 'learn cycle status':
            battery.learn_cycle_status = value
        elif key == 'battery pack missing':
            battery.pack_missing = yes(value)
        elif key == 'battery replacement required':
            battery.replacement_required = yes(value)
        elif key == 'remaining capacity low':
            battery.remaining_capacity_low = yes(value)
        elif key == 'pack energy':
            battery.pack_energy = extract_int(value, r'(\d+)\s*J')
        elif key == 'capacitance':
            battery.capacitance = extract_int(value, r'(\d+)')
        elif key == 'battery backup charge time':
            battery.backup_charge_time = extract_int(value, r'(\d+)')
        elif key == 'design capacity':
            battery.design_capacity = extract_int(value, r'(\d+)')
        elif key == 'design voltage':
            battery.design_voltage = extract_int(value, r'(\d+)\s*mV')
        elif key == 'serial number':
            battery.serial_number = value
        elif key == 'manufacture name':
            battery.manufacture_name = value
        elif key == 'firmware version':
            battery.firmware_version = value
        elif key == 'device name':
            battery.device_name = value
        elif key == 'device chemistry':
            battery.device_chemistry = value
        elif key == 'date of manufacture':
            battery.manufacture_date = value
        elif key == 'auto learn period':
            battery.auto_learn_period = extract_int(value, r'(\d+)')
        elif key == 'next learn time':
            battery.next_learn_time = value

    if not battery.battery_type:
        return None
    return battery


def backfill_spare_counts(arrays: List[RaidArray], unassigned: List[Disk]) -> List[RaidArray]:
    """Add spare and failed drives seen outside the logical drives to each array."""
    spares = sum(1 for disk in unassigned if disk.raid_role == RaidRole.HOT_SPARE)
    failed = sum(1 for disk in unassigned if disk.raid_role == RaidRole.FAILED)

    for array in arrays:
        array.num_spare_drives = spares
        array.num_failed_drives += failed
        if array.num_active_drives == 0 and array.num_drives > 0:
            array.num_active_drives = array.num_drives

    if not arrays and spares > 0:
        arrays.append(RaidArray(
            array_id='spare',
            raid_level='spare-only',
            state='spare',
            status=RaidStatus.OK,
            num_drives=spares,
            num_spare_drives=spares,
            num_failed_drives=failed,
            type='hardware',
            controller='MegaCLI',
        ))
    return arrays


class MegaCLITool(ToolAdapter):
    """Reads logical drives, member disks and BBU state through MegaCLI."""

    TOOL_NAME = "MegaCLI"
    BINARIES = ('MegaCli64', 'megacli')
    VERSION_ARGS = ('-v',)

    # -PDList parse from the array pass, consumed by the next disk pass
    _pending_unassigned: Optional[List[Disk]] = None

    def get_raid_arrays(self) -> List[RaidArray]:
        try:
            output = self._run(['-LDInfo', '-Lall', '-aALL', '-NoLog'])
        except CommandError as e:
            logger.warning(f"Error executing MegaCLI for array info: {e}")
            return []

        arrays = parse_ld_info(output, self.get_battery_info)
        unassigned = self._unassigned_disks()
        self._pending_unassigned = unassigned
        return backfill_spare_counts(arrays, unassigned)

    def get_raid_disks(self, arrays: Optional[List[RaidArray]] = None) -> List[Disk]:
        if arrays is None:
            arrays = self.get_raid_arrays()

        disks: List[Disk] = []
        seen = set()

        try:
            output = self._run(['-LdPdInfo', '-aALL', '-NoLog'])
        except CommandError as e:
            logger.warning(f"MegaCLI LdPdInfo command failed: {e}")
        else:
            targets = {array.array_id for array in arrays}
            for disk in parse_ld_pd_info(output, targets):
                key = f"{disk.location}-{disk.device}"
                if key not in seen:
                    seen.add(key)
                    disks.append(disk)

        unassigned = self._pending_unassigned
        self._pending_unassigned = None
        if unassigned is None:
            unassigned = self._unassigned_disks()
        for disk in unassigned:
            key = f"{disk.location}-{disk.device}"
            if key not in seen:
                seen.add(key)
                disks.append(disk)

        return disks

    def get_battery_info(self, adapter_id: str) -> Optional[Battery]:
        try:
            output = self._run(['-AdpBbuCmd', f"-a{adapter_id}"])
        except CommandError as e:
            logger.info(f"No MegaCLI battery information for adapter {adapter_id}: {e}")
            return None
        return parse_battery(output, adapter_id)

    def _unassigned_disks(self) -> List[Disk]:
        try:
            output = self._run(['-PDList', '-aALL', '-NoLog'])
        except CommandError as e:
            logger.warning(f"Error executing MegaCLI for unassigned disk info: {e}")
            return []
        return [
            disk for disk in parse_pd_list(output)
            if any(state in disk.health.lower() for state in _UNASSIGNED_STATES)
        ]
