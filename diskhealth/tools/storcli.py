"""Broadcom StorCLI adapter (JSON output with a plain-text fallback)."""

import json
import logging
import re
from typing import Dict, List, Optional

from ..errors import CommandError, ParseError
from ..models import Battery, Disk, RaidArray
from ..parsing import extract_int, parse_size_to_bytes, raid_status_value, to_int
from ..raid_roles import assign_role, format_raid_level
from .base import ToolAdapter

logger = logging.getLogger(__name__)

_SIZE_IN_LINE = re.compile(r'(\d+(?:\.\d+)?)\s*(PB|TB|GB|MB|KB)\b')
_VD_ROW = re.compile(r'^(\d+/\d+)\s+(\S+)\s+(\S+)')
_DRIVE_ROW = re.compile(r'^\d+:\d+\s+\d+')
_DEVICE_NAME = re.compile(r'^raid-c(\d+)-enc(\d+)-slot(\d+)$')


def _controllers(payload: str) -> List[Dict]:
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise ParseError(f"Invalid StorCLI JSON: {e}")
    controllers = data.get('Controllers') if isinstance(data, dict) else None
    if not isinstance(controllers, list):
        raise ParseError("StorCLI JSON has no Controllers list")
    return [c for c in controllers if isinstance(c, dict)]


def _controller_id(controller: Dict, index: int) -> str:
    status = controller.get('Command Status') or {}
    return str(status.get('Controller', index))


def drive_device_name(controller_id: str, eid_slot: str) -> str:
    parts = eid_slot.split(':')
    if len(parts) == 2 and parts[0] and parts[1]:
        return f"raid-c{controller_id}-enc{parts[0]}-slot{parts[1]}"
    return f"raid-c{controller_id}-drive-{eid_slot}"


def parse_arrays_json(payload: str) -> List[tuple]:
    """
    Parse ``/call show J``.

    Returns:
        List of (controller_id, RaidArray) pairs
    """
    results = []
    for index, controller in enumerate(_controllers(payload)):
        controller_id = _controller_id(controller, index)
        response = controller.get('Response Data') or {}
        if not isinstance(response, dict):
            continue

        product = response.get('Product Name')
        name = f"StoreCLI - {product}" if product else "StoreCLI"

        members: Dict[str, int] = {}
        for drive in response.get('PD LIST') or []:
            group = str(drive.get('DG', '')).strip()
            if group and group != '-':
                members[group] = members.get(group, 0) + 1

        for vd in response.get('VD LIST') or []:
            if not isinstance(vd, dict):
                continue
            array_id = str(vd.get('DG/VD', '')).strip()
            if not array_id:
                continue
            state = str(vd.get('State', ''))
            array = RaidArray(
                array_id=array_id,
                raid_level=format_raid_level(str(vd.get('TYPE', ''))),
                state=state,
                status=raid_status_value(state),
                size=parse_size_to_bytes(str(vd.get('Size', ''))),
                type='hardware',
                controller=name,
            )
            array.num_drives = to_int(vd.get('#DRIVES'))
            if not array.num_drives:
                array.num_drives = members.get(array_id.split('/')[0], 0)
            array.num_active_drives = array.num_drives
            results.append((controller_id, array))
    return results


def parse_arrays_text(output: str) -> List[RaidArray]:
    """Parse the VD LIST table of plain ``/call show`` output."""
    arrays = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        match = _VD_ROW.match(line)
        if not match or 'RAID' not in match.group(2).upper():
            continue
        state = match.group(3)
        array = RaidArray(
            array_id=match.group(1),
            raid_level=format_raid_level(match.group(2)),
            state=state,
            status=raid_status_value(state),
            type='hardware',
            controller='StoreCLI',
        )
        size = _SIZE_IN_LINE.search(line)
        if size:
            array.size = parse_size_to_bytes(f"{size.group(1)} {size.group(2)}")
        arrays.append(array)
    return arrays


def _build_drive(controller_id: str, eid_slot: str, state: str, group: str) -> Disk:
    disk = Disk(
        device=drive_device_name(controller_id, eid_slot),
        location=f"EID:Slt {eid_slot}",
        health=state,
        type='raid',
    )
    if group and group != '-':
        disk.raid_array_id = group
    # Enrichment later replaces the raw state, so classify now
    assign_role(disk)
    return disk


def parse_drives_json(payload: str) -> List[Disk]:
    """Parse ``/call /eall /sall show J``."""
    disks = []
    for index, controller in enumerate(_controllers(payload)):
        controller_id = _controller_id(controller, index)
        response = controller.get('Response Data') or {}
        if not isinstance(response, dict):
            continue
        for drive in response.get('Drive Information') or []:
            if not isinstance(drive, dict) or 'EID:Slt' not in drive:
                continue
            disk = _build_drive(
                controller_id,
                str(drive['EID:Slt']).strip(),
                str(drive.get('State', '')).strip(),
                str(drive.get('DG', '')).strip(),
            )
            disk.model = str(drive.get('Model', '')).strip()
            disk.serial = str(drive.get('SN', '')).strip()
            disk.capacity = parse_size_to_bytes(str(drive.get('Size', '')))
            disk.interface = str(drive.get('Intf') or drive.get('Med') or '').strip()
            disks.append(disk)
    return disks


def parse_drives_text(output: str, controller_id: str = "0") -> List[Disk]:
    """
    Parse the drive table of plain ``/call /eall /sall show`` output.

    Row layout: EID:Slt DID State DG Size Unit Intf Med SED PI SeSz Model... Sp Type
    """
    disks = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not _DRIVE_ROW.match(line):
            continue
        fields = line.split()
        if len(fields) < 7:
            continue
        disk = _build_drive(controller_id, fields[0], fields[2], fields[3])
        disk.capacity = parse_size_to_bytes(f"{fields[4]} {fields[5]}")
        disk.interface = fields[6]
        if len(fields) > 13:
            disk.model = ' '.join(fields[11:-2])
        disks.append(disk)
    return disks


def apply_drive_details(disk: Disk, output: str) -> None:
    """Fill temperature and SMART flags from ``/cX/eE/sS show all``."""
    for raw_line in output.splitlines():
        line = raw_line.strip()
        lowered = line.lower()
        if 'Drive Temperature' in line:
            temperature = re.search(r'(\d+)C', line)
            if temperature:
                disk.temperature = float(temperature.group(1))
        elif 'S.M.A.R.T alert' in line:
            value = line.rsplit('=', 1)[-1].rsplit(':', 1)[-1].strip().lower()
            disk.smart_enabled = True
            disk.smart_healthy = value == 'no'
        elif line.startswith('Media Error Count'):
            disk.media_errors = extract_int(line, r'=\s*(\d+)')
        elif line.startswith('SN ='):
            disk.serial = disk.serial or line.split('=', 1)[1].strip()
        elif 'Drive health' in line:
            if 'online' in lowered or 'optimal' in lowered or 'good' in lowered:
                disk.smart_healthy = True
                disk.health = 'OK'
            elif 'failed' in lowered or 'critical' in lowered:
                disk.smart_healthy = False
                disk.health = 'FAILED'


def parse_battery(output: str, controller_id: str) -> Optional[Battery]:
    """Parse ``/cX/bbu show all`` property tables."""
    battery = Battery(adapter_id=controller_id, tool_name='StoreCLI')

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        fields = line.split()

        if line.startswith('Type') and 'BBU' in line.upper() and len(fields) >= 2:
            battery.battery_type = fields[-1]
        elif 'Voltage' in line and 'mV' in line and not line.startswith('Design Voltage'):
            battery.voltage = extract_int(line, r'Voltage\s+(\d+)\s*mV')
        elif 'Current' in line and 'mA' in line:
            battery.current = extract_int(line, r'Current\s+(\d+)\s*mA')
        elif line.startswith('Temperature'):
            battery.temperature = extract_int(line, r'Temperature\s+(\d+)\s*C')
        elif line.startswith('Battery State') and len(fields) >= 3:
            battery.state = fields[2]
        elif 'Battery Pack Missing' in line:
            battery.pack_missing = 'Yes' in line
        elif 'Replacement required' in line:
            battery.replacement_required = 'Yes' in line
        elif 'Remaining Capacity Low' in line:
            battery.remaining_capacity_low = 'Yes' in line
        elif 'Learn Cycle Active' in line:
            battery.learn_cycle_active = 'Yes' in line
        elif 'Learn Cycle Status' in line and len(fields) >= 4:
            battery.learn_cycle_status = fields[3]
        elif 'Remaining Capacity' in line and 'mAh' in line:
            battery.pack_energy = extract_int(line, r'Remaining Capacity\s+(\d+)\s*mAh')
        elif 'Full Charge Capacity' in line and 'mAh' in line:
            battery.design_capacity = extract_int(line, r'Full Charge Capacity\s+(\d+)\s*mAh')
        elif 'Battery backup charge time' in line:
            battery.backup_charge_time = extract_int(line, r'charge time\s+(\d+)\s*hour')
        elif 'Auto Learn Period' in line:
            battery.auto_learn_period = extract_int(line, r'Auto Learn Period\s+(\d+)\s*d')
        elif line.startswith('Design Capacity') and 'mAh' in line:
            design = extract_int(line, r'Design Capacity\s+(\d+)\s*mAh')
            if design > 0:
                battery.design_capacity = design
        elif line.startswith('Design Voltage') and 'mV' in line:
            design = extract_int(line, r'Design Voltage\s+(\d+)\s*mV')
            if design > 0:
                battery.design_voltage = design
        elif line.startswith('Serial Number') and len(fields) >= 3 and fields[2] != '0':
            battery.serial_number = fields[2]
        elif line.startswith('Manufacture Name') and len(fields) >= 3:
            battery.manufacture_name = ' '.join(fields[2:])

    if not (battery.battery_type or battery.state or battery.voltage):
        return None
    return battery


class StorCLITool(ToolAdapter):
    """Reads virtual drives, physical drives and BBU state through StorCLI."""

    TOOL_NAME = "storcli"
    BINARIES = ('storcli64', 'storcli')
    VERSION_ARGS = ('version',)

    def get_raid_arrays(self) -> List[RaidArray]:
        try:
            output = self._run(['/call', 'show', 'J'])
            pairs = parse_arrays_json(output)
        except (CommandError, ParseError) as e:
            logger.info(f"StorCLI JSON array query unusable, falling back to text: {e}")
            pairs = []

        if not pairs:
            return self._arrays_plain_text()

        batteries: Dict[str, Optional[Battery]] = {}
        arrays = []
        for controller_id, array in pairs:
            if controller_id not in batteries:
                batteries[controller_id] = self.get_battery_info(controller_id)
            array.battery = batteries[controller_id]
            arrays.append(array)
        return arrays

    def get_raid_disks(self) -> List[Disk]:
        try:
            output = self._run(['/call', '/eall', '/sall', 'show', 'J'])
            disks = parse_drives_json(output)
        except (CommandError, ParseError) as e:
            logger.info(f"StorCLI JSON drive query unusable, falling back to text: {e}")
            disks = []

        if not disks:
            disks = self._disks_plain_text()

        for disk in disks:
            self._enrich_with_smart(disk)
        return disks

    def get_disks(self) -> List[Disk]:
        return self.get_raid_disks()

    def get_battery_info(self, adapter_id: str) -> Optional[Battery]:
        for args in ([f"/c{adapter_id}/bbu", 'show', 'all'], [f"/c{adapter_id}", 'show', 'bbu']):
            try:
                output = self._run(args)
            except CommandError:
                continue
            battery = parse_battery(output, adapter_id)
            if battery is not None:
                return battery
        logger.info(f"No StorCLI battery information for controller {adapter_id}")
        return None

    def _arrays_plain_text(self) -> List[RaidArray]:
        try:
            output = self._run(['/call', 'show'])
        except CommandError as e:
            logger.warning(f"Error executing StorCLI for plain text array info: {e}")
            return []
        return parse_arrays_text(output)

    def _disks_plain_text(self) -> List[Disk]:
        try:
            output = self._run(['/call', '/eall', '/sall', 'show'])
        except CommandError as e:
            logger.warning(f"Error executing StorCLI for plain text disk info: {e}")
            return []
        return parse_drives_text(output)

    def _enrich_with_smart(self, disk: Disk) -> None:
        match = _DEVICE_NAME.match(disk.device)
        if not match:
            return
        controller, enclosure, slot = match.groups()
        try:
            output = self._run([f"/c{controller}/e{enclosure}/s{slot}", 'show', 'all'])
        except CommandError as e:
            logger.debug(f"No StorCLI drive details for {disk.device}: {e}")
            return
        apply_drive_details(disk, output)
