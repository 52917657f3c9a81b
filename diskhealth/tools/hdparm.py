"""hdparm adapter: ATA identify data for SATA/PATA disks."""

import logging
from typing import List, Optional

from ..errors import CommandError
from ..models import Disk
from ..parsing import split_key_value, to_int
from .base import ToolAdapter
from .lsblk import LsblkTool

logger = logging.getLogger(__name__)

FALLBACK_DEVICES = ('sda', 'sdb', 'sdc', 'sdd', 'hda', 'hdb', 'hdc', 'hdd')


def parse_transport(transport: str) -> str:
    lowered = transport.lower()
    if 'sata' in lowered:
        return 'SATA'
    if 'pata' in lowered or 'ide' in lowered:
        return 'PATA'
    if 'sas' in lowered:
        return 'SAS'
    return 'ATA'


def parse_form_factor(value: str) -> str:
    lowered = value.lower()
    for size in ('3.5', '2.5', '1.8'):
        if size in lowered:
            return f'{size}"'
    return lowered


def parse_identify(device: str, output: str) -> Disk:
    """
    Parse ``hdparm -I``.

    hdparm cannot judge health, so a readable disk is reported OK and SMART
    healthy; smartctl results merged later take precedence.
    """
    disk = Disk(device=device)

    for raw_line in output.splitlines():
        line = raw_line.strip()
        pair = split_key_value(line)
        if pair is None:
            # enabled features are starred in the Commands/features table
            if 'SMART feature set' in line and (line.startswith('*') or 'Enabled' in line):
                disk.smart_enabled = True
            continue
        key, value = pair

        if key == 'Model Number':
            disk.model = value
        elif key == 'Serial Number':
            disk.serial = value
        elif key == 'Firmware Revision':
            logger.debug(f"Device {device} firmware: {value}")
        elif key == 'Transport':
            disk.interface = parse_transport(value)
        elif key in ('Nominal form factor', 'Form Factor'):
            disk.form_factor = parse_form_factor(value)
        elif key.startswith('device size with M = 1024*1024'):
            fields = value.split()
            if 'MBytes' in fields:
                disk.capacity = to_int(fields[fields.index('MBytes') - 1]) * 1024 * 1024
        elif key in ('Nominal Media Rotation Rate', 'Nominal rotational rate'):
            disk.rpm = 0 if 'Solid State' in value else to_int(value)

    if not disk.interface:
        disk.interface = 'ATA'
    disk.health = 'OK'
    disk.smart_healthy = True
    return disk


class HdparmTool(ToolAdapter):
    """Runs ``hdparm -I`` against every ATA-style disk."""

    TOOL_NAME = "hdparm"
    BINARIES = ('hdparm',)
    VERSION_ARGS = ('-V',)

    def get_disks(self) -> List[Disk]:
        disks = []
        for device in self.block_devices():
            disk = self.get_disk_info(device)
            if disk is not None:
                disks.append(disk)
        logger.info(f"Found {len(disks)} disks using hdparm")
        return disks

    def block_devices(self) -> List[str]:
        """ATA/IDE devices; hdparm does not speak NVMe."""
        names = LsblkTool(self.executor).list_device_names()
        if not names:
            return [f"/dev/{name}" for name in FALLBACK_DEVICES]
        return [f"/dev/{name}" for name in names if 'sd' in name or 'hd' in name]

    def get_disk_info(self, device: str) -> Optional[Disk]:
        try:
            output = self._run(['-I', device])
        except CommandError as e:
            logger.debug(f"hdparm -I failed for {device}: {e}")
            return None
        return parse_identify(device, output)
