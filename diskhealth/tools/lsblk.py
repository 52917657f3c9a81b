"""lsblk adapter: block device enumeration and filesystem usage."""

import logging
import shlex
from typing import Dict, List, Optional, Tuple

import psutil

from ..errors import CommandError
from ..models import Disk
from ..parsing import to_int
from .base import ToolAdapter

logger = logging.getLogger(__name__)


def parse_pairs(line: str) -> Dict[str, str]:
    """Parse one ``lsblk -P`` line of ``KEY="value"`` pairs."""
    pairs = {}
    for token in shlex.split(line):
        if '=' in token:
            key, value = token.split('=', 1)
            pairs[key] = value
    return pairs


def _clean(value: str) -> str:
    value = (value or '').strip()
    return '' if value == '-' else value


def parse_block_devices(output: str) -> List[Disk]:
    """Parse ``lsblk -d -n -b -P -o NAME,SIZE,MODEL,SERIAL,TRAN``."""
    disks = []
    for line in output.splitlines():
        if not line.strip():
            continue
        pairs = parse_pairs(line)
        name = _clean(pairs.get('NAME', ''))
        if not name:
            continue
        disks.append(Disk(
            device=f"/dev/{name}",
            capacity=to_int(pairs.get('SIZE')),
            model=_clean(pairs.get('MODEL', '')),
            serial=_clean(pairs.get('SERIAL', '')),
            interface=_clean(pairs.get('TRAN', '')),
            type='regular',
        ))
    return disks


def first_mount(output: str) -> Optional[Tuple[str, str]]:
    """
    First real (mountpoint, fstype) among a device and its partitions.

    Swap is not a mountpoint.
    """
    for line in output.splitlines():
        if not line.strip():
            continue
        pairs = parse_pairs(line)
        mountpoint = _clean(pairs.get('MOUNTPOINT', ''))
        if mountpoint and mountpoint != '[SWAP]':
            return mountpoint, _clean(pairs.get('FSTYPE', ''))
    return None


def apply_usage(disk: Disk, mountpoint: str) -> None:
    """Fill used/available bytes for a mounted filesystem."""
    try:
        usage = psutil.disk_usage(mountpoint)
    except OSError as e:
        logger.debug(f"Cannot stat {mountpoint} for {disk.device}: {e}")
        return
    disk.used_bytes = usage.used
    disk.available_bytes = usage.free
    total = usage.used + usage.free
    if total > 0:
        disk.usage_percentage = usage.used / total * 100


class LsblkTool(ToolAdapter):
    """Enumerates whole block devices and their mounted filesystems."""

    TOOL_NAME = "lsblk"
    BINARIES = ('lsblk',)

    def get_disks(self) -> List[Disk]:
        try:
            output = self._run(['-d', '-n', '-b', '-P', '-o', 'NAME,SIZE,MODEL,SERIAL,TRAN'])
        except CommandError as e:
            logger.warning(f"Error running lsblk: {e}")
            return []

        disks = parse_block_devices(output)
        for disk in disks:
            self.add_filesystem_usage(disk)
        logger.info(f"Found {len(disks)} disks using lsblk")
        return disks

    def add_filesystem_usage(self, disk: Disk) -> None:
        try:
            output = self._run(['-n', '-P', '-o', 'NAME,MOUNTPOINT,FSTYPE', disk.device])
        except CommandError:
            return

        mount = first_mount(output)
        if mount is None:
            return
        disk.mountpoint, disk.filesystem = mount
        apply_usage(disk, disk.mountpoint)

    def list_device_names(self) -> List[str]:
        """Kernel names of whole disks, for tools that need a device list."""
        try:
            output = self._run(['-d', '-n', '-o', 'NAME'])
        except CommandError as e:
            logger.debug(f"lsblk device listing failed: {e}")
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]
