"""macOS diskutil adapter."""

import logging
import re
from typing import List, Optional

from ..errors import CommandError
from ..models import Disk
from ..parsing import split_key_value
from .base import ToolAdapter
from .lsblk import apply_usage

logger = logging.getLogger(__name__)

_DISK_BYTES = re.compile(r'\((\d+)\s+Bytes\)')
_NOT_MOUNTED = 'Not applicable (no filesystem)'


def parse_disk_list(output: str) -> List[str]:
    """Disk identifiers (``disk0``) from ``diskutil list`` headers."""
    identifiers = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith('/dev/disk') and ':' in line:
            identifiers.append(line.split()[0].rstrip(':')[len('/dev/'):])
    return identifiers


def is_physical(info: str) -> bool:
    """Whether ``diskutil info`` describes real media rather than an image or container."""
    has_location = 'Device Location:' in info and ('Internal' in info or 'External' in info)
    has_media = 'Media Type:' in info and 'Disk Image' not in info
    virtual = (re.search(r'Virtual:\s+Yes', info) is not None
               or 'APFS Container' in info
               or 'synthesized' in info
               or 'Disk Image' in info)
    return has_location and has_media and not virtual


def parse_disk_info(disk_id: str, info: str) -> Disk:
    disk = Disk(device=f"/dev/{disk_id}", type='macos-disk', interface='Unknown')

    for raw_line in info.splitlines():
        pair = split_key_value(raw_line.strip())
        if pair is None:
            continue
        key, value = pair
        if key == 'Device / Media Name':
            disk.model = value
        elif key == 'Disk Size':
            match = _DISK_BYTES.search(value)
            if match:
                disk.capacity = int(match.group(1))
        elif key == 'Protocol':
            disk.interface = value
        elif key == 'Solid State' and value == 'Yes':
            disk.rpm = 0
        elif key == 'Physical Drive' and value.split():
            disk.vendor = value.split()[0]

    # diskutil exposes no health data; smartctl overrides this when present
    disk.health = 'OK'
    disk.smart_enabled = True
    disk.smart_healthy = True
    return disk


def parse_partitions(output: str, disk_id: str) -> List[str]:
    """Partition identifiers (``disk0s2``) listed under one disk."""
    partitions = []
    for line in output.splitlines():
        for token in line.split():
            if token.startswith(f"{disk_id}s"):
                partitions.append(token)
    return partitions


def parse_mount(info: str) -> Optional[tuple]:
    mountpoint = filesystem = ''
    for raw_line in info.splitlines():
        line = raw_line.strip()
        if line.startswith('Mount Point:'):
            value = split_key_value(line)[1]
            if value and value != _NOT_MOUNTED:
                mountpoint = value
        elif line.startswith('File System Personality:'):
            filesystem = split_key_value(line)[1]
    if not mountpoint:
        return None
    return mountpoint, filesystem


class DiskutilTool(ToolAdapter):
    """Physical disk discovery on macOS."""

    TOOL_NAME = "diskutil"
    BINARIES = ('diskutil',)
    VERSION_ARGS = ()

    def get_version(self) -> str:
        # diskutil has no version flag; it ships with the OS
        return ""

    def get_disks(self) -> List[Disk]:
        try:
            output = self._run(['list'])
        except CommandError as e:
            logger.warning(f"Error running diskutil list: {e}")
            return []

        identifiers = parse_disk_list(output)
        logger.debug(f"Found {len(identifiers)} disk identifiers from diskutil")

        disks = []
        for disk_id in identifiers:
            info = self._info(disk_id)
            if info is None or not is_physical(info):
                continue
            disk = parse_disk_info(disk_id, info)
            self.add_filesystem_usage(disk, disk_id)
            disks.append(disk)
        return disks

    def add_filesystem_usage(self, disk: Disk, disk_id: str) -> None:
        try:
            output = self._run(['list', disk_id])
        except CommandError:
            return

        for partition in parse_partitions(output, disk_id):
            info = self._info(partition)
            mount = parse_mount(info) if info else None
            if mount is None:
                continue
            disk.mountpoint, disk.filesystem = mount
            apply_usage(disk, disk.mountpoint)
            return

    def _info(self, disk_id: str) -> Optional[str]:
        try:
            return self._run(['info', disk_id])
        except CommandError as e:
            logger.warning(f"Error getting diskutil info for {disk_id}: {e}")
            return None
