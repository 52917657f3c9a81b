"""ZFS pool adapter."""

import logging
import re
from typing import List, Optional

from ..errors import CommandError
from ..models import Disk, RaidArray, RaidRole
from ..parsing import parse_size_to_bytes, zfs_status_value
from .base import ToolAdapter

logger = logging.getLogger(__name__)

_VDEV_PREFIXES = ('mirror', 'raidz', 'draid', 'spare', 'cache', 'log', 'special', 'dedup', 'replacing')
_HEADER_WORDS = {'NAME', 'STATE', 'READ', 'WRITE', 'CKSUM', 'errors:'}
_KERNEL_NAME = re.compile(r'^(sd[a-z]+|vd[a-z]+|hd[a-z]+|xvd[a-z]+|nvme\d+n\d+|ada\d+|da\d+)$')
_BY_ID_PREFIXES = ('ata-', 'scsi-', 'wwn-', 'nvme-', 'usb-', 'virtio-', 'gpt/', 'gptid/')

_DEVICE_STATES = {
    'online': 'OK',
    'degraded': 'DEGRADED',
    'faulted': 'DEGRADED',
    'offline': 'FAILED',
    'removed': 'FAILED',
    'unavail': 'FAILED',
    'resilvering': 'REBUILDING',
    'avail': 'OK',
    'inuse': 'OK',
}

_DEVICE_ROLES = {
    'online': RaidRole.ACTIVE,
    'degraded': RaidRole.ACTIVE,
    'faulted': RaidRole.FAILED,
    'offline': RaidRole.FAILED,
    'removed': RaidRole.FAILED,
    'unavail': RaidRole.FAILED,
    'resilvering': RaidRole.REBUILDING,
}

# Top-level vdev groups that follow the pool's data vdevs
_AUX_SECTIONS = ('spares', 'logs', 'cache', 'special', 'dedup')


def convert_device_state(state: str) -> str:
    return _DEVICE_STATES.get(state.strip().lower(), 'UNKNOWN')


def is_physical_device(name: str) -> bool:
    """True for leaf vdevs that name a disk rather than a grouping keyword."""
    if not name or name in _HEADER_WORDS:
        return False
    lowered = name.lower()
    if lowered.startswith(_VDEV_PREFIXES):
        return False
    return (name.startswith('/dev/') or 'sd' in lowered or 'nvme' in lowered
            or 'ada' in lowered or lowered.startswith(_BY_ID_PREFIXES))


def device_path(name: str) -> str:
    """Prefix bare kernel device names with /dev/ so they merge with other tools."""
    if _KERNEL_NAME.match(name):
        return f"/dev/{name}"
    return name


def pool_layout(status_output: str) -> str:
    level = "ZFS Pool"
    for line in status_output.splitlines():
        if 'mirror' in line:
            level = "ZFS Mirror"
        elif 'raidz3' in line:
            level = "ZFS RAIDZ3"
        elif 'raidz2' in line:
            level = "ZFS RAIDZ2"
        elif 'raidz' in line:
            level = "ZFS RAIDZ1"
    return level


def parse_pool_list(output: str) -> List[RaidArray]:
    """Parse ``zpool list -H -o name,size,alloc,free,health``."""
    pools = []
    for line in output.splitlines():
        fields = line.split()
        if len(fields) < 5:
            continue
        pools.append(RaidArray(
            array_id=fields[0],
            raid_level="ZFS Pool",
            state=fields[4],
            status=zfs_status_value(fields[4]),
            size=parse_size_to_bytes(fields[1]),
            used_size=parse_size_to_bytes(fields[2]),
            type='zfs',
            controller='zpool',
        ))
    return pools


def parse_status_devices(output: str, pool: str) -> List[Disk]:
    """
    Parse the ``config:`` section of ``zpool status``.

    The section ends at the first blank line after its table. Devices
    listed under ``spares`` are hot spares.
    """
    disks = []
    in_config = False
    seen_table = False
    section = ""

    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith('config:'):
            in_config = True
            continue
        if not in_config:
            continue
        if not stripped:
            if seen_table:
                break
            continue
        seen_table = True

        fields = stripped.split()
        name = fields[0]
        if name in _AUX_SECTIONS:
            section = name
            continue
        if name == pool or not is_physical_device(name) or len(fields) < 2:
            continue

        state = fields[1]
        disk = Disk(
            device=device_path(name),
            type='zfs',
            health=convert_device_state(state),
            location=f"Pool: {pool}",
            raid_array_id=pool,
        )
        if section == "spares":
            disk.raid_role = RaidRole.HOT_SPARE
            disk.is_global_spare = True
        else:
            disk.raid_role = _DEVICE_ROLES.get(state.lower(), RaidRole.UNKNOWN)
        disks.append(disk)
    return disks


def apply_member_counts(pool: RaidArray, devices: List[Disk]) -> None:
    spares = [d for d in devices if d.raid_role == RaidRole.HOT_SPARE]
    members = [d for d in devices if d.raid_role != RaidRole.HOT_SPARE]
    pool.num_drives = len(members)
    pool.num_active_drives = sum(1 for d in members if d.raid_role == RaidRole.ACTIVE)
    pool.num_failed_drives = sum(1 for d in members if d.raid_role == RaidRole.FAILED)
    pool.num_spare_drives = len(spares)
    if any(d.raid_role == RaidRole.REBUILDING for d in members):
        pool.sync_action = 'resilver'


class ZpoolTool(ToolAdapter):
    """Reads pools and their member vdevs through zpool."""

    TOOL_NAME = "zpool"
    BINARIES = ('zpool',)
    VERSION_ARGS = ('version',)

    def get_zfs_pools(self) -> List[RaidArray]:
        try:
            output = self._run(['list', '-H', '-o', 'name,size,alloc,free,health'])
        except CommandError as e:
            logger.warning(f"Error getting zpool list: {e}")
            return []

        pools = parse_pool_list(output)
        for pool in pools:
            status = self._status(pool.array_id)
            if status is None:
                continue
            pool.raid_level = pool_layout(status)
            apply_member_counts(pool, parse_status_devices(status, pool.array_id))
        return pools

    def get_raid_arrays(self) -> List[RaidArray]:
        return self.get_zfs_pools()

    def get_disks(self) -> List[Disk]:
        try:
            output = self._run(['list', '-H', '-o', 'name'])
        except CommandError as e:
            logger.warning(f"Error getting zpool names: {e}")
            return []

        disks = []
        for pool in (line.strip() for line in output.splitlines()):
            if not pool:
                continue
            status = self._status(pool, verbose=True)
            if status is None:
                continue
            for disk in parse_status_devices(status, pool):
                self._enrich_from_lsblk(disk)
                disks.append(disk)
        return disks

    def _status(self, pool: str, verbose: bool = False) -> Optional[str]:
        args = ['status', '-v', pool] if verbose else ['status', pool]
        try:
            return self._run(args)
        except CommandError as e:
            logger.warning(f"Error getting zpool status for {pool}: {e}")
            return None

    def _enrich_from_lsblk(self, disk: Disk) -> None:
        if not disk.device.startswith('/dev/') or not self.executor.which('lsblk'):
            return
        success, stdout, _ = self.executor.run(['lsblk', '-d', '-o', 'SIZE,MODEL', disk.device])
        lines = stdout.splitlines()
        if not success or len(lines) < 2:
            return
        fields = lines[1].split()
        if fields:
            disk.capacity = parse_size_to_bytes(fields[0])
        if len(fields) >= 2:
            disk.model = ' '.join(fields[1:])
