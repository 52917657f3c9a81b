"""Linux orchestrator."""

import logging
from typing import Dict, List, Tuple

from ..models import Disk, RaidArray
from ..tools import (
    ArcconfTool, HdparmTool, LsblkTool, MdadmTool, MegaCLITool, NvmeTool,
    SmartctlTool, StorCLITool, ToolAdapter, ZpoolTool,
)
from .base import StorageSystem

logger = logging.getLogger(__name__)

# Later tools win conflicting fields: smartctl is queried after the
# identity-only tools so its health verdict is the one kept.
DISK_TOOL_ORDER = ('lsblk', 'nvme', 'hdparm', 'smartctl')
RAID_TOOL_ORDER = ('megacli', 'storcli', 'arcconf')


class LinuxSystem(StorageSystem):
    SYSTEM_TYPE = "Linux"

    def build_adapters(self) -> Dict[str, ToolAdapter]:
        return {
            'lsblk': LsblkTool(self.executor),
            'nvme': NvmeTool(self.executor),
            'hdparm': HdparmTool(self.executor),
            'smartctl': SmartctlTool(self.executor),
            'megacli': MegaCLITool(self.executor),
            'storcli': StorCLITool(self.executor),
            'arcconf': ArcconfTool(self.executor),
            'mdadm': MdadmTool(self.executor),
            'zpool': ZpoolTool(self.executor),
        }

    def gather(self) -> Tuple[List[List[Disk]], List[RaidArray]]:
        disk_lists: List[List[Disk]] = []
        arrays: List[RaidArray] = []

        for name in DISK_TOOL_ORDER:
            if self.has_tool(name):
                disks = self._call(name, self.adapters[name].get_disks, [])
                logger.info(f"Found {len(disks)} disks via {name}")
                disk_lists.append(disks)

        for name in RAID_TOOL_ORDER:
            if not self.has_tool(name):
                continue
            adapter = self.adapters[name]
            tool_arrays = self._call(name, adapter.get_raid_arrays, [])
            if name == 'megacli':
                tool_disks = self._call(name, lambda: adapter.get_raid_disks(tool_arrays), [])
            else:
                tool_disks = self._call(name, adapter.get_raid_disks, [])
            logger.info(f"Found {len(tool_arrays)} RAID arrays and {len(tool_disks)} RAID disks via {name}")
            arrays.extend(tool_arrays)
            disk_lists.append(tool_disks)

        if self.has_tool('mdadm'):
            md_arrays = self._call('mdadm', self.adapters['mdadm'].get_raid_arrays, [])
            logger.info(f"Found {len(md_arrays)} software RAID arrays via mdadm")
            arrays.extend(md_arrays)

        if self.has_tool('zpool'):
            zpool = self.adapters['zpool']
            pools = self._call('zpool', zpool.get_raid_arrays, [])
            zfs_disks = self._call('zpool', zpool.get_disks, [])
            logger.info(f"Found {len(pools)} ZFS pools and {len(zfs_disks)} ZFS disks via zpool")
            arrays.extend(pools)
            disk_lists.append(zfs_disks)

        return disk_lists, arrays
