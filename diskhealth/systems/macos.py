"""macOS orchestrator: diskutil discovery, smartctl enrichment, OpenZFS pools."""

import logging
from typing import Dict, List, Tuple

from ..models import Disk, RaidArray
from ..tools import DiskutilTool, SmartctlTool, ToolAdapter, ZpoolTool
from .base import StorageSystem

logger = logging.getLogger(__name__)


class MacOSSystem(StorageSystem):
    SYSTEM_TYPE = "macOS"

    def build_adapters(self) -> Dict[str, ToolAdapter]:
        return {
            'diskutil': DiskutilTool(self.executor),
            'smartctl': SmartctlTool(self.executor),
            'zpool': ZpoolTool(self.executor),
        }

    def gather(self) -> Tuple[List[List[Disk]], List[RaidArray]]:
        disk_lists: List[List[Disk]] = []
        arrays: List[RaidArray] = []

        disks: List[Disk] = []
        if self.has_tool('diskutil'):
            disks = self._call('diskutil', self.adapters['diskutil'].get_disks, [])
            logger.info(f"Found {len(disks)} disks via diskutil")
            disk_lists.append(disks)

        if self.has_tool('smartctl') and disks:
            smartctl = self.adapters['smartctl']
            reports = []
            for disk in self.device_filter.apply(disks):
                report = self._call('smartctl', lambda: smartctl.get_smart_text(disk.device), None)
                if report is not None:
                    reports.append(report)
            disk_lists.append(reports)

        if self.has_tool('zpool'):
            zpool = self.adapters['zpool']
            pools = self._call('zpool', zpool.get_raid_arrays, [])
            zfs_disks = self._call('zpool', zpool.get_disks, [])
            logger.info(f"Found {len(pools)} ZFS pools and {len(zfs_disks)} ZFS disks via zpool")
            arrays.extend(pools)
            disk_lists.append(zfs_disks)

        return disk_lists, arrays
