"""
Base class for platform orchestrators.
Each supported OS family provides one subclass.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from ..detector import detect_tools
from ..device_filter import DeviceFilter
from ..models import Disk, RaidArray, ToolInfo
from ..raid_roles import apply_raid_model
from ..reconciler import backfill_array_counts, reconcile
from ..system_executor import CommandExecutor
from ..tools.base import ToolAdapter

logger = logging.getLogger(__name__)


class StorageSystem(ABC):
    """
    Abstract platform orchestrator.

    Owns the tool availability record, runs the platform's adapters in a
    fixed order, filters every tool's output and reconciles the result.
    """

    SYSTEM_TYPE: str = ""

    def __init__(self, executor: CommandExecutor, device_filter: Optional[DeviceFilter] = None):
        self.executor = executor
        self.device_filter = device_filter or DeviceFilter()
        self.adapters: Dict[str, ToolAdapter] = self.build_adapters()
        self._tool_info = detect_tools(self.adapters.values())

    @abstractmethod
    def build_adapters(self) -> Dict[str, ToolAdapter]:
        """Adapters this platform uses, keyed by ToolInfo field name."""
        raise NotImplementedError

    @abstractmethod
    def gather(self) -> Tuple[List[List[Disk]], List[RaidArray]]:
        """Query the available adapters in invocation order.

        Returns:
            Tuple of (one raw disk list per tool call, all arrays)
        """
        raise NotImplementedError

    @property
    def system_type(self) -> str:
        return self.SYSTEM_TYPE

    @property
    def tool_info(self) -> ToolInfo:
        return self._tool_info

    def has_tool(self, name: str) -> bool:
        return bool(getattr(self._tool_info, name, False)) and name in self.adapters

    def collect(self) -> Tuple[List[Disk], List[RaidArray]]:
        """Run one detection cycle and return reconciled (disks, arrays)."""
        start = time.monotonic()
        logger.info(f"Detecting disks on {self.system_type} system...")

        disk_lists, arrays = self.gather()
        filtered = [self.device_filter.apply(disks) for disks in disk_lists]
        disks = reconcile(filtered)
        apply_raid_model(disks, arrays)
        backfill_array_counts(arrays, disks)

        elapsed = time.monotonic() - start
        logger.info(f"Total: {len(disks)} disks, {len(arrays)} RAID arrays ({elapsed:.2f}s)")
        return disks, arrays

    def _call(self, name: str, query: Callable, default):
        """Invoke one adapter query; an unexpected failure only costs that tool's result."""
        try:
            return query()
        except Exception as e:
            logger.error(f"{name} query failed: {e}", exc_info=True)
            return default
