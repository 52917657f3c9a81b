"""Windows placeholder orchestrator."""

import logging
from typing import Dict, List, Tuple

from ..models import Disk, RaidArray
from ..tools import SmartctlTool, ToolAdapter
from .base import StorageSystem

logger = logging.getLogger(__name__)


class WindowsSystem(StorageSystem):
    """Reports tool availability only; disk discovery is not implemented on Windows."""

    SYSTEM_TYPE = "Windows"

    def build_adapters(self) -> Dict[str, ToolAdapter]:
        return {'smartctl': SmartctlTool(self.executor)}

    def gather(self) -> Tuple[List[List[Disk]], List[RaidArray]]:
        logger.debug("Windows disk detection is not implemented; reporting no disks")
        return [], []
