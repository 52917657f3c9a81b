"""Platform orchestrators and their selection."""

import logging
import platform as _platform
from typing import Optional

from ..device_filter import DeviceFilter
from ..system_executor import CommandExecutor
from .base import StorageSystem
from .linux import LinuxSystem
from .macos import MacOSSystem
from .windows import WindowsSystem

logger = logging.getLogger(__name__)

SYSTEMS = {
    'linux': LinuxSystem,
    'darwin': MacOSSystem,
    'windows': WindowsSystem,
}


def get_system(executor: CommandExecutor,
               device_filter: Optional[DeviceFilter] = None,
               platform: Optional[str] = None) -> StorageSystem:
    """
    Select the orchestrator for this host once at startup.

    Unknown platforms get the Linux orchestrator, whose adapters simply
    find no tools when run elsewhere.
    """
    name = (platform or _platform.system()).lower()
    system_class = SYSTEMS.get(name)
    if system_class is None:
        logger.warning(f"Unsupported platform {name}, using Linux tool set")
        system_class = LinuxSystem
    return system_class(executor, device_filter)


__all__ = ['StorageSystem', 'LinuxSystem', 'MacOSSystem', 'WindowsSystem', 'get_system']
