"""Adapters wrapping the external disk and RAID diagnostic tools."""

from .arcconf import ArcconfTool
from .base import ToolAdapter
from .diskutil import DiskutilTool
from .hdparm import HdparmTool
from .lsblk import LsblkTool
from .mdadm import MdadmTool
from .megacli import MegaCLITool
from .nvme import NvmeTool
from .smartctl import SmartctlTool
from .storcli import StorCLITool
from .zpool import ZpoolTool

__all__ = [
    'ArcconfTool',
    'DiskutilTool',
    'HdparmTool',
    'LsblkTool',
    'MdadmTool',
    'MegaCLITool',
    'NvmeTool',
    'SmartctlTool',
    'StorCLITool',
    'ToolAdapter',
    'ZpoolTool',
]
