"""nvme-cli adapter."""

import logging
from typing import List

from ..errors import CommandError
from ..models import Disk
from .base import ToolAdapter

logger = logging.getLogger(__name__)


def parse_nvme_list(output: str) -> List[Disk]:
    """Parse the ``nvme list`` table; header and separator rows are skipped."""
    disks = []
    for line in output.splitlines():
        fields = line.split()
        if not fields or not fields[0].startswith('/dev/nvme'):
            continue
        disks.append(Disk(
            device=fields[0],
            model=fields[2] if len(fields) >= 3 else '',
            type='nvme',
            interface='NVMe',
            health='Unknown',
        ))
    return disks


class NvmeTool(ToolAdapter):
    TOOL_NAME = "nvme"
    BINARIES = ('nvme',)
    VERSION_ARGS = ('version',)

    def get_disks(self) -> List[Disk]:
        try:
            output = self._run(['list'])
        except CommandError as e:
            logger.warning(f"Error running nvme list: {e}")
            return []
        disks = parse_nvme_list(output)
        logger.info(f"Found {len(disks)} NVMe disks using nvme CLI")
        return disks
