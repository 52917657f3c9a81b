"""Target/ignore filtering of device identifiers."""

import logging
from typing import Iterable, List, Sequence

from .models import Disk

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_PATTERNS = ('/dev/loop', '/dev/ram', '/dev/dm-')


class DeviceFilter:
    """
    Decides which devices reach the reconciler.

    Ignore prefixes always win. A non-empty target list is an exclusive
    allowlist of exact device identifiers.
    """

    def __init__(self, target_disks: Sequence[str] = (), ignore_patterns: Sequence[str] = DEFAULT_IGNORE_PATTERNS):
        self.target_disks = tuple(target_disks)
        self.ignore_patterns = tuple(ignore_patterns)

    def includes(self, device: str) -> bool:
        for pattern in self.ignore_patterns:
            if device.startswith(pattern):
                logger.debug(f"Ignoring disk {device} (matches ignore pattern: {pattern})")
                return False

        if self.target_disks:
            if device in self.target_disks:
                return True
            logger.debug(f"Skipping disk {device} (not in target list)")
            return False
        return True

    def apply(self, disks: Iterable[Disk]) -> List[Disk]:
        return [disk for disk in disks if self.includes(disk.device)]
