"""
Base class for tool adapters.
Every vendor tool wrapper inherits from this class.
"""
import logging
from abc import ABC
from typing import List, Optional

from ..errors import CommandError
from ..models import Battery, Disk, RaidArray
from ..system_executor import CommandExecutor

logger = logging.getLogger(__name__)


class ToolAdapter(ABC):
    """
    Abstract base class for tool adapters.

    Each adapter wraps one external diagnostic tool, invokes it with a fixed
    argument set and parses its output into Disk / RaidArray / Battery
    records. Adapters never raise for a missing or failing tool; they log
    and return empty results.
    """

    TOOL_NAME: str = ""
    # Candidate binary names, in order of preference
    BINARIES: tuple = ()
    VERSION_ARGS: tuple = ('--version',)

    def __init__(self, executor: CommandExecutor):
        self.executor = executor

    @property
    def binary(self) -> Optional[str]:
        return self.executor.first_available(*self.BINARIES)

    def is_available(self) -> bool:
        """Check whether the tool is installed."""
        return self.binary is not None

    def get_version(self) -> str:
        """First line of the tool's version output, or empty."""
        binary = self.binary
        if not binary:
            return ""
        success, stdout, _ = self.executor.run([binary, *self.VERSION_ARGS])
        if not stdout.strip():
            return ""
        return stdout.strip().splitlines()[0].strip()

    def get_disks(self) -> List[Disk]:
        return []

    def get_raid_arrays(self) -> List[RaidArray]:
        return []

    def get_raid_disks(self) -> List[Disk]:
        return []

    def get_battery_info(self, adapter_id: str) -> Optional[Battery]:
        return None

    def _run(self, args: List[str], binary: Optional[str] = None) -> str:
        """
        Run the tool and return its standard output.

        Several RAID utilities exit non-zero on success, so output is
        accepted whenever it is non-empty.

        Raises:
            CommandError: If the tool is missing or produced no output
        """
        binary = binary or self.binary
        if not binary:
            raise CommandError([self.TOOL_NAME, *args], stderr="tool not installed")

        command = [binary, *args]
        success, stdout, stderr = self.executor.run(command)
        if stdout.strip():
            if not success:
                logger.debug(f"{self.TOOL_NAME} exited non-zero but produced output: {' '.join(command)}")
            return stdout
        raise CommandError(command, stderr=stderr)
