"""Bounded, read-only execution of storage diagnostic tools."""

import logging
import shlex
import shutil
import subprocess
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class CommandExecutor:
    """Runs allow-listed diagnostic binaries with a per-invocation timeout."""

    # Only binaries that read device state are ever spawned
    ALLOWED_BINARIES = frozenset({
        'smartctl', 'MegaCli64', 'megacli', 'storcli64', 'storcli',
        'arcconf', 'mdadm', 'zpool', 'lsblk', 'nvme', 'hdparm', 'diskutil',
    })

    HISTORY_SIZE = 200

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize the CommandExecutor.

        Args:
            timeout: Seconds to wait for a single tool invocation
        """
        self.timeout = timeout
        self._command_history: Deque[Dict] = deque(maxlen=self.HISTORY_SIZE)
        self._which_cache: Dict[str, Optional[str]] = {}

    def which(self, binary: str) -> Optional[str]:
        """Resolve ``binary`` on PATH, caching the answer."""
        if binary not in self._which_cache:
            self._which_cache[binary] = shutil.which(binary)
        return self._which_cache[binary]

    def first_available(self, *binaries: str) -> Optional[str]:
        """Return the first of ``binaries`` present on PATH."""
        for binary in binaries:
            if self.which(binary):
                return binary
        return None

    def run(self, command: List[str]) -> Tuple[bool, str, str]:
        """
        Execute a diagnostic command.

        Args:
            command: Binary followed by its arguments

        Returns:
            Tuple of (success, stdout, stderr)

        Raises:
            ValueError: If the binary is not allow-listed
        """
        if not command:
            raise ValueError("Command cannot be empty")

        binary = command[0]
        if binary not in self.ALLOWED_BINARIES:
            raise ValueError(f"Binary not allowed: {binary}")

        command_str = ' '.join(shlex.quote(arg) for arg in command)
        logger.debug(f"Executing command: {command_str}")

        entry = {'command': command_str, 'returncode': None}
        self._command_history.append(entry)

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out after {self.timeout}s: {command_str}")
            return False, "", "Command timed out"
        except OSError as e:
            logger.error(f"Error executing command {command_str}: {e}")
            return False, "", str(e)

        entry['returncode'] = result.returncode
        success = result.returncode == 0
        if not success:
            logger.debug(f"Command exited with code {result.returncode}: {command_str}")
            if result.stderr:
                logger.debug(f"Error output: {result.stderr.strip()}")

        return success, result.stdout, result.stderr

    def read_file(self, path: str) -> Optional[str]:
        """Read a small kernel status file such as /proc/mdstat."""
        try:
            with open(path, 'r') as f:
                return f.read()
        except OSError as e:
            logger.debug(f"Cannot read {path}: {e}")
            return None

    def get_command_history(self) -> List[Dict]:
        """Get the history of executed commands."""
        return list(self._command_history)

    def clear_command_history(self) -> None:
        """Clear the command history."""
        self._command_history.clear()
