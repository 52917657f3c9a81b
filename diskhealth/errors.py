"""Exception types raised by the disk health exporter."""

from typing import List, Optional


class DiskHealthError(Exception):
    """Base class for exporter errors."""


class CommandError(DiskHealthError):
    """An external tool could not be invoked or exited unsuccessfully."""

    def __init__(self, command: List[str], returncode: Optional[int] = None, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed: {' '.join(command)}"
        if returncode is not None:
            message += f" (exit {returncode})"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class ParseError(DiskHealthError):
    """Tool output did not match the expected grammar."""


class ConfigError(DiskHealthError):
    """Invalid startup configuration."""
