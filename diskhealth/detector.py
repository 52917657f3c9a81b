"""One-shot detection of installed diagnostic tools."""

import logging
from typing import Dict, Iterable

from .models import TOOL_NAMES, ToolInfo
from .tools.base import ToolAdapter

logger = logging.getLogger(__name__)


def detect_tools(adapters: Iterable[ToolAdapter]) -> ToolInfo:
    """
    Check each adapter's binary once and record its version.

    Args:
        adapters: Adapters to check

    Returns:
        Immutable ToolInfo for the lifetime of the orchestrator
    """
    available: Dict[str, bool] = {}
    versions = []
    for adapter in adapters:
        name = tool_key(adapter)
        if name not in TOOL_NAMES:
            continue
        present = adapter.is_available()
        available[name] = present
        if present:
            version = adapter.get_version() or "unknown"
            versions.append((name, version))

    summary = ", ".join(f"{name}={available.get(name, False)}" for name in TOOL_NAMES if name in available)
    logger.info(f"Tool availability detected: {summary}")
    return ToolInfo(versions=tuple(versions), **available)


def tool_key(adapter: ToolAdapter) -> str:
    """ToolInfo field name for an adapter ("MegaCLI" -> "megacli")."""
    return adapter.TOOL_NAME.lower()
