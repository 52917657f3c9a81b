"""JSON health report rendered from the published snapshot."""

from datetime import datetime, timezone
from typing import Dict

from . import SERVICE_NAME, __version__
from .models import HealthCode


def summarize_disks(disks) -> Dict[str, int]:
    summary = {code.name.lower(): 0 for code in HealthCode}
    for disk in disks:
        summary[disk.health_code.name.lower()] += 1
    summary['total'] = len(disks)
    return summary


def build_health_report(snapshot, system) -> Dict:
    """
    Build the ``/health/json`` document.

    Args:
        snapshot: Current collector snapshot
        system: Platform orchestrator that produced it

    Returns:
        JSON-serializable dict
    """
    disks = snapshot.disks
    summary = summarize_disks(disks)
    if snapshot.is_empty:
        status = 'starting'
    elif summary['critical']:
        status = 'critical'
    elif summary['warning']:
        status = 'warning'
    else:
        status = 'healthy'

    tool_info = system.tool_info
    return {
        'status': status,
        'service': SERVICE_NAME,
        'version': __version__,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'last_collection': snapshot.collected_at.isoformat() if snapshot.collected_at else None,
        'collection_duration_seconds': round(snapshot.duration, 3),
        'system': {
            'platform': system.system_type,
            'tools': {
                tool: {'available': available, 'version': version}
                for tool, available, version in tool_info.as_labels()
            },
        },
        'summary': summary,
        'disks': [disk.to_dict() for disk in disks],
        'raid_arrays': [array.to_dict() for array in snapshot.arrays],
    }
