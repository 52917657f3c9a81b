"""Linux md software RAID adapter."""

import logging
import re
from typing import List, Optional

from ..models import RaidArray, RaidStatus, SoftwareRaid
from ..parsing import software_raid_status_value
from .base import ToolAdapter

logger = logging.getLogger(__name__)

MDSTAT_PATH = '/proc/mdstat'

_MEMBER_INDEX = re.compile(r'\[[^\]]*\]')
_DEVICE_COUNTS = re.compile(r'\[(\d+)/(\d+)\]')
_PROGRESS = re.compile(r'(\d+\.?\d*)%')
_LEVEL = re.compile(r'^(raid\d+|linear|multipath|faulty|container)$')


def _sync_action(line: str) -> str:
    for action in ('resync', 'recovery', 'recover', 'reshape', 'check'):
        if action in line:
            return 'recovery' if action == 'recover' else action
    return ''


def parse_mdstat(content: str) -> List[SoftwareRaid]:
    """
    Parse /proc/mdstat.

    Each array block starts with ``mdN : <state> <level> <members>`` and
    ends at a blank line.
    """
    arrays: List[SoftwareRaid] = []
    current: Optional[SoftwareRaid] = None

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if line.startswith('md') and ' : ' in line:
            if current is not None:
                arrays.append(current)
            name, rest = line.split(' : ', 1)
            current = SoftwareRaid(device=f"/dev/{name.strip()}")
            tokens = rest.split()
            states = []
            while tokens and not _LEVEL.match(tokens[0]) and '[' not in tokens[0]:
                states.append(tokens.pop(0))
            current.state = ' '.join(states)
            if tokens and _LEVEL.match(tokens[0]):
                current.level = tokens.pop(0)

            for token in tokens:
                name = '/dev/' + _MEMBER_INDEX.sub('', token).replace('(F)', '').replace('(S)', '')
                if '(F)' in token:
                    current.failed_devices.append(name)
                elif '(S)' in token:
                    current.spare_devices.append(name)
                else:
                    current.devices.append(name)
            continue

        if current is None:
            continue

        if not line:
            arrays.append(current)
            current = None
        elif ' blocks ' in line:
            parts = line.split()
            if parts and parts[0].isdigit():
                current.size = int(parts[0]) * 1024
            counts = _DEVICE_COUNTS.search(line)
            if counts:
                current.total_devices = int(counts.group(1))
                current.active_devices = int(counts.group(2))
        elif 'resync' in line or 'recover' in line or 'check' in line or 'reshape' in line:
            current.sync_action = _sync_action(line)
            progress = _PROGRESS.search(line)
            if progress:
                current.sync_progress = float(progress.group(1))

    if current is not None:
        arrays.append(current)
    return arrays


def to_raid_array(raid: SoftwareRaid) -> RaidArray:
    """Express an md array in the common array schema."""
    total = raid.total_devices or len(raid.devices) + len(raid.failed_devices)
    active = raid.active_devices or len(raid.devices)

    status = software_raid_status_value(raid.state)
    if status == RaidStatus.OK and active < total:
        status = RaidStatus.DEGRADED
    state = raid.state
    if active < total and 'degraded' not in state:
        state = f"{state}, degraded".strip(', ')

    array = RaidArray(
        array_id=raid.device,
        raid_level=raid.level,
        state=state,
        status=status,
        size=raid.size,
        num_drives=total,
        num_active_drives=active,
        num_spare_drives=len(raid.spare_devices),
        num_failed_drives=len(raid.failed_devices),
        sync_action=raid.sync_action,
        controller='mdadm',
        type='software',
    )
    if raid.sync_action == 'check':
        array.scrub_progress = raid.sync_progress
    elif raid.sync_action:
        array.rebuild_progress = raid.sync_progress
    return array


class MdadmTool(ToolAdapter):
    """Reports md arrays from /proc/mdstat."""

    TOOL_NAME = "mdadm"
    BINARIES = ('mdadm',)
    VERSION_ARGS = ('--version',)

    def __init__(self, executor, mdstat_path: str = MDSTAT_PATH):
        super().__init__(executor)
        self.mdstat_path = mdstat_path

    def get_version(self) -> str:
        # mdadm prints its version on stderr
        if not self.binary:
            return ""
        _, stdout, stderr = self.executor.run([self.binary, '--version'])
        text = (stdout or stderr).strip()
        return text.splitlines()[0] if text else ""

    def get_software_raids(self) -> List[SoftwareRaid]:
        content = self.executor.read_file(self.mdstat_path)
        if content is None:
            logger.warning(f"Error reading {self.mdstat_path}")
            return []
        raids = parse_mdstat(content)
        logger.info(f"Found {len(raids)} software RAID arrays using mdadm")
        return raids

    def get_raid_arrays(self) -> List[RaidArray]:
        return [to_raid_array(raid) for raid in self.get_software_raids()]
