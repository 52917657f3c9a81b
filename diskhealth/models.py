"""Data models for disks, RAID arrays and controller batteries."""

from dataclasses import dataclass, field, asdict
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple

from .parsing import battery_status_value, health_status_value


class HealthCode(IntEnum):
    """Numeric disk health exported as the health gauge value."""
    UNKNOWN = 0
    OK = 1
    WARNING = 2
    CRITICAL = 3


class RaidStatus(IntEnum):
    """Numeric array status."""
    UNKNOWN = 0
    OK = 1
    DEGRADED = 2
    FAILED = 3


class RaidRole(Enum):
    """Role of a physical disk inside a RAID array."""
    ACTIVE = "active"
    HOT_SPARE = "hot_spare"
    COMMISSIONED_SPARE = "commissioned_spare"
    EMERGENCY_SPARE = "emergency_spare"
    REBUILDING = "rebuilding"
    FAILED = "failed"
    UNCONFIGURED = "unconfigured"
    UNKNOWN = "unknown"

    @property
    def is_spare(self) -> bool:
        return self in SPARE_ROLES


SPARE_ROLES = frozenset({
    RaidRole.HOT_SPARE,
    RaidRole.COMMISSIONED_SPARE,
    RaidRole.EMERGENCY_SPARE,
})


@dataclass
class Disk:
    """One physical or virtual block device as reported by one or more tools."""
    device: str
    serial: str = ""
    model: str = ""
    vendor: str = ""
    interface: str = ""
    form_factor: str = ""
    rpm: int = 0
    capacity: int = 0
    type: str = ""
    location: str = ""

    # Filesystem or RAID-derived usage
    mountpoint: str = ""
    filesystem: str = ""
    used_bytes: int = 0
    available_bytes: int = 0
    usage_percentage: float = 0.0

    health: str = ""
    temperature: float = 0.0
    temperature_max: float = 0.0
    temperature_min: float = 0.0
    power_on_hours: int = 0
    power_cycles: int = 0

    # SMART counters
    reallocated_sectors: int = 0
    pending_sectors: int = 0
    uncorrectable_errors: int = 0
    data_units_written: int = 0
    data_units_read: int = 0
    wear_leveling: int = 0
    percentage_used: int = 0
    available_spare: int = 0
    critical_warning: int = 0
    media_errors: int = 0
    error_log_entries: int = 0
    smart_enabled: bool = False
    smart_healthy: bool = False

    # RAID membership
    raid_array_id: str = ""
    raid_position: int = 0
    raid_role: Optional[RaidRole] = None
    is_commissioned_spare: bool = False
    is_emergency_spare: bool = False
    is_global_spare: bool = False
    is_dedicated_spare: bool = False

    @property
    def health_code(self) -> HealthCode:
        return HealthCode(health_status_value(self.health))

    @property
    def is_spare(self) -> bool:
        """True when the disk is a spare of any kind."""
        if self.raid_role is not None and self.raid_role.is_spare:
            return True
        return (self.is_commissioned_spare or self.is_emergency_spare
                or self.is_global_spare or self.is_dedicated_spare)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['raid_role'] = self.raid_role.value if self.raid_role else ""
        data['health_code'] = int(self.health_code)
        return data


@dataclass
class Battery:
    """Backup power unit of a RAID controller."""
    adapter_id: str
    battery_type: str = ""
    voltage: int = 0
    current: int = 0
    temperature: int = 0
    state: str = ""
    charging_status: str = ""
    learn_cycle_active: bool = False
    learn_cycle_status: str = ""
    pack_missing: bool = False
    replacement_required: bool = False
    remaining_capacity_low: bool = False
    pack_energy: int = 0
    capacitance: int = 0
    backup_charge_time: int = 0
    design_capacity: int = 0
    design_voltage: int = 0
    serial_number: str = ""
    manufacture_name: str = ""
    firmware_version: str = ""
    device_name: str = ""
    device_chemistry: str = ""
    manufacture_date: str = ""
    auto_learn_period: int = 0
    next_learn_time: str = ""
    tool_name: str = ""

    @property
    def status(self) -> int:
        return battery_status_value(self.state)


@dataclass
class RaidArray:
    """A logical volume exposed by a controller, md or a storage pool."""
    array_id: str
    raid_level: str = ""
    state: str = ""
    status: int = RaidStatus.UNKNOWN
    size: int = 0
    used_size: int = 0
    num_drives: int = 0
    num_active_drives: int = 0
    num_spare_drives: int = 0
    num_failed_drives: int = 0
    rebuild_progress: float = 0.0
    scrub_progress: float = 0.0
    sync_action: str = ""
    controller: str = ""
    type: str = ""
    battery: Optional[Battery] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class SoftwareRaid:
    """An md array as read from /proc/mdstat."""
    device: str
    level: str = ""
    state: str = ""
    devices: List[str] = field(default_factory=list)
    failed_devices: List[str] = field(default_factory=list)
    spare_devices: List[str] = field(default_factory=list)
    total_devices: int = 0
    active_devices: int = 0
    size: int = 0
    sync_action: str = ""
    sync_progress: float = 0.0


@dataclass(frozen=True)
class ToolInfo:
    """Which diagnostic tools were found on PATH and their versions."""
    smartctl: bool = False
    megacli: bool = False
    storcli: bool = False
    arcconf: bool = False
    mdadm: bool = False
    zpool: bool = False
    diskutil: bool = False
    nvme: bool = False
    hdparm: bool = False
    lsblk: bool = False
    versions: Tuple[Tuple[str, str], ...] = ()

    def version(self, tool: str) -> str:
        return dict(self.versions).get(tool, "")

    @property
    def has_raid_tools(self) -> bool:
        return self.megacli or self.storcli or self.arcconf or self.mdadm or self.zpool

    def as_labels(self) -> List[Tuple[str, bool, str]]:
        """Return (tool, available, version) triples in a fixed order."""
        return [
            (name, getattr(self, name), self.version(name))
            for name in TOOL_NAMES
        ]


TOOL_NAMES = (
    'smartctl', 'megacli', 'storcli', 'arcconf', 'mdadm',
    'zpool', 'diskutil', 'nvme', 'hdparm', 'lsblk',
)
