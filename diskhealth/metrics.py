"""Prometheus gauges for disks, arrays, batteries and tool availability."""

import logging
import threading
from typing import Dict

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from .models import Battery, Disk, RaidArray, ToolInfo

logger = logging.getLogger(__name__)

DISK_LABELS = ["device", "serial", "model"]
ARRAY_LABELS = ["array_id", "raid_level", "type"]
BATTERY_LABELS = ["adapter_id", "battery_type", "controller"]

# (metric key, gauge name, help, labels)
_GAUGES = (
    # fmt: off
    ("disk_health", "disk_health_status", "Disk health status (0=unknown, 1=ok, 2=warning, 3=critical)",
     ["device", "type", "serial", "model", "location", "interface"]),
    ("disk_temperature", "disk_temperature_celsius", "Disk temperature in Celsius",
     ["device", "serial", "model", "interface"]),
    ("disk_temperature_max", "disk_temperature_max_celsius", "Maximum recorded disk temperature in Celsius", DISK_LABELS),
    ("disk_temperature_min", "disk_temperature_min_celsius", "Minimum recorded disk temperature in Celsius", DISK_LABELS),
    ("disk_capacity", "disk_capacity_bytes", "Disk capacity in bytes",
     ["device", "serial", "model", "interface"]),
    ("disk_power_on_hours", "disk_power_on_hours_total", "Total power-on hours for the disk", DISK_LABELS),
    ("disk_power_cycles", "disk_power_cycles_total", "Total number of power cycles", DISK_LABELS),
    ("disk_sector_errors", "disk_sector_errors_total", "Total number of disk sector errors",
     DISK_LABELS + ["error_type"]),
    ("disk_reallocated", "disk_reallocated_sectors_total", "Total number of reallocated sectors", DISK_LABELS),
    ("disk_pending", "disk_pending_sectors_total", "Total number of pending sectors", DISK_LABELS),
    ("disk_uncorrectable", "disk_uncorrectable_errors_total", "Total number of uncorrectable errors", DISK_LABELS),
    ("disk_written", "disk_data_units_written_total", "Total data units written", DISK_LABELS),
    ("disk_read", "disk_data_units_read_total", "Total data units read", DISK_LABELS),
    ("disk_smart_enabled", "disk_smart_enabled", "Whether SMART is enabled (1=enabled, 0=disabled)", DISK_LABELS),
    ("disk_smart_healthy", "disk_smart_healthy", "SMART overall health assessment (1=healthy, 0=unhealthy)", DISK_LABELS),
    ("disk_wear", "disk_wear_leveling_percentage", "SSD wear leveling percentage (0-100)", DISK_LABELS),
    ("disk_percentage_used", "disk_percentage_used", "NVMe percentage used (0-100)", DISK_LABELS),
    ("disk_available_spare", "disk_available_spare_percentage", "NVMe available spare percentage", DISK_LABELS),
    ("disk_critical_warning", "disk_critical_warning", "NVMe critical warning flags", DISK_LABELS),
    ("disk_media_errors", "disk_media_errors_total", "Total number of media errors", DISK_LABELS),
    ("disk_error_log", "disk_error_log_entries_total", "Total number of error log entries", DISK_LABELS),
    ("disk_used", "disk_used_bytes", "Bytes of the disk consumed by its filesystem or RAID array",
     DISK_LABELS + ["mountpoint", "filesystem"]),
    ("disk_available", "disk_available_bytes", "Bytes of the disk still available",
     DISK_LABELS + ["mountpoint", "filesystem"]),
    ("disk_usage", "disk_usage_percentage", "Disk usage percentage (0-100)",
     DISK_LABELS + ["mountpoint", "filesystem"]),
    ("disk_raid_role", "disk_raid_role", "RAID role of a physical disk (always 1)",
     DISK_LABELS + ["array_id", "role"]),

    ("raid_status", "raid_array_status", "RAID array status (0=unknown, 1=ok, 2=degraded, 3=failed)",
     ["array_id", "raid_level", "state", "type", "controller"]),
    ("raid_size", "raid_array_size_bytes", "RAID array size in bytes", ARRAY_LABELS),
    ("raid_used_size", "raid_array_used_size_bytes", "RAID array used size in bytes", ARRAY_LABELS),
    ("raid_drives", "raid_array_drives_total", "Total number of drives in RAID array", ARRAY_LABELS),
    ("raid_active", "raid_array_active_drives", "Number of active drives in RAID array", ARRAY_LABELS),
    ("raid_spare", "raid_array_spare_drives", "Number of spare drives in RAID array", ARRAY_LABELS),
    ("raid_failed", "raid_array_failed_drives", "Number of failed drives in RAID array", ARRAY_LABELS),
    ("raid_rebuild", "raid_array_rebuild_progress_percentage", "RAID array rebuild progress percentage (0-100)",
     ARRAY_LABELS),
    ("raid_scrub", "raid_array_scrub_progress_percentage", "RAID array scrub progress percentage (0-100)",
     ARRAY_LABELS),

    ("sw_status", "software_raid_array_status",
     "Software RAID array status (0=unknown, 1=clean, 2=degraded, 3=failed)", ["device", "level", "state"]),
    ("sw_sync", "software_raid_sync_progress_percentage", "Software RAID sync progress percentage (0-100)",
     ["device", "level", "sync_action"]),
    ("sw_size", "software_raid_array_size_bytes", "Software RAID array size in bytes", ["device", "level"]),

    ("bat_voltage", "raid_battery_voltage_millivolts", "RAID controller battery voltage in millivolts", BATTERY_LABELS),
    ("bat_current", "raid_battery_current_milliamps", "RAID controller battery current in milliamps", BATTERY_LABELS),
    ("bat_temperature", "raid_battery_temperature_celsius", "RAID controller battery temperature in Celsius",
     BATTERY_LABELS),
    ("bat_status", "raid_battery_status",
     "RAID controller battery status (0=unknown, 1=optimal, 2=warning, 3=critical)",
     ["adapter_id", "battery_type", "state", "controller"]),
    ("bat_learn", "raid_battery_learn_cycle_active", "RAID controller battery learn cycle active (0=no, 1=yes)",
     BATTERY_LABELS),
    ("bat_missing", "raid_battery_missing", "RAID controller battery missing (0=no, 1=yes)", BATTERY_LABELS),
    ("bat_replace", "raid_battery_replacement_required",
     "RAID controller battery replacement required (0=no, 1=yes)", BATTERY_LABELS),
    ("bat_capacity_low", "raid_battery_capacity_low",
     "RAID controller battery remaining capacity low (0=no, 1=yes)", BATTERY_LABELS),
    ("bat_energy", "raid_battery_pack_energy_joules", "RAID controller battery pack energy in joules", BATTERY_LABELS),
    ("bat_capacitance", "raid_battery_capacitance", "RAID controller battery capacitance", BATTERY_LABELS),
    ("bat_charge_time", "raid_battery_backup_charge_time_hours",
     "RAID controller battery backup charge time in hours", BATTERY_LABELS),
    ("bat_design_capacity", "raid_battery_design_capacity_joules",
     "RAID controller battery design capacity in joules", BATTERY_LABELS),
    ("bat_design_voltage", "raid_battery_design_voltage_millivolts",
     "RAID controller battery design voltage in millivolts", BATTERY_LABELS),
    ("bat_learn_period", "raid_battery_auto_learn_period_days", "RAID controller battery auto learn period in days",
     BATTERY_LABELS),

    ("tool_available", "disk_health_exporter_tool_available", "Whether a diagnostic tool is installed",
     ["tool", "version"]),
    # fmt: on
)


def _flag(value: bool) -> float:
    return 1.0 if value else 0.0


class DiskHealthMetrics:
    """
    Gauge set backed by its own registry.

    Every update clears all series first, so a device that disappears
    stops being exported instead of reporting stale values. Updates and
    renders share one lock, so a scrape never sees a half-rebuilt set.
    """

    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()
        self.gauges: Dict[str, Gauge] = {
            key: Gauge(name, documentation, labels, registry=self.registry)
            for key, name, documentation, labels in _GAUGES
        }
        self.up = Gauge("disk_health_exporter_up", "Whether the disk health exporter is up and running",
                        registry=self.registry)
        self.up.set(1)

    def clear(self) -> None:
        for gauge in self.gauges.values():
            gauge.clear()

    def update(self, snapshot, tool_info: ToolInfo) -> None:
        """Replace every exported series with the contents of ``snapshot``."""
        with self._lock:
            self.clear()
            for tool, available, version in tool_info.as_labels():
                self.gauges["tool_available"].labels(tool, version or "unknown").set(_flag(available))
            for array in snapshot.arrays:
                self._set_array(array)
            for disk in snapshot.disks:
                self._set_disk(disk)
        logger.debug(f"Exported metrics for {len(snapshot.disks)} disks and {len(snapshot.arrays)} arrays")

    def render(self) -> bytes:
        with self._lock:
            return generate_latest(self.registry)

    def _set_disk(self, disk: Disk) -> None:
        g = self.gauges
        ids = (disk.device, disk.serial, disk.model)

        g["disk_health"].labels(disk.device, disk.type, disk.serial, disk.model,
                                disk.location, disk.interface).set(int(disk.health_code))
        if disk.temperature > 0:
            g["disk_temperature"].labels(*ids, disk.interface).set(disk.temperature)
        if disk.temperature_max > 0:
            g["disk_temperature_max"].labels(*ids).set(disk.temperature_max)
        if disk.temperature_min > 0:
            g["disk_temperature_min"].labels(*ids).set(disk.temperature_min)
        if disk.capacity > 0:
            g["disk_capacity"].labels(*ids, disk.interface).set(disk.capacity)
        if disk.power_on_hours > 0:
            g["disk_power_on_hours"].labels(*ids).set(disk.power_on_hours)
        if disk.power_cycles > 0:
            g["disk_power_cycles"].labels(*ids).set(disk.power_cycles)

        # reallocated sectors are exported even when zero
        g["disk_reallocated"].labels(*ids).set(disk.reallocated_sectors)
        g["disk_sector_errors"].labels(*ids, "reallocated_sectors").set(disk.reallocated_sectors)
        if disk.pending_sectors > 0:
            g["disk_pending"].labels(*ids).set(disk.pending_sectors)
            g["disk_sector_errors"].labels(*ids, "pending_sectors").set(disk.pending_sectors)
        if disk.uncorrectable_errors > 0:
            g["disk_uncorrectable"].labels(*ids).set(disk.uncorrectable_errors)
            g["disk_sector_errors"].labels(*ids, "uncorrectable_errors").set(disk.uncorrectable_errors)

        if disk.data_units_written > 0:
            g["disk_written"].labels(*ids).set(disk.data_units_written)
        if disk.data_units_read > 0:
            g["disk_read"].labels(*ids).set(disk.data_units_read)

        g["disk_smart_enabled"].labels(*ids).set(_flag(disk.smart_enabled))
        g["disk_smart_healthy"].labels(*ids).set(_flag(disk.smart_healthy))

        if disk.wear_leveling > 0:
            g["disk_wear"].labels(*ids).set(disk.wear_leveling)
        if disk.percentage_used > 0:
            g["disk_percentage_used"].labels(*ids).set(disk.percentage_used)
        if disk.available_spare > 0:
            g["disk_available_spare"].labels(*ids).set(disk.available_spare)
        if disk.critical_warning > 0:
            g["disk_critical_warning"].labels(*ids).set(disk.critical_warning)
        if disk.media_errors > 0:
            g["disk_media_errors"].labels(*ids).set(disk.media_errors)
        if disk.error_log_entries > 0:
            g["disk_error_log"].labels(*ids).set(disk.error_log_entries)

        if disk.mountpoint:
            usage = (*ids, disk.mountpoint, disk.filesystem)
            g["disk_used"].labels(*usage).set(disk.used_bytes)
            g["disk_available"].labels(*usage).set(disk.available_bytes)
            g["disk_usage"].labels(*usage).set(disk.usage_percentage)
        if disk.raid_role is not None:
            g["disk_raid_role"].labels(*ids, disk.raid_array_id, disk.raid_role.value).set(1)

    def _set_array(self, array: RaidArray) -> None:
        g = self.gauges
        if array.type == 'software':
            self._set_software_array(array)

        g["raid_status"].labels(array.array_id, array.raid_level, array.state,
                                array.type, array.controller).set(int(array.status))
        labels = (array.array_id, array.raid_level, array.type)
        for key, value in (
            ("raid_size", array.size),
            ("raid_used_size", array.used_size),
            ("raid_drives", array.num_drives),
            ("raid_active", array.num_active_drives),
            ("raid_spare", array.num_spare_drives),
            ("raid_failed", array.num_failed_drives),
            ("raid_rebuild", array.rebuild_progress),
            ("raid_scrub", array.scrub_progress),
        ):
            if value > 0:
                g[key].labels(*labels).set(value)

        if array.battery is not None:
            self._set_battery(array.battery, array.controller)

    def _set_software_array(self, array: RaidArray) -> None:
        g = self.gauges
        g["sw_status"].labels(array.array_id, array.raid_level, array.state).set(int(array.status))
        if array.size > 0:
            g["sw_size"].labels(array.array_id, array.raid_level).set(array.size)
        if array.sync_action:
            progress = array.scrub_progress if array.sync_action == 'check' else array.rebuild_progress
            g["sw_sync"].labels(array.array_id, array.raid_level, array.sync_action).set(progress)

    def _set_battery(self, battery: Battery, controller: str) -> None:
        g = self.gauges
        controller = battery.tool_name or controller
        labels = (str(battery.adapter_id), battery.battery_type, controller)

        if battery.voltage > 0:
            g["bat_voltage"].labels(*labels).set(battery.voltage)
        g["bat_current"].labels(*labels).set(battery.current)
        if battery.temperature > 0:
            g["bat_temperature"].labels(*labels).set(battery.temperature)
        g["bat_status"].labels(str(battery.adapter_id), battery.battery_type, battery.state,
                               controller).set(battery.status)

        g["bat_learn"].labels(*labels).set(_flag(battery.learn_cycle_active))
        g["bat_missing"].labels(*labels).set(_flag(battery.pack_missing))
        g["bat_replace"].labels(*labels).set(_flag(battery.replacement_required))
        g["bat_capacity_low"].labels(*labels).set(_flag(battery.remaining_capacity_low))

        if battery.pack_energy > 0:
            g["bat_energy"].labels(*labels).set(battery.pack_energy)
        if battery.capacitance > 0:
            g["bat_capacitance"].labels(*labels).set(battery.capacitance)
        g["bat_charge_time"].labels(*labels).set(battery.backup_charge_time)
        if battery.design_capacity > 0:
            g["bat_design_capacity"].labels(*labels).set(battery.design_capacity)
        if battery.design_voltage > 0:
            g["bat_design_voltage"].labels(*labels).set(battery.design_voltage)
        if battery.auto_learn_period > 0:
            g["bat_learn_period"].labels(*labels).set(battery.auto_learn_period)
