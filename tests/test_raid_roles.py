"""Unit tests for RAID role classification and utilization."""

import os
import sys

import pytest

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diskhealth.models import Disk, RaidArray, RaidRole, SPARE_ROLES
from diskhealth.raid_roles import (
    apply_raid_model, assign_role, calculate_utilization, classify_role, find_array,
    format_raid_level, normalize_level,
)

TB = 1024 ** 4


def raid_disk(health, capacity=TB, array_id="0", role=None):
    disk = Disk(device="raid-c0-enc1-slot0", health=health, capacity=capacity,
                raid_array_id=array_id, type="raid")
    if role is None:
        assign_role(disk)
    else:
        disk.raid_role = role
    return disk


class TestClassifyRole:
    @pytest.mark.parametrize("health,expected", [
        ("Hotspare, Spun Up", RaidRole.HOT_SPARE),
        ("GHS", RaidRole.HOT_SPARE),
        ("DHS", RaidRole.HOT_SPARE),
        ("Commissioned Spare", RaidRole.COMMISSIONED_SPARE),
        ("Emergency Spare", RaidRole.EMERGENCY_SPARE),
        ("Rebuild", RaidRole.REBUILDING),
        ("Rbld", RaidRole.REBUILDING),
        ("Online, Spun Up", RaidRole.ACTIVE),
        ("Onln", RaidRole.ACTIVE),
        ("Optimal", RaidRole.ACTIVE),
        ("Failed", RaidRole.FAILED),
        ("Offline", RaidRole.FAILED),
        ("Offln", RaidRole.FAILED),
        ("Unconfigured(good), Spun Up", RaidRole.UNCONFIGURED),
        ("Unconfigured(bad)", RaidRole.UNCONFIGURED),
        ("UGood", RaidRole.UNCONFIGURED),
        ("JBOD", RaidRole.UNCONFIGURED),
        ("", RaidRole.UNKNOWN),
        ("Copyback", RaidRole.UNKNOWN),
    ])
    def test_classification(self, health, expected):
        assert classify_role(health) == expected

    def test_spare_beats_rebuild_and_rebuild_beats_online(self):
        assert classify_role("Hot Spare, Rebuild") == RaidRole.HOT_SPARE
        assert classify_role("Online, Rebuilding") == RaidRole.REBUILDING

    def test_case_and_whitespace_insensitive(self):
        assert classify_role("  ONLINE  ") == RaidRole.ACTIVE


class TestAssignRole:
    def test_global_and_dedicated_spares(self):
        ghs = Disk(device="d1", health="GHS")
        dhs = Disk(device="d2", health="DHS")
        assign_role(ghs)
        assign_role(dhs)

        assert ghs.is_global_spare and not ghs.is_dedicated_spare
        assert dhs.is_dedicated_spare and not dhs.is_global_spare

    def test_commissioned_and_emergency_flags(self):
        commissioned = Disk(device="d1", health="Commissioned Spare")
        emergency = Disk(device="d2", health="Emergency Spare")
        assign_role(commissioned)
        assign_role(emergency)

        assert commissioned.is_commissioned_spare
        assert emergency.is_emergency_spare

    def test_explicit_health_argument(self):
        disk = Disk(device="d1", health="OK")
        assert assign_role(disk, "Failed") == RaidRole.FAILED
        assert disk.raid_role == RaidRole.FAILED


class TestLevels:
    @pytest.mark.parametrize("level,expected", [
        ("RAID 5", "5"),
        ("raid5", "5"),
        ("RAID-10", "10"),
        ("1+0", "10"),
        ("5+0", "50"),
        ("6", "6"),
        ("ZFS Mirror", None),
        ("spare-only", None),
    ])
    def test_normalize_level(self, level, expected):
        assert normalize_level(level) == expected

    @pytest.mark.parametrize("level,expected", [
        ("RAID1", "RAID 1"),
        ("1+0", "RAID 10"),
        ("raid6", "RAID 6"),
        ("ZFS RAIDZ2", "ZFS RAIDZ2"),
    ])
    def test_format_raid_level(self, level, expected):
        assert format_raid_level(level) == expected


class TestCalculateUtilization:
    def test_raid5_ten_members_uses_nine_tenths(self):
        array = RaidArray(array_id="0", raid_level="RAID 5", size=9 * TB, num_drives=10)
        disk = raid_disk("Online, Spun Up")

        calculate_utilization(disk, array)

        assert disk.usage_percentage == 90.0
        assert disk.used_bytes == TB
        assert disk.available_bytes == 0
        assert disk.mountpoint == "RAID-0"
        assert disk.filesystem == "RAID 5-Array"

    def test_raid0_splits_array_evenly(self):
        array = RaidArray(array_id="1", raid_level="RAID 0", size=4 * TB, num_drives=4)
        disk = raid_disk("Online", capacity=2 * TB)

        calculate_utilization(disk, array)

        assert disk.used_bytes == TB
        assert disk.available_bytes == TB
        assert disk.usage_percentage == 100.0

    def test_raid1_uses_half(self):
        array = RaidArray(array_id="0", raid_level="RAID 1", size=TB, num_drives=2)
        disk = raid_disk("Online")

        calculate_utilization(disk, array)

        assert disk.used_bytes == TB // 2
        assert disk.usage_percentage == 50.0

    def test_raid6_percentage(self):
        array = RaidArray(array_id="0", raid_level="RAID 6", size=4 * TB, num_drives=6)
        disk = raid_disk("Online")

        calculate_utilization(disk, array)

        assert disk.used_bytes == TB
        assert disk.usage_percentage == pytest.approx(400.0 / 6)

    def test_unrecognized_level_uses_full_capacity(self):
        array = RaidArray(array_id="tank", raid_level="ZFS Mirror", size=TB, num_drives=2)
        disk = raid_disk("Online")

        calculate_utilization(disk, array)

        assert disk.used_bytes == TB
        assert disk.usage_percentage == 100.0

    def test_spare(self):
        disk = raid_disk("Hotspare, Spun Up")
        calculate_utilization(disk, None)

        assert disk.used_bytes == 0
        assert disk.available_bytes == TB
        assert disk.mountpoint == "SPARE"
        assert disk.filesystem == "Hot-Spare"

    def test_failed_has_nothing_available(self):
        disk = raid_disk("Failed")
        calculate_utilization(disk, RaidArray(array_id="0", raid_level="RAID 5", size=TB, num_drives=3))

        assert disk.used_bytes == 0
        assert disk.available_bytes == 0

    def test_unconfigured_and_jbod(self):
        unconfigured = raid_disk("Unconfigured(good), Spun Up")
        jbod = raid_disk("JBOD")
        calculate_utilization(unconfigured, None)
        calculate_utilization(jbod, None)

        assert unconfigured.used_bytes == 0
        assert unconfigured.available_bytes == TB
        assert unconfigured.mountpoint == "UNCONFIGURED"
        assert jbod.mountpoint == "JBOD"

    def test_rebuilding_estimated_at_half(self):
        disk = raid_disk("Rebuild")
        calculate_utilization(disk, None)

        assert disk.used_bytes == TB // 2
        assert disk.usage_percentage == 50.0

    def test_unknown_capacity_is_left_alone(self):
        disk = raid_disk("Online", capacity=0)
        calculate_utilization(disk, RaidArray(array_id="0", raid_level="RAID 5", size=TB, num_drives=3))

        assert disk.used_bytes == 0
        assert disk.mountpoint == ""

    def test_active_without_array_size_is_left_alone(self):
        disk = raid_disk("Online")
        calculate_utilization(disk, RaidArray(array_id="0", raid_level="RAID 5"))

        assert disk.mountpoint == ""

    def test_unknown_role_keeps_filesystem_usage(self):
        disk = Disk(device="/dev/sdb", health="Copyback", capacity=TB, raid_role=RaidRole.UNKNOWN,
                    mountpoint="/data", filesystem="ext4", used_bytes=400, available_bytes=600,
                    usage_percentage=40.0)

        calculate_utilization(disk, None)

        assert disk.mountpoint == "/data"
        assert disk.used_bytes == 400
        assert disk.available_bytes == 600
        assert disk.usage_percentage == 40.0

    def test_used_never_exceeds_capacity(self):
        array = RaidArray(array_id="0", raid_level="RAID 5", size=10 * TB, num_drives=3)
        disk = raid_disk("Online")

        calculate_utilization(disk, array)

        assert disk.used_bytes == TB
        assert disk.available_bytes == 0

    @pytest.mark.parametrize("health", [
        "Online", "Failed", "Offline", "Hotspare", "GHS", "Commissioned Spare",
        "Emergency Spare", "Unconfigured(good)", "UBad", "Rebuild", "JBOD", "weird",
    ])
    def test_utilization_consistent_with_role(self, health):
        disk = raid_disk(health)
        calculate_utilization(disk, RaidArray(array_id="0", raid_level="RAID 5", size=2 * TB, num_drives=3))

        if disk.raid_role == RaidRole.FAILED:
            assert disk.used_bytes == 0 and disk.available_bytes == 0
        if disk.raid_role in SPARE_ROLES or disk.raid_role == RaidRole.UNCONFIGURED:
            assert disk.used_bytes == 0


class TestApplyRaidModel:
    def test_find_array_accepts_disk_group(self):
        arrays = {"0/0": RaidArray(array_id="0/0"), "1": RaidArray(array_id="1")}

        assert find_array(arrays, "1").array_id == "1"
        assert find_array(arrays, "0").array_id == "0/0"
        assert find_array(arrays, "") is None
        assert find_array(arrays, "7") is None

    def test_classifies_members_and_skips_plain_disks(self):
        member = Disk(device="raid-c0-enc1-slot0", health="Online", capacity=TB,
                      raid_array_id="0", type="raid")
        plain = Disk(device="/dev/sda", health="OK", capacity=TB, type="regular")
        arrays = [RaidArray(array_id="0/0", raid_level="RAID 1", size=TB, num_drives=2)]

        apply_raid_model([member, plain], arrays)

        assert member.raid_role == RaidRole.ACTIVE
        assert member.used_bytes == TB // 2
        assert plain.raid_role is None
        assert plain.used_bytes == 0

    def test_existing_role_is_kept(self):
        disk = Disk(device="/dev/sdb", health="OK", capacity=TB, raid_array_id="tank",
                    raid_role=RaidRole.REBUILDING, type="zfs")

        apply_raid_model([disk], [])

        assert disk.raid_role == RaidRole.REBUILDING
        assert disk.usage_percentage == 50.0
