"""Unit tests for the disk, array and tool availability models."""

import os
import sys

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diskhealth.models import Battery, Disk, HealthCode, RaidArray, RaidRole, TOOL_NAMES, ToolInfo


class TestDisk:
    def test_health_code_follows_health_string(self):
        assert Disk(device="/dev/sda", health="OK").health_code == HealthCode.OK
        assert Disk(device="/dev/sda", health="Rebuild").health_code == HealthCode.WARNING
        assert Disk(device="/dev/sda", health="Failed").health_code == HealthCode.CRITICAL
        assert Disk(device="/dev/sda").health_code == HealthCode.UNKNOWN

    def test_is_spare_from_role_or_flags(self):
        assert Disk(device="d", raid_role=RaidRole.EMERGENCY_SPARE).is_spare
        assert Disk(device="d", is_global_spare=True).is_spare
        assert not Disk(device="d", raid_role=RaidRole.ACTIVE).is_spare
        assert not Disk(device="d").is_spare

    def test_to_dict_renders_role_and_code(self):
        data = Disk(device="raid-c0-enc1-slot0", health="Online", raid_role=RaidRole.ACTIVE).to_dict()
        assert data["raid_role"] == "active"
        assert data["health_code"] == 1
        assert data["device"] == "raid-c0-enc1-slot0"

        assert Disk(device="/dev/sda").to_dict()["raid_role"] == ""


class TestBatteryAndArray:
    def test_battery_status(self):
        assert Battery(adapter_id="0", state="Optimal").status == 1
        assert Battery(adapter_id="0", state="Failed").status == 3

    def test_array_to_dict_includes_battery(self):
        array = RaidArray(array_id="0", battery=Battery(adapter_id="0", battery_type="CVPM02"))
        data = array.to_dict()
        assert data["battery"]["battery_type"] == "CVPM02"
        assert RaidArray(array_id="1").to_dict()["battery"] is None


class TestToolInfo:
    def test_as_labels_covers_every_tool_in_order(self):
        info = ToolInfo(smartctl=True, zpool=True, versions=(("smartctl", "smartctl 7.3"),))
        labels = info.as_labels()

        assert [name for name, _, _ in labels] == list(TOOL_NAMES)
        assert labels[0] == ("smartctl", True, "smartctl 7.3")
        assert ("megacli", False, "") in labels

    def test_has_raid_tools(self):
        assert not ToolInfo(smartctl=True, lsblk=True).has_raid_tools
        assert ToolInfo(mdadm=True).has_raid_tools

    def test_version_lookup(self):
        info = ToolInfo(versions=(("zpool", "zfs-2.1.5"),))
        assert info.version("zpool") == "zfs-2.1.5"
        assert info.version("storcli") == ""
