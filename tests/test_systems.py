"""Tests for the platform orchestrators and their selection."""

import json
import os
import sys
from unittest.mock import patch

import pytest

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diskhealth.device_filter import DeviceFilter
from diskhealth.models import RaidRole
from diskhealth.systems import LinuxSystem, MacOSSystem, WindowsSystem, get_system

TB = 1024 ** 4

LSBLK_OUTPUT = (
    'NAME="sda" SIZE="4000787030016" MODEL="WDC WD40EFRX-68N32N0" SERIAL="WD-WCC7K1234567" TRAN="sata"\n'
    'NAME="loop0" SIZE="65011712" MODEL="" SERIAL="" TRAN=""\n'
)

SMART_REPORT = json.dumps({
    "device": {"name": "/dev/sda", "protocol": "ATA"},
    "model_name": "WDC WD40EFRX-68N32N0",
    "serial_number": "WD-WCC7K1234567",
    "user_capacity": {"bytes": 4000787030016},
    "smart_support": {"enabled": True},
    "smart_status": {"passed": True},
    "temperature": {"current": 33},
})

LD_INFO = """Adapter 0 -- Virtual Drive Information:
Virtual Drive: 0 (Target Id: 0)
RAID Level          : Primary-1, Secondary-0, RAID Level Qualifier-0
Size                : 1.818 TB
State               : Optimal
Number Of Drives    : 2
"""

LD_PD_INFO = """Adapter #0
Virtual Drive: 0 (Target Id: 0)
PD: 0 Information
Enclosure Device ID: 32
Slot Number: 0
Device Id: 10
WWN: 5000C500AAAA0001
Coerced Size: 1.818 TB [0xe8e088b0 Sectors]
Inquiry Data: SEAGATE ST2000NM0135 ZC1111111
Firmware state: Online, Spun Up
PD: 1 Information
Enclosure Device ID: 32
Slot Number: 1
Device Id: 11
WWN: 5000C500AAAA0002
Coerced Size: 1.818 TB [0xe8e088b0 Sectors]
Inquiry Data: SEAGATE ST2000NM0135 ZC2222222
Firmware state: Online, Spun Up
"""

PD_LIST = """Adapter #0

Enclosure Device ID: 32
Slot Number: 2
Device Id: 12
WWN: 5000C500AAAA0003
Coerced Size: 1.818 TB [0xe8e088b0 Sectors]
Inquiry Data: SEAGATE ST2000NM0135 ZC3333333
Firmware state: Hotspare, Spun Up
"""

LINUX_RESPONSES = {
    ('lsblk', '-d', '-n', '-b', '-P', '-o', 'NAME,SIZE,MODEL,SERIAL,TRAN'): LSBLK_OUTPUT,
    ('smartctl', '--scan'): "/dev/sda -d sat # /dev/sda [SAT], ATA device\n",
    ('smartctl', '-a', '-j', '/dev/sda'): SMART_REPORT,
    ('MegaCli64', '-LDInfo', '-Lall', '-aALL', '-NoLog'): LD_INFO,
    ('MegaCli64', '-LdPdInfo', '-aALL', '-NoLog'): LD_PD_INFO,
    ('MegaCli64', '-PDList', '-aALL', '-NoLog'): PD_LIST,
}


@pytest.fixture
def linux_system(scripted_executor):
    executor = scripted_executor(responses=LINUX_RESPONSES, binaries={'lsblk', 'smartctl', 'MegaCli64'})
    return LinuxSystem(executor)


class TestLinuxSystem:
    def test_tool_info(self, linux_system):
        info = linux_system.tool_info

        assert info.lsblk and info.smartctl and info.megacli
        assert not (info.storcli or info.arcconf or info.mdadm or info.zpool or info.nvme or info.hdparm)
        assert linux_system.system_type == "Linux"

    def test_collect_merges_and_models_raid(self, linux_system):
        disks, arrays = linux_system.collect()

        assert [d.device for d in disks] == [
            "/dev/sda", "raid-c0-enc32-slot0", "raid-c0-enc32-slot1", "raid-c0-enc32-slot2",
        ]

        sda = disks[0]
        assert sda.serial == "WD-WCC7K1234567"
        assert sda.temperature == 33.0
        assert sda.interface == "ATA"
        assert sda.smart_healthy
        assert sda.health == "OK"
        assert sda.raid_role is None

        member = disks[1]
        assert member.raid_role == RaidRole.ACTIVE
        assert member.raid_array_id == "0"
        assert member.usage_percentage == 50.0
        assert member.used_bytes == member.capacity // 2
        assert member.mountpoint == "RAID-0"

        spare = disks[3]
        assert spare.raid_role == RaidRole.HOT_SPARE
        assert spare.mountpoint == "SPARE"
        assert spare.used_bytes == 0

        assert len(arrays) == 1
        assert arrays[0].raid_level == "RAID 1"
        assert arrays[0].num_drives == 2
        assert arrays[0].num_spare_drives == 1

    def test_repeat_collection_is_identical(self, linux_system):
        first_disks, first_arrays = linux_system.collect()
        second_disks, second_arrays = linux_system.collect()

        assert [d.to_dict() for d in first_disks] == [d.to_dict() for d in second_disks]
        assert [a.to_dict() for a in first_arrays] == [a.to_dict() for a in second_arrays]

    def test_target_list_is_exclusive(self, scripted_executor):
        executor = scripted_executor(responses=LINUX_RESPONSES, binaries={'lsblk', 'smartctl', 'MegaCli64'})
        system = LinuxSystem(executor, DeviceFilter(target_disks=['/dev/sda']))

        disks, _ = system.collect()

        assert [d.device for d in disks] == ["/dev/sda"]

    def test_failing_adapter_does_not_abort_cycle(self, linux_system):
        with patch.object(linux_system.adapters['smartctl'], 'get_disks', side_effect=RuntimeError("boom")):
            disks, arrays = linux_system.collect()

        assert len(disks) == 4
        assert disks[0].temperature == 0.0
        assert len(arrays) == 1

    def test_no_tools(self, scripted_executor):
        system = LinuxSystem(scripted_executor(responses={}, binaries=set()))
        assert system.collect() == ([], [])


class TestMacOSSystem:
    def test_diskutil_enriched_by_smartctl(self, scripted_executor):
        disk_list = "/dev/disk0 (internal, physical):\n   0:  GUID_partition_scheme  *500.3 GB   disk0\n"
        info = (
            "   Device / Media Name:       APPLE SSD AP0512Q\n"
            "   Disk Size:                 500.3 GB (500277790720 Bytes)\n"
            "   Device Location:           Internal\n"
            "   Media Type:                Generic\n"
        )
        smart_text = (
            "Model Number:     APPLE SSD AP0512Q\n"
            "Serial Number:    C02XYZ12345\n"
            "SMART overall-health self-assessment test result: PASSED\n"
        )
        executor = scripted_executor(responses={
            ('diskutil', 'list'): disk_list,
            ('diskutil', 'info', 'disk0'): info,
            ('smartctl', '-a', '-d', 'auto', '/dev/disk0'): smart_text,
        }, binaries={'diskutil', 'smartctl'})
        system = MacOSSystem(executor)

        disks, arrays = system.collect()

        assert system.system_type == "macOS"
        assert arrays == []
        assert len(disks) == 1
        disk = disks[0]
        assert disk.serial == "C02XYZ12345"
        assert disk.capacity == 500277790720
        assert disk.health == "OK"
        assert disk.smart_healthy

    def test_only_queried_tools_are_detected(self, scripted_executor):
        system = MacOSSystem(scripted_executor(binaries={'diskutil', 'smartctl', 'nvme'}))

        assert set(system.adapters) == {'diskutil', 'smartctl', 'zpool'}
        assert not system.tool_info.nvme


class TestWindowsSystem:
    def test_reports_nothing(self, scripted_executor):
        system = WindowsSystem(scripted_executor(binaries={'smartctl'}))

        assert system.collect() == ([], [])
        assert system.tool_info.smartctl
        assert system.system_type == "Windows"


class TestGetSystem:
    @pytest.mark.parametrize("platform,expected", [
        ("Linux", LinuxSystem),
        ("Darwin", MacOSSystem),
        ("Windows", WindowsSystem),
        ("FreeBSD", LinuxSystem),
    ])
    def test_platform_selection(self, platform, expected, scripted_executor):
        system = get_system(scripted_executor(binaries=set()), platform=platform)
        assert type(system) is expected

    def test_host_platform_default(self, scripted_executor):
        with patch('diskhealth.systems._platform.system', return_value='Darwin'):
            system = get_system(scripted_executor(binaries=set()))
        assert isinstance(system, MacOSSystem)
