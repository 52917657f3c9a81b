"""Unit tests for merging and deduplicating per-tool disk reports."""

import dataclasses
import os
import sys

import pytest

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diskhealth.models import Disk, HealthCode, RaidArray, RaidRole
from diskhealth.reconciler import (
    FIELD_POLICY, backfill_array_counts, completeness_score, deduplicate, device_class,
    health_of, is_empty, merge_disk_lists, merge_disks, reconcile, smart_healthy_of,
)


def smartctl_report(device="/dev/sda", healthy=True, **fields):
    return Disk(device=device, type="regular", smart_enabled=True, smart_healthy=healthy,
                health="OK" if healthy else "FAILED", **fields)


class TestIsEmpty:
    @pytest.mark.parametrize("value", [None, False, "", 0, 0.0, RaidRole.UNKNOWN])
    def test_empty_values(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [True, "x", 1, -1, 0.5, RaidRole.ACTIVE])
    def test_populated_values(self, value):
        assert not is_empty(value)


class TestMergeDisks:
    def test_empty_never_overwrites_populated(self):
        existing = Disk(device="/dev/sda", serial="S1", temperature=30.0)
        new = Disk(device="/dev/sda", model="M1")

        merged = merge_disks(existing, new)

        assert merged.serial == "S1"
        assert merged.model == "M1"
        assert merged.temperature == 30.0

    def test_later_source_wins_conflicts(self):
        merged = merge_disks(Disk(device="/dev/sda", model="A"), Disk(device="/dev/sda", model="B"))
        assert merged.model == "B"

    def test_populated_fields_commute(self):
        a = Disk(device="/dev/sda", serial="SER12345", temperature=33.0, mountpoint="/")
        b = Disk(device="/dev/sda", model="X1", capacity=100, smart_enabled=True)

        assert merge_disks(a, b) == merge_disks(b, a)

    def test_temperature_extremes(self):
        existing = Disk(device="/dev/sda", temperature_max=50.0, temperature_min=0.0)
        new = Disk(device="/dev/sda", temperature_max=45.0, temperature_min=20.0)

        merged = merge_disks(existing, new)
        assert merged.temperature_max == 50.0
        assert merged.temperature_min == 20.0

        merged = merge_disks(Disk(device="/dev/sda", temperature_min=18.0), new)
        assert merged.temperature_min == 18.0

    def test_flags_are_ored(self):
        existing = Disk(device="d", smart_enabled=True, is_global_spare=False)
        new = Disk(device="d", smart_enabled=False, is_global_spare=True)

        merged = merge_disks(existing, new)

        assert merged.smart_enabled
        assert merged.is_global_spare

    def test_raid_role_unknown_does_not_replace_known(self):
        existing = Disk(device="d", raid_role=RaidRole.ACTIVE)
        merged = merge_disks(existing, Disk(device="d", raid_role=RaidRole.UNKNOWN))
        assert merged.raid_role == RaidRole.ACTIVE

    def test_inputs_are_not_mutated(self):
        existing = Disk(device="/dev/sda")
        merge_disks(existing, Disk(device="/dev/sda", serial="S1"))
        assert existing.serial == ""

    def test_field_policy_covers_every_field(self):
        names = {name for name, _ in FIELD_POLICY}
        expected = {f.name for f in dataclasses.fields(Disk)} - {"device"}

        assert names == expected
        assert len(names) == len(FIELD_POLICY)


class TestSmartHealthPrecedence:
    def test_smart_source_beats_raid_ok_in_both_orders(self):
        smart = smartctl_report(healthy=False)
        raid = Disk(device="/dev/sda", type="raid", health="OK", smart_healthy=True)

        assert merge_disks(smart, raid).smart_healthy is False
        assert merge_disks(raid, smart).smart_healthy is False

    def test_newer_smart_source_wins(self):
        older = smartctl_report(healthy=True)
        newer = smartctl_report(healthy=False)
        assert smart_healthy_of(older, newer) is False

    def test_raid_ok_trusted_without_smart_data(self):
        raid = Disk(device="/dev/sda", type="raid", health="OK")
        nvme = Disk(device="/dev/sda", type="nvme", health="Unknown")

        assert smart_healthy_of(nvme, raid) is True
        assert smart_healthy_of(raid, nvme) is True

    def test_otherwise_any_source_asserting_healthy(self):
        a = Disk(device="/dev/sda", type="macos-disk", smart_healthy=True)
        b = Disk(device="/dev/sda", type="nvme", smart_healthy=False)
        assert smart_healthy_of(a, b) is True
        assert smart_healthy_of(b, Disk(device="/dev/sda")) is False


class TestHealthPrecedence:
    def test_smart_failure_survives_online_pool(self):
        smart = smartctl_report(healthy=False)
        pool_member = Disk(device="/dev/sda", type="zfs", health="OK", raid_array_id="tank",
                           raid_role=RaidRole.ACTIVE)

        merged = reconcile([[smart], [pool_member]])[0]

        assert merged.health == "FAILED"
        assert merged.health_code == HealthCode.CRITICAL
        assert merged.smart_healthy is False
        assert merged.raid_array_id == "tank"

    def test_smart_verdict_wins_in_either_order(self):
        smart = smartctl_report(healthy=False)
        raid = Disk(device="/dev/sda", type="raid", health="Online, Spun Up")

        assert health_of(smart, raid) == "FAILED"
        assert health_of(raid, smart) == "FAILED"

    def test_worse_pool_state_is_not_hidden_by_smart_pass(self):
        smart = smartctl_report(healthy=True)
        pool_member = Disk(device="/dev/sda", type="zfs", health="DEGRADED")

        assert health_of(smart, pool_member) == "DEGRADED"

    def test_without_smart_source_later_health_wins(self):
        lsblk = Disk(device="/dev/sda", health="OK")
        pool_member = Disk(device="/dev/sda", type="zfs", health="REBUILDING")

        assert health_of(lsblk, pool_member) == "REBUILDING"
        assert health_of(pool_member, Disk(device="/dev/sda")) == "REBUILDING"


class TestMergeDiskLists:
    def test_groups_by_device_in_first_seen_order(self):
        lists = [
            [Disk(device="/dev/sda", serial="S1"), Disk(device="/dev/sdb")],
            [Disk(device="/dev/sdc"), Disk(device="/dev/sda", model="M1")],
        ]

        merged = merge_disk_lists(lists)

        assert [d.device for d in merged] == ["/dev/sda", "/dev/sdb", "/dev/sdc"]
        assert merged[0].serial == "S1"
        assert merged[0].model == "M1"


class TestDeduplicate:
    def test_device_classes(self):
        assert device_class(Disk(device="/dev/sda", model="ST4000")) == "block_device"
        assert device_class(Disk(device="/dev/sdb", model="PERC H730P")) == "raid_virtual"
        assert device_class(Disk(device="/dev/sdc", model="LSI RAID 5")) == "raid_virtual"
        assert device_class(Disk(device="raid-c0-enc1-slot0")) == "raid_physical"
        assert device_class(Disk(device="disk2")) == "other"

    def test_block_path_and_raid_address_stay_separate(self):
        block = Disk(device="/dev/sda", serial="ABC123", model="X1", mountpoint="/data",
                     filesystem="ext4", used_bytes=100)
        raid = Disk(device="raid-c0-enc1-slot0", serial="ABC123", model="X1", type="raid",
                    raid_role=RaidRole.ACTIVE, raid_array_id="0")

        result = reconcile([[block], [raid]])

        assert [d.device for d in result] == ["/dev/sda", "raid-c0-enc1-slot0"]

    def test_long_serial_across_classes_is_not_merged(self):
        block = Disk(device="/dev/sda", serial="WD-WCC4N1234567", model="WD40")
        raid = Disk(device="raid-c0-enc1-slot0", serial="WD-WCC4N1234567", model="WD40")

        assert len(deduplicate([block, raid])) == 2

    def test_same_class_duplicates_collapse_without_losing_fields(self):
        first = Disk(device="raid-c0-enc32-slot4", serial="ZC1234567", model="ST4000NM",
                     temperature=36.0, raid_array_id="0", health="Online, Spun Up")
        second = Disk(device="raid-c0-drive-32:4", serial="ZC1234567", model="ST4000NM",
                      capacity=4000, interface="SAS", smart_enabled=True, media_errors=2)

        result = deduplicate([first, second])

        assert len(result) == 1
        disk = result[0]
        for source in (first, second):
            for name, _ in FIELD_POLICY:
                value = getattr(source, name)
                if not is_empty(value):
                    assert not is_empty(getattr(disk, name)), name

    def test_most_complete_record_is_the_base(self):
        sparse = Disk(device="/dev/sda", serial="SERIAL0001", model="M", capacity=500)
        rich = Disk(device="/dev/sdb", serial="SERIAL0001", model="M", temperature=40.0,
                    smart_enabled=True)
        assert completeness_score(rich) > completeness_score(sparse)

        result = deduplicate([sparse, rich])

        assert len(result) == 1
        assert result[0].device == "/dev/sdb"
        assert result[0].capacity == 500
        assert result[0].temperature == 40.0

    def test_short_serials_pass_through(self):
        disks = [Disk(device="/dev/sda", serial="ABC", model="M"),
                 Disk(device="/dev/sdb", serial="ABC", model="M"),
                 Disk(device="/dev/sdc")]

        assert deduplicate(disks) == disks

    def test_output_order_is_first_appearance(self):
        disks = [
            Disk(device="/dev/sda", serial="SERIAL0001", model="M"),
            Disk(device="/dev/sdb"),
            Disk(device="/dev/sdc", serial="SERIAL0001", model="M"),
            Disk(device="/dev/sdd", serial="SERIAL0002", model="M"),
        ]

        assert [d.device for d in deduplicate(disks)] == ["/dev/sda", "/dev/sdb", "/dev/sdd"]


class TestReconcile:
    def test_repeat_runs_are_identical(self):
        def lists():
            return [
                [Disk(device="/dev/sda", serial="SERIAL0001", model="M", capacity=10)],
                [smartctl_report(serial="SERIAL0001", model="M", temperature=31.0)],
                [Disk(device="raid-c0-enc1-slot2", serial="SERIAL0009", model="N", type="raid")],
            ]

        first = [d.to_dict() for d in reconcile(lists())]
        second = [d.to_dict() for d in reconcile(lists())]

        assert first == second


class TestBackfillArrayCounts:
    def test_counts_observed_spares_and_failures(self):
        arrays = [RaidArray(array_id="0"), RaidArray(array_id="1/1")]
        disks = [
            Disk(device="a", raid_array_id="0", raid_role=RaidRole.HOT_SPARE),
            Disk(device="b", raid_array_id="0", is_dedicated_spare=True),
            Disk(device="c", raid_array_id="0", raid_role=RaidRole.FAILED),
            Disk(device="d", raid_array_id="1", raid_role=RaidRole.FAILED),
            Disk(device="e", raid_role=RaidRole.HOT_SPARE),
        ]

        backfill_array_counts(arrays, disks)

        assert arrays[0].num_spare_drives == 2
        assert arrays[0].num_failed_drives == 1
        assert arrays[1].num_failed_drives == 1

    def test_never_lowers_reported_counts(self):
        arrays = [RaidArray(array_id="0", num_spare_drives=3)]
        backfill_array_counts(arrays, [Disk(device="a", raid_array_id="0", raid_role=RaidRole.HOT_SPARE)])
        assert arrays[0].num_spare_drives == 3
