"""Unit tests for the nvme-cli adapter."""

import os
import sys

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diskhealth.tools.nvme import NvmeTool, parse_nvme_list

NVME_LIST = """Node                  SN                   Model                                    Namespace Usage                      Format           FW Rev
--------------------- -------------------- ---------------------------------------- --------- -------------------------- ---------------- --------
/dev/nvme0n1          S5GXNF0R123456       Samsung SSD 980 PRO 1TB                  1         250.06  GB /   1.00  TB    512   B +  0 B   5B2QGXA7
/dev/nvme1n1          S4EWNX0R654321       WDS100T3X0C                              1         100.00  GB /   1.00  TB    512   B +  0 B   111110WD
"""


def test_parse_nvme_list():
    disks = parse_nvme_list(NVME_LIST)

    assert [d.device for d in disks] == ["/dev/nvme0n1", "/dev/nvme1n1"]
    assert disks[1].model == "WDS100T3X0C"
    assert all(d.type == "nvme" and d.interface == "NVMe" for d in disks)
    assert disks[0].health == "Unknown"


def test_parse_nvme_list_without_devices():
    assert parse_nvme_list("No NVMe devices detected.\n") == []


def test_tool(scripted_executor):
    executor = scripted_executor(responses={('nvme', 'list'): NVME_LIST}, binaries={'nvme'})
    assert len(NvmeTool(executor).get_disks()) == 2

    assert NvmeTool(scripted_executor(responses={}, binaries={'nvme'})).get_disks() == []
