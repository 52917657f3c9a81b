"""Disk and RAID health inventory for Prometheus."""

__version__ = "1.0.0"

SERVICE_NAME = "disk-health-exporter"
