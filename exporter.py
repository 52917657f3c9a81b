#!/usr/bin/env python3
"""
Disk health exporter entry point.

Detects the platform's diagnostic tools, collects disk and RAID health on
a fixed interval and serves Prometheus metrics over HTTP.
"""

import atexit
import logging
import sys

from app import create_app
from app.config import load_config
from app.logging import configure_root_logging
from diskhealth import __version__
from diskhealth.collector import Collector
from diskhealth.device_filter import DeviceFilter
from diskhealth.errors import ConfigError
from diskhealth.metrics import DiskHealthMetrics
from diskhealth.system_executor import CommandExecutor
from diskhealth.systems import get_system

logger = logging.getLogger(__name__)


def build(config):
    """Wire executor, orchestrator, metrics and collector together."""
    executor = CommandExecutor(timeout=config.COMMAND_TIMEOUT)
    device_filter = DeviceFilter(config.TARGET_DISKS, config.IGNORE_PATTERNS)
    system = get_system(executor, device_filter)
    metrics = DiskHealthMetrics()
    collector = Collector(system, metrics)
    return collector, metrics


def main(argv=None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_root_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    logger.info(f"Starting disk health exporter {__version__}")
    if config.TARGET_DISKS:
        logger.info(f"Monitoring only: {', '.join(config.TARGET_DISKS)}")

    collector, metrics = build(config)
    collector.start(config.COLLECT_INTERVAL)
    atexit.register(collector.shutdown)

    app = create_app(config, collector=collector, metrics=metrics)
    logger.info(f"Serving metrics on :{config.PORT}{config.METRICS_PATH}")
    app.run(host="0.0.0.0", port=config.PORT)
    return 0


if __name__ == '__main__':
    sys.exit(main())
