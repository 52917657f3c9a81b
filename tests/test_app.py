#!/usr/bin/env python3
"""
Tests for the exporter HTTP endpoints
"""
import os
import sys
from unittest.mock import MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.config import Config
from diskhealth import SERVICE_NAME, __version__
from diskhealth.collector import Collector
from diskhealth.metrics import DiskHealthMetrics
from diskhealth.models import Disk, RaidArray, ToolInfo


def make_system(disks=(), arrays=()):
    system = MagicMock()
    system.system_type = "Linux"
    system.tool_info = ToolInfo(smartctl=True, lsblk=True)
    system.collect.return_value = (list(disks), list(arrays))
    return system


@pytest.fixture
def collector():
    system = make_system(
        [Disk(device="/dev/sda", serial="S1", model="M1", health="OK", temperature=31.0)],
        [RaidArray(array_id="0", raid_level="RAID 1", state="Optimal", status=1, type="hardware")],
    )
    return Collector(system, DiskHealthMetrics())


@pytest.fixture
def client(collector):
    app = create_app({'TESTING': True}, collector=collector, metrics=collector.metrics)
    with app.test_client() as client:
        yield client


class TestIndex:
    def test_landing_page_links_metrics(self, client):
        response = client.get('/')

        assert response.status_code == 200
        assert response.content_type.startswith('text/html')
        body = response.get_data(as_text=True)
        assert __version__ in body
        assert 'href="/metrics"' in body


class TestHealth:
    def test_liveness_before_first_collection(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ok'
        assert data['service'] == SERVICE_NAME
        assert data['version'] == __version__
        assert data['last_collection'] is None

    def test_liveness_reports_last_collection(self, client, collector):
        snapshot = collector.collect()

        data = client.get('/health').get_json()

        assert data['last_collection'] == snapshot.collected_at.isoformat()

    def test_health_report(self, client, collector):
        collector.collect()

        response = client.get('/health/json')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'healthy'
        assert data['summary']['ok'] == 1
        assert data['disks'][0]['device'] == '/dev/sda'
        assert data['raid_arrays'][0]['raid_level'] == 'RAID 1'
        assert data['system']['tools']['smartctl']['available'] is True

    def test_health_report_while_starting(self, client):
        data = client.get('/health/json').get_json()
        assert data['status'] == 'starting'


class TestMetrics:
    def test_exposition(self, client, collector):
        collector.collect()

        response = client.get('/metrics')

        assert response.status_code == 200
        assert response.content_type.startswith('text/plain')
        body = response.get_data(as_text=True)
        assert 'disk_temperature_celsius{' in body
        assert 'raid_array_status{' in body
        assert 'disk_health_exporter_up 1.0' in body

    def test_custom_metrics_path(self, collector):
        config = Config(metrics_path='/scrape', testing=True)
        app = create_app(config, collector=collector, metrics=collector.metrics)

        with app.test_client() as client:
            assert client.get('/scrape').status_code == 200
            assert client.get('/metrics').status_code == 404
            assert 'href="/scrape"' in client.get('/').get_data(as_text=True)
