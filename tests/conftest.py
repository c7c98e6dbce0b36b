"""Pytest configuration and fixtures for PRTG data source tests."""

from typing import Any

import pytest

from prtg_datasource.models import Credentials, DataSourceSettings

BASE_URL = "https://prtg.example.com"
API_TOKEN = "test-api-token"  # noqa: S105


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        """Start the clock at the given time."""
        self.now = now

    def __call__(self) -> float:
        """Return the current time."""
        return self.now

    def advance(self, seconds: float) -> None:
        """Move the clock forward."""
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def token_credentials() -> Credentials:
    """Fixture providing API token credentials."""
    return Credentials(api_token=API_TOKEN)


@pytest.fixture
def settings(token_credentials: Credentials) -> DataSourceSettings:
    """Fixture providing data source settings with token authentication."""
    return DataSourceSettings(
        base_url=BASE_URL,
        credentials=token_credentials,
        cache_time=30.0,
        request_timeout=5.0,
    )


@pytest.fixture
def sample_status_response() -> dict[str, Any]:
    """Fixture providing a sample status response."""
    return {
        "prtg-version": "24.1.92.1554",
        "Version": "24.1.92.1554+",
        "Clock": "14.02.2025 13:49:00",
        "Alarms": "2",
        "NewAlarms": "1",
        "UpSens": "120",
        "WarnSens": "3",
        "PausedSens": "4",
        "UnusualSens": "",
        "UnknownSens": "",
        "TotalSens": 129,
    }


@pytest.fixture
def sample_sensors_response() -> dict[str, Any]:
    """Fixture providing a sample sensor table response.

    Returns:
        A dictionary with two sensors carrying display and raw fields.

    """
    return {
        "prtg-version": "24.1.92.1554",
        "treesize": 2,
        "sensors": [
            {
                "objid": 2001,
                "objid_raw": 2001,
                "parentid": 40,
                "parentid_raw": 40,
                "sensor": "Ping",
                "sensor_raw": "Ping",
                "device": "Core Switch",
                "device_raw": "Core Switch",
                "group": "Network",
                "group_raw": "Network",
                "status": "Up",
                "status_raw": 3,
                "priority": "***",
                "priority_raw": 3,
                "active": True,
                "active_raw": -1,
                "tags": "pingsensor",
                "tags_raw": "pingsensor",
                "message": "OK",
                "message_raw": "OK",
                "datetime": "14.02.2025 13:49:00",
                "datetime_raw": 45702.5756944444,
            },
            {
                "objid": 2002,
                "objid_raw": 2002,
                "parentid": 40,
                "sensor": "Traffic",
                "status": "Warning",
                "status_raw": 4,
                "priority": "*****",
                "priority_raw": 5,
                "location": "Rack 3",
            },
        ],
    }


@pytest.fixture
def sample_historic_response() -> dict[str, Any]:
    """Fixture providing a sample historic data response, newest sample first."""
    return {
        "prtg-version": "24.1.92.1554",
        "treesize": 3,
        "histdata": [
            {
                "datetime": "14.02.2025 14:00:00",
                "datetime_raw": 45702.5833333333,
                "Ping Time": "14 msec",
                "Ping Time_raw": 14.0,
                "coverage": "100 %",
                "coverage_raw": 10000,
            },
            {
                "datetime": "14.02.2025 13:49:00",
                "datetime_raw": 45702.5756944444,
                "Ping Time": "12 msec",
                "Ping Time_raw": 12.0,
                "coverage": "100 %",
                "coverage_raw": 10000,
            },
            {
                "datetime": "14.02.2025 13:59:00",
                "datetime_raw": 45702.5826388889,
                "Ping Time": "",
                "Ping Time_raw": "",
                "coverage": "0 %",
                "coverage_raw": 0,
            },
        ],
    }


@pytest.fixture
def sample_historic_xml() -> str:
    """Fixture providing a historic data response as the backend's XML."""
    return (
        '<?xml version="1.0" encoding="UTF-8" ?>\n'
        "<histdata>\n"
        "  <prtg-version>24.1.92.1554</prtg-version>\n"
        "  <item>\n"
        "    <datetime>14.02.2025 13:49:00</datetime>\n"
        "    <datetime_raw>45702.5756944444</datetime_raw>\n"
        '    <value channel="Traffic In &amp; Out">1&nbsp;024 kbit/s</value>\n'
        '    <value_raw channel="Traffic In &amp; Out">1024.0000</value_raw>\n'
        "    <coverage>100 %</coverage>\n"
        "  </item>\n"
        "  <item>\n"
        "    <datetime>14.02.2025 13:50:00</datetime>\n"
        '    <value channel="Traffic In &amp; Out">2 048 kbit/s</value>\n'
        '    <value_raw channel="Traffic In &amp; Out">2048.0000</value_raw>\n'
        "  </item>\n"
        "</histdata>\n"
    )


@pytest.fixture
def sample_channels_response() -> dict[str, Any]:
    """Fixture providing a sample channel table response."""
    return {
        "prtg-version": "24.1.92.1554",
        "treesize": 2,
        "channels": [
            {
                "objid": 0,
                "name": "Ping Time",
                "lastvalue": "12 msec",
                "lastvalue_raw": 12.0,
            },
            {"objid": -4, "name": "Downtime", "lastvalue": "", "lastvalue_raw": ""},
        ],
    }


@pytest.fixture
def sample_sensor_tree_response() -> dict[str, Any]:
    """Fixture providing a sample sensor tree response."""
    return {
        "prtg-version": "24.1.92.1554",
        "sensortree": {
            "nodes": {
                "group": {
                    "id": [0],
                    "name": "Root",
                    "probenode": {
                        "id": [1],
                        "name": "Local Probe",
                        "device": [
                            {
                                "id": [40],
                                "name": "Core Switch",
                                "sensor": [
                                    {"id": [2001], "name": "Ping"},
                                    {"id": [2002], "name": "Traffic"},
                                ],
                            },
                        ],
                    },
                },
            },
        },
    }


@pytest.fixture
def sample_sensor_details_response() -> dict[str, Any]:
    """Fixture providing a sample sensor details response."""
    return {
        "prtgversion": "24.1.92.1554",
        "sensordata": {
            "name": "CPU Load",
            "sensortype": "wmiprocessor",
            "interval": "60 seconds",
            "probename": "Local Probe",
            "parentgroupname": "Servers",
            "parentdevicename": "app01",
            "parentdeviceid": "2044",
            "lastvalue": "7 %",
            "statustext": "Up",
            "statusid": "3",
        },
    }
