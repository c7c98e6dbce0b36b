"""Data models for the PRTG data source."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum, StrEnum
from typing import Any


class Endpoint(StrEnum):
    """Logical queries supported by the monitoring backend."""

    STATUS = "status"
    GROUPS = "groups"
    DEVICES = "devices"
    SENSORS = "sensors"
    CHANNEL_VALUES = "channels"
    HISTORIC_DATA = "historicdata"
    SENSOR_TREE = "sensortree"
    SENSOR_DETAILS = "sensordetails"


class AggregationInterval(IntEnum):
    """Averaging bucket width in seconds, ordered from finest to coarsest."""

    RAW = 0
    ONE_MINUTE = 60
    FIVE_MINUTES = 300
    FIFTEEN_MINUTES = 900
    THIRTY_MINUTES = 1800
    ONE_HOUR = 3600
    TWO_HOURS = 7200
    FOUR_HOURS = 14400
    ONE_DAY = 86400


class ItemKind(StrEnum):
    """Level of an inventory item in the group -> device -> sensor hierarchy."""

    GROUP = "group"
    DEVICE = "device"
    SENSOR = "sensor"


@dataclass(frozen=True)
class Credentials:
    """Authentication for the monitoring backend.

    Either an API token, or a username with exactly one of password or
    password hash.

    Attributes:
        api_token: API token (token mode).
        username: Account name (user mode).
        password: Plain password (user mode).
        passhash: Password hash (user mode).

    """

    api_token: str | None = None
    username: str | None = None
    password: str | None = None
    passhash: str | None = None

    def __post_init__(self) -> None:
        """Validate that exactly one authentication mode is configured."""
        if self.api_token:
            if self.username or self.password or self.passhash:
                error_msg = "API token cannot be combined with username credentials"
                raise ValueError(error_msg)
            return

        if not self.username:
            error_msg = "Either an API token or a username is required"
            raise ValueError(error_msg)
        if bool(self.password) == bool(self.passhash):
            error_msg = "Exactly one of password or passhash is required"
            raise ValueError(error_msg)

    @property
    def uses_token(self) -> bool:
        """Return True when the API token mode is active."""
        return bool(self.api_token)

    def as_params(self) -> dict[str, str]:
        """Return the authentication query parameters."""
        if self.api_token:
            return {"apitoken": self.api_token}
        params = {"username": self.username or ""}
        if self.password:
            params["password"] = self.password
        else:
            params["passhash"] = self.passhash or ""
        return params


@dataclass(frozen=True)
class QueryWindow:
    """Time range of a historic data request."""

    start: datetime
    end: datetime

    @property
    def hours(self) -> float:
        """Length of the window in hours."""
        return (self.end - self.start).total_seconds() / 3600


@dataclass(frozen=True)
class ListItem:
    """A group, device or sensor from a table listing.

    Every display field is paired with its ``*_raw`` counterpart on the same
    record. Display values are meant for presentation, raw values for
    sorting and filtering. Both describe the same underlying value.
    """

    kind: ItemKind
    object_id: int
    name: str
    parent_id: int | None = None
    active: Any = None
    active_raw: int | None = None
    channel: str | None = None
    channel_raw: str | None = None
    datetime: str | None = None
    datetime_raw: float | None = None
    device: str | None = None
    device_raw: str | None = None
    group: str | None = None
    group_raw: str | None = None
    message: str | None = None
    message_raw: str | None = None
    priority: str | None = None
    priority_raw: int | None = None
    sensor: str | None = None
    sensor_raw: str | None = None
    status: str | None = None
    status_raw: int | None = None
    tags: str | None = None
    tags_raw: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def display_value(self, name: str) -> Any:
        """Return the display value of a field, falling back to ``extra``."""
        if name in PAIRED_FIELDS:
            return getattr(self, name)
        return self.extra.get(name)

    def raw_value(self, name: str) -> Any:
        """Return the raw value of a field, or the display value if none exists."""
        if name in PAIRED_FIELDS:
            raw = getattr(self, f"{name}_raw")
            return raw if raw is not None else getattr(self, name)
        return self.extra.get(f"{name}_raw", self.extra.get(name))


PAIRED_FIELDS = (
    "active",
    "channel",
    "datetime",
    "device",
    "group",
    "message",
    "priority",
    "sensor",
    "status",
    "tags",
)


@dataclass(frozen=True)
class ChannelValue:
    """Last value of one channel of a sensor."""

    object_id: int
    name: str
    last_value: str | None = None
    last_value_raw: float | None = None


@dataclass(frozen=True)
class HistoricSample:
    """One aggregation bucket of a historic data response.

    Attributes:
        timestamp: Datetime string as sent by the backend.
        parsed_time: The parsed timestamp.
        value: Value of the selected channel.
        channel: Name of the selected channel.
        values: Numeric values of all channels in the bucket.

    """

    timestamp: str
    parsed_time: datetime
    value: float
    channel: str
    values: dict[str, float] = field(default_factory=dict)

    @property
    def unix_time(self) -> int:
        """Seconds since the epoch."""
        return int(self.parsed_time.timestamp())


@dataclass(frozen=True)
class StatusInfo:
    """Server status summary."""

    version: str
    prtg_version: str | None = None
    clock: str | None = None
    alarms: str | None = None
    new_alarms: str | None = None
    up_sensors: str | None = None
    warn_sensors: str | None = None
    paused_sensors: str | None = None
    unusual_sensors: str | None = None
    unknown_sensors: str | None = None
    total_sensors: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SensorDetails:
    """Properties of a single sensor from the sensor details endpoint."""

    name: str
    sensor_type: str | None = None
    interval: str | None = None
    probe_name: str | None = None
    parent_group_name: str | None = None
    parent_device_name: str | None = None
    parent_device_id: str | None = None
    last_value: str | None = None
    last_message: str | None = None
    status_text: str | None = None
    status_id: str | None = None
    uptime: str | None = None
    downtime: str | None = None
    info: str | None = None


@dataclass(frozen=True)
class SensorTreeNode:
    """A node of the sensor tree (group, probe, device or sensor)."""

    kind: str
    object_id: int
    name: str
    children: tuple[SensorTreeNode, ...] = ()

    def walk(self) -> list[SensorTreeNode]:
        """Return this node and all descendants in depth-first order."""
        nodes = [self]
        for child in self.children:
            nodes.extend(child.walk())
        return nodes


@dataclass(frozen=True)
class DataSourceSettings:
    """Immutable configuration supplied by the host."""

    base_url: str
    credentials: Credentials
    cache_time: float
    request_timeout: float
    allow_self_signed: bool = False
    interval_thresholds: tuple[tuple[float, AggregationInterval], ...] | None = None
