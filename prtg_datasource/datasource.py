"""Host-facing glue for the PRTG data source.

The dashboard host creates one :class:`PrtgDatasource` per configured data
source and calls it for health checks, resource lookups used by the query
editor, and panel queries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import UTC, datetime
from typing import Any

from . import api
from .client import PrtgClient, Timestamp
from .config import load_settings
from .const import (
    ERROR_ACCESS_DENIED,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_INVALID_QUERY,
    ERROR_NO_DATA,
    ERROR_UNKNOWN,
    QUERY_TYPE_METRICS,
    QUERY_TYPE_RAW,
    QUERY_TYPE_TEXT,
)
from .models import DataSourceSettings, ListItem

_LOGGER = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

# Most specific first. Auth errors before their common base class.
ERROR_STATUS: tuple[tuple[type[api.PrtgApiError], int, str], ...] = (
    (api.InvalidQueryError, 400, ERROR_INVALID_QUERY),
    (api.AuthenticationError, 401, ERROR_INVALID_AUTH),
    (api.AuthorizationError, 403, ERROR_ACCESS_DENIED),
    (api.EmptyResultError, 404, ERROR_NO_DATA),
    (api.NetworkError, 504, ERROR_CANNOT_CONNECT),
    (api.BackendError, 502, ERROR_API_ERROR),
    (api.DecodeError, 502, ERROR_API_ERROR),
    (api.DateParseError, 502, ERROR_API_ERROR),
)


def error_status(err: Exception) -> tuple[int, str]:
    """Map an error to an HTTP status and an error code."""
    for error_type, status, code in ERROR_STATUS:
        if isinstance(err, error_type):
            return status, code
    return 500, ERROR_UNKNOWN


@dataclass(frozen=True)
class HealthResult:
    """Outcome of a health check."""

    ok: bool
    message: str


@dataclass(frozen=True)
class ResourceResponse:
    """Response to a resource call, with a JSON-ready body."""

    status: int
    body: Any
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))


@dataclass(frozen=True)
class DataQuery:
    """A panel query as sent by the query editor."""

    ref_id: str
    query_type: str = QUERY_TYPE_METRICS
    group: str = ""
    device: str = ""
    sensor: str = ""
    channel: str = ""
    property: str = ""
    include_group_name: bool = False
    include_device_name: bool = False
    include_sensor_name: bool = False


@dataclass
class Frame:
    """A named table of equally long columns, or an error."""

    ref_id: str
    name: str = ""
    fields: dict[str, list[Any]] = field(default_factory=dict)
    error: str | None = None


def to_json(value: Any) -> Any:
    """Convert records into JSON-ready structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return to_json(asdict(value))
    if isinstance(value, Mapping):
        return {str(key): to_json(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [to_json(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class PrtgDatasource:
    """One configured data source instance."""

    def __init__(
        self,
        settings: DataSourceSettings,
        client: PrtgClient | None = None,
    ) -> None:
        """Initialize the data source with its own client."""
        self.client = client or PrtgClient(settings)

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> PrtgDatasource:
        """Create a data source from raw host settings.

        Raises:
            ConfigurationError: If the settings are invalid.

        """
        return cls(load_settings(data))

    def dispose(self) -> None:
        """Release the HTTP session."""
        self.client.close()

    def check_health(self) -> HealthResult:
        """Check that the backend is reachable with the configured credentials.

        Missing credentials never get here, :func:`load_settings` rejects them.
        """
        try:
            status = self.client.get_status()
        except api.PrtgApiError as err:
            _LOGGER.warning("Health check failed: %s", err)
            return HealthResult(ok=False, message=f"Failed to get PRTG status: {err}")

        return HealthResult(
            ok=True,
            message=f"Data source is working. PRTG Version: {status.version}",
        )

    def call_resource(self, path: str) -> ResourceResponse:
        """Route a resource path such as ``groups`` or ``channels/1234``."""
        parts = path.strip("/").split("/")
        resource, argument = parts[0], (parts[1] if len(parts) > 1 else "")

        routes: dict[str, Callable[[], Any]] = {
            "groups": self.client.get_groups,
            "devices": self.client.get_devices,
            "sensors": self.client.get_sensors,
        }
        with_id: dict[str, Callable[[str], Any]] = {
            "channels": self.client.get_channels,
            "sensortree": self.client.get_sensor_tree,
            "sensordetails": self.client.get_sensor_details,
        }

        if resource in routes:
            return self._respond(routes[resource])
        if resource in with_id:
            if not argument:
                return ResourceResponse(400, {"error": "missing objid parameter"})
            return self._respond(lambda: with_id[resource](argument))
        return ResourceResponse(404, {"error": f"unknown resource: {resource}"})

    def _respond(self, call: Callable[[], Any]) -> ResourceResponse:
        try:
            result = call()
        except api.PrtgApiError as err:
            status, code = error_status(err)
            _LOGGER.debug("Resource call failed (%s): %s", code, err)
            return ResourceResponse(status, {"error": str(err), "code": code})
        return ResourceResponse(200, to_json(result))

    def query(self, query: DataQuery, start: Timestamp, end: Timestamp) -> Frame:
        """Run a panel query. Errors are reported on the returned frame."""
        try:
            if query.query_type == QUERY_TYPE_METRICS:
                return self._metrics_frame(query, start, end)
            if query.query_type in (QUERY_TYPE_TEXT, QUERY_TYPE_RAW):
                return self._property_frame(query)
        except api.PrtgApiError as err:
            _LOGGER.debug("Query %s failed: %s", query.ref_id, err)
            return Frame(ref_id=query.ref_id, error=str(err))

        error_msg = f"unknown query type: {query.query_type}"
        return Frame(ref_id=query.ref_id, error=error_msg)

    def _metrics_frame(
        self, query: DataQuery, start: Timestamp, end: Timestamp
    ) -> Frame:
        samples = self.client.get_historical_data(
            self._sensor_id(query.sensor), start, end, query.channel or None
        )
        channel = query.channel or samples[0].channel
        return Frame(
            ref_id=query.ref_id,
            name=self._frame_name(query, channel),
            fields={
                "Time": [sample.parsed_time for sample in samples],
                "Value": [sample.value for sample in samples],
            },
        )

    def _sensor_id(self, sensor: str) -> str:
        """Resolve a sensor given by name to its object id."""
        if not sensor or sensor.isdigit():
            return sensor
        for item in self.client.get_sensors():
            if item.name == sensor:
                return str(item.object_id)
        error_msg = f"No sensor matches '{sensor}'"
        raise api.EmptyResultError(error_msg)

    def _property_frame(self, query: DataQuery) -> Frame:
        if not query.property:
            error_msg = "Invalid query: missing property"
            raise api.InvalidQueryError(error_msg)

        item = self._selected_item(query)
        if query.query_type == QUERY_TYPE_RAW:
            value = item.raw_value(query.property)
        else:
            value = item.display_value(query.property)
        return Frame(
            ref_id=query.ref_id,
            name=self._frame_name(query, query.property),
            fields={"Time": [datetime.now(UTC)], "Value": [value]},
        )

    def _selected_item(self, query: DataQuery) -> ListItem:
        if query.sensor:
            items, wanted = self.client.get_sensors(), query.sensor
        elif query.device:
            items, wanted = self.client.get_devices(), query.device
        elif query.group:
            items, wanted = self.client.get_groups(), query.group
        else:
            error_msg = "Invalid query: select a group, device or sensor"
            raise api.InvalidQueryError(error_msg)

        for item in items:
            if str(item.object_id) == wanted or item.name == wanted:
                return item
        error_msg = f"No object matches '{wanted}'"
        raise api.EmptyResultError(error_msg)

    @staticmethod
    def _frame_name(query: DataQuery, suffix: str) -> str:
        parts = []
        if query.include_group_name and query.group:
            parts.append(query.group)
        if query.include_device_name and query.device:
            parts.append(query.device)
        if query.include_sensor_name and query.sensor:
            parts.append(query.sensor)
        parts.append(suffix)
        return " - ".join(part for part in parts if part)
