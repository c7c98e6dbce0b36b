"""Client facade for the PRTG monitoring backend.

Every query goes through the same pipeline: cache lookup, URL building,
a single-shot HTTP request, format detection and decoding, and
normalization into the records of :mod:`prtg_datasource.models`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar

import httpx

from . import api
from .cache import ResultCache, make_cache_key
from .const import ENDPOINT_DEFAULT_PARAMS
from .decoder import decode_response
from .interval import historic_params, validate_window
from .models import (
    ChannelValue,
    DataSourceSettings,
    Endpoint,
    HistoricSample,
    ItemKind,
    ListItem,
    QueryWindow,
    SensorDetails,
    SensorTreeNode,
    StatusInfo,
)
from .normalizer import (
    extract_channel_values,
    extract_historic_samples,
    extract_list_items,
    extract_sensor_details,
    extract_sensor_tree,
    extract_status,
)

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Timestamp = datetime | int | float


def to_datetime(value: Timestamp) -> datetime:
    """Convert epoch milliseconds to a local datetime, pass datetimes through."""
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(value / 1000)


def _require_id(value: str | int | None, what: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        error_msg = f"Invalid query: missing {what}"
        raise api.InvalidQueryError(error_msg)
    return text


class PrtgClient:
    """Query client for one monitoring backend.

    The client owns its HTTP session and result cache. It is safe to share
    between threads.
    """

    def __init__(
        self,
        settings: DataSourceSettings,
        *,
        session: httpx.Client | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Immutable data source settings.
            session: HTTP client to use instead of a newly created one.
            cache: Result cache to use instead of a newly created one.

        """
        self._settings = settings
        self._owns_session = session is None
        self._session = session or api.create_session_client(settings)
        self._cache = cache or ResultCache(settings.cache_time)

    @property
    def settings(self) -> DataSourceSettings:
        """Settings the client was created with."""
        return self._settings

    @property
    def cache(self) -> ResultCache:
        """Result cache of this client."""
        return self._cache

    def close(self) -> None:
        """Close the HTTP session if the client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> PrtgClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_status(self) -> StatusInfo:
        """Fetch the server status, including its version."""
        return self._query(Endpoint.STATUS, {}, extract_status)

    def get_groups(self) -> list[ListItem]:
        """Fetch all groups."""
        return self._query(
            Endpoint.GROUPS,
            {},
            lambda payload: extract_list_items(payload, ItemKind.GROUP),
        )

    def get_devices(self) -> list[ListItem]:
        """Fetch all devices."""
        return self._query(
            Endpoint.DEVICES,
            {},
            lambda payload: extract_list_items(payload, ItemKind.DEVICE),
        )

    def get_sensors(self) -> list[ListItem]:
        """Fetch all sensors."""
        return self._query(
            Endpoint.SENSORS,
            {},
            lambda payload: extract_list_items(payload, ItemKind.SENSOR),
        )

    def get_channels(self, object_id: str | int) -> list[ChannelValue]:
        """Fetch the channels and their last values for a sensor.

        Raises:
            InvalidQueryError: If the object id is empty.

        """
        object_id = _require_id(object_id, "object id")
        return self._query(
            Endpoint.CHANNEL_VALUES,
            {"id": object_id},
            extract_channel_values,
        )

    def get_historical_data(
        self,
        sensor_id: str | int,
        start: Timestamp,
        end: Timestamp,
        channel: str | None = None,
    ) -> list[HistoricSample]:
        """Fetch averaged historic samples of a sensor.

        The sensor id and the window are validated before any network call.
        The averaging interval is derived from the window length.

        Args:
            sensor_id: Sensor object id.
            start: Window start, a datetime or epoch milliseconds.
            end: Window end, a datetime or epoch milliseconds.
            channel: Channel to report as sample value, defaults to the first.

        Returns:
            Samples in ascending time order.

        Raises:
            InvalidQueryError: If the sensor id is empty or the window is invalid.
            EmptyResultError: If the backend returned no usable samples.
            DateParseError: If no sample had a parsable datetime.

        """
        sensor_id = _require_id(sensor_id, "sensor ID")
        window = QueryWindow(start=to_datetime(start), end=to_datetime(end))
        validate_window(window)

        params = historic_params(sensor_id, window, self._settings.interval_thresholds)
        key_extra = {"channel": channel} if channel else {}
        return self._query(
            Endpoint.HISTORIC_DATA,
            params,
            lambda payload: extract_historic_samples(payload, channel),
            key_extra=key_extra,
        )

    def get_sensor_tree(self, object_id: str | int = 0) -> list[SensorTreeNode]:
        """Fetch the sensor tree below an object, the root group by default."""
        object_id = _require_id(object_id, "object id")
        return self._query(Endpoint.SENSOR_TREE, {"id": object_id}, extract_sensor_tree)

    def get_sensor_details(self, sensor_id: str | int) -> SensorDetails:
        """Fetch the properties of a single sensor.

        Raises:
            InvalidQueryError: If the sensor id is empty.

        """
        sensor_id = _require_id(sensor_id, "sensor ID")
        return self._query(
            Endpoint.SENSOR_DETAILS,
            {"id": sensor_id},
            extract_sensor_details,
        )

    def _query(
        self,
        endpoint: Endpoint,
        params: Mapping[str, str],
        extract: Callable[[dict[str, Any]], T],
        key_extra: Mapping[str, str] | None = None,
    ) -> T:
        query = {**ENDPOINT_DEFAULT_PARAMS[endpoint], **params}
        key = make_cache_key(endpoint, {**query, **(key_extra or {})})
        return self._cache.get_or_fetch(
            key, lambda: self._fetch(endpoint, query, extract)
        )

    def _fetch(
        self,
        endpoint: Endpoint,
        query: Mapping[str, str],
        extract: Callable[[dict[str, Any]], T],
    ) -> T:
        url = api.build_url(
            self._settings.base_url,
            endpoint,
            self._settings.credentials,
            query,
        )
        body, headers = api.execute_request(
            self._session,
            url,
            self._settings.request_timeout,
        )
        payload = decode_response(body, headers)
        return extract(payload)
