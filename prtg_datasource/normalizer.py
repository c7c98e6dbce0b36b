"""Normalization of decoded backend payloads.

This module maps the heterogeneous list, detail and historic payloads of
the monitoring backend into the uniform records defined in
:mod:`prtg_datasource.models`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from .api import DateParseError, DecodeError, EmptyResultError
from .const import DAY_FIRST_DATE_FORMAT, SNIPPET_LENGTH
from .models import (
    PAIRED_FIELDS,
    ChannelValue,
    HistoricSample,
    ItemKind,
    ListItem,
    SensorDetails,
    SensorTreeNode,
    StatusInfo,
)

_LOGGER = logging.getLogger(__name__)

RAW_SUFFIX = "_raw"
HISTORIC_META_FIELDS = frozenset(
    {"datetime", "datetime_raw", "coverage", "coverage_raw"}
)
TREE_NODE_KINDS = ("group", "probenode", "device", "sensor")

_NUMBER = re.compile(r"-?\d(?:[\d.,'\xa0]*\d)?")
_GROUPING = re.compile(r"['\xa0]")


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    return value if isinstance(value, list) else [value]


def _snippet(payload: Any) -> str:
    return repr(payload)[:SNIPPET_LENGTH]


# Raw counterparts that are numeric. All other raw fields stay strings.
RAW_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "active": _as_int,
    "datetime": _as_float,
    "priority": _as_int,
    "status": _as_int,
}


def extract_list_items(payload: Mapping[str, Any], kind: ItemKind) -> list[ListItem]:
    """Extract groups, devices or sensors from a table payload.

    Groups, devices and sensors share one record shape. Rows without a
    usable object id are skipped.

    Args:
        payload: Decoded table response.
        kind: Which listing the payload holds.

    Returns:
        List of ListItem objects. An empty listing is a valid empty result.

    """
    rows = payload.get(f"{kind.value}s", [])
    items = []
    for row in _as_list(rows):
        if not isinstance(row, Mapping):
            continue
        item = _list_item(kind, row)
        if item is None:
            _LOGGER.warning("Skipping %s without object id: %s", kind.value, row)
            continue
        items.append(item)
    _LOGGER.debug("Extracted %d %s items", len(items), kind.value)
    return items


def _list_item(kind: ItemKind, row: Mapping[str, Any]) -> ListItem | None:
    object_id = _as_int(row.get("objid_raw", row.get("objid")))
    if object_id is None:
        return None

    fields: dict[str, Any] = {}
    consumed = {"objid", "objid_raw", "name", "parentid", "parentid_raw"}
    for name in PAIRED_FIELDS:
        raw_name = f"{name}{RAW_SUFFIX}"
        fields[name] = row.get(name)
        convert = RAW_CONVERTERS.get(name, _as_str)
        fields[raw_name] = convert(row.get(raw_name))
        consumed.update((name, raw_name))

    display_name = row.get("name") or row.get(kind.value) or ""
    return ListItem(
        kind=kind,
        object_id=object_id,
        name=str(display_name),
        parent_id=_as_int(row.get("parentid_raw", row.get("parentid"))),
        extra={key: value for key, value in row.items() if key not in consumed},
        **fields,
    )


def item_to_payload(item: ListItem) -> dict[str, Any]:
    """Encode a ListItem back into the backend's row shape."""
    row: dict[str, Any] = {"objid": item.object_id, "name": item.name}
    if item.parent_id is not None:
        row["parentid"] = item.parent_id
    for name in PAIRED_FIELDS:
        display = getattr(item, name)
        raw = getattr(item, f"{name}{RAW_SUFFIX}")
        if display is not None:
            row[name] = display
        if raw is not None:
            row[f"{name}{RAW_SUFFIX}"] = raw
    row.update(item.extra)
    return row


def extract_status(payload: Mapping[str, Any]) -> StatusInfo:
    """Extract the server status.

    Keys are matched case-insensitively because server versions differ in
    capitalisation (``NewAlarms`` vs ``newalarms``).

    Raises:
        DecodeError: If the payload carries no version.

    """
    data = payload.get("status", payload)
    if not isinstance(data, Mapping):
        data = payload
    lowered = {str(key).lower(): value for key, value in data.items()}

    prtg_version = lowered.get("prtg-version", lowered.get("prtgversion"))
    version = lowered.get("version") or prtg_version
    if not version:
        error_msg = "Status response has no version"
        raise DecodeError(error_msg, _snippet(payload))

    return StatusInfo(
        version=str(version),
        prtg_version=_as_str(prtg_version),
        clock=_as_str(lowered.get("clock")),
        alarms=_as_str(lowered.get("alarms")),
        new_alarms=_as_str(lowered.get("newalarms")),
        up_sensors=_as_str(lowered.get("upsens")),
        warn_sensors=_as_str(lowered.get("warnsens")),
        paused_sensors=_as_str(lowered.get("pausedsens")),
        unusual_sensors=_as_str(lowered.get("unusualsens")),
        unknown_sensors=_as_str(lowered.get("unknownsens")),
        total_sensors=_as_int(lowered.get("totalsens")),
        raw=dict(data),
    )


def extract_channel_values(payload: Mapping[str, Any]) -> list[ChannelValue]:
    """Extract the last value of every channel of a sensor."""
    channels = []
    for row in _as_list(payload.get("channels")):
        if not isinstance(row, Mapping):
            continue
        object_id = _as_int(row.get("objid_raw", row.get("objid")))
        if object_id is None:
            continue
        channels.append(
            ChannelValue(
                object_id=object_id,
                name=str(row.get("name", "")),
                last_value=_as_str(row.get("lastvalue")),
                last_value_raw=_as_float(row.get("lastvalue_raw")),
            )
        )
    _LOGGER.debug("Extracted %d channels", len(channels))
    return channels


def parse_datetime(value: str) -> datetime:
    """Parse a backend datetime string.

    Accepted layouts, first match wins:
        ``DD.MM.YYYY HH:MM:SS`` (interpreted as UTC) and ISO 8601 with a
        UTC offset, e.g. ``2025-02-14T13:49:00+01:00``.

    Args:
        value: Datetime string from the backend.

    Returns:
        Timezone aware datetime.

    Raises:
        DateParseError: If no layout matches.

    """
    text = value.strip()
    try:
        return datetime.strptime(text, DAY_FIRST_DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as err:
        raise DateParseError(value) from err
    if parsed.tzinfo is None:
        raise DateParseError(value)
    return parsed


def _display_number(value: Any) -> float | None:
    number = _as_float(value)
    if number is not None or not isinstance(value, str):
        return number
    match = _NUMBER.search(value)
    if match is None:
        return None
    return _grouped_number(match.group(0))


def _grouped_number(text: str) -> float:
    """Parse a display number such as ``1.234,5`` or ``1,234.5``.

    The last separator is the decimal mark unless it occurs more than once,
    every other separator groups digits. A lone separator is always read as
    decimal mark, so ``1.234`` is 1.234 and not 1234. The raw value of a
    field is preferred wherever the backend sends one.
    """
    digits = _GROUPING.sub("", text)
    decimal = max(digits.rfind("."), digits.rfind(","))
    integer, fraction = digits, ""
    if decimal >= 0 and digits.count(digits[decimal]) == 1:
        integer, fraction = digits[:decimal], digits[decimal + 1 :]
    integer = integer.replace(".", "").replace(",", "")
    return float(f"{integer}.{fraction}" if fraction else integer)


def _channel_columns(row: Mapping[str, Any]) -> list[str]:
    return [
        key
        for key in row
        if key not in HISTORIC_META_FIELDS and not key.endswith(RAW_SUFFIX)
    ]


def _sample_values(row: Mapping[str, Any]) -> dict[str, float]:
    values: dict[str, float] = {}
    for key in _channel_columns(row):
        display = row[key]
        number = _as_float(row.get(f"{key}{RAW_SUFFIX}"))
        if number is None:
            number = _display_number(display)
        if number is not None:
            values[key] = number
    return values


def extract_historic_samples(
    payload: Mapping[str, Any],
    channel: str | None = None,
) -> list[HistoricSample]:
    """Extract historic samples in ascending time order.

    A sample whose datetime cannot be parsed is skipped. Buckets without a
    value for the selected channel are gaps and are skipped as well.

    Args:
        payload: Decoded historic data response.
        channel: Channel to report as ``value``. Defaults to the first
            channel column of the first bucket with a parsable datetime,
            so one response never mixes channels.

    Returns:
        List of HistoricSample objects, never empty.

    Raises:
        EmptyResultError: If the response holds no samples or no usable values.
        DateParseError: If every sample has an unparsable datetime.

    """
    rows = [
        row for row in _as_list(payload.get("histdata")) if isinstance(row, Mapping)
    ]
    if not rows:
        error_msg = "No data found for the given time range"
        raise EmptyResultError(error_msg)

    name = channel
    samples: list[HistoricSample] = []
    failures: list[DateParseError] = []
    for row in rows:
        timestamp = str(row.get("datetime", ""))
        try:
            parsed_time = parse_datetime(timestamp)
        except DateParseError as err:
            _LOGGER.warning("Skipping sample: %s", err)
            failures.append(err)
            continue

        if name is None:
            name = next(iter(_channel_columns(row)), None)
        values = _sample_values(row)
        if name is None or name not in values:
            continue
        samples.append(
            HistoricSample(
                timestamp=timestamp,
                parsed_time=parsed_time,
                value=values[name],
                channel=name,
                values=values,
            )
        )

    if len(failures) == len(rows):
        first = failures[0]
        error_msg = (
            f"Failed to parse time '{first.value}' "
            f"(all {len(rows)} samples unparsable)"
        )
        raise DateParseError(first.value, error_msg) from first

    if not samples:
        target = f"channel '{name}'" if name else "any channel"
        error_msg = f"No usable values for {target} in the given time range"
        raise EmptyResultError(error_msg)

    samples.sort(key=lambda sample: sample.parsed_time)
    _LOGGER.debug("Extracted %d historic samples", len(samples))
    return samples


def extract_sensor_details(payload: Mapping[str, Any]) -> SensorDetails:
    """Extract the sensor details object.

    Raises:
        DecodeError: If the payload has no sensor data.

    """
    data = payload.get("sensordata")
    if not isinstance(data, Mapping) or not data.get("name"):
        error_msg = "Sensor details response has no sensor data"
        raise DecodeError(error_msg, _snippet(payload))

    return SensorDetails(
        name=str(data["name"]),
        sensor_type=_as_str(data.get("sensortype")),
        interval=_as_str(data.get("interval")),
        probe_name=_as_str(data.get("probename")),
        parent_group_name=_as_str(data.get("parentgroupname")),
        parent_device_name=_as_str(data.get("parentdevicename")),
        parent_device_id=_as_str(data.get("parentdeviceid")),
        last_value=_as_str(data.get("lastvalue")),
        last_message=_as_str(data.get("lastmessage")),
        status_text=_as_str(data.get("statustext")),
        status_id=_as_str(data.get("statusid")),
        uptime=_as_str(data.get("uptime")),
        downtime=_as_str(data.get("downtime")),
        info=_as_str(data.get("info")),
    )


def extract_sensor_tree(payload: Mapping[str, Any]) -> list[SensorTreeNode]:
    """Extract the root nodes of a sensor tree.

    Raises:
        EmptyResultError: If the tree holds no nodes.

    """
    tree = payload.get("sensortree")
    if tree is None and isinstance(payload.get("prtg"), Mapping):
        tree = payload["prtg"].get("sensortree")

    nodes = tree.get("nodes") if isinstance(tree, Mapping) else None
    roots = _tree_nodes(nodes) if isinstance(nodes, Mapping) else []
    if not roots:
        error_msg = "Sensor tree response has no nodes"
        raise EmptyResultError(error_msg)
    return roots


def _tree_nodes(container: Mapping[str, Any]) -> list[SensorTreeNode]:
    nodes = []
    for kind in TREE_NODE_KINDS:
        for data in _as_list(container.get(kind)):
            if not isinstance(data, Mapping):
                continue
            object_id = _as_int(_first(data.get("id")))
            if object_id is None:
                continue
            nodes.append(
                SensorTreeNode(
                    kind=kind,
                    object_id=object_id,
                    name=str(_first(data.get("name")) or ""),
                    children=tuple(_tree_nodes(data)),
                )
            )
    return nodes
