"""Response decoding for the PRTG monitoring backend.

The backend answers with JSON or XML depending on the endpoint and the
server version, and some deployments label XML as ``text/html``. The
decoding strategy is chosen once per response from its content type.
Both strategies produce the same dictionary shape so the normalizer does
not need to know which format was received.
"""

from __future__ import annotations

import html.entities
import json
import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from typing import Any

from .api import DecodeError
from .const import LENIENT_XML, SNIPPET_LENGTH, XML_CONTENT_TYPES

_LOGGER = logging.getLogger(__name__)

Decoder = Callable[[bytes], dict[str, Any]]

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)
_ENTITY = re.compile(r"&(#[0-9]+;|#x[0-9a-fA-F]+;|[A-Za-z][A-Za-z0-9]*;)?")
_XML_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})
_CHANNEL_ELEMENTS = ("value", "value_raw")
_ITEM_TAG = "item"
_TABLE_TAGS = ("histdata", "groups", "devices", "sensors", "channels")


def is_content_xml(headers: Mapping[str, str]) -> bool:
    """Check if the content type announces XML (or mislabelled HTML).

    Args:
        headers: Response headers.

    Returns:
        True for ``text/xml`` and ``text/html`` content types.

    """
    content_type = next(
        (value for key, value in headers.items() if key.lower() == "content-type"),
        "",
    )
    content_type = content_type.strip().lower()
    return content_type.startswith(XML_CONTENT_TYPES)


def select_decoder(headers: Mapping[str, str]) -> Decoder:
    """Return the decoding strategy for a response."""
    return decode_xml if is_content_xml(headers) else decode_json


def decode_response(body: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
    """Decode a response body into a dictionary.

    Args:
        body: Raw response body.
        headers: Response headers.

    Returns:
        The decoded payload.

    Raises:
        DecodeError: If the body cannot be decoded.

    """
    return select_decoder(headers)(body)


def _snippet(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace").strip()
    if len(text) > SNIPPET_LENGTH:
        return text[:SNIPPET_LENGTH] + "..."
    return text


def decode_json(body: bytes) -> dict[str, Any]:
    """Decode a strict JSON body.

    Raises:
        DecodeError: If the body is not a JSON object.

    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        error_msg = "Failed to decode JSON response"
        _LOGGER.debug("%s: %s", error_msg, err)
        raise DecodeError(error_msg, _snippet(body)) from err

    if not isinstance(data, dict):
        error_msg = "Unexpected JSON document, expected an object"
        raise DecodeError(error_msg, _snippet(body))
    return data


def decode_xml(body: bytes) -> dict[str, Any]:
    """Decode an XML body into the same shape as the JSON payloads.

    Tables and historic data arrive as a root element holding ``<item>``
    rows. The rows are returned under the root tag name, e.g.
    ``{"sensors": [...]}``, together with the root's scalar children such as
    ``prtg-version``. Any other document is returned as nested dictionaries
    keyed by the root tag.

    Raises:
        DecodeError: If the body is not parsable XML.

    """
    text = body.decode("utf-8", errors="replace")
    if LENIENT_XML:
        text = sanitize_xml(text)

    try:
        root = ET.fromstring(text)  # noqa: S314
    except ET.ParseError as err:
        error_msg = "Failed to decode XML response"
        _LOGGER.debug("%s: %s", error_msg, err)
        raise DecodeError(error_msg, _snippet(body)) from err

    items = root.findall(_ITEM_TAG)
    if items or root.tag in _TABLE_TAGS:
        payload: dict[str, Any] = {
            child.tag: _element_value(child)
            for child in root
            if child.tag != _ITEM_TAG
        }
        payload.update(root.attrib)
        payload[root.tag] = [_element_value(item) for item in items]
        return payload

    return {root.tag: _element_value(root)}


def sanitize_xml(text: str) -> str:
    """Repair the backend's XML so a strict parser accepts it.

    Drops the XML declaration, escapes bare ampersands and replaces HTML
    named entities with numeric character references.
    """
    text = _XML_DECLARATION.sub("", text.lstrip("\ufeff")).strip()
    return _ENTITY.sub(_replace_entity, text)


def _replace_entity(match: re.Match[str]) -> str:
    reference = match.group(1)
    if reference is None:
        return "&amp;"
    if reference.startswith("#"):
        return match.group(0)
    name = reference[:-1]
    if name in _XML_ENTITIES:
        return match.group(0)
    codepoint = html.entities.name2codepoint.get(name)
    if codepoint is None:
        return f"&amp;{reference}"
    return f"&#{codepoint};"


def _element_value(element: ET.Element) -> Any:
    children = list(element)
    if not children:
        text = (element.text or "").strip()
        if element.attrib:
            return {**element.attrib, "text": text} if text else dict(element.attrib)
        return text

    grouped: dict[str, list[Any]] = {}
    for child in children:
        key, value = _child_entry(child)
        grouped.setdefault(key, []).append(value)

    result: dict[str, Any] = dict(element.attrib)
    for key, values in grouped.items():
        result[key] = values[0] if len(values) == 1 else values
    return result


def _child_entry(child: ET.Element) -> tuple[str, Any]:
    # <value channel="Ping Time">12 msec</value> becomes {"Ping Time": "12 msec"}
    channel = child.attrib.get("channel")
    if child.tag in _CHANNEL_ELEMENTS and channel:
        key = f"{channel}_raw" if child.tag == "value_raw" else channel
        return key, (child.text or "").strip()
    return child.tag, _element_value(child)
