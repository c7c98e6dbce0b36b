"""
Configuration loading for the PRTG data source.

This module validates the settings the host hands over when it creates a
data source instance and turns them into an immutable
:class:`~prtg_datasource.models.DataSourceSettings`.
"""

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol

from .api import ConfigurationError
from .const import (
    CONF_ALLOW_SELF_SIGNED,
    CONF_API_TOKEN,
    CONF_CACHE_TIME,
    CONF_HOST,
    CONF_INTERVAL_THRESHOLDS,
    CONF_PASSHASH,
    CONF_PASSWORD,
    CONF_REQUEST_TIMEOUT,
    CONF_USERNAME,
    DEFAULT_CACHE_TIME,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SCHEME,
)
from .interval import validate_thresholds
from .models import Credentials, DataSourceSettings

_LOGGER = logging.getLogger(__name__)


def normalize_host(value: Any) -> str:
    """
    Turn a host name or URL into a base URL.

    Args:
        value: Host as entered by the operator, with or without scheme.

    Returns:
        Base URL without trailing slash.

    Raises:
        vol.Invalid: If the value is empty.

    """
    host = str(value or "").strip().rstrip("/")
    if not host:
        error_msg = "host must not be empty"
        raise vol.Invalid(error_msg)
    if "://" not in host:
        host = f"{DEFAULT_SCHEME}://{host}"
    return host


def cache_time(value: float | str | None) -> float:
    """Coerce the cache time, mapping unset or non-positive values to the default."""
    seconds = 0.0 if value in (None, "") else value
    return seconds if seconds > 0 else DEFAULT_CACHE_TIME


def interval_thresholds(value: Any) -> Any:
    """Validate an interval policy given as ``[[max_hours, seconds], ...]``."""
    try:
        return validate_thresholds(tuple(pair) for pair in value)
    except (TypeError, ValueError) as err:
        raise vol.Invalid(str(err)) from err


_optional_str = vol.Any(None, vol.All(str, vol.Strip))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_HOST): normalize_host,
        vol.Optional(CONF_API_TOKEN): _optional_str,
        vol.Optional(CONF_USERNAME): _optional_str,
        vol.Optional(CONF_PASSWORD): _optional_str,
        vol.Optional(CONF_PASSHASH): _optional_str,
        vol.Optional(CONF_CACHE_TIME, default=DEFAULT_CACHE_TIME): vol.All(
            vol.Any(None, "", vol.Coerce(float)), cache_time
        ),
        vol.Optional(CONF_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_ALLOW_SELF_SIGNED, default=False): vol.Boolean(),
        vol.Optional(CONF_INTERVAL_THRESHOLDS): vol.Any(None, interval_thresholds),
    },
    extra=vol.REMOVE_EXTRA,
)


def load_settings(data: Mapping[str, Any]) -> DataSourceSettings:
    """
    Validate host supplied settings.

    Args:
        data: Raw settings mapping.

    Returns:
        Immutable data source settings.

    Raises:
        ConfigurationError: If a setting is missing or invalid.

    """
    try:
        config = CONFIG_SCHEMA(dict(data))
    except vol.Invalid as err:
        error_msg = f"Invalid setting '{_path(err)}': {err.msg}"
        _LOGGER.warning(error_msg)
        raise ConfigurationError(error_msg) from err

    try:
        credentials = Credentials(
            api_token=config.get(CONF_API_TOKEN) or None,
            username=config.get(CONF_USERNAME) or None,
            password=config.get(CONF_PASSWORD) or None,
            passhash=config.get(CONF_PASSHASH) or None,
        )
    except ValueError as err:
        error_msg = f"Invalid credentials: {err}"
        _LOGGER.warning(error_msg)
        raise ConfigurationError(error_msg) from err

    return DataSourceSettings(
        base_url=config[CONF_HOST],
        credentials=credentials,
        cache_time=config[CONF_CACHE_TIME],
        request_timeout=config[CONF_REQUEST_TIMEOUT],
        allow_self_signed=config[CONF_ALLOW_SELF_SIGNED],
        interval_thresholds=config.get(CONF_INTERVAL_THRESHOLDS),
    )


def _path(err: vol.Invalid) -> str:
    return ".".join(str(part) for part in err.path) or "?"
