"""PRTG data source.

Queries a PRTG network monitoring server for inventory and historic data
on behalf of a dashboard host.
"""

from .api import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    ConfigurationError,
    DateParseError,
    DecodeError,
    EmptyResultError,
    InvalidQueryError,
    InvalidURL,
    NetworkError,
    PrtgApiAuthError,
    PrtgApiError,
)
from .client import PrtgClient
from .config import load_settings
from .datasource import PrtgDatasource

__version__ = "1.0.0"

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "BackendError",
    "ConfigurationError",
    "DateParseError",
    "DecodeError",
    "EmptyResultError",
    "InvalidQueryError",
    "InvalidURL",
    "NetworkError",
    "PrtgApiAuthError",
    "PrtgApiError",
    "PrtgClient",
    "PrtgDatasource",
    "load_settings",
]
