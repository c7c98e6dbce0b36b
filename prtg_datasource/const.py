"""Constants for the PRTG data source.

This module contains all the constants used throughout the data source,
including API endpoints, default query parameters, configuration keys
and error codes.
"""

from .models import AggregationInterval, Endpoint

USER_AGENT = "prtg-datasource"

API_PATH = "api"
DEFAULT_SCHEME = "https"

DEFAULT_CACHE_TIME = 30.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
MAX_ROW_COUNT = "50000"

# Query parameters carrying credentials. They always win over caller params.
PARAM_API_TOKEN = "apitoken"
PARAM_USERNAME = "username"
PARAM_PASSWORD = "password"  # noqa: S105
PARAM_PASSHASH = "passhash"
AUTH_PARAMS = frozenset(
    {PARAM_API_TOKEN, PARAM_USERNAME, PARAM_PASSWORD, PARAM_PASSHASH}
)

LIST_COLUMNS = (
    "active,channel,datetime,device,group,message,objid,parentid,"
    "priority,sensor,status,tags"
)

ENDPOINT_PATHS: dict[Endpoint, str] = {
    Endpoint.STATUS: "status.json",
    Endpoint.GROUPS: "table.json",
    Endpoint.DEVICES: "table.json",
    Endpoint.SENSORS: "table.json",
    Endpoint.CHANNEL_VALUES: "table.json",
    Endpoint.HISTORIC_DATA: "historicdata.json",
    Endpoint.SENSOR_TREE: "table.json",
    Endpoint.SENSOR_DETAILS: "getsensordetails.json",
}

ENDPOINT_DEFAULT_PARAMS: dict[Endpoint, dict[str, str]] = {
    Endpoint.STATUS: {},
    Endpoint.GROUPS: {
        "content": "groups",
        "columns": LIST_COLUMNS,
        "count": MAX_ROW_COUNT,
    },
    Endpoint.DEVICES: {
        "content": "devices",
        "columns": LIST_COLUMNS,
        "count": MAX_ROW_COUNT,
    },
    Endpoint.SENSORS: {
        "content": "sensors",
        "columns": LIST_COLUMNS,
        "count": MAX_ROW_COUNT,
    },
    Endpoint.CHANNEL_VALUES: {
        "content": "channels",
        "columns": "objid,name,lastvalue_",
        "usecaption": "true",
        "count": MAX_ROW_COUNT,
    },
    Endpoint.HISTORIC_DATA: {
        "columns": "datetime,value_",
        "usecaption": "1",
        "count": MAX_ROW_COUNT,
    },
    Endpoint.SENSOR_TREE: {"content": "sensortree"},
    Endpoint.SENSOR_DETAILS: {},
}

ENDPOINT_REQUIRED_PARAMS: dict[Endpoint, frozenset[str]] = {
    Endpoint.STATUS: frozenset(),
    Endpoint.GROUPS: frozenset(),
    Endpoint.DEVICES: frozenset(),
    Endpoint.SENSORS: frozenset(),
    Endpoint.CHANNEL_VALUES: frozenset({"id"}),
    Endpoint.HISTORIC_DATA: frozenset({"id", "avg", "sdate", "edate"}),
    Endpoint.SENSOR_TREE: frozenset({"id"}),
    Endpoint.SENSOR_DETAILS: frozenset({"id"}),
}

# Window length in hours -> averaging interval. First matching upper bound wins.
DEFAULT_INTERVAL_THRESHOLDS: tuple[tuple[float, AggregationInterval], ...] = (
    (12, AggregationInterval.RAW),
    (36, AggregationInterval.ONE_MINUTE),
    (72, AggregationInterval.FIVE_MINUTES),
    (168, AggregationInterval.FIFTEEN_MINUTES),
    (336, AggregationInterval.THIRTY_MINUTES),
    (720, AggregationInterval.ONE_HOUR),
    (1440, AggregationInterval.TWO_HOURS),
    (2160, AggregationInterval.FOUR_HOURS),
)
FALLBACK_INTERVAL = AggregationInterval.ONE_DAY

API_DATE_FORMAT = "%Y-%m-%d-%H-%M-%S"
DAY_FIRST_DATE_FORMAT = "%d.%m.%Y %H:%M:%S"

# Content types the backend uses for XML payloads. text/html is a known mislabel.
XML_CONTENT_TYPES = ("text/xml", "text/html")
# The backend's XML serializer emits bare ampersands and HTML entities.
LENIENT_XML = True
SNIPPET_LENGTH = 200

CONF_HOST = "host"
CONF_API_TOKEN = "api_token"  # noqa: S105
CONF_USERNAME = "username"
CONF_PASSWORD = "password"  # noqa: S105
CONF_PASSHASH = "passhash"
CONF_CACHE_TIME = "cache_time"
CONF_REQUEST_TIMEOUT = "request_timeout"
CONF_ALLOW_SELF_SIGNED = "allow_self_signed"
CONF_INTERVAL_THRESHOLDS = "interval_thresholds"

QUERY_TYPE_METRICS = "metrics"
QUERY_TYPE_RAW = "raw"
QUERY_TYPE_TEXT = "text"

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_ACCESS_DENIED = "access_denied"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_INVALID_QUERY = "invalid_query"
ERROR_NO_DATA = "no_data"
ERROR_API_ERROR = "api_error"
ERROR_UNKNOWN = "unknown_error"
