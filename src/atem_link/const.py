import os


__all__ = [
    "ATEM_AUTO_RECONNECT",
    "ATEM_DEBUG",
    "ATEM_LOG_CORRELATION_ENABLED",
    "ATEM_LOG_FORMAT",
    "ATEM_LOG_HUMAN_OUTPUT",
    "ATEM_LOG_JSON_FILE",
    "ATEM_METRICS_ENABLED",
    "ATEM_METRICS_PORT",
    "ATEM_PORT",
    "ATEM_RAW",
    "RAW_MSG",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")


# Switchers listen for control traffic on a fixed UDP port
_port = os.environ.get("ATEM_PORT", "9910")
try:
    _port_value: int = int(_port) if _port else 9910
except ValueError:
    _port_value = 9910
ATEM_PORT: int = _port_value

ATEM_RAW = os.environ.get("ATEM_RAW_DEBUG", "0").casefold() in YES_ANSWER
ATEM_DEBUG = os.environ.get("ATEM_DEBUG", "0").casefold() in YES_ANSWER
RAW_MSG = " Set the ATEM_RAW_DEBUG env var to 1 to see the data" if ATEM_RAW is False else ""

ATEM_AUTO_RECONNECT: bool = os.environ.get("ATEM_AUTO_RECONNECT", "true").casefold() in YES_ANSWER

# Metrics Configuration
ATEM_METRICS_ENABLED: bool = os.environ.get("ATEM_METRICS_ENABLED", "false").casefold() in YES_ANSWER
_metrics_port = os.environ.get("ATEM_METRICS_PORT", "9410")
try:
    _metrics_port_value: int = int(_metrics_port) if _metrics_port else 9410
except ValueError:
    _metrics_port_value = 9410
ATEM_METRICS_PORT: int = _metrics_port_value

# Logging Configuration
ATEM_LOG_FORMAT: str = os.environ.get("ATEM_LOG_FORMAT", "human")  # "json", "human", or "both"
_json_file = os.environ.get("ATEM_LOG_JSON_FILE")
ATEM_LOG_JSON_FILE: str | None = _json_file if _json_file else None
ATEM_LOG_HUMAN_OUTPUT: str = os.environ.get("ATEM_LOG_HUMAN_OUTPUT", "stderr")  # "stdout", "stderr", or file path
ATEM_LOG_CORRELATION_ENABLED: bool = os.environ.get("ATEM_LOG_CORRELATION_ENABLED", "true").casefold() in YES_ANSWER
