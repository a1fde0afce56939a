"""
Constants and configuration defaults for Kubestern.

This module contains all the default values and tunables used throughout the
Kubestern application, including discovery intervals, color generation bounds,
reconnection limits and config file locations.

Constants are organized by category:
- Discovery: Pod selection and refresh defaults
- Log reads: Defaults for the following log read parameters
- Colors: Palette generation defaults and value bounds
- Stream workers: Reconnection and cancellation timeouts
- Logging: Default log levels and environment variables
- Config file: Location of the optional JSON config file
"""

# Discovery
DEFAULT_POD_SEARCH = ".+"
DEFAULT_LOOP_PAUSE_SECONDS = 2.0
MIN_LOOP_PAUSE_SECONDS = 0.1
RUNNING_PHASE = "Running"
DEFAULT_NAMESPACE = "default"

# Log reads
DEFAULT_SINCE_SECONDS = 0
DEFAULT_TAIL_LINES = 0
CONNECT_TIMEOUT_SECONDS = 10
DISCOVERY_TIMEOUT_SECONDS = 30
INCLUSTER_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

# Colors
DEFAULT_HUE_INTERVALS = ("0-359",)
DEFAULT_COLOR_CYCLE_LEN = 0
DEFAULT_COLOR_SATURATION = 100
DEFAULT_COLOR_LIGHTNESS = 50
DEFAULT_DEFAULT_COLOR = "0,0,100"
HUE_MIN = 0
HUE_MAX = 359
PERCENT_MIN = 0
PERCENT_MAX = 100

# Stream workers
MAX_RECONNECT_ATTEMPTS = 3
RECONNECT_DELAY_SECONDS = 1.0
WORKER_STOP_TIMEOUT_SECONDS = 5.0

# Output
COLOR_MODES = ("auto", "always", "never")
DEFAULT_COLOR_MODE = "auto"

# Logging
DEFAULT_LOG_LEVEL = "WARNING"
LOG_LEVEL_ENV = "KUBESTERN_LOG_LEVEL"

# Config file
CONFIG_DIR_NAME = ".kubestern"
CONFIG_FILE_NAME = "config"
CONFIG_PATH_ENV = "KUBESTERN_CONFIG"

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
