"""Common configuration constants used across the application."""

# Container runtime
MINER_IMAGE = "cesslab/cess-miner"
"""Image name fragment identifying storage miner containers"""

MINER_WORKDIR = "/opt/miner/"
"""Working directory of the miner process inside its container"""

MINER_CONFIG_COMMAND = ["cat", "config.yaml"]
"""Command executed in a miner container to read its configuration"""

STREAM_HEADER_SIZE = 8
"""Size of the Docker stdout/stderr multiplexing header in bytes"""

# Chain
BLOCK_INTERVAL = 6
"""Average block generation interval in seconds"""

BLOCK_POLL_INTERVAL = BLOCK_INTERVAL / 2
"""Delay between two chain head queries of the block window poller"""

TOKEN_DECIMALS = 18
"""On-chain monetary amounts are integers scaled by 10^18"""

CESS_SS58_FORMAT = 11330
"""SS58 address prefix of the CESS network"""

LOCAL_RPC_URL = "ws://127.0.0.1:9944"
"""Chain RPC tried first (a node co-located with the watchdog)"""

DEFAULT_RPC_URL = "wss://testnet-rpc.cess.network"
"""Public chain RPC used when no local node answers"""

POSITIVE_STATUS = "positive"
"""Healthy miner state on chain"""

STATUS_GRACE_PERIOD = 3600
"""Seconds a new container may stay non-positive before it is alerted on"""

# Storage size units
SIZE_KIB = 1024
SIZE_MIB = 1024 * SIZE_KIB
SIZE_GIB = 1024 * SIZE_MIB
SIZE_TIB = 1024 * SIZE_GIB
SIZE_PIB = 1024 * SIZE_TIB
SIZE_EIB = 1024 * SIZE_PIB

# Monitoring cycle
JITTER_MIN_SECONDS = 1
JITTER_MAX_SECONDS = 10
"""Random delay bounds applied before cycles and chain queries"""

ERROR_QUEUE_SIZE = 100
"""Capacity of the per-cycle error queue"""

MIN_SCRAPE_INTERVAL = 1800
MAX_SCRAPE_INTERVAL = 3600
"""Allowed range of the configured scrape interval in seconds"""

# Hot reload
RELOAD_POLL_INTERVAL = 6.0
"""Seconds between two quiescence checks during a reload"""

RELOAD_MAX_ATTEMPTS = 600
"""Quiescence checks before a reload gives up (~1 hour)"""

MAX_RELOAD_TIMEOUT = 3600.0
"""Upper bound of the default reload deadline in seconds"""

# HTTP and alerting
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

WEBHOOK_MAX_RETRIES = 3
"""Attempts per webhook delivery"""

WEBHOOK_RETRY_DELAY = 5.0
"""Fixed delay between two webhook attempts in seconds"""

MAX_RETRIES = 5
"""Default maximum number of retry attempts"""

RETRY_BASE_DELAY = 1.0
"""Base delay for retries in seconds"""

RETRY_MAX_DELAY = 60.0
"""Maximum delay between retries in seconds"""

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
"""Format of alert timestamps"""

ALERT_TITLE = "CESS Watchdog Alert"

SCAN_ACCOUNT_URL = "https://scan.cess.network/account/"
SCAN_BLOCK_URL = "https://scan.cess.network/block/"

# Configuration
DEFAULT_CONFIG_PATH = "/opt/cess/watchdog/config.yaml"
"""Location of the YAML configuration file"""

DEFAULT_SERVER_PORT = 13081
"""Port of the administration API"""

DEFAULT_USERNAME = "cess"
DEFAULT_PASSWORD = "Cess123456"  # noqa: S105
MAX_TOKEN_EXPIRY_HOURS = 24

REDACTED = "******"


__all__ = [
    "ALERT_TITLE",
    "BLOCK_INTERVAL",
    "BLOCK_POLL_INTERVAL",
    "CESS_SS58_FORMAT",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_PASSWORD",
    "DEFAULT_RPC_URL",
    "DEFAULT_SERVER_PORT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_USERNAME",
    "ERROR_QUEUE_SIZE",
    "JITTER_MAX_SECONDS",
    "JITTER_MIN_SECONDS",
    "LOCAL_RPC_URL",
    "MAX_RELOAD_TIMEOUT",
    "MAX_RETRIES",
    "MAX_SCRAPE_INTERVAL",
    "MAX_TOKEN_EXPIRY_HOURS",
    "MINER_CONFIG_COMMAND",
    "MINER_IMAGE",
    "MINER_WORKDIR",
    "MIN_SCRAPE_INTERVAL",
    "POSITIVE_STATUS",
    "REDACTED",
    "RELOAD_MAX_ATTEMPTS",
    "RELOAD_POLL_INTERVAL",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    "SCAN_ACCOUNT_URL",
    "SCAN_BLOCK_URL",
    "SIZE_EIB",
    "SIZE_GIB",
    "SIZE_KIB",
    "SIZE_MIB",
    "SIZE_PIB",
    "SIZE_TIB",
    "STATUS_GRACE_PERIOD",
    "STREAM_HEADER_SIZE",
    "TIME_FORMAT",
    "TOKEN_DECIMALS",
    "WEBHOOK_MAX_RETRIES",
    "WEBHOOK_RETRY_DELAY",
]
