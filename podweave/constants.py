"""
Constants and configuration for Podweave.

This module contains the defaults used throughout Podweave, on both the
streaming server side and the consumer side.

Constants are organized by category:
- Consumer buffers: Display/pending capacities
- Pod colors: Palette used to tell sources apart
- Wire protocol: Endpoint path, frame markers and generic messages
- Log following: Per-pod tail length and container selection
- WebSocket settings: Keepalive and handshake timeouts
- Logging: Default log levels
- Server defaults: Default host and port configurations
"""

# Consumer buffers
DEFAULT_BUFFER_CAPACITY = 1000

# Pod colors (first-seen order, wraps around once exhausted)
DEFAULT_PALETTE = (
    "blue",
    "purple",
    "pink",
    "cyan",
    "emerald",
    "amber",
    "rose",
    "indigo",
    "teal",
    "orange",
)

# Wire protocol
STREAM_PATH = "/api/v1/logs/stream"
ROSTER_FRAME_TYPE = "init"
ERROR_FRAME_PREFIX = "ERROR:"
CONNECTION_FAILED_MESSAGE = "WebSocket connection failed"
POLICY_VIOLATION_CLOSE_CODE = 1008

# Log following
DEFAULT_NAMESPACE = "default"
DEFAULT_TAIL_LINES = 50
RUNNING_PHASE = "Running"
FAN_IN_QUEUE_SIZE = 100
QUEUE_PUT_POLL_SECONDS = 0.5

# WebSocket and connection management
WEBSOCKET_PING_INTERVAL_SECONDS = 20.0
WEBSOCKET_PING_TIMEOUT_SECONDS = 10.0
WEBSOCKET_OPEN_TIMEOUT_SECONDS = 10.0

# Logging
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_UVICORN_LOG_LEVEL = "info"
LOG_FORMAT = '[%(asctime)s] %(levelname)s %(message)s'

# Server defaults
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080
DEFAULT_SERVER_URL = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"
