import logging

# General
LOG_LEVEL = logging.INFO  # DEBUG adds pool creation and per-request status lines
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s'
LOG_FILE = None  # e.g. "httpbench.log"; stderr only when unset

# Client identity
VERSION = "0.1.0"
USER_AGENT = f"httpbench/{VERSION}"

# Request defaults
DEFAULT_METHOD = "GET"
DEFAULT_CONTENT_TYPE = "application/json"  # Sent whenever a body is present
DEFAULT_PORTS = {"http": 80, "https": 443}

# Transport
READ_CHUNK_SIZE = 16384
REQUEST_TIMEOUT_SECONDS = None  # None = wait forever, as the loop only checks bounds between requests

# Benchmark loop
PROGRESS_INTERVAL = 100  # Emit a progress line every N completed attempts
