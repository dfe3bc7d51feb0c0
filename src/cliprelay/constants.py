#!/usr/bin/env python3
"""Constants shared by the host and client roles.

These values define the wire contract (protocol version, default endpoint)
and the reconnection and logging limits of a session.
"""

# Protocol version announced by the host and expected by the client.
PROTOCOL_VERSION: str = "0"

# Loopback endpoint. Port 30001 sits below the Linux ephemeral range
# (32768-61000) so it is never taken by outgoing connections.
DEFAULT_ADDRESS: str = "127.0.0.1"
DEFAULT_PORT: int = 30001

# Loopback port on which the client accepts requests from local tools and
# relays them over its session.
DEFAULT_REQUEST_PORT: int = 30002

# Fixed delay in seconds before reconnecting after a disconnect.
RETRY_DELAY: float = 5.0

# Timeout in seconds for opening the outbound connection.
CONNECT_TIMEOUT: float = 5.0

# Timeout in seconds for the reply to a request issued on an active session.
REQUEST_TIMEOUT: float = 10.0

# One-shot requests keep retrying the connection for this many seconds,
# waiting REQUEST_RETRY_WAIT between attempts.
REQUEST_CONNECT_TIMEOUT: float = 3.0
REQUEST_RETRY_WAIT: float = 0.1

# Status sink ring buffer size and maximum message length.
MAX_LOG_ENTRIES: int = 20
MAX_LOG_MESSAGE_LENGTH: int = 80
