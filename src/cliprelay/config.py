"""Runtime configuration for cliprelay.

RelayConfig collects the CLI options. The channel is unauthenticated, so
only loopback addresses are accepted.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from cliprelay.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_PORT,
    DEFAULT_REQUEST_PORT,
    RETRY_DELAY,
)


class ConfigError(ValueError):
    """An option value is not acceptable."""


def validate_address(address: str) -> str:
    """Return address if it is a loopback address.

    Args:
        address: "localhost" or an IPv4/IPv6 literal.

    Raises:
        ConfigError: If address is not a loopback address.
    """
    if address == "localhost":
        return address
    try:
        ip = ipaddress.ip_address(address)
    except ValueError as e:
        raise ConfigError(f"{address!r} is not an IP address") from e
    if not ip.is_loopback:
        raise ConfigError(f"{address} is not a loopback address")
    return address


def validate_port(port: int) -> int:
    if not 0 < port < 65536:
        raise ConfigError(f"Port {port} is out of range 1-65535")
    return port


@dataclass(frozen=True)
class RelayConfig:
    """Settings for one cliprelay process.

    Attributes:
        address: Loopback address to listen on or connect to.
        port: TCP port.
        retry_delay: Seconds before the client reconnects.
        per_request: Host closes each connection after one request.
        verbose: DEBUG-level logging.
        request_port: Port of the client's local request endpoint, or
            None to run the client without one.
    """

    address: str = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT
    retry_delay: float = RETRY_DELAY
    per_request: bool = False
    verbose: bool = False
    request_port: int | None = DEFAULT_REQUEST_PORT

    def __post_init__(self) -> None:
        validate_address(self.address)
        validate_port(self.port)
        if self.request_port is not None:
            validate_port(self.request_port)
            if self.request_port == self.port:
                raise ConfigError("Request port must differ from the host port")
        if self.retry_delay <= 0:
            raise ConfigError("Retry delay must be positive")
