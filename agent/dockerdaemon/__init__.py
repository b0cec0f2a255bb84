"""
Docker daemon client - triggers image pulls over a Unix socket or TCP
Pure Python implementation without external dependencies
"""

from .client import DockerClient
from .context import Context
from .exceptions import (
    DockerException,
    AddressParseError,
    InvalidAddress,
    UnsupportedProtocol,
    SocketPathTooLong,
    RequestConstructionError,
    TransportError,
    RequestCancelled,
    DeadlineExceeded,
    APIError,
    ResponseReadError
)
from .host import parse_host

__all__ = [
    'DockerClient',
    'Context',
    'parse_host',
    'DockerException',
    'AddressParseError',
    'InvalidAddress',
    'UnsupportedProtocol',
    'SocketPathTooLong',
    'RequestConstructionError',
    'TransportError',
    'RequestCancelled',
    'DeadlineExceeded',
    'APIError',
    'ResponseReadError'
]

__version__ = '1.0.0'
