"""
Docker daemon client exceptions
"""


class DockerException(Exception):
    """Base Docker daemon client exception"""
    pass


class AddressParseError(DockerException):
    """Daemon address could not be resolved into a transport"""
    pass


class InvalidAddress(AddressParseError):
    """Address is not of the form scheme://target"""
    pass


class UnsupportedProtocol(AddressParseError):
    """Address scheme is neither tcp nor unix"""
    pass


class SocketPathTooLong(AddressParseError):
    """Unix socket path does not fit in sockaddr_un"""
    pass


class RequestConstructionError(DockerException):
    """Outgoing request could not be built"""
    pass


class TransportError(DockerException):
    """Connection or send failure"""
    pass


class RequestCancelled(TransportError):
    """Call aborted because its context was cancelled"""
    pass


class DeadlineExceeded(RequestCancelled):
    """Call aborted because its context deadline passed"""
    pass


class APIError(DockerException):
    """Daemon answered with a non-200 status"""

    def __init__(self, message, path=None, status_code=None, explanation=None):
        super().__init__(message)
        self.path = path
        self.status_code = status_code
        self.explanation = explanation


class ResponseReadError(DockerException):
    """Response body could not be read"""
    pass
