"""
Docker Client - image pulls through a Docker daemon
"""

import logging

from .context import Context
from .exceptions import AddressParseError
from .host import parse_host
from .http_client import DockerHTTPClient

logger = logging.getLogger(__name__)


class DockerClient:
    """
    Docker daemon client

    Holds only immutable configuration and a transport that opens a fresh
    connection per request, so one instance may be shared between threads.
    """

    def __init__(self, host: str, scheme: str = 'http', version: str = '',
                 registry: str = ''):
        """
        Initialize Docker client

        Args:
            host: Daemon address, tcp://host:port[/path] or unix:///path/to/socket
            scheme: URL scheme presented to the daemon (http or https)
            version: API version such as 1.24, empty for unversioned paths
            registry: Registry host prefixed to repository names on pull

        Raises:
            AddressParseError: host could not be parsed
        """
        try:
            transport, address, base_path = parse_host(host)
        except AddressParseError as e:
            raise type(e)(f"parse docker host `{host}`: {e}") from e

        self.version = version
        self.scheme = scheme
        self.address = address
        self.base_path = base_path
        self.registry = registry
        self.http = DockerHTTPClient(transport, address, base_path=base_path,
                                     scheme=scheme, version=version)

    def qualified_name(self, repository: str) -> str:
        """Repository name as sent to the daemon, prefixed with the registry"""
        return f"{self.registry}/{repository}"

    def image_pull(self, ctx: Context, repository: str, tag: str) -> str:
        """
        Pull an image from the configured registry

        Returns once the daemon has finished streaming pull progress.
        No retries are made here.

        Args:
            ctx: Cancellation context
            repository: Repository name without registry
            tag: Image tag

        Returns:
            The fromImage value sent to the daemon
        """
        from_image = self.qualified_name(repository)
        params = {
            'fromImage': from_image,
            'tag': tag,
        }
        headers = {'X-Registry-Auth': ''}
        logger.info("Pulling %s:%s", from_image, tag)
        self.http.post(ctx, '/images/create', params=params, headers=headers, drain=True)
        return from_image
