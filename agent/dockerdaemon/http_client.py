"""
HTTP request executor for the Docker daemon
Versioned POSTs over a resolved transport, using http.client and socket
"""

import http.client
import json
import logging
import socket
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlunsplit

from .context import Context
from .exceptions import (
    APIError,
    DeadlineExceeded,
    RequestConstructionError,
    ResponseReadError,
    TransportError,
)
from .host import Transport

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024


class DockerHTTPClient:
    """HTTP client for Docker daemon"""

    def __init__(self, transport: Transport, address: str, base_path: str = '',
                 scheme: str = 'http', version: str = ''):
        """
        Initialize Docker HTTP client

        Args:
            transport: Resolved TCP or Unix transport
            address: Effective host placed in request URLs
            base_path: Prefix applied to every request path
            scheme: URL scheme presented to the daemon
            version: API version, empty for unversioned paths
        """
        self.transport = transport
        self.address = address
        self.base_path = base_path
        self.scheme = scheme
        self.version = version

    def api_path(self, path: str) -> str:
        """Prefix an operation path with base path and version segment"""
        if not self.version:
            return f"{self.base_path}{path}"
        version = self.version[1:] if self.version.startswith('v') else self.version
        return f"{self.base_path}/v{version}{path}"

    def url(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Full request URL as presented to the daemon"""
        query = urlencode(sorted(params.items())) if params else ''
        return urlunsplit((self.scheme, self.address, self.api_path(path), query, ''))

    def request(self, ctx: Context, method: str, path: str,
                params: Optional[Dict[str, Any]] = None,
                headers: Optional[Dict[str, str]] = None,
                data: Optional[bytes] = None, drain: bool = False):
        """
        Make HTTP request to Docker daemon

        The daemon acknowledges some operations (image pulls among them) with
        200 before the work is done and keeps streaming progress afterwards.
        For those the caller passes drain=True and the call only returns once
        the stream has been read to EOF.

        Args:
            ctx: Cancellation context for this call
            method: HTTP method
            path: Operation path, e.g. /images/create
            params: URL query parameters
            headers: HTTP headers
            data: Raw request body (defaults to empty)
            drain: Read the response body to EOF before returning

        Raises:
            RequestCancelled: ctx was cancelled or its deadline passed
            TransportError: Connection or send failure
            RequestConstructionError: Request could not be built
            APIError: Daemon answered with a non-200 status
            ResponseReadError: Error body or drained stream could not be read
        """
        err = ctx.err()
        if err is not None:
            raise err

        target = self.api_path(path)
        if params:
            target = f"{target}?{urlencode(sorted(params.items()))}"

        req_headers = dict(headers or {})
        req_headers['Host'] = 'docker'
        if self.transport.disable_compression:
            req_headers['Accept-Encoding'] = 'identity'

        body = b'' if data is None else data

        logger.debug("%s %s", method, self.url(path, params))

        conn = self.transport.new_connection(self.scheme, timeout=self._timeout(ctx))
        # the response may outlive conn.sock, so keep our own reference
        dialed = []

        def abort():
            conn.aborted.set()
            for sock in dialed:
                try:
                    sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    # already closed
                    pass

        ctx.add_cancel_callback(abort)
        response = None
        try:
            try:
                conn.connect()
            except OSError as e:
                raise self._transport_error(ctx, f"send post request: {e}") from e

            sock = conn.sock
            dialed.append(sock)
            # cancelled after the dial finished but before sock was recorded
            err = ctx.err()
            if err is not None:
                raise err

            try:
                sock.settimeout(self._timeout(ctx))
                conn.request(method, target, body=body, headers=req_headers)
                response = conn.getresponse()
            except ValueError as e:
                raise RequestConstructionError(f"create request: {e}") from e
            except (OSError, http.client.HTTPException) as e:
                raise self._transport_error(ctx, f"send post request: {e}") from e

            if response.status != 200:
                error_body = self._read(ctx, sock, response, None, 'read error resp')
                explanation = self._explanation(error_body)
                logger.warning("Docker daemon returned %d for %s: %s",
                               response.status, path, explanation)
                raise APIError(
                    f"Error posting to {path}: code {response.status}, err: {explanation}",
                    path=path,
                    status_code=response.status,
                    explanation=explanation
                )

            if drain:
                total = self._drain(ctx, sock, response)
                logger.debug("Drained %d bytes from %s", total, path)

        finally:
            ctx.remove_cancel_callback(abort)
            if response is not None:
                response.close()
            conn.close()

    def post(self, ctx: Context, path: str, **kwargs):
        """Make POST request"""
        return self.request(ctx, 'POST', path, **kwargs)

    def _drain(self, ctx: Context, sock, response: http.client.HTTPResponse) -> int:
        """Read the response stream to EOF, discarding it"""
        total = 0
        # A Connection: close response closes the socket itself once the body is done
        while not response.isclosed():
            chunk = self._read(ctx, sock, response, CHUNK_SIZE, 'read resp body')
            if not chunk:
                break
            total += len(chunk)

        # A cancelled close-delimited stream ends like a complete one
        if ctx.cancelled:
            raise ctx.err()
        # read(amt) returns b'' on a short Content-Length body instead of raising
        if response.length:
            raise ResponseReadError(
                f"read resp body: unexpected EOF, {response.length} bytes missing"
            )
        return total

    def _read(self, ctx: Context, sock, response: http.client.HTTPResponse,
              amt: Optional[int], what: str) -> bytes:
        timeout = self._timeout(ctx)
        try:
            if sock.fileno() != -1:
                sock.settimeout(timeout)
            return response.read(amt)
        except (OSError, http.client.HTTPException) as e:
            err = ctx.err()
            if err is not None:
                raise err from e
            raise ResponseReadError(f"{what}: {e}") from e

    @staticmethod
    def _timeout(ctx: Context) -> Optional[float]:
        """Socket timeout for the next blocking step"""
        remaining = ctx.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceeded("context deadline exceeded")
        return remaining

    @staticmethod
    def _transport_error(ctx: Context, message: str) -> TransportError:
        err = ctx.err()
        if err is not None:
            return err
        return TransportError(message)

    @staticmethod
    def _explanation(error_body: bytes) -> str:
        """Daemon error message: JSON 'message' field or the raw body"""
        text = error_body.decode('utf-8', errors='replace').strip()
        try:
            error_data = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(error_data, dict) and 'message' in error_data:
            return str(error_data['message'])
        return text
