"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket and turns the TCP byte stream back into whole
HTTP requests. TCP keeps no message boundaries, so bytes are buffered until
a complete request is present:

    1. recv() until the header terminator \\r\\n\\r\\n shows up
    2. read Content-Length from the raw header block
         > max_request_size  →  413 before a single body byte is read
         Expect: 100-continue →  send "HTTP/1.1 100 Continue" first
    3. recv() until Content-Length body bytes are buffered
    4. cut the request off the buffer; leftovers belong to the next
       (pipelined) request on this keep-alive connection

Uploads are where this matters: browsers and curl send a multi-megabyte
cover image only after the headers, and curl waits for "100 Continue"
before sending any body at all.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                                      ▲          │
     │         └──────────────────────────────────────┼──────────┘
     └────────────────────────► CLOSING ──► CLOSED ◄──┘

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..http.request import HTTPParseError

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"
CONTINUE_RESPONSE = b"HTTP/1.1 100 Continue\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short id used in log lines.
        requests_handled: Requests served so far on this connection.
    """

    socket: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 65536
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers + body).

        Returns:
            The request bytes, or None when the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            HTTPParseError: 413 when the request is over max_request_size.
            TimeoutError: The first request did not arrive in time.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            # ─────────────────────────────────────────────────────────────
            # Headers
            # ─────────────────────────────────────────────────────────────
            while HEADER_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise HTTPParseError("Request headers too large", status_code=413)

            header_end = self._buffer.find(HEADER_TERMINATOR)
            header_block = self._buffer[:header_end]
            body_start = header_end + len(HEADER_TERMINATOR)

            content_length = self._parse_content_length(header_block)
            if body_start + content_length > self.max_request_size:
                raise HTTPParseError(
                    f"Request too large: {content_length} byte body", status_code=413
                )

            # ─────────────────────────────────────────────────────────────
            # Body
            # ─────────────────────────────────────────────────────────────
            missing = content_length - (len(self._buffer) - body_start)
            if missing > 0 and self._expects_continue(header_block):
                self.socket.sendall(CONTINUE_RESPONSE)

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            try:
                self.socket.settimeout(self.timeout)
            except OSError:
                pass

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.last_activity = time.time()
        return data

    @staticmethod
    def _header_lines(header_block: bytes):
        return header_block.decode("latin-1").lower().split("\r\n")[1:]

    def _parse_content_length(self, header_block: bytes) -> int:
        """
        Content-Length from the raw header block, 0 when absent.

        An unparseable value also yields 0 here; RequestParser rejects it
        with a 400 once the request is parsed properly.
        """
        for line in self._header_lines(header_block):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    def _expects_continue(self, header_block: bytes) -> bool:
        for line in self._header_lines(header_block):
            if line.startswith("expect:"):
                return line.split(":", 1)[1].strip() == "100-continue"
        return False

    def send_response(self, data: bytes) -> bool:
        """sendall() the response; False if the client has gone away."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.time()
        self.state = ConnectionState.KEEP_ALIVE
        return True

    def close(self) -> None:
        """Half-close, drain what the client still sends, then close."""
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
