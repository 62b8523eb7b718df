import io
import logging
import socket

from subfilter import exceptions
from subfilter.http import Flusher
from subfilter.http import Headers
from subfilter.http import Hijacker
from subfilter.http import ResponseSink

logger = logging.getLogger(__name__)


class ResponseCapture:
    """
    Wraps the real response sink and keeps everything the downstream handler
    writes in memory.

    Neither the status line nor the body reach the real sink until `commit`
    is called: the body length is unknown until the filters have run.
    Flushing and hijacking are the exceptions and go straight through.
    """

    def __init__(self, sink: ResponseSink, last_modified: bool = False):
        self.sink = sink
        self.last_modified = last_modified
        self.status_code: int | None = None
        self.wrote_header = False
        self.declared_encoding = ""
        self.hijacked = False
        self.buffer = io.BytesIO()

    @property
    def headers(self) -> Headers:
        return self.sink.headers

    def write_header(self, status_code: int) -> None:
        if self.wrote_header:
            logger.debug(
                f"Superfluous write_header({status_code}), keeping {self.status_code}."
            )
            return
        self.status_code = status_code
        self.wrote_header = True
        self.strip_headers()
        self.declared_encoding = self.headers.get("Content-Encoding", "")

    def strip_headers(self) -> None:
        # The body is about to change size, any length the backend announced is wrong.
        self.headers.pop("Content-Length", None)
        if not self.last_modified:
            self.headers.pop("Last-Modified", None)

    def write(self, data: bytes) -> int:
        if not self.wrote_header:
            self.write_header(200)
        return self.buffer.write(data)

    def getvalue(self) -> bytes:
        return self.buffer.getvalue()

    def flush(self) -> None:
        if isinstance(self.sink, Flusher):
            self.sink.flush()

    def hijack(self) -> tuple[socket.socket, io.BufferedRWPair]:
        if not isinstance(self.sink, Hijacker):
            raise exceptions.HijackError(
                f"{type(self.sink).__name__} does not support hijacking"
            )
        conn = self.sink.hijack()
        self.hijacked = True
        return conn

    def commit(self, content: bytes) -> None:
        """
        Send the recorded status, the headers and the final body to the real sink.
        """
        if not self.wrote_header:
            self.write_header(200)
        # Handlers may still touch the headers after write_header.
        self.strip_headers()
        self.sink.write_header(self.status_code)
        self.sink.write(content)
