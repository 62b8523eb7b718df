"""
Run the body rewriting pipeline in front of a WSGI application.

    app.wsgi_app = SubFilterMiddleware(app.wsgi_app, config)

The wrapped application is the downstream handler: `start_response` sets the
status and headers of the capture, the returned iterable (and the legacy
`write` callable) feed its body.
"""

import http

from subfilter.capture import ResponseCapture
from subfilter.http import Headers
from subfilter.middleware import SubFilter
from subfilter.options import MiddlewareConfig


def status_line(status_code: int) -> str:
    try:
        return f"{status_code} {http.HTTPStatus(status_code).phrase}"
    except ValueError:
        return str(status_code)


class WSGIResponse:
    """
    The real sink from the pipeline's point of view: collects the final
    response so that it can be handed back to the WSGI server.
    """

    def __init__(self):
        self.headers = Headers()
        self.status_code: int | None = None
        self.chunks: list[bytes] = []

    def write_header(self, status_code: int) -> None:
        self.status_code = status_code

    def write(self, data: bytes) -> int:
        if self.status_code is None:
            self.write_header(200)
        self.chunks.append(data)
        return len(data)


class SubFilterMiddleware:
    def __init__(self, app, config: MiddlewareConfig, name: str = "subfilter"):
        self.app = app
        self.subfilter = SubFilter(self.run_app, config, name)

    def run_app(self, environ, rw: ResponseCapture) -> None:
        state = dict(status=None, started=False)

        def commit_status():
            if not state["started"]:
                state["started"] = True
                rw.write_header(state["status"])

        def write(data):
            if state["status"] is None:
                raise AssertionError("write() before start_response()")
            commit_status()
            if data:
                rw.write(data)

        def start_response(status, headers, exc_info=None):
            if exc_info:
                if state["started"]:
                    raise exc_info[1].with_traceback(exc_info[2])
            elif state["status"] is not None:
                raise AssertionError("Response already started")
            state["status"] = int(status.split(" ", 1)[0])
            rw.headers.fields = []
            for name, value in headers:
                rw.headers.add(name, value)
            return write

        result = self.app(environ, start_response)
        try:
            for chunk in result:
                write(chunk)
            if state["status"] is not None:
                commit_status()
        finally:
            if hasattr(result, "close"):
                result.close()

    def __call__(self, environ, start_response):
        response = WSGIResponse()
        self.subfilter(environ, response)
        if response.status_code is None:
            # The pipeline gave up on this response, there is nothing sane to forward.
            start_response(status_line(502), [])
            return [b""]
        start_response(status_line(response.status_code), list(response.headers.fields))
        return response.chunks
