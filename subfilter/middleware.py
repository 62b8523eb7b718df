import logging
import typing
from collections.abc import Callable

from subfilter.capture import ResponseCapture
from subfilter.filterchain import FilterChain
from subfilter.http import ResponseSink
from subfilter.net import encoding
from subfilter.options import MiddlewareConfig

logger = logging.getLogger(__name__)

Handler = Callable[[typing.Any, ResponseSink], None]


class SubFilter:
    """
    A request handler that rewrites the body of whatever `next_handler` responds with.

    The downstream handler writes into a `ResponseCapture`. Once it returns,
    the captured body is decoded if needed, run through the filter chain,
    re-encoded and only then sent to the real sink together with the status line.
    """

    def __init__(self, next_handler: Handler, config: MiddlewareConfig, name: str = "subfilter"):
        self.name = name
        self.next_handler = next_handler
        self.last_modified = config.last_modified
        self.filters = FilterChain.from_specs(config.filters)

    def __repr__(self):
        return f"<SubFilter {self.name!r}: {len(self.filters)} filters>"

    def __call__(self, request: typing.Any, sink: ResponseSink) -> None:
        rw = ResponseCapture(sink, last_modified=self.last_modified)
        self.next_handler(request, rw)

        if rw.hijacked:
            logger.debug(f"{self.name}: connection hijacked, leaving it alone.")
            return

        content = rw.getvalue()
        if not encoding.is_supported(rw.declared_encoding):
            logger.debug(
                f"{self.name}: not rewriting body with content encoding "
                f"{rw.declared_encoding!r}."
            )
            self.send(rw, content)
            return

        try:
            content = encoding.decode(content, rw.declared_encoding)
        except ValueError as e:
            logger.error(f"{self.name}: unable to decode response: {e}")
            return

        content = self.filters.apply(content)
        content = encoding.encode(content, rw.declared_encoding)
        self.send(rw, content)

    def send(self, rw: ResponseCapture, content: bytes) -> None:
        try:
            rw.commit(content)
        except OSError as e:
            logger.error(f"{self.name}: unable to write response: {e}")


def new(next_handler: Handler, config: MiddlewareConfig, name: str = "subfilter") -> SubFilter:
    """
    Create a new body rewriting middleware in front of `next_handler`.

    Raises:
        OptionsError, if the configuration does not contain a single valid filter.
    """
    return SubFilter(next_handler, config, name)
