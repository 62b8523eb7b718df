import logging
import re
import typing
from collections.abc import Iterable

from subfilter import exceptions
from subfilter.options import FilterSpec
from subfilter.utils import strutils

logger = logging.getLogger(__name__)


class CompiledFilter(typing.NamedTuple):
    matcher: re.Pattern[bytes]
    replacement: bytes

    def apply(self, content: bytes) -> bytes:
        return self.matcher.sub(self.replacement, content)


def compile_filter(spec: FilterSpec) -> CompiledFilter:
    """
    Compile a single filter spec.

    Raises:
        ValueError, if the pattern does not compile or the replacement
        refers to groups the pattern does not have.
    """
    if spec.pattern is None:
        raise ValueError(
            f"Filter without a regular expression (replacement {spec.replacement!r})"
        )
    try:
        matcher = re.compile(strutils.always_bytes(spec.pattern, "utf8"))
    except re.error as e:
        raise ValueError(f"Invalid regular expression {spec.pattern!r} ({e})") from e

    replacement = strutils.always_bytes(spec.replacement, "utf8")
    # The replacement template is parsed before any match is attempted,
    # so substituting into an empty string surfaces bad group references.
    try:
        matcher.sub(replacement, b"")
    except (re.error, IndexError) as e:
        raise ValueError(
            f"Invalid replacement {spec.replacement!r} for {spec.pattern!r} ({e})"
        ) from e

    return CompiledFilter(matcher, replacement)


class FilterChain(tuple[CompiledFilter, ...]):
    """
    An ordered, immutable sequence of compiled filters.

    The chain is built once and shared by all requests. Order matters: every
    filter sees the output of the previous one, so a later filter may match
    text that an earlier replacement introduced.
    """

    def __new__(cls, filters: Iterable[CompiledFilter]):
        filters = tuple(filters)
        if not filters:
            raise exceptions.OptionsError("no valid filters. disabling")
        return super().__new__(cls, filters)

    @classmethod
    def from_specs(cls, specs: Iterable[FilterSpec]) -> "FilterChain":
        """
        Compile specs on a best-effort basis: invalid specs are logged and skipped.

        Raises:
            OptionsError, if no spec survives.
        """
        filters = []
        for spec in specs:
            try:
                filters.append(compile_filter(spec))
            except ValueError as e:
                logger.warning(f"Skipping filter: {e}")
        return cls(filters)

    def apply(self, content: bytes) -> bytes:
        for f in self:
            content = f.apply(content)
        return content
