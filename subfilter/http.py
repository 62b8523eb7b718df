from __future__ import annotations

import io
import socket
from collections.abc import Iterable
from collections.abc import Iterator
from collections.abc import MutableMapping
from typing import Protocol
from typing import runtime_checkable

from subfilter.utils import strutils


class Headers(MutableMapping[str, str]):
    """
    Header class which allows both convenient access to individual headers as well as
    direct access to the underlying fields. Provides a full dictionary interface.

    Create headers with keyword arguments:
    >>> h = Headers(host="example.com", content_type="application/xml")

    Headers are case insensitive:
    >>> h["host"]
    "example.com"

    Headers can also be created from a list of (header_name, header_value) tuples:
    >>> h = Headers([
        ("Host", "example.com"),
        ("Accept", "text/html"),
        ("accept", "application/xml")
    ])

    Multiple headers are folded into a single header as per RFC 7230:
    >>> h["Accept"]
    "text/html, application/xml"

    Setting a header removes all existing headers with the same name:
    >>> h["Accept"] = "application/text"
    >>> h["Accept"]
    "application/text"
    """

    def __init__(self, fields: Iterable[tuple[str | bytes, str | bytes]] = (), **headers):
        self.fields: list[tuple[str, str]] = [
            (strutils.always_str(k, "latin-1"), strutils.always_str(v, "latin-1"))
            for k, v in fields
        ]
        # content_type -> content-type
        for name, value in headers.items():
            self[name.replace("_", "-")] = value

    @staticmethod
    def _kconv(key: str) -> str:
        # Headers are case-insensitive
        return key.lower()

    def __getitem__(self, key: str) -> str:
        values = self.get_all(key)
        if not values:
            raise KeyError(key)
        return ", ".join(values)

    def __setitem__(self, key: str, value: str) -> None:
        self.set_all(key, [value])

    def __delitem__(self, key: str) -> None:
        if key not in self:
            raise KeyError(key)
        k = self._kconv(key)
        self.fields = [field for field in self.fields if self._kconv(field[0]) != k]

    def __contains__(self, key) -> bool:
        if not isinstance(key, str):
            return False
        k = self._kconv(key)
        return any(self._kconv(name) == k for name, _ in self.fields)

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for name, _ in self.fields:
            k = self._kconv(name)
            if k not in seen:
                seen.add(k)
                yield name

    def __len__(self) -> int:
        return len({self._kconv(name) for name, _ in self.fields})

    def __eq__(self, other) -> bool:
        if isinstance(other, Headers):
            return self.fields == other.fields
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self.fields!r}]"

    def __bytes__(self) -> bytes:
        if self.fields:
            return b"".join(
                f"{name}: {value}\r\n".encode("latin-1") for name, value in self.fields
            )
        else:
            return b""

    def get_all(self, name: str) -> list[str]:
        """
        Like `Headers.get`, but does not fold multiple headers into a single one.
        This is useful for Set-Cookie headers, which do not support folding.
        """
        k = self._kconv(name)
        return [value for n, value in self.fields if self._kconv(n) == k]

    def set_all(self, name: str, values: Iterable[str]) -> None:
        """
        Explicitly set multiple headers for the given key.
        The first existing field of that name keeps its position.
        """
        k = self._kconv(name)
        new_fields = [(name, strutils.always_str(v, "latin-1")) for v in values]
        fields: list[tuple[str, str]] = []
        for field in self.fields:
            if self._kconv(field[0]) == k:
                fields.extend(new_fields)
                new_fields = []
            else:
                fields.append(field)
        fields.extend(new_fields)
        self.fields = fields

    def add(self, name: str, value: str) -> None:
        """
        Append a header without touching existing headers of the same name.
        """
        self.fields.append((name, strutils.always_str(value, "latin-1")))

    def copy(self) -> Headers:
        return Headers(self.fields)


@runtime_checkable
class ResponseSink(Protocol):
    """
    The outbound side of a response as the host hands it to a handler.

    Headers are mutable until `write_header` is called. `write` may be called
    any number of times afterwards; the first `write` implies a 200 status
    if `write_header` was never called.
    """

    headers: Headers

    def write_header(self, status_code: int) -> None: ...

    def write(self, data: bytes) -> int: ...


@runtime_checkable
class Flusher(Protocol):
    def flush(self) -> None: ...


@runtime_checkable
class Hijacker(Protocol):
    def hijack(self) -> tuple[socket.socket, io.BufferedRWPair]: ...
