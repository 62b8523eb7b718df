"""
Utility functions for decoding and re-encoding response bodies.

Only the identity transform and gzip are understood. Everything else is
reported as unsupported so that callers can pass such bodies through
untouched instead of guessing.
"""

import gzip
import zlib
from io import BytesIO

from subfilter.utils import strutils

IDENTITY = "identity"
GZIP = "gzip"


def normalize(encoding: str | None) -> str:
    """
    Canonical form of a Content-Encoding header value.
    A missing header is equivalent to the identity encoding.
    """
    encoding = (encoding or "").strip().lower()
    return encoding or IDENTITY


def is_supported(encoding: str | None) -> bool:
    return normalize(encoding) in custom_decode


def decode(encoded: bytes, encoding: str) -> bytes:
    """
    Decode the given body.

    Returns:
        The decoded value

    Raises:
        TypeError, if the body is not bytes.
        ValueError, if the encoding is unsupported or decoding fails.
    """
    if not isinstance(encoded, bytes):
        raise TypeError(f"Expected bytes, but got {type(encoded).__name__}.")
    if len(encoded) == 0:
        return encoded

    encoding = normalize(encoding)
    try:
        decoder = custom_decode[encoding]
    except KeyError:
        raise ValueError(f"Unsupported content encoding: {encoding!r}")
    try:
        return decoder(encoded)
    except Exception as e:
        raise ValueError(
            "{} when decoding {} with {}: {}".format(
                type(e).__name__,
                strutils.escape_snippet(encoded, 10),
                repr(encoding),
                repr(e),
            )
        ) from e


def encode(decoded: bytes, encoding: str) -> bytes:
    """
    Encode the given body.

    Returns:
        The encoded value

    Raises:
        TypeError, if the body is not bytes.
        ValueError, if the encoding is unsupported.
    """
    if not isinstance(decoded, bytes):
        raise TypeError(f"Expected bytes, but got {type(decoded).__name__}.")
    if len(decoded) == 0:
        return decoded

    encoding = normalize(encoding)
    try:
        encoder = custom_encode[encoding]
    except KeyError:
        raise ValueError(f"Unsupported content encoding: {encoding!r}")
    return encoder(decoded)


def identity(content: bytes) -> bytes:
    """
    Returns content unchanged. Identity is the default value of
    Accept-Encoding headers.
    """
    return content


def decode_gzip(content: bytes) -> bytes:
    # A truncated stream raises EOFError, a corrupt one zlib.error or
    # gzip.BadGzipFile. All of them end up as ValueError in decode().
    with gzip.GzipFile(fileobj=BytesIO(content)) as gfile:
        return gfile.read()


def encode_gzip(content: bytes) -> bytes:
    s = BytesIO()
    # zlib's default level, GzipFile would otherwise pick 9.
    gf = gzip.GzipFile(
        fileobj=s, mode="wb", compresslevel=zlib.Z_DEFAULT_COMPRESSION
    )
    gf.write(content)
    gf.close()
    return s.getvalue()


custom_decode = {
    IDENTITY: identity,
    GZIP: decode_gzip,
}
custom_encode = {
    IDENTITY: identity,
    GZIP: encode_gzip,
}

__all__ = ["encode", "decode", "normalize", "is_supported"]
