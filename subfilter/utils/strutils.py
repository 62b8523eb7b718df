def always_bytes(str_or_bytes: str | bytes, *encode_args) -> bytes:
    """
    Patterns and replacements arrive as str from the config, bodies are bytes.
    Encode the former, pass the latter through.
    """
    if isinstance(str_or_bytes, bytes):
        return str_or_bytes
    elif isinstance(str_or_bytes, str):
        return str_or_bytes.encode(*encode_args)
    else:
        raise TypeError(
            f"Expected str or bytes, but got {type(str_or_bytes).__name__}."
        )


def always_str(str_or_bytes: str | bytes, *decode_args) -> str:
    """
    Header names and values are kept as str, raw header fields may be bytes.
    """
    if isinstance(str_or_bytes, str):
        return str_or_bytes
    elif isinstance(str_or_bytes, bytes):
        return str_or_bytes.decode(*decode_args)
    else:
        raise TypeError(
            f"Expected str or bytes, but got {type(str_or_bytes).__name__}."
        )


def escape_snippet(data: bytes, limit: int = 32) -> str:
    """
    Return a short, printable representation of a body prefix for log output.
    """
    snippet = "".join(
        chr(b) if 32 <= b < 127 else f"\\x{b:02x}" for b in data[:limit]
    )
    if len(data) > limit:
        snippet += "..."
    return snippet
