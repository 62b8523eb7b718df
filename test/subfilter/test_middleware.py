import gzip
import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

import subfilter
from subfilter import exceptions
from subfilter.middleware import SubFilter
from subfilter.test import tutils
from subfilter.test.tutils import tconfig
from subfilter.test.tutils import thandler


def serve(config, handler, sink=None):
    sink = sink or tutils.TSink()
    SubFilter(handler, config)(None, sink)
    return sink


@pytest.mark.parametrize(
    "filters, content_encoding, last_modified, expected",
    [
        pytest.param(
            [("foo", "bar")], "", False, b"bar is the new bar", id="replace"
        ),
        pytest.param(
            [("foo", "bar"), ("bar", "foo")],
            "",
            False,
            b"foo is the new foo",
            id="chained",
        ),
        pytest.param(
            [("foo", "bar")], "identity", False, b"bar is the new bar", id="identity"
        ),
        pytest.param(
            [("foo", "bar")], "identity", True, b"bar is the new bar", id="last-modified"
        ),
        pytest.param(
            [("foo", "bar")], "br", False, b"foo is the new bar", id="unknown-encoding"
        ),
    ],
)
def test_serve(filters, content_encoding, last_modified, expected):
    sink = serve(
        tconfig(*filters, last_modified=last_modified),
        thandler(content_encoding=content_encoding),
    )
    assert sink.status_code == 200
    assert sink.header_calls == 1
    assert sink.body == expected
    assert "Content-Length" not in sink.headers
    assert ("Last-Modified" in sink.headers) == last_modified
    if content_encoding:
        assert sink.headers["Content-Encoding"] == content_encoding


def test_gzip():
    sink = serve(tconfig(("foo", "bar")), thandler(content_encoding="gzip"))
    assert sink.headers["Content-Encoding"] == "gzip"
    assert sink.body != b"bar is the new bar"
    assert gzip.decompress(sink.body) == b"bar is the new bar"
    assert "Content-Length" not in sink.headers


def test_gzip_case_insensitive():
    sink = serve(tconfig(("foo", "bar")), thandler(content_encoding="GZIP"))
    assert sink.headers["Content-Encoding"] == "GZIP"
    assert gzip.decompress(sink.body) == b"bar is the new bar"


def test_gzip_corrupt(caplog):
    def handler(request, w):
        w.headers["Content-Encoding"] = "gzip"
        w.write_header(200)
        w.write(b"this is not gzip")

    sink = serve(tconfig(("foo", "bar")), handler)
    assert sink.status_code is None
    assert sink.header_calls == 0
    assert sink.body == b""
    assert "unable to decode response" in caplog.text


def test_gzip_empty():
    def handler(request, w):
        w.headers["Content-Encoding"] = "gzip"
        w.write_header(204)

    sink = serve(tconfig(("foo", "bar")), handler)
    assert sink.status_code == 204
    assert sink.body == b""


def test_status_code():
    sink = serve(tconfig(("foo", "bar")), thandler(status_code=404))
    assert sink.status_code == 404
    assert sink.body == b"bar is the new bar"


def test_implicit_status():
    sink = serve(tconfig(("foo", "bar")), thandler(explicit_header=False))
    assert sink.status_code == 200
    assert "Content-Length" not in sink.headers
    assert "Last-Modified" not in sink.headers
    assert sink.body == b"bar is the new bar"


def test_no_write():
    def handler(request, w):
        w.headers["Content-Length"] = "0"

    sink = serve(tconfig(("foo", "bar")), handler)
    assert sink.status_code == 200
    assert sink.header_calls == 1
    assert "Content-Length" not in sink.headers
    assert sink.body == b""


def test_headers_changed_after_write_header():
    def handler(request, w):
        w.write_header(200)
        w.headers["Content-Length"] = "18"
        w.headers["Last-Modified"] = tutils.LAST_MODIFIED
        w.write(b"foo is the new bar")

    sink = serve(tconfig(("foo", "quux")), handler)
    assert sink.body == b"quux is the new bar"
    assert "Content-Length" not in sink.headers
    assert "Last-Modified" not in sink.headers

    sink = serve(tconfig(("foo", "quux"), last_modified=True), handler)
    assert "Content-Length" not in sink.headers
    assert sink.headers["Last-Modified"] == tutils.LAST_MODIFIED


def test_multiple_writes():
    def handler(request, w):
        w.write(b"fo")
        w.write(b"o is the new ")
        w.write(b"bar")

    sink = serve(tconfig(("foo", "bar")), handler)
    assert sink.body == b"bar is the new bar"


def test_backreferences():
    sink = serve(
        tconfig((r"(\w+) is the new (\w+)", r"\2 was the old \1")), thandler()
    )
    assert sink.body == b"bar was the old foo"


def test_named_backreferences():
    sink = serve(
        tconfig((r"(?P<old>foo)", r"<\g<old>>")), thandler()
    )
    assert sink.body == b"<foo> is the new bar"


def test_unicode():
    sink = serve(
        tconfig(("über", "ueber")), thandler(body="alles über foo".encode())
    )
    assert sink.body == b"alles ueber foo"


def test_write_error(caplog):
    sink = tutils.TBrokenSink()
    serve(tconfig(("foo", "bar")), thandler(), sink)
    assert "unable to write response" in caplog.text


def test_handler_exception():
    def handler(request, w):
        w.write(b"foo")
        raise RuntimeError("backend exploded")

    sink = tutils.TSink()
    with pytest.raises(RuntimeError, match="backend exploded"):
        serve(tconfig(("foo", "bar")), handler, sink)
    assert sink.status_code is None
    assert sink.body == b""


def test_request_passed_through():
    seen = []

    def handler(request, w):
        seen.append(request)
        w.write(b"foo")

    sink = tutils.TSink()
    SubFilter(handler, tconfig(("foo", "bar")))("the request", sink)
    assert seen == ["the request"]


def test_hijack():
    conns = []

    def handler(request, w):
        w.headers["Content-Length"] = "3"
        conns.append(w.hijack())

    sink = tutils.THijackSink()
    serve(tconfig(("foo", "bar")), handler, sink)
    ours, rw = conns[0]
    try:
        assert sink.status_code is None
        assert sink.header_calls == 0
        assert sink.body == b""
        rw.write(b"foo")
        rw.flush()
        assert sink.conn.recv(3) == b"foo"
    finally:
        rw.close()
        ours.close()
        sink.conn.close()


def test_hijack_unsupported():
    def handler(request, w):
        w.hijack()

    with pytest.raises(exceptions.HijackError, match="TSink does not support hijacking"):
        serve(tconfig(("foo", "bar")), handler)


def test_flush():
    def handler(request, w):
        w.write(b"foo")
        w.flush()
        w.write(b" bar")

    sink = tutils.TFlushSink()
    serve(tconfig(("foo", "bar")), handler, sink)
    assert sink.flushed == 1
    assert sink.body == b"bar bar"


def test_new():
    sf = subfilter.new(thandler(), tconfig(("foo", "bar"), ("bar", "foo")), "rewrite")
    assert sf.name == "rewrite"
    assert len(sf.filters) == 2
    assert "rewrite" in repr(sf)


def test_new_invalid(caplog):
    with pytest.raises(exceptions.OptionsError, match="no valid filters"):
        subfilter.new(thandler(), tconfig(("*", "bar")))
    assert "Invalid regular expression '*'" in caplog.text


def test_new_empty():
    with pytest.raises(exceptions.OptionsError, match="no valid filters"):
        subfilter.new(thandler(), subfilter.create_config())


def test_reused_across_requests():
    sf = SubFilter(thandler(), tconfig(("foo", "bar")))
    for _ in range(3):
        sink = tutils.TSink()
        sf(None, sink)
        assert sink.body == b"bar is the new bar"


def test_passthrough_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="subfilter")
    serve(tconfig(("foo", "bar")), thandler(content_encoding="br"))
    assert "not rewriting body with content encoding 'br'" in caplog.text


body_text = st.text(alphabet="abcxyz ", max_size=64)


@given(body=body_text)
def test_no_match_is_identity(body):
    sink = serve(tconfig(("[0-9]+", "NUMBER")), thandler(body=body.encode()))
    assert sink.body == body.encode()


@given(
    body=body_text,
    p1=st.sampled_from(["a", "b+", "x|y", "(a)(b)"]),
    p2=st.sampled_from(["a", "c", "z+", "ab"]),
    r1=st.sampled_from(["", "b", "ab", "zz"]),
    r2=st.sampled_from(["", "c", "xyz"]),
)
def test_chaining(body, p1, r1, p2, r2):
    both = serve(tconfig((p1, r1), (p2, r2)), thandler(body=body.encode()))
    first = serve(tconfig((p1, r1)), thandler(body=body.encode()))
    second = serve(tconfig((p2, r2)), thandler(body=first.body))
    assert both.body == second.body


@given(body=body_text)
def test_gzip_roundtrip(body):
    plain = serve(tconfig(("a", "b")), thandler(body=body.encode()))
    zipped = serve(
        tconfig(("a", "b")), thandler(body=body.encode(), content_encoding="gzip")
    )
    if body:
        assert gzip.decompress(zipped.body) == plain.body
    else:
        assert zipped.body == b""


@given(
    body=st.binary(max_size=64),
    content_encoding=st.sampled_from(["br", "deflate", "zstd", "x-custom"]),
)
def test_unknown_encoding_untouched(body, content_encoding):
    sink = serve(
        tconfig((".", "x")), thandler(body=body, content_encoding=content_encoding)
    )
    assert sink.body == body
    assert "Content-Length" not in sink.headers
