import pytest

from chunked.http.head import (
	HEADER_NAMES,
	HTTPResponseLine,
	ResponseHeadParser,
	formatRequestHead,
	headername,
)
from chunked.http.model import MalformedHead

RESPONSE: bytes = (
	b"HTTP/1.1 200 OK\r\ntransfer-encoding: chunked\r\nX-Id: 7\r\n\r\n2\r\nhi"
)


def test_headername():
	assert headername("content-length") == "Content-Length"
	assert headername("X-ID") == "X-Id"
	assert HEADER_NAMES["x-id"] == "X-Id"
	cache: dict[str, str] = {}
	assert headername("etag", headers=cache) == "Etag"
	assert cache == {"etag": "Etag"}


def test_request_head():
	assert formatRequestHead(
		"PUT", "/test/stream", "localhost:3000", {"content-length": "3"}, chunked=True
	) == (
		b"PUT /test/stream HTTP/1.1\r\n"
		b"Host: localhost:3000\r\n"
		b"Transfer-Encoding: chunked\r\n"
		b"Connection: close\r\n"
		b"\r\n"
	)
	assert formatRequestHead("GET", "", "example.com", {"Connection": "keep-alive"}) == (
		b"GET / HTTP/1.1\r\nConnection: keep-alive\r\nHost: example.com\r\n\r\n"
	)


def test_response_head_at_once():
	head, offset = ResponseHeadParser().feed(RESPONSE)
	assert head is not None
	assert head.line == HTTPResponseLine("HTTP/1.1", 200, "OK")
	assert head.isChunked
	assert head.headers["X-Id"] == "7"
	assert head.contentLength is None
	assert RESPONSE[offset:] == b"2\r\nhi"


def test_response_head_byte_by_byte():
	parser = ResponseHeadParser()
	end = RESPONSE.index(b"\r\n\r\n") + 4
	for i in range(end - 1):
		assert parser.feed(RESPONSE[i : i + 1]) == (None, 1)
	head, offset = parser.feed(RESPONSE[end - 1 :])
	assert head is not None and head.status == 200
	assert offset == 1


def test_malformed_head():
	with pytest.raises(MalformedHead):
		ResponseHeadParser().feed(b"garbage\r\n")
	with pytest.raises(MalformedHead):
		ResponseHeadParser().feed(b"HTTP/1.1 abc\r\n")
	with pytest.raises(MalformedHead):
		ResponseHeadParser(limit=16).feed(b"HTTP/1.1 200 " + b"O" * 32)


# EOF
