"""
Unit tests for HTTP request parsing.
"""

import pytest

from webviewer.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample range request for the wasm module."""
    return (
        b"GET /re_viewer_bg.wasm?v=3 HTTP/1.1\r\n"
        b"Host: localhost:9090\r\n"
        b"User-Agent: pytest\r\n"
        b"Range: bytes=0-1023\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.target == "/re_viewer_bg.wasm?v=3"
        assert request.path == "/re_viewer_bg.wasm"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:9090"
        assert request.user_agent == "pytest"
        assert request.range == "bytes=0-1023"
        assert request.is_keep_alive is True

    def test_range_missing(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request.range is None

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        request = parse_request(b"GET / HTTP/1.1\r\n\r\n")

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_any_method_token_is_accepted(self):
        """Unknown methods reach the router, which answers 405."""
        request = parse_request(b"BREW /sw.js HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request.method == "BREW"

    @pytest.mark.parametrize("raw", [
        b"GET\r\nHost: test\r\n\r\n",
        b"get / HTTP/1.1\r\n\r\n",
        b"GET  / HTTP/1.1\r\n\r\n",
        b"GET sw.js HTTP/1.1\r\n\r\n",
        b"GET / HTTP/1.1",
    ])
    def test_malformed_requests(self, raw):
        """Test handling of malformed request lines."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_parent_segments_are_left_to_the_router(self):
        """The parser keeps the target as sent; the router answers 404."""
        request = parse_request(b"GET /../../etc/passwd HTTP/1.1\r\n\r\n")
        assert request.target == "/../../etc/passwd"

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        # HTTP/1.0 (Connection: close by default)
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        request_10_ka = parse_request(b"GET / HTTP/1.0\r\nConnection: Keep-Alive\r\n\r\n")
        assert request_10_ka.is_keep_alive is True

        # HTTP/1.1 (keep-alive by default)
        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.is_keep_alive is True

        request_11_close = parse_request(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n")
        assert request_11_close.is_keep_alive is False

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + b"test body"

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.body == b"test body"

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, value):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_short_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        request = parse_request(b"GET / HTTP/1.1\r\nRANGE: bytes=0-1\r\n\r\n")

        assert request.range == "bytes=0-1"
        assert request.get_header("Range") == "bytes=0-1"
        assert request.get_header("range") == "bytes=0-1"

    def test_repeated_and_folded_headers(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: application/wasm\r\n"
            b"X-Long: first\r\n"
            b"  second\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.headers["accept"] == "text/html, application/wasm"
        assert request.headers["x-long"] == "first second"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", target="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_path_is_decoded(self):
        request = HTTPRequest(method="GET", target="/favicon%2Esvg?x=1")
        assert request.path == "/favicon.svg"
