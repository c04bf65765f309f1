import asyncio

import pytest

from tws.errors import ProtocolError, TransportError
from tws.transfer.protocol import (
    LAST_CHUNK, build_response_head, frame_chunk, read_request,
)
from tws.transfer.session import TransferMode


def parse(raw: bytes, on_line=None, limit=None):
    async def go():
        kwargs = {'limit': limit} if limit else {}
        reader = asyncio.StreamReader(**kwargs)
        reader.feed_data(raw)
        reader.feed_eof()
        return await read_request(reader, on_line)
    return asyncio.run(go())


class TestReadRequest:
    def test_get_with_headers(self):
        raw = (b"GET /file.zip HTTP/1.1\r\n"
               b"Host: example.com:8123\r\n"
               b"User-Agent: curl/8.0\r\n"
               b"\r\n")

        request = parse(raw)

        assert request.method == 'GET'
        assert request.path == '/file.zip'
        assert request.version == '1.1'
        assert request.headers == ["Host: example.com:8123\r\n", "User-Agent: curl/8.0\r\n"]

    def test_echo_sees_every_line(self):
        seen = []
        raw = b"GET / HTTP/1.0\r\nAccept: */*\r\n\r\n"

        parse(raw, on_line=seen.append)

        assert seen == ["GET / HTTP/1.0\r\n", "Accept: */*\r\n"]

    def test_stops_at_blank_line(self):
        # anything after the header block (a body, a pipelined request) is left alone
        raw = b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n"

        request = parse(raw)

        assert request.path == '/a'
        assert request.headers == []

    @pytest.mark.parametrize('line', [
        b"POST /x HTTP/1.1\r\n",
        b"HEAD /x HTTP/1.1\r\n",
        b"get /x HTTP/1.1\r\n",
        b"GET /x\r\n",
        b"GET  HTTP/1.1\r\n",
        b"\x16\x03\x01\x02\x00\x01\x00\x01\xfc\x03\x03\r\n",
        b"\r\n",
    ])
    def test_rejects_non_get(self, line):
        with pytest.raises(ProtocolError):
            parse(line + b"Host: x\r\n\r\n")

    def test_rejects_immediate_eof(self):
        with pytest.raises(ProtocolError):
            parse(b"")

    def test_rejects_eof_inside_headers(self):
        with pytest.raises(ProtocolError):
            parse(b"GET / HTTP/1.1\r\nHost: x\r\n")

    def test_rejects_overlong_line(self):
        with pytest.raises(ProtocolError):
            parse(b"GET /" + b"a" * 200 + b" HTTP/1.1\r\n\r\n", limit=64)

    def test_rejected_line_is_not_echoed(self):
        seen = []
        with pytest.raises(ProtocolError):
            parse(b"POST / HTTP/1.1\r\n\r\n", on_line=seen.append)
        assert seen == []

    def test_reset_while_reading_headers(self):
        async def go():
            reader = asyncio.StreamReader()
            reader.feed_data(b"GET / HTTP/1.1\r\nHost: x\r\n")
            reader.set_exception(ConnectionResetError(104, "Connection reset by peer"))
            return await read_request(reader)

        with pytest.raises(TransportError, match="Error reading request"):
            asyncio.run(go())


class TestResponseHead:
    def test_fixed_length(self):
        head = build_response_head(TransferMode.FIXED_LENGTH, 'application/zip', 100000)

        assert head == (b"HTTP/1.1 200 Ok\r\n"
                        b"Content-Type: application/zip\r\n"
                        b"Server: tws (not a real server)\r\n"
                        b"Content-Length: 100000\r\n"
                        b"\r\n")

    def test_zero_length(self):
        head = build_response_head(TransferMode.FIXED_LENGTH, 'text/plain', 0)

        assert b"Content-Length: 0\r\n" in head
        assert b"Transfer-Encoding" not in head

    def test_streaming(self):
        head = build_response_head(TransferMode.STREAMING, 'application/x-bzip2', -1)

        assert head == (b"HTTP/1.1 200 Ok\r\n"
                        b"Content-Type: application/x-bzip2\r\n"
                        b"Server: tws (not a real server)\r\n"
                        b"Transfer-Encoding: chunked\r\n"
                        b"\r\n")
        assert b"Content-Length" not in head

    def test_exactly_one_header_block(self):
        head = build_response_head(TransferMode.STREAMING, 'text/plain', -1)

        assert head.count(b"\r\n\r\n") == 1
        assert head.endswith(b"\r\n\r\n")


class TestChunkFraming:
    def test_small_chunk(self):
        assert frame_chunk(b"hello") == b"5\r\nhello\r\n"

    def test_size_is_lowercase_hex(self):
        framed = frame_chunk(b"x" * 255)
        assert framed.startswith(b"ff\r\n")
        assert framed.endswith(b"x\r\n")

        assert frame_chunk(b"x" * 16384).startswith(b"4000\r\n")

    def test_empty_chunk_refused(self):
        with pytest.raises(ValueError):
            frame_chunk(b"")

    def test_last_chunk(self):
        assert LAST_CHUNK == b"0\r\n\r\n"
