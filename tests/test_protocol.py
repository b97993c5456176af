# tests/test_protocol.py

import io
import pytest

from fileserver.errors import BodyReadError, ProtocolError
from fileserver.protocol import Response, read_request

def rfile(data):
  return io.BufferedReader(io.BytesIO(data))

def test_read_request_with_content_length():
  raw = (b"POST /content/a.txt HTTP/1.1\r\n"
         b"Host: localhost\r\n"
         b"Content-Type: text/plain\r\n"
         b"Content-Length: 5\r\n\r\nhello")
  request = read_request(rfile(raw))
  assert request.method == "POST"
  assert request.path == "/content/a.txt"
  assert request.headers["content-type"] == "text/plain"
  assert request.body == b"hello"
  assert request.keep_alive

def test_read_request_without_body():
  request = read_request(rfile(b"GET /entries/ HTTP/1.1\r\n\r\n"))
  assert request.body == b""

def test_read_two_requests_from_same_connection():
  stream = rfile(b"GET /content/a HTTP/1.1\r\n\r\nGET /content/b HTTP/1.1\r\nConnection: close\r\n\r\n")
  first = read_request(stream)
  second = read_request(stream)
  assert first.path == "/content/a"
  assert second.path == "/content/b"
  assert not second.keep_alive
  assert read_request(stream) is None

def test_read_chunked_body():
  raw = (b"POST /content/a HTTP/1.1\r\n"
         b"Transfer-Encoding: chunked\r\n\r\n"
         b"5\r\nhello\r\n6;ext=1\r\n world\r\n0\r\n\r\n")
  assert read_request(rfile(raw)).body == b"hello world"

def test_closed_connection_returns_none():
  assert read_request(rfile(b"")) is None

def test_short_body_raises_body_read_error():
  raw = b"POST /content/a HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"
  with pytest.raises(BodyReadError):
    read_request(rfile(raw))

def test_bad_chunk_size_raises_body_read_error():
  raw = b"POST /content/a HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\nzz\r\n"
  with pytest.raises(BodyReadError):
    read_request(rfile(raw))

@pytest.mark.parametrize("raw", [
  b"GARBAGE\r\n\r\n",
  b"GET /a FTP/1.0\r\n\r\n",
  b"GET /a HTTP/1.1\r\nno-colon-here\r\n\r\n",
  b"GET /a HTTP/1.1\r\nContent-Length: abc\r\n\r\n",
  b"GET /a HTTP/1.1\r\nHost: x\r\n",
])
def test_malformed_requests(raw):
  with pytest.raises(ProtocolError):
    read_request(rfile(raw))

def test_http_10_closes_by_default():
  request = read_request(rfile(b"GET /content/a HTTP/1.0\r\n\r\n"))
  assert not request.keep_alive

def test_response_to_bytes():
  data = Response(200, b"\x00zip", "application/zip", headers={"X-Cache-Status": "HIT"}).to_bytes(keep_alive=False)
  head, body = data.split(b"\r\n\r\n", 1)
  lines = head.decode("latin-1").split("\r\n")
  assert lines[0] == "HTTP/1.1 200 OK"
  assert "Content-Type: application/zip" in lines
  assert "Content-Length: 4" in lines
  assert "Connection: close" in lines
  assert "X-Cache-Status: HIT" in lines
  assert body == b"\x00zip"

def test_text_response_encodes_utf8():
  response = Response.text(400, "Falha ação")
  assert response.body == "Falha ação".encode("utf-8")
  assert response.content_type.startswith("text/plain")
