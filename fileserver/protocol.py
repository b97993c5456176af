# fileserver/protocol.py

"""
Leitura de requisições e montagem de respostas HTTP/1.1 sobre um socket.
"""

from datetime import datetime, timezone
from urllib.parse import unquote, urlsplit

from .errors import BodyReadError, ProtocolError

SERVER_NAME = "PythonFileServer/1.0"
MAX_LINE_BYTES = 64 * 1024
MAX_HEADERS = 100
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

STATUS_MESSAGES = {
  200: "OK", 400: "Bad Request", 403: "Forbidden", 404: "Not Found",
  405: "Method Not Allowed", 500: "Internal Server Error"
}


class Request:
  """Requisição HTTP já lida por completo (cabeçalhos em minúsculas)."""

  def __init__(self, method, target, version, headers, body=b""):
    self.method = method
    self.target = target
    self.version = version
    self.headers = headers
    self.body = body

  @property
  def path(self):
    """Caminho da URL decodificado, sem a query string."""
    return unquote(urlsplit(self.target).path)

  @property
  def keep_alive(self):
    connection = self.headers.get("connection", "").lower()
    if self.version == "HTTP/1.0":
      return connection == "keep-alive"
    return connection != "close"

  def __repr__(self):
    return f"Request({self.method!r}, {self.target!r})"


class Response:
  """Resposta HTTP com o corpo inteiro em memória."""

  def __init__(self, status, body=b"", content_type=TEXT_CONTENT_TYPE, headers=None, cache_status="N/A"):
    self.status = status
    self.body = body.encode("utf-8") if isinstance(body, str) else body
    self.content_type = content_type
    self.headers = dict(headers or {})
    self.cache_status = cache_status

  @classmethod
  def text(cls, status, message, **kwargs):
    return cls(status, message, TEXT_CONTENT_TYPE, **kwargs)

  @property
  def text_body(self):
    return self.body.decode("utf-8", errors="replace")

  def to_bytes(self, keep_alive=True):
    """Serializa a linha de status, os cabeçalhos e o corpo."""
    status_text = STATUS_MESSAGES.get(self.status, "Unknown Status")
    headers = {
      "Date": datetime.now(timezone.utc).strftime('%a, %d %b %Y %H:%M:%S GMT'),
      "Server": SERVER_NAME,
      "Content-Type": self.content_type,
      "Content-Length": len(self.body),
      "Connection": "keep-alive" if keep_alive else "close",
    }
    if self.cache_status != "N/A":
      headers["X-Cache-Status"] = self.cache_status
    headers.update(self.headers)

    head = f"HTTP/1.1 {self.status} {status_text}\r\n"
    head += "".join(f"{k}: {v}\r\n" for k, v in headers.items())
    return (head + "\r\n").encode("latin-1") + self.body

  def __repr__(self):
    return f"Response({self.status}, {len(self.body)} bytes, {self.content_type!r})"


def _readline(rfile):
  line = rfile.readline(MAX_LINE_BYTES + 1)
  if len(line) > MAX_LINE_BYTES:
    raise ProtocolError("header line too long")
  return line


def _read_exact(rfile, size):
  data = rfile.read(size)
  if len(data) < size:
    raise BodyReadError(f"unexpected EOF: expected {size} bytes, got {len(data)}")
  return data


def _read_chunked(rfile):
  """Lê um corpo com Transfer-Encoding: chunked."""
  chunks = []
  while True:
    size_line = _readline(rfile)
    if not size_line:
      raise BodyReadError("unexpected EOF while reading chunk size")
    try:
      size = int(size_line.split(b";", 1)[0].strip(), 16)
    except ValueError as e:
      raise BodyReadError(f"invalid chunk size {size_line!r}") from e

    if size == 0:
      # Consome trailers até a linha em branco
      while True:
        trailer = _readline(rfile)
        if trailer in (b"\r\n", b"\n", b""):
          break
      return b"".join(chunks)

    chunks.append(_read_exact(rfile, size))
    if _readline(rfile) not in (b"\r\n", b"\n"):
      raise BodyReadError("missing CRLF after chunk data")


def parse_headers(lines):
  """
  Analisa as linhas de cabeçalho e retorna um dicionário com chaves em minúsculas.
  """
  headers = {}
  for line in lines:
    if ":" not in line:
      raise ProtocolError(f"malformed header line {line!r}")
    key, value = line.split(":", 1)
    headers[key.strip().lower()] = value.strip()
  return headers


def read_request(rfile):
  """
  Lê uma requisição completa de 'rfile' (arquivo binário do socket).

  Returns:
    Request, ou None se o cliente fechou a conexão antes de enviar algo.

  Raises:
    ProtocolError: linha de requisição ou cabeçalhos malformados.
    BodyReadError: corpo incompleto ou codificação chunked inválida.
  """
  request_line = _readline(rfile)
  # Tolera linhas em branco entre requisições keep-alive
  while request_line in (b"\r\n", b"\n"):
    request_line = _readline(rfile)
  if not request_line:
    return None

  try:
    method, target, version = request_line.decode("latin-1").strip().split()
  except ValueError as e:
    raise ProtocolError(f"malformed request line {request_line!r}") from e
  if not version.startswith("HTTP/"):
    raise ProtocolError(f"unsupported protocol version {version!r}")

  header_lines = []
  while True:
    line = _readline(rfile)
    if not line:
      raise ProtocolError("unexpected EOF while reading headers")
    if line in (b"\r\n", b"\n"):
      break
    header_lines.append(line.decode("latin-1").rstrip("\r\n"))
    if len(header_lines) > MAX_HEADERS:
      raise ProtocolError("too many headers")

  headers = parse_headers(header_lines)

  if "chunked" in headers.get("transfer-encoding", "").lower():
    body = _read_chunked(rfile)
  elif "content-length" in headers:
    try:
      length = int(headers["content-length"])
    except ValueError as e:
      raise ProtocolError(f"invalid Content-Length {headers['content-length']!r}") from e
    if length < 0:
      raise ProtocolError(f"invalid Content-Length {length}")
    body = _read_exact(rfile, length)
  else:
    body = b""

  return Request(method.upper(), target, version, headers, body)
