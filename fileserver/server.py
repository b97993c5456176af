# fileserver/server.py

import argparse
import errno
import os
import socket
import stat
import sys
import threading
from time import time

from . import config
from .cache import LRUCache
from .config import ServerConfig
from .errors import BodyReadError, ConfigError, ProtocolError
from .handlers import FileHandlers
from .log import configure_logging, fields
from .metrics import MetricsLogger, NullMetricsLogger
from .protocol import Response, read_request


def check_is_dir(directory):
  """
  Garante que 'directory' é um diretório, criando-o se ainda não existir.
  """
  if not directory:
    raise ConfigError("failed to read root dir: no root dir given")
  try:
    info = os.stat(directory)
  except FileNotFoundError:
    try:
      os.makedirs(directory, exist_ok=True)
    except OSError as e:
      raise ConfigError(f"failed to read root dir: failed to create dir '{directory}': {e}") from e
    return
  except OSError as e:
    raise ConfigError(f"failed to read root dir: {e}") from e

  if not stat.S_ISDIR(info.st_mode):
    raise ConfigError(f"failed to read root dir: rootDir '{directory}' is not directory")


def create(server_config):
  """
  Cria uma instância do servidor a partir do ServerConfig.

  Raises:
    ConfigError: logger ou diretório raiz inválidos. O servidor não é criado.
  """
  try:
    logger = configure_logging(server_config.log_level, server_config.log_file)
  except ConfigError as e:
    raise ConfigError(f"failed to create logger: {e}") from e

  check_is_dir(server_config.root_dir)

  cache = None
  if server_config.enable_cache:
    cache = LRUCache(server_config.cache_max_items, server_config.cache_max_bytes,
                     server_config.cache_ttl_seconds)

  if server_config.metrics_file:
    try:
      metrics = MetricsLogger(server_config.metrics_file)
    except OSError as e:
      raise ConfigError(f"failed to open metrics file '{server_config.metrics_file}': {e}") from e
  else:
    metrics = NullMetricsLogger()

  return Server(server_config, FileHandlers(server_config, cache, logger), logger, metrics)


class ClientThread(threading.Thread):
  """
  Thread para lidar com uma única conexão de cliente, suportando keep-alive.
  """

  def __init__(self, server, client_socket, client_address):
    super().__init__(name=f"client-{client_address[0]}:{client_address[1]}")
    self.server = server
    self.client_socket = client_socket
    self.client_address = client_address
    self.logger = server.logger
    self.daemon = True

  def run(self):
    """
    Processa requisições do cliente em loop enquanto a conexão for keep-alive.
    """
    self.client_socket.settimeout(self.server.config.keep_alive_timeout)
    rfile = self.client_socket.makefile("rb")

    try:
      keep_alive = True
      while keep_alive:
        start_time = time()
        try:
          request = read_request(rfile)
        except BodyReadError as e:
          self.logger.warning(f"Falha ao ler dados da requisição {fields(error=str(e))}")
          self.send(Response.text(400, f"Failed to read request data: {e}"), keep_alive=False)
          break
        except ProtocolError as e:
          self.logger.warning(f"Requisição malformada {fields(client=self.client_address[0], error=str(e))}")
          self.send(Response.text(400, f"Bad Request: {e}"), keep_alive=False)
          break

        if request is None:
          # Cliente fechou a conexão
          break

        keep_alive = request.keep_alive
        self.process_request(request, start_time, keep_alive)

    except socket.timeout:
      self.logger.debug(f"Conexão com {self.client_address[0]} expirou (timeout).")
    except OSError as e:
      self.logger.debug(f"Conexão com {self.client_address[0]} encerrada: {e}")
    finally:
      rfile.close()
      self.client_socket.close()

  def process_request(self, request, start_time, keep_alive):
    """
    Despacha a requisição, envia a resposta e registra as métricas.
    """
    try:
      response = self.server.handlers.dispatch(request)
    except Exception as e:
      # Erro não tratado em um handler: a conexão segue viva
      self.logger.exception(f"Erro inesperado ao processar '{request.method} {request.path}': {e}")
      response = Response.text(500, f"Internal error: {e}")

    self.send(response, keep_alive)

    response_time_ms = (time() - start_time) * 1000
    self.server.metrics.log_request(
      client_ip=self.client_address[0],
      method=request.method,
      path=request.path,
      status=response.status,
      response_time_ms=response_time_ms,
      bytes_sent=len(response.body),
      cache_status=response.cache_status
    )

  def send(self, response, keep_alive):
    self.client_socket.sendall(response.to_bytes(keep_alive))


class Server:
  """
  Servidor HTTP: aceita conexões e cria uma ClientThread para cada uma.
  """

  def __init__(self, server_config, handlers, logger, metrics):
    self.config = server_config
    self.handlers = handlers
    self.logger = logger
    self.metrics = metrics
    self._socket = None
    self._running = threading.Event()
    self._bound = threading.Event()

  @property
  def cache(self):
    return self.handlers.cache

  @property
  def server_address(self):
    """(host, porta) efetivos, úteis quando a porta configurada é 0."""
    if self._socket is None:
      return (self.config.addr, self.config.port)
    return self._socket.getsockname()[:2]

  def bind(self):
    """Cria o socket de escuta."""
    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    # Permite reutilizar o endereço para evitar erro "Address already in use"
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
      server_socket.bind((self.config.addr, self.config.port))
      server_socket.listen(self.config.max_connections)
    except OSError:
      server_socket.close()
      raise
    self._socket = server_socket
    self._bound.set()
    return self.server_address

  def wait_until_bound(self, timeout=None):
    return self._bound.wait(timeout)

  def serve_forever(self):
    """
    Aceita conexões até shutdown() ser chamado. Bloqueia a thread atual.
    """
    if self._socket is None:
      self.bind()
    self._running.set()

    host, port = self.server_address
    self.logger.info(f"Servidor escutando em http://{host}:{port} {fields(rootDir=self.config.root_dir)}")

    try:
      while self._running.is_set():
        try:
          client_socket, client_address = self._socket.accept()
        except OSError as e:
          if not self._running.is_set() or e.errno in (errno.EBADF, errno.EINVAL):
            break
          raise
        self.logger.debug(f"Conexão aceita de {client_address[0]}:{client_address[1]}")
        ClientThread(self, client_socket, client_address).start()
    finally:
      self._close_socket()

  def shutdown(self):
    """Para de aceitar conexões. Conexões já abertas terminam sozinhas."""
    self._running.clear()
    self._close_socket()

  def _close_socket(self):
    if self._socket is not None:
      try:
        self._socket.shutdown(socket.SHUT_RDWR)
      except OSError:
        pass
      self._socket.close()


def _limit(cast):
  """Tipo do argparse para limites do cache: 0 significa sem limite (None)."""
  def parse(value):
    try:
      number = cast(value)
    except ValueError as e:
      raise argparse.ArgumentTypeError(f"invalid limit {value!r}") from e
    if number < 0:
      raise argparse.ArgumentTypeError(f"limit must be >= 0, got {value!r}")
    return number or None
  return parse


def build_parser():
  parser = argparse.ArgumentParser(
    prog="fileserver",
    description="Servidor HTTP de arquivos: lista, baixa (diretórios como zip) e recebe uploads.")
  parser.add_argument("-a", "--addr", default=config.HOST,
                      help="Endereço para escutar, sem a porta (padrão: %(default)s)")
  parser.add_argument("-p", "--port", type=int, default=config.PORT,
                      help="Porta para o servidor escutar (padrão: %(default)s)")
  parser.add_argument("-r", "--rootDir", dest="root_dir", required=True,
                      help="Diretório raiz. Todos os caminhos recebidos são relativos a ele")
  parser.add_argument("--level", dest="log_level", default=config.LOG_LEVEL,
                      help="Nível de log: TRACE, DEBUG, INFO, WARN, ERROR (padrão: %(default)s)")
  parser.add_argument("--logFile", dest="log_file", default=config.LOG_FILE,
                      help="Arquivo que recebe o log além do stdout")
  parser.add_argument("--noCache", dest="no_cache", action="store_true",
                      help="Não guardar em cache os dados devolvidos")
  parser.add_argument("--noDirs", dest="no_dirs", action="store_true",
                      help="Não devolver diretórios como zip nem aceitar uploads de zip")
  parser.add_argument("--metricsFile", dest="metrics_file", default=config.METRICS_FILE,
                      help="CSV que recebe uma linha de métricas por requisição")
  parser.add_argument("--cacheMaxItems", dest="cache_max_items", type=_limit(int), default=config.MAX_CACHE_ITEMS,
                      help="Número máximo de itens no cache, 0 = sem limite (padrão: %(default)s)")
  parser.add_argument("--cacheMaxBytes", dest="cache_max_bytes", type=_limit(int), default=config.MAX_CACHE_BYTES,
                      help="Tamanho máximo do cache em bytes, 0 = sem limite (padrão: %(default)s)")
  parser.add_argument("--cacheTTL", dest="cache_ttl_seconds", type=_limit(float), default=config.CACHE_TTL_SECONDS,
                      help="Tempo de vida das entradas do cache em segundos, 0 = sem expiração (padrão: sem expiração)")
  return parser


def config_from_args(args):
  return ServerConfig(
    root_dir=args.root_dir,
    addr=args.addr,
    port=args.port,
    log_level=args.log_level,
    log_file=args.log_file,
    enable_cache=not args.no_cache,
    serve_directories=not args.no_dirs,
    metrics_file=args.metrics_file,
    cache_max_items=args.cache_max_items,
    cache_max_bytes=args.cache_max_bytes,
    cache_ttl_seconds=args.cache_ttl_seconds,
  )


def main(argv=None):
  """
  Ponto de entrada da linha de comando. Devolve o código de saída.
  """
  args = build_parser().parse_args(argv)

  try:
    server = create(config_from_args(args))
  except ConfigError as e:
    print(f"Error while creating fileserver: {e}", file=sys.stderr)
    return 1

  try:
    server.serve_forever()
  except OSError as e:
    server.logger.error(f"Erro ao iniciar o servidor: {e}. A porta {args.port} já está em uso?")
    return 1
  except KeyboardInterrupt:
    server.logger.info("Servidor encerrado pelo usuário.")
    server.shutdown()
  return 0


if __name__ == "__main__":
  sys.exit(main())
