# fileserver/handlers.py

"""
Roteamento e handlers das três operações do servidor:

  GET  /entries/{path}  lista as entradas de um diretório
  GET  /content/{path}  devolve um arquivo (raw) ou um diretório (zip)
  POST /content/{path}  grava um arquivo ou extrai um zip no destino

Toda falha de requisição vira um 400 com uma mensagem que inclui o caminho
resolvido e o erro original.
"""

import os
import stat

from . import archive, config
from .errors import ArchiveError, InvalidPathError
from .log import fields, get_logger
from .paths import ancestors, resolve
from .protocol import Response

ENTRIES_PREFIX = "/entries"
CONTENT_PREFIX = "/content"


def _media_type(content_type):
  return content_type.split(";", 1)[0].strip().lower()


class FileHandlers:
  """
  Handlers ligados a uma configuração, a um cache (opcional) e a um logger.
  """

  def __init__(self, server_config, cache=None, logger=None):
    self.config = server_config
    self.root_dir = server_config.root_dir
    self.cache = cache if server_config.enable_cache else None
    self.logger = logger or get_logger()

  # --- Roteamento ---

  def dispatch(self, request):
    """Escolhe o handler pela rota e pelo método e devolve a Response."""
    route, relative = self._match(request.path)
    if route is None:
      return Response.text(404, f"No route for '{request.path}'")

    if route == ENTRIES_PREFIX:
      if request.method != "GET":
        return self._method_not_allowed(request, "GET")
      return self.list_entries(relative)

    if request.method == "GET":
      return self.get_content(relative)
    if request.method == "POST":
      return self.upload_content(relative, request.body, request.headers.get("content-type", ""))
    return self._method_not_allowed(request, "GET, POST")

  def _match(self, url_path):
    for prefix in (ENTRIES_PREFIX, CONTENT_PREFIX):
      if url_path == prefix or url_path.startswith(prefix + "/"):
        return prefix, url_path[len(prefix):]
    return None, None

  def _method_not_allowed(self, request, allowed):
    return Response.text(405, f"Method {request.method} not allowed for '{request.path}'",
                         headers={"Allow": allowed})

  def _resolve(self, relative):
    """Resolve o caminho ou devolve (None, Response 400) se ele for inválido ou sair da raiz."""
    try:
      return resolve(self.root_dir, relative), None
    except InvalidPathError as e:
      self.logger.warning(f"Caminho inválido {fields(path=relative, error=str(e))}")
      return None, Response.text(400, f"Invalid path {relative!r}: {e}")

  # --- Handlers ---

  def list_entries(self, relative):
    """Lista as entradas (não recursivo, na ordem do sistema de arquivos)."""
    path, error = self._resolve(relative)
    if error:
      return error

    try:
      names = os.listdir(path)
    except OSError as e:
      self.logger.warning(f"Falha ao listar entradas do diretório {fields(error=str(e), dirPath=path)}")
      return Response.text(400, f"Failed to read directory '{path}': {e}")

    body = ",".join(names)
    self.logger.info(f"Requisição de entradas processada {fields(entries=body)}")
    return Response.text(200, body)

  def get_content(self, relative):
    """
    Devolve o conteúdo de um arquivo (content-type 'raw') ou de um diretório
    compactado (content-type 'application/zip').

    Com o cache habilitado, a resposta de um caminho já servido sai do cache
    com o content-type guardado junto dos bytes.
    """
    path, error = self._resolve(relative)
    if error:
      return error
    self.logger.debug(f"Requisição de conteúdo recebida {fields(addr=relative, fullPath=path)}")

    # --- Etapa 1: Consultar o Cache ---
    cache_status = "DISABLED"
    cache_version = None
    if self.cache is not None:
      entry = self.cache.get(path)
      if entry is not None:
        self.logger.info(f"Conteúdo devolvido a partir do cache {fields(path=path)}")
        return Response(200, entry.content, entry.content_type, cache_status="HIT")
      cache_status = "MISS"
      # Lido antes do disco: um upload concorrente invalida depois de gravar
      cache_version = self.cache.version()

    # --- Etapa 2: Ler do Disco ---
    try:
      info = os.stat(path)
    except OSError as e:
      self.logger.warning(f"Falha ao ler dados do arquivo {fields(error=str(e), path=path)}")
      return Response.text(400, f"Failed to read file at '{path}': {e}", cache_status=cache_status)

    if stat.S_ISDIR(info.st_mode):
      if not self.config.serve_directories:
        self.logger.warning(f"Diretório requisitado com diretórios desabilitados {fields(path=path)}")
        return Response.text(400, f"'{path}' is a directory and serving directories is disabled",
                             cache_status=cache_status)
      try:
        data = archive.zip_dir_to_bytes(path)
      except (OSError, ArchiveError) as e:
        self.logger.warning(f"Falha ao compactar diretório {fields(error=str(e), path=path)}")
        return Response.text(400, f"Failed to zip dir '{path}': {e}", cache_status=cache_status)
      content_type = config.ZIP_CONTENT_TYPE
      self.logger.info(f"Diretório devolvido como zip {fields(path=path)}")
    else:
      try:
        with open(path, "rb") as f:
          data = f.read()
      except OSError as e:
        return Response.text(400, f"Failed to read file at '{path}': {e}", cache_status=cache_status)
      content_type = config.RAW_CONTENT_TYPE
      self.logger.info(f"Arquivo devolvido como dados raw {fields(path=path)}")

    # --- Etapa 3: Armazenar no Cache ---
    if self.cache is not None:
      if not self.cache.set(path, data, content_type, if_version=cache_version):
        self.logger.debug(f"Conteúdo não guardado no cache: invalidado durante a leitura {fields(path=path)}")

    return Response(200, data, content_type, cache_status=cache_status)

  def upload_content(self, relative, body, content_type):
    """
    Grava o corpo da requisição no destino.

    Com content-type 'application/zip' o corpo é extraído como zip para dentro
    do destino; caso contrário é gravado como um único arquivo.
    """
    path, error = self._resolve(relative)
    if error:
      return error
    self.logger.debug(
      f"Requisição de upload recebida {fields(content_type=content_type, destAddr=relative, fullPath=path)}")

    is_zip = _media_type(content_type) == config.ZIP_CONTENT_TYPE
    if is_zip:
      if not self.config.serve_directories:
        self.logger.warning(f"Upload de zip recusado com diretórios desabilitados {fields(path=path)}")
        return Response.text(400, "Zip content is not permitted while serving directories is disabled")
      try:
        archive.unzip_to_dir(path, body)
      except (OSError, ArchiveError) as e:
        self.logger.warning(f"Falha ao extrair zip do upload {fields(error=str(e), path=path)}")
        return Response.text(400, str(e))
    else:
      error = self._write_file(path, body)
      if error:
        return error

    self._invalidate(path, is_zip)
    self.logger.info(f"Dados do upload gravados {fields(path=path)}")
    return Response.text(200, f"Successfully wrote data to '{path}'")

  def _write_file(self, path, body):
    directory = os.path.dirname(path)
    try:
      os.makedirs(directory, exist_ok=True)
    except OSError as e:
      self.logger.warning(f"Falha ao criar diretórios {fields(error=str(e), dirs=directory)}")
      return Response.text(400, f"Failed to make dirs '{directory}': {e}")

    try:
      out_file = open(path, "wb")
    except OSError as e:
      self.logger.warning(f"Falha ao criar/truncar arquivo do upload {fields(file=path, error=str(e))}")
      return Response.text(400, f"Failed to open file '{path}': {e}")

    with out_file:
      try:
        out_file.write(body)
      except OSError as e:
        self.logger.warning(f"Falha ao escrever dados do upload {fields(error=str(e), file=path)}")
        return Response.text(400, f"Failed to write data to file '{path}': {e}")
    return None

  def _invalidate(self, path, is_zip):
    """Remove do cache o destino, os zips dos diretórios acima dele e, para zips, tudo abaixo."""
    if self.cache is None:
      return
    removed = int(self.cache.invalidate(path))
    for directory in ancestors(path, self.root_dir):
      removed += int(self.cache.invalidate(directory))
    if is_zip:
      removed += self.cache.invalidate_prefix(path.rstrip(os.sep) + os.sep)
    if removed:
      self.logger.debug(f"Entradas do cache invalidadas {fields(path=path, removed=removed)}")
