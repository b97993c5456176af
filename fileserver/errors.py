# fileserver/errors.py

"""
Hierarquia de exceções do servidor de arquivos.
"""


class FileServerError(Exception):
  """Erro base de todas as falhas do servidor."""


class ConfigError(FileServerError):
  """Configuração inválida. É fatal na inicialização."""


class InvalidPathError(FileServerError):
  """O caminho requisitado não pode ser usado no sistema de arquivos."""

  def __init__(self, request_path, message=None):
    super().__init__(message or f"invalid path '{request_path}'")
    self.request_path = request_path


class PathOutsideRootError(InvalidPathError):
  """O caminho requisitado resolve para fora do diretório raiz."""

  def __init__(self, request_path, root):
    super().__init__(request_path, f"path '{request_path}' resolves outside of root dir '{root}'")
    self.root = root


class ArchiveError(FileServerError):
  """Falha ao compactar ou extrair um arquivo zip."""


class ProtocolError(FileServerError):
  """Requisição HTTP malformada."""


class BodyReadError(ProtocolError):
  """O corpo da requisição não pôde ser lido por completo."""
