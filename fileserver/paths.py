# fileserver/paths.py

import os

from .errors import InvalidPathError, PathOutsideRootError


def resolve(root, request_path):
  """
  Junta o diretório raiz com o caminho enviado pelo cliente.

  Barras iniciais são removidas para que o resultado fique sempre abaixo da
  raiz; segmentos '.' e '..' são colapsados. Depois da junção o caminho
  canônico (com links simbólicos resolvidos) precisa continuar dentro da raiz
  canônica, caso contrário PathOutsideRootError é lançado.

  Returns:
    str: Caminho absoluto normalizado (sem resolver links simbólicos).

  Raises:
    InvalidPathError: caminho com byte nulo (ex.: '%00' na URL).
    PathOutsideRootError: caminho fora da raiz.
  """
  if "\x00" in request_path:
    raise InvalidPathError(request_path, f"invalid path {request_path!r}: embedded null byte")

  base_dir = os.path.abspath(root)
  relative = request_path.replace("\\", "/").lstrip("/")
  path = os.path.normpath(os.path.join(base_dir, relative))

  if not is_within(path, base_dir):
    raise PathOutsideRootError(request_path, root)

  return path


def is_within(path, base_dir):
  """Indica se o caminho canônico de 'path' é 'base_dir' ou fica abaixo dele."""
  real_root = os.path.realpath(base_dir)
  real_path = os.path.realpath(path)
  return real_path == real_root or os.path.commonpath([real_root, real_path]) == real_root


def ancestors(path, root):
  """Lista os diretórios entre 'path' (exclusivo) e a raiz (inclusiva)."""
  base_dir = os.path.abspath(root)
  result = []
  current = os.path.dirname(path)
  while current.startswith(base_dir):
    result.append(current)
    if current == base_dir:
      break
    current = os.path.dirname(current)
  return result
