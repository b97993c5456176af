# fileserver/archive.py

import io
import os
import zipfile
from collections import namedtuple

from .errors import ArchiveError
from .paths import is_within

"""
Codec de arquivos zip: compacta um diretório inteiro em memória e extrai
bytes de um zip para dentro de um diretório.
"""

# Registro transitório usado apenas durante a extração
UploadedFile = namedtuple("UploadedFile", ["name", "data"])


def _raise(error):
  raise error


def zip_dir_to_bytes(dir_path):
  """
  Compacta o conteúdo de 'dir_path' e devolve os bytes do zip.

  Os nomes dentro do zip são relativos ao diretório e usam '/' como
  separador. Diretórios vazios são gravados como entradas 'nome/'.
  """
  if not os.path.isdir(dir_path):
    raise ArchiveError(f"'{dir_path}' is not a directory")

  buffer = io.BytesIO()
  with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
    for current, dirs, files in os.walk(dir_path, onerror=_raise):
      dirs.sort()
      relative_dir = os.path.relpath(current, dir_path)

      if relative_dir != "." and not dirs and not files:
        zf.writestr(relative_dir.replace(os.sep, "/") + "/", b"")

      for name in sorted(files):
        full_path = os.path.join(current, name)
        arcname = os.path.relpath(full_path, dir_path).replace(os.sep, "/")
        zf.write(full_path, arcname=arcname)

  return buffer.getvalue()


def read_entries(zip_data):
  """Lê todas as entradas do zip para a memória antes de qualquer escrita."""
  try:
    zf = zipfile.ZipFile(io.BytesIO(zip_data))
  except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
    raise ArchiveError(f"Failed to read zip data: {e}") from e

  files = []
  with zf:
    for info in zf.infolist():
      try:
        data = b"" if info.is_dir() else zf.read(info)
      except (zipfile.BadZipFile, NotImplementedError, RuntimeError, OSError) as e:
        raise ArchiveError(f"Failed to unzip file '{info.filename}': {e}") from e
      files.append(UploadedFile(info.filename, data))
  return files


def _entry_path(dir_path, name):
  """
  Resolve o destino de uma entrada, recusando nomes que escapam do diretório,
  inclusive através de links simbólicos já existentes.
  """
  base_dir = os.path.abspath(dir_path)
  path = os.path.normpath(os.path.join(base_dir, name.lstrip("/")))
  try:
    inside = is_within(path, base_dir)
  except ValueError as e:
    raise ArchiveError(f"Invalid zip entry name {name!r}: {e}") from e
  if not inside:
    raise ArchiveError(f"Zip entry '{name}' resolves outside of '{dir_path}'")
  return path


def unzip_to_dir(dir_path, zip_data):
  """
  Extrai os bytes de um zip para dentro de 'dir_path'.

  Cria o diretório de destino e os diretórios intermediários de cada entrada.
  A primeira entrada que falhar interrompe a operação; as que já foram
  escritas permanecem no disco.

  Returns:
    list: Caminhos absolutos escritos.
  """
  files = read_entries(zip_data)

  written = []
  for file in files:
    try:
      os.makedirs(dir_path, exist_ok=True)
    except OSError as e:
      raise ArchiveError(f"failed to make dirs '{dir_path}': {e}") from e

    path = _entry_path(dir_path, file.name)

    if file.name.endswith("/"):
      try:
        os.makedirs(path, exist_ok=True)
      except OSError as e:
        raise ArchiveError(f"failed to make dirs '{path}': {e}") from e
      continue

    parent = os.path.dirname(path)
    try:
      os.makedirs(parent, exist_ok=True)
    except OSError as e:
      raise ArchiveError(f"failed to make dirs '{parent}': {e}") from e

    try:
      out_file = open(path, "wb")
    except OSError as e:
      raise ArchiveError(f"Failed to open or create file '{path}': {e}") from e

    with out_file:
      try:
        out_file.write(file.data)
      except OSError as e:
        raise ArchiveError(f"Failed to write data to file '{path}': {e}") from e

    written.append(path)

  return written
