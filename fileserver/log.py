# fileserver/log.py

import logging
import os
import sys

from .errors import ConfigError

"""
Configuração do logging: cada linha vai para o stdout e, se houver um arquivo
de log configurado, também para esse arquivo.

Cada destino é um handler independente do módulo logging. Uma falha de
escrita em um deles é reportada por Handler.handleError (no stderr) e não
impede a escrita no outro.
"""

LOGGER_NAME = "fileserver"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVELS = {
  "TRACE": TRACE,
  "DEBUG": logging.DEBUG,
  "INFO": logging.INFO,
  "WARN": logging.WARNING,
  "WARNING": logging.WARNING,
  "ERROR": logging.ERROR,
}


def parse_level(name):
  """Converte o nome de um nível ('debug', 'WARN', ...) para o valor do logging."""
  level = LEVELS.get(str(name).strip().upper())
  if level is None:
    raise ConfigError(f"invalid log level '{name}'")
  return level


def fields(**values):
  """Formata campos estruturados como 'chave=valor', na ordem recebida."""
  return " ".join(f"{key}={value!r}" if isinstance(value, str) else f"{key}={value}"
                  for key, value in values.items())


def configure_logging(level="DEBUG", log_file=None):
  """
  Configura e devolve o logger do servidor.

  Chamadas repetidas substituem (e fecham) os handlers anteriores.

  Raises:
    ConfigError: nível desconhecido ou arquivo de log que não pode ser aberto.
  """
  logger = logging.getLogger(LOGGER_NAME)
  logger.setLevel(parse_level(level))
  logger.propagate = False

  for handler in list(logger.handlers):
    logger.removeHandler(handler)
    handler.close()

  formatter = logging.Formatter(LOG_FORMAT)
  handlers = [logging.StreamHandler(sys.stdout)]

  if log_file:
    # Garante que o diretório de logs existe
    directory = os.path.dirname(os.path.abspath(log_file))
    try:
      os.makedirs(directory, exist_ok=True)
      handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    except OSError as e:
      raise ConfigError(f"failed to open log file '{log_file}': {e}") from e

  for handler in handlers:
    handler.setFormatter(formatter)
    logger.addHandler(handler)

  return logger


def get_logger():
  return logging.getLogger(LOGGER_NAME)
