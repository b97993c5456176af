# fileserver/metrics.py

import csv
import os
import threading
from datetime import datetime, timezone

from .log import get_logger

HEADER = [
  "timestamp", "client_ip", "method", "path", "status",
  "response_time_ms", "bytes_sent", "cache_status"
]


class MetricsLogger:
  """
  Registra uma linha de métricas por requisição em um arquivo CSV, de forma thread-safe.
  """

  def __init__(self, filepath):
    """
    Args:
      filepath (str): Caminho do CSV. O diretório e o cabeçalho são criados se faltarem.
    """
    self.filepath = filepath
    self._lock = threading.Lock()
    self._initialize_file()

  def _initialize_file(self):
    with self._lock:
      directory = os.path.dirname(os.path.abspath(self.filepath))
      os.makedirs(directory, exist_ok=True)

      if not os.path.exists(self.filepath) or os.path.getsize(self.filepath) == 0:
        with open(self.filepath, 'w', newline='') as f:
          csv.writer(f).writerow(HEADER)

  def log_request(self, client_ip, method, path, status, response_time_ms, bytes_sent, cache_status):
    """
    Acrescenta uma linha ao CSV.

    Args:
      cache_status (str): "HIT", "MISS", "DISABLED" ou "N/A" quando a rota não usa cache.
    """
    row = [
      datetime.now(timezone.utc).isoformat(), client_ip, method, path, status,
      f"{response_time_ms:.2f}", bytes_sent, cache_status
    ]

    with self._lock:
      try:
        with open(self.filepath, 'a', newline='') as f:
          csv.writer(f).writerow(row)
      except OSError as e:
        get_logger().error(f"Falha ao escrever no arquivo de métricas '{self.filepath}': {e}")


class NullMetricsLogger:
  """Usado quando nenhum arquivo de métricas foi configurado."""

  def log_request(self, *args, **kwargs):
    pass
