# fileserver/config.py

"""
Arquivo de configuração central para o servidor de arquivos.

As constantes abaixo são os valores padrão; a linha de comando pode
sobrescrevê-las ao construir o ServerConfig.
"""

from dataclasses import dataclass
from typing import Optional

# Configurações de Rede
HOST = "localhost"              # Endereço padrão (sem a porta)
PORT = 9092                     # Porta padrão
MAX_CONNECTIONS = 100           # Número máximo de conexões enfileiradas no socket
KEEP_ALIVE_TIMEOUT = 5          # Segundos que uma conexão keep-alive aguarda por nova requisição

# Configurações de Log
LOG_LEVEL = "DEBUG"             # Nível padrão de log
LOG_FILE = None                 # Sem arquivo: logs apenas no stdout
METRICS_FILE = None             # Sem arquivo: métricas desabilitadas

# Configurações de Conteúdo
ENABLE_CACHE = True             # Habilita ou desabilita o cache em memória
SERVE_DIRECTORIES = True        # Permite devolver diretórios como zip (e receber zips)
ZIP_CONTENT_TYPE = "application/zip"
RAW_CONTENT_TYPE = "raw"

# Limites do cache LRU (None = sem limite)
MAX_CACHE_ITEMS = 1000
MAX_CACHE_BYTES = 256 * 1024 * 1024   # 256MB
CACHE_TTL_SECONDS = None              # Entradas não expiram por tempo


@dataclass(frozen=True)
class ServerConfig:
  """Configuração imutável de uma instância do servidor."""
  root_dir: str
  addr: str = HOST
  port: int = PORT
  log_level: str = LOG_LEVEL
  log_file: Optional[str] = LOG_FILE
  enable_cache: bool = ENABLE_CACHE
  serve_directories: bool = SERVE_DIRECTORIES
  metrics_file: Optional[str] = METRICS_FILE
  cache_max_items: Optional[int] = MAX_CACHE_ITEMS
  cache_max_bytes: Optional[int] = MAX_CACHE_BYTES
  cache_ttl_seconds: Optional[float] = CACHE_TTL_SECONDS
  keep_alive_timeout: float = KEEP_ALIVE_TIMEOUT
  max_connections: int = MAX_CONNECTIONS

  @property
  def address(self):
    return f"{self.addr}:{self.port}"
