# tests/test_server.py

import logging
import socket
import pytest

from fileserver import config
from fileserver.config import ServerConfig
from fileserver.errors import ConfigError
from fileserver.log import TRACE, configure_logging, fields, parse_level
from fileserver.server import build_parser, config_from_args, create, main

# --- Criação do servidor ---

def test_create_with_existing_root(tmp_path):
  server = create(ServerConfig(root_dir=str(tmp_path)))
  assert server.cache is not None
  assert server.handlers.root_dir == str(tmp_path)
  assert server.server_address == ("localhost", 9092)

def test_create_makes_missing_root(tmp_path):
  root = tmp_path / "a" / "b"
  create(ServerConfig(root_dir=str(root)))
  assert root.is_dir()

def test_create_without_root_fails():
  with pytest.raises(ConfigError) as exc:
    create(ServerConfig(root_dir=""))
  assert "failed to read root dir" in str(exc.value)

def test_create_with_file_as_root_fails(tmp_path):
  path = tmp_path / "file.txt"
  path.write_text("x")
  with pytest.raises(ConfigError) as exc:
    create(ServerConfig(root_dir=str(path)))
  assert "failed to read root dir" in str(exc.value)

def test_create_with_uncreatable_root_fails(tmp_path):
  path = tmp_path / "file.txt"
  path.write_text("x")
  with pytest.raises(ConfigError) as exc:
    create(ServerConfig(root_dir=str(path / "sub")))
  assert "failed to read root dir" in str(exc.value)

def test_create_with_invalid_log_level_fails(tmp_path):
  with pytest.raises(ConfigError) as exc:
    create(ServerConfig(root_dir=str(tmp_path), log_level="LOUD"))
  assert "failed to create logger" in str(exc.value)

def test_create_without_cache(tmp_path):
  server = create(ServerConfig(root_dir=str(tmp_path), enable_cache=False))
  assert server.cache is None

def test_create_with_metrics_file(tmp_path):
  metrics_file = tmp_path / "metrics" / "requests.csv"
  create(ServerConfig(root_dir=str(tmp_path), metrics_file=str(metrics_file)))
  assert metrics_file.exists()

def test_bind_to_port_in_use_fails(tmp_path):
  busy = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
  busy.bind(("127.0.0.1", 0))
  busy.listen(1)
  try:
    port = busy.getsockname()[1]
    server = create(ServerConfig(root_dir=str(tmp_path), addr="127.0.0.1", port=port))
    with pytest.raises(OSError):
      server.bind()
  finally:
    busy.close()

# --- Logging ---

@pytest.mark.parametrize("name,level", [
  ("trace", TRACE), ("DEBUG", logging.DEBUG), ("Info", logging.INFO),
  ("WARN", logging.WARNING), ("warning", logging.WARNING), ("ERROR", logging.ERROR),
])
def test_parse_level(name, level):
  assert parse_level(name) == level

def test_log_goes_to_stdout_and_file(tmp_path, capsys):
  log_file = tmp_path / "logs" / "server.log"
  logger = configure_logging("INFO", str(log_file))
  logger.debug("linha filtrada")
  logger.info(f"linha registrada {fields(path='/x', entries=2)}")

  out = capsys.readouterr().out
  assert "linha registrada path='/x' entries=2" in out
  assert "linha filtrada" not in out
  content = log_file.read_text(encoding="utf-8")
  assert "linha registrada" in content
  assert "[INFO]" in content
  assert "linha filtrada" not in content

def test_log_file_is_appended(tmp_path):
  log_file = tmp_path / "server.log"
  configure_logging("INFO", str(log_file)).info("primeira")
  configure_logging("INFO", str(log_file)).info("segunda")
  content = log_file.read_text(encoding="utf-8")
  assert content.index("primeira") < content.index("segunda")

def test_reconfigure_replaces_handlers(tmp_path):
  configure_logging("DEBUG", str(tmp_path / "a.log"))
  logger = configure_logging("DEBUG")
  assert len(logger.handlers) == 1

def test_log_file_in_uncreatable_dir_fails(tmp_path):
  blocker = tmp_path / "blocker"
  blocker.write_text("x")
  with pytest.raises(ConfigError):
    configure_logging("DEBUG", str(blocker / "server.log"))

# --- Linha de comando ---

def test_parser_defaults(tmp_path):
  args = build_parser().parse_args(["-r", str(tmp_path)])
  server_config = config_from_args(args)
  assert server_config.addr == config.HOST
  assert server_config.port == 9092
  assert server_config.log_level == "DEBUG"
  assert server_config.log_file is None
  assert server_config.enable_cache is True
  assert server_config.serve_directories is True

def test_parser_flags(tmp_path):
  args = build_parser().parse_args([
    "--addr", "0.0.0.0", "-p", "8081", "--rootDir", str(tmp_path), "--level", "WARN",
    "--logFile", str(tmp_path / "log.txt"), "--noCache", "--noDirs", "--cacheTTL", "2.5",
  ])
  server_config = config_from_args(args)
  assert server_config.address == "0.0.0.0:8081"
  assert server_config.enable_cache is False
  assert server_config.serve_directories is False
  assert server_config.cache_ttl_seconds == 2.5

def test_parser_requires_root_dir():
  with pytest.raises(SystemExit):
    build_parser().parse_args([])

def test_main_reports_config_error(tmp_path, capsys):
  path = tmp_path / "file.txt"
  path.write_text("x")
  assert main(["-r", str(path)]) == 1
  assert "failed to read root dir" in capsys.readouterr().err

def test_parser_zero_limits_mean_unbounded(tmp_path):
  args = build_parser().parse_args([
    "-r", str(tmp_path), "--cacheMaxItems", "0", "--cacheMaxBytes", "0", "--cacheTTL", "0",
  ])
  server_config = config_from_args(args)
  assert server_config.cache_max_items is None
  assert server_config.cache_max_bytes is None
  assert server_config.cache_ttl_seconds is None

  cache = create(server_config).cache
  assert cache.stats()["max_items"] is None
  assert cache.stats()["max_bytes"] is None

@pytest.mark.parametrize("flag,value", [("--cacheMaxItems", "-1"), ("--cacheMaxBytes", "lots"), ("--cacheTTL", "-2")])
def test_parser_rejects_invalid_limits(tmp_path, flag, value):
  with pytest.raises(SystemExit):
    build_parser().parse_args(["-r", str(tmp_path), flag, value])
