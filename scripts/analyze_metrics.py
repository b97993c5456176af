# scripts/analyze_metrics.py

import argparse
import csv
from collections import Counter, defaultdict

def route_of(path):
  """'/content/a/b.txt' -> '/content'."""
  return "/" + path.lstrip("/").split("/", 1)[0]

def analyze_metrics(metrics_file):
  """
  Lê o CSV de métricas gerado com --metricsFile e imprime um resumo.
  """
  try:
    with open(metrics_file, 'r', newline='') as f:
      records = list(csv.DictReader(f))
  except FileNotFoundError:
    print(f"Erro: Arquivo de métricas '{metrics_file}' não encontrado.")
    return

  if not records:
    print("Nenhum registro de métricas encontrado.")
    return

  latencies_by_route = defaultdict(list)
  for r in records:
    latencies_by_route[(r['method'], route_of(r['path']))].append(float(r['response_time_ms']))

  status_counts = Counter(r['status'] for r in records)
  cache_statuses = Counter(r['cache_status'] for r in records)
  hits = cache_statuses.get("HIT", 0)
  lookups = hits + cache_statuses.get("MISS", 0)
  hit_rate = (hits / lookups * 100) if lookups else 0
  total_bytes = sum(int(r['bytes_sent']) for r in records)

  print("--- Análise de Métricas do Servidor de Arquivos ---")
  print(f"\nTotal de Requisições: {len(records)}")

  print("\nLatência por rota:")
  for (method, route), latencies in sorted(latencies_by_route.items()):
    avg = sum(latencies) / len(latencies)
    print(f"  - {method} {route}: {len(latencies)} req, média {avg:.2f} ms, máxima {max(latencies):.2f} ms")

  print("\nStatus das Respostas:")
  for status, count in sorted(status_counts.items()):
    print(f"  - {status}: {count}")

  print("\nDesempenho do Cache:")
  print(f"  - Hits: {hits}")
  print(f"  - Misses: {cache_statuses.get('MISS', 0)}")
  print(f"  - Desabilitado: {cache_statuses.get('DISABLED', 0)}")
  print(f"  - Taxa de Acerto (Hit Rate): {hit_rate:.2f}%")

  print(f"\nTotal de Bytes Enviados: {total_bytes / (1024 * 1024):.2f} MB")

if __name__ == "__main__":
  parser = argparse.ArgumentParser(description="Resumo do CSV de métricas do servidor.")
  parser.add_argument("metrics_file", nargs="?", default="metrics/requests.csv")
  analyze_metrics(parser.parse_args().metrics_file)
