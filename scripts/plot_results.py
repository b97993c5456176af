# scripts/plot_results.py

import argparse
import csv
import os
from collections import Counter, defaultdict

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

def plot_latency_histogram(load_test_file, output_dir):
  """Histograma de latências do teste de carga, separado por método."""
  latencies = defaultdict(list)
  try:
    with open(load_test_file, 'r', newline='') as f:
      for row in csv.DictReader(f):
        if row['success'].lower() == 'true':
          latencies[row['method']].append(float(row['latency_ms']))
  except FileNotFoundError:
    print(f"Erro: Arquivo de teste de carga '{load_test_file}' não encontrado.")
    return

  if not latencies:
    print("Nenhum dado de latência disponível para plotar.")
    return

  plt.figure(figsize=(10, 6))
  for method, values in sorted(latencies.items()):
    plt.hist(values, bins=50, alpha=0.6, edgecolor='black', label=f"{method} ({len(values)})")
  plt.title("Distribuição das Latências de Requisição")
  plt.xlabel("Latência (ms)")
  plt.ylabel("Frequência")
  plt.legend()

  output_path = os.path.join(output_dir, "latency_histogram.png")
  plt.savefig(output_path)
  plt.close()
  print(f"Histograma de latências salvo em: {output_path}")

def plot_cache_statuses(metrics_file, output_dir):
  """Gráfico de pizza com os status de cache das requisições GET /content."""
  try:
    with open(metrics_file, 'r', newline='') as f:
      statuses = Counter(
        row['cache_status'] for row in csv.DictReader(f)
        if row['method'] == 'GET' and row['path'].startswith('/content')
      )
  except FileNotFoundError:
    print(f"Erro: Arquivo de métricas '{metrics_file}' não encontrado.")
    return

  if not statuses:
    print("Nenhum dado de cache registrado.")
    return

  labels = sorted(statuses)
  plt.figure(figsize=(8, 8))
  plt.pie([statuses[label] for label in labels], labels=labels, autopct='%1.1f%%', startangle=90)
  plt.axis('equal')
  plt.title("Status do Cache em GET /content")

  output_path = os.path.join(output_dir, "cache_statuses.png")
  plt.savefig(output_path)
  plt.close()
  print(f"Gráfico de status do cache salvo em: {output_path}")

if __name__ == "__main__":
  parser = argparse.ArgumentParser(description="Gera gráficos a partir dos resultados de benchmark.")
  parser.add_argument("plot_type", choices=['latency', 'cache'], help="O tipo de gráfico a ser gerado.")
  parser.add_argument("--load-test-file", default="results/load_test_results.csv")
  parser.add_argument("--metrics-file", default="metrics/requests.csv")
  parser.add_argument("--output-dir", default="results")
  args = parser.parse_args()

  os.makedirs(args.output_dir, exist_ok=True)
  if args.plot_type == 'latency':
    plot_latency_histogram(args.load_test_file, args.output_dir)
  else:
    plot_cache_statuses(args.metrics_file, args.output_dir)
