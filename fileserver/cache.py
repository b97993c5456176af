# fileserver/cache.py

import time
import threading
from collections import namedtuple

"""
Cache LRU (Least Recently Used) em memória para as respostas do servidor.

Guarda, por caminho absoluto, os bytes servidos e o content-type com que foram
servidos. É thread-safe e aceita limites opcionais de itens, de bytes e de
tempo de vida (TTL). Um limite None significa "sem limite".
"""

CacheEntry = namedtuple("CacheEntry", ["content", "content_type"])


class _Node:
  """Nó da lista duplamente encadeada que mantém a ordem de uso."""
  __slots__ = ("key", "entry", "expires_at", "size", "prev", "next")

  def __init__(self, key, entry, expires_at):
    self.key = key
    self.entry = entry
    self.expires_at = expires_at
    self.size = len(entry.content) if entry is not None else 0
    self.prev = None
    self.next = None


class LRUCache:
  """
  Cache LRU thread-safe.

  Um dicionário dá acesso O(1) aos nós e a lista encadeada (head = mais
  recente, tail = menos recente) permite mover e remover em O(1).
  """

  def __init__(self, max_items=None, max_bytes=None, ttl_seconds=None):
    self._nodes = {}
    self._lock = threading.Lock()

    self._max_items = max_items
    self._max_bytes = max_bytes
    self._ttl_seconds = ttl_seconds

    # Sentinelas
    self._head = _Node(None, None, None)
    self._tail = _Node(None, None, None)
    self._head.next = self._tail
    self._tail.prev = self._head

    self._hits = 0
    self._misses = 0
    self._evictions = 0
    self._current_bytes = 0
    self._version = 0
    self._stale_writes = 0

  def _unlink(self, node):
    node.prev.next = node.next
    node.next.prev = node.prev

  def _push_front(self, node):
    node.prev = self._head
    node.next = self._head.next
    self._head.next.prev = node
    self._head.next = node

  def _drop(self, node):
    """Remove o nó da lista e do dicionário. Exige o lock."""
    self._unlink(node)
    del self._nodes[node.key]
    self._current_bytes -= node.size

  def _over_limits(self):
    if self._max_items is not None and len(self._nodes) > self._max_items:
      return True
    if self._max_bytes is not None and self._current_bytes > self._max_bytes:
      return True
    return False

  def get(self, key):
    """Devolve o CacheEntry de 'key' ou None, marcando-o como mais recente."""
    with self._lock:
      node = self._nodes.get(key)
      if node is None:
        self._misses += 1
        return None

      # Expiração preguiçosa
      if node.expires_at is not None and time.monotonic() > node.expires_at:
        self._drop(node)
        self._misses += 1
        return None

      self._unlink(node)
      self._push_front(node)
      self._hits += 1
      return node.entry

  def version(self):
    """
    Contador de invalidações. Quem lê do disco após um miss guarda este valor
    e o passa para set(if_version=...), que descarta a escrita se houve uma
    invalidação no meio.
    """
    with self._lock:
      return self._version

  def set(self, key, content, content_type, ttl_seconds=None, if_version=None):
    """
    Guarda 'content' sob 'key', substituindo a entrada anterior.

    Devolve False (sem guardar nada) se 'if_version' não corresponde mais à
    versão atual.
    """
    ttl = ttl_seconds if ttl_seconds is not None else self._ttl_seconds
    expires_at = time.monotonic() + ttl if ttl is not None else None
    node = _Node(key, CacheEntry(content, content_type), expires_at)

    with self._lock:
      if if_version is not None and if_version != self._version:
        self._stale_writes += 1
        return False

      old = self._nodes.get(key)
      if old is not None:
        self._drop(old)

      self._nodes[key] = node
      self._push_front(node)
      self._current_bytes += node.size

      while self._over_limits():
        lru = self._tail.prev
        if lru is self._head:
          break
        self._drop(lru)
        self._evictions += 1
      return True

  def invalidate(self, key):
    """Remove 'key' do cache. Devolve True se havia uma entrada."""
    with self._lock:
      self._version += 1
      node = self._nodes.get(key)
      if node is None:
        return False
      self._drop(node)
      return True

  def invalidate_prefix(self, prefix):
    """Remove todas as chaves que começam com 'prefix'. Devolve quantas saíram."""
    with self._lock:
      self._version += 1
      stale = [node for key, node in self._nodes.items() if key.startswith(prefix)]
      for node in stale:
        self._drop(node)
      return len(stale)

  def clear(self):
    with self._lock:
      self._version += 1
      for node in list(self._nodes.values()):
        self._drop(node)

  def __len__(self):
    with self._lock:
      return len(self._nodes)

  def __contains__(self, key):
    with self._lock:
      return key in self._nodes

  def stats(self):
    """Retorna estatísticas do cache."""
    with self._lock:
      return {
        "hits": self._hits,
        "misses": self._misses,
        "evictions": self._evictions,
        "stale_writes": self._stale_writes,
        "current_items": len(self._nodes),
        "current_bytes": self._current_bytes,
        "max_items": self._max_items,
        "max_bytes": self._max_bytes,
      }
