"""Thread-safe transposition index for the line fisher.

Maps a canonical position key (see ``notation.position_key``) to the index
of the first line that reached the position. First writer wins: a later
line reaching the same position never overwrites the entry, so the
transposition target is always the earliest line in dequeue order.

Usage (example):

    from fisher.core.transposition import TranspositionIndex

    index = TranspositionIndex()
    if index.record(key, line.index):
        ...  # first line to reach the position
    else:
        target = index.lookup(key)

"""
from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from fisher.core.notation import position_key


class TranspositionIndex:
    """Dict keyed by position key, guarded by a lock.

    Methods:
      - lookup(key) -> Optional[int]
      - record(key, line_index) -> bool  (True when inserted)
      - lookup_fen(fen) / record_fen(fen, line_index)
      - entries() -> [(key, line_index)] in record order
      - clear()
    """

    def __init__(self, entries: Optional[Iterable[Tuple[str, int]]] = None):
        self._table: Dict[str, int] = {}
        self._lock = threading.Lock()
        for key, line_index in entries or ():
            self.record(key, line_index)

    def lookup(self, key: str) -> Optional[int]:
        with self._lock:
            return self._table.get(key)

    def record(self, key: str, line_index: int) -> bool:
        with self._lock:
            if key in self._table:
                return False
            self._table[key] = line_index
            return True

    def lookup_fen(self, fen: str) -> Optional[int]:
        return self.lookup(position_key(fen))

    def record_fen(self, fen: str, line_index: int) -> bool:
        return self.record(position_key(fen), line_index)

    def entries(self) -> List[Tuple[str, int]]:
        # dicts keep insertion order, which is record order
        with self._lock:
            return list(self._table.items())

    def clear(self):
        with self._lock:
            self._table.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._table
