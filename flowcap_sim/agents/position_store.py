#!/usr/bin/env python3
"""
Position bookkeeping

Positions keyed by (account_id, position_id). Each account has its own table.
Positions are frozen values: a write replaces the whole record. A per-position
lock serialises decision passes on the same position; different positions
never contend.
"""

import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from ..core.models import Position


class PositionStore:
    """Thread-safe in-memory position table"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Position]] = {}
        self._table_lock = threading.Lock()
        self._position_locks: Dict[Tuple[str, str], threading.Lock] = {}

    def get(self, account_id: str, position_id: str) -> Optional[Position]:
        with self._table_lock:
            return self._tables.get(account_id, {}).get(position_id)

    def list_positions(self, account_id: str) -> List[Position]:
        with self._table_lock:
            return list(self._tables.get(account_id, {}).values())

    def accounts(self) -> List[str]:
        with self._table_lock:
            return list(self._tables)

    def put(self, account_id: str, position: Position):
        """Insert or replace a whole position record"""
        with self._table_lock:
            self._tables.setdefault(account_id, {})[position.position_id] = position

    def _lock_for(self, account_id: str, position_id: str) -> threading.Lock:
        with self._table_lock:
            key = (account_id, position_id)
            if key not in self._position_locks:
                self._position_locks[key] = threading.Lock()
            return self._position_locks[key]

    @contextmanager
    def exclusive(self, account_id: str, position_id: str, blocking: bool = True):
        """
        Hold the decision lock for one position.

        Yields True when the lock was acquired, False when blocking=False and
        another pass already holds it.
        """
        lock = self._lock_for(account_id, position_id)
        acquired = lock.acquire(blocking=blocking)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()
