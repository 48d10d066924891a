# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-memory credential table (identity -> password digest).

Keys are expected to be canonical already; canonicalisation is the facade's job.
"""

from __future__ import annotations

import threading
from typing import Dict, Mapping, Optional


class CredentialStore:
    """Thread-safe mapping from identity to password digest.

    A single re-entrant lock guards every read, write and bulk operation.
    """

    def __init__(self, table: Optional[Mapping[str, str]] = None) -> None:
        self._lock = threading.RLock()
        self._table: Dict[str, str] = dict(table or {})

    def get(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._table.get(identity)

    def exists(self, identity: str) -> bool:
        with self._lock:
            return identity in self._table

    def put(self, identity: str, digest: str) -> None:
        with self._lock:
            self._table[identity] = digest

    def put_if_absent(self, identity: str, digest: str) -> bool:
        """Insert only when no record exists. Returns True if inserted."""
        with self._lock:
            if identity in self._table:
                return False
            self._table[identity] = digest
            return True

    def replace(self, identity: str, digest: str) -> bool:
        """Overwrite only an existing record. Returns False (and stores nothing) otherwise."""
        with self._lock:
            if identity not in self._table:
                return False
            self._table[identity] = digest
            return True

    def compare_and_set(self, identity: str, expected: str, digest: str) -> bool:
        """Overwrite a record only if it still holds ``expected``."""
        with self._lock:
            if self._table.get(identity) != expected:
                return False
            self._table[identity] = digest
            return True

    def remove(self, identity: str) -> bool:
        with self._lock:
            return self._table.pop(identity, None) is not None

    def load_all(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._table)

    def replace_all(self, table: Mapping[str, str]) -> None:
        with self._lock:
            self._table = dict(table)

    def clear(self) -> None:
        with self._lock:
            self._table.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)
