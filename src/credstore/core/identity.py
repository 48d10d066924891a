# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Dict, Mapping, Tuple


def canon_identity(s: str) -> str:
    """Canonicalise an email identity for comparisons (trim + lower)."""
    return (s or "").strip().lower()


def canon_table(table: Mapping[str, str]) -> Tuple[Dict[str, str], list[str]]:
    """Canonicalise every key of a loaded table.

    Returns the new table and the list of canonical identities that appeared
    more than once (last one wins). Empty identities are dropped.
    """
    out: Dict[str, str] = {}
    collisions: list[str] = []
    for raw, digest in table.items():
        key = canon_identity(raw)
        if not key:
            continue
        if key in out:
            collisions.append(key)
        out[key] = digest
    return out, collisions
