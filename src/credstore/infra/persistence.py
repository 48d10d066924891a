# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""YAML backing file for the credential table.

File layout::

    version: 1
    users:
      a@x.com:
        password_hash: "$argon2id$..."
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from credstore.errors import PersistenceReadFailure, PersistenceWriteFailure

_log = logging.getLogger(__name__)

FORMAT_VERSION = 1


class PersistenceGateway:
    """Loads and saves the identity -> digest table as a YAML file.

    ``load`` never raises: a fresh install has no file yet, and a damaged file
    must not keep the service from starting. ``save`` is atomic (temp file +
    rename) and raises :class:`PersistenceWriteFailure` so the caller decides
    how to report it.
    """

    def __init__(self, path: os.PathLike | str, *, backup_on_save: bool = False) -> None:
        self.path = Path(path)
        self.backup_on_save = backup_on_save

    def load(self) -> Dict[str, str]:
        if not self.path.exists():
            _log.warning("Users file %s not found, starting with an empty table", self.path)
            return {}
        try:
            return self._read()
        except PersistenceReadFailure as e:
            _log.warning("Unable to read users file %s (%s), starting with an empty table", self.path, e)
            return {}

    def load_strict(self) -> Dict[str, str]:
        """Like :meth:`load`, but an unreadable file raises PersistenceReadFailure.

        A missing file is still an empty table.
        """
        if not self.path.exists():
            return {}
        return self._read()

    def _read(self) -> Dict[str, str]:
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise PersistenceReadFailure(str(e)) from e

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise PersistenceReadFailure("top-level document is not a mapping")
        version = raw.get("version")
        if version != FORMAT_VERSION:
            raise PersistenceReadFailure(f"unsupported version {version!r}")
        users = raw.get("users") or {}
        if not isinstance(users, dict):
            raise PersistenceReadFailure("'users' is not a mapping")

        out: Dict[str, str] = {}
        for uname, udata in users.items():
            identity = str(uname or "")
            ph = ""
            if isinstance(udata, dict):
                ph = str(udata.get("password_hash") or "").strip()
            if not identity.strip() or not ph:
                _log.warning("Skipping malformed entry %r in %s", uname, self.path)
                continue
            out[identity] = ph
        return out

    def save(self, table: Mapping[str, str]) -> None:
        doc = {
            "version": FORMAT_VERSION,
            "users": {k: {"password_hash": v} for k, v in table.items()},
        }
        tmp_name = ""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            text = yaml.safe_dump(doc, sort_keys=True, allow_unicode=True)
            if self.backup_on_save:
                self.backup()
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = ""
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceWriteFailure(f"No se pudo escribir {self.path}: {e}") from e
        finally:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
        _log.info("Saved %d users to %s", len(doc["users"]), self.path)

    def backup(self) -> Optional[Path]:
        """Create a timestamped .bak copy next to the users file."""
        if not self.path.exists():
            return None
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        dst = self.path.with_suffix(self.path.suffix + f".bak_{ts}")
        shutil.copy2(self.path, dst)
        return dst
