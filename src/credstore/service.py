# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication facade: the single entry point for the request layer.

Every request is short and synchronous. The facade only adds three things on
top of the store:

- identity canonicalisation (see ``credstore.core.identity``),
- hashing / verification through a :class:`CredentialHasher`,
- a start/stop lifecycle with an in-flight counter so ``on_stop`` can drain
  requests before the table is written to disk.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from credstore.auth.passwords import CredentialHasher
from credstore.core.identity import canon_identity, canon_table
from credstore.errors import HashingUnavailable, PersistenceWriteFailure, ServiceUnavailable
from credstore.infra.persistence import PersistenceGateway
from credstore.store import CredentialStore

_log = logging.getLogger(__name__)


class RegisterOutcome(str, Enum):
    CREATED = "created"
    REPLACED = "replaced"
    CONFLICT = "conflict"
    INVALID = "invalid"
    HASHING_FAILED = "hashing_failed"


class ChangeOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    HASHING_FAILED = "hashing_failed"
    INVALID = "invalid"


class RemoveOutcome(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


class AuthenticationFacade:
    """Authenticate / register / change / remove against a CredentialStore.

    Args:
        store: the in-memory table, owned by the host process.
        hasher: password hashing primitive.
        gateway: backing file used by ``on_start`` / ``on_stop``.
        allow_overwrite: when True, registering an existing identity replaces
            its password; when False it is reported as a conflict.
        drain_timeout: seconds ``on_stop`` waits for in-flight requests
            (None waits indefinitely).
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: CredentialHasher,
        gateway: PersistenceGateway,
        *,
        allow_overwrite: bool = True,
        drain_timeout: Optional[float] = None,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.gateway = gateway
        self.allow_overwrite = allow_overwrite
        self.drain_timeout = drain_timeout

        self._cond = threading.Condition()
        self._running = False
        self._in_flight = 0
        # Set when a stop could not write the table; a later stop may retry.
        self._unsaved = False

    # ------------------ Lifecycle ------------------

    def on_start(self, *, strict: bool = False) -> int:
        """Load the backing file into the store and open for traffic.

        With ``strict`` an unreadable file raises PersistenceReadFailure instead
        of starting empty, so callers that write the file back never wipe it.
        """
        loaded = self.gateway.load_strict() if strict else self.gateway.load()
        table, collisions = canon_table(loaded)
        for identity in collisions:
            _log.warning("Duplicate identity %s in users file, keeping the last entry", identity)
        self.store.replace_all(table)
        with self._cond:
            self._running = True
            self._unsaved = False
        _log.info("Credential store started with %d users", len(table))
        return len(table)

    def on_stop(self) -> bool:
        """Stop accepting requests, drain, save and clear.

        Returns True when the table was written. On write failure the table
        stays in memory, False is returned and a later stop retries the save.
        A stop on a facade that is not running (never started, or already
        stopped) writes nothing and returns False.
        """
        with self._cond:
            if not self._running and not self._unsaved:
                _log.warning("on_stop called on a facade that is not running, nothing saved")
                return False
            self._running = False
            deadline = None if self.drain_timeout is None else time.monotonic() + self.drain_timeout
            while self._in_flight:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    _log.warning("Drain timed out with %d requests in flight, saving anyway", self._in_flight)
                    break
                self._cond.wait(remaining)

        snapshot = self.store.load_all()
        try:
            self.gateway.save(snapshot)
        except PersistenceWriteFailure as e:
            with self._cond:
                self._unsaved = True
            _log.error("Unable to save users, changes since last save may be lost: %s", e)
            return False
        with self._cond:
            self._unsaved = False
        self.store.clear()
        return True

    @property
    def running(self) -> bool:
        with self._cond:
            return self._running

    @contextmanager
    def _request(self) -> Iterator[None]:
        with self._cond:
            if not self._running:
                raise ServiceUnavailable("El servicio no está disponible")
            self._in_flight += 1
        try:
            yield
        finally:
            with self._cond:
                self._in_flight -= 1
                if not self._in_flight:
                    self._cond.notify_all()

    # ------------------ Requests ------------------

    def authenticate(self, identity: str, plain: str) -> bool:
        with self._request():
            key = canon_identity(identity)
            digest = self.store.get(key) if key else None
            if digest is None:
                self.hasher.verify_dummy(plain)
                return False
            if not self.hasher.verify(digest, plain):
                return False
            if self.hasher.needs_rehash(digest):
                self._rehash(key, digest, plain)
            return True

    def _rehash(self, key: str, old: str, plain: str) -> None:
        try:
            new = self.hasher.hash(plain)
        except HashingUnavailable:
            return
        if self.store.compare_and_set(key, old, new):
            _log.info("Upgraded password hash parameters for %s", key)

    def exists(self, identity: str) -> bool:
        with self._request():
            key = canon_identity(identity)
            return bool(key) and self.store.exists(key)

    def register(self, identity: str, plain: str) -> RegisterOutcome:
        with self._request():
            key = canon_identity(identity)
            if not key or not plain:
                return RegisterOutcome.INVALID
            if not self.allow_overwrite and self.store.exists(key):
                return RegisterOutcome.CONFLICT
            try:
                digest = self.hasher.hash(plain)
            except HashingUnavailable:
                return RegisterOutcome.HASHING_FAILED

            if self.store.put_if_absent(key, digest):
                _log.debug("Registered %s", key)
                return RegisterOutcome.CREATED
            if not self.allow_overwrite:
                return RegisterOutcome.CONFLICT
            self.store.put(key, digest)
            _log.debug("Re-registered %s, previous password replaced", key)
            return RegisterOutcome.REPLACED

    def change_password(self, identity: str, new_plain: str) -> ChangeOutcome:
        with self._request():
            key = canon_identity(identity)
            if not key or not self.store.exists(key):
                return ChangeOutcome.NOT_FOUND
            if not new_plain:
                return ChangeOutcome.INVALID
            try:
                digest = self.hasher.hash(new_plain)
            except HashingUnavailable:
                return ChangeOutcome.HASHING_FAILED
            # The record may have been removed while hashing.
            if not self.store.replace(key, digest):
                return ChangeOutcome.NOT_FOUND
            _log.debug("Changed password for %s", key)
            return ChangeOutcome.SUCCESS

    def remove_user(self, identity: str) -> RemoveOutcome:
        with self._request():
            key = canon_identity(identity)
            if key and self.store.remove(key):
                _log.debug("Removed %s", key)
                return RemoveOutcome.REMOVED
            return RemoveOutcome.NOT_FOUND

    def stats(self) -> dict:
        with self._cond:
            running, in_flight = self._running, self._in_flight
        return {"users": len(self.store), "running": running, "in_flight": in_flight}
