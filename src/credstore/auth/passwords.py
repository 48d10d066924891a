# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

from credstore.errors import HashingUnavailable

_log = logging.getLogger(__name__)

_PROBE = "credstore-probe"


class CredentialHasher:
    """One-way password transform backed by argon2id.

    Digests are salted per call, so two hashes of the same password differ;
    equality is checked with :meth:`verify`, which compares in constant time.

    Construction runs a probe hash. If the primitive is unusable the
    constructor raises :class:`HashingUnavailable`, which callers should treat
    as fatal at startup.
    """

    def __init__(
        self,
        *,
        time_cost: Optional[int] = None,
        memory_cost: Optional[int] = None,
        parallelism: Optional[int] = None,
    ) -> None:
        kwargs = {}
        if time_cost is not None:
            kwargs["time_cost"] = time_cost
        if memory_cost is not None:
            kwargs["memory_cost"] = memory_cost
        if parallelism is not None:
            kwargs["parallelism"] = parallelism
        try:
            self._ph = PasswordHasher(**kwargs)
            self._dummy = self._ph.hash(_PROBE)
        except (HashingError, ValueError) as e:
            raise HashingUnavailable(f"argon2 no disponible: {e}") from e

    def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("Password vacío")
        try:
            return self._ph.hash(plain)
        except HashingError as e:
            _log.error("argon2 hashing failed: %s", e)
            raise HashingUnavailable(str(e)) from e

    def verify(self, digest: str, plain: str) -> bool:
        if not digest or not plain:
            return False
        try:
            return self._ph.verify(digest, plain)
        except (VerificationError, InvalidHashError):
            return False

    def verify_dummy(self, plain: str) -> None:
        """Spend the same work as a real verification, for unknown identities."""
        self.verify(self._dummy, plain or _PROBE)

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._ph.check_needs_rehash(digest)
        except (InvalidHashError, ValueError):
            return False
