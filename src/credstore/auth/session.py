# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signed session cookies carrying the canonical email of the logged-in user."""

from __future__ import annotations

from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from credstore.config import Settings
from credstore.core.identity import canon_identity


class SessionSigner:
    """Issues and checks session tokens using the secret and lifetime from Settings.

    The secret is checked on use rather than on construction, so an app
    without ``SECRET_KEY`` still serves the routes that need no session.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _serializer(self) -> URLSafeTimedSerializer:
        if not self.settings.secret_key:
            raise RuntimeError("Falta SECRET_KEY (o CREDSTORE_SECRET_KEY) en entorno")
        return URLSafeTimedSerializer(secret_key=self.settings.secret_key, salt=self.settings.session_salt)

    def sign(self, email: str) -> str:
        key = canon_identity(email)
        if not key:
            raise ValueError("Email vacío")
        return self._serializer().dumps({"e": key})

    def verify(self, token: str) -> Optional[str]:
        """Return the canonical email for a valid, unexpired token, else None."""
        if not token:
            return None
        try:
            data = self._serializer().loads(token, max_age=self.settings.session_max_age)
        except BadSignature:
            return None
        if not isinstance(data, dict):
            return None
        return canon_identity(str(data.get("e") or "")) or None
