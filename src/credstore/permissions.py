# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from credstore.auth.session import SessionSigner
from credstore.config import Settings


@dataclass(frozen=True)
class CurrentUser:
    email: str


def load_user_from_request(request: Request) -> Optional[CurrentUser]:
    settings: Settings = request.app.state.settings
    signer: SessionSigner = request.app.state.sessions
    email = signer.verify(request.cookies.get(settings.cookie_name, ""))
    if not email:
        return None
    # The account may have been removed after the cookie was issued.
    if not request.app.state.facade.exists(email):
        return None
    return CurrentUser(email=email)


def require_user(request: Request) -> CurrentUser:
    u = load_user_from_request(request)
    if u:
        return u
    raise HTTPException(status_code=401, detail="No autenticado")


def cookie_settings(settings: Settings) -> dict:
    return {"httponly": True, "samesite": "lax", "secure": settings.cookie_secure}
