# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP host for the credential store.

The app owns one :class:`AuthenticationFacade` and binds its ``on_start`` /
``on_stop`` to the FastAPI lifespan. Routes translate facade outcomes into
status codes; they never expose exception details.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import JSONResponse

from credstore.auth.passwords import CredentialHasher
from credstore.auth.session import SessionSigner
from credstore.config import Settings
from credstore.core.identity import canon_identity
from credstore.errors import ServiceUnavailable
from credstore.infra.persistence import PersistenceGateway
from credstore.permissions import CurrentUser, cookie_settings, require_user
from credstore.service import AuthenticationFacade, ChangeOutcome, RegisterOutcome
from credstore.store import CredentialStore

_log = logging.getLogger(__name__)

REGISTER_STATUS = {
    RegisterOutcome.CREATED: 201,
    RegisterOutcome.REPLACED: 200,
    RegisterOutcome.CONFLICT: 409,
    RegisterOutcome.INVALID: 400,
    RegisterOutcome.HASHING_FAILED: 500,
}

CHANGE_STATUS = {
    ChangeOutcome.SUCCESS: 200,
    ChangeOutcome.NOT_FOUND: 404,
    ChangeOutcome.INVALID: 400,
    ChangeOutcome.HASHING_FAILED: 500,
}


def build_facade(settings: Settings) -> AuthenticationFacade:
    """Wire store, hasher and gateway. Raises HashingUnavailable if argon2 is unusable."""
    return AuthenticationFacade(
        CredentialStore(),
        CredentialHasher(),
        PersistenceGateway(settings.users_path, backup_on_save=settings.backup_on_save),
        allow_overwrite=settings.allow_overwrite,
        drain_timeout=settings.drain_timeout,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    facade: Optional[AuthenticationFacade] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    facade = facade or build_facade(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        facade.on_start()
        try:
            yield
        finally:
            facade.on_stop()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.facade = facade
    app.state.sessions = sessions = SessionSigner(settings)

    @app.exception_handler(ServiceUnavailable)
    async def _unavailable(request: Request, exc: ServiceUnavailable):
        return JSONResponse(status_code=503, content={"detail": "Servicio no disponible"})

    # ------------------ Routes ------------------

    @app.post("/login")
    def login_post(email: str = Form(...), password: str = Form(...)):
        if not facade.authenticate(email, password):
            return JSONResponse(status_code=401, content={"detail": "Credenciales inválidas"})
        key = canon_identity(email)
        resp = JSONResponse(content={"email": key})
        resp.set_cookie(
            settings.cookie_name,
            sessions.sign(key),
            max_age=settings.session_max_age,
            **cookie_settings(settings),
        )
        return resp

    @app.post("/logout")
    def logout_post():
        resp = JSONResponse(content={"detail": "ok"})
        resp.delete_cookie(settings.cookie_name)
        return resp

    @app.post("/register")
    def register_post(email: str = Form(...), password: str = Form(...)):
        outcome = facade.register(email, password)
        return JSONResponse(
            status_code=REGISTER_STATUS[outcome],
            content={"email": canon_identity(email), "outcome": outcome.value},
        )

    @app.get("/users/{email}")
    def user_exists(email: str):
        found = facade.exists(email)
        return JSONResponse(
            status_code=200 if found else 404,
            content={"email": canon_identity(email), "exists": found},
        )

    @app.post("/password")
    def change_password_post(new_password: str = Form(...), user: CurrentUser = Depends(require_user)):
        outcome = facade.change_password(user.email, new_password)
        return JSONResponse(status_code=CHANGE_STATUS[outcome], content={"outcome": outcome.value})

    @app.delete("/users/me")
    def remove_me(user: CurrentUser = Depends(require_user)):
        outcome = facade.remove_user(user.email)
        resp = JSONResponse(content={"email": user.email, "outcome": outcome.value})
        resp.delete_cookie(settings.cookie_name)
        return resp

    @app.get("/health")
    def health():
        return facade.stats()

    return app
