#!/usr/bin/env python3
"""Add or replace a user in the users file.

The server keeps the table in memory and writes it only when it stops, so a
user added here while the server is running is overwritten at the server's
next shutdown. Stop the server first.

An unreadable users file aborts the script and is left untouched.
"""
from __future__ import annotations

from getpass import getpass

from credstore.app import build_facade
from credstore.config import Settings
from credstore.errors import PersistenceReadFailure
from credstore.service import RegisterOutcome


def main() -> None:
    settings = Settings.from_env()
    facade = build_facade(settings)
    facade.allow_overwrite = True
    try:
        facade.on_start(strict=True)
    except PersistenceReadFailure as e:
        raise SystemExit(f"No se pudo leer {settings.users_path}: {e}")

    email = input("Email: ").strip()
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords no coinciden")

    outcome = facade.register(email, pw1)
    if outcome not in (RegisterOutcome.CREATED, RegisterOutcome.REPLACED):
        raise SystemExit(f"No se pudo registrar el usuario ({outcome.value})")
    if not facade.on_stop():
        raise SystemExit(f"No se pudo escribir {settings.users_path}")
    print(f"OK ({outcome.value}) -> {settings.users_path}")


if __name__ == "__main__":
    main()
