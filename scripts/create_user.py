#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from fitrack.auth.service import AuthService
from fitrack.auth.session import SessionStore
from fitrack.config import Settings
from fitrack.infra.db import Database, init_db, make_engine


def main() -> None:
    settings = Settings.from_env()
    engine = make_engine(settings.database_url)
    init_db(engine)
    auth = AuthService(Database(engine), SessionStore())

    username = input("Username: ").strip()
    email = input("Email: ").strip()
    first_name = input("First name (optional): ").strip()
    last_name = input("Last name (optional): ").strip()
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")

    outcome = auth.register(
        username=username,
        email=email,
        password=pw1,
        confirm_password=pw2,
        first_name=first_name,
        last_name=last_name,
    )
    if not outcome.success:
        raise SystemExit("\n".join(outcome.errors))
    print(f"OK -> user id {outcome.session.user_id} in {settings.database_url}")


if __name__ == "__main__":
    main()
