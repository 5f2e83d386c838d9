"""
Bootstrap script — creates (or promotes) an ADMIN user.

Usage:
    uv run python -m onay_auth.scripts.create_admin
    uv run python -m onay_auth.scripts.create_admin <login> <password>

Run it once after `alembic upgrade head`.  Without arguments it prompts.
If the login already exists the account is promoted to admin and its
password replaced; all other users are created from the admin API.
"""

import asyncio
import getpass
import sys

from onay_auth.core.config import settings
from onay_auth.core.database import build_engine, build_session_factory
from onay_auth.core.security import hash_password
from onay_auth.models.user import User, UserRole, normalize_login
from onay_auth.services.user_service import MIN_PASSWORD_LENGTH, get_user_by_login


def _prompt() -> tuple[str, str] | None:
    print("\n🔧  Onay Chat — Admin Setup\n")
    login = input("  Admin login: ")
    password = getpass.getpass("  Password:    ")
    confirm = getpass.getpass("  Confirm:     ")
    if password != confirm:
        print("\n❌  Passwords do not match.")
        return None
    return login, password


async def create_admin(login: str, password: str) -> int:
    login = normalize_login(login)
    if not login or not password:
        print("\n❌  Login and password are required.")
        return 1
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"\n❌  Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return 1

    engine = build_engine(settings.DATABASE_URL)
    session_factory = build_session_factory(engine)
    try:
        async with session_factory() as session:
            user = await get_user_by_login(login, session)
            if user is None:
                user = User(
                    login=login,
                    password_hash=hash_password(password),
                    role=UserRole.ADMIN,
                    device_id=None,
                    expires_at=None,
                )
                session.add(user)
                verb = "created"
            else:
                user.password_hash = hash_password(password)
                user.role = UserRole.ADMIN
                verb = "promoted"
            await session.commit()
    finally:
        await engine.dispose()

    print(f"\n✅  Admin user {verb}: id={user.id} login={user.login}")
    print("    Log in via POST /auth/login\n")
    return 0


def main(argv: list[str]) -> int:
    if len(argv) >= 2:
        credentials = argv[0], argv[1]
    else:
        credentials = _prompt()
        if credentials is None:
            return 1
    return asyncio.run(create_admin(*credentials))


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
