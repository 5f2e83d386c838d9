"""
Expired-account cleanup — for cron or manual runs.

Usage:
    uv run python -m onay_auth.scripts.cleanup_expired            # deactivate
    uv run python -m onay_auth.scripts.cleanup_expired delete

`deactivate` closes every active session of expired users.
`delete` removes expired users together with their sessions.
"""

import asyncio
import logging
import sys

from onay_auth.core.config import settings
from onay_auth.core.database import build_engine, build_session_factory
from onay_auth.services.cleanup_service import CleanupMode, cleanup_expired_users

logger = logging.getLogger("cleanup-expired")


def parse_mode(argv: list[str]) -> CleanupMode:
    raw = (argv[0] if argv else "").strip().lower()
    return CleanupMode.DELETE if raw == CleanupMode.DELETE.value else CleanupMode.DEACTIVATE


async def run(mode: CleanupMode) -> int:
    engine = build_engine(settings.DATABASE_URL)
    session_factory = build_session_factory(engine)
    try:
        async with session_factory() as session:
            result = await cleanup_expired_users(mode, session)
            await session.commit()
    except Exception:
        logger.exception("Cleanup failed")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        "mode=%s expiredUsers=%s affectedSessions=%s",
        result.mode.value,
        result.expired_users,
        result.affected_sessions,
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    sys.exit(asyncio.run(run(parse_mode(sys.argv[1:]))))
