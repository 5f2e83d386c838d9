import pytest
from fastapi import HTTPException
from sqlalchemy import select

from onay_auth.models import AdminAction, User, UserRole, UserSession
from onay_auth.services import session_service


async def _session_row(db, session_id):
    return (
        await db.execute(
            select(UserSession)
            .where(UserSession.id == session_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()


@pytest.mark.asyncio
async def test_create_session_starts_active(db, create_user):
    user = await create_user("alice", device_id="A")
    session_id = await session_service.create_session(user.id, "A", "10.0.0.1", "pytest", db)

    row = await _session_row(db, session_id)
    assert row.is_active
    assert row.device_id == "A"
    assert row.ip == "10.0.0.1"
    assert row.user_agent == "pytest"


@pytest.mark.asyncio
async def test_find_session_for_auth_reads_current_user_state(db, create_user):
    """The joined row reflects the user as it is now, not as it was at login."""
    user = await create_user("alice", device_id="A")
    session_id = await session_service.create_session(user.id, "A", None, None, db)

    db_user = await db.get(User, user.id)
    db_user.device_id = "B"
    db_user.role = UserRole.ADMIN
    await db.flush()

    row = await session_service.find_session_for_auth(session_id, db)
    assert row.session_id == session_id
    assert row.user_id == user.id
    assert row.is_active
    assert row.device_id == "B"
    assert row.role == UserRole.ADMIN
    assert row.expires_at is None


@pytest.mark.asyncio
async def test_find_session_for_auth_unknown_id(db):
    assert await session_service.find_session_for_auth(999, db) is None


@pytest.mark.asyncio
async def test_deactivate_session_is_idempotent(db, create_user):
    user = await create_user("alice")
    session_id = await session_service.create_session(user.id, "A", None, None, db)

    await session_service.deactivate_session(session_id, db)
    await session_service.deactivate_session(session_id, db)

    row = await _session_row(db, session_id)
    assert row.is_active is False


@pytest.mark.asyncio
async def test_deactivate_all_user_sessions_counts_only_active_ones(db, create_user):
    alice = await create_user("alice")
    bob = await create_user("bob")
    first = await session_service.create_session(alice.id, "A", None, None, db)
    await session_service.create_session(alice.id, "A", None, None, db)
    await session_service.create_session(bob.id, "B", None, None, db)
    await session_service.deactivate_session(first, db)

    assert await session_service.deactivate_all_user_sessions(alice.id, db) == 1
    assert await session_service.deactivate_all_user_sessions(alice.id, db) == 0

    bob_row = (
        await db.execute(select(UserSession).where(UserSession.user_id == bob.id))
    ).scalar_one()
    assert bob_row.is_active


@pytest.mark.asyncio
async def test_list_sessions_filters_and_counts_active(db, create_user):
    alice = await create_user("alice")
    bob = await create_user("bob", role=UserRole.ADMIN)
    closed = await session_service.create_session(alice.id, "A", None, None, db)
    await session_service.create_session(alice.id, "A", None, None, db)
    await session_service.create_session(bob.id, "X", None, None, db)
    await session_service.deactivate_session(closed, db)

    rows, active_count = await session_service.list_sessions(db)
    assert len(rows) == 3
    assert active_count == 2
    assert {r.login for r in rows} == {"alice", "bob"}

    rows, active_count = await session_service.list_sessions(db, active_only=True)
    assert len(rows) == 2
    assert all(r.is_active for r in rows)
    assert active_count == 2
    assert closed not in {r.id for r in rows}


@pytest.mark.asyncio
async def test_delete_session_returns_owner(db, create_user):
    alice = await create_user("alice")
    session_id = await session_service.create_session(alice.id, "A", None, None, db)

    assert await session_service.delete_session(session_id, db) == alice.id
    assert await _session_row(db, session_id) is None
    assert await session_service.delete_session(session_id, db) is None


@pytest.mark.asyncio
async def test_admin_cannot_delete_own_current_session(db, create_user):
    admin = await create_user("root", role=UserRole.ADMIN)
    current = await session_service.create_session(admin.id, "X", None, None, db)

    with pytest.raises(HTTPException) as exc:
        await session_service.admin_delete_session(current, current, admin.id, db)
    assert exc.value.status_code == 400
    assert exc.value.detail == "Current session cannot be deleted"

    row = await _session_row(db, current)
    assert row is not None
    assert row.is_active


@pytest.mark.asyncio
async def test_admin_delete_session_logs_the_owner(db, create_user):
    admin = await create_user("root", role=UserRole.ADMIN)
    alice = await create_user("alice")
    current = await session_service.create_session(admin.id, "X", None, None, db)
    target = await session_service.create_session(alice.id, "A", None, None, db)

    await session_service.admin_delete_session(target, current, admin.id, db)

    assert await _session_row(db, target) is None
    entry = (await db.execute(select(AdminAction))).scalar_one()
    assert entry.action == "delete_session"
    assert entry.admin_user_id == admin.id
    assert entry.target_user_id == alice.id
    assert entry.notes == f"session_id={target}"


@pytest.mark.asyncio
async def test_admin_delete_unknown_session(db, create_user):
    admin = await create_user("root", role=UserRole.ADMIN)
    with pytest.raises(HTTPException) as exc:
        await session_service.admin_delete_session(404, 1, admin.id, db)
    assert exc.value.status_code == 404
