from datetime import datetime, timedelta, timezone

import pytest

from onay_auth.models.user import UserRole
from onay_auth.rbac.access_policy import (
    ACCOUNT_EXPIRED_MESSAGE,
    DEVICE_IN_USE_MESSAGE,
    Capability,
    as_utc,
    evaluate_access,
    has_capability,
    is_expired_at,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_unbound_user_is_allowed_and_bound():
    decision = evaluate_access(None, "A", UserRole.USER, None, NOW)
    assert decision.ok
    assert decision.should_bind_device
    assert decision.status == 200
    assert decision.device_id == "A"


def test_same_device_is_allowed_without_rebinding():
    decision = evaluate_access("A", "A", UserRole.USER, None, NOW)
    assert decision.ok
    assert not decision.should_bind_device
    assert decision.device_id == "A"


def test_other_device_is_rejected():
    decision = evaluate_access("A", "B", UserRole.USER, None, NOW)
    assert not decision.ok
    assert decision.status == 403
    assert decision.message == DEVICE_IN_USE_MESSAGE
    assert decision.device_id is None


def test_expired_account_is_gone_even_on_bound_device():
    decision = evaluate_access("A", "A", UserRole.USER, NOW - timedelta(days=1), NOW)
    assert not decision.ok
    assert decision.status == 410
    assert decision.message == ACCOUNT_EXPIRED_MESSAGE
    assert not decision.should_bind_device


def test_expiry_at_exactly_now_counts_as_expired():
    decision = evaluate_access(None, "A", UserRole.USER, NOW, NOW)
    assert decision.status == 410


def test_future_expiry_is_allowed():
    decision = evaluate_access("A", "A", UserRole.USER, NOW + timedelta(seconds=1), NOW)
    assert decision.ok


@pytest.mark.parametrize("bound", [None, "A", "B"])
def test_admin_is_allowed_on_any_device_and_never_bound(bound):
    decision = evaluate_access(bound, "C", UserRole.ADMIN, None, NOW)
    assert decision.ok
    assert not decision.should_bind_device
    assert decision.device_id == "C"


def test_expired_admin_is_rejected_too():
    decision = evaluate_access(None, "C", UserRole.ADMIN, NOW - timedelta(minutes=1), NOW)
    assert decision.status == 410


def test_role_given_as_plain_string():
    assert evaluate_access("A", "B", "admin", None, NOW).ok
    assert evaluate_access("A", "B", "user", None, NOW).status == 403


def test_unknown_role_has_no_capabilities():
    assert not has_capability("superuser", Capability.MULTI_DEVICE)
    decision = evaluate_access("A", "B", "superuser", None, NOW)
    assert decision.status == 403


def test_capability_table():
    assert has_capability(UserRole.ADMIN, Capability.MULTI_DEVICE)
    assert has_capability(UserRole.ADMIN, Capability.MANAGE_USERS)
    assert not has_capability(UserRole.USER, Capability.MULTI_DEVICE)
    assert not has_capability(UserRole.USER, Capability.MANAGE_USERS)


def test_naive_timestamps_are_treated_as_utc():
    naive = datetime(2025, 6, 1, 12, 0)
    assert as_utc(naive) == NOW
    assert is_expired_at(naive, NOW)
    assert not is_expired_at(naive + timedelta(hours=1), NOW)


def test_no_expiry_never_expires():
    assert not is_expired_at(None, NOW)
