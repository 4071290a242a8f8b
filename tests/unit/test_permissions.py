from __future__ import annotations

from account_sessions.domain.auth.permissions import Permission, PermissionSet


def test_includes_checks_membership() -> None:
    granted = PermissionSet([Permission.READ_USER])

    assert granted.includes(Permission.READ_USER) is True
    assert granted.includes(Permission.WRITE_USER) is False


def test_includes_all_requires_every_permission() -> None:
    granted = PermissionSet([Permission.READ_USER, Permission.WRITE_USER])

    assert granted.includes_all([Permission.READ_USER, Permission.WRITE_USER]) is True
    assert PermissionSet([Permission.READ_USER]).includes_all(
        [Permission.READ_USER, Permission.WRITE_USER]
    ) is False
    assert PermissionSet().includes_all([]) is True


def test_duplicates_collapse_and_iteration_is_sorted() -> None:
    granted = PermissionSet(
        [Permission.WRITE_USER, Permission.READ_USER, Permission.WRITE_USER]
    )

    assert len(granted) == 2
    assert list(granted) == [Permission.READ_USER, Permission.WRITE_USER]
    assert granted == PermissionSet([Permission.READ_USER, Permission.WRITE_USER])
    assert repr(granted) == "PermissionSet({user:read, user:write})"
