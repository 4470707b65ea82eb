"""Unit tests for auth/accounts.py -- account workflows.

Covers the end-to-end account scenarios without HTTP:
- register: role defaults to user, duplicate is a conflict with no new row,
  length policy enforced
- login: unknown user and wrong password are indistinguishable and both run
  bcrypt; success issues a token carrying role "user"
- update: self-or-admin, role changes only by admins and only to valid roles,
  rename collisions, password change, nothing-to-update
- list: ordered by creation
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from auth.accounts import AccountService
from auth.errors import AccessDenied, DuplicateUsername, InvalidCredentials, InvalidInput, NotFound
from auth.models import Identity, Role, SessionClaims


def _claims_for(accounts: AccountService, identity: Identity) -> SessionClaims:
    token = accounts.tokens.issue(identity.id, identity.username, identity.role)
    return accounts.tokens.verify(token)


@pytest.fixture
def alice(accounts: AccountService) -> Identity:
    return accounts.register("alice", "password123")


@pytest.fixture
def admin(accounts: AccountService) -> Identity:
    return accounts.create_identity("root", "rootpass123", Role.ADMIN)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_creates_user_role(self, accounts: AccountService) -> None:
        identity = accounts.register("alice", "password123")
        assert identity.username == "alice"
        assert identity.role is Role.USER
        assert identity.id is not None

    def test_password_is_stored_hashed(self, accounts: AccountService) -> None:
        identity = accounts.register("alice", "password123")
        assert identity.password_hash != "password123"
        assert accounts.hasher.verify("password123", identity.password_hash)

    def test_duplicate_is_conflict_and_creates_nothing(self, accounts: AccountService, alice: Identity) -> None:
        with pytest.raises(DuplicateUsername) as exc_info:
            accounts.register("alice", "different-pass")
        assert exc_info.value.message == "Username is already taken"
        assert [i.username for i in accounts.list_identities()] == ["alice"]

    @pytest.mark.parametrize(
        ("username", "password"),
        [
            ("al", "password123"),  # username too short
            ("a" * 33, "password123"),  # username too long
            ("alice", "short"),  # password too short
            ("alice", "p" * 33),  # password too long
            ("alice", "\U0001f510" * 18 + "aaaaaaaa"),  # 26 chars but 80 bytes
            (None, "password123"),
            ("alice", None),
            (123, "password123"),
        ],
    )
    def test_length_policy(self, accounts: AccountService, username, password) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            accounts.register(username, password)
        assert "username: 3-32, password: 8-32" in exc_info.value.message
        assert accounts.list_identities() == []

    @pytest.mark.parametrize(("username", "password"), [("abc", "12345678"), ("a" * 32, "p" * 32)])
    def test_length_bounds_inclusive(self, accounts: AccountService, username: str, password: str) -> None:
        assert accounts.register(username, password).username == username

    def test_create_identity_rejects_unknown_role(self, accounts: AccountService) -> None:
        with pytest.raises(InvalidInput):
            accounts.create_identity("root", "rootpass123", "superuser")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_wrong_password(self, accounts: AccountService, alice: Identity) -> None:
        with pytest.raises(InvalidCredentials) as exc_info:
            accounts.login("alice", "wrongpass")
        assert exc_info.value.message == "Invalid credentials"

    def test_unknown_user_matches_wrong_password(self, accounts: AccountService, alice: Identity) -> None:
        with pytest.raises(InvalidCredentials) as unknown:
            accounts.login("mallory", "password123")
        with pytest.raises(InvalidCredentials) as wrong:
            accounts.login("alice", "wrongpass")
        assert unknown.value.message == wrong.value.message
        assert unknown.value.code == wrong.value.code

    def test_unknown_user_still_runs_bcrypt(self, accounts: AccountService) -> None:
        with patch.object(accounts.hasher, "verify_dummy", wraps=accounts.hasher.verify_dummy) as spy:
            with pytest.raises(InvalidCredentials):
                accounts.login("mallory", "password123")
        spy.assert_called_once_with("password123")

    def test_non_string_fields_are_invalid_input(self, accounts: AccountService) -> None:
        with pytest.raises(InvalidInput):
            accounts.login(None, "password123")

    def test_success_issues_token_with_user_role(self, accounts: AccountService, alice: Identity) -> None:
        result = accounts.login("alice", "password123")
        claims = accounts.tokens.verify(result.token)
        assert claims.subject == alice.id
        assert claims.username == "alice"
        assert claims.role is Role.USER
        assert result.identity == alice


# ---------------------------------------------------------------------------
# Profile and listing
# ---------------------------------------------------------------------------


class TestProfile:
    def test_profile_reads_current_record(self, accounts: AccountService, alice: Identity) -> None:
        claims = _claims_for(accounts, alice)
        assert accounts.profile(claims) == alice

    def test_profile_for_vanished_subject(self, accounts: AccountService) -> None:
        token = accounts.tokens.issue(999, "ghost", Role.USER)
        with pytest.raises(NotFound):
            accounts.profile(accounts.tokens.verify(token))

    def test_list_ordered_by_creation(self, accounts: AccountService, admin: Identity, alice: Identity) -> None:
        names = [i.username for i in accounts.list_identities()]
        assert names == ["root", "alice"]


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_self_rename(self, accounts: AccountService, alice: Identity) -> None:
        updated = accounts.update(_claims_for(accounts, alice), alice.id, username="  alicia  ")
        assert updated.username == "alicia"

    def test_non_admin_self_role_change_ignored(self, accounts: AccountService, alice: Identity) -> None:
        updated = accounts.update(_claims_for(accounts, alice), alice.id, username="alicia", role="admin")
        assert updated.username == "alicia"
        assert updated.role is Role.USER

    def test_role_only_from_non_admin_is_nothing_to_update(self, accounts: AccountService, alice: Identity) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            accounts.update(_claims_for(accounts, alice), alice.id, role="admin")
        assert exc_info.value.message == "No valid fields to update"
        assert accounts.store.find_by_id(alice.id).role is Role.USER

    def test_non_admin_cannot_touch_other_identity(self, accounts: AccountService, alice: Identity) -> None:
        bob = accounts.register("bob", "password456")
        with pytest.raises(AccessDenied):
            accounts.update(_claims_for(accounts, alice), bob.id, username="bobby", role="admin")
        stored = accounts.store.find_by_id(bob.id)
        assert stored.role is Role.USER
        assert stored.username == "bob"

    def test_admin_promotes_other(self, accounts: AccountService, admin: Identity, alice: Identity) -> None:
        updated = accounts.update(_claims_for(accounts, admin), alice.id, role="admin")
        assert updated.role is Role.ADMIN

    def test_admin_invalid_role_ignored_other_fields_applied(
        self, accounts: AccountService, admin: Identity, alice: Identity
    ) -> None:
        updated = accounts.update(_claims_for(accounts, admin), alice.id, username="alice2", role="superuser")
        assert updated.username == "alice2"
        assert updated.role is Role.USER

    def test_password_change(self, accounts: AccountService, alice: Identity) -> None:
        accounts.update(_claims_for(accounts, alice), alice.id, password="newpassword1")
        with pytest.raises(InvalidCredentials):
            accounts.login("alice", "password123")
        assert accounts.login("alice", "newpassword1").identity.id == alice.id

    @pytest.mark.parametrize(
        "fields",
        [
            {"username": "ab"},
            {"username": "x" * 33},
            {"password": "short"},
            {"password": "p" * 33},
            {"password": "\U0001f510" * 18 + "bbbbbbbb"},
        ],
    )
    def test_out_of_range_fields(self, accounts: AccountService, alice: Identity, fields: dict) -> None:
        with pytest.raises(InvalidInput):
            accounts.update(_claims_for(accounts, alice), alice.id, **fields)

    @pytest.mark.parametrize("fields", [{}, {"username": "   "}, {"password": ""}, {"username": 5}])
    def test_nothing_to_update(self, accounts: AccountService, alice: Identity, fields: dict) -> None:
        with pytest.raises(InvalidInput):
            accounts.update(_claims_for(accounts, alice), alice.id, **fields)

    def test_rename_collision(self, accounts: AccountService, alice: Identity) -> None:
        accounts.register("bob", "password456")
        with pytest.raises(DuplicateUsername) as exc_info:
            accounts.update(_claims_for(accounts, alice), alice.id, username="bob")
        assert exc_info.value.message == "Username already exists"

    def test_admin_update_of_missing_identity(self, accounts: AccountService, admin: Identity) -> None:
        with pytest.raises(NotFound):
            accounts.update(_claims_for(accounts, admin), 999, username="ghost")


class TestPasswordBytes:
    """Passwords are compared in full; a shared 72-byte prefix is not enough."""

    _PREFIX = "\U0001f510" * 18

    def test_prefix_match_does_not_log_in(self, accounts: AccountService) -> None:
        accounts.register("alice", self._PREFIX)  # 18 chars, exactly 72 bytes
        with pytest.raises(InvalidCredentials):
            accounts.login("alice", self._PREFIX + "aaaaaaaa")
        assert accounts.login("alice", self._PREFIX).identity.username == "alice"

    def test_create_identity_rejects_over_long_password(self, accounts: AccountService) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            accounts.create_identity("root", self._PREFIX + "aaaaaaaa", Role.ADMIN)
        assert "72 bytes" in exc_info.value.message
        assert accounts.list_identities() == []
