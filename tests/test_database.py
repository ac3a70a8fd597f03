from __future__ import annotations

from pathlib import Path

import pytest

from autocall.database import Database, DuplicateUserError
from autocall.models import get_safe_user


EMAIL = "owner@example.com"
PASSWORD = "Sup3rSecret"


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "autocall.sqlite3")
    db.initialize()
    return db


def test_create_user_hashes_password_and_sets_timestamps(database: Database) -> None:
    user = database.create_user(EMAIL, PASSWORD, "Owner")

    assert len(user.id) == 24
    assert user.email == EMAIL
    assert user.name == "Owner"
    assert user.password_hash != PASSWORD
    assert user.created_at == user.updated_at

    stored = database.get_user(user.id)
    assert stored == user


def test_duplicate_email_is_rejected_and_original_kept(database: Database) -> None:
    original = database.create_user(EMAIL, PASSWORD, "First")

    with pytest.raises(DuplicateUserError, match="already exists"):
        database.create_user(EMAIL, "different-password", "Second")

    stored = database.get_user_by_email(EMAIL)
    assert stored == original
    assert database.verify_password(stored, PASSWORD)
    assert len(database.list_users()) == 1


def test_unique_index_catches_concurrent_registration(database: Database, monkeypatch) -> None:
    database.create_user(EMAIL, PASSWORD)

    # Simulate a second registration that passed the lookup before the first insert landed.
    monkeypatch.setattr(database, "get_user_by_email", lambda _email: None)

    with pytest.raises(DuplicateUserError):
        database.create_user(EMAIL, "another-password")


def test_email_lookup_is_case_sensitive(database: Database) -> None:
    database.create_user(EMAIL, PASSWORD)

    assert database.get_user_by_email(EMAIL.upper()) is None


def test_lookups_return_none_on_miss(database: Database) -> None:
    assert database.get_user("0" * 24) is None
    assert database.get_user_by_email("missing@example.com") is None


def test_verify_password_round_trip(database: Database) -> None:
    user = database.create_user(EMAIL, PASSWORD)

    assert database.verify_password(user, PASSWORD)
    assert not database.verify_password(user, PASSWORD + "x")
    assert not database.verify_password(user, "")


def test_update_user_rehashes_password_and_bumps_timestamp(database: Database) -> None:
    user = database.create_user(EMAIL, PASSWORD)

    updated = database.update_user(user.id, password="new-password", name="Renamed")

    assert updated is not None
    assert updated.name == "Renamed"
    assert updated.password_hash != user.password_hash
    assert updated.updated_at >= user.updated_at
    assert updated.created_at == user.created_at
    assert database.verify_password(updated, "new-password")
    assert not database.verify_password(updated, PASSWORD)


def test_update_user_to_existing_email_conflicts(database: Database) -> None:
    database.create_user(EMAIL, PASSWORD)
    other = database.create_user("other@example.com", PASSWORD)

    with pytest.raises(DuplicateUserError):
        database.update_user(other.id, email=EMAIL)


def test_update_user_rejects_unknown_fields(database: Database) -> None:
    user = database.create_user(EMAIL, PASSWORD)

    with pytest.raises(ValueError):
        database.update_user(user.id, password_hash="plain")


def test_update_missing_user_returns_none(database: Database) -> None:
    assert database.update_user("0" * 24, name="Nobody") is None


def test_delete_user_is_hard_delete(database: Database) -> None:
    user = database.create_user(EMAIL, PASSWORD)

    assert database.delete_user(user.id) is True
    assert database.get_user(user.id) is None
    assert database.delete_user(user.id) is False

    # The email becomes available again once the record is gone.
    database.create_user(EMAIL, PASSWORD)


def test_safe_user_never_contains_password(database: Database) -> None:
    user = database.create_user(EMAIL, PASSWORD, "Owner")

    safe = get_safe_user(user)

    assert safe["email"] == EMAIL
    assert safe["id"] == user.id
    assert not any("password" in key.lower() for key in safe)
    assert user.password_hash not in safe.values()
    assert "password_hash" not in repr(user)
