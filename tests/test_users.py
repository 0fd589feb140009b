# =============================================================================
# tests/test_users.py - User Storage Tests
# =============================================================================
# This module contains tests for:
# - Signup (create_user) and lookups by email and id
# - Duplicate email handling
# - Credential checks against bcrypt hashes
# =============================================================================

import pytest

import store as store_module
from errors import (
    DUPLICATE_EMAIL_MESSAGE,
    InvalidPasswordError,
    InvalidRoleError,
    UserAlreadyExistsError,
    user_message,
)
from models import User


# =============================================================================
# create_user / get_user_by_email
# =============================================================================

class TestCreateUser:
    """Test user creation and lookup."""

    def test_created_user_is_found_by_email(self, store):
        user_id = store.create_user(
            name="Grace Admin",
            email="grace@campus.edu",
            password="s3cret!",
            role="admin",
        )

        user = store.get_user_by_email("grace@campus.edu")

        assert user is not None
        assert user.id == user_id
        assert user.name == "Grace Admin"
        assert user.email == "grace@campus.edu"
        assert user.role == "admin"
        assert user.student_id is None

    def test_student_id_is_stored(self, store, student_id):
        user = store.get_user(student_id)

        assert user.role == "student"
        assert user.student_id == "S-1001"

    def test_password_is_hashed(self, store, student_id):
        user = store.get_user(student_id)

        assert user.password_hash != "hunter22"
        assert user.password_hash.startswith("$2")

    def test_to_dict_hides_password(self, store, student_id):
        data = store.get_user(student_id).to_dict()

        assert "password" not in data
        assert "password_hash" not in data
        assert data["email"] == "ada@campus.edu"

    def test_unknown_email_returns_none(self, store):
        assert store.get_user_by_email("nobody@campus.edu") is None

    def test_unknown_id_returns_none(self, store):
        assert store.get_user(999) is None

    def test_invalid_role_rejected(self, store):
        with pytest.raises(InvalidRoleError):
            store.create_user(name="Eve", email="eve@campus.edu", password="x", role="teacher")

        assert store.get_user_by_email("eve@campus.edu") is None


class TestDuplicateEmail:
    """Test the email uniqueness constraint."""

    def test_second_signup_fails(self, store, student_id):
        with pytest.raises(UserAlreadyExistsError) as exc_info:
            store.create_user(
                name="Someone Else",
                email="ada@campus.edu",
                password="other",
                role="student",
            )

        assert exc_info.value.email == "ada@campus.edu"

    def test_first_user_still_queryable(self, store, student_id):
        with pytest.raises(UserAlreadyExistsError):
            store.create_user(name="Dup", email="ada@campus.edu", password="p", role="admin")

        user = store.get_user_by_email("ada@campus.edu")
        assert user.id == student_id
        assert user.name == "Ada Student"
        assert store.session.query(User).count() == 1

    def test_message_shown_to_user(self, store, student_id):
        with pytest.raises(UserAlreadyExistsError) as exc_info:
            store.create_user(name="Dup", email="ada@campus.edu", password="p", role="student")

        assert user_message(exc_info.value) == DUPLICATE_EMAIL_MESSAGE


# =============================================================================
# validate_credentials
# =============================================================================

class TestValidateCredentials:
    """Test login checks."""

    def test_matching_email_and_password(self, store, student_id):
        user = store.validate_credentials("ada@campus.edu", "hunter22")

        assert user is not None
        assert user.id == student_id

    def test_wrong_password(self, store, student_id):
        assert store.validate_credentials("ada@campus.edu", "hunter23") is None

    def test_wrong_email(self, store, student_id):
        assert store.validate_credentials("ada@campus.org", "hunter22") is None

    def test_email_match_is_exact(self, store, student_id):
        assert store.validate_credentials("ADA@campus.edu", "hunter22") is None

    def test_empty_password(self, store, student_id):
        assert store.validate_credentials("ada@campus.edu", "") is None

    def test_malformed_stored_hash(self, store):
        assert store.verify_password("hunter22", "not-a-bcrypt-hash") is False

    def test_password_differing_after_72_bytes(self, store):
        store.create_user(
            name="Long Pass", email="long@campus.edu", password="x" * 60 + "correct", role="student"
        )

        assert store.validate_credentials("long@campus.edu", "x" * 60 + "correct") is not None
        assert store.validate_credentials("long@campus.edu", "x" * 72 + "WRONG") is None
        assert store.validate_credentials("long@campus.edu", "x" * 60 + "correct" + "z" * 10) is None

    def test_over_long_password_rejected_at_signup(self, store):
        with pytest.raises(InvalidPasswordError):
            store.create_user(
                name="Too Long", email="toolong@campus.edu", password="x" * 72 + "correct",
                role="student",
            )

        assert store.get_user_by_email("toolong@campus.edu") is None

    def test_multibyte_password_length_counts_bytes(self, store):
        # 25 x 3-byte characters = 75 bytes
        with pytest.raises(InvalidPasswordError):
            store.create_user(name="Uni", email="uni@campus.edu", password="€" * 25, role="admin")

    def test_unknown_email_still_runs_bcrypt(self, store, monkeypatch):
        calls = []
        real_checkpw = store_module.bcrypt.checkpw

        def counting_checkpw(password, hashed):
            calls.append(hashed)
            return real_checkpw(password, hashed)

        monkeypatch.setattr(store_module.bcrypt, "checkpw", counting_checkpw)

        assert store.validate_credentials("nobody@campus.edu", "hunter22") is None
        assert len(calls) == 1
