"""Tests for authentication service."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

from jose import jwt

from khozo.auth.models import User
from khozo.auth.service import (
    ALGORITHM,
    authenticate_user,
    create_access_token,
    create_user,
    decode_access_token,
    ensure_admin_user,
    get_user_by_email,
    hash_password,
    verify_password,
)
from khozo.config import settings


class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "test_password_123"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct_password")
        assert not verify_password("wrong_password", hashed)


class TestGetUserByEmail:
    def test_finds_existing_user(self, db_session, test_user):
        user = get_user_by_email(db_session, "test@example.com")
        assert user is not None
        assert user.id == test_user.id

    def test_lookup_is_case_insensitive(self, db_session, test_user):
        assert get_user_by_email(db_session, "  TEST@example.com ").id == test_user.id

    def test_returns_none_for_unknown(self, db_session):
        user = get_user_by_email(db_session, "unknown@example.com")
        assert user is None


class TestAuthenticateUser:
    def test_valid_credentials(self, db_session):
        hashed = hash_password("mypassword")
        user = User(email="auth@test.com", password_hash=hashed)
        db_session.add(user)
        db_session.commit()

        result = authenticate_user(db_session, "auth@test.com", "mypassword")
        assert result is not None
        assert result.email == "auth@test.com"
        assert result.last_login_at is not None

    def test_wrong_password(self, db_session):
        hashed = hash_password("mypassword")
        user = User(email="auth2@test.com", password_hash=hashed)
        db_session.add(user)
        db_session.commit()

        result = authenticate_user(db_session, "auth2@test.com", "wrongpassword")
        assert result is None

    def test_inactive_user(self, db_session):
        user = User(email="off@test.com", password_hash=hash_password("mypassword"), is_active=False)
        db_session.add(user)
        db_session.commit()

        assert authenticate_user(db_session, "off@test.com", "mypassword") is None

    def test_nonexistent_user(self, db_session):
        result = authenticate_user(db_session, "nobody@test.com", "password")
        assert result is None


class TestCreateUser:
    def test_creates_lowercased(self, db_session):
        user = create_user(db_session, "New@Example.com", "password123")
        db_session.commit()
        assert user.email == "new@example.com"
        assert verify_password("password123", user.password_hash)

    def test_duplicate_returns_none(self, db_session, test_user):
        assert create_user(db_session, "test@example.com", "password123") is None


class TestAccessTokens:
    def test_roundtrip(self):
        user_id = uuid.uuid4()
        assert decode_access_token(create_access_token(user_id)) == user_id

    def test_expired_token_rejected(self):
        issued = datetime.now(UTC) - timedelta(minutes=settings.access_token_expire_minutes + 5)
        assert decode_access_token(create_access_token(uuid.uuid4(), now=issued)) is None

    def test_wrong_signature_rejected(self):
        token = jwt.encode({"sub": str(uuid.uuid4()), "type": "access"}, "another-secret", algorithm=ALGORITHM)
        assert decode_access_token(token) is None

    def test_wrong_token_type_rejected(self):
        token = jwt.encode({"sub": str(uuid.uuid4()), "type": "refresh"}, settings.secret_key, algorithm=ALGORITHM)
        assert decode_access_token(token) is None

    def test_garbage_rejected(self):
        assert decode_access_token("not.a.token") is None


class TestEnsureAdminUser:
    def test_creates_admin_once(self, db_session):
        with patch("khozo.auth.service.settings") as mock_settings:
            mock_settings.admin_email = "admin@example.com"
            mock_settings.admin_password = "admin-password"
            ensure_admin_user(db_session)
            ensure_admin_user(db_session)
        db_session.commit()

        assert db_session.query(User).filter_by(email="admin@example.com").count() == 1

    def test_skipped_without_credentials(self, db_session):
        with patch("khozo.auth.service.settings") as mock_settings:
            mock_settings.admin_email = ""
            mock_settings.admin_password = ""
            ensure_admin_user(db_session)
        assert db_session.query(User).count() == 0
