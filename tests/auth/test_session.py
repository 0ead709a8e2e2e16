"""Tests for SessionManager - session token lifecycle."""

from datetime import timedelta
from uuid import uuid4

import pytest

from auth.exceptions import SessionExpiredError
from auth.session import SessionManager
from core.models import StaffRole
from tests.conftest import TECH_ID, TENANT_ID


@pytest.fixture
def session_manager(valkey, config):
    return SessionManager(valkey, config)


class TestCreateSession:
    """Test session creation."""

    def test_returns_session_with_token(self, session_manager, staff_login):
        session = session_manager.create_session(staff_login())

        assert session.token
        assert len(session.token) > 20

    def test_session_carries_identity(self, session_manager, staff_login):
        session = session_manager.create_session(staff_login())

        identity = session.identity()
        assert identity.staff_id == TECH_ID
        assert identity.tenant_id == TENANT_ID
        assert identity.role == StaffRole.TECHNICIAN

    def test_fixed_lifetime_from_config(self, session_manager, staff_login, valkey):
        session = session_manager.create_session(staff_login())

        assert session.expires_at - session.created_at == timedelta(hours=1)
        assert valkey.ttls[f"session:{session.token}"] == 3600

    def test_token_not_stored_in_value(self, session_manager, staff_login, valkey):
        session = session_manager.create_session(staff_login())
        assert "token" not in valkey.get_json(f"session:{session.token}")

    def test_indexed_by_staff(self, session_manager, staff_login, valkey):
        session = session_manager.create_session(staff_login())
        assert session.token in valkey.set_members(f"staff_sessions:{TECH_ID}")


class TestValidateSession:
    """Test session validation."""

    def test_round_trips(self, session_manager, staff_login):
        created = session_manager.create_session(staff_login())

        session = session_manager.validate_session(created.token)

        assert session.staff_id == created.staff_id
        assert session.role == StaffRole.TECHNICIAN
        assert session.expires_at == created.expires_at

    def test_unknown_token(self, session_manager):
        with pytest.raises(SessionExpiredError):
            session_manager.validate_session("not-a-real-token")

    def test_expired_session_revoked(self, session_manager, staff_login, valkey):
        """Past expires_at the session is rejected and removed."""
        created = session_manager.create_session(staff_login())

        with pytest.raises(SessionExpiredError) as exc:
            session_manager.validate_session(created.token, now=created.expires_at)

        assert exc.value.message == "Session expired"
        assert not valkey.exists(f"session:{created.token}")

    def test_not_extended_by_use(self, session_manager, staff_login):
        created = session_manager.create_session(staff_login())
        session_manager.validate_session(created.token)

        again = session_manager.validate_session(created.token)

        assert again.expires_at == created.expires_at


class TestRevoke:

    def test_revoke_session(self, session_manager, staff_login):
        created = session_manager.create_session(staff_login())

        session_manager.revoke_session(created.token, staff_id=TECH_ID)

        with pytest.raises(SessionExpiredError):
            session_manager.validate_session(created.token)

    def test_revoke_unknown_is_harmless(self, session_manager):
        session_manager.revoke_session("missing")

    def test_revoke_all_for_staff(self, session_manager, staff_login, valkey):
        """Every device is signed out."""
        first = session_manager.create_session(staff_login())
        second = session_manager.create_session(staff_login())
        other = session_manager.create_session(staff_login(id=uuid4(), id_code="T02"))

        revoked = session_manager.revoke_all_for_staff(TECH_ID)

        assert revoked == 2
        for token in (first.token, second.token):
            with pytest.raises(SessionExpiredError):
                session_manager.validate_session(token)
        assert session_manager.validate_session(other.token).id_code == "T02"
        assert not valkey.exists(f"staff_sessions:{TECH_ID}")

    def test_revoke_all_with_no_sessions(self, session_manager):
        assert session_manager.revoke_all_for_staff(uuid4()) == 0
