"""Fixtures shared by the auth tests."""

import pytest

from auth.config import AuthConfig
from auth.types import StaffLogin
from core.models import StaffRole
from tests.conftest import TECH_ID, TENANT_ID


@pytest.fixture
def config():
    """Test config with short windows."""
    return AuthConfig(
        magic_link_expiry_minutes=5,
        session_expiry_hours=1,
        rate_limit_attempts=3,
        rate_limit_window_minutes=5,
        code_attempts=3,
        code_window_minutes=5,
        app_base_url="https://interstate.example.com",
    )


@pytest.fixture
def staff_login():
    """Factory for login lookup rows."""

    def _make(**overrides):
        data = {
            "id": TECH_ID,
            "tenant_id": TENANT_ID,
            "id_code": "T01",
            "name": "Tina Tech",
            "email": "tina@example.com",
            "role": StaffRole.TECHNICIAN,
            "active": True,
        }
        data.update(overrides)
        return StaffLogin(**data)

    return _make
