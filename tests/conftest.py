"""
Shared pytest fixtures.
"""

import pytest

from clinicflow.core.auth import reset_auth_service
from clinicflow.core.config import reset_settings

TEST_API_KEYS = ",".join(
    [
        "admin-key:ADMIN-1:admin",
        "staff-key:STAFF-1:staff",
        "nurse-key:NURSE-1:nurse",
        "doctor-key:DR-1:doctor",
        "doctor2-key:DR-2:doctor",
        "patient-key:P-100:patient",
        "patient2-key:P-200:patient",
    ]
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Fresh settings and auth per test, with a fixed clinic time zone."""
    monkeypatch.setenv("API_KEYS", TEST_API_KEYS)
    monkeypatch.setenv("CLINIC_TIMEZONE", "Asia/Manila")
    monkeypatch.setenv("APP_ENV", "testing")
    reset_settings()
    reset_auth_service()
    yield
    reset_settings()
    reset_auth_service()
