import os
import sqlite3
import sys
from uuid import uuid4

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from vermafarm.services.account_store import AccountStore
from vermafarm.services.errors import (
    StoreAuthenticationError,
    StoreAuthorizationError,
    StoreConflictError,
    StoreValidationError,
)
from vermafarm.services.events import RequestAccepted, RequestCancelled, RequestCompleted, RequestCreated


@pytest.fixture
def store(tmp_path):
    return AccountStore(db_path=str(tmp_path / "accounts.sqlite3"))


def _register(store, user_type="farmer", **overrides):
    params = {
        "name": "Ravi Kumar",
        "email": f"{user_type}_{uuid4().hex[:8]}@example.com",
        "password": "secret123",
        "phone": "9876543210",
        "user_type": user_type,
        "location": "Pune",
    }
    params.update(overrides)
    return store.register(**params)


def test_register_lowercases_email_and_sets_default_stats(store):
    profile = _register(store, email="Asha@Example.com")
    assert profile.email == "asha@example.com"
    assert profile.stats.active_requests == 0
    assert profile.stats.total_sales == 0

    landowner = _register(store, user_type="landowner")
    assert landowner.stats.service_charge_percent == 15


def test_register_rejects_duplicates_and_bad_input(store):
    _register(store, email="dup@example.com")
    with pytest.raises(StoreConflictError):
        _register(store, email="DUP@example.com")
    with pytest.raises(StoreValidationError, match="Password must be at least 6 characters"):
        _register(store, password="123")
    with pytest.raises(StoreValidationError, match="User type"):
        _register(store, user_type="admin")
    with pytest.raises(StoreValidationError, match="valid email"):
        _register(store, email="not-an-email")


def test_authenticate_checks_password_and_active_flag(store):
    profile = _register(store, email="login@example.com")
    assert store.authenticate(email="LOGIN@example.com", password="secret123").id == profile.id

    with pytest.raises(StoreValidationError):
        store.authenticate(email="login@example.com", password="")
    with pytest.raises(StoreAuthenticationError, match="Invalid credentials"):
        store.authenticate(email="login@example.com", password="wrong-password")

    with sqlite3.connect(store.db_path) as conn:
        conn.execute("UPDATE users SET is_active = 0 WHERE id = ?", (profile.id,))
        conn.commit()
    with pytest.raises(StoreAuthorizationError, match="deactivated"):
        store.authenticate(email="login@example.com", password="secret123")


def test_update_password_requires_current_password(store):
    profile = _register(store, email="pw@example.com")
    with pytest.raises(StoreAuthenticationError, match="Current password is incorrect"):
        store.update_password(profile.id, current_password="nope", new_password="another1")
    store.update_password(profile.id, current_password="secret123", new_password="another1")
    assert store.authenticate(email="pw@example.com", password="another1").id == profile.id


def test_update_details_sets_landowner_service_charge(store):
    landowner = _register(store, user_type="landowner")
    updated = store.update_details(landowner.id, location="Nashik", service_charge_percent=25)
    assert updated.location == "Nashik"
    assert updated.stats.service_charge_percent == 25
    with pytest.raises(StoreValidationError):
        store.update_details(landowner.id, service_charge_percent=60)


def test_request_events_drive_counters(store):
    farmer = _register(store)
    landowner = _register(store, user_type="landowner")

    store.apply_request_events([RequestCreated(request_id="sr_1", farmer_id=farmer.id)])
    store.apply_request_events([RequestCreated(request_id="sr_2", farmer_id=farmer.id)])
    store.apply_request_events([RequestAccepted(request_id="sr_1", landowner_id=landowner.id)])
    assert store.get_user(farmer.id).stats.active_requests == 2
    assert store.get_user(landowner.id).stats.active_projects == 1

    store.apply_request_events(
        [
            RequestCompleted(
                request_id="sr_1",
                farmer_id=farmer.id,
                landowner_id=landowner.id,
                farmer_earnings=1700,
                service_charge=300,
            )
        ]
    )
    store.apply_request_events([RequestCancelled(request_id="sr_2", farmer_id=farmer.id)])

    farmer_stats = store.get_user(farmer.id).stats
    landowner_stats = store.get_user(landowner.id).stats
    assert farmer_stats.active_requests == 0
    assert farmer_stats.revenue == pytest.approx(1700)
    assert landowner_stats.active_projects == 0
    assert landowner_stats.completed_projects == 1
    assert landowner_stats.service_revenue == pytest.approx(300)


def test_unknown_event_type_is_rejected(store):
    with pytest.raises(TypeError):
        store.apply_request_event(object())


def test_party_summaries_skip_missing_ids(store):
    farmer = _register(store, name="Meera")
    summaries = store.get_party_summaries([farmer.id, None, "usr_missing"])
    assert list(summaries) == [farmer.id]
    assert summaries[farmer.id].name == "Meera"
    assert summaries[farmer.id].phone == "9876543210"
