import os
import sys
from uuid import uuid4

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from vermafarm.main import app

client = TestClient(app)


def _register(user_type: str) -> str:
    response = client.post(
        "/api/auth/register",
        json={
            "name": f"Golden {user_type.title()}",
            "email": f"golden_{user_type}_{uuid4().hex[:8]}@example.com",
            "password": "secret123",
            "phone": "9876543210",
            "userType": user_type,
            "location": "Kolhapur",
        },
    )
    assert response.status_code == 201
    return response.json()["token"]


def _auth(token: str):
    return {"Authorization": f"Bearer {token}"}


def test_golden_path_request_lifecycle_settles_and_updates_stats():
    farmer = _register("farmer")
    landowner = _register("landowner")

    created = client.post(
        "/api/service-requests",
        json={"materialType": "Poultry Waste", "quantity": 100, "notes": "Collected this week"},
        headers=_auth(farmer),
    )
    assert created.status_code == 201
    request_id = created.json()["data"]["id"]

    accepted = client.put(f"/api/service-requests/{request_id}/accept", headers=_auth(landowner))
    assert accepted.status_code == 200
    accepted_at = accepted.json()["data"]["acceptedAt"]
    assert accepted_at

    started = client.put(f"/api/service-requests/{request_id}/start", headers=_auth(landowner))
    assert started.status_code == 200
    assert started.json()["message"] == "Project started successfully"
    assert started.json()["data"]["acceptedAt"] == accepted_at

    completed = client.put(f"/api/service-requests/{request_id}/complete", headers=_auth(landowner))
    assert completed.status_code == 200
    body = completed.json()
    assert body["data"]["status"] == "completed"
    assert body["data"]["completedAt"]
    assert body["earnings"] == {"landowner": 300, "farmer": 1700}

    farmer_stats = client.get("/api/auth/me", headers=_auth(farmer)).json()["data"]["stats"]
    landowner_stats = client.get("/api/auth/me", headers=_auth(landowner)).json()["data"]["stats"]
    assert farmer_stats["activeRequests"] == 0
    assert farmer_stats["revenue"] == 1700
    assert landowner_stats["activeProjects"] == 0
    assert landowner_stats["completedProjects"] == 1
    assert landowner_stats["serviceRevenue"] == 300

    repeat = client.put(f"/api/service-requests/{request_id}/complete", headers=_auth(landowner))
    assert repeat.status_code == 400
    landowner_stats = client.get("/api/auth/me", headers=_auth(landowner)).json()["data"]["stats"]
    assert landowner_stats["completedProjects"] == 1

    history = client.get("/api/service-requests/my-requests", headers=_auth(farmer)).json()
    assert history["count"] == 1
    assert history["data"][0]["landowner"]["location"] == "Kolhapur"


def test_dry_leaves_request_settles_actual_revenue():
    farmer = _register("farmer")
    landowner = _register("landowner")

    created = client.post(
        "/api/service-requests",
        json={"materialType": "Dry Leaves", "quantity": 50},
        headers=_auth(farmer),
    )
    assert created.status_code == 201
    request_id = created.json()["data"]["id"]
    assert created.json()["data"]["estimatedRevenue"] == 1000
    assert client.get("/api/auth/me", headers=_auth(farmer)).json()["data"]["stats"]["activeRequests"] == 1

    assert client.put(f"/api/service-requests/{request_id}/accept", headers=_auth(landowner)).status_code == 200
    started = client.put(f"/api/service-requests/{request_id}/start", headers=_auth(landowner))
    assert started.status_code == 200
    started_at = started.json()["data"]["startedAt"]

    completed = client.put(
        f"/api/service-requests/{request_id}/complete",
        json={"actualRevenue": 1200},
        headers=_auth(landowner),
    )
    assert completed.status_code == 200
    body = completed.json()
    assert body["data"]["status"] == "completed"
    assert body["data"]["actualRevenue"] == 1200
    assert body["data"]["completedAt"]
    assert body["earnings"] == {"landowner": 180, "farmer": 1020}
    completed_at = body["data"]["completedAt"]

    again = client.put(f"/api/service-requests/{request_id}/start", headers=_auth(landowner))
    assert again.status_code == 400
    stored = client.get(f"/api/service-requests/{request_id}", headers=_auth(farmer)).json()["data"]
    assert stored["startedAt"] == started_at
    assert stored["completedAt"] == completed_at

    farmer_stats = client.get("/api/auth/me", headers=_auth(farmer)).json()["data"]["stats"]
    landowner_stats = client.get("/api/auth/me", headers=_auth(landowner)).json()["data"]["stats"]
    assert farmer_stats["activeRequests"] == 0
    assert farmer_stats["revenue"] == 1020
    assert landowner_stats["completedProjects"] == 1
    assert landowner_stats["serviceRevenue"] == 180
