import os
import sys
from uuid import uuid4

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from vermafarm.main import app

client = TestClient(app)


def _register(user_type: str, **overrides):
    payload = {
        "name": f"Test {user_type.title()}",
        "email": f"{user_type}_{uuid4().hex[:8]}@example.com",
        "password": "secret123",
        "phone": "9876543210",
        "userType": user_type,
        "location": "Pune, Maharashtra",
    }
    payload.update(overrides)
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    body = response.json()
    return body["token"], body["user"]


def _auth(token: str):
    return {"Authorization": f"Bearer {token}"}


def _listing_payload(**overrides):
    payload = {
        "category": "vermicompost",
        "productName": "Premium Vermicompost",
        "description": "Sieved and cured for six weeks.",
        "quantityAvailable": 500,
        "unit": "kg",
        "pricePerUnit": 12,
    }
    payload.update(overrides)
    return payload


def test_health_and_root():
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/ready").json()["database"] is True
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["endpoints"]["serviceRequests"] == "/api/service-requests"


def test_register_login_and_me():
    email = f"asha_{uuid4().hex[:8]}@example.com"
    token, user = _register("farmer", email=email)
    assert user["userType"] == "farmer"
    assert user["stats"]["activeRequests"] == 0
    assert "passwordHash" not in user

    login = client.post("/api/auth/login", json={"email": email.upper(), "password": "secret123"})
    assert login.status_code == 200
    assert login.json()["success"] is True
    assert login.json()["user"]["lastLogin"]

    me = client.get("/api/auth/me", headers=_auth(login.json()["token"]))
    assert me.status_code == 200
    assert me.json()["data"]["id"] == user["id"]


def test_register_duplicate_email_conflicts():
    email = f"dup_{uuid4().hex[:8]}@example.com"
    _register("buyer", email=email)
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Again",
            "email": email,
            "password": "secret123",
            "phone": "9876543210",
            "userType": "buyer",
            "location": "Pune",
        },
    )
    assert response.status_code == 409
    assert response.json() == {"success": False, "message": "User with this email already exists"}


def test_login_errors():
    email = f"err_{uuid4().hex[:8]}@example.com"
    _register("buyer", email=email)
    missing = client.post("/api/auth/login", json={"email": email})
    assert missing.status_code == 400
    wrong = client.post("/api/auth/login", json={"email": email, "password": "bad-password"})
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Invalid credentials"


def test_update_details_and_password():
    token, _ = _register("landowner")
    details = client.put(
        "/api/auth/updatedetails",
        json={"location": "Nashik", "serviceChargePercent": 20},
        headers=_auth(token),
    )
    assert details.status_code == 200
    assert details.json()["data"]["location"] == "Nashik"
    assert details.json()["data"]["stats"]["serviceChargePercent"] == 20

    wrong = client.put(
        "/api/auth/updatepassword",
        json={"currentPassword": "nope", "newPassword": "another1"},
        headers=_auth(token),
    )
    assert wrong.status_code == 401

    updated = client.put(
        "/api/auth/updatepassword",
        json={"currentPassword": "secret123", "newPassword": "another1"},
        headers=_auth(token),
    )
    assert updated.status_code == 200
    assert updated.json()["token"]

    logout = client.get("/api/auth/logout", headers=_auth(token))
    assert logout.json() == {"success": True, "message": "Logged out successfully", "data": {}}


def test_protected_route_requires_token():
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Not authorized to access this route"}


def test_inventory_seeded_for_farmers():
    token, _ = _register("farmer")
    response = client.get("/api/inventory", headers=_auth(token))
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 4
    assert body["totalQuantity"] == 0
    assert {item["type"] for item in body["data"]} == {"poultry_waste", "coconut_husk", "dry_leaves", "vermicompost"}


def test_inventory_is_farmer_only():
    token, _ = _register("landowner")
    response = client.get("/api/inventory", headers=_auth(token))
    assert response.status_code == 403
    assert response.json()["message"] == "User type landowner is not authorized to access this route"


def test_inventory_updates_refresh_total_inventory_stat():
    token, _ = _register("farmer")
    items = client.get("/api/inventory", headers=_auth(token)).json()["data"]

    single = client.put(f"/api/inventory/{items[0]['id']}", json={"quantity": 40, "notes": "dry"}, headers=_auth(token))
    assert single.status_code == 200
    assert single.json()["data"]["quantity"] == 40
    assert single.json()["data"]["notes"] == "dry"

    negative = client.put(f"/api/inventory/{items[0]['id']}", json={"quantity": -1}, headers=_auth(token))
    assert negative.status_code == 400

    other_token, _ = _register("farmer")
    foreign = client.put(f"/api/inventory/{items[0]['id']}", json={"quantity": 1}, headers=_auth(other_token))
    assert foreign.status_code == 403
    missing = client.put("/api/inventory/inv_missing", json={"quantity": 1}, headers=_auth(token))
    assert missing.status_code == 404

    bulk = client.put(
        "/api/inventory/bulk",
        json={"updates": [{"id": items[1]["id"], "quantity": 10}, {"id": "inv_missing", "quantity": 5}]},
        headers=_auth(token),
    )
    assert bulk.status_code == 200
    assert [item["id"] for item in bulk.json()["data"]] == [items[1]["id"]]

    not_a_list = client.put("/api/inventory/bulk", json={"updates": {"id": items[1]["id"]}}, headers=_auth(token))
    assert not_a_list.status_code == 400
    assert not_a_list.json()["message"] == "Updates must be an array"

    listing = client.get("/api/inventory", headers=_auth(token)).json()
    assert listing["totalQuantity"] == 50
    me = client.get("/api/auth/me", headers=_auth(token)).json()
    assert me["data"]["stats"]["totalInventory"] == 50


def test_marketplace_listing_lifecycle():
    token, seller = _register("farmer")
    created = client.post("/api/marketplace", json=_listing_payload(), headers=_auth(token))
    assert created.status_code == 201
    listing = created.json()["data"]
    assert listing["status"] == "active"
    assert listing["pickupLocation"] == "Pune, Maharashtra"
    listing_id = listing["id"]

    me = client.get("/api/auth/me", headers=_auth(token)).json()
    assert me["data"]["stats"]["totalSales"] == 1

    detail = client.get(f"/api/marketplace/{listing_id}")
    assert detail.status_code == 200
    assert detail.json()["data"]["views"] == 1
    assert detail.json()["data"]["seller"]["id"] == seller["id"]

    sold_out = client.put(f"/api/marketplace/{listing_id}", json={"quantityAvailable": 0}, headers=_auth(token))
    assert sold_out.json()["data"]["status"] == "sold_out"
    restocked = client.put(f"/api/marketplace/{listing_id}", json={"quantityAvailable": 20}, headers=_auth(token))
    assert restocked.json()["data"]["status"] == "active"
    assert restocked.json()["data"]["pickupLocation"] == "Pune, Maharashtra"

    deactivated = client.put(f"/api/marketplace/{listing_id}/deactivate", headers=_auth(token))
    assert deactivated.json()["data"]["status"] == "inactive"
    assert deactivated.json()["data"]["isActive"] is False
    activated = client.put(f"/api/marketplace/{listing_id}/activate", headers=_auth(token))
    assert activated.json()["data"]["status"] == "active"

    mine = client.get("/api/marketplace/my-listings", headers=_auth(token))
    assert mine.status_code == 200
    assert mine.json()["count"] == 1
    assert mine.json()["totals"]["active"] == 1

    other_token, _ = _register("landowner")
    forbidden = client.delete(f"/api/marketplace/{listing_id}", headers=_auth(other_token))
    assert forbidden.status_code == 403
    assert forbidden.json()["message"] == "Not authorized to delete this listing"

    deleted = client.delete(f"/api/marketplace/{listing_id}", headers=_auth(token))
    assert deleted.status_code == 200
    assert client.get(f"/api/marketplace/{listing_id}").status_code == 404


def test_marketplace_activation_needs_quantity():
    token, _ = _register("landowner")
    created = client.post("/api/marketplace", json=_listing_payload(quantityAvailable=0), headers=_auth(token))
    assert created.status_code == 201
    listing_id = created.json()["data"]["id"]
    assert created.json()["data"]["status"] == "sold_out"

    response = client.put(f"/api/marketplace/{listing_id}/activate", headers=_auth(token))
    assert response.status_code == 400
    assert "zero quantity" in response.json()["message"]


def test_marketplace_buyers_cannot_list():
    token, _ = _register("buyer")
    response = client.post("/api/marketplace", json=_listing_payload(), headers=_auth(token))
    assert response.status_code == 403


def test_marketplace_search_filters_and_stats():
    token, _ = _register("farmer")
    marker = uuid4().hex[:8]
    cheap = client.post(
        "/api/marketplace",
        json=_listing_payload(productName=f"Husk {marker} Cheap", category="coconut_husk", pricePerUnit=3),
        headers=_auth(token),
    ).json()["data"]
    dear = client.post(
        "/api/marketplace",
        json=_listing_payload(productName=f"Husk {marker} Dear", category="coconut_husk", pricePerUnit=9),
        headers=_auth(token),
    ).json()["data"]

    by_price = client.get("/api/marketplace", params={"search": marker.upper(), "sort": "pricePerUnit"})
    assert by_price.status_code == 200
    assert [item["id"] for item in by_price.json()["data"]] == [cheap["id"], dear["id"]]

    filtered = client.get("/api/marketplace", params={"search": marker, "minPrice": 5})
    assert [item["id"] for item in filtered.json()["data"]] == [dear["id"]]

    bad_sort = client.get("/api/marketplace", params={"sort": "password"})
    assert bad_sort.status_code == 400

    stats = client.get("/api/marketplace/stats")
    assert stats.status_code == 200
    categories = {item["category"]: item for item in stats.json()["data"]["categories"]}
    assert categories["coconut_husk"]["count"] >= 2
    assert stats.json()["data"]["totalSellers"] >= 1


def test_marketplace_contact_seller():
    token, seller = _register("farmer")
    listing_id = client.post("/api/marketplace", json=_listing_payload(), headers=_auth(token)).json()["data"]["id"]

    buyer_token, _ = _register("buyer")
    response = client.post(f"/api/marketplace/{listing_id}/contact", headers=_auth(buyer_token))
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Seller contact information retrieved"
    assert body["data"]["seller"]["email"] == seller["email"]
    assert body["data"]["product"]["available"] == 500

    mine = client.get("/api/marketplace/my-listings", headers=_auth(token)).json()
    assert mine["data"][0]["inquiries"] == 1


def test_non_finite_quantities_are_rejected():
    token, _ = _register("farmer")
    item_id = client.get("/api/inventory", headers=_auth(token)).json()["data"][0]["id"]
    headers = {**_auth(token), "Content-Type": "application/json"}

    inventory = client.put(f"/api/inventory/{item_id}", content='{"quantity": NaN}', headers=headers)
    assert inventory.status_code == 400
    assert inventory.json()["message"] == "Quantity must be a number"

    listing = client.post(
        "/api/marketplace",
        content='{"category": "vermicompost", "productName": "Compost", "quantityAvailable": 5, "pricePerUnit": Infinity}',
        headers=headers,
    )
    assert listing.status_code == 400
    assert listing.json()["message"] == "Price must be a non-negative number"
