"""Coupons, listings and availability endpoints."""
import datetime
from datetime import date, timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from marketplace_bookings import models

from conftest import create_test_token

START = date.today() + timedelta(days=10)
END = START + timedelta(days=3)


def coupon_body(**overrides):
    body = {
        "code": "monsoon",
        "discount_type": "fixed",
        "discount_amount": 300,
        "min_purchase": 1000,
        "expiry_date": (datetime.datetime.utcnow() + datetime.timedelta(days=30)).isoformat(),
    }
    body.update(overrides)
    return body


# --- Coupons ---

def test_admin_creates_coupon(client: TestClient, admin_headers):
    response = client.post("/coupons/", json=coupon_body(), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["code"] == "MONSOON"
    assert data["usage_count"] == 0
    assert data["is_active"] is True


def test_duplicate_coupon_code(client: TestClient, admin_headers):
    assert client.post("/coupons/", json=coupon_body(), headers=admin_headers).status_code == 201

    response = client.post("/coupons/", json=coupon_body(code="MONSOON"), headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Coupon code already exists"


def test_only_admins_manage_coupons(client: TestClient, auth_headers, vendor_headers):
    assert client.post("/coupons/", json=coupon_body(), headers=auth_headers).status_code == 403
    assert client.get("/coupons/", headers=vendor_headers).status_code == 403
    assert client.get("/coupons/").status_code == 401


def test_list_coupons(client: TestClient, admin_headers, coupon):
    response = client.get("/coupons/", headers=admin_headers)
    assert response.status_code == 200
    assert [c["code"] for c in response.json()] == ["SAVE10"]


def test_validate_coupon(client: TestClient, auth_headers, coupon):
    response = client.post("/coupons/validate", json={"code": "save10", "subtotal": 2200}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["code"] == "SAVE10"
    assert data["applied_discount"] == 150


def test_validate_coupon_errors(client: TestClient, auth_headers, db_session: Session, coupon):
    missing = client.post("/coupons/validate", json={"code": "  "}, headers=auth_headers)
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Coupon code is required"

    unknown = client.post("/coupons/validate", json={"code": "NOPE", "subtotal": 100}, headers=auth_headers)
    assert unknown.status_code == 404

    coupon.min_purchase = 5000
    db_session.commit()
    too_small = client.post("/coupons/validate", json={"code": "SAVE10", "subtotal": 100}, headers=auth_headers)
    assert too_small.status_code == 400
    assert too_small.json()["detail"] == "Minimum purchase of 5000 required for this coupon"

    assert client.post("/coupons/validate", json={"code": "SAVE10"}).status_code == 401


# --- Listings ---

def test_vendor_creates_listing(client: TestClient, db_session: Session):
    headers = {"Authorization": create_test_token(55, role="vendor", email="new.vendor@example.com")}
    body = {
        "service_type": "tour",
        "name": "Backwater Cruise",
        "units": [{"name": "Sunset", "price": 1200, "capacity": 20}],
    }

    response = client.post("/listings/", json=body, headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["vendor_id"] == 55
    assert data["units"][0]["name"] == "Sunset"
    assert db_session.get(models.Vendor, 55).email == "new.vendor@example.com"

    fetched = client.get(f"/listings/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Backwater Cruise"


def test_admin_creates_listing_for_vendor(client: TestClient, admin_headers, vendor):
    body = {"service_type": "adventure", "name": "Paragliding", "units": []}

    assert client.post("/listings/", json=body, headers=admin_headers).status_code == 400

    body["vendor_id"] = 999
    assert client.post("/listings/", json=body, headers=admin_headers).status_code == 404

    body["vendor_id"] = vendor.id
    response = client.post("/listings/", json=body, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["vendor_id"] == vendor.id


def test_customers_cannot_create_listings(client: TestClient, auth_headers):
    body = {"service_type": "stay", "name": "My Flat"}
    assert client.post("/listings/", json=body, headers=auth_headers).status_code == 403


def test_missing_listing(client: TestClient, db_session: Session):
    assert client.get("/listings/9999").status_code == 404


# --- Availability ---

def book_room(client: TestClient, stay, unit, start=START, end=END):
    return client.post("/bookings/", json={
        "stay_id": stay.id,
        "check_in": str(start),
        "check_out": str(end),
        "rooms": [{"room_id": unit.id}],
        "customer": {"full_name": "Asha Rao", "email": "guest@example.com"},
    })


def test_availability_reports_free_units(client: TestClient, stay):
    deluxe, suite = stay.units
    assert book_room(client, stay, deluxe).status_code == 201

    response = client.get("/availability/", params={
        "service_type": "stay", "listing_id": stay.id, "start": str(START), "end": str(END),
    })

    assert response.status_code == 200
    data = response.json()
    assert data["is_available"] is True
    assert data["available_unit_keys"] == [str(suite.id)]
    assert data["booked_ranges"] == [{"start": str(START), "end": str(END)}]


def test_availability_fully_booked(client: TestClient, stay):
    for unit in stay.units:
        assert book_room(client, stay, unit).status_code == 201

    response = client.get("/availability/", params={
        "service_type": "stay", "listing_id": stay.id, "start": str(START + timedelta(days=1)), "end": str(END),
    })
    assert response.json()["is_available"] is False

    after = client.get("/availability/", params={
        "service_type": "stay", "listing_id": stay.id, "start": str(END), "end": str(END + timedelta(days=1)),
    })
    assert after.json()["is_available"] is True


def test_availability_without_range(client: TestClient, stay):
    response = client.get("/availability/", params={"service_type": "stay", "listing_id": stay.id})
    assert response.status_code == 200
    assert response.json()["available_unit_keys"] == [str(u.id) for u in stay.units]


def test_availability_validation(client: TestClient, stay, tour):
    bad_type = client.get("/availability/", params={"service_type": "cruise", "listing_id": stay.id})
    assert bad_type.status_code == 400
    assert bad_type.json()["detail"] == "Invalid or missing service_type"

    no_id = client.get("/availability/", params={"service_type": "stay"})
    assert no_id.status_code == 400

    bad_range = client.get("/availability/", params={
        "service_type": "stay", "listing_id": stay.id, "start": str(END), "end": str(START),
    })
    assert bad_range.status_code == 400
    assert bad_range.json()["detail"] == "End date must be after start date"

    wrong_kind = client.get("/availability/", params={"service_type": "stay", "listing_id": tour.id})
    assert wrong_kind.status_code == 404
    assert wrong_kind.json()["detail"] == "Stay not found"
