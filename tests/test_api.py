from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from jelantah.core.security import create_access_token

API = "/api/v1"


def scheduled() -> str:
    return (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()


@pytest.fixture
def create_via_api(client, auth):
    async def _create(customer, volume="150"):
        response = await client.post(
            f"{API}/pickups",
            json={"volume": volume, "scheduled_date": scheduled()},
            headers=auth(customer),
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create


# ==================== Auth ====================

async def test_missing_token_is_401(client, users):
    response = await client.get(f"{API}/pickups")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"
    assert response.headers["www-authenticate"] == "Bearer"


async def test_invalid_token_is_401(client, users):
    response = await client.get(f"{API}/pickups", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_token_for_unknown_user_is_401(client, users):
    headers = {"Authorization": f"Bearer {create_access_token(uuid4())}"}
    response = await client.get(f"{API}/pickups", headers=headers)
    assert response.status_code == 401


async def test_inactive_user_is_403(client, users, auth):
    response = await client.get(f"{API}/pickups", headers=auth(users.inactive))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


# ==================== Pickups ====================

async def test_create_pickup_returns_estimate(client, users, auth, create_via_api):
    body = await create_via_api(users.referred_customer)

    assert body["status"] == "PENDING"
    assert body["customer_id"] == str(users.referred_customer.id)
    assert Decimal(body["estimated_total_price"]) == Decimal("1050000")
    assert Decimal(body["estimated_affiliate_fee"]) == Decimal("30000")


async def test_invalid_body_is_validation_error(client, users, auth):
    response = await client.post(
        f"{API}/pickups",
        json={"volume": "0", "scheduled_date": scheduled()},
        headers=auth(users.customer),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_courier_cannot_create_pickup(client, users, auth):
    response = await client.post(
        f"{API}/pickups",
        json={"volume": "10", "scheduled_date": scheduled()},
        headers=auth(users.courier),
    )
    assert response.status_code == 403


async def test_unknown_pickup_is_404(client, users, auth):
    response = await client.get(f"{API}/pickups/{uuid4()}", headers=auth(users.admin))

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_full_lifecycle_over_http(client, users, auth, create_via_api):
    pickup = await create_via_api(users.referred_customer)
    url = f"{API}/pickups/{pickup['id']}"
    courier = auth(users.courier)

    response = await client.get(f"{url}/transitions", headers=courier)
    assert [t["action"] for t in response.json()["allowed"]] == ["ACCEPT"]

    response = await client.post(f"{url}/accept", headers=courier)
    assert response.status_code == 200
    assert response.json()["status"] == "ASSIGNED"

    response = await client.post(f"{url}/start", headers=courier)
    assert response.json()["status"] == "IN_PROGRESS"

    response = await client.post(f"{url}/complete", headers=courier)
    assert response.status_code == 400
    assert response.json()["reason"] == "PROOF_REQUIRED"

    response = await client.patch(
        f"{url}/proof",
        json={
            "photo_proof": "https://cdn.jelantahgo.com/proof/1.jpg",
            "actual_volume": "150",
            "bank_name": "BCA",
            "account_name": "Budi Santoso",
            "account_number": "1234567890",
        },
        headers=courier,
    )
    assert response.status_code == 200, response.text

    response = await client.post(f"{url}/complete", headers=courier)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "COMPLETED"
    assert Decimal(body["total_price"]) == Decimal("1050000")
    assert len(body["bills"]) == 1
    assert body["bills"][0]["status"] == "UNPAID"
    assert Decimal(body["bills"][0]["amount"]) == Decimal("1050000")
    assert sorted(c["commission_type"] for c in body["commissions"]) == ["AFFILIATE", "COURIER"]

    response = await client.post(f"{url}/complete", headers=courier)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"

    response = await client.get(url, headers=auth(users.referred_customer))
    assert response.status_code == 200
    assert len(response.json()["bills"]) == 1

    response = await client.get(f"{url}/transitions", headers=auth(users.referred_customer))
    body = response.json()
    assert body["is_terminal"] is True
    assert body["allowed"] == []


async def test_taken_pickup_is_409_for_other_courier(client, users, auth, create_via_api):
    pickup = await create_via_api(users.customer)
    url = f"{API}/pickups/{pickup['id']}"

    assert (await client.post(f"{url}/accept", headers=auth(users.courier))).status_code == 200

    response = await client.post(f"{url}/accept", headers=auth(users.other_courier))
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


async def test_cancel_over_http(client, users, auth, create_via_api):
    pickup = await create_via_api(users.customer)
    url = f"{API}/pickups/{pickup['id']}"

    response = await client.post(f"{url}/cancel", headers=auth(users.courier))
    assert response.status_code == 403

    response = await client.post(f"{url}/cancel", headers=auth(users.customer))
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


async def test_status_patch_dispatches_to_action(client, users, auth, create_via_api):
    pickup = await create_via_api(users.customer)
    url = f"{API}/pickups/{pickup['id']}"

    response = await client.patch(url, json={"status": "ASSIGNED"}, headers=auth(users.courier))
    assert response.status_code == 200
    assert response.json()["courier_id"] == str(users.courier.id)

    response = await client.patch(url, json={"status": "CANCELLED"}, headers=auth(users.customer))
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"

    response = await client.patch(url, json={"status": "BOGUS"}, headers=auth(users.customer))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_customer_sees_only_own_pickups(client, users, auth, create_via_api):
    await create_via_api(users.customer)
    await create_via_api(users.referred_customer)

    response = await client.get(f"{API}/pickups", headers=auth(users.customer))
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["customer_id"] == str(users.customer.id)

    response = await client.get(f"{API}/pickups", params={"status": "PENDING"}, headers=auth(users.admin))
    assert response.json()["total"] == 2


# ==================== Settings and quotes ====================

async def test_settings_read_by_anyone_written_by_admin(client, users, auth):
    response = await client.get(f"{API}/settings", headers=auth(users.courier))
    assert response.status_code == 200
    assert Decimal(response.json()["price_tier2_rate"]) == Decimal("7000")

    response = await client.put(
        f"{API}/settings", json={"price_tier2_rate": "7200"}, headers=auth(users.customer)
    )
    assert response.status_code == 403

    response = await client.put(
        f"{API}/settings", json={"price_tier2_rate": "7200"}, headers=auth(users.admin)
    )
    assert response.status_code == 200, response.text
    assert Decimal(response.json()["price_tier2_rate"]) == Decimal("7200")

    response = await client.get(f"{API}/pricing/quote", params={"volume": "150"}, headers=auth(users.customer))
    assert Decimal(response.json()["total_price"]) == Decimal("1080000")


async def test_overlapping_tiers_rejected(client, users, auth):
    response = await client.put(
        f"{API}/settings", json={"price_tier3_min": "150"}, headers=auth(users.admin)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_price_quote(client, users, auth):
    response = await client.get(f"{API}/pricing/quote", params={"volume": "150"}, headers=auth(users.customer))

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["price_per_liter"]) == Decimal("7000")
    assert Decimal(body["total_price"]) == Decimal("1050000")
    assert Decimal(body["courier_commission"]) == Decimal("75000")
    assert Decimal(body["affiliate_commission"]) == Decimal("30000")

    response = await client.get(f"{API}/pricing/quote", params={"volume": "0"}, headers=auth(users.customer))
    assert response.status_code == 400


# ==================== Bills and commissions ====================

async def _complete_via_api(client, auth, users, customer):
    response = await client.post(
        f"{API}/pickups",
        json={"volume": "150", "scheduled_date": scheduled()},
        headers=auth(customer),
    )
    url = f"{API}/pickups/{response.json()['id']}"
    courier = auth(users.courier)
    await client.post(f"{url}/accept", headers=courier)
    await client.post(f"{url}/start", headers=courier)
    await client.patch(
        f"{url}/proof",
        json={"photo_proof": "p.jpg", "actual_volume": "150"},
        headers=courier,
    )
    response = await client.post(f"{url}/complete", headers=courier)
    assert response.status_code == 200, response.text
    return response.json()


async def test_bill_payment_over_http(client, users, auth):
    pickup = await _complete_via_api(client, auth, users, users.referred_customer)
    bill_id = pickup["bills"][0]["id"]

    response = await client.get(f"{API}/bills", headers=auth(users.referred_customer))
    assert response.json()["total"] == 1

    response = await client.patch(
        f"{API}/bills/{bill_id}", json={"status": "PAID"}, headers=auth(users.admin)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await client.patch(
        f"{API}/bills/{bill_id}",
        json={"status": "PAID", "payment_proof": "transfer.jpg"},
        headers=auth(users.referred_customer),
    )
    assert response.status_code == 403

    response = await client.patch(
        f"{API}/bills/{bill_id}",
        json={"status": "PAID", "payment_proof": "transfer.jpg"},
        headers=auth(users.admin),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "PAID"


async def test_commission_listing_over_http(client, users, auth):
    await _complete_via_api(client, auth, users, users.referred_customer)

    response = await client.get(f"{API}/commissions", headers=auth(users.referrer))
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["commission_type"] == "AFFILIATE"
    assert Decimal(body["totals"]["pending"]) == Decimal("30000")

    response = await client.get(
        f"{API}/commissions", params={"type": "COURIER"}, headers=auth(users.admin)
    )
    body = response.json()
    assert body["total"] == 1
    commission_id = body["items"][0]["id"]

    response = await client.patch(
        f"{API}/commissions/{commission_id}",
        json={"status": "PAID", "payment_proof": "payout.jpg"},
        headers=auth(users.admin),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "PAID"


# ==================== Notifications ====================

async def test_notifications_read_flow(client, users, auth, create_via_api):
    await create_via_api(users.customer)
    await create_via_api(users.customer)
    headers = auth(users.customer)

    response = await client.get(f"{API}/notifications", headers=headers)
    body = response.json()
    assert body["total"] == 2
    assert body["unread_count"] == 2
    assert {n["notification_type"] for n in body["items"]} == {"PICKUP_REQUEST"}

    notification_id = body["items"][0]["id"]

    response = await client.post(f"{API}/notifications/{notification_id}/read", headers=auth(users.referrer))
    assert response.status_code == 404

    response = await client.post(f"{API}/notifications/{notification_id}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    response = await client.get(f"{API}/notifications", params={"unread_only": "true"}, headers=headers)
    assert response.json()["total"] == 1

    response = await client.post(f"{API}/notifications/read-all", headers=headers)
    assert response.json()["updated"] == 1

    response = await client.get(f"{API}/notifications", headers=headers)
    assert response.json()["unread_count"] == 0
