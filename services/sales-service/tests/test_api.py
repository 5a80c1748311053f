from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.domain.account import Role
from app.domain.sales import InstallmentStatus
from app.security.passwords import hash_password
from app.security.tokens import decode_access_token

PASSWORD = "correct horse battery"


@pytest.fixture(scope="module")
def password_hash() -> str:
    return hash_password(PASSWORD)


def test_health_endpoint(api_client):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_login_returns_token_for_active_account(api_client, repository, settings, password_hash):
    account = repository.add_account(Role.seller, email="seller@example.com", password_hash=password_hash)

    response = api_client.post("/api/auth/login", json={"email": "Seller@Example.com", "password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["data"]["user"]["role"] == "seller"
    claims = decode_access_token(body["data"]["token"], settings)
    assert claims["userId"] == account.account_id
    assert claims["exp"] - claims["iat"] == 3600


def test_login_rejects_wrong_password(api_client, repository, password_hash):
    repository.add_account(Role.seller, email="seller@example.com", password_hash=password_hash)

    response = api_client.post("/api/auth/login", json={"email": "seller@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_login_rejects_deactivated_account(api_client, repository, password_hash):
    repository.add_account(Role.client, email="gone@example.com", password_hash=password_hash, active=False)

    response = api_client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})

    assert response.status_code == 401
    assert response.json()["error"] == "Account is deactivated"


def test_login_is_rate_limited_per_email(api_client):
    payload = {"email": "unknown@example.com", "password": "whatever"}
    statuses = [api_client.post("/api/auth/login", json=payload).status_code for _ in range(4)]

    assert statuses == [401, 401, 401, 429]
    other = api_client.post("/api/auth/login", json={"email": "other@example.com", "password": "x"})
    assert other.status_code == 401


def test_login_validates_payload(api_client):
    response = api_client.post("/api/auth/login", json={"email": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_protected_route_requires_token(api_client):
    response = api_client.get("/api/auth/profile")
    assert response.status_code == 401
    assert response.json() == {"error": "Access token required", "code": "MISSING_TOKEN"}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_garbage_token_is_unauthorized(api_client):
    response = api_client.get("/api/auth/profile", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_OR_EXPIRED_TOKEN"


def test_token_of_deactivated_account_is_unauthorized(api_client, repository, auth):
    account = repository.add_account(Role.seller)
    headers = auth(account)
    account.active = False

    response = api_client.get("/api/auth/verify", headers=headers)

    assert response.status_code == 401
    assert response.json()["error"] == "User not found or inactive"


def test_profile_update_and_password_change(api_client, repository, auth, password_hash):
    account = repository.add_account(Role.client, password_hash=password_hash)
    headers = auth(account)

    updated = api_client.put(
        "/api/auth/profile",
        json={"first_name": "Maria", "last_name": "Lopez", "phone": "+51 999"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["first_name"] == "Maria"

    wrong = api_client.put(
        "/api/auth/change-password",
        json={"current_password": "bad", "new_password": "brand-new-pass"},
        headers=headers,
    )
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Current password is incorrect"

    changed = api_client.put(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
        headers=headers,
    )
    assert changed.status_code == 200
    assert repository.password_hashes[account.account_id] != password_hash


def test_user_admin_routes_require_system_admin(api_client, repository, auth):
    seller = repository.add_account(Role.seller)

    response = api_client.get("/api/users", headers=auth(seller))

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "INSUFFICIENT_ROLE"
    assert body["required"] == ["system_admin"]
    assert body["current"] == "seller"


def test_system_admin_registers_and_deactivates_users(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    headers = auth(admin)
    payload = {
        "email": "new.seller@example.com",
        "password": "s3cret-pass",
        "first_name": "Nora",
        "last_name": "Diaz",
        "role": "seller",
    }

    created = api_client.post("/api/users", json=payload, headers=headers)
    assert created.status_code == 201
    user_id = created.json()["data"]["account_id"]

    duplicate = api_client.post("/api/users", json=payload, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Email already exists"

    deactivated = api_client.put(f"/api/users/{user_id}/deactivate", headers=headers)
    assert deactivated.status_code == 200
    assert deactivated.json()["data"]["active"] is False

    self_deactivate = api_client.put(f"/api/users/{admin.account_id}/deactivate", headers=headers)
    assert self_deactivate.status_code == 400


def test_seller_reads_assigned_client(api_client, repository, auth):
    seller = repository.add_account(Role.seller)
    owner = repository.add_account(Role.client)
    repository.add_client(owner.account_id, seller_id=seller.account_id, client_id=42)

    response = api_client.get("/api/clients/42", headers=auth(seller))

    assert response.status_code == 200
    assert response.json()["data"]["client_id"] == 42


def test_seller_is_forbidden_from_foreign_client(api_client, repository, auth):
    seller = repository.add_account(Role.seller)
    other_seller = repository.add_account(Role.seller)
    owner = repository.add_account(Role.client)
    repository.add_client(owner.account_id, seller_id=other_seller.account_id, client_id=99)

    response = api_client.get("/api/clients/99", headers=auth(seller))

    assert response.status_code == 403
    assert response.json() == {
        "error": "Access denied to this client",
        "code": "SCOPE_DENIED",
        "role": "seller",
        "entity_kind": "client",
        "entity_id": 99,
    }


def test_seller_client_listing_is_limited_to_own_clients(api_client, repository, auth):
    seller = repository.add_account(Role.seller)
    other_seller = repository.add_account(Role.seller)
    mine = repository.add_client(repository.add_account(Role.client).account_id, seller_id=seller.account_id)
    repository.add_client(repository.add_account(Role.client).account_id, seller_id=other_seller.account_id)

    response = api_client.get(
        "/api/clients/all",
        params={"seller_id": other_seller.account_id},
        headers=auth(seller),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["data"][0]["client_id"] == mine.client_id


def test_real_estate_admin_scope_checks_existence(api_client, repository, auth):
    admin = repository.add_account(Role.real_estate_admin)
    real_estate = repository.add_real_estate()
    headers = auth(admin)

    found = api_client.get(f"/api/real-estates/{real_estate.real_estate_id}", headers=headers)
    missing = api_client.get("/api/real-estates/5000", headers=headers)

    assert found.status_code == 200
    assert found.json()["data"]["name"] == "Sunrise Homes"
    assert missing.status_code == 403
    assert missing.json()["code"] == "SCOPE_DENIED"


def test_system_admin_gets_404_for_missing_real_estate(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    response = api_client.get("/api/real-estates/5000", headers=auth(admin))
    assert response.status_code == 404
    assert response.json()["error"] == "Real estate not found"


def test_real_estate_search_requires_two_characters(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    repository.add_real_estate("Andes Realty")
    headers = auth(admin)

    short = api_client.get("/api/real-estates/search", params={"q": "a"}, headers=headers)
    hit = api_client.get("/api/real-estates/search", params={"q": "andes"}, headers=headers)

    assert short.status_code == 400
    assert hit.json()["count"] == 1


def test_real_estate_with_properties_cannot_be_deleted(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    real_estate = repository.add_real_estate()
    repository.add_property(real_estate.real_estate_id)

    response = api_client.delete(f"/api/real-estates/{real_estate.real_estate_id}", headers=auth(admin))

    assert response.status_code == 409
    assert response.json()["property_count"] == 1


def test_property_creation_scopes_on_body_real_estate(api_client, repository, auth):
    admin = repository.add_account(Role.real_estate_admin)
    real_estate = repository.add_real_estate()
    headers = auth(admin)
    payload = {
        "title": "Lot B-7",
        "price": "25000",
        "total_installments": 12,
        "installment_amount": "2000",
    }

    created = api_client.post(
        "/api/properties", json={**payload, "real_estate_id": real_estate.real_estate_id}, headers=headers
    )
    denied = api_client.post("/api/properties", json={**payload, "real_estate_id": 777}, headers=headers)

    assert created.status_code == 201
    assert created.json()["data"]["title"] == "Lot B-7"
    assert denied.status_code == 403


@pytest.mark.parametrize("raw_id", [True, 1.5])
def test_property_creation_refuses_non_integer_real_estate_id(api_client, repository, auth, raw_id):
    admin = repository.add_account(Role.real_estate_admin)
    repository.add_real_estate()
    payload = {
        "real_estate_id": raw_id,
        "title": "Lot B-7",
        "price": "25000",
        "total_installments": 12,
        "installment_amount": "2000",
    }

    response = api_client.post("/api/properties", json=payload, headers=auth(admin))

    assert response.status_code == 400
    assert response.json()["field"] == "real_estate_id"
    assert repository.properties == {}


def test_client_creation_generates_installment_schedule(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    seller = repository.add_account(Role.seller)
    owner = repository.add_account(Role.client)
    real_estate = repository.add_real_estate()
    prop = repository.add_property(real_estate.real_estate_id, price=Decimal("12000"), total_installments=3)

    response = api_client.post(
        "/api/clients",
        json={
            "user_id": owner.account_id,
            "property_id": prop.property_id,
            "real_estate_id": real_estate.real_estate_id,
            "assigned_seller_id": seller.account_id,
            "contract_date": "2025-01-31",
            "total_down_payment": "3000",
        },
        headers=auth(admin),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert Decimal(data["remaining_balance"]) == Decimal("9000")
    schedule = sorted(
        (i for i in repository.installments.values() if i.client_id == data["client_id"]),
        key=lambda i: i.installment_number,
    )
    assert [i.due_date for i in schedule] == [date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]
    assert all(i.status is InstallmentStatus.pending for i in schedule)


def test_client_assignment_requires_a_seller(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    not_a_seller = repository.add_account(Role.real_estate_admin)
    owner = repository.add_account(Role.client)
    real_estate = repository.add_real_estate()
    prop = repository.add_property(real_estate.real_estate_id)

    response = api_client.post(
        "/api/clients",
        json={
            "user_id": owner.account_id,
            "property_id": prop.property_id,
            "real_estate_id": real_estate.real_estate_id,
            "assigned_seller_id": not_a_seller.account_id,
        },
        headers=auth(admin),
    )

    assert response.status_code == 400
    assert response.json()["field"] == "assigned_seller_id"


def test_client_with_payments_cannot_be_deleted(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    owner = repository.add_account(Role.client)
    client = repository.add_client(owner.account_id)
    installment = repository.add_installment(client.client_id, 1, date(2030, 1, 1))
    repository.add_payment(client.client_id, installment.installment_id)

    response = api_client.delete(f"/api/clients/{client.client_id}", headers=auth(admin))

    assert response.status_code == 409
    assert response.json()["error"] == "Cannot delete client with existing payments"


def test_client_reads_own_record(api_client, repository, auth):
    owner = repository.add_account(Role.client)
    client = repository.add_client(owner.account_id)

    response = api_client.get("/api/clients/my-info", headers=auth(owner))

    assert response.status_code == 200
    assert response.json()["data"]["client_id"] == client.client_id


def test_notifications_are_recipient_scoped(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    alice = repository.add_account(Role.client)
    bob = repository.add_account(Role.client)

    sent = api_client.post(
        "/api/notifications",
        json={"recipient_id": alice.account_id, "title": "Welcome", "message": "Your plan is active"},
        headers=auth(admin),
    )
    assert sent.status_code == 201
    notification_id = sent.json()["data"]["notification_id"]

    assert api_client.get(f"/api/notifications/{notification_id}", headers=auth(bob)).status_code == 404
    listed = api_client.get("/api/notifications", headers=auth(alice)).json()
    assert listed["count"] == 1

    read = api_client.put(f"/api/notifications/{notification_id}/read", headers=auth(alice))
    assert read.json()["data"]["is_read"] is True

    stats = api_client.get("/api/notifications/statistics/overview", headers=auth(alice)).json()
    assert stats["data"]["unread_notifications"] == 0

    deleted = api_client.delete(f"/api/notifications/{notification_id}", headers=auth(alice))
    assert deleted.status_code == 200
    assert repository.notifications == {}


def test_public_registration_accepts_sellers_and_clients(api_client, repository):
    payload = {
        "email": "ana@example.com",
        "password": "Str0ngPass",
        "first_name": "Ana",
        "last_name": "Rojas",
        "role": "client",
    }

    created = api_client.post("/api/users/register", json=payload)

    assert created.status_code == 201
    assert created.json()["message"] == "User registered successfully"
    assert created.json()["data"]["role"] == "client"


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"role": "system_admin"}, "role"),
        ({"role": "real_estate_admin"}, "role"),
        ({"password": "short1A"}, "password"),
        ({"password": "alllowercase1"}, "password"),
    ],
)
def test_public_registration_refuses_admin_roles_and_weak_passwords(api_client, repository, overrides, field):
    payload = {
        "email": "ana@example.com",
        "password": "Str0ngPass",
        "first_name": "Ana",
        "last_name": "Rojas",
        "role": "seller",
        **overrides,
    }

    response = api_client.post("/api/users/register", json=payload)

    assert response.status_code == 400
    assert response.json()["field"] == field
    assert repository.accounts == {}


def test_admin_reads_and_updates_a_user(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    user = repository.add_account(Role.seller)
    headers = auth(admin)

    fetched = api_client.get(f"/api/users/{user.account_id}", headers=headers)
    updated = api_client.put(
        f"/api/users/{user.account_id}", json={"first_name": "Lucia", "active": False}, headers=headers
    )
    missing = api_client.get("/api/users/9999", headers=headers)

    assert fetched.status_code == 200
    assert fetched.json()["data"]["email"] == user.email
    assert updated.status_code == 200
    assert updated.json()["data"]["first_name"] == "Lucia"
    assert updated.json()["data"]["active"] is False
    assert missing.status_code == 404


def test_admin_cannot_deactivate_self_through_update(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)

    response = api_client.put(f"/api/users/{admin.account_id}", json={"active": False}, headers=auth(admin))

    assert response.status_code == 400
    assert response.json()["field"] == "active"
    assert admin.active is True


def test_available_clients_exclude_accounts_with_a_client_record(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    real_estate = repository.add_real_estate()
    free = repository.add_account(Role.client, real_estate_id=real_estate.real_estate_id)
    taken = repository.add_account(Role.client, real_estate_id=real_estate.real_estate_id)
    repository.add_client(taken.account_id, real_estate_id=real_estate.real_estate_id)
    repository.add_account(Role.client, real_estate_id=real_estate.real_estate_id, active=False)
    seller = repository.add_account(Role.seller, real_estate_id=real_estate.real_estate_id)
    base = f"/api/users/real-estate/{real_estate.real_estate_id}"

    clients = api_client.get(f"{base}/available-clients", headers=auth(admin))
    sellers = api_client.get(f"{base}/available-sellers", headers=auth(admin))

    assert [a["account_id"] for a in clients.json()["data"]] == [free.account_id]
    assert [a["account_id"] for a in sellers.json()["data"]] == [seller.account_id]


def test_property_listing_filters(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    real_estate = repository.add_real_estate()
    repository.add_property(real_estate.real_estate_id, title="Ocean View Lot")
    repository.add_property(real_estate.real_estate_id, title="Hill Lot", status="sold")
    headers = auth(admin)

    available = api_client.get("/api/properties", params={"status": "available"}, headers=headers)
    searched = api_client.get("/api/properties", params={"search": "ocean"}, headers=headers)

    assert [p["title"] for p in available.json()["data"]] == ["Ocean View Lot"]
    assert [p["title"] for p in searched.json()["data"]] == ["Ocean View Lot"]


def test_property_search_and_available_listing(api_client, repository, auth):
    client_user = repository.add_account(Role.client)
    real_estate = repository.add_real_estate()
    repository.add_property(real_estate.real_estate_id, title="Garden Lot")
    repository.add_property(real_estate.real_estate_id, title="Garden House", status="reserved")
    headers = auth(client_user)

    short = api_client.get("/api/properties/search", params={"q": "g"}, headers=headers)
    hits = api_client.get("/api/properties/search", params={"q": "garden"}, headers=headers)
    available = api_client.get("/api/properties/available/all", headers=headers)

    assert short.status_code == 400
    assert hits.json()["count"] == 2
    assert available.json()["count"] == 1
    assert available.json()["data"][0]["title"] == "Garden Lot"


def test_property_update_validates_status(api_client, repository, auth):
    admin = repository.add_account(Role.real_estate_admin)
    prop = repository.add_property(repository.add_real_estate().real_estate_id)
    headers = auth(admin)

    updated = api_client.put(f"/api/properties/{prop.property_id}", json={"status": "sold"}, headers=headers)
    invalid = api_client.put(f"/api/properties/{prop.property_id}", json={"status": "demolished"}, headers=headers)
    missing = api_client.put("/api/properties/9999", json={"title": "Nowhere"}, headers=headers)

    assert updated.status_code == 200
    assert updated.json()["data"]["status"] == "sold"
    assert updated.json()["data"]["title"] == "Lot A-1"
    assert invalid.status_code == 400
    assert invalid.json()["field"] == "status"
    assert missing.status_code == 404


def test_property_with_clients_cannot_be_deleted(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    real_estate = repository.add_real_estate()
    sold = repository.add_property(real_estate.real_estate_id)
    spare = repository.add_property(real_estate.real_estate_id)
    repository.add_client(repository.add_account(Role.client).account_id, property_id=sold.property_id)
    headers = auth(admin)

    blocked = api_client.delete(f"/api/properties/{sold.property_id}", headers=headers)
    deleted = api_client.delete(f"/api/properties/{spare.property_id}", headers=headers)

    assert blocked.status_code == 409
    assert blocked.json()["client_count"] == 1
    assert deleted.status_code == 200
    assert spare.property_id not in repository.properties


def test_property_statistics(api_client, repository, auth):
    admin = repository.add_account(Role.system_admin)
    real_estate = repository.add_real_estate()
    repository.add_property(real_estate.real_estate_id, price=Decimal("10000"))
    repository.add_property(real_estate.real_estate_id, price=Decimal("30000"), status="sold")

    overall = api_client.get("/api/properties/statistics/all", headers=auth(admin))
    scoped = api_client.get(
        f"/api/properties/statistics/real-estate/{real_estate.real_estate_id}", headers=auth(admin)
    )

    data = overall.json()["data"]
    assert data["total_properties"] == 2
    assert data["sold_properties"] == 1
    assert Decimal(str(data["average_property_price"])) == Decimal("20000")
    assert scoped.json()["data"]["available_properties"] == 1
