"""Tests for the clients API router."""

import re

import pytest

from brokerdesk.models import UserRole
from tests.conftest import auth_headers, create_user

NEW_CLIENT = {
    "customer_type": "individual",
    "product": "motor",
    "insurance_provider": "Acme Insurance",
    "client_name": "Jane Perera",
    "mobile_no": "0771234567",
    "city": "Colombo",
    "basic_premium": "12500.00",
}


async def test_create_and_get_client(client, admin_headers):
    response = await client.post("/clients", json=NEW_CLIENT, headers=admin_headers)

    assert response.status_code == 201
    body = response.json()
    assert re.fullmatch(r"C[0-9a-f]{8}", body["id"])
    assert body["client_name"] == "Jane Perera"
    assert body["sales_rep_id"] is None

    fetched = await client.get(f"/clients/{body['id']}", headers=admin_headers)
    assert fetched.status_code == 200
    assert fetched.json()["city"] == "Colombo"


@pytest.mark.parametrize("missing", ["customer_type", "product", "insurance_provider", "client_name", "mobile_no"])
async def test_create_requires_core_fields(client, admin_headers, missing):
    payload = {k: v for k, v in NEW_CLIENT.items() if k != missing}
    response = await client.post("/clients", json=payload, headers=admin_headers)
    assert response.status_code == 422


async def test_create_with_explicit_id_conflict(client, admin_headers):
    payload = {**NEW_CLIENT, "id": "C123"}
    assert (await client.post("/clients", json=payload, headers=admin_headers)).status_code == 201
    assert (await client.post("/clients", json=payload, headers=admin_headers)).status_code == 409


async def test_sales_rep_owns_created_client(client, sales_user, sales_headers):
    response = await client.post("/clients", json=NEW_CLIENT, headers=sales_headers)
    assert response.status_code == 201
    assert response.json()["sales_rep_id"] == str(sales_user.id)


async def test_sales_rep_sees_only_own_clients(client, db, admin_headers, sales_user, sales_headers):
    await client.post("/clients", json={**NEW_CLIENT, "client_name": "Office Client"}, headers=admin_headers)
    await client.post("/clients", json={**NEW_CLIENT, "client_name": "Rep Client"}, headers=sales_headers)

    admin_list = await client.get("/clients", headers=admin_headers)
    assert admin_list.json()["total"] == 2

    rep_list = await client.get("/clients", headers=sales_headers)
    assert rep_list.json()["total"] == 1
    assert rep_list.json()["items"][0]["client_name"] == "Rep Client"


async def test_sales_rep_cannot_update_foreign_client(client, admin_headers, sales_headers):
    created = (await client.post("/clients", json=NEW_CLIENT, headers=admin_headers)).json()

    response = await client.put(f"/clients/{created['id']}", json={"city": "Kandy"}, headers=sales_headers)
    assert response.status_code == 403

    response = await client.put(f"/clients/{created['id']}", json={"city": "Kandy"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["city"] == "Kandy"


async def test_update_missing_client_is_404(client, admin_headers):
    response = await client.put("/clients/Cdeadbeef", json={"city": "Kandy"}, headers=admin_headers)
    assert response.status_code == 404


async def test_delete_is_restricted_to_supervisors(client, admin_headers, sales_headers):
    created = (await client.post("/clients", json=NEW_CLIENT, headers=sales_headers)).json()

    assert (await client.delete(f"/clients/{created['id']}", headers=sales_headers)).status_code == 403
    assert (await client.delete(f"/clients/{created['id']}", headers=admin_headers)).status_code == 204
    assert (await client.get(f"/clients/{created['id']}", headers=admin_headers)).status_code == 404


async def test_underwriter_cannot_list_clients(client, db):
    underwriter = await create_user(db, role=UserRole.UNDERWRITER)
    response = await client.get("/clients", headers=auth_headers(underwriter))
    assert response.status_code == 403


async def test_search_matches_any_field_case_insensitively(client, admin_headers):
    await client.post("/clients", json={**NEW_CLIENT, "client_name": "Nimal Fernando"}, headers=admin_headers)
    await client.post(
        "/clients", json={**NEW_CLIENT, "client_name": "Kamal", "mobile_no": "0719999999"}, headers=admin_headers
    )
    await client.post("/clients", json={**NEW_CLIENT, "client_name": "Sunil", "mobile_no": "0700000000"}, headers=admin_headers)

    response = await client.post(
        "/clients/search", json={"client_name": "fernando", "mobile_no": "9999"}, headers=admin_headers
    )

    assert response.status_code == 200
    names = sorted(item["client_name"] for item in response.json()["items"])
    assert names == ["Kamal", "Nimal Fernando"]


async def test_search_is_scoped_for_sales(client, admin_headers, sales_headers):
    await client.post("/clients", json={**NEW_CLIENT, "client_name": "Office Perera"}, headers=admin_headers)
    await client.post("/clients", json={**NEW_CLIENT, "client_name": "Rep Perera"}, headers=sales_headers)

    response = await client.post("/clients/search", json={"client_name": "perera"}, headers=sales_headers)

    assert [item["client_name"] for item in response.json()["items"]] == ["Rep Perera"]


async def test_clients_by_sales_rep(client, admin_headers, sales_user, sales_headers):
    await client.post("/clients", json=NEW_CLIENT, headers=sales_headers)

    response = await client.get(f"/clients/sales-rep/{sales_user.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1

    forbidden = await client.get(f"/clients/sales-rep/{sales_user.id}", headers=sales_headers)
    assert forbidden.status_code == 403
