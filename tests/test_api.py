from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from fundraiser.config import get_settings
from fundraiser.core.dependencies import get_provider_registry
from fundraiser.core.errors import ProviderError
from fundraiser.core.security import create_admin_access_token
from fundraiser.main import app
from fundraiser.services.providers import MappedResult


@pytest.fixture
def client(fake_provider, make_registry):
    provider = fake_provider(status="success")
    app.dependency_overrides[get_provider_registry] = lambda: make_registry(provider)
    test_client = TestClient(app)
    test_client.provider = provider
    yield test_client
    app.dependency_overrides.clear()


def _admin_headers(role="admin"):
    return {"Authorization": f"Bearer {create_admin_access_token('ops@example.org', role=role)}"}


def _body(**overrides):
    body = {"method": "EVC", "amount": 15, "phone": "0612345678", "name": "Hodan"}
    body.update(overrides)
    return body


def test_initiate_success_returns_201(client):
    response = client.post("/v1/payments/mobile/initiate", json=_body())

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "success"
    assert data["reference"].startswith("don-")
    assert data["warnings"] == []


def test_initiate_failed_classification_returns_400(client):
    client.provider.mapped = MappedResult(status="failed", message="RCS_USER_REJECTED")

    response = client.post("/v1/payments/mobile/initiate", json=_body())

    assert response.status_code == 400
    assert response.json()["status"] == "failed"
    assert response.json()["message"] == "RCS_USER_REJECTED"


def test_initiate_provider_error_returns_500_failed(client):
    client.provider.error = ProviderError("WaafiPay HTTP 502", mapped=MappedResult(status="success"))

    response = client.post("/v1/payments/mobile/initiate", json=_body())

    assert response.status_code == 500
    assert response.json()["status"] == "failed"


def test_initiate_edahab_returns_501(client):
    response = client.post("/v1/payments/mobile/initiate", json=_body(method="EDAHAB"))

    assert response.status_code == 501
    assert response.json()["status"] == "failed"


def test_initiate_validation_errors_return_400(client):
    response = client.post("/v1/payments/mobile/initiate", json=_body(amount=0))
    assert response.status_code == 400
    assert "amount" in response.json()["detail"].lower()

    response = client.post("/v1/payments/mobile/initiate", json=_body(method="PAYPAL"))
    assert response.status_code == 400

    assert client.provider.calls == []


def test_status_lookup(client):
    created = client.post("/v1/payments/mobile/initiate", json=_body()).json()

    by_reference = client.get(f"/v1/payments/status/{created['reference']}")
    by_id = client.get(f"/v1/payments/status/{created['id']}")

    assert by_reference.status_code == 200
    assert by_reference.json() == by_id.json()
    assert by_reference.json()["status"] == "success"
    assert client.get("/v1/payments/status/don-nope").status_code == 404


def test_webhook_acknowledges_and_credits(client, create_charity, create_payment, fetch_charity):
    charity_id = create_charity()
    create_payment(reference="don-api-1", amount="9.99", charity_id=charity_id)

    response = client.post("/v1/payments/webhook", json={"invoiceId": "don-api-1", "state": "APPROVED"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert fetch_charity(charity_id).raised == Decimal("9.99")


def test_webhook_errors(client, create_payment, monkeypatch):
    assert client.post("/v1/payments/webhook", json={"state": "APPROVED"}).status_code == 400
    assert client.post("/v1/payments/webhook", content=b"not json").status_code == 400
    assert client.post("/v1/payments/webhook", json={"invoiceId": "don-ghost"}).status_code == 404

    create_payment(reference="don-api-2")
    monkeypatch.setattr(get_settings(), "WEBHOOK_SECRET", "s3cret")
    payload = {"invoiceId": "don-api-2", "state": "APPROVED"}

    forged = client.post("/v1/payments/webhook", json=payload, headers={"X-Webhook-Signature": "nope"})
    signed = client.post("/v1/payments/webhook", json=payload, headers={"X-Webhook-Signature": "s3cret"})

    assert forged.status_code == 401
    assert signed.status_code == 200


def test_admin_endpoints_require_admin_token(client):
    assert client.get("/v1/payments/admin").status_code in (401, 403)
    assert client.get("/v1/payments/admin", headers={"Authorization": "Bearer garbage"}).status_code == 401
    assert client.get("/v1/payments/admin", headers=_admin_headers(role="donor")).status_code == 403
    assert client.post("/v1/payments/manual-credit/1", headers=_admin_headers(role="donor")).status_code == 403


def test_admin_list_and_debug(client, create_charity):
    charity_id = create_charity()
    created = client.post("/v1/payments/mobile/initiate", json=_body(charityId=charity_id)).json()

    listing = client.get("/v1/payments/admin", params={"status": "success"}, headers=_admin_headers())
    assert listing.status_code == 200
    assert [item["reference"] for item in listing.json()["items"]] == [created["reference"]]

    debug = client.get(f"/v1/payments/debug/{created['id']}", headers=_admin_headers(role="superadmin"))
    assert debug.status_code == 200
    data = debug.json()
    assert data["invoice_id"] == created["reference"]
    assert data["provider_request"]["invoiceId"] == created["reference"]
    assert [credit["source"] for credit in data["credits"]] == ["initiate"]

    assert client.get("/v1/payments/debug/424242", headers=_admin_headers()).status_code == 404


def test_manual_credit_endpoint(client, create_charity, create_payment):
    charity_id = create_charity(raised="5.00")
    pending_id = create_payment(reference="don-api-3", amount="20.00", charity_id=charity_id)
    success_id = create_payment(reference="don-api-4", amount="20.00", charity_id=charity_id, status="success")

    response = client.post(f"/v1/payments/manual-credit/{success_id}", headers=_admin_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["charityId"] == charity_id
    assert Decimal(data["amountAdded"]) == Decimal("20.00")
    assert Decimal(data["newTotal"]) == Decimal("25.00")

    rejected = client.post(f"/v1/payments/manual-credit/{pending_id}", headers=_admin_headers())
    assert rejected.status_code == 400
    assert client.post("/v1/payments/manual-credit/9999", headers=_admin_headers()).status_code == 404
