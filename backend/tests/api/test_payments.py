"""Tests for the payment and credit endpoints."""

import pytest

from tests.conftest import create_test_token


@pytest.fixture
def order(client, auth_headers):
    response = client.post("/api/payments/orders", json={"plan": "basic"}, headers=auth_headers)
    assert response.status_code == 201
    return response.json()


def confirmation(container, order_id: str, payment_id: str = "pay_1") -> dict:
    return {
        "order_id": order_id,
        "payment_id": payment_id,
        "signature": container.gateway.sign(order_id, payment_id),
    }


class TestPlans:
    def test_list_plans_is_public(self, client):
        response = client.get("/api/payments/plans")
        assert response.status_code == 200
        plans = {p["plan"]: p for p in response.json()}
        assert plans["basic"]["credits"] == 500
        assert plans["premium"]["amount"] == 8000


class TestOrders:
    def test_create_order(self, order):
        assert order["amount"] == 400000
        assert order["currency"] == "INR"
        assert order["plan"] == "basic"
        assert order["order_id"].startswith("order_local_")

    def test_unknown_plan(self, client, auth_headers):
        response = client.post("/api/payments/orders", json={"plan": "gold"}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["error"] == "UNKNOWN_PLAN"

    def test_requires_auth(self, client, container):
        response = client.post("/api/payments/orders", json={"plan": "basic"})
        assert response.status_code == 401


class TestVerify:
    def test_verify_credits_once(self, client, container, auth_headers, order):
        body = confirmation(container, order["order_id"])

        first = client.post("/api/payments/verify", json=body, headers=auth_headers)
        second = client.post("/api/payments/verify", json=body, headers=auth_headers)

        assert first.status_code == 200
        assert first.json() == {
            "success": True,
            "order_id": order["order_id"],
            "plan": "basic",
            "credits": 500,
        }
        assert second.status_code == 200
        assert client.get("/api/credits/balance", headers=auth_headers).json()["credits"] == 500

    def test_bad_signature(self, client, container, auth_headers, order):
        body = confirmation(container, order["order_id"])
        body["signature"] = "0" * 64

        response = client.post("/api/payments/verify", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert client.get("/api/credits/balance", headers=auth_headers).json()["credits"] == 0

    def test_non_ascii_signature(self, client, container, auth_headers, order):
        body = confirmation(container, order["order_id"])
        body["signature"] = "é" * 64

        response = client.post("/api/payments/verify", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert client.get("/api/credits/balance", headers=auth_headers).json()["credits"] == 0

    def test_other_users_order(self, client, container, order):
        intruder = {"Authorization": f"Bearer {create_test_token(user_id='intruder')}"}
        response = client.post(
            "/api/payments/verify",
            json=confirmation(container, order["order_id"]),
            headers=intruder,
        )
        assert response.status_code == 404

    def test_expired_order(self, client, container, auth_headers, order):
        container.payment_store.mark_failed(order["order_id"])

        response = client.post(
            "/api/payments/verify",
            json=confirmation(container, order["order_id"]),
            headers=auth_headers,
        )
        assert response.status_code == 410

    def test_transactions_and_subscription(self, client, container, auth_headers, order):
        client.post(
            "/api/payments/verify",
            json=confirmation(container, order["order_id"]),
            headers=auth_headers,
        )

        transactions = client.get("/api/payments/transactions", headers=auth_headers).json()
        assert [t["status"] for t in transactions["transactions"]] == ["success"]

        subscription = client.get("/api/payments/subscription", headers=auth_headers).json()
        assert subscription["subscription"]["plan"] == "basic"


class TestCredits:
    def test_new_user_has_zero(self, client, auth_headers):
        response = client.get("/api/credits/balance", headers=auth_headers)
        assert response.json() == {"credits": 0, "last_updated": None}

    def test_entries(self, client, container, auth_headers, order):
        client.post(
            "/api/payments/verify",
            json=confirmation(container, order["order_id"]),
            headers=auth_headers,
        )
        client.post(
            "/api/jobs",
            json={"kind": "generate", "payload": {"prompt": "x"}},
            headers=auth_headers,
        )

        data = client.get("/api/credits/entries?limit=1", headers=auth_headers).json()
        assert data["has_more"] is True
        assert data["entries"][0]["reason"] == "job_debit"
        assert data["entries"][0]["balance_after"] == 499
