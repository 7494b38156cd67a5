"""Tests for payment initiation, callbacks and cash on delivery."""

from decimal import Decimal

import pytest
import requests
from sqlalchemy.orm.exc import StaleDataError

from storefront.core.errors import PaymentGatewayError
from storefront.models.order import Order, OrderPayment, OrderStatus, PaymentProviderStatus, PaymentStatus
from storefront.services import payments as payments_module
from storefront.services.gateway import RazorpayGateway
from storefront.services.payments import validate_payment_amount

from factories import make_address, make_variant, put_in_cart


@pytest.fixture
def order_id(client, db, headers):
    address = make_address(db)
    put_in_cart(db, make_variant(db, base_price="300"))
    put_in_cart(db, make_variant(db, base_price="250"))
    body = {"shipping_address_id": address.id, "billing_address_id": address.id, "payment_method": "razorpay"}
    return client.post("/api/checkout", json=body, headers=headers).json()["order"]["id"]


class TestInitiate:
    def test_creates_gateway_order_and_payment(self, client, db, headers, gateway, order_id):
        response = client.post(
            f"/api/payments/{order_id}/initiate",
            json={"customer": {"name": "Asha Rao", "email": "asha@example.com"}},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert gateway.calls[0]["amount"] == 64900
        assert gateway.calls[0]["currency"] == "INR"
        options = body["options"]
        assert options["key"] == "rzp_test_key"
        assert options["amount"] == 64900
        assert options["order_id"] == body["gateway_order_id"]
        assert options["prefill"]["email"] == "asha@example.com"
        assert options["notes"]["order_id"] == order_id
        payment = db.query(OrderPayment).one()
        assert payment.provider == "razorpay"
        assert payment.method == "upi"
        assert payment.status == PaymentProviderStatus.pending
        assert payment.amount == Decimal("649.00")

    def test_gateway_failure(self, client, db, headers, gateway, order_id):
        gateway.fail = True

        response = client.post(f"/api/payments/{order_id}/initiate", headers=headers)

        assert response.status_code == 502
        assert db.query(OrderPayment).count() == 0

    def test_amount_out_of_range(self, client, headers, order_id):
        response = client.post(f"/api/payments/{order_id}/initiate", json={"amount": 2000000}, headers=headers)

        assert response.status_code == 400

    def test_foreign_order(self, client, other_headers, order_id):
        assert client.post(f"/api/payments/{order_id}/initiate", headers=other_headers).status_code == 404

    def test_amount_must_match_order_total(self, client, db, headers, gateway, order_id):
        response = client.post(f"/api/payments/{order_id}/initiate", json={"amount": 1}, headers=headers)

        assert response.status_code == 400
        assert response.json()["errors"] == ["Payment amount must match the order total"]
        assert gateway.calls == []
        assert db.query(OrderPayment).count() == 0

    def test_explicit_total_accepted(self, client, headers, gateway, order_id):
        response = client.post(f"/api/payments/{order_id}/initiate", json={"amount": 649}, headers=headers)

        assert response.status_code == 200
        assert gateway.calls[0]["amount"] == 64900

    def test_retry_creates_new_attempt(self, client, db, headers, gateway, order_id):
        client.post(f"/api/payments/{order_id}/initiate", headers=headers)

        client.post(f"/api/payments/{order_id}/retry", headers=headers)

        assert [c["amount"] for c in gateway.calls] == [64900, 64900]
        assert db.query(OrderPayment).count() == 2


class TestCallbacks:
    def initiate(self, client, headers, order_id):
        return client.post(f"/api/payments/{order_id}/initiate", headers=headers).json()["payment_id"]

    def test_success(self, client, db, headers, order_id):
        payment_id = self.initiate(client, headers, order_id)

        response = client.post(
            f"/api/payments/{order_id}/success",
            json={
                "payment_id": payment_id,
                "razorpay_payment_id": "pay_123",
                "razorpay_order_id": "order_rzp_1",
                "razorpay_signature": "sig",
            },
            headers=headers,
        )

        assert response.status_code == 200
        order = db.get(Order, order_id)
        assert order.payment_status == PaymentStatus.completed
        assert order.is_paid is True
        assert order.transaction_id == "pay_123"
        assert order.order_status == OrderStatus.confirmed
        assert order.payment_summary["razorpay_payment_id"] == "pay_123"
        assert order.status_history[-1].notes == "Payment completed successfully"
        payment = db.get(OrderPayment, payment_id)
        assert payment.status == PaymentProviderStatus.captured
        assert payment.provider_signature == "sig"

    def test_failure(self, client, db, headers, order_id):
        payment_id = self.initiate(client, headers, order_id)

        client.post(
            f"/api/payments/{order_id}/failure",
            json={"payment_id": payment_id, "reason": "Card declined"},
            headers=headers,
        )

        order = db.get(Order, order_id)
        assert order.payment_status == PaymentStatus.failed
        assert order.payment_summary == {"failure_reason": "Card declined"}
        last = order.status_history[-1]
        assert last.status == OrderStatus.pending
        assert last.notes == "Payment failed: Card declined"
        assert db.get(OrderPayment, payment_id).status == PaymentProviderStatus.failed

    def test_underpaid_attempt_does_not_mark_order_paid(self, client, db, headers, order_id):
        payment = OrderPayment(
            order_id=order_id,
            provider="razorpay",
            provider_order_id="order_rzp_short",
            method="upi",
            amount=Decimal("1.00"),
            currency="INR",
            status=PaymentProviderStatus.pending,
        )
        db.add(payment)
        db.commit()

        response = client.post(
            f"/api/payments/{order_id}/success",
            json={"payment_id": payment.id, "razorpay_payment_id": "pay_short"},
            headers=headers,
        )

        assert response.status_code == 200
        order = db.get(Order, order_id)
        assert order.is_paid is False
        assert order.payment_status == PaymentStatus.pending
        assert order.order_status == OrderStatus.pending
        assert order.amount_paid == Decimal("1.00")
        assert db.get(OrderPayment, payment.id).status == PaymentProviderStatus.captured

    def test_failure_of_stale_attempt_keeps_order_paid(self, client, db, headers, order_id):
        first = self.initiate(client, headers, order_id)
        second = client.post(f"/api/payments/{order_id}/retry", headers=headers).json()["payment_id"]
        client.post(
            f"/api/payments/{order_id}/success",
            json={"payment_id": first, "razorpay_payment_id": "pay_1"},
            headers=headers,
        )

        response = client.post(
            f"/api/payments/{order_id}/failure",
            json={"payment_id": second, "reason": "dismissed"},
            headers=headers,
        )

        assert response.status_code == 200
        order = db.get(Order, order_id)
        assert order.is_paid is True
        assert order.payment_status == PaymentStatus.completed
        assert order.payment_summary["razorpay_payment_id"] == "pay_1"
        assert order.status_history[-1].notes == "Payment completed successfully"
        assert db.get(OrderPayment, second).status == PaymentProviderStatus.failed

    def test_version_conflict_on_success_is_409(self, client, db, headers, order_id, monkeypatch):
        payment_id = self.initiate(client, headers, order_id)

        def stale(*args, **kwargs):
            raise StaleDataError("orders row version mismatch")

        monkeypatch.setattr(payments_module, "add_status_history", stale)

        response = client.post(
            f"/api/payments/{order_id}/success",
            json={"payment_id": payment_id, "razorpay_payment_id": "pay_123"},
            headers=headers,
        )

        assert response.status_code == 409
        order = db.get(Order, order_id)
        assert order.payment_status == PaymentStatus.pending
        assert order.is_paid is False
        # попытка не помечена как неудачная
        assert db.get(OrderPayment, payment_id).status == PaymentProviderStatus.pending

    def test_already_paid_cannot_initiate(self, client, headers, order_id):
        payment_id = self.initiate(client, headers, order_id)
        client.post(
            f"/api/payments/{order_id}/success",
            json={"payment_id": payment_id, "razorpay_payment_id": "pay_123"},
            headers=headers,
        )

        response = client.post(f"/api/payments/{order_id}/initiate", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Order is already paid"

    def test_payment_details(self, client, headers, order_id):
        self.initiate(client, headers, order_id)

        payments = client.get(f"/api/payments/{order_id}", headers=headers).json()["payments"]

        assert len(payments) == 1
        assert payments[0]["provider_order_id"] == "order_rzp_1"


class TestCashOnDelivery:
    def test_cod(self, client, db, headers, order_id):
        response = client.post(f"/api/payments/{order_id}/cod", headers=headers)

        assert response.status_code == 200
        order = db.get(Order, order_id)
        assert order.payment_status == PaymentStatus.cod_pending
        assert order.payment_method == "cod"
        assert order.status_history[-1].notes == "COD order confirmed. Payment pending on delivery."
        payment = db.query(OrderPayment).one()
        assert payment.provider == "cod"
        assert payment.amount == Decimal("649.00")

    def test_cod_repeat_does_not_duplicate(self, client, db, headers, order_id):
        client.post(f"/api/payments/{order_id}/cod", headers=headers)
        client.post(f"/api/payments/{order_id}/cod", headers=headers)

        assert db.query(OrderPayment).count() == 1


def test_methods(client):
    methods = client.get("/api/payments/methods").json()["methods"]

    assert [m["id"] for m in methods] == ["card", "upi", "netbanking", "wallet", "cod"]


@pytest.mark.parametrize("amount,valid", [(0, False), (-5, False), (1, True), (1000000, True), (1000000.01, False)])
def test_validate_payment_amount(amount, valid):
    assert validate_payment_amount(amount) is valid


class TestRazorpayGateway:
    class FakeResponse:
        def __init__(self, status_code, data):
            self.status_code = status_code
            self._data = data
            self.text = str(data)

        def json(self):
            return self._data

    def test_create_order(self, monkeypatch):
        captured = {}

        def fake_post(url, json, auth, timeout):
            captured.update(url=url, json=json, auth=auth, timeout=timeout)
            return self.FakeResponse(200, {"id": "order_abc", "amount": json["amount"]})

        monkeypatch.setattr(requests, "post", fake_post)
        gateway = RazorpayGateway("key", "secret", base_url="https://api.example.test/v1/", timeout=5)

        data = gateway.create_order(64900, "INR", receipt="ORD-1-ABC")

        assert data["id"] == "order_abc"
        assert captured["url"] == "https://api.example.test/v1/orders"
        assert captured["auth"] == ("key", "secret")
        assert captured["json"] == {"amount": 64900, "currency": "INR", "receipt": "ORD-1-ABC"}
        assert captured["timeout"] == 5

    def test_error_status(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: self.FakeResponse(401, {"error": "bad key"}))
        gateway = RazorpayGateway("key", "secret")

        with pytest.raises(PaymentGatewayError) as exc:
            gateway.create_order(100, "INR", receipt="r")

        assert exc.value.status_code == 401

    def test_timeout(self, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.exceptions.Timeout()

        monkeypatch.setattr(requests, "post", fake_post)

        with pytest.raises(PaymentGatewayError):
            RazorpayGateway("key", "secret").create_order(100, "INR", receipt="r")

    def test_not_configured(self):
        with pytest.raises(PaymentGatewayError):
            RazorpayGateway("", "").create_order(100, "INR", receipt="r")
