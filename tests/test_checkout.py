"""Tests for POST /api/checkout."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from storefront.models.cart import CartItem, CartItemType
from storefront.models.order import Order, OrderItem, OrderStatusHistory
from storefront.services import checkout as checkout_module
from storefront.services.checkout import CheckoutOrchestrator

from factories import OTHER_USER_ID, make_address, make_variant, put_in_cart


@pytest.fixture
def address(db):
    return make_address(db)


def checkout_body(address, method="razorpay", **extra):
    return {
        "shipping_address_id": address.id,
        "billing_address_id": address.id,
        "payment_method": method,
        **extra,
    }


class TestCheckoutTotals:
    def test_two_items_totals(self, client, db, headers, address):
        put_in_cart(db, make_variant(db, base_price="300"))
        put_in_cart(db, make_variant(db, base_price="200", price_adjustment="50"))

        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 201
        order = response.json()["order"]
        assert order["subtotal"] == 550.0
        assert order["shipping_cost"] == 0.0
        assert order["tax_amount"] == 99.0
        assert order["discount_amount"] == 0.0
        assert order["total_amount"] == 649.0
        assert order["currency"] == "INR"
        assert len(order["order_items"]) == 2

    def test_thousand_subtotal(self, client, db, headers, address):
        put_in_cart(db, make_variant(db, base_price="500"), quantity=2)

        order = client.post("/api/checkout", json=checkout_body(address), headers=headers).json()["order"]

        assert order["subtotal"] == 1000.0
        assert order["tax_amount"] == 180.0
        assert order["shipping_cost"] == 0.0
        assert order["total_amount"] == 1180.0

    def test_shipping_charged_at_exactly_500(self, client, db, headers, address):
        put_in_cart(db, make_variant(db, base_price="250"), quantity=2)

        order = client.post("/api/checkout", json=checkout_body(address), headers=headers).json()["order"]

        assert order["subtotal"] == 500.0
        assert order["shipping_cost"] == 50.0
        assert order["total_amount"] == 640.0

    def test_saved_for_later_items_excluded(self, client, db, headers, address):
        put_in_cart(db, make_variant(db, base_price="300"))
        saved = put_in_cart(db, make_variant(db, base_price="900"), item_type=CartItemType.save_for_later)

        order = client.post("/api/checkout", json=checkout_body(address), headers=headers).json()["order"]

        assert order["subtotal"] == 300.0
        assert saved.product_variant_id not in [i["product_variant_id"] for i in order["order_items"]]
        # отложенная позиция остаётся в корзине
        assert db.query(CartItem).filter(CartItem.item_type == CartItemType.save_for_later).count() == 1


class TestCheckoutPaymentMethod:
    def test_cod_order(self, client, db, headers, address):
        put_in_cart(db, make_variant(db))

        response = client.post("/api/checkout", json=checkout_body(address, "cod"), headers=headers)

        body = response.json()
        assert response.status_code == 201
        assert body["requires_payment"] is False
        assert body["order"]["payment_status"] == "cod_pending"
        assert body["order"]["payment_provider"] == "cod"

    def test_razorpay_order(self, client, db, headers, address):
        put_in_cart(db, make_variant(db))

        body = client.post("/api/checkout", json=checkout_body(address), headers=headers).json()

        assert body["message"] == "Order created successfully"
        assert body["requires_payment"] is True
        assert body["order"]["payment_status"] == "pending"
        assert body["order"]["order_status"] == "pending"

    def test_unknown_method_rejected(self, client, db, headers, address):
        put_in_cart(db, make_variant(db))

        response = client.post("/api/checkout", json=checkout_body(address, "bitcoin"), headers=headers)

        assert response.status_code == 400
        assert db.query(Order).count() == 0


class TestCheckoutSideEffects:
    def test_cart_cleared_and_history_written(self, client, db, headers, address):
        put_in_cart(db, make_variant(db))

        order = client.post("/api/checkout", json=checkout_body(address, notes="Ring twice"), headers=headers).json()["order"]

        assert db.query(CartItem).filter(CartItem.item_type == CartItemType.cart).count() == 0
        history = db.query(OrderStatusHistory).filter(OrderStatusHistory.order_id == order["id"]).all()
        assert len(history) == 1
        assert history[0].notes == "Order created successfully"
        assert history[0].changed_by == "system"
        assert order["notes"] == "Ring twice"

    def test_item_snapshot_survives_price_change(self, client, db, headers, address):
        variant = make_variant(db, base_price="300", name="Linen Shirt")
        put_in_cart(db, variant, quantity=2)

        order = client.post("/api/checkout", json=checkout_body(address), headers=headers).json()["order"]
        variant.product.base_price = Decimal("999")
        db.commit()

        item = db.query(OrderItem).filter(OrderItem.order_id == order["id"]).one()
        assert item.product_name == "Linen Shirt"
        assert item.price_at_purchase == Decimal("300")
        assert item.subtotal == Decimal("600")
        assert item.size == "M"

    def test_history_failure_does_not_fail_checkout(self, client, db, headers, address, monkeypatch):
        def broken(*args, **kwargs):
            raise SQLAlchemyError("history table unavailable")

        monkeypatch.setattr(checkout_module, "add_status_history", broken)
        put_in_cart(db, make_variant(db))

        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 201
        assert db.query(Order).count() == 1
        assert db.query(OrderStatusHistory).count() == 0

    def test_cart_clear_failure_does_not_fail_checkout(self, client, db, headers, address, monkeypatch):
        def broken(*args, **kwargs):
            raise SQLAlchemyError("cart_items delete failed")

        monkeypatch.setattr(checkout_module, "clear_cart", broken)
        put_in_cart(db, make_variant(db))

        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 201
        assert db.query(Order).count() == 1
        assert db.query(OrderItem).count() == 1
        # строка корзины осталась
        assert db.query(CartItem).filter(CartItem.item_type == CartItemType.cart).count() == 1

    def test_refetch_failure_returns_order_without_relations(self, client, db, headers, address, monkeypatch):
        def broken(self, *args, **kwargs):
            raise SQLAlchemyError("order reload failed")

        monkeypatch.setattr(Order, "to_detail_dict", broken)
        put_in_cart(db, make_variant(db, base_price="333.33"))

        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 201
        order = response.json()["order"]
        assert "order_items" not in order
        assert "shipping_address" not in order
        assert order["id"] == db.query(Order).one().id
        # суммы совпадают с сохранёнными в Numeric(12, 2)
        assert order["tax_amount"] == 60.0
        assert order["total_amount"] == 443.33


class TestCheckoutCompensation:
    def test_item_insert_failure_leaves_no_order(self, client, db, headers, address, monkeypatch):
        def broken(self, order, lines):
            raise SQLAlchemyError("order_items insert failed")

        monkeypatch.setattr(CheckoutOrchestrator, "_insert_items", broken)
        put_in_cart(db, make_variant(db))

        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to create order items"
        assert db.query(Order).count() == 0
        assert db.query(OrderItem).count() == 0
        # корзина не тронута
        assert db.query(CartItem).count() == 1

    def test_order_number_collision_is_retried(self, client, db, headers, address, monkeypatch):
        numbers = iter(["ORD-1-AAAAAAAAA", "ORD-1-AAAAAAAAA", "ORD-2-BBBBBBBBB"])
        monkeypatch.setattr(checkout_module, "generate_order_number", lambda: next(numbers))

        put_in_cart(db, make_variant(db))
        first = client.post("/api/checkout", json=checkout_body(address), headers=headers)
        put_in_cart(db, make_variant(db))
        second = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert first.json()["order"]["order_number"] == "ORD-1-AAAAAAAAA"
        assert second.status_code == 201
        assert second.json()["order"]["order_number"] == "ORD-2-BBBBBBBBB"
        assert db.query(Order).count() == 2


class TestCheckoutValidation:
    def test_missing_fields(self, client, headers):
        response = client.post("/api/checkout", json={"payment_method": "cod"}, headers=headers)

        assert response.status_code == 400
        body = response.json()
        assert "Shipping address is required" in body["errors"]
        assert "Billing address is required" in body["errors"]

    def test_no_cart(self, client, db, headers, address):
        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Cart not found"

    def test_empty_cart_creates_no_order(self, client, db, headers, address):
        put_in_cart(db, make_variant(db), item_type=CartItemType.save_for_later)

        response = client.post("/api/checkout", json=checkout_body(address), headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Cart is empty"
        assert db.query(Order).count() == 0

    def test_foreign_address_not_found(self, client, db, headers, address):
        foreign = make_address(db, user_id=OTHER_USER_ID)
        put_in_cart(db, make_variant(db))

        body = {"shipping_address_id": address.id, "billing_address_id": foreign.id, "payment_method": "cod"}
        response = client.post("/api/checkout", json=body, headers=headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Billing address not found"
        assert db.query(Order).count() == 0

    def test_requires_authentication(self, client, address):
        response = client.post("/api/checkout", json=checkout_body(address))

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
