"""Tests for the cart and wishlist endpoints."""

from storefront.models.cart import Cart, CartItem, CartItemType, WishlistItem

from factories import make_variant, put_in_cart


class TestAddToCart:
    def test_add_creates_cart_lazily(self, client, db, headers):
        variant = make_variant(db, base_price="300", price_adjustment="20")

        response = client.post("/api/cart", json={"product_variant_id": variant.id, "quantity": 2}, headers=headers)

        assert response.status_code == 201
        item = response.json()["cartItem"]
        assert item["quantity"] == 2
        assert item["subtotal"] == 640.0
        assert db.query(Cart).count() == 1

    def test_repeat_add_merges_quantity(self, client, db, headers):
        variant = make_variant(db)
        client.post("/api/cart", json={"product_variant_id": variant.id, "quantity": 1}, headers=headers)

        response = client.post("/api/cart", json={"product_variant_id": variant.id, "quantity": 2}, headers=headers)

        assert response.status_code == 200
        assert response.json()["cartItem"]["quantity"] == 3
        assert db.query(CartItem).count() == 1

    def test_insufficient_stock(self, client, db, headers):
        variant = make_variant(db, stock=2)

        response = client.post("/api/cart", json={"product_variant_id": variant.id, "quantity": 5}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient stock"
        assert response.json()["availableStock"] == 2

    def test_unavailable_variant(self, client, db, headers):
        variant = make_variant(db, is_available=False)

        response = client.post("/api/cart", json={"product_variant_id": variant.id}, headers=headers)

        assert response.status_code == 404

    def test_get_cart_summary(self, client, db, headers):
        put_in_cart(db, make_variant(db, base_price="100"), quantity=3)
        put_in_cart(db, make_variant(db, base_price="999"), item_type=CartItemType.save_for_later)

        body = client.get("/api/cart", headers=headers).json()

        assert body["subtotal"] == 300.0
        assert body["total_items"] == 3
        assert len(body["items"]) == 1
        assert len(body["saved_items"]) == 1

    def test_get_cart_without_cart(self, client, headers):
        body = client.get("/api/cart", headers=headers).json()

        assert body["items"] == []
        assert body["cart_id"] is None


class TestCartItemOwnership:
    def test_update_quantity(self, client, db, headers):
        item = put_in_cart(db, make_variant(db, stock=10))

        response = client.put(f"/api/cart/{item.id}", json={"quantity": 4}, headers=headers)

        assert response.status_code == 200
        assert response.json()["cartItem"]["quantity"] == 4

    def test_foreign_item_forbidden(self, client, db, other_headers):
        item = put_in_cart(db, make_variant(db))

        assert client.put(f"/api/cart/{item.id}", json={"quantity": 2}, headers=other_headers).status_code == 403
        assert client.delete(f"/api/cart/{item.id}", headers=other_headers).status_code == 403

    def test_missing_item(self, client, headers):
        assert client.delete("/api/cart/nope", headers=headers).status_code == 404

    def test_delete(self, client, db, headers):
        item = put_in_cart(db, make_variant(db))

        assert client.delete(f"/api/cart/{item.id}", headers=headers).status_code == 200
        assert db.query(CartItem).count() == 0


class TestMoveAndMerge:
    def test_move_to_saved(self, client, db, headers):
        item = put_in_cart(db, make_variant(db))

        response = client.patch(f"/api/cart/{item.id}/move", json={"item_type": "save_for_later"}, headers=headers)

        assert response.json()["cartItem"]["item_type"] == "save_for_later"

    def test_move_merges_with_existing_line(self, client, db, headers):
        variant = make_variant(db, stock=10)
        saved = put_in_cart(db, variant, quantity=2, item_type=CartItemType.save_for_later)
        put_in_cart(db, variant, quantity=1)

        response = client.patch(f"/api/cart/{saved.id}/move", json={"item_type": "cart"}, headers=headers)

        assert response.json()["cartItem"]["quantity"] == 3
        assert db.query(CartItem).count() == 1

    def test_merge_guest_cart(self, client, db, headers):
        in_stock = make_variant(db, stock=3)
        gone = make_variant(db, is_available=False)
        put_in_cart(db, in_stock, quantity=2)

        response = client.post(
            "/api/cart/merge-guest",
            json={"guest_items": [
                {"product_variant_id": in_stock.id, "quantity": 5},
                {"product_variant_id": gone.id, "quantity": 1},
            ]},
            headers=headers,
        )

        body = response.json()
        assert body["merged"] == 1
        assert [s["product_variant_id"] for s in body["skipped"]] == [gone.id]
        # количество ограничено остатком
        assert db.query(CartItem).one().quantity == 3


class TestWishlist:
    def test_add_and_duplicate(self, client, db, headers):
        variant = make_variant(db)

        first = client.post("/api/wishlist", json={"product_variant_id": variant.id}, headers=headers)
        second = client.post("/api/wishlist", json={"product_variant_id": variant.id}, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["message"] == "Item already in wishlist"
        assert db.query(WishlistItem).count() == 1

    def test_list_and_remove(self, client, db, headers, other_headers):
        variant = make_variant(db)
        item_id = client.post("/api/wishlist", json={"product_variant_id": variant.id}, headers=headers).json()["wishlistItem"]["id"]

        assert client.get("/api/wishlist", headers=headers).json()["total_items"] == 1
        assert client.delete(f"/api/wishlist/{item_id}", headers=other_headers).status_code == 403
        assert client.delete(f"/api/wishlist/{item_id}", headers=headers).status_code == 200
        assert client.get("/api/wishlist", headers=headers).json()["items"] == []
