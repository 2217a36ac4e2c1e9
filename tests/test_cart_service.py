"""
Cart rules exercised directly against CartService with an in-memory
store and a fake catalog.
"""
from decimal import Decimal

import pytest

from app.core.errors import (
    Conflict,
    InsufficientStock,
    InvalidArgument,
    InvalidProductData,
    ItemNotFound,
    NotFound,
    OutOfStock,
    ProductNotFound,
    UpstreamUnavailable,
)

U = "u1"


def assert_total_consistent(cart):
    assert cart.total_amount == sum(
        (it.price * it.quantity for it in cart.items), Decimal("0")
    )


class TestAddItem:
    def test_first_add_creates_cart_with_snapshot(self, service):
        cart = service.add_item(None, U, "p1")

        assert cart.user_id == U
        assert len(cart.items) == 1
        item = cart.items[0]
        assert item.product_id == "p1"
        assert item.quantity == 1
        assert item.price == Decimal("29.99")
        assert item.name == "Basic Tee"
        assert item.image == "https://img.example.com/p1.jpg"
        assert item.color == ""
        assert item.size == ""
        assert cart.total_amount == Decimal("29.99")
        assert cart.created_at is not None

    def test_same_key_merges_into_one_line(self, service):
        service.add_item(None, U, "p1")
        cart = service.add_item(None, U, "p1")

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.total_amount == Decimal("59.98")

    def test_different_size_makes_separate_lines(self, service, catalog):
        catalog.add(
            "shirt",
            name="Shirt",
            price=10,
            variants=[
                {"color": "red", "size": "M", "stock": 3},
                {"color": "red", "size": "L", "stock": 3},
            ],
        )

        service.add_item(None, U, "shirt", color="red", size="M")
        service.add_item(None, U, "shirt", color="red", size="M")
        cart = service.add_item(None, U, "shirt", color="red", size="L")

        assert [(it.size, it.quantity) for it in cart.items] == [("M", 2), ("L", 1)]
        assert cart.total_amount == Decimal("30")
        assert_total_consistent(cart)

    def test_default_variant_is_first_valid_entry(self, service, catalog):
        catalog.add(
            "shirt",
            name="Shirt",
            price=10,
            variants=[
                {"color": 7, "size": "M", "stock": 3},
                {"color": "blue", "size": "S", "stock": "many"},
                {"color": "green", "size": "XL", "stock": 2},
            ],
        )

        cart = service.add_item(None, U, "shirt")

        assert (cart.items[0].color, cart.items[0].size) == ("green", "XL")

    def test_no_valid_variant_is_out_of_stock(self, service, catalog, store):
        catalog.add("broken", name="Broken", price=5, stock=10, variants=[{"color": 1}, "junk"])

        with pytest.raises(OutOfStock):
            service.add_item(None, U, "broken")
        assert store.find_by_user(None, U) is None

    def test_requested_variant_not_offered(self, service, catalog):
        catalog.add("shirt", name="Shirt", price=10, variants=[{"color": "red", "stock": 3}])

        with pytest.raises(InvalidArgument):
            service.add_item(None, U, "shirt", color="purple")

    def test_stock_enforced_on_merge(self, service, catalog, store):
        catalog.add("limited", name="Limited", price=1.5, stock=2)

        service.add_item(None, U, "limited")
        service.add_item(None, U, "limited")
        with pytest.raises(InsufficientStock) as exc:
            service.add_item(None, U, "limited")

        assert exc.value.available == 2
        cart = store.find_by_user(None, U)
        assert cart.items[0].quantity == 2
        assert cart.total_amount == Decimal("3.0")

    def test_zero_stock_new_line_is_out_of_stock(self, service, catalog, store):
        catalog.add("gone", name="Gone", price=3, stock=0)

        with pytest.raises(OutOfStock):
            service.add_item(None, U, "gone")
        assert store.find_by_user(None, U) is None

    def test_missing_stock_means_none_available(self, service, catalog):
        catalog.add("unknown", name="Unknown", price=3)

        with pytest.raises(OutOfStock):
            service.add_item(None, U, "unknown")

    def test_variant_without_stock_uses_product_stock(self, service, catalog):
        catalog.add("mug", name="Mug", price=8, stock=1, variants=[{"color": "white"}])

        cart = service.add_item(None, U, "mug")
        assert cart.items[0].color == "white"
        with pytest.raises(InsufficientStock):
            service.add_item(None, U, "mug")

    @pytest.mark.parametrize(
        "error",
        [
            UpstreamUnavailable("catalog down"),
            ProductNotFound("nope"),
            InvalidProductData("bad"),
        ],
    )
    def test_catalog_failures_leave_cart_untouched(self, service, catalog, store, error):
        service.add_item(None, U, "p1")
        catalog.fail("p2", error)

        with pytest.raises(type(error)):
            service.add_item(None, U, "p2")

        cart = store.find_by_user(None, U)
        assert [it.product_id for it in cart.items] == ["p1"]

    def test_invalid_product_data_from_payload(self, service, catalog):
        catalog.add("noprice", name="No price")

        with pytest.raises(InvalidProductData):
            service.add_item(None, U, "noprice")

    @pytest.mark.parametrize("user_id, product_id", [("", "p1"), (U, ""), ("  ", "p1"), (U, None)])
    def test_requires_ids(self, service, catalog, user_id, product_id):
        with pytest.raises(InvalidArgument):
            service.add_item(None, user_id, product_id)
        assert catalog.calls == []

    def test_price_is_a_snapshot(self, service, catalog):
        service.add_item(None, U, "p1")
        catalog.add("p1", name="Basic Tee", price=99.99, stock=5)

        cart = service.add_item(None, U, "p1")

        assert cart.items[0].price == Decimal("29.99")
        assert cart.total_amount == Decimal("59.98")


class TestUpdateItem:
    def test_sets_quantity_up_to_stock(self, service):
        service.add_item(None, U, "p1")
        cart = service.update_item(None, U, "p1", 5)

        assert cart.items[0].quantity == 5
        assert cart.total_amount == Decimal("149.95")

    def test_above_stock_rejected(self, service, store):
        service.add_item(None, U, "p1")

        with pytest.raises(InsufficientStock) as exc:
            service.update_item(None, U, "p1", 6)

        assert exc.value.available == 5
        assert store.find_by_user(None, U).items[0].quantity == 1

    @pytest.mark.parametrize("quantity", [0, -1, True, 2.5])
    def test_quantity_must_be_positive_int(self, service, quantity):
        service.add_item(None, U, "p1")

        with pytest.raises(InvalidArgument):
            service.update_item(None, U, "p1", quantity)

    def test_missing_cart(self, service):
        with pytest.raises(NotFound):
            service.update_item(None, U, "p1", 2)

    def test_missing_item(self, service, catalog):
        catalog.add("p2", name="Other", price=1, stock=9)
        service.add_item(None, U, "p1")

        with pytest.raises(ItemNotFound):
            service.update_item(None, U, "p2", 2)

    def test_revalidates_product(self, service, catalog):
        service.add_item(None, U, "p1")
        catalog.fail("p1", ProductNotFound("removed from catalog"))

        with pytest.raises(ProductNotFound):
            service.update_item(None, U, "p1", 2)

    def test_does_not_refresh_price(self, service, catalog):
        service.add_item(None, U, "p1")
        catalog.add("p1", name="Renamed", price=1, stock=5)

        cart = service.update_item(None, U, "p1", 2)

        assert cart.items[0].price == Decimal("29.99")
        assert cart.items[0].name == "Basic Tee"

    def test_product_id_only_targets_first_line(self, service, catalog):
        catalog.add(
            "shirt",
            name="Shirt",
            price=10,
            variants=[{"size": "M", "stock": 4}, {"size": "L", "stock": 4}],
        )
        service.add_item(None, U, "shirt", size="M")
        service.add_item(None, U, "shirt", size="L")

        cart = service.update_item(None, U, "shirt", 3)
        assert [(it.size, it.quantity) for it in cart.items] == [("M", 3), ("L", 1)]

        cart = service.update_item(None, U, "shirt", 4, size="L")
        assert [(it.size, it.quantity) for it in cart.items] == [("M", 3), ("L", 4)]
        assert cart.total_amount == Decimal("70")

    def test_uses_stock_of_the_line_variant(self, service, catalog):
        catalog.add(
            "shirt",
            name="Shirt",
            price=10,
            variants=[{"size": "M", "stock": 1}, {"size": "L", "stock": 9}],
        )
        service.add_item(None, U, "shirt", size="L")

        cart = service.update_item(None, U, "shirt", 9)
        assert cart.items[0].quantity == 9


class TestRemoveItem:
    def test_decrements(self, service):
        service.add_item(None, U, "p1")
        service.update_item(None, U, "p1", 3)

        cart = service.remove_item(None, U, "p1")

        assert cart.items[0].quantity == 2
        assert cart.total_amount == Decimal("59.98")

    def test_deletes_last_unit(self, service):
        service.add_item(None, U, "p1")

        cart = service.remove_item(None, U, "p1")

        assert cart.items == []
        assert cart.total_amount == Decimal("0")

    def test_targets_variant(self, service, catalog):
        catalog.add(
            "shirt",
            name="Shirt",
            price=10,
            variants=[{"size": "M", "stock": 4}, {"size": "L", "stock": 4}],
        )
        service.add_item(None, U, "shirt", size="M")
        service.add_item(None, U, "shirt", size="L")

        cart = service.remove_item(None, U, "shirt", size="L")

        assert [it.size for it in cart.items] == ["M"]

    def test_does_not_call_catalog(self, service, catalog):
        service.add_item(None, U, "p1")
        catalog.calls.clear()

        service.remove_item(None, U, "p1")

        assert catalog.calls == []

    def test_missing_cart_and_item(self, service):
        with pytest.raises(NotFound):
            service.remove_item(None, U, "p1")

        service.add_item(None, U, "p1")
        with pytest.raises(ItemNotFound):
            service.remove_item(None, U, "p9")


class TestClearAndGet:
    def test_clear_is_idempotent(self, service):
        service.add_item(None, U, "p1")

        first = service.clear_cart(None, U)
        second = service.clear_cart(None, U)

        for cart in (first, second):
            assert cart.items == []
            assert cart.total_amount == Decimal("0")

    def test_cart_survives_clear(self, service):
        service.add_item(None, U, "p1")
        service.clear_cart(None, U)

        assert service.get_cart(None, U).items == []

    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.get_cart(None, U),
            lambda s: s.update_item(None, U, "p1", 1),
            lambda s: s.remove_item(None, U, "p1"),
            lambda s: s.clear_cart(None, U),
            lambda s: s.get_cart_details(None, U),
        ],
    )
    def test_missing_cart_is_not_found(self, service, call):
        with pytest.raises(NotFound):
            call(service)

    def test_get_cart_requires_user(self, service):
        with pytest.raises(InvalidArgument):
            service.get_cart(None, "")

    def test_get_cart_does_not_create(self, service, store):
        with pytest.raises(NotFound):
            service.get_cart(None, U)
        assert store.find_by_user(None, U) is None

    def test_cart_details(self, service, catalog):
        catalog.add("shirt", name="Shirt", price=12.5, variants=[{"color": "red", "size": "S", "stock": 2}])
        service.add_item(None, U, "p1")
        service.add_item(None, U, "shirt")

        details = service.get_cart_details(None, U)

        assert [(d.product_id, d.description, d.color, d.size, d.quantity, d.price) for d in details] == [
            ("p1", "Basic Tee", "", "", 1, 29.99),
            ("shirt", "Shirt", "red", "S", 1, 12.5),
        ]


def test_stale_write_is_rejected(service, store):
    service.add_item(None, U, "p1")
    stale = store.find_by_user(None, U)

    service.add_item(None, U, "p1")

    stale.items[0].quantity = 5
    stale.recompute_total()
    with pytest.raises(Conflict):
        store.save(None, stale)
    assert store.find_by_user(None, U).items[0].quantity == 2


def test_end_to_end_scenario(service):
    cart = service.add_item(None, U, "p1")
    assert (cart.items[0].quantity, cart.total_amount) == (1, Decimal("29.99"))

    cart = service.add_item(None, U, "p1")
    assert (cart.items[0].quantity, cart.total_amount) == (2, Decimal("59.98"))

    cart = service.update_item(None, U, "p1", 5)
    assert (cart.items[0].quantity, cart.total_amount) == (5, Decimal("149.95"))

    for _ in range(4):
        cart = service.remove_item(None, U, "p1")
        assert_total_consistent(cart)
    assert (cart.items[0].quantity, cart.total_amount) == (1, Decimal("29.99"))

    cart = service.remove_item(None, U, "p1")
    assert cart.items == []
    assert cart.total_amount == Decimal("0")
