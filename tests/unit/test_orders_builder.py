import re

import pytest

from storefront.cart.models import Cart
from storefront.errors import EmptyCart, InsufficientStock
from storefront.orders import builder
from storefront.orders.models import OrderStatus, PaymentStatus
from storefront.orders.pricing import default_pricing, no_charges


def _cart(*lines):
    cart = Cart()
    for variant_id, qty, price in lines:
        cart.add_item(variant_id, qty, unit_price=price, available_stock=100, product_id="prod-1")
    return cart

def test_build_order_freezes_prices_and_total(store, shipping_address):
    store.add_variant("A", price="10.00", stock=5)
    order = builder.build_order(_cart(("A", 2, 1000)), "u1", shipping_address, pricing=no_charges)

    assert order.total == 2000
    assert order.subtotal == 2000
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.payment_reference is None
    assert [(li.variant_id, li.quantity, li.unit_price_at_order) for li in order.line_items] == [("A", 2, 1000)]
    assert store.stock("A") == 5
    assert order.id in store.orders

def test_build_order_total_is_sum_of_lines(store, shipping_address):
    store.add_variant("A", stock=5)
    store.add_variant("B", stock=5)
    order = builder.build_order(_cart(("A", 2, 1000), ("B", 3, 450)), "u1", shipping_address, pricing=no_charges)
    assert order.total == sum(li.quantity * li.unit_price_at_order for li in order.line_items) == 3350

def test_build_order_empty_cart(store, shipping_address):
    with pytest.raises(EmptyCart):
        builder.build_order(Cart(), "u1", shipping_address)
    assert store.orders == {}

def test_build_order_insufficient_stock_creates_nothing(store, shipping_address):
    store.add_variant("A", stock=5)
    store.add_variant("B", stock=1)
    cart = _cart(("A", 2, 1000), ("B", 2, 1000))

    with pytest.raises(InsufficientStock) as exc:
        builder.build_order(cart, "u1", shipping_address)
    assert exc.value.variant_id == "B"
    assert exc.value.available == 1
    assert store.orders == {}
    assert len(cart.items) == 2

def test_build_order_unknown_variant_counts_as_zero_stock(store, shipping_address):
    with pytest.raises(InsufficientStock) as exc:
        builder.build_order(_cart(("ghost", 1, 1000)), "u1", shipping_address)
    assert exc.value.available == 0

def test_build_order_default_pricing(store, shipping_address):
    store.add_variant("A", stock=5)
    order = builder.build_order(_cart(("A", 2, 1000)), "u1", shipping_address)
    assert order.shipping == 35000
    assert order.tax == 320
    assert order.total == 2000 + 35000 + 320

def test_default_pricing_free_shipping_threshold():
    assert default_pricing(500000).shipping == 0
    assert default_pricing(499999).shipping == 35000
    assert default_pricing(0).total == 0

def test_generate_order_number_format():
    assert re.fullmatch(r"GAM-\d{8}-[A-Z2-9]{6}", builder.generate_order_number())
