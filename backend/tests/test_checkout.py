"""Checkout transaction: validation, per-store split, stock and numbering."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from models.order import Order, OrderItem, OrderSequence, OrderStatus
from models.stock import StockMovement
from models.users import UserRole
from services import checkout
from services.catalog import CartLine, validate_cart
from services.checkout import process_checkout, checkout_summary, next_order_number
from utils.errors import ConflictError, ValidationError

NOW = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def two_stores(business, make_user, make_store, make_product):
    other_owner = make_user(UserRole.BUSINESS, email="other@shop.com")
    store_a = make_store(business, "Store A")
    store_b = make_store(other_owner, "Store B")
    pa = make_product(store_a, "Lamp", price="10.00", stock=5)
    pb = make_product(store_b, "Mug", price="4.50", stock=10)
    return store_a, store_b, pa, pb


def test_checkout_creates_one_order_per_store(db, customer, two_stores):
    store_a, store_b, pa, pb = two_stores
    lines = [
        CartLine(product_id=pa.id, quantity=2, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=3, store_id=store_b.id),
    ]

    result = process_checkout(db, customer, lines, shipping_address="Main St 1", now=NOW)

    assert result.order_numbers == ["ORD-261019-0001", "ORD-261019-0002"]
    orders = db.query(Order).order_by(Order.id).all()
    assert [o.store_id for o in orders] == [store_a.id, store_b.id]
    assert all(o.status == OrderStatus.PENDING for o in orders)
    assert orders[0].total_amount == Decimal("20.00")
    assert orders[1].total_amount == Decimal("13.50")
    assert orders[0].shipping_address == "Main St 1"

    db.refresh(pa)
    db.refresh(pb)
    assert pa.stock == 3
    assert pb.stock == 7


def test_order_total_equals_sum_of_items(db, customer, business, make_store, make_product):
    store = make_store(business)
    p1 = make_product(store, "A", price="19.99", stock=10)
    p2 = make_product(store, "B", price="0.35", stock=10)
    lines = [
        CartLine(product_id=p1.id, quantity=3, store_id=store.id),
        CartLine(product_id=p2.id, quantity=7, store_id=store.id),
    ]

    result = process_checkout(db, customer, lines, now=NOW)

    order = db.get(Order, result.order_ids[0])
    assert len(order.items) == 2
    assert sum(i.total_price for i in order.items) == order.total_amount
    for item in order.items:
        assert item.total_price == item.unit_price * item.quantity


def test_client_price_is_compared_but_never_stored(db, customer, business, make_store, make_product):
    store = make_store(business)
    product = make_product(store, price="10.00", stock=5)
    lines = [CartLine(product_id=product.id, quantity=1, store_id=store.id, unit_price=Decimal("9.995"))]

    result = process_checkout(db, customer, lines, now=NOW)

    item = db.query(OrderItem).filter(OrderItem.order_id == result.order_ids[0]).one()
    assert item.unit_price == Decimal("10.00")

    # Later price changes do not touch the snapshot
    product.price = Decimal("12.00")
    db.commit()
    db.refresh(item)
    assert item.unit_price == Decimal("10.00")


def test_stale_client_price_is_rejected(db, customer, business, make_store, make_product):
    store = make_store(business)
    product = make_product(store, price="10.00", stock=5)
    lines = [CartLine(product_id=product.id, quantity=1, store_id=store.id, unit_price=Decimal("8.00"))]

    with pytest.raises(ValidationError) as exc:
        process_checkout(db, customer, lines, now=NOW)

    assert exc.value.details[0]["code"] == "PRICE_CHANGED"
    assert db.query(Order).count() == 0


def test_stock_exhausted_then_next_checkout_conflicts(db, make_user, business, make_store, make_product):
    first = make_user(email="first@shop.com")
    second = make_user(email="second@shop.com")
    store = make_store(business)
    product = make_product(store, price="10.00", stock=5)

    process_checkout(db, first, [CartLine(product_id=product.id, quantity=5, store_id=store.id)], now=NOW)
    db.refresh(product)
    assert product.stock == 0

    with pytest.raises(ConflictError) as exc:
        process_checkout(db, second, [CartLine(product_id=product.id, quantity=1, store_id=store.id)], now=NOW)

    assert exc.value.code == "INSUFFICIENT_STOCK"
    db.refresh(product)
    assert product.stock == 0
    assert db.query(Order).filter(Order.customer_id == second.id).count() == 0


def test_failure_in_one_store_creates_no_orders_at_all(db, customer, two_stores):
    store_a, store_b, pa, pb = two_stores
    lines = [
        CartLine(product_id=pa.id, quantity=1, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=11, store_id=store_b.id),
    ]

    with pytest.raises(ConflictError):
        process_checkout(db, customer, lines, now=NOW)

    assert db.query(Order).count() == 0
    assert db.query(StockMovement).count() == 0
    db.refresh(pa)
    db.refresh(pb)
    assert (pa.stock, pb.stock) == (5, 10)


def test_stock_taken_after_validation_rolls_back_everything(db, customer, two_stores, monkeypatch):
    store_a, store_b, pa, pb = two_stores
    lines = [
        CartLine(product_id=pa.id, quantity=2, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=2, store_id=store_b.id),
    ]
    validation = validate_cart(db, lines)
    assert validation.is_valid

    # Another purchase drains store B between validation and commit
    pb.stock = 1
    db.commit()
    monkeypatch.setattr(checkout, "validate_cart", lambda session, cart: validation)

    with pytest.raises(ConflictError) as exc:
        process_checkout(db, customer, lines, now=NOW)

    assert exc.value.code == "INSUFFICIENT_STOCK"
    assert db.query(Order).count() == 0
    db.refresh(pa)
    db.refresh(pb)
    assert (pa.stock, pb.stock) == (5, 1)


def test_same_product_on_two_lines_counts_against_one_stock(db, customer, business, make_store, make_product):
    store = make_store(business)
    product = make_product(store, stock=3)
    lines = [
        CartLine(product_id=product.id, quantity=2, store_id=store.id),
        CartLine(product_id=product.id, quantity=2, store_id=store.id),
    ]

    with pytest.raises(ConflictError):
        process_checkout(db, customer, lines, now=NOW)


def test_order_numbers_count_per_day_across_stores(db, customer, two_stores):
    store_a, store_b, pa, pb = two_stores

    process_checkout(db, customer, [CartLine(product_id=pa.id, quantity=1, store_id=store_a.id)], now=NOW)
    second = process_checkout(db, customer, [CartLine(product_id=pb.id, quantity=1, store_id=store_b.id)], now=NOW)
    next_day = process_checkout(
        db, customer, [CartLine(product_id=pa.id, quantity=1, store_id=store_a.id)],
        now=datetime(2026, 10, 20, 0, 5, tzinfo=timezone.utc),
    )

    assert second.order_numbers == ["ORD-261019-0002"]
    assert next_day.order_numbers == ["ORD-261020-0001"]


def test_next_order_number_keeps_counting_past_four_digits(db):
    db.add(OrderSequence(day="261019", last_value=9999))
    db.commit()

    assert next_order_number(db, NOW) == "ORD-261019-10000"


def test_checkout_records_stock_movements(db, customer, business, make_store, make_product):
    store = make_store(business)
    product = make_product(store, stock=5)

    result = process_checkout(db, customer, [CartLine(product_id=product.id, quantity=4, store_id=store.id)], now=NOW)

    movement = db.query(StockMovement).one()
    assert movement.type == "CHECKOUT"
    assert movement.quantity_change == -4
    assert movement.order_id == result.order_ids[0]


def test_summary_groups_without_writing(db, customer, two_stores):
    store_a, store_b, pa, pb = two_stores
    lines = [
        CartLine(product_id=pb.id, quantity=2, store_id=store_b.id),
        CartLine(product_id=pa.id, quantity=1, store_id=store_a.id),
    ]

    summary = checkout_summary(db, lines)

    assert summary["total_items"] == 3
    assert summary["total_amount"] == Decimal("19.00")
    assert [s["store_name"] for s in summary["stores"]] == ["Store B", "Store A"]
    assert db.query(Order).count() == 0
    db.refresh(pa)
    assert pa.stock == 5


def _skip_validation(monkeypatch, db, lines):
    # Freeze the first validation so later catalog changes are only seen on the locked rows
    validation = validate_cart(db, lines)
    assert validation.is_valid
    monkeypatch.setattr(checkout, "validate_cart", lambda session, cart: validation)


def test_product_deactivated_after_validation_rolls_back_everything(db, customer, two_stores, monkeypatch):
    store_a, store_b, pa, pb = two_stores
    lines = [
        CartLine(product_id=pa.id, quantity=1, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=1, store_id=store_b.id),
    ]
    _skip_validation(monkeypatch, db, lines)
    pb.is_active = False
    db.commit()

    with pytest.raises(ConflictError) as exc:
        process_checkout(db, customer, lines, now=NOW)

    assert exc.value.code == "CHECKOUT_CONFLICT"
    assert [d["code"] for d in exc.value.details] == ["PRODUCT_UNAVAILABLE"]
    assert db.query(Order).count() == 0
    db.refresh(pa)
    db.refresh(pb)
    assert (pa.stock, pb.stock) == (5, 10)


def test_store_deactivated_after_validation_creates_no_orders(db, customer, two_stores, monkeypatch):
    store_a, store_b, pa, pb = two_stores
    lines = [
        CartLine(product_id=pa.id, quantity=1, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=1, store_id=store_b.id),
    ]
    _skip_validation(monkeypatch, db, lines)
    store_b.is_active = False
    db.commit()

    with pytest.raises(ConflictError) as exc:
        process_checkout(db, customer, lines, now=NOW)

    assert exc.value.code == "CHECKOUT_CONFLICT"
    assert exc.value.details[0]["code"] == "STORE_INACTIVE"
    assert exc.value.details[0]["product_id"] == pb.id
    assert db.query(Order).count() == 0
    db.refresh(pa)
    assert pa.stock == 5


def test_duplicate_order_number_is_a_conflict(db, customer, two_stores):
    store_a, store_b, pa, pb = two_stores
    # An order already holds the number the second store group will be given
    db.add(Order(
        order_number="ORD-261019-0002", customer_id=customer.id, store_id=store_a.id,
        status=OrderStatus.PENDING, total_amount=Decimal("1.00"),
    ))
    db.commit()
    lines = [
        CartLine(product_id=pa.id, quantity=2, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=2, store_id=store_b.id),
    ]

    with pytest.raises(ConflictError) as exc:
        process_checkout(db, customer, lines, now=NOW)

    assert exc.value.code == "CHECKOUT_CONFLICT"
    assert exc.value.status_code == 409
    assert [o.order_number for o in db.query(Order).all()] == ["ORD-261019-0002"]
    assert db.query(OrderSequence).count() == 0
    assert db.query(StockMovement).count() == 0
    db.refresh(pa)
    db.refresh(pb)
    assert (pa.stock, pb.stock) == (5, 10)


def test_unexpected_error_mid_checkout_rolls_back(db, customer, two_stores, monkeypatch):
    store_a, store_b, pa, pb = two_stores
    numbers = iter(["ORD-261019-0001"])

    def next_number(session, now):
        try:
            return next(numbers)
        except StopIteration:
            raise RuntimeError("number service unavailable")

    monkeypatch.setattr(checkout, "next_order_number", next_number)
    lines = [
        CartLine(product_id=pa.id, quantity=2, store_id=store_a.id),
        CartLine(product_id=pb.id, quantity=2, store_id=store_b.id),
    ]

    with pytest.raises(RuntimeError):
        process_checkout(db, customer, lines, now=NOW)

    # Same session: the first store's flushed order must be gone too
    assert db.query(Order).count() == 0
    db.refresh(pa)
    assert pa.stock == 5
