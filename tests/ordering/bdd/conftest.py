"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.order import Order
from ordering.order.vat import calculate_vat_breakdown
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def user_id():
    return "uid-001"


@pytest.fixture()
def cart_items():
    return [
        {"productId": "p-1", "name": "Silk Kaftan", "price": "AED 120.00", "quantity": 2},
        {"productId": "p-2", "name": "Linen Scarf", "price": 60.0, "quantity": 1},
    ]


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def outcome():
    """Return value of the last lifecycle call on the order."""
    return {"changed": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.parse("a checkout with a subtotal of {subtotal:d} fils"), target_fixture="order")
def _(user_id, cart_items, subtotal):
    return Order.create_pending(
        user_id,
        calculate_vat_breakdown(subtotal),
        items_data=cart_items,
        metadata={"email": "layla@example.com"},
    )


@given(parsers.parse("a cash on delivery checkout with a subtotal of {subtotal:d} fils"), target_fixture="order")
def _(user_id, cart_items, subtotal):
    return Order.create_cash_on_delivery(user_id, calculate_vat_breakdown(subtotal), items_data=cart_items)


@given("the payment intent was attached")
def _(order):
    order.attach_payment_intent("pi_bdd_001")


@given("the payment was captured")
def _(order):
    order.mark_paid({"id": "pi_bdd_001", "status": "succeeded"}, payment_method="card")


@given("the payment failed")
def _(order):
    order.mark_payment_failed({"id": "pi_bdd_001", "status": "requires_payment_method"})


@given(parsers.parse("{amount:d} fils were refunded"))
def _(order, amount):
    order.record_refund("re_bdd_001", amount, full_refund=amount >= order.total_amount)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
def _attempt(order, error, outcome, action):
    try:
        outcome["changed"] = action(order)
    except ValidationError as exc:
        error["exc"] = exc


@when("the payment succeeds")
def _(order, error, outcome):
    _attempt(order, error, outcome, lambda o: o.mark_paid({"id": "pi_bdd_001", "status": "succeeded"}, "card"))


@when("the payment fails")
def _(order, error, outcome):
    _attempt(order, error, outcome, lambda o: o.mark_payment_failed({"id": "pi_bdd_001", "status": "failed"}))


@when(parsers.parse("{amount:d} fils are refunded"))
def _(order, error, outcome, amount):
    _attempt(
        order,
        error,
        outcome,
        lambda o: o.record_refund("re_bdd_002", amount, full_refund=amount >= o.total_amount),
    )


@when("a different payment intent is attached")
def _(order, error, outcome):
    _attempt(order, error, outcome, lambda o: o.attach_payment_intent("pi_other"))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.parse("the order total is {total:d} fils with {vat:d} fils VAT"))
def _(order, total, vat):
    assert order.total_amount == total
    assert order.vat_amount == vat
    assert order.subtotal_amount + order.vat_amount == order.total_amount


@then(parsers.parse("the order has {count:d} line items"))
def _(order, count):
    assert len(order.items) == count


@then(parsers.parse('the order was rejected with "{message}"'))
def _(error, message):
    assert error["exc"] is not None
    assert message in str(error["exc"].messages)


@then("nothing changed")
def _(error, outcome):
    assert error["exc"] is None
    assert outcome["changed"] is False


@then(parsers.parse("the recorded refund is {amount:d} fils"))
def _(order, amount):
    assert order.refund_amount == amount
