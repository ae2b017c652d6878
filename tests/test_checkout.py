import random
import threading

import pytest

from checkout import (
    SERVICE_FEES,
    SHIPPING_FEES,
    CheckoutFlow,
    CheckoutStep,
    CheckoutValidationError,
    compute_total,
)
from database import ErrorKind
from seed_data import seed_products
from sync import WriteOutcome


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_flow(create_order=None, clock=None):
    product = seed_products()[1]  # Panier de Légumes Bio, 25000 FCFA
    placed = []

    def default_create(order):
        placed.append(order)

    flow = CheckoutFlow(product, create_order or default_create, clock=clock or Clock(), rng=random.Random(7))
    return flow, placed


def to_payment(flow):
    flow.set_details("Awa Koné", "0707070707", "Cocody, Abidjan")
    flow.proceed_to_payment()


@pytest.mark.parametrize(
    "name,contact,location,allowed",
    [
        ("Awa", "0707", "Cocody", True),
        ("  Awa ", " 0707", "Cocody  ", True),
        ("", "0707", "Cocody", False),
        ("Awa", "   ", "Cocody", False),
        ("Awa", "0707", "\t", False),
        ("", "", "", False),
    ],
)
def test_details_gate_payment(name, contact, location, allowed):
    flow, _ = make_flow()
    flow.set_details(name, contact, location)
    assert flow.can_proceed_to_payment() is allowed
    if allowed:
        flow.proceed_to_payment()
        assert flow.step == CheckoutStep.PAYMENT
    else:
        with pytest.raises(CheckoutValidationError):
            flow.proceed_to_payment()
        assert flow.step == CheckoutStep.DETAILS
        assert flow.error


@pytest.mark.parametrize("price,quantity", [(1, 1), (25000, 3), (850000, 12), (999999, 1000)])
def test_total_is_exact(price, quantity):
    assert compute_total(price, quantity) == price * quantity + SHIPPING_FEES + SERVICE_FEES
    assert SHIPPING_FEES == 300 and SERVICE_FEES == 200


def test_mobile_money_order_is_built_and_placed():
    flow, placed = make_flow()
    flow.set_quantity(3)
    to_payment(flow)
    flow.select_payment_method("MOBILE_MONEY", "WAVE")

    order = flow.confirm()

    assert flow.step == CheckoutStep.SUCCESS
    assert placed == [order]
    assert order.total_price == 25000 * 3 + 500
    assert order.shipping_fees == 300 and order.service_fees == 200
    assert order.supplier_id == "s2"
    assert order.customer_name == "Awa Koné"
    assert order.payment_details.provider == "WAVE"
    assert order.payment_details.transaction_id.startswith("TXN-")
    assert order.id == "ord-1700000000000"


def test_cash_on_delivery_has_no_provider():
    flow, _ = make_flow()
    to_payment(flow)
    flow.select_payment_method("CASH_ON_DELIVERY")

    order = flow.confirm()

    assert order.payment_details.method == "CASH_ON_DELIVERY"
    assert order.payment_details.provider is None
    assert order.payment_details.transaction_id is None


def test_unknown_provider_rejected():
    flow, _ = make_flow()
    to_payment(flow)
    with pytest.raises(CheckoutValidationError):
        flow.select_payment_method("MOBILE_MONEY", "PAYPAL")


def test_confirm_requires_payment_step():
    flow, _ = make_flow()
    with pytest.raises(CheckoutValidationError):
        flow.confirm()


def test_remote_failure_still_reaches_success(store, state, adapter):
    store.fail("add", ErrorKind.OTHER)
    flow, _ = make_flow(create_order=adapter.create_order)
    to_payment(flow)

    order = flow.confirm()

    assert flow.step == CheckoutStep.SUCCESS
    assert flow.synced is False
    assert state.orders[0].id == order.id


def test_remote_success_is_marked_synced(store, state, adapter):
    flow, _ = make_flow(create_order=adapter.create_order)
    to_payment(flow)

    flow.confirm()

    assert flow.synced is True
    assert flow.order.id == "doc1"
    assert len(store.collections["Commandes"]) == 1


def test_raising_create_returns_to_payment_and_allows_retry():
    attempts = []

    def flaky(order):
        attempts.append(order)
        if len(attempts) == 1:
            raise RuntimeError("réseau indisponible")

    flow, _ = make_flow(create_order=flaky)
    to_payment(flow)

    assert flow.confirm() is None
    assert flow.step == CheckoutStep.PAYMENT
    assert flow.error == "réseau indisponible"

    assert flow.confirm() is not None
    assert flow.step == CheckoutStep.SUCCESS
    assert flow.error is None


def test_success_dismisses_after_delay():
    clock = Clock()
    flow, _ = make_flow(clock=clock)
    to_payment(flow)
    flow.confirm()

    clock.now += 5
    assert flow.is_dismissed() is False
    clock.now += 1
    assert flow.is_dismissed() is True


def test_quantity_must_be_positive():
    flow, _ = make_flow()
    with pytest.raises(CheckoutValidationError):
        flow.set_quantity(0)


def test_write_result_entity_replaces_order():
    from sync import WriteResult

    def create(order):
        return WriteResult(outcome=WriteOutcome.REMOTE, message="ok", entity=order.model_copy(update={"id": "remote-1"}))

    flow, _ = make_flow(create_order=create)
    to_payment(flow)
    assert flow.confirm().id == "remote-1"


def test_second_confirm_while_processing_is_refused():
    entered, release = threading.Event(), threading.Event()
    placed = []

    def slow_create(order):
        placed.append(order)
        entered.set()
        release.wait(5)

    flow, _ = make_flow(create_order=slow_create)
    to_payment(flow)
    worker = threading.Thread(target=flow.confirm)
    worker.start()
    assert entered.wait(5)

    with pytest.raises(CheckoutValidationError):
        flow.confirm()

    release.set()
    worker.join(5)
    assert len(placed) == 1
    assert flow.step == CheckoutStep.SUCCESS
