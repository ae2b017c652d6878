"""
Per-product checkout flow of the client marketplace.

    details -> payment -> processing -> success
                  ^            |
                  +------------+   (order creation raised)
"""
import logging
import random
import threading
import time
from enum import Enum
from typing import Callable, Optional

from schemas import Order, OrderStatus, PaymentDetails, Product
from sync import WriteResult, WriteOutcome

logger = logging.getLogger(__name__)

SHIPPING_FEES = 300
SERVICE_FEES = 200
SUCCESS_DISMISS_SECONDS = 6

PROVIDERS = ("ORANGE", "MTN", "WAVE")


class CheckoutStep(str, Enum):
    DETAILS = "details"
    PAYMENT = "payment"
    PROCESSING = "processing"
    SUCCESS = "success"


class CheckoutValidationError(ValueError):
    pass


def compute_total(unit_price: int, quantity: int) -> int:
    return unit_price * quantity + SHIPPING_FEES + SERVICE_FEES


class CheckoutFlow:
    def __init__(
        self,
        product: Product,
        create_order: Callable[[Order], Optional[WriteResult]],
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.product = product
        self.create_order = create_order
        self.clock = clock
        self.rng = rng or random.Random()
        self._lock = threading.Lock()

        self.step = CheckoutStep.DETAILS
        self.quantity = 1
        self.name = ""
        self.contact = ""
        self.location = ""
        self.payment_method = "MOBILE_MONEY"
        self.provider = "ORANGE"
        self.error: Optional[str] = None
        self.order: Optional[Order] = None
        self.synced: Optional[bool] = None
        self.completed_at: Optional[float] = None

    @property
    def subtotal(self) -> int:
        return self.product.price * self.quantity

    @property
    def total(self) -> int:
        return compute_total(self.product.price, self.quantity)

    def _require(self, *steps: CheckoutStep) -> None:
        if self.step not in steps:
            raise CheckoutValidationError(f"Action not allowed at step '{self.step.value}'")

    def set_quantity(self, quantity: int) -> None:
        self._require(CheckoutStep.DETAILS, CheckoutStep.PAYMENT)
        if quantity < 1:
            raise CheckoutValidationError("La quantité doit être au moins 1.")
        self.quantity = quantity

    def set_details(self, name: str, contact: str, location: str) -> None:
        self._require(CheckoutStep.DETAILS)
        self.name, self.contact, self.location = name, contact, location
        self.error = None

    def can_proceed_to_payment(self) -> bool:
        return all(v.strip() != "" for v in (self.name, self.contact, self.location))

    def proceed_to_payment(self) -> None:
        self._require(CheckoutStep.DETAILS)
        if not self.can_proceed_to_payment():
            self.error = "Veuillez renseigner votre nom, votre contact et le lieu de livraison."
            raise CheckoutValidationError(self.error)
        self.error = None
        self.step = CheckoutStep.PAYMENT

    def back_to_details(self) -> None:
        self._require(CheckoutStep.PAYMENT)
        self.step = CheckoutStep.DETAILS

    def select_payment_method(self, method: str, provider: Optional[str] = None) -> None:
        self._require(CheckoutStep.PAYMENT)
        if method == "MOBILE_MONEY":
            if provider is not None:
                if provider not in PROVIDERS:
                    raise CheckoutValidationError(f"Opérateur inconnu : {provider}")
                self.provider = provider
        elif method != "CASH_ON_DELIVERY":
            raise CheckoutValidationError(f"Moyen de paiement inconnu : {method}")
        self.payment_method = method

    def _payment_details(self) -> PaymentDetails:
        if self.payment_method == "MOBILE_MONEY":
            return PaymentDetails(
                method="MOBILE_MONEY",
                provider=self.provider,
                transaction_id=f"TXN-{self.rng.randrange(1000000)}",
            )
        return PaymentDetails(method="CASH_ON_DELIVERY")

    def build_order(self) -> Order:
        now = int(self.clock() * 1000)
        return Order(
            id=f"ord-{now}",
            product_id=self.product.id,
            product_name=self.product.name,
            quantity=self.quantity,
            total_price=self.total,
            shipping_fees=SHIPPING_FEES,
            service_fees=SERVICE_FEES,
            supplier_id=self.product.supplier_id,
            customer_name=self.name.strip() or "Anonyme",
            customer_contact=self.contact.strip() or "Non spécifié",
            status=OrderStatus.PENDING,
            date=now,
            shipping_address=self.location.strip() or "Non spécifiée",
            payment_details=self._payment_details(),
        )

    def confirm(self) -> Optional[Order]:
        """Place the order. Returns it on success, None when sent back to payment."""
        with self._lock:
            self._require(CheckoutStep.PAYMENT)
            self.step = CheckoutStep.PROCESSING
            self.error = None
        try:
            order = self.build_order()
            result = self.create_order(order)
        except Exception as e:
            logger.exception("Checkout processing failed for product %s", self.product.id)
            self.error = str(e) or "Une erreur est survenue lors de l'enregistrement."
            self.step = CheckoutStep.PAYMENT
            return None
        if result is not None and result.entity is not None:
            order = result.entity
        self.order = order
        self.synced = result is None or result.outcome == WriteOutcome.REMOTE
        self.step = CheckoutStep.SUCCESS
        self.completed_at = self.clock()
        return order

    def is_dismissed(self, now: Optional[float] = None) -> bool:
        if self.step != CheckoutStep.SUCCESS or self.completed_at is None:
            return False
        now = self.clock() if now is None else now
        return now - self.completed_at >= SUCCESS_DISMISS_SECONDS

    def view(self) -> dict:
        return {
            "step": self.step.value,
            "product_id": self.product.id,
            "product_name": self.product.name,
            "unit_price": self.product.price,
            "quantity": self.quantity,
            "subtotal": self.subtotal,
            "shipping_fees": SHIPPING_FEES,
            "service_fees": SERVICE_FEES,
            "total": self.total,
            "customer": {"name": self.name, "contact": self.contact, "location": self.location},
            "payment_method": self.payment_method,
            "provider": self.provider if self.payment_method == "MOBILE_MONEY" else None,
            "can_proceed": self.can_proceed_to_payment(),
            "error": self.error,
            "order": self.order.model_dump(by_alias=True, mode="json") if self.order else None,
            "synced": self.synced,
        }
