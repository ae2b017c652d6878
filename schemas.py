"""
Database Schemas for Au Djassa

Each Pydantic model represents a document in one of the MongoDB collections:

- Product  -> "products"
- Supplier -> "Fournisseurs"
- Order    -> "Commandes"

Documents are persisted with camelCase field names (supplierId, createdAt, ...),
the Python attributes are snake_case.
"""
from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    GUEST = "GUEST"
    CLIENT = "CLIENT"
    SUPPLIER = "SUPPLIER"
    ADMIN = "ADMIN"


class ViewState(str, Enum):
    LANDING = "LANDING"
    MARKETPLACE = "MARKETPLACE"
    SUPPLIER_DASHBOARD = "SUPPLIER_DASHBOARD"
    ADMIN_DASHBOARD = "ADMIN_DASHBOARD"
    SUPPLIER_REGISTRATION = "SUPPLIER_REGISTRATION"
    SUPPLIER_LOGIN = "SUPPLIER_LOGIN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


PaymentMethod = Literal["MOBILE_MONEY", "CASH_ON_DELIVERY"]
PaymentProvider = Literal["ORANGE", "MTN", "WAVE"]


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """Store representation: camelCase keys, no id, no unset optionals."""
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True, mode="json")


# Catalogue entries published by suppliers
class Product(Document):
    id: str = Field(..., description="Document id")
    name: str = Field(..., description="Product name")
    description: str = Field("", description="Commercial description")
    price: int = Field(..., gt=0, description="Unit price in FCFA")
    category: str = Field(..., description="Catalogue category, e.g. Électronique")
    supplier_id: str = Field(..., description="Owning supplier id")
    supplier_name: str = Field(..., description="Supplier display name (denormalized)")
    image_url: str = Field("", description="Image URL or data URL")
    tags: List[str] = Field(default_factory=list)
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    is_promoted: bool = Field(False, description="Sponsored by the admin")


# Supplier accounts
class Supplier(Document):
    id: str = Field(..., description="Document id")
    name: str = Field(..., description="Company name, also accepted as login")
    rating: float = Field(0, ge=0, le=5)
    verified: bool = Field(False, description="Verified by an admin")
    is_available: bool = Field(True, description="Listed in the marketplace")
    category: Optional[str] = None
    description: Optional[str] = None
    email: Optional[str] = Field(None, description="Login username")
    phone: Optional[str] = None
    address: Optional[str] = None
    password: Optional[str] = Field(None, description="Plaintext password (demo only)")


class PaymentDetails(Document):
    model_config = ConfigDict(frozen=True)

    method: PaymentMethod
    provider: Optional[PaymentProvider] = None
    phone_number: Optional[str] = None
    transaction_id: Optional[str] = None

    @model_validator(mode="after")
    def check_provider(self):
        if self.method == "MOBILE_MONEY" and self.provider is None:
            raise ValueError("provider is required for MOBILE_MONEY")
        if self.method == "CASH_ON_DELIVERY" and (self.provider or self.transaction_id):
            raise ValueError("provider and transactionId must be absent for CASH_ON_DELIVERY")
        return self


# Orders placed by clients
class Order(Document):
    id: str = Field(..., description="Document id")
    product_id: str
    product_name: str = Field(..., description="Product name at order time")
    quantity: int = Field(..., ge=1)
    total_price: int = Field(..., ge=0, description="unit price x quantity + fees, FCFA")
    shipping_fees: int = Field(0, ge=0)
    service_fees: int = Field(0, ge=0)
    supplier_id: str
    customer_name: str
    customer_contact: str
    status: OrderStatus = Field(OrderStatus.PENDING)
    date: int = Field(..., description="Order time, epoch milliseconds")
    shipping_address: str
    payment_details: Optional[PaymentDetails] = None
