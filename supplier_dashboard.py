"""
Supplier back-office: catalogue form, image compression, order handling, stats.
Everything is scoped to the logged-in supplier's own products and orders.
"""
import base64
import io
import time
from typing import Dict, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from schemas import Order, OrderStatus, Product, Supplier
from sync import AppState, SyncAdapter, WriteResult

MAX_IMAGE_SIDE = 800
JPEG_QUALITY = 60
DEFAULT_CATEGORY = "Service"
DEFAULT_IMAGE = (
    "https://images.unsplash.com/photo-1556761175-5973dc0f32e7"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&q=80"
)

# Forward-only order lifecycle
ORDER_TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.SHIPPED,),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}


class InvalidImageError(ValueError):
    pass


class InvalidTransitionError(ValueError):
    pass


class NotOwnedError(LookupError):
    pass


def scale_dimensions(width: int, height: int, max_side: int = MAX_IMAGE_SIDE) -> Tuple[int, int]:
    """Cap the longer side at max_side, keeping the aspect ratio.

    >>> scale_dimensions(1600, 800)
    (800, 400)
    >>> scale_dimensions(400, 300)
    (400, 300)
    """
    if width > height:
        if width > max_side:
            return max_side, round(height * max_side / width)
    elif height > max_side:
        return round(width * max_side / height), max_side
    return width, height


def compress_image(raw: bytes) -> str:
    """Decode an uploaded image, resize it and re-encode it as a JPEG data URL."""
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError("Image illisible") from e
    size = scale_dimensions(*img.size)
    if size != img.size:
        img = img.resize(size, Image.Resampling.LANCZOS)
    if img.mode != "RGB":
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=JPEG_QUALITY)
    b64 = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/jpeg;base64,{b64}"


class SupplierDashboard:
    def __init__(self, supplier: Supplier, state: AppState, adapter: SyncAdapter):
        self.supplier = supplier
        self.state = state
        self.adapter = adapter

    @property
    def my_products(self) -> List[Product]:
        return [p for p in self.state.products if p.supplier_id == self.supplier.id]

    @property
    def my_orders(self) -> List[Order]:
        return [o for o in self.state.orders if o.supplier_id == self.supplier.id]

    def stats(self) -> dict:
        orders = self.my_orders
        return {
            "total_revenue": sum(o.total_price for o in orders if o.status != OrderStatus.CANCELLED),
            "pending_orders": sum(1 for o in orders if o.status == OrderStatus.PENDING),
            "active_products": len(self.my_products),
        }

    def build_product(
        self,
        name: str,
        price: int,
        description: str = "",
        category: Optional[str] = None,
        image_url: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Product:
        now = int(time.time() * 1000)
        return Product(
            id=f"p-{now}",
            name=name,
            price=price,
            category=category or DEFAULT_CATEGORY,
            description=description,
            supplier_id=self.supplier.id,
            supplier_name=self.supplier.name,
            image_url=image_url or DEFAULT_IMAGE,
            tags=tags or [],
            created_at=now,
        )

    def add_product(self, product: Product) -> WriteResult:
        return self.adapter.create_product(product)

    def delete_product(self, product_id: str) -> WriteResult:
        product = self.state.get_product(product_id)
        if product is None or product.supplier_id != self.supplier.id:
            raise NotOwnedError(product_id)
        return self.adapter.delete_product(product_id)

    def update_order_status(self, order_id: str, status: OrderStatus) -> WriteResult:
        order = self.state.get_order(order_id)
        if order is None or order.supplier_id != self.supplier.id:
            raise NotOwnedError(order_id)
        if status not in ORDER_TRANSITIONS[order.status]:
            raise InvalidTransitionError(f"{order.status.value} -> {status.value} is not allowed")
        return self.adapter.update_order_status(order_id, status)
