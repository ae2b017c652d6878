"""
Admin reporting and moderation.
"""
from typing import List

from schemas import Order, OrderStatus, Product, Supplier
from sync import AppState, SyncAdapter, WriteResult

# Revenue only counts orders the supplier has accepted
NON_REVENUE_STATUSES = (OrderStatus.CANCELLED, OrderStatus.PENDING)


def total_revenue(orders: List[Order]) -> int:
    return sum(o.total_price for o in orders if o.status not in NON_REVENUE_STATUSES)


def average_rating(suppliers: List[Supplier]) -> float:
    if not suppliers:
        return 0.0
    return round(sum(s.rating for s in suppliers) / len(suppliers), 1)


def top_products(products: List[Product], orders: List[Order], limit: int = 5) -> List[dict]:
    sold = {}
    for o in orders:
        sold[o.product_id] = sold.get(o.product_id, 0) + o.quantity
    ranked = [{"id": p.id, "name": p.name, "sales": sold.get(p.id, 0)} for p in products]
    ranked.sort(key=lambda r: r["sales"], reverse=True)
    return ranked[:limit]


class AdminDashboard:
    def __init__(self, state: AppState, adapter: SyncAdapter):
        self.state = state
        self.adapter = adapter

    def overview(self) -> dict:
        orders = self.state.orders
        return {
            "total_revenue": total_revenue(orders),
            "total_orders": len(orders),
            "average_rating": average_rating(self.state.suppliers),
            "top_products": top_products(self.state.products, orders),
        }

    def search_suppliers(self, term: str = "") -> List[Supplier]:
        term = term.lower()
        return [
            s for s in self.state.suppliers
            if term in s.name.lower() or term in (s.category or "").lower()
        ]

    def search_products(self, term: str = "") -> List[Product]:
        term = term.lower()
        return [
            p for p in self.state.products
            if term in p.name.lower() or term in p.supplier_name.lower()
        ]

    def orders_by_date(self) -> List[Order]:
        return sorted(self.state.orders, key=lambda o: o.date, reverse=True)

    def toggle_promotion(self, product_id: str) -> WriteResult:
        return self.adapter.toggle_product_promotion(product_id)

    def toggle_verification(self, supplier_id: str) -> WriteResult:
        return self.adapter.toggle_supplier_verification(supplier_id)

    def delete_product(self, product_id: str) -> WriteResult:
        return self.adapter.delete_product(product_id)
