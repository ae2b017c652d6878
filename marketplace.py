"""
Client marketplace browsing: product and supplier filters.
"""
from typing import List, Optional

from schemas import Product, Supplier

ALL_CATEGORIES = "Tout"


def categories(products: List[Product]) -> List[str]:
    seen = []
    for p in products:
        if p.category not in seen:
            seen.append(p.category)
    return [ALL_CATEGORIES] + seen


def filter_products(
    products: List[Product],
    search: str = "",
    category: str = ALL_CATEGORIES,
    supplier_id: Optional[str] = None,
) -> List[Product]:
    term = search.lower()
    results = []
    for p in products:
        matches_search = (
            term in p.name.lower()
            or term in p.description.lower()
            or term in p.supplier_name.lower()
            or any(term in tag.lower() for tag in p.tags)
        )
        matches_category = category == ALL_CATEGORIES or p.category == category
        matches_supplier = supplier_id is None or p.supplier_id == supplier_id
        if matches_search and matches_category and matches_supplier:
            results.append(p)
    return results


def filter_suppliers(
    suppliers: List[Supplier],
    search: str = "",
    category: str = ALL_CATEGORIES,
) -> List[Supplier]:
    """Available suppliers matching the search on name or category."""
    term = search.lower()
    results = []
    for s in suppliers:
        if not s.is_available:
            continue
        matches_search = term in s.name.lower() or (s.category is not None and term in s.category.lower())
        matches_category = category == ALL_CATEGORIES or s.category == category
        if matches_search and matches_category:
            results.append(s)
    return results
