from admin_dashboard import AdminDashboard, average_rating, top_products, total_revenue
from marketplace import ALL_CATEGORIES, categories, filter_products, filter_suppliers
from schemas import OrderStatus
from seed_data import seed_orders, seed_products, seed_suppliers


def test_total_revenue_ignores_pending_and_cancelled():
    orders = seed_orders()
    orders.append(orders[1].model_copy(update={"id": "x", "status": OrderStatus.CANCELLED}))
    # ord-001 is pending, ord-002 confirmed, ord-003 shipped
    assert total_revenue(orders) == 850000 + 4250000


def test_average_rating():
    assert average_rating(seed_suppliers()) == 4.6
    assert average_rating([]) == 0.0


def test_top_products_by_quantity():
    ranked = top_products(seed_products(), seed_orders(), limit=2)
    assert ranked[0] == {"id": "p1", "name": "Ordinateur Portable UltraBook", "sales": 8}
    assert len(ranked) == 2


def test_admin_overview_and_search(state, local_adapter):
    board = AdminDashboard(state, local_adapter)

    overview = board.overview()
    assert overview["total_orders"] == 3
    assert overview["total_revenue"] == 850000 + 4250000

    assert [s.id for s in board.search_suppliers("ALIMENT")] == ["s2"]
    assert [p.id for p in board.search_products("textile")] == ["p3"]
    assert [o.id for o in board.orders_by_date()] == ["ord-001", "ord-002", "ord-003"]


def test_admin_moderation_toggles(state, local_adapter):
    board = AdminDashboard(state, local_adapter)

    board.toggle_verification("s3")
    board.toggle_promotion("p3")
    board.delete_product("p2")

    assert state.get_supplier("s3").verified is True
    assert state.get_product("p3").is_promoted is True
    assert state.get_product("p2") is None


def test_categories_keep_first_seen_order():
    assert categories(seed_products()) == [ALL_CATEGORIES, "Électronique", "Alimentation", "Vêtements"]


def test_filter_products_by_search_tag_category_and_supplier():
    products = seed_products()
    assert [p.id for p in filter_products(products, "BIO")] == ["p2"]
    assert [p.id for p in filter_products(products, "gros")] == ["p3"]
    assert [p.id for p in filter_products(products, "global tech")] == ["p1"]
    assert [p.id for p in filter_products(products, category="Vêtements")] == ["p3"]
    assert [p.id for p in filter_products(products, supplier_id="s2")] == ["p2"]
    assert len(filter_products(products)) == 3


def test_filter_suppliers_hides_unavailable():
    suppliers = seed_suppliers()
    assert [s.id for s in filter_suppliers(suppliers)] == ["s1", "s2", "s4"]
    assert [s.id for s in filter_suppliers(suppliers, "indus")] == ["s4"]
    assert filter_suppliers(suppliers, category="Vêtements") == []
