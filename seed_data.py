"""
Static datasets served when the remote store is unreachable or refuses access,
and written to it by the admin "seed" action.
"""
import time
from typing import List

from schemas import Product, Supplier, Order, OrderStatus

CATEGORIES = ["Électronique", "Alimentation", "Vêtements", "Maison", "Industrie", "Service"]


def _now_ms() -> int:
    return int(time.time() * 1000)


def seed_suppliers() -> List[Supplier]:
    return [
        Supplier(
            id="s1",
            name="Global Tech Imports",
            rating=4.8,
            verified=True,
            is_available=True,
            category="Électronique",
            description="Spécialiste des équipements informatiques haute performance.",
            phone="22507070707",
            email="contact@globaltech.com",
            address="Abidjan, Plateau",
            password="123456",
        ),
        Supplier(
            id="s2",
            name="BioFerme Direct",
            rating=4.5,
            verified=True,
            is_available=True,
            category="Alimentation",
            description="Producteur local de fruits et légumes de saison.",
            phone="22505050505",
            email="bio@ferme.ci",
            address="Bingerville",
            password="123456",
        ),
        Supplier(
            id="s3",
            name="Textile & Mode Pro",
            rating=4.2,
            verified=False,
            is_available=False,
            category="Vêtements",
            description="Grossiste en textile et accessoires de mode.",
            phone="22501010101",
            password="123456",
        ),
        Supplier(
            id="s4",
            name="IndusEquip Solutions",
            rating=4.9,
            verified=True,
            is_available=True,
            category="Industrie",
            description="Machines et outillages pour le secteur industriel.",
            phone="22507080910",
            password="123456",
        ),
    ]


def seed_products() -> List[Product]:
    now = _now_ms()
    return [
        Product(
            id="p1",
            name="Ordinateur Portable UltraBook",
            description="Un ordinateur performant pour les professionnels, doté d'un processeur "
                        "dernière génération et d'un écran 4K.",
            price=850000,
            category="Électronique",
            supplier_id="s1",
            supplier_name="Global Tech Imports",
            image_url="https://picsum.photos/400/300?random=1",
            tags=["ordinateur", "tech", "travail"],
            created_at=now,
            is_promoted=True,
        ),
        Product(
            id="p2",
            name="Panier de Légumes Bio",
            description="Sélection de légumes de saison cultivés sans pesticides. "
                        "Idéal pour une alimentation saine.",
            price=25000,
            category="Alimentation",
            supplier_id="s2",
            supplier_name="BioFerme Direct",
            image_url="https://picsum.photos/400/300?random=2",
            tags=["bio", "légumes", "frais"],
            created_at=now - 100000,
            is_promoted=False,
        ),
        Product(
            id="p3",
            name="Lot de T-shirts Coton",
            description="Lot de 50 t-shirts en coton premium, parfaits pour la personnalisation "
                        "ou la revente.",
            price=165000,
            category="Vêtements",
            supplier_id="s3",
            supplier_name="Textile & Mode Pro",
            image_url="https://picsum.photos/400/300?random=3",
            tags=["coton", "gros", "mode"],
            created_at=now - 200000,
            is_promoted=False,
        ),
    ]


def seed_orders() -> List[Order]:
    now = _now_ms()
    return [
        Order(
            id="ord-001",
            product_id="p1",
            product_name="Ordinateur Portable UltraBook",
            quantity=2,
            total_price=1700000,
            supplier_id="s1",
            customer_name="Alice Martin",
            customer_contact="01 23 45 67 89",
            status=OrderStatus.PENDING,
            date=now - 3600000,
            shipping_address="12 Rue de la Paix, 75001 Paris",
        ),
        Order(
            id="ord-002",
            product_id="p1",
            product_name="Ordinateur Portable UltraBook",
            quantity=1,
            total_price=850000,
            supplier_id="s1",
            customer_name="Entreprise StartUp Tech",
            customer_contact="04 56 78 90 12",
            status=OrderStatus.CONFIRMED,
            date=now - 86400000,
            shipping_address="45 Avenue du Code, 69000 Lyon",
        ),
        Order(
            id="ord-003",
            product_id="p1",
            product_name="Ordinateur Portable UltraBook",
            quantity=5,
            total_price=4250000,
            supplier_id="s1",
            customer_name="Université des Sciences",
            customer_contact="05 67 89 01 23",
            status=OrderStatus.SHIPPED,
            date=now - 172800000,
            shipping_address="Campus Universitaire, 33000 Bordeaux",
        ),
    ]
