"""
Application state and its synchronisation with the remote document store.

AppState owns the three collections. It is only mutated by SyncAdapter:
either by a snapshot delivered from a LiveQuery (full replace) or by a local
fallback action when the store refuses a write.

A snapshot arriving after a local fallback replaces it: locally applied
changes that the store never accepted disappear on the next delivery.
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from database import PRODUCTS, SUPPLIERS, ORDERS, DocumentStore, ErrorKind, StoreError
from schemas import Product, Supplier, Order, OrderStatus
from seed_data import seed_products, seed_suppliers, seed_orders

logger = logging.getLogger(__name__)

Entity = Union[Product, Supplier, Order]

SEEDS: Dict[str, Callable[[], List[Any]]] = {
    PRODUCTS: seed_products,
    SUPPLIERS: seed_suppliers,
    ORDERS: seed_orders,
}


def now_ms() -> int:
    return int(time.time() * 1000)


class AppState:
    """Single container for products, suppliers and orders.

    Readers get list copies. Entities are replaced, never edited in place.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._data: Dict[str, List[Any]] = {PRODUCTS: [], SUPPLIERS: [], ORDERS: []}
        self.is_loading = True

    @property
    def products(self) -> List[Product]:
        with self._lock:
            return list(self._data[PRODUCTS])

    @property
    def suppliers(self) -> List[Supplier]:
        with self._lock:
            return list(self._data[SUPPLIERS])

    @property
    def orders(self) -> List[Order]:
        with self._lock:
            return list(self._data[ORDERS])

    def is_empty(self, collection: str) -> bool:
        with self._lock:
            return not self._data[collection]

    def _get(self, collection: str, entity_id: str):
        with self._lock:
            return next((e for e in self._data[collection] if e.id == entity_id), None)

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._get(PRODUCTS, product_id)

    def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        return self._get(SUPPLIERS, supplier_id)

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._get(ORDERS, order_id)

    # --- actions ---

    def replace(self, collection: str, items: List[Any]) -> None:
        with self._lock:
            self._data[collection] = list(items)

    def replace_products(self, items: List[Product]) -> None:
        self.replace(PRODUCTS, items)

    def replace_suppliers(self, items: List[Supplier]) -> None:
        self.replace(SUPPLIERS, items)

    def replace_orders(self, items: List[Order]) -> None:
        self.replace(ORDERS, items)

    def fill_if_empty(self, collection: str, items: List[Any]) -> bool:
        with self._lock:
            if self._data[collection]:
                return False
            self._data[collection] = list(items)
            return True

    def _map(self, collection: str, entity_id: str, update: Dict[str, Any]) -> Optional[Any]:
        with self._lock:
            changed = None
            items = []
            for e in self._data[collection]:
                if e.id == entity_id:
                    e = e.model_copy(update=update)
                    changed = e
                items.append(e)
            self._data[collection] = items
            return changed

    def add_product(self, product: Product) -> Product:
        with self._lock:
            self._data[PRODUCTS] = [product] + self._data[PRODUCTS]
        return product

    def remove_product(self, product_id: str) -> None:
        with self._lock:
            self._data[PRODUCTS] = [p for p in self._data[PRODUCTS] if p.id != product_id]

    def set_product_promoted(self, product_id: str, promoted: bool) -> Optional[Product]:
        return self._map(PRODUCTS, product_id, {"is_promoted": promoted})

    def add_supplier(self, supplier: Supplier) -> Supplier:
        with self._lock:
            self._data[SUPPLIERS] = self._data[SUPPLIERS] + [supplier]
        return supplier

    def set_supplier_verified(self, supplier_id: str, verified: bool) -> Optional[Supplier]:
        return self._map(SUPPLIERS, supplier_id, {"verified": verified})

    def add_order(self, order: Order) -> Order:
        with self._lock:
            self._data[ORDERS] = [order] + self._data[ORDERS]
        return order

    def set_order_status(self, order_id: str, status: OrderStatus) -> Optional[Order]:
        return self._map(ORDERS, order_id, {"status": status})


def normalize(docs: List[Dict[str, Any]], model: Type[BaseModel], collection: str) -> List[Any]:
    items = []
    for doc in docs:
        try:
            items.append(model.model_validate(doc))
        except ValidationError as e:
            logger.warning("Skipping malformed document %s/%s: %s", collection, doc.get("id"), e.errors()[:1])
    return items


class LiveQuery:
    """Ordered query over one collection delivering full snapshots."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        model: Type[BaseModel],
        sort: Optional[Tuple[str, int]],
        on_snapshot: Callable[[str, List[Any]], None],
        on_error: Callable[[str, StoreError], None],
        poll_seconds: float = 5.0,
        use_change_stream: bool = True,
    ):
        self.store = store
        self.collection = collection
        self.model = model
        self.sort = sort
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.poll_seconds = poll_seconds
        self.use_change_stream = use_change_stream
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def deliver(self) -> None:
        try:
            docs = self.store.find(self.collection, sort=self.sort)
        except StoreError as e:
            self.on_error(self.collection, e)
            return
        self.on_snapshot(self.collection, normalize(docs, self.model, self.collection))

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=f"live-{self.collection}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        if self.use_change_stream:
            try:
                for _change in self.store.watch(self.collection):
                    if self._stop.is_set():
                        return
                    self.deliver()
            except StoreError as e:
                logger.info(
                    "Change stream unavailable for %s (%s), polling every %ss",
                    self.collection, e.message, self.poll_seconds,
                )
        while not self._stop.wait(self.poll_seconds):
            self.deliver()


class WriteOutcome(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    FAILED = "failed"


class WriteResult(BaseModel):
    outcome: WriteOutcome
    message: str
    entity: Optional[Union[Product, Supplier, Order]] = None

    @property
    def ok(self) -> bool:
        return self.outcome != WriteOutcome.FAILED


class SyncAdapter:
    """Reads the store through live queries and writes to it with local fallback."""

    def __init__(self, store: DocumentStore, state: AppState, poll_seconds: float = 5.0, watch: bool = True):
        self.store = store
        self.state = state
        self.watch = watch
        self.authenticated = False
        self.queries: Dict[str, LiveQuery] = {
            PRODUCTS: LiveQuery(store, PRODUCTS, Product, ("createdAt", -1),
                                self._on_snapshot, self._on_error, poll_seconds, watch),
            SUPPLIERS: LiveQuery(store, SUPPLIERS, Supplier, None,
                                 self._on_snapshot, self._on_error, poll_seconds, watch),
            ORDERS: LiveQuery(store, ORDERS, Order, ("date", -1),
                              self._on_snapshot, self._on_error, poll_seconds, watch),
        }

    # --- read side ---

    def authenticate(self) -> bool:
        try:
            self.store.ping()
        except StoreError as e:
            logger.warning("Anonymous sign-in failed, degraded mode (%s)", e.kind.value)
            self.authenticated = False
        else:
            logger.info("Connected to the document store")
            self.authenticated = True
        return self.authenticated

    def open_subscriptions(self) -> None:
        for query in self.queries.values():
            query.deliver()
        if self.watch and self.store.online:
            for query in self.queries.values():
                query.start()

    def close(self) -> None:
        for query in self.queries.values():
            query.stop()

    def refresh(self, collection: str) -> None:
        self.queries[collection].deliver()

    def _on_snapshot(self, collection: str, items: List[Any]) -> None:
        self.state.replace(collection, items)
        if collection == PRODUCTS:
            self.state.is_loading = False

    def _on_error(self, collection: str, error: StoreError) -> None:
        if error.allows_local_fallback:
            if self.state.fill_if_empty(collection, SEEDS[collection]()):
                logger.warning("Simulation mode enabled for %s (remote access restricted)", collection)
        else:
            logger.error("Store error (%s): %s", collection, error.message)
        self.state.is_loading = False

    # --- write side ---

    def _attempt(
        self,
        collection: str,
        remote: Callable[[], Any],
        local: Callable[[], Any],
        success: str,
        local_notice: str,
        failure: str,
        always_fallback: bool = False,
    ) -> WriteResult:
        try:
            entity = remote()
        except StoreError as e:
            if e.allows_local_fallback or always_fallback:
                logger.warning("Remote write to %s refused (%s), applied locally", collection, e.kind.value)
                return WriteResult(outcome=WriteOutcome.LOCAL, message=local_notice, entity=local())
            logger.error("Remote write to %s failed: %s", collection, e.message)
            return WriteResult(outcome=WriteOutcome.FAILED, message=f"{failure} : {e.message}")
        self.refresh(collection)
        return WriteResult(outcome=WriteOutcome.REMOTE, message=success, entity=entity)

    def create_product(self, product: Product) -> WriteResult:
        def remote():
            new_id = self.store.add(PRODUCTS, product.to_document())
            return product.model_copy(update={"id": new_id})

        return self._attempt(
            PRODUCTS, remote, lambda: self.state.add_product(product),
            "Produit enregistré !", "Produit ajouté (Mode Local actif).", "Erreur",
        )

    def delete_product(self, product_id: str) -> WriteResult:
        return self._attempt(
            PRODUCTS,
            lambda: self.store.delete(PRODUCTS, product_id),
            lambda: self.state.remove_product(product_id),
            "Produit supprimé.", "Produit supprimé (Mode Local actif).", "Erreur suppression",
        )

    def toggle_product_promotion(self, product_id: str) -> WriteResult:
        product = self.state.get_product(product_id)
        if product is None:
            return WriteResult(outcome=WriteOutcome.FAILED, message="Produit introuvable.")
        promoted = not product.is_promoted

        def remote():
            self.store.update(PRODUCTS, product_id, {"isPromoted": promoted})
            return product.model_copy(update={"is_promoted": promoted})

        return self._attempt(
            PRODUCTS, remote, lambda: self.state.set_product_promoted(product_id, promoted),
            "Promotion mise à jour.", "Promotion mise à jour (Mode Local actif).", "Erreur promotion",
        )

    def create_supplier(self, supplier: Supplier) -> WriteResult:
        def remote():
            new_id = self.store.add(SUPPLIERS, supplier.to_document())
            return supplier.model_copy(update={"id": new_id})

        def local():
            return self.state.add_supplier(supplier.model_copy(update={"id": f"local-{now_ms()}"}))

        return self._attempt(
            SUPPLIERS, remote, local,
            "Compte fournisseur créé avec succès !", "Compte créé (Mode Local actif).", "Erreur",
        )

    def toggle_supplier_verification(self, supplier_id: str) -> WriteResult:
        supplier = self.state.get_supplier(supplier_id)
        if supplier is None:
            return WriteResult(outcome=WriteOutcome.FAILED, message="Fournisseur introuvable.")
        verified = not supplier.verified

        def remote():
            self.store.update(SUPPLIERS, supplier_id, {"verified": verified})
            return supplier.model_copy(update={"verified": verified})

        return self._attempt(
            SUPPLIERS, remote, lambda: self.state.set_supplier_verified(supplier_id, verified),
            "Vérification mise à jour.", "Vérification mise à jour (Mode Local actif).", "Erreur vérification",
        )

    def create_order(self, order: Order) -> WriteResult:
        """Never fails towards the buyer: any store error inserts the order locally."""
        def remote():
            new_id = self.store.add(ORDERS, order.to_document())
            return order.model_copy(update={"id": new_id})

        return self._attempt(
            ORDERS, remote, lambda: self.state.add_order(order),
            "Commande enregistrée.", "Commande enregistrée localement.", "Erreur commande",
            always_fallback=True,
        )

    def update_order_status(self, order_id: str, status: OrderStatus) -> WriteResult:
        def remote():
            self.store.update(ORDERS, order_id, {"status": status.value})
            current = self.state.get_order(order_id)
            return current.model_copy(update={"status": status}) if current else None

        return self._attempt(
            ORDERS, remote, lambda: self.state.set_order_status(order_id, status),
            "Statut mis à jour.", "Statut mis à jour (Mode Local actif).", "Erreur statut commande",
        )

    def seed_remote(self) -> WriteResult:
        """Write the seed datasets to the store under their fixed ids."""
        try:
            for s in seed_suppliers():
                self.store.set(SUPPLIERS, s.id, s.to_document())
            for p in seed_products():
                self.store.set(PRODUCTS, p.id, p.to_document())
            for o in seed_orders():
                self.store.set(ORDERS, o.id, o.to_document())
        except StoreError as e:
            if e.kind == ErrorKind.OTHER:
                logger.error("Seeding failed: %s", e.message)
                return WriteResult(outcome=WriteOutcome.FAILED, message=f"Erreur lors de l'écriture : {e.message}.")
            return WriteResult(
                outcome=WriteOutcome.FAILED,
                message="Impossible d'écrire dans la base (Permission Refusée). "
                        "L'application continuera en mode local.",
            )
        for collection in self.queries:
            self.refresh(collection)
        return WriteResult(outcome=WriteOutcome.REMOTE, message="Collections initialisées avec succès !")
