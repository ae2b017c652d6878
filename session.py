"""
Per-visitor session: role, active view, logged-in supplier and the open checkout.

Two behaviours here are demo-only and insecure:

- `?portal=admin` on the initial load grants the ADMIN role without credentials
  (disabled with ADMIN_PORTAL_ENABLED=0),
- supplier passwords are stored and compared in plaintext.
"""
import logging
import secrets
import threading
import time
from typing import Callable, Dict, Optional
from urllib.parse import urlencode

from checkout import CheckoutFlow
from schemas import Supplier, UserRole, ViewState
from sync import AppState, SyncAdapter, WriteOutcome, WriteResult

logger = logging.getLogger(__name__)

ADMIN_PORTAL_PARAM = ("portal", "admin")

# Views reachable from the navbar for each role, LANDING is always reachable
ROLE_VIEWS = {
    UserRole.GUEST: set(),
    UserRole.CLIENT: {ViewState.MARKETPLACE},
    UserRole.SUPPLIER: {ViewState.SUPPLIER_DASHBOARD},
    UserRole.ADMIN: {ViewState.ADMIN_DASHBOARD},
}


class NavigationError(Exception):
    pass


class LoginError(Exception):
    pass


class SessionController:
    def __init__(
        self,
        state: AppState,
        adapter: SyncAdapter,
        query_params: Optional[Dict[str, str]] = None,
        admin_portal_enabled: bool = True,
    ):
        self.state = state
        self.adapter = adapter
        self.query_params: Dict[str, str] = dict(query_params or {})
        self.admin_portal_enabled = admin_portal_enabled
        self.role = UserRole.GUEST
        self.view = ViewState.LANDING
        self.supplier: Optional[Supplier] = None
        self._checkout: Optional[CheckoutFlow] = None
        self._load()

    def _load(self) -> None:
        key, value = ADMIN_PORTAL_PARAM
        if self.admin_portal_enabled and self.query_params.get(key) == value:
            logger.info("Administrator portal access detected")
            self.role = UserRole.ADMIN
            self.view = ViewState.ADMIN_DASHBOARD

    @property
    def url(self) -> str:
        return f"/?{urlencode(self.query_params)}" if self.query_params else "/"

    def reload(self) -> None:
        self.role = UserRole.GUEST
        self.view = ViewState.LANDING
        self.supplier = None
        self._checkout = None
        self._load()

    # --- navigation ---

    def select_role(self, role: UserRole) -> None:
        if self.view != ViewState.LANDING:
            raise NavigationError("Role selection is only available from the landing page")
        if role == UserRole.CLIENT:
            self.role = UserRole.CLIENT
            self.view = ViewState.MARKETPLACE
        elif role == UserRole.SUPPLIER:
            # the role is granted by login_supplier
            self.view = ViewState.SUPPLIER_LOGIN
        else:
            raise NavigationError(f"Role {role.value} cannot be selected")

    def go_to_registration(self) -> None:
        if self.view not in (ViewState.LANDING, ViewState.SUPPLIER_LOGIN):
            raise NavigationError("Registration is reachable from the landing or login page")
        self.view = ViewState.SUPPLIER_REGISTRATION

    def cancel(self) -> None:
        if self.view not in (ViewState.SUPPLIER_LOGIN, ViewState.SUPPLIER_REGISTRATION):
            raise NavigationError("Nothing to cancel")
        self.view = ViewState.LANDING

    def change_view(self, view: ViewState) -> None:
        if view != ViewState.LANDING and view not in ROLE_VIEWS[self.role]:
            raise NavigationError(f"View {view.value} is not available for role {self.role.value}")
        self.view = view

    # --- suppliers ---

    def login_supplier(self, login: str, password: str) -> Supplier:
        if self.view != ViewState.SUPPLIER_LOGIN:
            raise NavigationError("Open the supplier login page first")
        supplier = next(
            (s for s in self.state.suppliers
             if (s.email == login or s.name == login) and s.password == password),
            None,
        )
        if supplier is None:
            raise LoginError("Nom d'utilisateur ou mot de passe incorrect.")
        self.supplier = supplier
        self.role = UserRole.SUPPLIER
        self.view = ViewState.SUPPLIER_DASHBOARD
        return supplier

    def register_supplier(
        self,
        name: Optional[str],
        email: Optional[str],
        password: str,
        category: Optional[str] = None,
        description: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> WriteResult:
        if self.view != ViewState.SUPPLIER_REGISTRATION:
            raise NavigationError("Open the registration page first")
        supplier = Supplier(
            id="",
            name=name or "Nouvelle Entreprise",
            rating=5.0,
            verified=False,
            is_available=True,
            category=category or "Ventes",
            description=description or "",
            email=email,
            phone=phone,
            address=address,
            password=password,
        )
        result = self.adapter.create_supplier(supplier)
        if result.outcome in (WriteOutcome.REMOTE, WriteOutcome.LOCAL):
            self.supplier = result.entity
            self.role = UserRole.SUPPLIER
            self.view = ViewState.SUPPLIER_DASHBOARD
        return result

    def logout(self) -> None:
        self.role = UserRole.GUEST
        self.view = ViewState.LANDING
        self.supplier = None
        self._checkout = None
        key, value = ADMIN_PORTAL_PARAM
        if self.query_params.get(key) == value:
            del self.query_params[key]

    # --- checkout ---

    def open_checkout(self, product_id: str) -> CheckoutFlow:
        if self.view != ViewState.MARKETPLACE:
            raise NavigationError("Checkout is only available from the marketplace")
        product = self.state.get_product(product_id)
        if product is None:
            raise KeyError(product_id)
        self._checkout = CheckoutFlow(product, self.adapter.create_order)
        return self._checkout

    @property
    def checkout(self) -> Optional[CheckoutFlow]:
        if self._checkout is not None and self._checkout.is_dismissed():
            self._checkout = None
        return self._checkout

    def close_checkout(self) -> None:
        self._checkout = None

    def view_state(self) -> dict:
        return {
            "role": self.role.value,
            "view": self.view.value,
            "url": self.url,
            "supplier": self.supplier.model_dump(by_alias=True, exclude={"password"}) if self.supplier else None,
            "loading": self.state.is_loading,
        }


class SessionRegistry:
    """Sessions keyed by the opaque id clients send in X-Session-Id.

    A session untouched for `ttl_seconds` is dropped on the next create/get.
    """

    def __init__(
        self,
        state: AppState,
        adapter: SyncAdapter,
        admin_portal_enabled: bool = True,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = state
        self.adapter = adapter
        self.admin_portal_enabled = admin_portal_enabled
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: Dict[str, SessionController] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _sweep(self, now: float) -> None:
        expired = [sid for sid, seen in self._last_seen.items() if now - seen >= self.ttl_seconds]
        for sid in expired:
            self._sessions.pop(sid, None)
            self._last_seen.pop(sid, None)
        if expired:
            logger.info("Expired %d idle session(s)", len(expired))

    def create(self, query_params: Optional[Dict[str, str]] = None) -> str:
        session_id = secrets.token_urlsafe(16)
        controller = SessionController(self.state, self.adapter, query_params, self.admin_portal_enabled)
        with self._lock:
            now = self.clock()
            self._sweep(now)
            self._sessions[session_id] = controller
            self._last_seen[session_id] = now
        return session_id

    def get(self, session_id: str) -> Optional[SessionController]:
        with self._lock:
            now = self.clock()
            self._sweep(now)
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_seen[session_id] = now
            return session

    def drop(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)
