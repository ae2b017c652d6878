import os
import base64
import binascii
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from admin_dashboard import AdminDashboard
from checkout import CheckoutFlow, CheckoutValidationError
from database import DocumentStore, connect
from genai_service import GenerationError, analyze_market_trends, draft_supplier_inquiry, generate_product_description
from marketplace import ALL_CATEGORIES, categories, filter_products, filter_suppliers
from schemas import OrderStatus, Supplier, UserRole, ViewState
from session import LoginError, NavigationError, SessionController, SessionRegistry
from supplier_dashboard import (
    InvalidImageError,
    InvalidTransitionError,
    NotOwnedError,
    SupplierDashboard,
    compress_image,
)
from sync import AppState, SyncAdapter, WriteOutcome, WriteResult

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("audjassa")

ADMIN_PORTAL_ENABLED = os.getenv("ADMIN_PORTAL_ENABLED", "1").lower() not in ("0", "false", "no")
SYNC_WATCH = os.getenv("SYNC_WATCH", "1").lower() not in ("0", "false", "no")
SYNC_POLL_SECONDS = float(os.getenv("SYNC_POLL_SECONDS", "5"))
SESSION_TTL_SECONDS = float(os.getenv("SESSION_TTL_SECONDS", "3600"))


def startup():
    svc = services or init_services(connect())
    if ADMIN_PORTAL_ENABLED:
        logger.warning("Demo admin portal enabled: '?portal=admin' grants ADMIN without credentials")
    svc.adapter.authenticate()
    svc.adapter.open_subscriptions()


def shutdown():
    if services is not None:
        services.adapter.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    startup()
    yield
    shutdown()


app = FastAPI(title="Au Djassa API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Services
# ----------------------
class Services:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.state = AppState()
        self.adapter = SyncAdapter(store, self.state, poll_seconds=SYNC_POLL_SECONDS, watch=SYNC_WATCH)
        self.sessions = SessionRegistry(
            self.state, self.adapter, admin_portal_enabled=ADMIN_PORTAL_ENABLED, ttl_seconds=SESSION_TTL_SECONDS
        )


services: Optional[Services] = None


def init_services(store: DocumentStore) -> Services:
    global services
    services = Services(store)
    return services


def get_services() -> Services:
    if services is None:
        raise HTTPException(status_code=503, detail="Service starting")
    return services


# ----------------------
# Helpers
# ----------------------

def dump(entity: Any) -> Dict[str, Any]:
    if isinstance(entity, Supplier):
        return entity.model_dump(by_alias=True, exclude={"password"}, mode="json")
    return entity.model_dump(by_alias=True, mode="json")


def write_response(result: WriteResult) -> Dict[str, Any]:
    if result.outcome == WriteOutcome.FAILED:
        raise HTTPException(status_code=502, detail=result.message)
    return {
        "outcome": result.outcome.value,
        "message": result.message,
        "entity": dump(result.entity) if result.entity is not None else None,
    }

# ----------------------
# Session dependencies
# ----------------------

def get_session(
    x_session_id: Optional[str] = Header(None),
    svc: Services = Depends(get_services),
) -> SessionController:
    if not x_session_id:
        raise HTTPException(status_code=401, detail="Missing X-Session-Id")
    session = svc.sessions.get(x_session_id)
    if session is None:
        raise HTTPException(status_code=401, detail="Unknown session")
    return session


def require_client(session: SessionController = Depends(get_session)) -> SessionController:
    if session.role != UserRole.CLIENT:
        raise HTTPException(status_code=403, detail="Marketplace access requires the client role")
    return session


def require_supplier(session: SessionController = Depends(get_session)) -> SessionController:
    if session.role != UserRole.SUPPLIER or session.supplier is None:
        raise HTTPException(status_code=403, detail="Supplier login required")
    return session


def require_admin(session: SessionController = Depends(get_session)) -> SessionController:
    if session.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return session


def navigate(action, *args):
    try:
        return action(*args)
    except NavigationError as e:
        raise HTTPException(status_code=409, detail=str(e))

# ----------------------
# Health & test
# ----------------------
@app.get("/")
def read_root():
    return {"message": "Au Djassa API running"}


@app.get("/test")
def test_database(svc: Services = Depends(get_services)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Connected" if svc.adapter.authenticated else "Local mode",
        "collections": {
            "products": len(svc.state.products),
            "suppliers": len(svc.state.suppliers),
            "orders": len(svc.state.orders),
        },
    }
    if svc.store.online:
        response["database"] = "✅ Connected & Working" if svc.adapter.authenticated else "⚠️ Configured but unreachable"
    return response

# ----------------------
# Session & navigation
# ----------------------
class RoleBody(BaseModel):
    role: UserRole


class ViewBody(BaseModel):
    view: ViewState


@app.post("/session")
def create_session(request: Request, svc: Services = Depends(get_services)):
    session_id = svc.sessions.create(dict(request.query_params))
    return {"session_id": session_id, **svc.sessions.get(session_id).view_state()}


@app.get("/session")
def read_session(session: SessionController = Depends(get_session)):
    return session.view_state()


@app.post("/session/reload")
def reload_session(session: SessionController = Depends(get_session)):
    session.reload()
    return session.view_state()


@app.post("/session/role")
def select_role(body: RoleBody, session: SessionController = Depends(get_session)):
    navigate(session.select_role, body.role)
    return session.view_state()


@app.post("/session/view")
def change_view(body: ViewBody, session: SessionController = Depends(get_session)):
    navigate(session.change_view, body.view)
    return session.view_state()


@app.post("/session/registration")
def go_to_registration(session: SessionController = Depends(get_session)):
    navigate(session.go_to_registration)
    return session.view_state()


@app.post("/session/cancel")
def cancel(session: SessionController = Depends(get_session)):
    navigate(session.cancel)
    return session.view_state()


@app.post("/session/logout")
def logout(session: SessionController = Depends(get_session)):
    session.logout()
    return session.view_state()


@app.delete("/session")
def end_session(
    x_session_id: Optional[str] = Header(None),
    session: SessionController = Depends(get_session),
    svc: Services = Depends(get_services),
):
    svc.sessions.drop(x_session_id)
    return {"ended": True}

# ----------------------
# Supplier auth
# ----------------------
class LoginBody(BaseModel):
    login: str
    password: str


class RegistrationBody(BaseModel):
    company_name: str
    email: str
    password: str
    confirm_password: str
    category: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


@app.post("/suppliers/login")
def supplier_login(body: LoginBody, session: SessionController = Depends(get_session)):
    try:
        navigate(session.login_supplier, body.login, body.password)
    except LoginError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return session.view_state()


@app.post("/suppliers/register")
def supplier_register(body: RegistrationBody, session: SessionController = Depends(get_session)):
    if body.password != body.confirm_password:
        raise HTTPException(status_code=400, detail="Les mots de passe ne correspondent pas.")
    result = navigate(
        session.register_supplier,
        body.company_name, body.email, body.password, body.category, None, body.phone, body.address,
    )
    response = write_response(result)
    response["session"] = session.view_state()
    return response

# ----------------------
# Marketplace
# ----------------------
class InquiryBody(BaseModel):
    product_id: str
    intent: str


@app.get("/marketplace/products")
def list_products(
    search: str = Query(""),
    category: str = Query(ALL_CATEGORIES),
    supplier_id: Optional[str] = Query(None),
    session: SessionController = Depends(require_client),
):
    products = filter_products(session.state.products, search, category, supplier_id)
    return [dump(p) for p in products]


@app.get("/marketplace/suppliers")
def list_suppliers(
    search: str = Query(""),
    category: str = Query(ALL_CATEGORIES),
    session: SessionController = Depends(require_client),
):
    return [dump(s) for s in filter_suppliers(session.state.suppliers, search, category)]


@app.get("/marketplace/categories")
def list_categories(session: SessionController = Depends(require_client)):
    return categories(session.state.products)


@app.post("/marketplace/inquiry")
def draft_inquiry(body: InquiryBody, session: SessionController = Depends(require_client)):
    product = session.state.get_product(body.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": draft_supplier_inquiry(product.name, product.supplier_name, body.intent)}

# ----------------------
# Checkout
# ----------------------
class OpenCheckoutBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class QuantityBody(BaseModel):
    quantity: int = Field(..., ge=1)


class DetailsBody(BaseModel):
    name: str = ""
    contact: str = ""
    location: str = ""


class PaymentBody(BaseModel):
    method: str
    provider: Optional[str] = None


def get_checkout(session: SessionController = Depends(require_client)) -> CheckoutFlow:
    flow = session.checkout
    if flow is None:
        raise HTTPException(status_code=404, detail="No checkout in progress")
    return flow


def checkout_step(action, *args):
    try:
        action(*args)
    except CheckoutValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/checkout")
def open_checkout(body: OpenCheckoutBody, session: SessionController = Depends(require_client)):
    try:
        flow = navigate(session.open_checkout, body.product_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Product not found")
    flow.set_quantity(body.quantity)
    return flow.view()


@app.get("/checkout")
def read_checkout(flow: CheckoutFlow = Depends(get_checkout)):
    return flow.view()


@app.post("/checkout/quantity")
def set_quantity(body: QuantityBody, flow: CheckoutFlow = Depends(get_checkout)):
    checkout_step(flow.set_quantity, body.quantity)
    return flow.view()


@app.post("/checkout/details")
def submit_details(body: DetailsBody, flow: CheckoutFlow = Depends(get_checkout)):
    checkout_step(flow.set_details, body.name, body.contact, body.location)
    checkout_step(flow.proceed_to_payment)
    return flow.view()


@app.post("/checkout/back")
def back_to_details(flow: CheckoutFlow = Depends(get_checkout)):
    checkout_step(flow.back_to_details)
    return flow.view()


@app.post("/checkout/payment")
def select_payment(body: PaymentBody, flow: CheckoutFlow = Depends(get_checkout)):
    checkout_step(flow.select_payment_method, body.method, body.provider)
    return flow.view()


@app.post("/checkout/confirm")
def confirm_checkout(flow: CheckoutFlow = Depends(get_checkout)):
    checkout_step(flow.confirm)
    return flow.view()


@app.delete("/checkout")
def close_checkout(session: SessionController = Depends(require_client)):
    session.close_checkout()
    return {"status": "closed"}

# ----------------------
# Supplier dashboard
# ----------------------
class ProductBody(BaseModel):
    name: str
    price: int = Field(..., gt=0)
    description: str = ""
    category: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ImageBody(BaseModel):
    data: str = Field(..., description="Base64 encoded image, optionally as a data URL")


class DescribeBody(BaseModel):
    name: str
    category: str
    keywords: str = ""


class StatusBody(BaseModel):
    status: OrderStatus


def get_supplier_dashboard(session: SessionController = Depends(require_supplier)) -> SupplierDashboard:
    return SupplierDashboard(session.supplier, session.state, session.adapter)


@app.get("/supplier/dashboard")
def supplier_dashboard(board: SupplierDashboard = Depends(get_supplier_dashboard)):
    return {
        "supplier": dump(board.supplier),
        "stats": board.stats(),
        "products": [dump(p) for p in board.my_products],
        "orders": [dump(o) for o in board.my_orders],
    }


@app.post("/supplier/products")
def add_product(body: ProductBody, board: SupplierDashboard = Depends(get_supplier_dashboard)):
    product = board.build_product(
        body.name, body.price, body.description, body.category, body.image_url, body.tags
    )
    return write_response(board.add_product(product))


@app.post("/supplier/products/image")
def upload_image(body: ImageBody, board: SupplierDashboard = Depends(get_supplier_dashboard)):
    data = body.data.split(",", 1)[1] if body.data.startswith("data:") else body.data
    try:
        raw = base64.b64decode(data, validate=True)
        return {"image_url": compress_image(raw)}
    except (binascii.Error, InvalidImageError) as e:
        raise HTTPException(status_code=400, detail=f"Image invalide : {e}")


@app.post("/supplier/products/describe")
def describe_product(body: DescribeBody, board: SupplierDashboard = Depends(get_supplier_dashboard)):
    try:
        return generate_product_description(body.name, body.category, body.keywords)
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=f"Génération impossible : {e}")


@app.delete("/supplier/products/{product_id}")
def delete_own_product(product_id: str, board: SupplierDashboard = Depends(get_supplier_dashboard)):
    try:
        return write_response(board.delete_product(product_id))
    except NotOwnedError:
        raise HTTPException(status_code=404, detail="Product not found")


@app.patch("/supplier/orders/{order_id}/status")
def update_order_status(order_id: str, body: StatusBody, board: SupplierDashboard = Depends(get_supplier_dashboard)):
    try:
        return write_response(board.update_order_status(order_id, body.status))
    except NotOwnedError:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ----------------------
# Admin dashboard
# ----------------------

def get_admin_dashboard(session: SessionController = Depends(require_admin)) -> AdminDashboard:
    return AdminDashboard(session.state, session.adapter)


@app.get("/admin/overview")
def admin_overview(board: AdminDashboard = Depends(get_admin_dashboard)):
    return board.overview()


@app.get("/admin/suppliers")
def admin_suppliers(search: str = Query(""), board: AdminDashboard = Depends(get_admin_dashboard)):
    return [dump(s) for s in board.search_suppliers(search)]


@app.get("/admin/products")
def admin_products(search: str = Query(""), board: AdminDashboard = Depends(get_admin_dashboard)):
    return [dump(p) for p in board.search_products(search)]


@app.get("/admin/orders")
def admin_orders(board: AdminDashboard = Depends(get_admin_dashboard)):
    return [dump(o) for o in board.orders_by_date()]


@app.post("/admin/products/{product_id}/promotion")
def toggle_promotion(product_id: str, board: AdminDashboard = Depends(get_admin_dashboard)):
    if board.state.get_product(product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return write_response(board.toggle_promotion(product_id))


@app.post("/admin/suppliers/{supplier_id}/verification")
def toggle_verification(supplier_id: str, board: AdminDashboard = Depends(get_admin_dashboard)):
    if board.state.get_supplier(supplier_id) is None:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return write_response(board.toggle_verification(supplier_id))


@app.delete("/admin/products/{product_id}")
def admin_delete_product(product_id: str, board: AdminDashboard = Depends(get_admin_dashboard)):
    if board.state.get_product(product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return write_response(board.delete_product(product_id))


@app.get("/admin/trends")
def market_trends(board: AdminDashboard = Depends(get_admin_dashboard)):
    return {"analysis": analyze_market_trends(board.state.products)}


@app.post("/admin/seed")
def seed_database(board: AdminDashboard = Depends(get_admin_dashboard)):
    return write_response(board.adapter.seed_remote())


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
