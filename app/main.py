import logging
import pathlib
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

from app.database import SessionLocal, init_db, load_models

load_models()

from app.api import (
    alerts,
    auth,
    categories,
    dashboard,
    inventory,
    locations,
    movements,
    orders,
    products,
    reports,
    suppliers,
    users,
)
from app.config import settings
from app.services.access_guard import (
    PAGE_ROUTES,
    Anonymous,
    AuthState,
    PageRoute,
    Redirect,
    match_route,
    resolve_access,
    state_from_profile,
)
from app.services.auth_service import decode_token, ensure_default_admin, get_user_by_id

STATIC_DIR = pathlib.Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="SOSStock API",
    description="Products, locations, stock movements, supplier orders and alerts",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so frontend can parse error."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def _page_state(token: str | None) -> AuthState:
    """Session state for a page request, read from the profile behind the cookie."""
    payload = decode_token(token) if token else None
    if not payload:
        return Anonymous()
    db = SessionLocal()
    try:
        return state_from_profile(get_user_by_id(db, payload["sub"]))
    finally:
        db.close()


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    """Apply the page access rules; API routes check auth in their dependencies."""
    path = request.url.path
    route = match_route(path)
    if route is None:
        return await call_next(request)

    state = await run_in_threadpool(_page_state, request.cookies.get("token"))
    decision = resolve_access(state, route)
    if isinstance(decision, Redirect):
        return RedirectResponse(decision.to, status_code=302)
    return await call_next(request)


for module in (auth, users, products, categories, locations, inventory, movements, orders, suppliers, alerts, dashboard, reports):
    app.include_router(module.router, prefix="/api/v1")

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


def _page(route: PageRoute):
    shell = STATIC_DIR / ("login.html" if route.public else "index.html")

    def serve_page():
        return FileResponse(shell)

    return serve_page


for page in PAGE_ROUTES:
    app.add_api_route(page.pattern, _page(page), methods=["GET"], include_in_schema=False)


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse("/dashboard", status_code=302)


@app.get("/api/v1/config")
def get_config():
    """Expose public config for the frontend."""
    return {"app_name": settings.APP_NAME, "base_url": settings.BASE_URL.rstrip("/")}


@app.get("/health")
def health():
    return {"status": "ok"}
