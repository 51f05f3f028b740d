# main.py
import sys, asyncio, time, uuid

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from config.settings import settings
from core.errors import init_error_handlers
from core.logging import get_logger, setup_logging
from database.connection import create_all_tables, engine, ping_db, wait_for_database

setup_logging(settings.LOG_LEVEL)
logger = get_logger("Request")

# ----- Windows event loop policy -----
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# ----- App instance -----
app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
init_error_handlers(app, expose_errors=settings.ENV.strip().lower() == "development")


# ----- Middlewares -----
class RequestLogMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with an X-Request-ID (incoming or generated)."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else "-"
        logger.info(
            "%s %s -> %d (%.1f ms) id=%s ip=%s",
            request.method, request.url.path, response.status_code, elapsed_ms, request_id, client,
        )
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestLogMiddleware)

# ----- Routers -----
from modules.employees.routes import router as user_router
from modules.leave.routes import router as leave_router
from modules.leave.migrations import migrate_flat_leaves
from modules.security.auth_routes import router as admin_router
from modules.security.bootstrap import ensure_default_admin

app.include_router(user_router)
app.include_router(admin_router)
app.include_router(leave_router)


# ----- Startup -----
@app.on_event("startup")
def on_startup():
    wait_for_database(engine)
    create_all_tables(engine)

    migrate_flat_leaves(engine)

    ensure_default_admin()


# ----- Health -----
@app.get("/health")
def health():
    db_ok = ping_db(engine)
    return {
        "success": True,
        "status": "OK" if db_ok else "DEGRADED",
        "database": "up" if db_ok else "down",
        "version": settings.APP_VERSION,
        "environment": settings.ENV,
    }


# ----- Entrypoint -----
if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=5000, reload=not settings.is_production)
