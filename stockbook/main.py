import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stockbook.api import auth, change_logs, consignments, items, master_data, products
from stockbook.config import settings
from stockbook.database import SessionLocal, init_db
from stockbook.services.auth_service import ensure_default_admin
from stockbook.services.sku_service import seed_counters_from_existing

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        seed_counters_from_existing(db)
        # Create default admin if no users
        ensure_default_admin(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Inventory of owned products and consigned goods",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so frontend can parse error."""
    logger.error("Unhandled error on %s %s: %s\n%s", request.method, request.url.path, exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(items.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(consignments.router, prefix="/api/v1")
for master_router in master_data.routers:
    app.include_router(master_router, prefix="/api/v1")
app.include_router(change_logs.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}
