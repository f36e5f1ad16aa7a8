"""Main FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from waiterboard.api import dashboard, health
from waiterboard.api.webhooks import events
from waiterboard.core.config import settings
from waiterboard.core.dependencies import set_dashboard
from waiterboard.core.errors import ValidationError
from waiterboard.core.logging import logger, setup_logging
from waiterboard.db.database import AsyncSessionLocal, init_db
from waiterboard.services.dashboard.controller import create_dashboard
from waiterboard.services.state.sql import SqlStateStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    waiter_dashboard = create_dashboard(settings, state_store=SqlStateStore(AsyncSessionLocal))
    set_dashboard(waiter_dashboard)
    await waiter_dashboard.start()
    yield
    # Shutdown
    await waiter_dashboard.stop()
    await waiter_dashboard.client.close()
    set_dashboard(None)


app = FastAPI(
    title="Waiterboard",
    description="Order-lifecycle reconciliation engine for the waiter dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(events.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(dashboard.router, tags=["dashboard"])


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Locally rejected input."""
    logger.info(f"[API] Rejected {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.get("/")
async def root():
    return {"message": "Waiterboard API", "version": "0.1.0"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("waiterboard.main:app", host=settings.host, port=settings.port)
