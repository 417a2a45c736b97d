"""
DispatchDesk - Main FastAPI Application
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dispatchdesk.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Dispatch order reconciliation: landed cost, returns and party ledgers",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.on_event("startup")
def create_tables():
    """Create missing tables. Existing tables are left untouched."""
    from dispatchdesk.database import engine
    from dispatchdesk.models import Base

    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started (base currency {settings.BASE_CURRENCY})")


# Include routers
from dispatchdesk.api import dispatch_orders_router, ledger_router, parties_router

app.include_router(dispatch_orders_router, prefix="/api/dispatch-orders", tags=["Dispatch Orders"])
app.include_router(ledger_router, prefix="/api/ledger", tags=["Ledger"])
app.include_router(parties_router, prefix="/api/parties", tags=["Parties"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("dispatchdesk.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
