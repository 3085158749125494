# storefront/main.py
from fastapi import FastAPI
import uvicorn

from storefront.api.routers import carts, health, orders, webhooks
from storefront.data.database import Base, init_db
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(create_tables: bool = True) -> FastAPI:
    if create_tables:
        logger.info("Initializing database")
        init_db()
        logger.info(f"Tables registered: {list(Base.metadata.tables.keys())}")

    app = FastAPI(
        title="Storefront",
        version="1.0.0",
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(orders.admin_router)
    app.include_router(webhooks.router)

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
