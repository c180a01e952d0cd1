"""Main module for the balance synchronization service."""
import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from balance_sync.routers import (balances_router, connections_router,
                                  export_router, prices_router)
from balance_sync.services import create_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Build stores, providers and services at startup; close them on shutdown."""
    services = create_services()
    fastapi_app.state.services = services

    yield

    # Waits for initial syncs still in flight, then closes httpx clients
    await services.close()


app = FastAPI(
    title="Balance Sync",
    description="Unified crypto balance sheet across Coinbase, Gemini and Ledger exports",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(connections_router)
app.include_router(balances_router)
app.include_router(prices_router)
app.include_router(export_router)


@app.get("/")
def health():
    """Return health check status."""
    return {"status": "ok"}


def run():
    """Run the server (uvicorn). Use for `balance-sync-server`."""
    uvicorn.run(
        "balance_sync.main:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
    )
