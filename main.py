from contextlib import asynccontextmanager

from fastapi import FastAPI
from dotenv import load_dotenv
import logging

from routers import search
from services.registry import close_service_registry, get_service_registry

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry = get_service_registry()
    logger.info(f"API clients ready: clients={registry.clients.names}")
    yield
    await close_service_registry()


app = FastAPI(lifespan=lifespan)

# Include routers
app.include_router(search.router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}
