from fastapi import FastAPI
import logging

from bakery2048.api.deps import init_manager
from bakery2048.api.routes import router
from bakery2048.websocket_hub import hub

app = FastAPI(title="bakery-2048", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    manager = init_manager()
    manager.subscribe(hub)


@app.on_event("shutdown")
async def _shutdown() -> None:
    manager = init_manager()
    # Last chance to persist an unfinished game before the process exits.
    manager.flush_on_exit()
    await manager.close()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "bakery-2048", "version": "0.1.0"}
