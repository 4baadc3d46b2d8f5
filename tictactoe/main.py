from fastapi import FastAPI
import logging

from tictactoe.api.routes import router
from tictactoe.infra.redis_client import create_redis, event_streams_enabled
from tictactoe.sessions import store

app = FastAPI(title="tictactoe-ai", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    # Mirror game events into Redis Streams only when explicitly enabled.
    if event_streams_enabled() and store.redis_client is None:
        store.redis_client = create_redis()
        logger.info("Publishing game events to Redis Streams")


@app.on_event("shutdown")
async def _shutdown() -> None:
    store.clear()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "tictactoe-ai", "version": "0.1.0"}
