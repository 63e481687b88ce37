"""FeedWatch: watchlist monitoring with a deduplicated opportunity feed.

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from feedwatch.api.routes import router
from feedwatch.db.database import init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logging.getLogger(__name__).info("Database initialized")
    yield


app = FastAPI(
    title="FeedWatch",
    description="Watchlist monitoring that turns page visits into a deduplicated opportunity feed",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
