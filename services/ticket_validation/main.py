"""Service entry point para ticket validation"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from shared.cache.redis_client import init_redis, close_redis
from shared.database.connection import init_db, close_db
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from services.ticket_validation.routes.validation import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    await init_redis()
    yield
    await close_db()
    await close_redis()


app = FastAPI(title="Ticket Validation Service", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.include_router(router, prefix="/api/v1/scans", tags=["scans"])
