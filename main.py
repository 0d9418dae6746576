"""API Gateway principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import logging
from contextlib import asynccontextmanager

from app.core.config import settings
from shared.database.connection import init_db, close_db
from shared.cache.redis_client import init_redis, close_redis
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events de la aplicación"""
    logger.info("Iniciando aplicación...")
    await init_db(settings.DATABASE_URL)
    await init_redis()
    logger.info("Aplicación iniciada")
    yield
    logger.info("Cerrando aplicación...")
    await close_db()
    await close_redis()
    logger.info("Aplicación cerrada")


app = FastAPI(
    title="Scanpoint API",
    description="Validación de tickets en la puerta y ledger de escaneos",
    version="1.0.0",
    lifespan=lifespan
)

# CORS antes de rate limiting
if settings.APP_ENV == "development":
    logger.info("Modo desarrollo: CORS configurado para permitir todos los orígenes")
    allow_origins = ["*"]
    allow_credentials = False  # No se puede usar credentials con allow_origins=["*"]
else:
    allow_origins = settings.cors_origins
    allow_credentials = True
    logger.info(f"CORS origins configurados: {allow_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,  # Cache preflight requests por 1 hora
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

from services.ticket_validation.routes.validation import router as scans_router  # noqa: E402

app.include_router(scans_router, prefix="/api/v1/scans", tags=["scans"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "scanpoint-api"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifica conexiones"""
    try:
        from sqlalchemy import text
        from shared.database import connection
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))

        from shared.cache.redis_client import get_redis
        redis = await get_redis()
        await redis.ping()

        return {"status": "ready", "database": "connected", "redis": "connected"}
    except Exception as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=os.getenv("APP_DEBUG", "False").lower() == "true"
    )
