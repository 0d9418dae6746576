"""
Rate limiting usando slowapi + Redis
Compartido entre instancias para que varios scanners detrás de un proxy cuenten bien
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from starlette.responses import JSONResponse
import hashlib
import os
import logging

logger = logging.getLogger(__name__)

# Configuración de Redis para rate limiting distribuido
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
# "memory://" para desarrollo local sin Redis
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", REDIS_URL)


def get_real_client_ip(request: Request) -> str:
    """
    Obtener IP real del cliente considerando proxies/load balancers.
    """
    # X-Forwarded-For puede tener múltiples IPs: client, proxy1, proxy2
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Identificador para rate limiting: IP + hash del token si está autenticado.
    Varios dispositivos de la misma puerta comparten IP pero no token.
    """
    ip = get_real_client_ip(request)

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        # Hash del token para no exponer el token completo
        token_hash = hashlib.md5(auth_header.encode()).hexdigest()[:8]
        return f"{ip}:{token_hash}"

    return ip


limiter = Limiter(
    key_func=get_user_identifier,
    storage_uri=RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    headers_enabled=False,  # Deshabilitado para compatibilidad con response_model de FastAPI
)
logger.info(f"Rate limiter inicializado con storage: {RATE_LIMIT_STORAGE_URI.split('@')[-1]}")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Handler personalizado para rate limit exceeded.
    Retorna JSON con información útil para el cliente.
    """
    retry_after = exc.detail.split(" ")[-1] if exc.detail else "60"

    logger.warning(
        f"Rate limit exceeded - IP: {get_real_client_ip(request)}, "
        f"Path: {request.url.path}, "
        f"Retry-After: {retry_after}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Demasiadas solicitudes. Por favor espera antes de intentar nuevamente.",
            "retry_after_seconds": int(retry_after) if retry_after.isdigit() else 60,
        },
        headers={"Retry-After": str(retry_after)}
    )


# ============ RATE LIMITS PRE-DEFINIDOS ============

RATE_LIMITS = {
    # Validación en la puerta: un scanner puede leer un ticket por segundo
    "validation": os.getenv("RATE_LIMIT_VALIDATION", "60/minute"),

    # Dashboards de operadores
    "feed": os.getenv("RATE_LIMIT_FEED", "120/minute"),
}
