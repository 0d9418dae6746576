"""Serialización por ticket del ciclo leer historial -> evaluar -> escribir.

Cada ticket tiene su propia clave: escaneos de tickets distintos nunca se
bloquean entre sí.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple
import asyncio
import logging

from shared.cache.redis_client import DistributedLock, LockNotAcquired

logger = logging.getLogger(__name__)


def lock_key(ticket_id) -> str:
    return f"scan:ticket:{ticket_id}"


class RedisTicketLocks:
    """Lock por ticket compartido entre procesos/instancias vía Redis"""

    def __init__(self, timeout: float = 5, expire: int = 15):
        self.timeout = timeout
        self.expire = expire

    @asynccontextmanager
    async def hold(self, ticket_id) -> AsyncIterator[None]:
        async with DistributedLock(lock_key(ticket_id), timeout=self.timeout, expire=self.expire):
            yield


class LocalTicketLocks:
    """Lock por ticket dentro de un solo proceso (asyncio)"""

    def __init__(self, timeout: float = 5):
        self.timeout = timeout
        # key -> (lock, cantidad de coroutines usando la entrada)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, ticket_id) -> AsyncIterator[None]:
        key = lock_key(ticket_id)
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                raise LockNotAcquired(f"No se pudo adquirir lock: {key}")
            try:
                yield
            finally:
                lock.release()
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)


def build_ticket_locks(backend: str, timeout: float, expire: int):
    """Crear el backend de locks según configuración"""
    if backend == "redis":
        return RedisTicketLocks(timeout=timeout, expire=expire)
    if backend == "local":
        return LocalTicketLocks(timeout=timeout)
    raise ValueError(f"SCAN_LOCK_BACKEND inválido: {backend}")
