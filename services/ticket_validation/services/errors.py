"""Errores del flujo de escaneo

Los resultados de negocio (WRONG_EVENT, ALREADY_SCANNED, EXPIRED) no son
excepciones: se registran en el ledger y se devuelven como success=False.
"""


class ScanError(Exception):
    """Error base del servicio de validación"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedScanner(ScanError):
    """El scanner no existe o no tiene un rol habilitado"""


class TicketNotFound(ScanError):
    """No existe el ticket (o su evento fue eliminado)"""


class EventNotFound(ScanError):
    """El evento donde se está escaneando no existe"""


class StorageConflict(ScanError):
    """Otra admisión válida se escribió en paralelo para el mismo ticket"""


class StorageUnavailable(ScanError):
    """La base de datos no está disponible; no se escribió nada en el ledger"""
