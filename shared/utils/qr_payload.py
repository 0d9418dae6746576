"""Extracción del identificador de ticket desde el contenido leído por el scanner"""
import json

TICKET_ID_FIELDS = ("id", "ticketId", "orderId")


def extract_ticket_id(raw: str) -> str:
    """
    Obtener el ticket id a partir del texto de un QR/código de barras o ingreso manual

    Reglas, en orden:
        1. JSON con campo id, ticketId u orderId
        2. URL o ruta (contiene "/" y no tiene espacios): último segmento
        3. El texto tal cual
    """
    data = (raw or "").strip()
    if not data:
        raise ValueError("Código de ticket vacío")

    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        payload = None

    if isinstance(payload, dict):
        for field_name in TICKET_ID_FIELDS:
            value = payload.get(field_name)
            if value:
                return str(value).strip()

    if "/" in data and not any(char.isspace() for char in data):
        # Ignorar query string / fragmento de una URL
        path = data.split("?")[0].split("#")[0]
        segments = [segment for segment in path.split("/") if segment]
        if segments:
            return segments[-1]

    return data
