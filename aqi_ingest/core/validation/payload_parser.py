"""Parser de payloads MQTT → AirQualityPacket.

Nunca lanza excepciones: cualquier problema del payload se devuelve como
ParseResult inválido para que el handler lo reporte y descarte el mensaje.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from ..domain.packet import AirQualityPacket

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Resultado del parseo."""

    valid: bool
    packet: Optional[AirQualityPacket] = None
    error: Optional[str] = None


def _describe(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
    return f"{loc}: {err.get('msg')}"


def parse_payload(payload: bytes) -> ParseResult:
    """Decodifica un payload JSON UTF-8.

    Args:
        payload: Cuerpo crudo del mensaje MQTT

    Returns:
        ParseResult con el paquete o el motivo del fallo
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        return ParseResult(valid=False, error=f"Invalid UTF-8: {e}")

    try:
        packet = AirQualityPacket.model_validate_json(text)
    except ValidationError as e:
        # JSON malformado, no-objeto, pm25 ausente o con tipo inválido
        error = _describe(e)
        logger.debug("[PARSER] Rejected payload: %s", error)
        return ParseResult(valid=False, error=error)

    return ParseResult(valid=True, packet=packet)
