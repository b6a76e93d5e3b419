"""Handler de mensajes MQTT: parseo → timestamp → escritura en InfluxDB."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from common.config import StatenConfig
from ..domain.packet import TimestampedReading
from ..storage.influx_writer import ReadingWriter
from ..validation.payload_parser import parse_payload

logger = logging.getLogger(__name__)


class HandleOutcome(Enum):
    """Resultado terminal de un mensaje."""
    WRITTEN = "written"
    PARSE_FAILED = "parse_failed"
    WRITE_FAILED = "write_failed"


WriterFactory = Callable[[StatenConfig], ReadingWriter]


async def handle_message(
    config: StatenConfig,
    payload: bytes,
    writer_factory: WriterFactory = ReadingWriter.from_config,
) -> HandleOutcome:
    """Procesa un mensaje completo, aislado del resto.

    Ningún error sale de aquí: un fallo de parseo o de escritura se
    reporta en el log y el mensaje se descarta, sin reintentos.
    """
    try:
        result = parse_payload(payload)
        if not result.valid:
            logger.warning("[HANDLER] error parsing packet: %s", result.error)
            return HandleOutcome.PARSE_FAILED

        pm25 = result.packet.pm25
        logger.info("[HANDLER] quality: %d", pm25)

        reading = TimestampedReading.now(pm25)
        write = await writer_factory(config).write(reading)
        if not write.ok:
            logger.error("[HANDLER] error writing to influxdb: %s", write.error)
            return HandleOutcome.WRITE_FAILED

        return HandleOutcome.WRITTEN

    except Exception as e:
        logger.exception("[HANDLER] Unexpected error: %s", e)
        return HandleOutcome.WRITE_FAILED
