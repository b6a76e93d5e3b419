"""Escritura de lecturas en InfluxDB.

Cada lectura es una escritura independiente de un solo punto en la serie
`aqi`. Sin buffer ni batching: si la escritura falla, el resultado lo dice
y el caller decide (el handler la descarta).

Compatible con InfluxDB 1.8+ (API v2 de compatibilidad): el nombre de la
base de datos se usa como bucket y el org es "-".
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from influxdb_client import Point, WritePrecision
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync

from common.config import ConfigError, StatenConfig
from ..domain.packet import TimestampedReading

logger = logging.getLogger(__name__)

SERIES_NAME = "aqi"
DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_ORG = "-"


@dataclass
class WriteResult:
    """Resultado de una escritura."""

    ok: bool
    error: Optional[str] = None


def build_point(reading: TimestampedReading) -> Point:
    """Convierte una lectura al punto de la serie `aqi`."""
    return (
        Point(SERIES_NAME)
        .field("pm25", int(reading.pm25))
        .time(reading.time, WritePrecision.NS)
    )


class ReadingWriter:
    """Escribe lecturas en InfluxDB.

    Cada instancia abre su propio cliente por escritura; los handlers no
    comparten estado mutable entre sí.
    """

    def __init__(
        self,
        influx_url: str,
        influx_db: str,
        token: Optional[str] = None,
        org: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.influx_url = influx_url
        self.influx_db = influx_db
        self.token = token
        self.org = org or DEFAULT_ORG
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, config: StatenConfig) -> "ReadingWriter":
        """Construye el writer con la config compartida y las variables INFLUX_*.

        Raises:
            ConfigError: INFLUX_TIMEOUT_MS no es un entero positivo.
        """
        # Credenciales opcionales fuera del archivo de config (token v2 o "user:pass" en 1.8)
        raw_timeout = os.getenv("INFLUX_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS))
        try:
            timeout_ms = int(raw_timeout)
        except ValueError:
            raise ConfigError(f"INFLUX_TIMEOUT_MS must be an integer, got: {raw_timeout!r}")
        if timeout_ms <= 0:
            raise ConfigError(f"INFLUX_TIMEOUT_MS must be positive, got: {timeout_ms}")

        return cls(
            influx_url=config.influx_url,
            influx_db=config.influx_db,
            token=os.getenv("INFLUX_TOKEN") or None,
            org=os.getenv("INFLUX_ORG") or None,
            timeout_ms=timeout_ms,
        )

    def _client(self) -> InfluxDBClientAsync:
        return InfluxDBClientAsync(
            url=self.influx_url,
            token=self.token or "",
            org=self.org,
            timeout=self.timeout_ms,
        )

    async def write(self, reading: TimestampedReading) -> WriteResult:
        """Escribe una lectura. Nunca lanza: los errores van en WriteResult."""
        point = build_point(reading)

        try:
            async with self._client() as client:
                await client.write_api().write(bucket=self.influx_db, record=point)
        except Exception as e:
            logger.debug(
                "[INFLUX] Write failed url=%s db=%s: %s",
                self.influx_url,
                self.influx_db,
                e,
            )
            return WriteResult(ok=False, error=str(e) or type(e).__name__)

        logger.debug("[INFLUX] Wrote pm25=%d db=%s", reading.pm25, self.influx_db)
        return WriteResult(ok=True)
