"""Modelos de dominio: paquete de calidad de aire y lectura con timestamp."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AirQualityPacket(BaseModel):
    """Schema del payload publicado por el sensor.

    Formato esperado:
    {
        "pm25": 106,
        "wifi": {"ssid": "...", "ip": "192.168.2.103", "rssi": -59}
    }

    Solo `pm25` es obligatorio; el resto de campos (diagnóstico de red,
    etc.) se ignora.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    # Rango de un entero de 32 bits con signo
    pm25: int = Field(..., ge=-(2**31), le=2**31 - 1)

    @field_validator("pm25", mode="before")
    @classmethod
    def validate_pm25(cls, v: Any) -> Any:
        # bool es subclase de int; pydantic acepta "42" y 42.0 en modo lax
        if isinstance(v, (bool, str, float)):
            raise ValueError("pm25 must be an integer")
        return v


@dataclass(frozen=True)
class TimestampedReading:
    """Lectura lista para escribir en la serie temporal.

    `time` es el instante de procesamiento, no el de llegada ni un
    timestamp del payload.
    """

    pm25: int
    time: datetime

    @classmethod
    def now(cls, pm25: int) -> "TimestampedReading":
        return cls(pm25=pm25, time=datetime.now(timezone.utc))
