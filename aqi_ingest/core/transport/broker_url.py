"""Parseo de la URL del broker MQTT.

Formato: mqtt://[user[:password]@]host[:port][?client_id=...]
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, unquote, urlsplit

from common.config import ConfigError

PLAIN_SCHEMES = ("mqtt", "tcp")
TLS_SCHEMES = ("mqtts", "ssl")
DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883}


@dataclass(frozen=True)
class BrokerEndpoint:
    host: str
    port: int
    tls: bool
    client_id: str
    username: Optional[str] = None
    password: Optional[str] = None


def parse_broker_url(url: str, client_id_prefix: str = "staten") -> BrokerEndpoint:
    """Convierte la URL del broker en parámetros de conexión.

    Raises:
        ConfigError: esquema no soportado, host ausente o puerto inválido.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise ConfigError(f"Invalid MQTT URL {url!r}: {e}")

    scheme = parts.scheme.lower()
    if scheme not in PLAIN_SCHEMES + TLS_SCHEMES:
        raise ConfigError(f"Unsupported MQTT URL scheme: {parts.scheme!r}")
    if not parts.hostname:
        raise ConfigError(f"MQTT URL has no host: {url!r}")

    query = parse_qs(parts.query)
    client_id = (query.get("client_id") or [""])[0] or f"{client_id_prefix}-{int(time.time())}"

    return BrokerEndpoint(
        host=parts.hostname,
        port=port or DEFAULT_PORTS[scheme],
        tls=scheme in TLS_SCHEMES,
        client_id=client_id,
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
    )
